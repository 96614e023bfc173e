"""Configuration constants, storage keys, and .env loading.

WHY: Endpoints, storage locations, and upload rules are plain data that
callers (client, CLI, tests) need to find and override easily. Keeping
them here rather than inside the client keeps the client free of
environment lookups.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level strings, paths, and sets read through os.getenv with a
default. The load_credentials() function provides a clear error when the
CLI is asked to log in without credentials.

RULES:
- All defaults can be overridden via environment variables
- Base URLs always end with "/" so relative paths join cleanly
- Credentials are loaded from .env, never hardcoded
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()


def _with_slash(url: str) -> str:
    return url if url.endswith("/") else url + "/"


# ---------------------------------------------------------------------------
# API endpoints
# ---------------------------------------------------------------------------

RESPEECHER_BASE_URL = _with_slash(
    os.getenv("RESPEECHER_BASE_URL", "https://gateway.respeecher.com/api/")
)
RESPEECHER_PREVIEW_URL = _with_slash(
    os.getenv("RESPEECHER_PREVIEW_URL", "https://respeecher.com/voice-marketplace/previews/")
)
"""Base for convention-derived model preview audio (not authenticated)."""

LOGIN_PATH = "login"
MODEL_PATH = "models"
PROJECT_PATH = "projects"
PHRASE_PATH = "phrases"
RECORDING_PATH = "recordings"
ORDER_PATH = "recordings/conversion-order"
VOICE_PATH = "tts-voice"
VOICE_CREATE_PATH = "recordings/tts"
CALIBRATION_PATH = "calibrations"

CSRF_HEADER = "x-csrf-token"

RESPEECHER_TIMEOUT_S = float(os.getenv("RESPEECHER_TIMEOUT_S", "60"))

# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------

ALLOWED_FILE_TYPES: set[str] = {"wav", "ogg", "mp3", "flac"}
"""Audio extensions accepted by the recording and calibration uploads."""

UPLOAD_CHUNK_SIZE = 64 * 1024

# ---------------------------------------------------------------------------
# Local state
# ---------------------------------------------------------------------------

_STATE_DIR = Path.home() / ".respeecher"

RESPEECHER_STATE_FILE = Path(
    os.getenv("RESPEECHER_STATE_FILE", str(_STATE_DIR / "credentials.json"))
).expanduser()
RESPEECHER_DOWNLOAD_DIR = Path(
    os.getenv("RESPEECHER_DOWNLOAD_DIR", str(_STATE_DIR / "downloads"))
).expanduser()

TOKEN_KEY = "respeecher_token"
COOKIE_KEY = "respeecher_savedCookies"


def load_credentials() -> tuple[str, str]:
    """Load the account email and password from the environment.

    WHY: The CLI's login command needs credentials without asking for
    them on the command line, where they would land in shell history.

    HOW: Reads RESPEECHER_EMAIL and RESPEECHER_PASSWORD from os.environ
    (populated by python-dotenv).

    RULES:
    - Raises ValueError if either value is missing or empty
    - Never returns a default/placeholder value
    """
    email = os.getenv("RESPEECHER_EMAIL", "").strip()
    password = os.getenv("RESPEECHER_PASSWORD", "")
    if not email or not password:
        raise ValueError(
            "Respeecher credentials not configured. "
            "Add RESPEECHER_EMAIL and RESPEECHER_PASSWORD to the .env file."
        )
    return email, password
