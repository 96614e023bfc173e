"""Command-line interface for the Respeecher API client.

WHY: Scripting a Respeecher workflow (log in, list projects and phrases,
upload a take, download conversions) should not require writing Python.
The CLI wires the client's operations to subcommands.

HOW: Uses argparse subcommands. Each command opens a RespeecherClient
(which restores the saved session), runs one operation via asyncio.run(),
and prints the records one per line on stdout. Status and error messages
go to stderr.

RULES:
- login reads RESPEECHER_EMAIL / RESPEECHER_PASSWORD from the environment
  (.env) unless --email/--password are given
- Exit code 0 on success, 1 on API failure, config error or local file
  error, 2 on usage error
- Status output goes to stderr (not stdout)
- --verbose turns on debug logging for the client
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from respeecher_client.api.client import RespeecherClient
from respeecher_client.api.errors import ApiError, Result
from respeecher_client.config import RESPEECHER_DOWNLOAD_DIR, load_credentials
from respeecher_client.storage import CredentialStore


def _status(msg: str) -> None:
    """Print a status message to stderr."""
    print(msg, file=sys.stderr, flush=True)


def _report_error(error: ApiError) -> int:
    _status("Error: {}".format(error))
    return 1


def _print_lines(lines: Iterable[str]) -> None:
    for line in lines:
        print(line)


def _progress(label: str) -> Callable[[float], None]:
    def report(fraction: float) -> None:
        print("\r{} {:3.0f}%".format(label, fraction * 100), end="", file=sys.stderr, flush=True)
        if fraction >= 1.0:
            print(file=sys.stderr, flush=True)

    return report


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _cmd_login(client: RespeecherClient, args: argparse.Namespace) -> int:
    if args.email and args.password:
        email, password = args.email, args.password
    else:
        email, password = load_credentials()
    success, user = await client.login(email, password)
    if not success or user is None:
        _status("Login failed.")
        return 1
    _status("Logged in as {} ({} {})".format(user.email, user.first_name, user.last_name))
    return 0


async def _cmd_logout(client: RespeecherClient, args: argparse.Namespace) -> int:
    if client.logout():
        _status("Logged out.")
    else:
        _status("Not logged in.")
    return 0


async def _cmd_status(client: RespeecherClient, args: argparse.Namespace) -> int:
    print("authenticated" if client.is_authenticated else "not authenticated")
    return 0


async def _cmd_projects(client: RespeecherClient, args: argparse.Namespace) -> int:
    result = await client.fetch_projects(page=args.page, limit=args.limit)
    if not result.ok:
        return _report_error(result.error)
    _print_lines("{}\t{}".format(p.id, p.name) for p in result.value)
    return 0


async def _cmd_phrases(client: RespeecherClient, args: argparse.Namespace) -> int:
    result = await client.fetch_phrases(args.project_id, page=args.page, limit=args.limit)
    if not result.ok:
        return _report_error(result.error)
    _print_lines("{}\t{}".format(p.id, p.text) for p in result.value)
    return 0


async def _cmd_recordings(client: RespeecherClient, args: argparse.Namespace) -> int:
    result = await client.fetch_recordings(args.phrase_id, page=args.page, limit=args.limit)
    if not result.ok:
        return _report_error(result.error)
    _print_lines("{}\t{}".format(r.id, r.display_name) for r in result.value)
    return 0


async def _cmd_models(client: RespeecherClient, args: argparse.Namespace) -> int:
    result = await client.fetch_models()
    if not result.ok:
        return _report_error(result.error)
    _print_lines("{}\t{}\t{}".format(m.id, m.name, m.preview_url) for m in result.value)
    return 0


async def _cmd_voices(client: RespeecherClient, args: argparse.Namespace) -> int:
    result = await client.fetch_tts_voices()
    if not result.ok:
        return _report_error(result.error)
    _print_lines("{}\t{}".format(v.api_code, v.display_name) for v in result.value)
    return 0


async def _cmd_upload(client: RespeecherClient, args: argparse.Namespace) -> int:
    path = Path(args.file)
    if not path.is_file():
        _status("Error: file not found: {}".format(path))
        return 1
    result = await client.create_recording(
        args.phrase_id,
        path.read_bytes(),
        file_name=path.name,
        mime_type=args.mime_type,
        on_progress=_progress("Uploading"),
    )
    if not result.ok:
        return _report_error(result.error)
    print("{}\t{}".format(result.value.id, result.value.display_name))
    return 0


async def _cmd_download(client: RespeecherClient, args: argparse.Namespace) -> int:
    listing = await client.fetch_recordings(args.phrase_id)
    if not listing.ok:
        return _report_error(listing.error)
    matches = [r for r in listing.value if r.id == args.recording_id]
    if not matches:
        _status("Error: recording {} not found in phrase {}".format(args.recording_id, args.phrase_id))
        return 1
    result: Result[Path] = await client.download_recording(
        matches[0], on_progress=_progress("Downloading")
    )
    if not result.ok:
        return _report_error(result.error)
    print(result.value)
    return 0


_COMMANDS = {
    "login": _cmd_login,
    "logout": _cmd_logout,
    "status": _cmd_status,
    "projects": _cmd_projects,
    "phrases": _cmd_phrases,
    "recordings": _cmd_recordings,
    "models": _cmd_models,
    "voices": _cmd_voices,
    "upload": _cmd_upload,
    "download": _cmd_download,
}


async def _run(args: argparse.Namespace) -> int:
    store = CredentialStore(Path(args.state_file)) if args.state_file else CredentialStore()
    download_dir = Path(args.download_dir) if args.download_dir else RESPEECHER_DOWNLOAD_DIR
    async with RespeecherClient(store=store, download_dir=download_dir) as client:
        return await _COMMANDS[args.command](client, args)


def _add_paging(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--page", type=int, default=None, help="Page number to fetch.")
    parser.add_argument("--limit", type=int, default=None, help="Items per page.")


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable: tests can inspect the parser without touching the network.

    HOW: One subparser per command; global flags for state file,
    download directory, and verbosity.
    """
    parser = argparse.ArgumentParser(
        prog="respeecher",
        description="Work with the Respeecher voice-conversion API from the terminal.",
    )
    parser.add_argument(
        "--state-file",
        default=None,
        help="Credential file holding the saved session (default: ~/.respeecher/credentials.json).",
    )
    parser.add_argument(
        "--download-dir",
        default=None,
        help="Directory for downloaded recordings (default: %s)." % RESPEECHER_DOWNLOAD_DIR,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Log in and save the session.")
    login.add_argument("--email", default=None, help="Account email (default: $RESPEECHER_EMAIL).")
    login.add_argument("--password", default=None, help="Password (default: $RESPEECHER_PASSWORD).")

    sub.add_parser("logout", help="Forget the saved session.")
    sub.add_parser("status", help="Show whether a session is saved.")

    projects = sub.add_parser("projects", help="List projects.")
    _add_paging(projects)

    phrases = sub.add_parser("phrases", help="List the phrases of a project.")
    phrases.add_argument("project_id")
    _add_paging(phrases)

    recordings = sub.add_parser("recordings", help="List the recordings of a phrase.")
    recordings.add_argument("phrase_id")
    _add_paging(recordings)

    sub.add_parser("models", help="List voice models with their preview URLs.")
    sub.add_parser("voices", help="List TTS voices.")

    upload = sub.add_parser("upload", help="Upload an audio file as a new take of a phrase.")
    upload.add_argument("phrase_id")
    upload.add_argument("file", help="Audio file (.wav, .ogg, .mp3 or .flac).")
    upload.add_argument("--mime-type", default="audio/wav", help="Content type (default: %(default)s).")

    download = sub.add_parser("download", help="Download a recording of a phrase.")
    download.add_argument("phrase_id")
    download.add_argument("recording_id")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    - Returns the process exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except ValueError as e:
        # Config errors (missing credentials)
        _status("Error: {}".format(e))
        return 1
    except OSError as e:
        # Credential file or download directory not writable
        _status("Error: {}".format(e))
        return 1
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
