"""Persistent credential store for the CSRF token and session cookies.

WHY: A login session is a CSRF token plus the session cookies set by the
login response. Persisting both lets a later process reuse the session
without logging in again.

HOW: A small JSON file holds two keys: TOKEN_KEY (string) and COOKIE_KEY
(list of cookie records). Cookie records are plain dicts built from
http.cookiejar.Cookie objects and turned back into cookies for the httpx
jar on load. Writes go to a sibling temp file that replaces the original.

RULES:
- A missing or unreadable file is treated as empty state, never an error
- A failed write leaves no temp file behind and raises OSError
- The file is created with owner-only permissions
- Expired cookie records are dropped on load
"""

from __future__ import annotations

import json
import logging
import os
import time
from http.cookiejar import Cookie
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from respeecher_client.config import COOKIE_KEY, RESPEECHER_STATE_FILE, TOKEN_KEY

logger = logging.getLogger(__name__)


class CredentialStore:
    """Token and cookie persistence backed by one JSON file."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else RESPEECHER_STATE_FILE

    # ------------------------------------------------------------------
    # File access
    # ------------------------------------------------------------------

    def _read(self) -> Dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable credential file %s", self.path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed credential file %s", self.path)
            return {}
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.chmod(tmp, 0o600)
            tmp.replace(self.path)
        except OSError:
            if tmp.exists():
                tmp.unlink()
            raise

    def _update(self, key: str, value: Any) -> None:
        data = self._read()
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
        self._write(data)

    # ------------------------------------------------------------------
    # Token
    # ------------------------------------------------------------------

    def load_token(self) -> str:
        token = self._read().get(TOKEN_KEY)
        return token if isinstance(token, str) else ""

    def save_token(self, token: str) -> None:
        self._update(TOKEN_KEY, token)

    def clear_token(self) -> None:
        self._update(TOKEN_KEY, None)

    # ------------------------------------------------------------------
    # Cookies
    # ------------------------------------------------------------------

    def load_cookies(self) -> List[Cookie]:
        records = self._read().get(COOKIE_KEY)
        if not isinstance(records, list):
            return []
        now = time.time()
        cookies = []
        for record in records:
            try:
                cookie = record_to_cookie(record)
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed stored cookie record")
                continue
            if cookie.expires is not None and cookie.expires < now:
                continue
            cookies.append(cookie)
        return cookies

    def save_cookies(self, cookies: Iterable[Cookie]) -> None:
        self._update(COOKIE_KEY, [cookie_to_record(c) for c in cookies])

    def clear_cookies(self) -> None:
        self._update(COOKIE_KEY, None)


def cookie_to_record(cookie: Cookie) -> Dict[str, Any]:
    return {
        "name": cookie.name,
        "value": cookie.value,
        "domain": cookie.domain,
        "path": cookie.path,
        "expires": cookie.expires,
        "secure": cookie.secure,
    }


def record_to_cookie(record: Dict[str, Any]) -> Cookie:
    """Rebuild a Cookie from a stored record.

    Raises KeyError or TypeError for records missing or mistyping the
    name, value, domain, or path.
    """
    domain = record["domain"]
    if not isinstance(record["name"], str):
        raise TypeError("cookie name must be a string")
    if record["value"] is not None and not isinstance(record["value"], str):
        raise TypeError("cookie value must be a string")
    if not isinstance(domain, str):
        raise TypeError("cookie domain must be a string")
    path = record.get("path") or "/"
    if not isinstance(path, str):
        raise TypeError("cookie path must be a string")
    expires = record.get("expires")
    return Cookie(
        version=0,
        name=record["name"],
        value=record["value"],
        port=None,
        port_specified=False,
        domain=domain,
        domain_specified=bool(domain),
        domain_initial_dot=domain.startswith("."),
        path=path,
        path_specified=True,
        secure=bool(record.get("secure", False)),
        expires=int(expires) if expires is not None else None,
        discard=expires is None,
        comment=None,
        comment_url=None,
        rest={},
    )
