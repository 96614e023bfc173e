"""Shared test fixtures for the respeecher_client test suite.

WHY: Most test modules need the same way of standing up a client against
a fake gateway. The payload bodies themselves live in payloads.py.

HOW: MockGateway records every request and answers from a route table
through httpx.MockTransport. The make_client fixture builds a
RespeecherClient wired to that transport with a temp credential file and
download directory.

RULES:
- The real Respeecher API is never called
- Routes are keyed by (method, URL path); unknown routes answer 404
- saved_session writes a token + cookie so new clients start authenticated
"""

from __future__ import annotations

import copy
import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from payloads import BASE_URL, LOGIN_SUCCESS, SESSION_COOKIE
from respeecher_client.api.client import RespeecherClient
from respeecher_client.config import COOKIE_KEY, TOKEN_KEY
from respeecher_client.storage import CredentialStore


# ---------------------------------------------------------------------------
# Fake gateway
# ---------------------------------------------------------------------------


class MockGateway:
    """Route table + request log behind an httpx.MockTransport."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Any] = {}
        self.requests: List[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        status: int = 200,
        json: Any = None,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.routes[(method, path)] = (status, copy.deepcopy(json), content, headers)

    def add_handler(self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[(method, path)] = handler

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"detail": "Not Found"})
        if callable(route):
            return route(request)
        status, body, content, headers = route
        if body is not None:
            return httpx.Response(status, json=body, headers=headers)
        return httpx.Response(status, content=content or b"", headers=headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.requests[-1].content)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def gateway():
    """A fresh fake gateway that accepts logins."""
    gw = MockGateway()
    gw.add("POST", "/api/login", json=LOGIN_SUCCESS, headers={"Set-Cookie": SESSION_COOKIE})
    return gw


@pytest.fixture
def state_file(tmp_path):
    return tmp_path / "credentials.json"


@pytest.fixture
def saved_session(state_file):
    """Write a persisted session so new clients start authenticated."""
    state_file.write_text(
        json.dumps(
            {
                TOKEN_KEY: "csrf-saved",
                COOKIE_KEY: [
                    {
                        "name": "session",
                        "value": "saved",
                        "domain": "gateway.respeecher.com",
                        "path": "/",
                        "expires": None,
                        "secure": False,
                    }
                ],
            }
        ),
        encoding="utf-8",
    )
    return state_file


@pytest.fixture
def make_client(gateway, state_file, tmp_path):
    """Factory for clients bound to the fake gateway."""

    def _make(**kwargs: Any) -> RespeecherClient:
        kwargs.setdefault("store", CredentialStore(state_file))
        kwargs.setdefault("base_url", BASE_URL)
        kwargs.setdefault("download_dir", tmp_path / "downloads")
        kwargs.setdefault("transport", gateway.transport)
        return RespeecherClient(**kwargs)

    return _make
