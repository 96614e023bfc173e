"""Async HTTP client for the Respeecher voice-conversion API.

WHY: Apps built on Respeecher need to log in, manage projects, phrases,
and recordings, upload source audio, order conversions, and download the
converted takes. This module encapsulates the session handling and HTTP
details behind a single client class so callers (CLI, apps, tests) only
deal with typed records and typed errors.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. The RespeecherClient is
an async context manager: enter it to open the connection pool, exit to
close it. Session state (CSRF token, cookies, authenticated flag, user)
lives on the instance and is seeded from a CredentialStore at
construction. Every remote operation goes through one pipeline:
auth check → request → decode → classify failure.

RULES:
- Always use the async context manager (async with RespeecherClient() as client:)
- Operations return Result; API and transport failures never raise
- Every request except login requires an authenticated session, checked
  before any network traffic
- 401/402/403 responses end the session (authenticated flag and user cleared)
- 422 bodies are decoded as field-level validation errors
- Progress callbacks (on_progress) are optional; when provided, called
  with a fraction between 0.0 and 1.0
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from http.cookiejar import Cookie
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, TypeVar
from urllib.parse import quote

import httpx

from respeecher_client.api.errors import (
    ApiError,
    ErrorKind,
    ResponseCode,
    Result,
    classify_status,
)
from respeecher_client.api.models import (
    Calibration,
    ErrorResponse,
    LoginResponse,
    Model,
    Page,
    Phrase,
    Project,
    Recording,
    User,
    ValidationErrorResponse,
    Voice,
    VoiceResponse,
)
from respeecher_client.api.requests import (
    ConversionOrder,
    ListQuery,
    LoginRequest,
    ModelSelection,
    PhraseCreate,
    PhraseUpdate,
    ProjectCreate,
    ProjectUpdate,
    TTSCreate,
)
from respeecher_client.config import (
    ALLOWED_FILE_TYPES,
    CALIBRATION_PATH,
    CSRF_HEADER,
    LOGIN_PATH,
    MODEL_PATH,
    ORDER_PATH,
    PHRASE_PATH,
    PROJECT_PATH,
    RECORDING_PATH,
    RESPEECHER_BASE_URL,
    RESPEECHER_DOWNLOAD_DIR,
    RESPEECHER_TIMEOUT_S,
    UPLOAD_CHUNK_SIZE,
    VOICE_CREATE_PATH,
    VOICE_PATH,
)
from respeecher_client.storage import CredentialStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[float], None]

_DECODE_ERRORS = (ValueError, KeyError, TypeError)


class RespeecherClient:
    """Async client for the Respeecher gateway API.

    WHY: Provides a typed interface for the whole Respeecher workflow:
    login → projects → phrases → recordings → conversion orders →
    download. Handles the CSRF token, session cookies, multipart
    uploads, progress reporting, and error classification.

    HOW: Wraps httpx.AsyncClient with the gateway base URL. Session cookies
    live in the httpx cookie jar; the CSRF token is sent as the
    x-csrf-token header. Both are persisted through the CredentialStore so
    a new process starts authenticated when a session was saved.

    RULES:
    - Use as: async with RespeecherClient() as client: ...
    - store defaults to a CredentialStore at RESPEECHER_STATE_FILE
    - base_url defaults to RESPEECHER_BASE_URL from config
    - transport is for tests (httpx.MockTransport) and custom networking
    - on_auth_change is called with the new value whenever the
      authenticated flag changes
    """

    def __init__(
        self,
        store: Optional[CredentialStore] = None,
        base_url: Optional[str] = None,
        download_dir: Optional[Path] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_auth_change: Optional[Callable[[bool], None]] = None,
    ) -> None:
        self._store = store or CredentialStore()
        self._base_url = (base_url or RESPEECHER_BASE_URL).rstrip("/") + "/"
        self._download_dir = Path(download_dir) if download_dir else RESPEECHER_DOWNLOAD_DIR
        self._timeout = timeout or RESPEECHER_TIMEOUT_S
        self._transport = transport
        self._on_auth_change = on_auth_change
        self._client: Optional[httpx.AsyncClient] = None
        self._cookies = httpx.Cookies()
        self._token = ""
        self._authenticated = False
        self._authenticating = False
        self._user: Optional[User] = None
        self._load_existing()

    async def __aenter__(self) -> RespeecherClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            cookies=self._cookies,
            timeout=httpx.Timeout(self._timeout, connect=30.0),
            follow_redirects=True,
            transport=self._transport,
        )
        # The client copies the jar; keep a handle on the live one.
        self._cookies = self._client.cookies
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "RespeecherClient must be used as an async context manager: "
                "async with RespeecherClient() as client: ..."
            )
        return self._client

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    @property
    def is_authenticating(self) -> bool:
        return self._authenticating

    @property
    def token(self) -> str:
        return self._token

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def cookies(self) -> httpx.Cookies:
        return self._cookies

    def _set_authenticated(self, value: bool) -> None:
        changed = value != self._authenticated
        self._authenticated = value
        if changed and self._on_auth_change:
            self._on_auth_change(value)

    def _load_existing(self) -> None:
        self._token = self._store.load_token()
        cookies = self._store.load_cookies()
        for cookie in cookies:
            self._cookies.jar.set_cookie(cookie)
        if self._token and cookies:
            logger.debug("Restored saved session (%d cookies)", len(cookies))
            self._set_authenticated(True)

    def _clear_cookies(self) -> None:
        self._cookies.clear()
        self._store.clear_cookies()

    def _deauthenticate(self, status_code: int) -> None:
        if self._authenticated:
            logger.warning("Session rejected with status %s; logging out", status_code)
        self._set_authenticated(False)
        self._user = None

    def _token_headers(self) -> Dict[str, str]:
        return {CSRF_HEADER: self._token, "Accept": "application/json"}

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self, username: str, password: str) -> Tuple[bool, Optional[User]]:
        """Log in and persist the session.

        WHY: Every other endpoint needs the CSRF token and session cookies
        that the login endpoint hands out.

        HOW: Clears any stored cookies, POSTs the credentials, and on
        success stores the CSRF token plus the cookies from the response's
        Set-Cookie headers in the CredentialStore.

        RULES:
        - Never fails fast on the auth check (it is how you get authenticated)
        - Any failure (network, status >= 400, undecodable body) leaves the
          client unauthenticated with no user
        - is_authenticating is True only while the call runs, even when it
          raises
        - OSError from the CredentialStore propagates; the client is then
          left unauthenticated

        Returns:
            (success, user); user is None unless success is True.
        """
        client = self._ensure_client()
        self._authenticating = True
        try:
            self._set_authenticated(False)
            self._user = None
            self._clear_cookies()

            response, login = await self._post_login(client, username, password)
            if login is not None:
                self._token = login.csrf_token
                self._store.save_token(self._token)
                self._store.save_cookies(_response_cookies(response))
                self._user = login.user
                self._set_authenticated(True)
                logger.info("Logged in as %s", login.user.email)
        finally:
            self._authenticating = False
        return self._authenticated, self._user

    async def _post_login(
        self, client: httpx.AsyncClient, username: str, password: str
    ) -> Tuple[Optional[httpx.Response], Optional[LoginResponse]]:
        try:
            response = await client.post(
                LOGIN_PATH,
                json=LoginRequest(email=username, password=password).to_dict(),
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            logger.warning("Login request failed: %s", exc)
            return None, None

        if response.status_code >= 400:
            logger.warning("Login rejected with status %s", response.status_code)
            return response, None
        try:
            return response, LoginResponse.from_dict(response.json())
        except _DECODE_ERRORS:
            logger.warning("Login response could not be decoded")
            return response, None

    def logout(self) -> bool:
        """End the session and forget the persisted token and cookies.

        Returns False without touching any state when there is no session
        or a login is in flight.
        """
        if not self._authenticated or self._authenticating:
            return False
        self._set_authenticated(False)
        self._token = ""
        self._store.clear_token()
        self._clear_cookies()
        self._user = None
        logger.info("Logged out")
        return True

    # ------------------------------------------------------------------
    # Request pipeline
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        decode: Callable[[Any], T],
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Result[T]:
        """Run one authenticated round trip and decode or classify it.

        params are sent URL-encoded in the query string; json is sent as
        the request body.
        """
        client = self._ensure_client()
        if not self._authenticated:
            return Result.failure(ApiError.auth_failed())

        logger.debug("%s %s", method, path)
        try:
            response = await client.request(
                method, path, params=params, json=json, headers=self._token_headers()
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            return Result.failure(ApiError.request_failed(str(exc) or type(exc).__name__))
        return self._handle_response(response, decode)

    def _handle_response(self, response: httpx.Response, decode: Callable[[Any], T]) -> Result[T]:
        if response.status_code >= 400:
            return Result.failure(self._classify_failure(response))
        try:
            return Result.success(decode(response.json()))
        except _DECODE_ERRORS as exc:
            logger.warning("Undecodable %s response: %s", response.status_code, exc)
            return Result.failure(
                ApiError.request_failed("Undecodable response body", response.status_code)
            )

    def _classify_failure(self, response: httpx.Response) -> ApiError:
        """Turn a status >= 400 into an ApiError, ending the session on 401-403.

        WHY: Callers need to tell auth failures (log in again), validation
        failures (fix the input), and everything else apart.

        HOW: 422 bodies are decoded as a list of field errors; other
        bodies are searched for a {"detail": "..."} message, then the
        status picks the kind.

        RULES:
        - An undecodable 422 body is a plain request failure
        - The detail message is best effort; absent or odd bodies give None
        - Auth failures clear the authenticated flag and user as a side effect
        """
        status = response.status_code
        if status == ResponseCode.VALIDATION_ERROR:
            try:
                body = ValidationErrorResponse.from_dict(response.json())
            except _DECODE_ERRORS:
                return ApiError.request_failed(status_code=status)
            return ApiError.validation_failed(body.detail, status)

        error = classify_status(status, _error_detail(response))
        if error.matches(ErrorKind.AUTH_FAILED):
            self._deauthenticate(status)
        return error

    async def _upload(
        self,
        path: str,
        fields: Dict[str, str],
        data: bytes,
        file_name: str,
        mime_type: str,
        decode: Callable[[Any], T],
        on_progress: Optional[ProgressCallback],
    ) -> Result[T]:
        """POST a multipart body of string fields plus one file part named "data".

        The body is encoded once and streamed in UPLOAD_CHUNK_SIZE chunks so
        on_progress can follow the bytes actually handed to the transport.
        """
        client = self._ensure_client()
        if not self._authenticated:
            return Result.failure(ApiError.auth_failed())

        extension = Path(file_name).suffix.lstrip(".").lower()
        if extension not in ALLOWED_FILE_TYPES:
            return Result.failure(
                ApiError.upload_failed(
                    "Unsupported file type '{}'; expected one of: {}".format(
                        extension or file_name, ", ".join(sorted(ALLOWED_FILE_TYPES))
                    )
                )
            )

        encoded = client.build_request(
            "POST", path, data=fields, files={"data": (file_name, data, mime_type)}
        )
        body = encoded.read()
        headers = self._token_headers()
        headers["Content-Type"] = encoded.headers["Content-Type"]
        headers["Content-Length"] = str(len(body))
        request = client.build_request(
            "POST", path, content=_stream_with_progress(body, on_progress), headers=headers
        )

        logger.info("Uploading %s (%d bytes) to %s", file_name, len(body), path)
        try:
            response = await client.send(request)
        except httpx.HTTPError as exc:
            logger.warning("Upload of %s failed: %s", file_name, exc)
            return Result.failure(ApiError.upload_failed(str(exc) or type(exc).__name__))
        return self._handle_response(response, decode)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def fetch_projects(
        self, page: Optional[int] = None, limit: Optional[int] = None
    ) -> Result[Page[Project]]:
        query = ListQuery(page=page, limit=limit)
        return await self._request(
            "GET", PROJECT_PATH, _page_of(Project.from_dict), params=query.to_dict()
        )

    async def create_project(
        self, name: str, models: Optional[List[ModelSelection]] = None
    ) -> Result[Project]:
        """Create a project, optionally pre-selecting models with their params."""
        body = ProjectCreate(name=name, models=list(models or []))
        return await self._request("POST", PROJECT_PATH, Project.from_dict, json=body.to_dict())

    async def update_project(self, project_id: str, name: str) -> Result[Project]:
        return await self._request(
            "PATCH",
            _item_path(PROJECT_PATH, project_id),
            Project.from_dict,
            json=ProjectUpdate(name=name).to_dict(),
        )

    async def delete_project(self, project_id: str) -> Result[Project]:
        return await self._request("DELETE", _item_path(PROJECT_PATH, project_id), Project.from_dict)

    # ------------------------------------------------------------------
    # Phrases
    # ------------------------------------------------------------------

    async def fetch_phrases(
        self, project_id: str, page: Optional[int] = None, limit: Optional[int] = None
    ) -> Result[Page[Phrase]]:
        query = ListQuery(filters={"project_id": project_id}, page=page, limit=limit)
        return await self._request(
            "GET", PHRASE_PATH, _page_of(Phrase.from_dict), params=query.to_dict()
        )

    async def create_phrase(self, project_id: str, text: str) -> Result[Phrase]:
        body = PhraseCreate(project_id=project_id, text=text)
        return await self._request("POST", PHRASE_PATH, Phrase.from_dict, json=body.to_dict())

    async def update_phrase(self, phrase_id: str, text: str) -> Result[Phrase]:
        return await self._request(
            "PUT",
            _item_path(PHRASE_PATH, phrase_id),
            Phrase.from_dict,
            json=PhraseUpdate(text=text).to_dict(),
        )

    async def delete_phrase(self, phrase_id: str) -> Result[Phrase]:
        return await self._request("DELETE", _item_path(PHRASE_PATH, phrase_id), Phrase.from_dict)

    # ------------------------------------------------------------------
    # Recordings
    # ------------------------------------------------------------------

    async def fetch_recordings(
        self, phrase_id: str, page: Optional[int] = None, limit: Optional[int] = None
    ) -> Result[Page[Recording]]:
        query = ListQuery(filters={"phrase_id": phrase_id}, page=page, limit=limit)
        return await self._request(
            "GET", RECORDING_PATH, _page_of(Recording.from_dict), params=query.to_dict()
        )

    async def create_recording(
        self,
        phrase_id: str,
        data: bytes,
        file_name: str = "recording.wav",
        mime_type: str = "audio/wav",
        on_progress: Optional[ProgressCallback] = None,
    ) -> Result[Recording]:
        """Upload source audio as a new original take of a phrase.

        WHY: Conversions are ordered against an original recording, so
        every workflow starts by uploading one.

        HOW: Multipart POST with phrase_id and microphone (the file name)
        as string fields and the audio as the "data" part.

        RULES:
        - file_name must end in .wav, .ogg, .mp3 or .flac, otherwise the
          result is UPLOAD_FAILED without any request
        - Transport errors are UPLOAD_FAILED; HTTP statuses are classified
          like every other request

        Args:
            phrase_id: Phrase the take belongs to.
            data: Raw audio bytes.
            file_name: Name reported to the server; also the microphone field.
            mime_type: Content type of the audio part.
            on_progress: Optional upload progress callback.
        """
        fields = {"phrase_id": phrase_id, "microphone": file_name}
        return await self._upload(
            RECORDING_PATH, fields, data, file_name, mime_type, Recording.from_dict, on_progress
        )

    async def delete_recording(self, recording_id: str) -> Result[Recording]:
        return await self._request(
            "DELETE", _item_path(RECORDING_PATH, recording_id), Recording.from_dict
        )

    async def create_order(
        self, original_id: str, models: List[ModelSelection]
    ) -> Result[List[Recording]]:
        """Order conversions of an original take with one or more models.

        The server answers with one pending conversion Recording per model.
        """
        body = ConversionOrder(original_id=original_id, models=list(models))
        return await self._request(
            "POST", ORDER_PATH, _list_of(Recording.from_dict), json=body.to_dict()
        )

    async def download_recording(
        self,
        recording: Recording,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Result[Path]:
        """Download a recording's audio into the download directory.

        WHY: Converted takes are served from a URL that needs the session
        token, and apps want a local file to play or export.

        HOW: Streams GET <recording.url>?token=<csrf token> into a ".part"
        file next to the destination and renames it into place once the
        body is complete.

        RULES:
        - Not authenticated → AUTH_FAILED without a request
        - No url or a non-http(s) url → REQUEST_FAILED without a request
        - Destination already exists → REQUEST_FAILED without a request
        - Status >= 400 is classified like other requests; no file is kept
        - on_progress is called per chunk when Content-Length is known,
          and with 1.0 on completion
        - Exceptions raised by on_progress propagate; no partial file is kept

        Returns:
            Result holding the path of the downloaded file.
        """
        client = self._ensure_client()
        if not self._authenticated:
            return Result.failure(ApiError.auth_failed())

        file_name = recording.file_name
        if file_name is None:
            return Result.failure(ApiError.request_failed("Recording has no downloadable url"))

        destination = self._download_dir / file_name
        if destination.exists():
            return Result.failure(
                ApiError.request_failed("File already downloaded: {}".format(destination))
            )

        partial = destination.with_name(destination.name + ".part")
        logger.info("Downloading %s to %s", recording.url, destination)
        try:
            async with client.stream(
                "GET", recording.url, params={"token": self._token}
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    return Result.failure(self._classify_failure(response))

                total = int(response.headers.get("Content-Length") or 0)
                received = 0
                destination.parent.mkdir(parents=True, exist_ok=True)
                with open(partial, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
                        received += len(chunk)
                        if on_progress and total:
                            on_progress(min(received / total, 1.0))
            partial.replace(destination)
        except (httpx.HTTPError, OSError) as exc:
            logger.warning("Download of %s failed: %s", recording.url, exc)
            return Result.failure(ApiError.request_failed(str(exc) or type(exc).__name__))
        finally:
            # Only a completed rename consumes the partial file.
            if partial.exists():
                partial.unlink()

        if on_progress:
            on_progress(1.0)
        return Result.success(destination)

    # ------------------------------------------------------------------
    # Models and TTS
    # ------------------------------------------------------------------

    async def fetch_models(self) -> Result[List[Model]]:
        return await self._request("GET", MODEL_PATH, _list_of(Model.from_dict))

    async def fetch_tts_voices(self) -> Result[List[Voice]]:
        return await self._request(
            "GET", VOICE_PATH, lambda data: VoiceResponse.from_dict(data).voices
        )

    async def create_tts(self, phrase_id: str, voice: str, text: str) -> Result[Recording]:
        """Synthesize text with a TTS voice as a new original take of a phrase.

        voice is the Voice.api_code from fetch_tts_voices().
        """
        body = TTSCreate(phrase_id=phrase_id, text=text, voice=voice)
        return await self._request(
            "POST", VOICE_CREATE_PATH, Recording.from_dict, json=body.to_dict()
        )

    # ------------------------------------------------------------------
    # Calibrations
    # ------------------------------------------------------------------

    async def fetch_calibrations(
        self,
        model_id: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Result[Page[Calibration]]:
        query = ListQuery(filters={"model_id": model_id}, page=page, limit=limit)
        return await self._request(
            "GET", CALIBRATION_PATH, _page_of(Calibration.from_dict), params=query.to_dict()
        )

    async def create_calibration(
        self,
        model_id: str,
        data: bytes,
        file_name: str = "calibration.wav",
        mime_type: str = "audio/wav",
        name: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Result[Calibration]:
        """Upload a calibration sample for a model.

        Same upload rules as create_recording; name defaults to file_name.
        """
        fields = {"model_id": model_id, "name": name or file_name}
        return await self._upload(
            CALIBRATION_PATH, fields, data, file_name, mime_type, Calibration.from_dict, on_progress
        )

    async def delete_calibration(self, calibration_id: str) -> Result[Calibration]:
        return await self._request(
            "DELETE", _item_path(CALIBRATION_PATH, calibration_id), Calibration.from_dict
        )


# ---------------------------------------------------------------------------
# Helpers (module-private)
# ---------------------------------------------------------------------------


def _item_path(collection: str, item_id: str) -> str:
    return "{}/{}".format(collection, quote(item_id, safe=""))


def _list_of(item: Callable[[dict], T]) -> Callable[[Any], List[T]]:
    def decode(data: Any) -> List[T]:
        if not isinstance(data, list):
            raise TypeError("expected a JSON list")
        return [item(d) for d in data]

    return decode


def _page_of(item: Callable[[dict], T]) -> Callable[[Any], Page[T]]:
    return lambda data: Page.from_json(data, item)


def _error_detail(response: httpx.Response) -> Optional[str]:
    try:
        return ErrorResponse.from_dict(response.json()).detail
    except _DECODE_ERRORS:
        return None


def _response_cookies(response: httpx.Response) -> List[Cookie]:
    """Cookies set by one response's Set-Cookie headers."""
    cookies = httpx.Cookies()
    cookies.extract_cookies(response)
    return list(cookies.jar)


async def _stream_with_progress(
    body: bytes, on_progress: Optional[ProgressCallback]
) -> AsyncIterator[bytes]:
    total = len(body)
    for offset in range(0, total, UPLOAD_CHUNK_SIZE):
        chunk = body[offset:offset + UPLOAD_CHUNK_SIZE]
        yield chunk
        if on_progress:
            on_progress((offset + len(chunk)) / total)
