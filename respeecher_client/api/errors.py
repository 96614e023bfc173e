"""Error taxonomy and tagged result type for Respeecher API calls.

WHY: Every facade operation can fail in one of four ways (upload, auth,
request, validation) and callers branch on which one happened, e.g. to
re-authenticate after an auth failure or to show field errors after a
validation failure. Returning a Result keeps failures in the normal
return path so a single failed request never unwinds the caller's task.

HOW: ApiError is a frozen dataclass tagged by ErrorKind and carrying the
optional server detail, status code, and 422 field errors. Result wraps
either a value or an ApiError. classify_status maps an HTTP status to
the error kind for non-422 failures.

RULES:
- ApiError equality compares kind only; use the fields to tell two
  failures of the same kind apart
- Result.unwrap() raises RespeecherError for callers who prefer exceptions
- 401, 402 and 403 are auth failures; every other non-422 status >= 400
  is a request failure
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

from respeecher_client.api.models import ValidationErrorItem

T = TypeVar("T")


class ResponseCode(enum.IntEnum):
    """HTTP status codes the gateway is known to answer with."""

    SUCCESS = 200
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    PAYMENT_REQUIRED = 402
    FORBIDDEN = 403
    NOT_FOUND = 404
    VALIDATION_ERROR = 422
    SERVER_ERROR = 500


AUTH_FAILURE_CODES = frozenset(
    {ResponseCode.UNAUTHORIZED, ResponseCode.PAYMENT_REQUIRED, ResponseCode.FORBIDDEN}
)


class ErrorKind(str, enum.Enum):
    UPLOAD_FAILED = "upload_failed"
    AUTH_FAILED = "auth_failed"
    REQUEST_FAILED = "request_failed"
    VALIDATION_FAILED = "validation_failed"


@dataclass(frozen=True, eq=False)
class ApiError:
    """A classified API failure.

    WHY: Callers mostly care which kind of failure happened; the detail
    message and status code are for display and logging.

    HOW: Tagged by kind. __eq__ and __hash__ use kind only, so
    ``error == ApiError.request_failed()`` holds for any request failure.

    RULES:
    - detail is the server's message when the body carried one
    - status_code is None when no response was received
    - validation_errors is non-empty only for VALIDATION_FAILED
    """

    kind: ErrorKind
    detail: Optional[str] = None
    status_code: Optional[int] = None
    validation_errors: List[ValidationErrorItem] = field(default_factory=list)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ApiError):
            return NotImplemented
        return self.kind is other.kind

    def __hash__(self) -> int:
        return hash(self.kind)

    def __str__(self) -> str:
        parts = [self.kind.value]
        if self.status_code is not None:
            parts.append(str(int(self.status_code)))
        if self.detail:
            parts.append(self.detail)
        for item in self.validation_errors:
            parts.append("{}: {}".format(".".join(item.loc), item.msg))
        return ": ".join(parts)

    def matches(self, kind: ErrorKind) -> bool:
        return self.kind is kind

    @classmethod
    def upload_failed(cls, detail: Optional[str] = None, status_code: Optional[int] = None) -> ApiError:
        return cls(ErrorKind.UPLOAD_FAILED, detail, status_code)

    @classmethod
    def auth_failed(cls, detail: Optional[str] = None, status_code: Optional[int] = None) -> ApiError:
        return cls(ErrorKind.AUTH_FAILED, detail, status_code)

    @classmethod
    def request_failed(cls, detail: Optional[str] = None, status_code: Optional[int] = None) -> ApiError:
        return cls(ErrorKind.REQUEST_FAILED, detail, status_code)

    @classmethod
    def validation_failed(
        cls,
        validation_errors: List[ValidationErrorItem],
        status_code: int = ResponseCode.VALIDATION_ERROR,
    ) -> ApiError:
        return cls(
            ErrorKind.VALIDATION_FAILED,
            status_code=int(status_code),
            validation_errors=list(validation_errors),
        )


class RespeecherError(Exception):
    """Raised by Result.unwrap() when the result holds an error."""

    def __init__(self, error: ApiError) -> None:
        self.error = error
        super().__init__(str(error))


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of one API call: a value, or an ApiError."""

    value: Optional[T] = None
    error: Optional[ApiError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise RespeecherError(self.error)
        return self.value  # type: ignore[return-value]

    @classmethod
    def success(cls, value: T) -> Result[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: ApiError) -> Result[T]:
        return cls(error=error)


def classify_status(status_code: int, detail: Optional[str] = None) -> ApiError:
    """Map a non-422 failure status to an ApiError."""
    if status_code in AUTH_FAILURE_CODES:
        return ApiError.auth_failed(detail, status_code)
    return ApiError.request_failed(detail, status_code)
