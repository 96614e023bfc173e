"""Respeecher API package: client, response records, request bodies, errors.

WHY: Callers need one import location for the client and the types its
operations return.

HOW: Re-exports the public names of client.py, models.py, requests.py,
and errors.py.

RULES:
- All HTTP calls go through RespeecherClient (no direct httpx usage elsewhere)
- Authentication is via the CSRF token header plus session cookies
"""

from respeecher_client.api.client import RespeecherClient
from respeecher_client.api.errors import (
    ApiError,
    ErrorKind,
    RespeecherError,
    ResponseCode,
    Result,
)
from respeecher_client.api.models import (
    Calibration,
    Group,
    LoginResponse,
    Model,
    ModelParam,
    Page,
    Pagination,
    Phrase,
    Project,
    Recording,
    User,
    ValidationErrorItem,
    Voice,
)
from respeecher_client.api.requests import ModelParamValue, ModelSelection

__all__ = [
    "ApiError",
    "Calibration",
    "ErrorKind",
    "Group",
    "LoginResponse",
    "Model",
    "ModelParam",
    "ModelParamValue",
    "ModelSelection",
    "Page",
    "Pagination",
    "Phrase",
    "Project",
    "Recording",
    "RespeecherClient",
    "RespeecherError",
    "ResponseCode",
    "Result",
    "User",
    "ValidationErrorItem",
    "Voice",
]
