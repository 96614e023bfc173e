"""Respeecher API response dataclasses.

WHY: The Respeecher gateway returns flat JSON objects for users, projects,
phrases, recordings, models, voices, and calibrations. Typed dataclasses
make these structures explicit, enable IDE autocompletion, and catch field
mismatches at decode time rather than deep inside caller code.

HOW: Each dataclass maps 1:1 to an API JSON object. Factory methods
(from_dict) parse raw API responses and raise KeyError/TypeError/ValueError
on malformed payloads; the client turns those into request failures.
Fields the API may send as null are typed as Optional.

RULES:
- All records are frozen; the client never mutates a decoded record
- JSON keys that differ from the Python field name are mapped in from_dict
  (csrf_token, default, take_number, ...)
- Voice.api_code is filled from the dict key of the voices mapping
- List endpoints may answer with a bare list or a {"list", "pagination"}
  envelope; Page.from_json accepts both
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterator, List, Optional, TypeVar
from urllib.parse import quote, urlparse

from respeecher_client.config import RESPEECHER_PREVIEW_URL

T = TypeVar("T")

_QUALIFIER_RE = re.compile(r"^(?P<name>.*?)\s*\((?P<qualifier>[^()]*)\)\s*$")


# ---------------------------------------------------------------------------
# Users and login
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Group:
    id: str
    name: str

    @classmethod
    def from_dict(cls, data: dict) -> Group:
        return cls(id=data["id"], name=data["name"])


@dataclass(frozen=True)
class User:
    """The authenticated account, as returned by the login endpoint."""

    id: str
    email: str
    verified: bool
    username: str
    first_name: str
    last_name: str
    roles: List[str] = field(default_factory=list)
    groups: List[Group] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> User:
        return cls(
            id=data["id"],
            email=data["email"],
            verified=bool(data["verified"]),
            username=data["username"],
            first_name=data["first_name"],
            last_name=data["last_name"],
            roles=list(data.get("roles") or []),
            groups=[Group.from_dict(g) for g in data.get("groups") or []],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "verified": self.verified,
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "roles": list(self.roles),
            "groups": [{"id": g.id, "name": g.name} for g in self.groups],
        }


@dataclass(frozen=True)
class LoginResponse:
    user: User
    csrf_token: str

    @classmethod
    def from_dict(cls, data: dict) -> LoginResponse:
        token = data["csrf_token"]
        if not isinstance(token, str):
            raise TypeError("csrf_token must be a string")
        return cls(user=User.from_dict(data["user"]), csrf_token=token)


# ---------------------------------------------------------------------------
# Projects, phrases, recordings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Project:
    id: str
    active: bool
    created_at: str
    slug: str
    owner: str
    url: str
    name: str

    @classmethod
    def from_dict(cls, data: dict) -> Project:
        return cls(
            id=data["id"],
            active=bool(data["active"]),
            created_at=data["created_at"],
            slug=data["slug"],
            owner=data["owner"],
            url=data["url"],
            name=data["name"],
        )


@dataclass(frozen=True)
class Phrase:
    id: str
    project_id: str
    text: str
    active: bool
    created_at: str

    @classmethod
    def from_dict(cls, data: dict) -> Phrase:
        return cls(
            id=data["id"],
            project_id=data["project_id"],
            text=data["text"],
            active=bool(data["active"]),
            created_at=data["created_at"],
        )


@dataclass(frozen=True)
class Recording:
    """A take of a phrase: either an original upload/TTS or a conversion.

    WHY: The same record describes both the source audio ("original") and
    every converted output, linked back through original_id. Callers list
    takes to a user, so the display helpers live on the record.

    HOW: Fields map directly to the recording JSON object. url is None
    until the server has stored audio for the take.

    RULES:
    - type == "original" marks source audio; anything else is a conversion
    - A conversion is completed once converted_at is set
    - file_name is the last path component of url, used as the download name
    """

    id: str
    phrase_id: str
    type: str
    url: Optional[str]
    name: str
    take_number: int
    state: str
    original_id: Optional[str]
    model_id: Optional[str]
    model_name: Optional[str]
    microphone: str
    size: int
    starred: bool
    error: str
    created_at: str
    converted_at: Optional[str]
    tts: bool
    tts_voice: Optional[str]
    text: Optional[str]

    @classmethod
    def from_dict(cls, data: dict) -> Recording:
        return cls(
            id=data["id"],
            phrase_id=data["phrase_id"],
            type=data["type"],
            url=data.get("url"),
            name=data["name"],
            take_number=int(data["take_number"]),
            state=data["state"],
            original_id=data.get("original_id"),
            model_id=data.get("model_id"),
            model_name=data.get("model_name"),
            microphone=data["microphone"],
            size=int(data["size"]),
            starred=bool(data["starred"]),
            error=data.get("error") or "",
            created_at=data["created_at"],
            converted_at=data.get("converted_at"),
            tts=bool(data.get("tts", False)),
            tts_voice=data.get("tts_voice"),
            text=data.get("text"),
        )

    @property
    def is_original(self) -> bool:
        return self.type == "original"

    def _original_label(self) -> str:
        label = "#Take {} (original)".format(self.take_number)
        if self.tts:
            label = "{} - (tts: '{}')".format(label, self.text or "Unknown")
        return label

    @property
    def display_name(self) -> str:
        if self.is_original:
            return self._original_label()
        status = "Completed" if self.converted_at else "In progress"
        return "#Take {}, Model: {} ({})".format(
            self.take_number, self.model_name or "Unknown", status
        )

    @property
    def export_name(self) -> str:
        if self.is_original:
            return self._original_label()
        return "#Take {}, Model: {}".format(self.take_number, self.model_name or "Unknown")

    @property
    def file_name(self) -> Optional[str]:
        """Download file name derived from url, or None without a usable url."""
        if not self.url:
            return None
        parsed = urlparse(self.url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return None
        name = parsed.path.rstrip("/").rsplit("/", 1)[-1]
        return name or None


# ---------------------------------------------------------------------------
# Models and voices
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModelParam:
    id: str
    alias: str
    locked: Optional[str]
    type: str
    default: str
    worker_id: str

    @classmethod
    def from_dict(cls, data: dict) -> ModelParam:
        return cls(
            id=data["id"],
            alias=data["alias"],
            locked=data.get("locked"),
            type=data["type"],
            default=data["default"],
            worker_id=data["worker_id"],
        )


def model_preview_slug(name: str) -> str:
    """Derive the preview file slug from a model display name.

    "Aaron" -> "aaron", "Plyukh (Dog)" -> "dog-plyukh".
    """
    name = name.strip().lower()
    match = _QUALIFIER_RE.match(name)
    if match and match.group("qualifier").strip():
        name = "{}-{}".format(match.group("qualifier").strip(), match.group("name").strip())
    return re.sub(r"\s+", "-", name)


def model_preview_url(name: str, base_url: str = RESPEECHER_PREVIEW_URL) -> str:
    return "{}{}_d.wav".format(base_url, quote(model_preview_slug(name)))


@dataclass(frozen=True)
class Model:
    """A voice model that recordings can be converted with."""

    id: str
    name: str
    owner: str
    visibility: str
    m2o: bool
    date_created: str
    params: List[ModelParam] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> Model:
        return cls(
            id=data["id"],
            name=data["name"],
            owner=data["owner"],
            visibility=data["visibility"],
            m2o=bool(data["m2o"]),
            date_created=data["date_created"],
            params=[ModelParam.from_dict(p) for p in data.get("params") or []],
        )

    @property
    def preview_url(self) -> str:
        return model_preview_url(self.name)

    def default_params(self) -> List[dict]:
        return [{"id": p.id, "name": p.alias, "value": p.default} for p in self.params]


@dataclass(frozen=True)
class Voice:
    code: str
    name: str
    gender: str
    api_code: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict, api_code: Optional[str] = None) -> Voice:
        return cls(
            code=data["code"],
            name=data["name"],
            gender=data["gender"],
            api_code=api_code,
        )

    @property
    def display_name(self) -> str:
        return "{} - {}".format(self.name, self.gender)


@dataclass(frozen=True)
class VoiceResponse:
    """TTS voices, decoded from a {"voices": {api_code: voice}} mapping.

    The mapping is flattened into a list in response order, each Voice
    carrying its dict key as api_code.
    """

    voices: List[Voice]

    @classmethod
    def from_dict(cls, data: dict) -> VoiceResponse:
        mapping = data["voices"]
        if not isinstance(mapping, dict):
            raise TypeError("voices must be an object keyed by voice code")
        return cls(voices=[Voice.from_dict(v, api_code=k) for k, v in mapping.items()])


# ---------------------------------------------------------------------------
# Calibrations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Calibration:
    id: str
    model_id: str
    name: str
    url: Optional[str]
    state: str
    created_at: str

    @classmethod
    def from_dict(cls, data: dict) -> Calibration:
        return cls(
            id=data["id"],
            model_id=data["model_id"],
            name=data.get("name") or "",
            url=data.get("url"),
            state=data["state"],
            created_at=data["created_at"],
        )


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int

    @classmethod
    def from_dict(cls, data: dict) -> Pagination:
        return cls(page=int(data["page"]), limit=int(data["limit"]), total=int(data["total"]))


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a list endpoint.

    pagination is None when the server answered with a bare list.
    """

    items: List[T]
    pagination: Optional[Pagination] = None

    @classmethod
    def from_json(cls, data: Any, item: Callable[[dict], T]) -> Page[T]:
        if isinstance(data, list):
            return cls(items=[item(d) for d in data])
        if not isinstance(data, dict):
            raise TypeError("expected a list or a paginated object")
        pagination = data.get("pagination")
        return cls(
            items=[item(d) for d in data["list"]],
            pagination=Pagination.from_dict(pagination) if pagination else None,
        )

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __getitem__(self, index: int) -> T:
        return self.items[index]


# ---------------------------------------------------------------------------
# Error bodies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ErrorResponse:
    """Plain {"detail": "..."} error body."""

    detail: str

    @classmethod
    def from_dict(cls, data: dict) -> ErrorResponse:
        detail = data["detail"]
        if not isinstance(detail, str):
            raise TypeError("detail must be a string")
        return cls(detail=detail)


@dataclass(frozen=True)
class ValidationErrorItem:
    """One field-level failure from a 422 body.

    loc is the path to the offending field; integer list indexes are
    stringified.
    """

    loc: List[str]
    msg: str
    type: str

    @classmethod
    def from_dict(cls, data: dict) -> ValidationErrorItem:
        return cls(
            loc=[str(part) for part in data["loc"]],
            msg=data["msg"],
            type=data["type"],
        )


@dataclass(frozen=True)
class ValidationErrorResponse:
    detail: List[ValidationErrorItem]

    @classmethod
    def from_dict(cls, data: dict) -> ValidationErrorResponse:
        items = data["detail"]
        if not isinstance(items, list):
            raise TypeError("detail must be a list of validation errors")
        return cls(detail=[ValidationErrorItem.from_dict(d) for d in items])
