"""Typed request bodies for the Respeecher API.

Each dataclass serializes to the exact JSON (or query) payload of one
endpoint via to_dict(). Optional query values that are None are dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from respeecher_client.api.models import Model


@dataclass(frozen=True)
class LoginRequest:
    email: str
    password: str

    def to_dict(self) -> dict:
        return {"email": self.email, "password": self.password}


@dataclass(frozen=True)
class ModelParamValue:
    id: str
    name: str
    value: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "value": self.value}


@dataclass(frozen=True)
class ModelSelection:
    """A model plus the parameter values to convert with."""

    id: str
    name: str
    params: List[ModelParamValue] = field(default_factory=list)

    @classmethod
    def from_model(cls, model: Model, overrides: Optional[Dict[str, str]] = None) -> ModelSelection:
        """Select a model with its default params, overriding by param alias."""
        overrides = overrides or {}
        return cls(
            id=model.id,
            name=model.name,
            params=[
                ModelParamValue(id=p.id, name=p.alias, value=overrides.get(p.alias, p.default))
                for p in model.params
            ],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "params": [p.to_dict() for p in self.params],
        }


@dataclass(frozen=True)
class ProjectCreate:
    name: str
    models: List[ModelSelection] = field(default_factory=list)

    def to_dict(self) -> dict:
        body: dict = {"name": self.name}
        if self.models:
            body["models"] = [m.to_dict() for m in self.models]
        return body


@dataclass(frozen=True)
class ProjectUpdate:
    name: str

    def to_dict(self) -> dict:
        return {"name": self.name}


@dataclass(frozen=True)
class PhraseCreate:
    project_id: str
    text: str

    def to_dict(self) -> dict:
        return {"project_id": self.project_id, "text": self.text}


@dataclass(frozen=True)
class PhraseUpdate:
    text: str

    def to_dict(self) -> dict:
        return {"text": self.text}


@dataclass(frozen=True)
class ConversionOrder:
    original_id: str
    models: List[ModelSelection]

    def to_dict(self) -> dict:
        return {
            "original_id": self.original_id,
            "models": [m.to_dict() for m in self.models],
        }


@dataclass(frozen=True)
class TTSCreate:
    phrase_id: str
    text: str
    voice: str

    def to_dict(self) -> dict:
        return {"phrase_id": self.phrase_id, "text": self.text, "voice": self.voice}


@dataclass(frozen=True)
class ListQuery:
    """Query string for list endpoints: an optional parent filter plus paging."""

    filters: Dict[str, Optional[str]] = field(default_factory=dict)
    page: Optional[int] = None
    limit: Optional[int] = None

    def to_dict(self) -> dict:
        query: dict = {k: v for k, v in sorted(self.filters.items()) if v is not None}
        if self.page is not None:
            query["page"] = self.page
        if self.limit is not None:
            query["limit"] = self.limit
        return query
