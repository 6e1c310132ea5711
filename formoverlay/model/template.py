"""Saved field layouts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable
import uuid

from formoverlay.model.field import FormField


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    # JavaScript's toISOString() ends with "Z", which older fromisoformat rejects.
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True, slots=True)
class Template:
    id: str
    name: str
    description: str
    fields: tuple[FormField, ...]
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def snapshot(
        cls,
        name: str,
        description: str,
        fields: Iterable[FormField],
        now: datetime | None = None,
    ) -> Template:
        stamp = now or utc_now()
        return cls(
            id=f"template_{uuid.uuid4().hex}",
            name=name,
            description=description,
            fields=tuple(item.copy() for item in fields),
            created_at=stamp,
            updated_at=stamp,
        )

    def copy_fields(self) -> list[FormField]:
        return [item.copy() for item in self.fields]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "fields": [item.to_dict() for item in self.fields],
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Template:
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            description=str(data.get("description", "")),
            fields=tuple(FormField.from_dict(item) for item in data.get("fields", [])),
            created_at=_parse_timestamp(data["createdAt"]),
            updated_at=_parse_timestamp(data["updatedAt"]),
        )
