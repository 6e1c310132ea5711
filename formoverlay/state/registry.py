"""Ordered, id-keyed collection of placed fields."""

from __future__ import annotations

from typing import Any, Iterable, Iterator

import structlog

from formoverlay.model.field import FormField

logger = structlog.get_logger(__name__)

_EDITABLE = frozenset(
    {"x", "y", "width", "height", "label", "field_type", "page_number", "multiline"}
)


class DuplicateIdError(ValueError):
    """Raised when a field id is already registered or was used before."""


class UnknownFieldError(KeyError):
    """Raised when a field id is not in the registry."""


class FieldRegistry:
    """Fields in creation order.

    Ids are never reused: removing a field retires its id, and adding a field
    with a retired id is refused just like adding a live duplicate.
    """

    def __init__(self, fields: Iterable[FormField] = ()) -> None:
        self._fields: dict[str, FormField] = {}
        self._retired: set[str] = set()
        for item in fields:
            self.add(item)

    def __len__(self) -> int:
        return len(self._fields)

    def __iter__(self) -> Iterator[FormField]:
        return iter(list(self._fields.values()))

    def __contains__(self, field_id: object) -> bool:
        return field_id in self._fields

    def add(self, field: FormField) -> FormField:
        if field.id in self._fields or field.id in self._retired:
            raise DuplicateIdError(f"Field id already used: {field.id}")
        self._fields[field.id] = field
        return field

    def get(self, field_id: str) -> FormField:
        try:
            return self._fields[field_id]
        except KeyError:
            raise UnknownFieldError(field_id) from None

    def find(self, field_id: str | None) -> FormField | None:
        if field_id is None:
            return None
        return self._fields.get(field_id)

    def update(self, field_id: str, **changes: Any) -> bool:
        """Apply attribute changes; returns False when the id is unknown.

        An unknown id is not an error here: a gesture event can arrive after
        the field it targets was deleted through another input channel.
        """
        invalid = set(changes) - _EDITABLE
        if invalid:
            raise AttributeError(f"Not editable field attributes: {sorted(invalid)}")

        current = self._fields.get(field_id)
        if current is None:
            logger.warning("registry.unknown_field", field_id=field_id, operation="update")
            return False
        self._fields[field_id] = current.copy(**changes)
        return True

    def remove(self, field_id: str) -> FormField | None:
        removed = self._fields.pop(field_id, None)
        if removed is None:
            logger.warning("registry.unknown_field", field_id=field_id, operation="remove")
            return None
        self._retired.add(field_id)
        return removed

    def list_for_page(self, page_number: int) -> list[FormField]:
        return [item for item in self._fields.values() if item.page_number == page_number]

    def all_fields(self) -> list[FormField]:
        return list(self._fields.values())

    def snapshot(self) -> list[FormField]:
        return [item.copy() for item in self._fields.values()]

    def replace_all(self, fields: Iterable[FormField]) -> None:
        incoming: dict[str, FormField] = {}
        for item in fields:
            if item.id in incoming:
                raise DuplicateIdError(f"Field id already used: {item.id}")
            incoming[item.id] = item

        # A loaded template may bring back ids this session retired.
        self._retired.update(self._fields)
        self._retired.difference_update(incoming)
        self._fields = incoming

    def field_at(self, page_number: int, x: float, y: float) -> FormField | None:
        for item in reversed(self.list_for_page(page_number)):
            if item.contains(x, y):
                return item
        return None
