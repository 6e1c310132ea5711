"""In-memory session state for placed fields, their values and saved templates."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator
import uuid

import structlog

from formoverlay.model.field import FieldType, FormField
from formoverlay.model.template import Template
from formoverlay.state.registry import FieldRegistry, UnknownFieldError
from formoverlay.state.templates import TemplateStore

logger = structlog.get_logger(__name__)

DUPLICATE_OFFSET = 12.0


class TemplateError(ValueError):
    """Raised when a template cannot be saved or found."""


class FillInProgressError(RuntimeError):
    """Raised when a fill is requested while another one is still running."""


@dataclass(frozen=True, slots=True)
class FieldStats:
    total: int
    filled: int
    empty: int
    completion_percentage: int


def new_field_id() -> str:
    return f"field_{uuid.uuid4().hex}"


class DocumentSession:
    def __init__(
        self,
        store: TemplateStore | None = None,
        id_factory: Callable[[], str] = new_field_id,
    ) -> None:
        self.registry = FieldRegistry()
        self.form_values: dict[str, str] = {}
        self.selected_id: str | None = None
        self._store = store
        self._id_factory = id_factory
        self._filling = False
        self.templates: list[Template] = store.load() if store is not None else []

    @property
    def selected_field(self) -> FormField | None:
        return self.registry.find(self.selected_id)

    @property
    def is_filling(self) -> bool:
        return self._filling

    def get_page_fields(self, page_number: int) -> list[FormField]:
        return self.registry.list_for_page(page_number)

    def all_fields(self) -> list[FormField]:
        return self.registry.all_fields()

    def select(self, field_id: str | None) -> None:
        if field_id is not None and field_id not in self.registry:
            raise UnknownFieldError(field_id)
        self.selected_id = field_id

    def create_field(
        self,
        page_number: int,
        x: float,
        y: float,
        width: float,
        height: float,
        field_type: FieldType = FieldType.TEXT,
        label: str | None = None,
        multiline: bool = False,
    ) -> FormField:
        field = FormField(
            id=self._id_factory(),
            x=x,
            y=y,
            width=width,
            height=height,
            label=label or f"Field {len(self.registry) + 1}",
            field_type=field_type,
            page_number=page_number,
            multiline=multiline,
        )
        self.registry.add(field)
        self.form_values[field.id] = ""
        self.selected_id = field.id
        logger.debug("session.field_created", field_id=field.id, page_number=page_number)
        return field

    def delete_field(self, field_id: str) -> bool:
        removed = self.registry.remove(field_id)
        self.form_values.pop(field_id, None)
        if self.selected_id == field_id:
            self.selected_id = None
        return removed is not None

    def delete_selected_field(self) -> bool:
        if self.selected_id is None:
            return False
        return self.delete_field(self.selected_id)

    def duplicate_selected_field(self) -> FormField | None:
        source = self.selected_field
        if source is None:
            return None
        return self.create_field(
            page_number=source.page_number,
            x=source.x + DUPLICATE_OFFSET,
            y=source.y + DUPLICATE_OFFSET,
            width=source.width,
            height=source.height,
            field_type=source.field_type,
            multiline=source.multiline,
        )

    def edit_field(self, field_id: str, **changes: Any) -> bool:
        if "label" in changes:
            label = str(changes["label"]).strip()
            if label:
                changes["label"] = label
            else:
                del changes["label"]
        if "field_type" in changes:
            changes["field_type"] = FieldType(changes["field_type"])
        if not changes:
            return field_id in self.registry
        return self.registry.update(field_id, **changes)

    def set_value(self, field_id: str, value: str) -> None:
        if field_id not in self.registry:
            raise UnknownFieldError(field_id)
        self.form_values[field_id] = value

    def field_stats(self) -> FieldStats:
        fields = self.registry.all_fields()
        total = len(fields)
        filled = sum(1 for item in fields if self.form_values.get(item.id, "").strip())
        percentage = round(filled / total * 100) if total else 0
        return FieldStats(
            total=total,
            filled=filled,
            empty=total - filled,
            completion_percentage=percentage,
        )

    def save_template(self, name: str, description: str = "") -> Template:
        name = name.strip()
        if not name:
            raise TemplateError("Please enter a template name")
        if len(self.registry) == 0:
            raise TemplateError("Please add at least one field to save as template")

        template = Template.snapshot(name, description.strip(), self.registry.all_fields())
        self.templates.append(template)
        self._persist_templates()
        logger.info("session.template_saved", template_id=template.id, fields=len(template.fields))
        return template

    def find_template(self, template_id: str) -> Template:
        for template in self.templates:
            if template.id == template_id:
                return template
        raise TemplateError(f"Template not found: {template_id}")

    def load_template(self, template_id: str) -> Template:
        template = self.find_template(template_id)
        fields = template.copy_fields()
        self.registry.replace_all(fields)
        self.form_values = {item.id: "" for item in fields}
        self.selected_id = None
        logger.info("session.template_loaded", template_id=template.id, fields=len(fields))
        return template

    def delete_template(self, template_id: str) -> bool:
        remaining = [item for item in self.templates if item.id != template_id]
        if len(remaining) == len(self.templates):
            return False
        self.templates = remaining
        self._persist_templates()
        return True

    @contextmanager
    def fill_guard(self) -> Iterator[None]:
        if self._filling:
            raise FillInProgressError("A fill is already running for this document")
        self._filling = True
        try:
            yield
        finally:
            self._filling = False

    def _persist_templates(self) -> None:
        if self._store is not None:
            self._store.save(self.templates)
