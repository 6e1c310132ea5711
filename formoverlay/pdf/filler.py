"""Render operator values into field positions of a document."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Protocol

import structlog

from formoverlay.config import Settings, get_settings
from formoverlay.model.coords import flip_to_document
from formoverlay.model.field import FormField
from formoverlay.pdf.layout import EmptyInputError, FontMetrics, ReportlabMetrics, wrap_text
from formoverlay.pdf.validation import ensure_valid
from formoverlay.pdf.writer import SerializationFailedError
from formoverlay.state.session import DocumentSession

logger = structlog.get_logger(__name__)

PADDING = 2.0
FONT_SIZE_RATIO = 0.7
LINE_HEIGHT_RATIO = 1.2


class MutableDocument(Protocol):
    def page_count(self) -> int: ...

    def page_size(self, page_number: int) -> tuple[float, float]: ...

    def draw_text(self, page_index: int, text: str, x: float, y: float, font_size: float) -> None: ...

    def serialize(self) -> bytes: ...


class WarningCode(str, Enum):
    MISSING_PAGE = "missing_page"
    EMPTY_INPUT = "empty_input"
    OVERFLOW = "overflow"


@dataclass(frozen=True, slots=True)
class FillWarning:
    code: WarningCode
    field_id: str
    field_label: str
    message: str


@dataclass(slots=True)
class FillResult:
    pdf_bytes: bytes
    warnings: list[FillWarning] = field(default_factory=list)
    filled_field_ids: list[str] = field(default_factory=list)


def font_size_for(field: FormField, max_font_size: float = 12.0) -> float:
    return min(field.height * FONT_SIZE_RATIO, max_font_size)


def fill_document(
    document: MutableDocument,
    fields: Iterable[FormField],
    values: Mapping[str, str],
    metrics: FontMetrics | None = None,
    settings: Settings | None = None,
) -> FillResult:
    """Draw every non-blank value into its field and serialize the document.

    Problems with a single field (page out of range, nothing to draw, text
    running past the bottom edge) are collected as warnings and never stop the
    other fields from being drawn. Only serialization failure is fatal.
    """
    settings = settings or get_settings()
    metrics = metrics or ReportlabMetrics(settings.font_name)
    page_count = document.page_count()
    warnings: list[FillWarning] = []
    filled: list[str] = []

    for item in fields:
        value = values.get(item.id)
        if value is None or not value.strip():
            continue

        if item.page_number < 1 or item.page_number > page_count:
            warnings.append(
                FillWarning(
                    WarningCode.MISSING_PAGE,
                    item.id,
                    item.label,
                    f"Page {item.page_number} does not exist (document has {page_count})",
                )
            )
            logger.warning(
                "fill.missing_page",
                field_id=item.id,
                page_number=item.page_number,
                page_count=page_count,
            )
            continue

        _, page_height = document.page_size(item.page_number)
        try:
            overflow = _draw_field(document, item, value, page_height, metrics, settings)
        except EmptyInputError:
            warnings.append(
                FillWarning(WarningCode.EMPTY_INPUT, item.id, item.label, "Nothing to draw")
            )
            continue

        filled.append(item.id)
        if overflow:
            warnings.append(
                FillWarning(
                    WarningCode.OVERFLOW,
                    item.id,
                    item.label,
                    f"{overflow} line(s) extend below the field",
                )
            )
            logger.info("fill.overflow", field_id=item.id, lines=overflow)

    try:
        pdf_bytes = document.serialize()
    except SerializationFailedError:
        raise
    except Exception as exc:
        raise SerializationFailedError("Failed to write filled PDF") from exc

    logger.info("fill.completed", filled=len(filled), warnings=len(warnings))
    return FillResult(pdf_bytes=pdf_bytes, warnings=warnings, filled_field_ids=filled)


def _draw_field(
    document: MutableDocument,
    item: FormField,
    value: str,
    page_height: float,
    metrics: FontMetrics,
    settings: Settings,
) -> int:
    """Draw one field's value; returns how many lines fall below the box."""
    font_size = font_size_for(item, settings.max_font_size)
    write_x, write_y = flip_to_document(page_height, item.x, item.y, item.height)
    page_index = item.page_number - 1
    text_x = write_x + PADDING

    if not item.multiline:
        line = " ".join(value.split())
        if not line:
            raise EmptyInputError("Text contains nothing to lay out")
        baseline = write_y + (item.height - font_size) / 2
        document.draw_text(page_index, line, text_x, baseline, font_size)
        return 0

    lines = wrap_text(value, item.width - 2 * PADDING, font_size, metrics)
    baseline = write_y + item.height - PADDING - font_size
    overflow = 0
    for line in lines:
        document.draw_text(page_index, line, text_x, baseline, font_size)
        if baseline < write_y:
            overflow += 1
        baseline -= font_size * LINE_HEIGHT_RATIO
    return overflow


def fill_session(
    session: DocumentSession,
    document: MutableDocument,
    metrics: FontMetrics | None = None,
    settings: Settings | None = None,
) -> FillResult:
    """Validate the session's values, then fill; one fill at a time per session."""
    with session.fill_guard():
        fields = session.all_fields()
        ensure_valid(fields, session.form_values)
        return fill_document(document, fields, session.form_values, metrics, settings)
