"""Type checks for operator-entered values before a fill is attempted."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
import math
from typing import Iterable, Mapping

from formoverlay.model.field import FieldType, FormField

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d.%m.%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
)


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    field_id: str
    field_label: str
    reason: str

    def __str__(self) -> str:
        return f'Field "{self.field_label}" {self.reason}'


class ValidationFailedError(ValueError):
    """Raised when one or more values are missing or have the wrong type."""

    def __init__(self, issues: list[ValidationIssue]) -> None:
        self.issues = issues
        super().__init__("Validation failed: " + ", ".join(str(issue) for issue in issues))


def is_number(value: str) -> bool:
    # float() accepts digit separators like "1_000"; operators never mean that.
    if "_" in value:
        return False
    try:
        number = float(value.strip())
    except ValueError:
        return False
    return math.isfinite(number)


def parse_date(value: str) -> date | None:
    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for pattern in _DATE_FORMATS:
        try:
            return datetime.strptime(text, pattern).date()
        except ValueError:
            continue
    return None


def validate_form_values(
    fields: Iterable[FormField],
    values: Mapping[str, str],
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for field in fields:
        value = values.get(field.id, "")
        if not value.strip():
            issues.append(ValidationIssue(field.id, field.label, "is required"))
            continue
        if field.field_type is FieldType.NUMBER and not is_number(value):
            issues.append(ValidationIssue(field.id, field.label, "must be a valid number"))
        elif field.field_type is FieldType.DATE and parse_date(value) is None:
            issues.append(ValidationIssue(field.id, field.label, "must be a valid date"))
    return issues


def ensure_valid(fields: Iterable[FormField], values: Mapping[str, str]) -> None:
    issues = validate_form_values(fields, values)
    if issues:
        raise ValidationFailedError(issues)
