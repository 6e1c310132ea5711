"""Form field model definitions."""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any

MIN_WIDTH = 50.0
MIN_HEIGHT = 20.0


class FieldType(str, Enum):
    TEXT = "text"
    DATE = "date"
    NUMBER = "number"


@dataclass(slots=True)
class FormField:
    id: str
    x: float
    y: float
    width: float
    height: float
    label: str
    field_type: FieldType = FieldType.TEXT
    page_number: int = 1
    multiline: bool = False

    def __post_init__(self) -> None:
        self.field_type = FieldType(self.field_type)
        if self.page_number < 1:
            raise ValueError(f"page_number must be 1 or greater, got {self.page_number}")
        self.width = max(float(self.width), MIN_WIDTH)
        self.height = max(float(self.height), MIN_HEIGHT)

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x <= self.right and self.y <= y <= self.bottom

    def copy(self, **changes: Any) -> FormField:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        return {
            "id": data["id"],
            "x": data["x"],
            "y": data["y"],
            "width": data["width"],
            "height": data["height"],
            "label": data["label"],
            "type": self.field_type.value,
            "pageNumber": data["page_number"],
            "multiline": data["multiline"],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FormField:
        return cls(
            id=str(data["id"]),
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
            label=str(data.get("label", "")),
            field_type=FieldType(data.get("type", FieldType.TEXT.value)),
            page_number=int(data.get("pageNumber", 1)),
            multiline=bool(data.get("multiline", False)),
        )
