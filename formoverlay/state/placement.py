"""Pointer and keyboard gesture handling for field placement.

Input from every channel (mouse, touch, keyboard, toolbar) is posted to one
`EventQueue` and consumed in order by `PlacementStateMachine`, so at most one
gesture is ever active. All coordinates carried by events are document units,
top-left origin, local to the page the event happened on; the view converts
from screen pixels before posting.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Union

import structlog

from formoverlay.model.coords import to_document_space
from formoverlay.model.field import MIN_HEIGHT, MIN_WIDTH, FieldType, FormField
from formoverlay.state.registry import DuplicateIdError, UnknownFieldError
from formoverlay.state.session import DocumentSession

logger = structlog.get_logger(__name__)

CREATE_MIN_WIDTH = 100.0
CREATE_MIN_HEIGHT = 20.0
NUDGE_STEP = 1.0
NUDGE_STEP_LARGE = 10.0
DEFAULT_HANDLE_TOLERANCE = 6.0


class Point(NamedTuple):
    x: float
    y: float


class ResizeDirection(str, Enum):
    NE = "ne"
    NW = "nw"
    SE = "se"
    SW = "sw"

    @property
    def moves_east(self) -> bool:
        return self in (ResizeDirection.NE, ResizeDirection.SE)

    @property
    def moves_south(self) -> bool:
        return self in (ResizeDirection.SE, ResizeDirection.SW)


class Key(str, Enum):
    DELETE = "delete"
    BACKSPACE = "backspace"
    ESCAPE = "escape"
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"


_ARROWS = {
    Key.LEFT: (-1.0, 0.0),
    Key.RIGHT: (1.0, 0.0),
    Key.UP: (0.0, -1.0),
    Key.DOWN: (0.0, 1.0),
}


# States


@dataclass(frozen=True, slots=True)
class Idle:
    pass


@dataclass(frozen=True, slots=True)
class AwaitingSecondCorner:
    page_number: int
    anchor: Point


@dataclass(frozen=True, slots=True)
class DraggingField:
    field_id: str
    pointer_offset: Point


@dataclass(frozen=True, slots=True)
class ResizingField:
    field_id: str
    direction: ResizeDirection
    anchor_corner: Point


@dataclass(frozen=True, slots=True)
class EditingLabel:
    field_id: str
    draft_text: str


PlacementState = Union[Idle, AwaitingSecondCorner, DraggingField, ResizingField, EditingLabel]


# Events


@dataclass(frozen=True, slots=True)
class EnterAddMode:
    field_type: FieldType = FieldType.TEXT


@dataclass(frozen=True, slots=True)
class ExitAddMode:
    pass


@dataclass(frozen=True, slots=True)
class PointerDown:
    page_number: int
    x: float
    y: float
    # Overrides the machine default; the view passes its drawn handle size.
    handle_tolerance: float | None = None


@dataclass(frozen=True, slots=True)
class PointerMove:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class PointerUp:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class DoubleClick:
    page_number: int
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class KeyPress:
    key: Key
    modifier: bool = False
    in_text_input: bool = False


@dataclass(frozen=True, slots=True)
class UpdateDraft:
    text: str


@dataclass(frozen=True, slots=True)
class CommitLabel:
    text: str | None = None


@dataclass(frozen=True, slots=True)
class CancelLabel:
    pass


PlacementEvent = Union[
    EnterAddMode,
    ExitAddMode,
    PointerDown,
    PointerMove,
    PointerUp,
    DoubleClick,
    KeyPress,
    UpdateDraft,
    CommitLabel,
    CancelLabel,
]


class EventQueue:
    def __init__(self) -> None:
        self._events: deque[PlacementEvent] = deque()

    def __len__(self) -> int:
        return len(self._events)

    def post(self, event: PlacementEvent) -> None:
        self._events.append(event)

    def pop(self) -> PlacementEvent | None:
        return self._events.popleft() if self._events else None


def creation_rect(anchor: Point, corner: Point) -> tuple[float, float, float, float]:
    """Rectangle for a create gesture; small drags get a usable default size."""
    x = min(anchor.x, corner.x)
    y = min(anchor.y, corner.y)
    width = max(abs(corner.x - anchor.x), CREATE_MIN_WIDTH)
    height = max(abs(corner.y - anchor.y), CREATE_MIN_HEIGHT)
    return x, y, width, height


def resized_rect(
    anchor: Point, direction: ResizeDirection, pointer: Point
) -> tuple[float, float, float, float]:
    """Rectangle with `anchor` fixed and the dragged corner under `pointer`.

    When the pointer would shrink the box below the minimum size, the moving
    edge stops at the minimum distance from the anchor instead of crossing it.
    """
    if direction.moves_east:
        x = anchor.x
        width = max(pointer.x - anchor.x, MIN_WIDTH)
    else:
        x = min(pointer.x, anchor.x - MIN_WIDTH)
        width = anchor.x - x

    if direction.moves_south:
        y = anchor.y
        height = max(pointer.y - anchor.y, MIN_HEIGHT)
    else:
        y = min(pointer.y, anchor.y - MIN_HEIGHT)
        height = anchor.y - y
    return x, y, width, height


def _opposite_corner(field: FormField, direction: ResizeDirection) -> Point:
    x = field.x if direction.moves_east else field.right
    y = field.y if direction.moves_south else field.bottom
    return Point(x, y)


def _corner(field: FormField, direction: ResizeDirection) -> Point:
    x = field.right if direction.moves_east else field.x
    y = field.bottom if direction.moves_south else field.y
    return Point(x, y)


def handle_tolerance_for(handle_size_px: float, scale: float) -> float:
    """Half a drawn handle, in document units at the given zoom."""
    tolerance, _ = to_document_space(handle_size_px / 2.0, 0.0, scale)
    return tolerance


class PlacementStateMachine:
    def __init__(
        self,
        session: DocumentSession,
        handle_tolerance: float = DEFAULT_HANDLE_TOLERANCE,
    ) -> None:
        self.session = session
        self.handle_tolerance = handle_tolerance
        self.state: PlacementState = Idle()
        self.add_mode: FieldType | None = None
        self.pointer: Point | None = None

    def enter_add_mode(self, field_type: FieldType = FieldType.TEXT) -> None:
        self.handle(EnterAddMode(field_type))

    def drain(self, queue: EventQueue) -> bool:
        """Consume every queued event in order; returns True if anything changed."""
        changed = False
        while (event := queue.pop()) is not None:
            try:
                changed = self.handle(event) or changed
            except (UnknownFieldError, DuplicateIdError) as exc:
                logger.warning(
                    "placement.event_failed",
                    event=type(event).__name__,
                    error=type(exc).__name__,
                    detail=str(exc),
                )
                self.state = Idle()
        return changed

    def handle(self, event: PlacementEvent) -> bool:
        if isinstance(event, KeyPress):
            return self._on_key(event)
        if isinstance(event, EnterAddMode):
            self.add_mode = event.field_type
            return False
        if isinstance(event, ExitAddMode):
            self.add_mode = None
            if isinstance(self.state, AwaitingSecondCorner):
                self.state = Idle()
            return False

        state = self.state
        if isinstance(state, Idle):
            return self._on_idle(event)
        if isinstance(state, AwaitingSecondCorner):
            return self._on_awaiting(state, event)
        if isinstance(state, DraggingField):
            return self._on_dragging(state, event)
        if isinstance(state, ResizingField):
            return self._on_resizing(state, event)
        if isinstance(state, EditingLabel):
            return self._on_editing(state, event)
        raise TypeError(f"Unhandled placement state: {state!r}")

    def preview_rect(self) -> tuple[int, tuple[float, float, float, float]] | None:
        """Page and rectangle of the field that a pending create gesture would make."""
        if not isinstance(self.state, AwaitingSecondCorner) or self.pointer is None:
            return None
        return self.state.page_number, creation_rect(self.state.anchor, self.pointer)

    def _on_idle(self, event: PlacementEvent) -> bool:
        if isinstance(event, PointerDown):
            self.pointer = Point(event.x, event.y)
            if self.add_mode is not None:
                self.state = AwaitingSecondCorner(event.page_number, Point(event.x, event.y))
                return False
            return self._begin_pointer_gesture(event)
        if isinstance(event, DoubleClick):
            field = self.session.registry.field_at(event.page_number, event.x, event.y)
            if field is None:
                return False
            self.session.select(field.id)
            self.state = EditingLabel(field.id, field.label)
            return True
        if isinstance(event, PointerMove):
            self.pointer = Point(event.x, event.y)
        return False

    def _begin_pointer_gesture(self, event: PointerDown) -> bool:
        registry = self.session.registry
        pointer = Point(event.x, event.y)

        selected = self.session.selected_field
        if selected is not None and selected.page_number == event.page_number:
            tolerance = event.handle_tolerance
            if tolerance is None:
                tolerance = self.handle_tolerance
            direction = self._handle_at(selected, pointer, tolerance)
            if direction is not None:
                self.state = ResizingField(
                    selected.id, direction, _opposite_corner(selected, direction)
                )
                return False

        field = registry.field_at(event.page_number, event.x, event.y)
        if field is None:
            changed = self.session.selected_id is not None
            self.session.select(None)
            return changed

        self.session.select(field.id)
        self.state = DraggingField(field.id, Point(event.x - field.x, event.y - field.y))
        return True

    def _handle_at(
        self, field: FormField, pointer: Point, tolerance: float
    ) -> ResizeDirection | None:
        for direction in ResizeDirection:
            corner = _corner(field, direction)
            if abs(pointer.x - corner.x) <= tolerance and abs(pointer.y - corner.y) <= tolerance:
                return direction
        return None

    def _on_awaiting(self, state: AwaitingSecondCorner, event: PlacementEvent) -> bool:
        if isinstance(event, PointerMove):
            self.pointer = Point(event.x, event.y)
            return False
        if not isinstance(event, PointerUp):
            # Includes pointer-down: no second gesture until this one resolves.
            return False

        corner = Point(event.x, event.y)
        x, y, width, height = creation_rect(state.anchor, corner)
        field_type = self.add_mode or FieldType.TEXT
        self.state = Idle()
        self.add_mode = None
        self.pointer = corner
        field = self.session.create_field(
            page_number=state.page_number,
            x=x,
            y=y,
            width=width,
            height=height,
            field_type=field_type,
        )
        logger.info(
            "placement.field_created",
            field_id=field.id,
            page_number=field.page_number,
            x=field.x,
            y=field.y,
            width=field.width,
            height=field.height,
        )
        return True

    def _on_dragging(self, state: DraggingField, event: PlacementEvent) -> bool:
        if isinstance(event, PointerMove):
            self.pointer = Point(event.x, event.y)
            moved = self.session.registry.update(
                state.field_id,
                x=event.x - state.pointer_offset.x,
                y=event.y - state.pointer_offset.y,
            )
            if not moved:
                self.state = Idle()
            return moved
        if isinstance(event, PointerUp):
            self.state = Idle()
        return False

    def _on_resizing(self, state: ResizingField, event: PlacementEvent) -> bool:
        if isinstance(event, PointerMove):
            self.pointer = Point(event.x, event.y)
            x, y, width, height = resized_rect(
                state.anchor_corner, state.direction, self.pointer
            )
            resized = self.session.registry.update(
                state.field_id, x=x, y=y, width=width, height=height
            )
            if not resized:
                self.state = Idle()
            return resized
        if isinstance(event, PointerUp):
            self.state = Idle()
        return False

    def _on_editing(self, state: EditingLabel, event: PlacementEvent) -> bool:
        if isinstance(event, UpdateDraft):
            self.state = EditingLabel(state.field_id, event.text)
            return False
        if isinstance(event, CancelLabel):
            self.state = Idle()
            return False
        if isinstance(event, CommitLabel):
            draft = state.draft_text if event.text is None else event.text
            return self._commit_label(state.field_id, draft)
        if isinstance(event, PointerDown):
            # Clicking elsewhere finishes the edit, then acts as a normal click.
            changed = self._commit_label(state.field_id, state.draft_text)
            return self._on_idle(event) or changed
        return False

    def _commit_label(self, field_id: str, draft: str) -> bool:
        self.state = Idle()
        label = draft.strip()
        if not label:
            return False
        return self.session.registry.update(field_id, label=label)

    def _on_key(self, event: KeyPress) -> bool:
        if event.in_text_input:
            return False

        if event.key in (Key.DELETE, Key.BACKSPACE):
            field_id = self.session.selected_id
            if field_id is None:
                return False
            self.state = Idle()
            deleted = self.session.delete_field(field_id)
            logger.info("placement.field_deleted", field_id=field_id, deleted=deleted)
            return deleted

        if event.key is Key.ESCAPE:
            if isinstance(self.state, EditingLabel):
                self.state = Idle()
            elif isinstance(self.state, AwaitingSecondCorner) or self.add_mode is not None:
                self.state = Idle()
                self.add_mode = None
            return False

        if event.key in _ARROWS and isinstance(self.state, Idle):
            return self._nudge(event)
        return False

    def _nudge(self, event: KeyPress) -> bool:
        field = self.session.selected_field
        if field is None:
            return False
        step = NUDGE_STEP_LARGE if event.modifier else NUDGE_STEP
        dx, dy = _ARROWS[event.key]
        return self.session.registry.update(
            field.id,
            x=max(0.0, field.x + dx * step),
            y=max(0.0, field.y + dy * step),
        )
