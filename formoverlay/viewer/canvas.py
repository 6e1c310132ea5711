"""Interactive PDF page canvas for field placement and dragging.

The canvas owns no field state. It converts Qt input into placement events,
posts them to the shared queue, drains the queue through the state machine
and repaints from the session's registry.
"""

from __future__ import annotations

from PySide6.QtCore import QPointF, QRectF, Qt, Signal
from PySide6.QtGui import QColor, QPainter, QPen, QPixmap
from PySide6.QtWidgets import QInputDialog, QWidget

from formoverlay.model.coords import to_document_space, to_view_space
from formoverlay.model.field import FormField
from formoverlay.state.placement import (
    CancelLabel,
    CommitLabel,
    DoubleClick,
    EditingLabel,
    EventQueue,
    Key,
    KeyPress,
    PlacementEvent,
    PlacementStateMachine,
    PointerDown,
    PointerMove,
    PointerUp,
    ResizeDirection,
    handle_tolerance_for,
)
from formoverlay.state.session import DocumentSession

HANDLE_SIZE_PX = 8.0

_KEYS = {
    Qt.Key.Key_Delete: Key.DELETE,
    Qt.Key.Key_Backspace: Key.BACKSPACE,
    Qt.Key.Key_Escape: Key.ESCAPE,
    Qt.Key.Key_Left: Key.LEFT,
    Qt.Key.Key_Right: Key.RIGHT,
    Qt.Key.Key_Up: Key.UP,
    Qt.Key.Key_Down: Key.DOWN,
}


class PdfCanvas(QWidget):
    field_selection_changed = Signal(object)
    fields_changed = Signal()

    def __init__(
        self,
        session: DocumentSession,
        machine: PlacementStateMachine,
        queue: EventQueue,
    ) -> None:
        super().__init__()
        self._session = session
        self._machine = machine
        self._queue = queue
        self._pixmap: QPixmap | None = None
        self._page_number = 1
        self._scale = 1.0

        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMinimumSize(500, 600)

    @property
    def page_number(self) -> int:
        return self._page_number

    def bind_session(
        self,
        session: DocumentSession,
        machine: PlacementStateMachine,
        queue: EventQueue,
    ) -> None:
        self._session = session
        self._machine = machine
        self._queue = queue
        self.update()

    def set_page(self, pixmap: QPixmap, page_number: int, scale: float) -> None:
        self._pixmap = pixmap
        self._page_number = page_number
        self._scale = scale
        self.resize(pixmap.size())
        self.update()

    def clear_page(self) -> None:
        self._pixmap = None
        self.resize(500, 600)
        self.update()

    def post(self, event: PlacementEvent) -> None:
        self._queue.post(event)
        self._dispatch()

    def paintEvent(self, event) -> None:  # type: ignore[override]
        del event
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor("#e9eaee"))

        if self._pixmap is None:
            return

        painter.drawPixmap(0, 0, self._pixmap)
        selected_id = self._session.selected_id
        for field in self._session.get_page_fields(self._page_number):
            rect_px = self._field_rect_to_pixels(field)
            is_selected = field.id == selected_id
            color = QColor("#c62828") if is_selected else QColor("#1565c0")
            pen = QPen(color)
            pen.setWidth(2)
            painter.setPen(pen)
            painter.drawRect(rect_px)
            painter.drawText(rect_px.adjusted(3, 0, -3, 0), Qt.AlignmentFlag.AlignVCenter, field.label)
            if is_selected:
                for direction in ResizeDirection:
                    painter.fillRect(self._handle_rect(rect_px, direction), color)

        preview = self._machine.preview_rect()
        if preview is not None and preview[0] == self._page_number:
            x, y, width, height = preview[1]
            pen = QPen(QColor("#2e7d32"))
            pen.setStyle(Qt.PenStyle.DashLine)
            painter.setPen(pen)
            painter.drawRect(self._rect_to_pixels(x, y, width, height))

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        if self._pixmap is None or event.button() != Qt.MouseButton.LeftButton:
            return
        self.setFocus()
        x, y = self._to_document(event.position())
        tolerance = handle_tolerance_for(HANDLE_SIZE_PX, self._scale)
        self.post(PointerDown(self._page_number, x, y, handle_tolerance=tolerance))

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        if self._pixmap is None:
            return
        self.post(PointerMove(*self._to_document(event.position())))

    def mouseReleaseEvent(self, event) -> None:  # type: ignore[override]
        # Qt keeps delivering to the pressed widget after the pointer leaves
        # it, so a drag released outside the page still ends here.
        if self._pixmap is None or event.button() != Qt.MouseButton.LeftButton:
            return
        self.post(PointerUp(*self._to_document(event.position())))

    def mouseDoubleClickEvent(self, event) -> None:  # type: ignore[override]
        if self._pixmap is None or event.button() != Qt.MouseButton.LeftButton:
            return
        x, y = self._to_document(event.position())
        self.post(DoubleClick(self._page_number, x, y))

        state = self._machine.state
        if isinstance(state, EditingLabel):
            text, accepted = QInputDialog.getText(self, "Field Label", "Label:", text=state.draft_text)
            self.post(CommitLabel(text) if accepted else CancelLabel())

    def keyPressEvent(self, event) -> None:  # type: ignore[override]
        key = _KEYS.get(Qt.Key(event.key()))
        if key is None:
            super().keyPressEvent(event)
            return
        modifier = bool(event.modifiers() & Qt.KeyboardModifier.ShiftModifier)
        self.post(KeyPress(key, modifier=modifier))
        event.accept()

    def _dispatch(self) -> None:
        selected_before = self._session.selected_id
        changed = self._machine.drain(self._queue)
        if self._session.selected_id != selected_before:
            self.field_selection_changed.emit(self._session.selected_field)
        if changed:
            self.fields_changed.emit()
        self.update()

    def _to_document(self, pos: QPointF) -> tuple[float, float]:
        return to_document_space(pos.x(), pos.y(), self._scale)

    def _rect_to_pixels(self, x: float, y: float, width: float, height: float) -> QRectF:
        left, top = to_view_space(x, y, self._scale)
        w_px, h_px = to_view_space(width, height, self._scale)
        return QRectF(left, top, w_px, h_px)

    def _field_rect_to_pixels(self, field: FormField) -> QRectF:
        return self._rect_to_pixels(field.x, field.y, field.width, field.height)

    def _handle_rect(self, field_rect: QRectF, direction: ResizeDirection) -> QRectF:
        cx = field_rect.right() if direction.moves_east else field_rect.left()
        cy = field_rect.bottom() if direction.moves_south else field_rect.top()
        half = HANDLE_SIZE_PX / 2.0
        return QRectF(cx - half, cy - half, HANDLE_SIZE_PX, HANDLE_SIZE_PX)
