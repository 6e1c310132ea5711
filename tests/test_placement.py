"""Unit tests for the placement state machine."""

import pytest

from formoverlay.model.field import FieldType
from formoverlay.state.placement import (
    AwaitingSecondCorner,
    CancelLabel,
    CommitLabel,
    DoubleClick,
    DraggingField,
    EditingLabel,
    EnterAddMode,
    EventQueue,
    ExitAddMode,
    Idle,
    Key,
    KeyPress,
    PlacementStateMachine,
    Point,
    PointerDown,
    PointerMove,
    PointerUp,
    ResizeDirection,
    ResizingField,
    UpdateDraft,
    creation_rect,
    handle_tolerance_for,
    resized_rect,
)
from formoverlay.state.session import DocumentSession


@pytest.fixture
def machine(session) -> PlacementStateMachine:
    return PlacementStateMachine(session, handle_tolerance=5.0)


def _create(machine, start, end, page_number=1):
    machine.handle(EnterAddMode())
    machine.handle(PointerDown(page_number, *start))
    machine.handle(PointerUp(*end))
    return machine.session.selected_field


class TestCreateGesture:
    """Test the add-mode create gesture."""

    def test_small_drag_gets_default_size(self, machine):
        field = _create(machine, (50, 50), (60, 55))
        assert (field.x, field.y, field.width, field.height) == (50, 50, 100, 20)
        assert field.page_number == 1

    def test_reverse_drag_uses_component_minimum(self, machine):
        field = _create(machine, (300, 400), (100, 250), page_number=2)
        assert (field.x, field.y) == (100, 250)
        assert (field.width, field.height) == (200, 150)
        assert field.page_number == 2

    @pytest.mark.parametrize(
        "start,end",
        [((0, 0), (0, 0)), ((10, 10), (500, 12)), ((90, 5), (10, 300)), ((5, 5), (5.5, 5.5))],
    )
    def test_creation_rect_floors(self, start, end):
        x, y, width, height = creation_rect(Point(*start), Point(*end))
        assert width >= 100
        assert height >= 20
        assert (x, y) == (min(start[0], end[0]), min(start[1], end[1]))

    def test_created_field_defaults(self, machine):
        field = _create(machine, (0, 0), (200, 40))
        assert field.label == "Field 1"
        assert field.field_type is FieldType.TEXT
        assert machine.session.form_values[field.id] == ""
        assert machine.session.selected_id == field.id

    def test_labels_follow_field_count(self, machine):
        _create(machine, (0, 0), (10, 10))
        second = _create(machine, (0, 100), (10, 110))
        assert second.label == "Field 2"

    def test_add_mode_ends_after_creation(self, machine):
        _create(machine, (0, 0), (10, 10))
        assert machine.add_mode is None
        assert isinstance(machine.state, Idle)

    def test_add_mode_field_type(self, machine):
        machine.handle(EnterAddMode(FieldType.DATE))
        machine.handle(PointerDown(1, 0, 0))
        machine.handle(PointerUp(0, 0))
        assert machine.session.selected_field.field_type is FieldType.DATE

    def test_pointer_down_while_awaiting_is_ignored(self, machine):
        existing = _create(machine, (0, 0), (200, 40))
        machine.handle(EnterAddMode())
        machine.handle(PointerDown(1, 300, 300))
        machine.handle(PointerDown(1, 10, 10))
        assert isinstance(machine.state, AwaitingSecondCorner)
        assert machine.state.anchor == Point(300, 300)
        assert machine.session.registry.get(existing.id).x == 0

    def test_exit_add_mode_cancels_pending_creation(self, machine):
        machine.handle(EnterAddMode())
        machine.handle(PointerDown(1, 0, 0))
        machine.handle(ExitAddMode())
        machine.handle(PointerUp(50, 50))
        assert len(machine.session.registry) == 0
        assert isinstance(machine.state, Idle)

    def test_escape_cancels_pending_creation(self, machine):
        machine.handle(EnterAddMode())
        machine.handle(PointerDown(1, 0, 0))
        machine.handle(KeyPress(Key.ESCAPE))
        assert isinstance(machine.state, Idle)
        assert machine.add_mode is None

    def test_preview_rect_follows_pointer(self, machine):
        machine.handle(EnterAddMode())
        machine.handle(PointerDown(2, 10, 10))
        machine.handle(PointerMove(300, 100))
        assert machine.preview_rect() == (2, (10, 10, 290, 90))


class TestDragGesture:
    """Test moving fields with the pointer."""

    def test_drag_preserves_grab_offset(self, machine):
        field = _create(machine, (100, 100), (300, 140))
        machine.handle(PointerDown(1, 110, 105))
        assert machine.state == DraggingField(field.id, Point(10, 5))

        machine.handle(PointerMove(210, 305))
        moved = machine.session.registry.get(field.id)
        assert (moved.x, moved.y) == (200, 300)

        machine.handle(PointerUp(210, 305))
        assert isinstance(machine.state, Idle)

    def test_pointer_up_outside_surface_ends_drag(self, machine):
        field = _create(machine, (100, 100), (300, 140))
        machine.handle(PointerDown(1, 150, 120))
        machine.handle(PointerUp(-500, 5000))
        assert isinstance(machine.state, Idle)
        machine.handle(PointerMove(0, 0))
        assert machine.session.registry.get(field.id).x == 100

    def test_click_empty_space_clears_selection(self, machine):
        _create(machine, (100, 100), (300, 140))
        assert machine.handle(PointerDown(1, 5, 5)) is True
        assert machine.session.selected_id is None
        assert isinstance(machine.state, Idle)

    def test_click_on_other_page_misses(self, machine):
        _create(machine, (100, 100), (300, 140), page_number=2)
        machine.handle(PointerDown(1, 150, 120))
        assert isinstance(machine.state, Idle)

    def test_delete_key_mid_drag_then_move_is_noop(self, machine):
        field = _create(machine, (100, 100), (300, 140))
        queue = EventQueue()
        queue.post(PointerDown(1, 150, 120))
        queue.post(PointerMove(160, 130))
        queue.post(KeyPress(Key.DELETE))
        queue.post(PointerMove(400, 400))
        queue.post(PointerUp(400, 400))

        machine.drain(queue)

        assert field.id not in machine.session.registry
        assert field.id not in machine.session.form_values
        assert isinstance(machine.state, Idle)
        assert len(queue) == 0

    def test_external_delete_mid_drag_then_move_is_noop(self, machine):
        field = _create(machine, (100, 100), (300, 140))
        machine.handle(PointerDown(1, 150, 120))
        machine.session.delete_field(field.id)

        assert machine.handle(PointerMove(400, 400)) is False
        assert isinstance(machine.state, Idle)
        assert len(machine.session.registry) == 0


class TestResizeGesture:
    """Test corner handles."""

    def test_pointer_down_on_handle_starts_resize(self, machine):
        field = _create(machine, (100, 100), (300, 200))
        machine.handle(PointerDown(1, 302, 198))
        assert machine.state == ResizingField(field.id, ResizeDirection.SE, Point(100, 100))

    def test_handles_only_on_selected_field(self, machine):
        _create(machine, (100, 100), (300, 200))
        machine.session.select(None)
        machine.handle(PointerDown(1, 299, 199))
        assert isinstance(machine.state, DraggingField)

    def test_se_resize_follows_pointer(self, machine):
        field = _create(machine, (100, 100), (300, 200))
        machine.handle(PointerDown(1, 300, 200))
        machine.handle(PointerMove(400, 260))
        machine.handle(PointerUp(400, 260))
        resized = machine.session.registry.get(field.id)
        assert (resized.x, resized.y, resized.width, resized.height) == (100, 100, 300, 160)
        assert isinstance(machine.state, Idle)

    def test_nw_resize_keeps_opposite_corner(self, machine):
        field = _create(machine, (100, 100), (300, 200))
        machine.handle(PointerDown(1, 100, 100))
        machine.handle(PointerMove(50, 80))
        resized = machine.session.registry.get(field.id)
        assert (resized.x, resized.y) == (50, 80)
        assert (resized.right, resized.bottom) == (300, 200)

    def test_resize_never_crosses_anchor(self, machine):
        field = _create(machine, (100, 100), (300, 200))
        machine.handle(PointerDown(1, 100, 200))
        machine.handle(PointerMove(900, 10))
        resized = machine.session.registry.get(field.id)
        assert resized.right == 300
        assert resized.y == 100
        assert resized.width == 50
        assert resized.height == 20
        assert resized.x == 250

    @pytest.mark.parametrize("direction", list(ResizeDirection))
    def test_resized_rect_respects_minimums(self, direction):
        anchor = Point(200, 200)
        x, y, width, height = resized_rect(anchor, direction, Point(201, 199))
        assert width >= 50
        assert height >= 20
        assert anchor.x in (x, x + width)
        assert anchor.y in (y, y + height)

    def test_tolerance_tracks_zoom(self):
        assert handle_tolerance_for(8.0, 1.0) == pytest.approx(4.0)
        assert handle_tolerance_for(8.0, 0.3) == pytest.approx(13.333, abs=1e-3)
        assert handle_tolerance_for(8.0, 2.0) == pytest.approx(2.0)

    def test_edge_of_drawn_handle_when_zoomed_out(self, machine):
        field = _create(machine, (100, 100), (300, 140))
        tolerance = handle_tolerance_for(8.0, 0.3)
        # 3 px off the SE corner at zoom 0.3 is 10 document units.
        machine.handle(PointerDown(1, 310, 150, handle_tolerance=tolerance))
        assert machine.state == ResizingField(field.id, ResizeDirection.SE, Point(100, 100))

    def test_outside_drawn_handle_when_zoomed_in(self, machine):
        _create(machine, (100, 100), (300, 140))
        tolerance = handle_tolerance_for(8.0, 2.0)
        # 10 px inside the SE corner at zoom 2.0 is 5 document units.
        machine.handle(PointerDown(1, 295, 135, handle_tolerance=tolerance))
        assert isinstance(machine.state, DraggingField)


class TestLabelEditing:
    """Test double-click label editing."""

    def test_double_click_starts_edit_with_current_label(self, machine):
        field = _create(machine, (0, 0), (200, 40))
        machine.handle(DoubleClick(1, 10, 10))
        assert machine.state == EditingLabel(field.id, "Field 1")

    def test_commit_trims_label(self, machine):
        field = _create(machine, (0, 0), (200, 40))
        machine.handle(DoubleClick(1, 10, 10))
        machine.handle(CommitLabel("  Surname "))
        assert machine.session.registry.get(field.id).label == "Surname"
        assert isinstance(machine.state, Idle)

    def test_commit_uses_draft(self, machine):
        field = _create(machine, (0, 0), (200, 40))
        machine.handle(DoubleClick(1, 10, 10))
        machine.handle(UpdateDraft("Draft name"))
        machine.handle(CommitLabel())
        assert machine.session.registry.get(field.id).label == "Draft name"

    def test_empty_commit_discards(self, machine):
        field = _create(machine, (0, 0), (200, 40))
        machine.handle(DoubleClick(1, 10, 10))
        machine.handle(CommitLabel("   "))
        assert machine.session.registry.get(field.id).label == "Field 1"
        assert isinstance(machine.state, Idle)

    def test_cancel_discards(self, machine):
        field = _create(machine, (0, 0), (200, 40))
        machine.handle(DoubleClick(1, 10, 10))
        machine.handle(UpdateDraft("Never saved"))
        machine.handle(CancelLabel())
        assert machine.session.registry.get(field.id).label == "Field 1"

    def test_double_click_on_empty_space(self, machine):
        machine.handle(DoubleClick(1, 10, 10))
        assert isinstance(machine.state, Idle)

    def test_click_elsewhere_commits_draft(self, machine):
        field = _create(machine, (0, 0), (200, 40))
        machine.handle(DoubleClick(1, 10, 10))
        machine.handle(UpdateDraft("Clicked away"))
        machine.handle(PointerDown(1, 500, 500))
        assert machine.session.registry.get(field.id).label == "Clicked away"
        assert isinstance(machine.state, Idle)


class TestKeyboard:
    """Test delete and arrow-key nudging."""

    def test_delete_selected_field(self, machine):
        field = _create(machine, (0, 0), (200, 40))
        assert machine.handle(KeyPress(Key.DELETE)) is True
        assert field.id not in machine.session.registry

    def test_delete_ignored_inside_text_input(self, machine):
        field = _create(machine, (0, 0), (200, 40))
        assert machine.handle(KeyPress(Key.BACKSPACE, in_text_input=True)) is False
        assert field.id in machine.session.registry

    def test_delete_without_selection(self, machine):
        assert machine.handle(KeyPress(Key.DELETE)) is False

    def test_nudge_by_one(self, machine):
        field = _create(machine, (20, 20), (200, 60))
        machine.handle(KeyPress(Key.RIGHT))
        machine.handle(KeyPress(Key.DOWN))
        nudged = machine.session.registry.get(field.id)
        assert (nudged.x, nudged.y) == (21, 21)

    def test_nudge_by_ten_with_modifier(self, machine):
        field = _create(machine, (20, 20), (200, 60))
        machine.handle(KeyPress(Key.LEFT, modifier=True))
        machine.handle(KeyPress(Key.UP, modifier=True))
        nudged = machine.session.registry.get(field.id)
        assert (nudged.x, nudged.y) == (10, 10)

    def test_nudge_clamps_at_zero(self, machine):
        field = _create(machine, (5, 3), (200, 60))
        machine.handle(KeyPress(Key.LEFT, modifier=True))
        machine.handle(KeyPress(Key.UP, modifier=True))
        nudged = machine.session.registry.get(field.id)
        assert (nudged.x, nudged.y) == (0, 0)

    def test_nudge_ignored_inside_text_input(self, machine):
        field = _create(machine, (20, 20), (200, 60))
        machine.handle(KeyPress(Key.RIGHT, in_text_input=True))
        assert machine.session.registry.get(field.id).x == 20


class TestEventQueue:
    """Test serialized event consumption."""

    def test_events_consumed_in_order(self, machine):
        queue = EventQueue()
        queue.post(EnterAddMode())
        queue.post(PointerDown(1, 0, 0))
        queue.post(PointerUp(150, 30))
        queue.post(KeyPress(Key.RIGHT))

        assert machine.drain(queue) is True

        field = machine.session.selected_field
        assert (field.x, field.width) == (1, 150)

    def test_drain_survives_state_machine_errors(self):
        ids = iter(["dup", "dup"])
        session = DocumentSession(id_factory=lambda: next(ids))
        machine = PlacementStateMachine(session)
        queue = EventQueue()
        for start in ((0, 0), (0, 100)):
            queue.post(EnterAddMode())
            queue.post(PointerDown(1, *start))
            queue.post(PointerUp(*start))
        queue.post(KeyPress(Key.DOWN))

        machine.drain(queue)

        assert len(session.registry) == 1
        assert session.registry.get("dup").y == 1
        assert isinstance(machine.state, Idle)
