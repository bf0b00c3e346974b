from __future__ import annotations

import logging
import threading
import time
from unittest.mock import patch

import pytest

from pointscope.points import Point
from pointscope.scatter_config import ExplorerConfig
from pointscope.scatter_data import AttributeColorizer, InMemoryDataset
from pointscope.scatter_render import FrameLayers
from pointscope.scatter_selection import BoxDragging, SelectionMode
from pointscope.ScatterExplorer import ScatterExplorer
from pointscope.ScatterPane import KeyInput, PointerInput

# 5 x 3 grid: screen position of (x, y) is (50 + 100 x, 50 + 200 y).
FIFTEEN = [Point(f"p{x}_{y}", x, y, {"category": "even" if x % 2 == 0 else "odd"}) for y in range(3) for x in range(5)]


class _FakeRenderer:
    def __init__(self) -> None:
        self.frames: list[FrameLayers] = []

    def draw_frame(self, layers: FrameLayers) -> None:
        self.frames.append(layers)


class _FakeLoopHandle:
    def __init__(self, callback):
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class _FakeAsyncLoop:
    def __init__(self) -> None:
        self.handles: list[_FakeLoopHandle] = []

    def call_later(self, _delay: float, callback):
        handle = _FakeLoopHandle(callback)
        self.handles.append(handle)
        return handle


def _explorer(points=FIFTEEN, **kwargs) -> tuple[ScatterExplorer, InMemoryDataset, _FakeRenderer]:
    dataset = InMemoryDataset(points)
    renderer = _FakeRenderer()
    return ScatterExplorer(dataset, renderer=renderer, **kwargs), dataset, renderer


def _pointer(kind: str, x: float, y: float) -> PointerInput:
    return PointerInput(kind=kind, x=x, y=y)


def test_construction_draws_one_initial_frame_with_status() -> None:
    explorer, _, renderer = _explorer()
    assert len(renderer.frames) == 1
    assert renderer.frames[0].chrome is not None
    assert explorer.layout.status_html.value == "<b>15</b> points • <b>0</b> selected"


def test_box_drag_through_driver_input_selects_quadrant() -> None:
    explorer, _, renderer = _explorer()
    explorer.set_mode("box")
    events = []
    explorer.add_selection_hook(events.append)

    explorer.handle_input(_pointer("down", 0, 0))
    explorer.handle_input(_pointer("move", 200, 200))
    assert isinstance(explorer.selection.state, BoxDragging)
    assert renderer.frames[-1].overlay is not None
    explorer.handle_input(_pointer("up", 250, 250))

    expected = {f"p{x}_{y}" for x in (0, 1, 2) for y in (0, 1)}
    assert explorer.selected_ids == expected
    assert events[-1].selected == expected
    assert renderer.frames[-1].overlay is None
    assert "<b>6</b> selected" in explorer.layout.status_html.value


def test_click_toggle_and_selected_records() -> None:
    explorer, _, _ = _explorer()
    explorer.handle_input(_pointer("click", 151, 249))
    assert [p.id for p in explorer.selected_points()] == ["p1_1"]
    assert explorer.selected_records() == [{"id": "p1_1", "x": 1.0, "y": 1.0, "category": "odd"}]
    assert explorer.selected_records(fields=["id", "category", "missing"]) == [
        {"id": "p1_1", "category": "odd", "missing": None}
    ]
    explorer.handle_input(_pointer("click", 151, 249))
    assert explorer.selected_points() == []


def test_polygon_via_clicks_and_enter_key() -> None:
    explorer, _, _ = _explorer()
    explorer.handle_input(KeyInput("L", shift=True))
    assert explorer.selection.mode is SelectionMode.POLYGON
    for v in [(0, 0), (260, 0), (260, 260), (0, 260)]:
        explorer.handle_input(_pointer("click", *v))
    explorer.handle_input(KeyInput("Enter"))
    assert explorer.selected_ids == {f"p{x}_{y}" for x in (0, 1, 2) for y in (0, 1)}


def test_keyboard_shortcuts_drive_viewport_and_selection() -> None:
    explorer, _, _ = _explorer()
    explorer.handle_input(KeyInput("+"))
    assert explorer.viewport.zoom == pytest.approx(1.2)
    explorer.handle_input(KeyInput("-"))
    explorer.handle_input(KeyInput("-"))
    assert explorer.viewport.zoom == pytest.approx(1 / 1.2)
    explorer.handle_input(KeyInput("Home"))
    assert explorer.viewport.zoom == 1.0

    explorer.handle_input(KeyInput("B", shift=True))
    assert explorer.selection.mode is SelectionMode.BOX
    explorer.select(["p0_0"])
    explorer.handle_input(KeyInput("C", shift=True))
    assert explorer.selected_ids == frozenset()


def test_escape_cancels_box_drag_and_keeps_selection() -> None:
    explorer, _, _ = _explorer(config=ExplorerConfig(default_mode="box"))
    explorer.select(["p4_2"])
    explorer.handle_input(_pointer("down", 0, 0))
    explorer.handle_input(KeyInput("Escape"))
    explorer.handle_input(_pointer("up", 500, 500))
    assert explorer.selected_ids == {"p4_2"}


def test_pointer_leaving_mid_drag_cancels_the_box() -> None:
    explorer, _, renderer = _explorer(config=ExplorerConfig(default_mode="box"))
    explorer.select(["p4_2"])
    explorer.handle_input(_pointer("down", 0, 0))
    explorer.handle_input(_pointer("move", 200, 200))
    explorer.handle_input(_pointer("leave", 200, 200))

    assert explorer.selection.state.__class__.__name__ == "Idle"
    assert renderer.frames[-1].overlay is None
    explorer.handle_input(_pointer("up", 250, 250))
    assert explorer.selected_ids == {"p4_2"}


def test_pan_mode_drags_the_view_instead_of_selecting() -> None:
    explorer, _, _ = _explorer(config=ExplorerConfig(default_mode="box"))
    explorer.set_pan_mode(True)
    assert explorer.layout.pan_toggle.value is True

    explorer.handle_input(_pointer("down", 100, 100))
    explorer.handle_input(_pointer("move", 130, 90))
    explorer.handle_input(_pointer("up", 130, 90))

    assert explorer.viewport.pan == (30.0, -10.0)
    assert explorer.selected_ids == frozenset()


def test_mode_switch_with_pending_polygon_leaves_selection_unchanged() -> None:
    explorer, _, _ = _explorer()
    explorer.select(["p2_2"])
    explorer.set_mode("polygon")
    explorer.handle_input(_pointer("click", 0, 0))
    explorer.handle_input(_pointer("click", 100, 100))
    explorer.set_mode("click")
    assert explorer.selected_ids == {"p2_2"}
    assert explorer.layout.mode_buttons.value == "click"


def test_toolbar_buttons_and_toggles_issue_commands() -> None:
    explorer, _, _ = _explorer()
    explorer.layout.mode_buttons.value = "polygon"
    assert explorer.selection.mode is SelectionMode.POLYGON
    explorer.layout.zoom_in_button.click()
    assert explorer.viewport.zoom == pytest.approx(1.2)
    explorer.layout.reset_button.click()
    assert explorer.viewport.zoom == 1.0
    explorer.select(["p0_0"])
    explorer.layout.clear_button.click()
    assert explorer.selected_ids == frozenset()


def test_reload_prunes_ids_missing_from_the_new_dataset() -> None:
    explorer, dataset, renderer = _explorer()
    explorer.select(["p0_0", "p1_0", "p2_0"])
    events = []
    explorer.add_selection_hook(events.append)
    frames_before = len(renderer.frames)

    dataset.replace([p for p in FIFTEEN if p.id != "p1_0"])

    assert explorer.selected_ids == {"p0_0", "p2_0"}
    assert events[-1].reason == "prune"
    assert len(renderer.frames) == frames_before + 1
    assert renderer.frames[-1].point_count == 14


def test_reload_cancels_in_progress_gesture() -> None:
    explorer, dataset, _ = _explorer()
    explorer.set_mode("polygon")
    explorer.handle_input(_pointer("click", 0, 0))
    dataset.replace(FIFTEEN)
    assert explorer.selection.state.__class__.__name__ == "Idle"


def test_filter_change_prunes_hidden_selection() -> None:
    style = AttributeColorizer("category")
    explorer, _, renderer = _explorer(style=style)
    explorer.select(["p0_0", "p1_0"])

    style.set_category_visible("odd", False)

    assert explorer.selected_ids == {"p0_0"}
    assert renderer.frames[-1].point_count == 9
    assert "<b>9</b> points" in explorer.layout.status_html.value


def test_hover_publishes_events_with_anchor_above_pointer() -> None:
    explorer, _, renderer = _explorer()
    seen = []
    explorer.add_hover_hook(seen.append)

    explorer.update_hover(150, 250)
    explorer.update_hover(151, 250)  # same entity, no new event
    explorer.update_hover(100, 150)

    assert [e.entity_id for e in seen] == ["p1_1", None]
    assert seen[0].anchor == (150.0, 240.0)
    assert seen[0].point_ids == ("p1_1",)
    assert renderer.frames[-1].hovered is None


def test_failing_hover_hook_is_logged(caplog) -> None:
    explorer, _, _ = _explorer()

    def broken(_event):
        raise RuntimeError("boom")

    explorer.add_hover_hook(broken)
    with caplog.at_level(logging.ERROR, logger="pointscope.ScatterExplorer"):
        explorer.update_hover(150, 250)
    assert "Hover hook" in caplog.text


def test_resize_updates_canvas_and_redraws_chrome() -> None:
    explorer, _, renderer = _explorer()
    explorer.resize(800, 600)
    assert explorer.viewport.canvas_size == (800.0, 600.0)
    assert renderer.frames[-1].chrome is not None
    assert renderer.frames[-1].canvas_size == (800.0, 600.0)
    n = len(renderer.frames)
    explorer.resize(800, 600)
    assert len(renderer.frames) == n


def test_unknown_mode_is_rejected() -> None:
    explorer, _, _ = _explorer()
    assert explorer.set_mode("spray") is False
    assert explorer.selection.mode is SelectionMode.CLICK


def test_create_starts_schedule_and_teardown_releases_everything() -> None:
    fake_loop = _FakeAsyncLoop()
    dataset = InMemoryDataset(FIFTEEN)
    with patch("pointscope.scheduling.asyncio.get_running_loop", return_value=fake_loop):
        explorer = ScatterExplorer.create(dataset, renderer=_FakeRenderer())
        assert explorer.render_loop.running
        handle = fake_loop.handles[-1]

        explorer.teardown()
        explorer.teardown()  # idempotent

    assert handle.cancelled
    assert explorer.is_torn_down
    assert not explorer.render_loop.running
    with pytest.raises(RuntimeError):
        explorer.zoom_in()

    # the dataset no longer notifies the torn-down surface
    dataset.replace(FIFTEEN[:2])
    assert explorer.selected_ids == frozenset()


def test_scheduled_tick_draws_on_the_loop_callback() -> None:
    fake_loop = _FakeAsyncLoop()
    renderer = _FakeRenderer()
    with patch("pointscope.scheduling.asyncio.get_running_loop", return_value=fake_loop):
        explorer = ScatterExplorer.create(InMemoryDataset(FIFTEEN), renderer=renderer)
        n = len(renderer.frames)
        explorer.render_loop.set_hover("p0_0")
        fake_loop.handles[-1].callback()
        explorer.teardown()
    assert len(renderer.frames) == n + 1
    assert renderer.frames[-1].frame_index == n + 1


class _ThreadRecordingRenderer:
    def __init__(self) -> None:
        self.threads: list[str] = []

    def draw_frame(self, layers: FrameLayers) -> None:
        self.threads.append(threading.current_thread().name)


def test_frames_are_drawn_only_on_the_calling_thread_without_event_loop() -> None:
    renderer = _ThreadRecordingRenderer()
    explorer = ScatterExplorer.create(
        InMemoryDataset(FIFTEEN), ExplorerConfig(frame_interval_ms=5), renderer=renderer
    )
    try:
        assert not explorer.render_loop.running
        explorer.viewport.set_zoom(2.0)
        time.sleep(0.1)
        explorer.zoom_in()
    finally:
        explorer.teardown()
    caller = threading.current_thread().name
    assert renderer.threads
    assert [name for name in renderer.threads if name != caller] == []


def test_default_renderer_builds_plotly_pane() -> None:
    explorer = ScatterExplorer(InMemoryDataset(FIFTEEN))
    try:
        assert explorer.layout.plot_container.children
        assert len(explorer.render_loop.visible_points()) == 15
    finally:
        explorer.teardown()
