"""ScatterExplorer: an owned, explicitly constructed scatter surface.

Purpose
-------
Wire the visualization core (viewport, clustering, hit-testing, selection,
render loop) to a notebook UI: a Plotly figure hosted in a
:class:`~pointscope.ScatterPane.ScatterPane`, an ipywidgets toolbar and a
status line. One explorer owns exactly one surface; there is no global
current-explorer state.

Lifecycle
---------
``ScatterExplorer.create(dataset, config)`` builds every component,
subscribes to the data and style providers and starts the recurring frame
schedule. ``teardown()`` reverses all of that and is idempotent. Commands
issued after teardown raise ``RuntimeError``.

Event flow
----------
- Driver pointer/key messages -> :meth:`ScatterExplorer.handle_input`.
- Hover is throttled through a :class:`~pointscope.scheduling.QueuedDebouncer`
  and resolved with the same hit-tester as clicks.
- Selection and viewport mutations request an immediate frame; reloads and
  filter changes prune the selection before the next frame.

Examples
--------
>>> from pointscope import InMemoryDataset, ScatterExplorer  # doctest: +SKIP
>>> ds = InMemoryDataset.from_records([{"id": "a", "x": 0, "y": 0}, {"id": "b", "x": 1, "y": 1}])  # doctest: +SKIP
>>> ex = ScatterExplorer.create(ds)  # doctest: +SKIP
>>> ex  # doctest: +SKIP
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Hashable, Iterator, List, Optional, Sequence

from IPython.display import display

from .ScatterEvent import HoverEvent, SelectionChangedEvent
from .ScatterPane import DriverInput, KeyInput, PointerInput, ScatterPane, ScatterPaneStyle
from .plotly_renderer import PlotlyRenderer
from .points import DataBounds, Point
from .scatter_clustering import ClusteringEngine
from .scatter_config import ExplorerConfig
from .scatter_data import AttributeColorizer, AttributeStyleProvider, DatasetProvider
from .scatter_hit_test import HitTester
from .scatter_layout import ScatterLayout
from .scatter_render import Renderer, RenderLoop
from .scatter_selection import BoxDragging, SelectionController, SelectionMode
from .scatter_viewport import ViewportController
from .scheduling import QueuedDebouncer

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

HOVER_THROTTLE_MS = 30
TOOLTIP_OFFSET_PX = 10.0


class ScatterExplorer:
    """Interactive 2-D scatter with click, box and polygon selection.

    Prefer :meth:`create`; the constructor builds components but does not
    start the frame schedule.

    Parameters
    ----------
    dataset : DatasetProvider
        Source of points; reloads are picked up through ``subscribe``.
    config : ExplorerConfig, optional
        Tunables; defaults to ``ExplorerConfig()``.
    style : AttributeStyleProvider, optional
        Per-point color/visibility; defaults to ``AttributeColorizer()``.
    renderer : Renderer, optional
        Drawing surface; defaults to a :class:`PlotlyRenderer`.
    pane_style : ScatterPaneStyle, optional
        Styling of the plot pane.
    """

    def __init__(
        self,
        dataset: DatasetProvider,
        config: Optional[ExplorerConfig] = None,
        *,
        style: Optional[AttributeStyleProvider] = None,
        renderer: Optional[Renderer] = None,
        pane_style: Optional[ScatterPaneStyle] = None,
    ) -> None:
        self._config = config if config is not None else ExplorerConfig()
        self._dataset = dataset
        self._style = style if style is not None else AttributeColorizer()
        self._renderer = renderer if renderer is not None else PlotlyRenderer()
        self._torn_down = False
        self._frame_hold = 0
        self._frame_pending: Optional[str] = None
        self._pan_mode = False
        self._hover_hooks: Dict[Hashable, Callable[[HoverEvent], Any]] = {}
        self._hover_hook_counter = 0

        cfg = self._config
        self._viewport = ViewportController(
            canvas_size=cfg.canvas_size,
            zoom_min=cfg.zoom_min,
            zoom_max=cfg.zoom_max,
            zoom_step=cfg.zoom_step,
            padding_fraction=cfg.padding_fraction,
        )
        self._clustering = ClusteringEngine(
            canvas_size=cfg.canvas_size,
            zoom_threshold=cfg.cluster_zoom_threshold,
            min_points=cfg.cluster_min_points,
            grid_size=cfg.cluster_grid_size,
            padding_fraction=cfg.padding_fraction,
        )
        self._hit_tester = HitTester()
        self._loop = RenderLoop(
            self._renderer,
            self._viewport,
            self._clustering,
            self._dataset,
            self._style,
            point_radius=cfg.point_radius,
            cull_margin_px=cfg.cull_margin_px,
            frame_interval_ms=cfg.frame_interval_ms,
        )
        self._selection = SelectionController(
            self._loop.scene,
            mode=cfg.default_mode,
            tolerance_px=cfg.hit_tolerance_px,
            close_radius_px=cfg.polygon_close_radius_px,
            hit_tester=self._hit_tester,
        )
        self._loop.bind_selection(self._selection)
        self._hover_debouncer = QueuedDebouncer(
            self.update_hover, execute_every_ms=HOVER_THROTTLE_MS, drop_overflow=True
        )

        # UI
        self._layout = ScatterLayout(mode=self._selection.mode.value)
        figure_widget = getattr(self._renderer, "figure", None)
        self._pane: Optional[ScatterPane] = None
        if figure_widget is not None:
            self._pane = ScatterPane(
                figure_widget,
                style=pane_style if pane_style is not None else ScatterPaneStyle(height=f"{int(cfg.canvas_height)}px"),
            )
            self._pane.on_input(self.handle_input)
            self._pane.on_resize(self.resize)
            self._layout.set_plot_widget(self._pane.widget)
        self._wire_toolbar()

        # Internal hooks run before any host hook.
        self._selection_hook_id = self._selection.add_hook(self._on_selection_changed, "explorer:selection")
        self._viewport_hook_id = self._viewport.add_hook(self._on_viewport_changed, "explorer:viewport")
        self._dataset_handle = self._dataset.subscribe(self._on_dataset_reload)
        self._style_handle = self._style.subscribe(self._on_style_changed)

        with self._frames_held():
            self._load(self._dataset.points())

    # --- Lifecycle ---

    @classmethod
    def create(
        cls,
        dataset: DatasetProvider,
        config: Optional[ExplorerConfig] = None,
        **kwargs: Any,
    ) -> "ScatterExplorer":
        """Build an explorer surface and start its frame schedule."""
        explorer = cls(dataset, config, **kwargs)
        explorer._loop.start()
        logger.info(
            "scatter explorer created: %d points, canvas %gx%g",
            len(explorer._loop.visible_points()), *explorer._viewport.canvas_size,
        )
        return explorer

    def teardown(self) -> None:
        """Stop scheduling, detach from providers and close widgets (idempotent)."""
        if self._torn_down:
            return
        self._torn_down = True
        self._loop.stop()
        self._hover_debouncer.cancel()
        self._dataset.unsubscribe(self._dataset_handle)
        self._style.unsubscribe(self._style_handle)
        self._selection.remove_hook(self._selection_hook_id)
        self._viewport.remove_hook(self._viewport_hook_id)
        self._hover_hooks.clear()
        if self._pane is not None:
            self._pane.close()
        self._layout.close()
        logger.info("scatter explorer torn down after %d frames", self._loop.frames_drawn)

    @property
    def is_torn_down(self) -> bool:
        return self._torn_down

    def _require_live(self) -> None:
        if self._torn_down:
            raise RuntimeError("ScatterExplorer has been torn down")

    def __enter__(self) -> "ScatterExplorer":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.teardown()

    # --- Components (read-only access) ---

    @property
    def config(self) -> ExplorerConfig:
        return self._config

    @property
    def selection(self) -> SelectionController:
        return self._selection

    @property
    def viewport(self) -> ViewportController:
        return self._viewport

    @property
    def render_loop(self) -> RenderLoop:
        return self._loop

    @property
    def layout(self) -> ScatterLayout:
        return self._layout

    @property
    def widget(self) -> Any:
        """Root ipywidgets container."""
        return self._layout.root

    def _ipython_display_(self, **kwargs: Any) -> None:
        """Display the explorer widget tree."""
        display(self._layout.root)

    # --- Frames ---

    @contextmanager
    def _frames_held(self) -> Iterator[None]:
        """Coalesce frame requests issued inside the block into one frame."""
        self._frame_hold += 1
        try:
            yield
        finally:
            self._frame_hold -= 1
            if self._frame_hold == 0 and self._frame_pending is not None:
                reason, self._frame_pending = self._frame_pending, None
                self._request_frame(reason)

    def _request_frame(self, reason: str) -> None:
        if self._torn_down:
            return
        if self._frame_hold:
            self._frame_pending = reason
            return
        try:
            self._loop.request_frame(reason)
        except Exception:
            # The recurring tick redraws from the unchanged state.
            logger.exception("on-demand frame failed (reason=%s)", reason)

    # --- Hooks ---

    def add_selection_hook(
        self, callback: Callable[[SelectionChangedEvent], Any], hook_id: Optional[Hashable] = None
    ) -> Hashable:
        """Register a selection-changed callback and return its id."""
        return self._selection.add_hook(callback, hook_id)

    def remove_selection_hook(self, hook_id: Hashable) -> None:
        self._selection.remove_hook(hook_id)

    def add_hover_hook(self, callback: Callable[[HoverEvent], Any], hook_id: Optional[Hashable] = None) -> Hashable:
        """Register a hover callback and return its id."""
        if hook_id is None:
            self._hover_hook_counter += 1
            hook_id = f"hover_hook:{self._hover_hook_counter}"
        self._hover_hooks[hook_id] = callback
        return hook_id

    def remove_hover_hook(self, hook_id: Hashable) -> None:
        self._hover_hooks.pop(hook_id, None)

    def _emit_hover(self, event: HoverEvent) -> None:
        for hook_id, callback in list(self._hover_hooks.items()):
            try:
                callback(event)
            except Exception:
                logger.exception("Hover hook %r failed", hook_id)

    # --- Commands ---

    def set_mode(self, mode: str | SelectionMode) -> bool:
        """Switch selection mode; unknown modes are rejected (returns False)."""
        self._require_live()
        ok = self._selection.set_mode(mode)
        if ok:
            self._pan_mode = False
            self._sync_toolbar()
            self._request_frame("mode")
        return ok

    def set_pan_mode(self, enabled: bool) -> None:
        """While enabled, pointer drags pan the view instead of selecting."""
        self._require_live()
        self._pan_mode = bool(enabled)
        if self._pan_mode:
            self._selection.cancel_gesture()
        else:
            self._viewport.end_pan()
        self._sync_toolbar()
        self._request_frame("pan-mode")

    def zoom_in(self) -> float:
        self._require_live()
        return self._viewport.zoom_in()

    def zoom_out(self) -> float:
        self._require_live()
        return self._viewport.zoom_out()

    def reset_view(self) -> None:
        self._require_live()
        self._viewport.reset_view()

    def cancel(self) -> None:
        """Drop any in-progress gesture (box, polygon or pan)."""
        self._require_live()
        self._selection.cancel()
        self._viewport.end_pan()
        self._request_frame("cancel")

    def finish(self) -> bool:
        """Finalize a pending polygon; returns True if a selection was made."""
        self._require_live()
        return self._selection.finish()

    def clear_selection(self) -> None:
        self._require_live()
        self._selection.clear()

    def select(self, ids: Sequence[str]) -> None:
        """Replace the selection with the visible points among ``ids``."""
        self._require_live()
        self._selection.select_ids(ids)

    def resize(self, width: float, height: float) -> None:
        """Apply a new canvas size (reported by the pane driver)."""
        if self._torn_down or width <= 0 or height <= 0:
            return
        if (float(width), float(height)) == self._viewport.canvas_size:
            return
        with self._frames_held():
            self._loop.resize(width, height)
        logger.debug("canvas resized to %gx%g", width, height)

    # --- Selection output ---

    @property
    def selected_ids(self) -> frozenset[str]:
        return self._selection.selected

    def selected_points(self) -> List[Point]:
        """Selected points in dataset order."""
        selected = self._selection.selected
        return [p for p in self._dataset.points() if p.id in selected]

    def selected_records(self, fields: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        """Selected points as dicts (``id``, ``x``, ``y`` and attributes).

        Parameters
        ----------
        fields : sequence of str, optional
            Restrict each record to these keys; missing keys map to ``None``.
        """
        records = []
        for p in self.selected_points():
            record: Dict[str, Any] = {"id": p.id, "x": p.x, "y": p.y, **dict(p.attributes)}
            if fields is not None:
                record = {name: p.get(name) for name in fields}
            records.append(record)
        return records

    # --- Input routing ---

    def handle_input(self, event: DriverInput) -> None:
        """Route one decoded driver message."""
        if self._torn_down:
            return
        if isinstance(event, KeyInput):
            self._handle_key(event)
        elif isinstance(event, PointerInput):
            self._handle_pointer(event)

    def _handle_pointer(self, event: PointerInput) -> None:
        pt = (event.x, event.y)
        kind = event.kind
        if kind == "down":
            if self._pan_mode:
                self._viewport.begin_pan(pt)
                return
            self._selection.pointer_down(pt)
            if isinstance(self._selection.state, BoxDragging):
                self._request_frame("box-start")
        elif kind == "move":
            if self._viewport.is_panning:
                self._viewport.drag_pan(pt)
                return
            if isinstance(self._selection.state, BoxDragging):
                self._selection.pointer_move(pt)
                self._request_frame("box-drag")
                return
            self._hover_debouncer(event.x, event.y)
        elif kind == "up":
            if self._viewport.is_panning:
                self._viewport.end_pan()
                return
            self._selection.pointer_up(pt)
        elif kind == "click":
            if not self._pan_mode:
                self._selection.click(pt)
                self._request_frame("click")
        elif kind == "dblclick":
            if not self._pan_mode:
                self._selection.double_click(pt)
        elif kind == "leave":
            self._viewport.end_pan()
            if isinstance(self._selection.state, BoxDragging):
                # pointerup was lost outside the host
                self._selection.cancel_gesture()
                self._request_frame("box-cancel")
            self._hover_debouncer.cancel()
            self._set_hover(None, None, ())

    def _handle_key(self, event: KeyInput) -> None:
        key = event.key
        if key in ("+", "="):
            self.zoom_in()
        elif key == "-":
            self.zoom_out()
        elif key == "Home":
            self.reset_view()
        elif key == "Escape":
            self.cancel()
        elif key == "Enter":
            self.finish()
        elif event.shift and key.lower() == "b":
            self.set_mode(SelectionMode.BOX)
        elif event.shift and key.lower() == "l":
            self.set_mode(SelectionMode.POLYGON)
        elif event.shift and key.lower() == "c":
            self.clear_selection()
        else:
            logger.debug("Unbound key %r", key)

    # --- Hover ---

    def update_hover(self, x: float, y: float) -> None:
        """Resolve the entity under ``(x, y)`` and publish hover changes."""
        if self._torn_down:
            return
        scene = self._loop.scene()
        hit = self._hit_tester.pick((x, y), scene.entities, self._config.hit_tolerance_px, scene.transform)
        if hit is None:
            self._set_hover(None, None, ())
        else:
            self._set_hover(hit.id, (float(x), float(y) - TOOLTIP_OFFSET_PX), tuple(hit.point_ids))

    def _set_hover(self, entity_id: Optional[str], anchor: Any, point_ids: tuple) -> None:
        if not self._loop.set_hover(entity_id):
            return
        if entity_id is None:
            self._layout.set_hover_text(None)
        elif len(point_ids) > 1:
            self._layout.set_hover_text(f"{len(point_ids)} points")
        else:
            self._layout.set_hover_text(entity_id)
        self._emit_hover(HoverEvent(entity_id=entity_id, anchor=anchor, point_ids=point_ids))
        self._request_frame("hover")

    # --- Provider notifications ---

    def _load(self, points: Sequence[Point]) -> None:
        fit = getattr(self._style, "fit", None)
        if callable(fit):
            fit(points)
        self._loop.invalidate_data()
        self._viewport.set_bounds(DataBounds.of(points))
        self._selection.prune(p.id for p in self._loop.visible_points())
        self._refresh_legend()
        self._refresh_status()
        self._request_frame("load")

    def _on_dataset_reload(self, points: Sequence[Point]) -> None:
        if self._torn_down:
            return
        logger.info("dataset reloaded: %d points", len(points))
        self._selection.cancel_gesture()
        self._viewport.end_pan()
        with self._frames_held():
            self._load(points)

    def _on_style_changed(self) -> None:
        if self._torn_down:
            return
        with self._frames_held():
            self._loop.invalidate_data()
            self._selection.prune(p.id for p in self._loop.visible_points())
            self._refresh_legend()
            self._refresh_status()
            self._request_frame("style")

    def _on_selection_changed(self, event: SelectionChangedEvent) -> None:
        self._refresh_status()
        self._request_frame(f"selection:{event.reason}")

    def _on_viewport_changed(self, _viewport: Any) -> None:
        self._request_frame("viewport")

    # --- UI sync ---

    def _refresh_status(self) -> None:
        self._layout.set_status(len(self._loop.visible_points()), len(self._selection.selected))

    def _refresh_legend(self) -> None:
        legend = getattr(self._style, "legend", None)
        self._layout.set_legend(legend() if callable(legend) else ())

    def _sync_toolbar(self) -> None:
        lay = self._layout
        if lay.mode_buttons.value != self._selection.mode.value:
            lay.mode_buttons.value = self._selection.mode.value
        if lay.pan_toggle.value != self._pan_mode:
            lay.pan_toggle.value = self._pan_mode

    def _wire_toolbar(self) -> None:
        lay = self._layout

        def on_mode(change: Dict[str, Any]) -> None:
            if not self._torn_down and change["new"] != self._selection.mode.value:
                self.set_mode(change["new"])

        def on_pan(change: Dict[str, Any]) -> None:
            if not self._torn_down and bool(change["new"]) != self._pan_mode:
                self.set_pan_mode(bool(change["new"]))

        lay.mode_buttons.observe(on_mode, names="value")
        lay.pan_toggle.observe(on_pan, names="value")
        lay.zoom_in_button.on_click(lambda _b: self.zoom_in())
        lay.zoom_out_button.on_click(lambda _b: self.zoom_out())
        lay.reset_button.on_click(lambda _b: self.reset_view())
        lay.cancel_button.on_click(lambda _b: self.cancel())
        lay.finish_button.on_click(lambda _b: self.finish())
        lay.clear_button.on_click(lambda _b: self.clear_selection())
