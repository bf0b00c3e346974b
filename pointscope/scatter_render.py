"""Frame composition for the scatter surface.

Purpose
-------
``RenderLoop`` turns the committed state (viewport, visible points,
selection, hover, in-progress gesture) into a :class:`FrameLayers` value and
hands it to a :class:`Renderer`. The renderer is a capability with a single
``draw_frame(layers)`` operation, so a retained scene graph (Plotly) or a raw
pixel canvas can both sit behind it.

Concepts and structure
----------------------
Each frame:

1. builds a fresh transform from the viewport,
2. clusters the visible points for the current zoom,
3. partitions entities into unselected / selected / hovered layers and the
   box/polygon overlay,
4. attaches static chrome (grid, axis labels) only when the canvas size
   changed since chrome was last drawn,
5. calls ``renderer.draw_frame(layers)``.

Frames run on demand (:meth:`RenderLoop.request_frame`, after every state
mutation) and, inside a running asyncio loop, on a recurring schedule
(:meth:`RenderLoop.start`). Every frame is derived from the current state,
never from a previous frame, so a dropped or failed frame cannot leave the
surface out of sync; the recurring tick redraws
whenever the state signature differs from the last drawn frame.

Important gotchas
-----------------
- Only the render loop talks to the renderer; clustering and selection never
  draw.
- Entities are culled when their screen position lies more than
  ``cull_margin_px`` outside the canvas.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, FrozenSet, List, Optional, Protocol, Tuple, runtime_checkable

import numpy as np

from .geometry import Vec2
from .points import Point
from .scatter_clustering import Cluster, ClusteringEngine, cluster_radius, dominant_color
from .scatter_data import AttributeStyleProvider, DatasetProvider
from .scatter_selection import BoxDragging, PolygonDrawing, SelectionController, SelectionScene
from .scatter_viewport import ViewportController
from .scheduling import FrameScheduler, has_running_loop

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


@dataclass(frozen=True)
class DrawableEntity:
    """One marker in screen space.

    An unfilled entity is drawn as an outline ring only.
    """

    id: str
    x: float
    y: float
    radius: float
    color: str
    count: int = 1
    outlined: bool = False
    filled: bool = True


@dataclass(frozen=True)
class SelectionOverlay:
    """In-progress gesture shape in screen space.

    ``kind`` is ``"box"`` (vertices are the two drag corners) or
    ``"polygon"`` (vertices in click order). ``closed`` is True once a
    polygon has enough vertices to enclose an area.
    """

    kind: str
    vertices: Tuple[Vec2, ...]
    closed: bool = False


@dataclass(frozen=True)
class ChromeSpec:
    """Static decorations, redrawn only when the canvas size changes."""

    width: float
    height: float
    grid_step: float = 50.0
    x_label: str = "X-AXIS"
    y_label: str = "Y-AXIS"


@dataclass(frozen=True)
class FrameLayers:
    """Everything a renderer needs for one frame, in draw order."""

    canvas_size: Tuple[float, float]
    unselected: Tuple[DrawableEntity, ...] = ()
    selected: Tuple[DrawableEntity, ...] = ()
    hovered: Optional[DrawableEntity] = None
    overlay: Optional[SelectionOverlay] = None
    chrome: Optional[ChromeSpec] = None
    point_count: int = 0
    selected_count: int = 0
    frame_index: int = 0

    def z_ordered(self) -> List[Tuple[str, Tuple[Any, ...]]]:
        """Dynamic layers bottom to top: unselected, selected, hovered, overlay."""
        return [
            ("unselected", self.unselected),
            ("selected", self.selected),
            ("hovered", (self.hovered,) if self.hovered is not None else ()),
            ("overlay", (self.overlay,) if self.overlay is not None else ()),
        ]


@runtime_checkable
class Renderer(Protocol):
    """Rendering surface capability."""

    def draw_frame(self, layers: FrameLayers) -> None: ...


class RenderLoop:
    """Compose frames from committed state and push them to a renderer.

    Parameters
    ----------
    renderer : Renderer
        Drawing surface; exclusively driven by this loop.
    viewport : ViewportController
        Source of the current transform.
    clustering : ClusteringEngine
        Produces render entities for the visible points.
    dataset : DatasetProvider
        Source of the current points.
    style : AttributeStyleProvider
        Per-point color and visibility.
    point_radius : float
        Base marker radius in pixels.
    cull_margin_px : float
        Off-canvas tolerance before an entity is skipped.
    frame_interval_ms : int
        Period of the recurring schedule.
    """

    SELECTED_RADIUS_BONUS = 2.0
    HOVER_RADIUS_BONUS = 1.0

    def __init__(
        self,
        renderer: Renderer,
        viewport: ViewportController,
        clustering: ClusteringEngine,
        dataset: DatasetProvider,
        style: AttributeStyleProvider,
        *,
        point_radius: float = 4.0,
        cull_margin_px: float = 8.0,
        frame_interval_ms: int = 100,
    ) -> None:
        self._renderer = renderer
        self._viewport = viewport
        self._clustering = clustering
        self._dataset = dataset
        self._style = style
        self._selection: Optional[SelectionController] = None
        self._point_radius = float(point_radius)
        self._cull_margin_px = float(cull_margin_px)
        self._scheduler = FrameScheduler(self._on_tick, interval_ms=int(frame_interval_ms))

        self._hover_id: Optional[str] = None
        self._data_version = 0
        self._visible_cache: Optional[Tuple[int, List[Point]]] = None
        self._cluster_cache: Optional[Tuple[Any, List[Cluster]]] = None
        self._chrome_size: Optional[Tuple[float, float]] = None
        self._last_signature: Any = None
        self._frames_drawn = 0
        self._render_info_last_log_t = 0.0
        self._render_debug_last_log_t = 0.0
        self._frame_lock = threading.RLock()

    # --- Wiring / properties ---

    def bind_selection(self, selection: SelectionController) -> None:
        """Attach the selection controller whose state is drawn (read-only)."""
        self._selection = selection

    @property
    def frames_drawn(self) -> int:
        return self._frames_drawn

    @property
    def hover_id(self) -> Optional[str]:
        return self._hover_id

    @property
    def running(self) -> bool:
        return self._scheduler.running

    # --- Scene ---

    def invalidate_data(self) -> None:
        """Forget cached visibility/clusters after a dataset or filter change."""
        self._data_version += 1
        self._visible_cache = None
        self._cluster_cache = None
        self._hover_id = None

    def visible_points(self) -> List[Point]:
        """Points of the current dataset that the style provider shows."""
        cached = self._visible_cache
        if cached is not None and cached[0] == self._data_version:
            return cached[1]
        pts = [p for p in self._dataset.points() if self._style.is_visible(p)]
        self._visible_cache = (self._data_version, pts)
        return pts

    def entities(self) -> List[Cluster]:
        """Render entities for the current viewport (cached per data/zoom/canvas)."""
        vp = self._viewport.viewport
        key = (self._data_version, vp.zoom, vp.bounds, self._clustering.canvas_size)
        cached = self._cluster_cache
        if cached is not None and cached[0] == key:
            return cached[1]
        clusters = self._clustering.cluster(self.visible_points(), vp)
        self._cluster_cache = (key, clusters)
        return clusters

    def scene(self) -> SelectionScene:
        """Scene of the current frame, as consumed by selection gestures."""
        with self._frame_lock:
            return SelectionScene(
                transform=self._viewport.transform(),
                entities=self.entities(),
                points=self.visible_points(),
            )

    def set_hover(self, entity_id: Optional[str]) -> bool:
        """Set the hovered entity; returns True when it changed."""
        if entity_id == self._hover_id:
            return False
        self._hover_id = entity_id
        return True

    def resize(self, width: float, height: float) -> None:
        """Apply a new canvas size; chrome is redrawn on the next frame."""
        if width <= 0 or height <= 0:
            return
        self._clustering.canvas_size = (float(width), float(height))
        self._cluster_cache = None
        self._viewport.set_canvas_size(width, height)

    # --- Frames ---

    def compose(self) -> FrameLayers:
        """Build the layers of the next frame without drawing them."""
        transform = self._viewport.transform()
        canvas = (transform.canvas_width, transform.canvas_height)
        entities = self.entities()
        visible_count = len(self.visible_points())
        selected_ids: FrozenSet[str] = (
            self._selection.selected if self._selection is not None else frozenset()
        )

        unselected: List[DrawableEntity] = []
        selected: List[DrawableEntity] = []
        hovered: Optional[DrawableEntity] = None

        if entities:
            n = len(entities)
            xs = np.fromiter((c.x for c in entities), dtype=float, count=n)
            ys = np.fromiter((c.y for c in entities), dtype=float, count=n)
            sx, sy = transform.to_screen_array(xs, ys)
            m = self._cull_margin_px
            on_canvas = (sx >= -m) & (sx <= canvas[0] + m) & (sy >= -m) & (sy <= canvas[1] + m)
            for entity, x, y, keep in zip(entities, sx.tolist(), sy.tolist(), on_canvas.tolist()):
                if not keep:
                    continue
                radius = cluster_radius(entity, self._point_radius)
                color = dominant_color(entity, self._style.color_of)
                is_selected = any(pid in selected_ids for pid in entity.point_ids)
                if is_selected:
                    radius += self.SELECTED_RADIUS_BONUS
                    selected.append(DrawableEntity(entity.id, x, y, radius, color, entity.count, True))
                if entity.id == self._hover_id:
                    # A selected entity keeps its marker; the hover layer adds a ring around it.
                    hovered = DrawableEntity(
                        entity.id, x, y, radius + self.HOVER_RADIUS_BONUS, color, entity.count,
                        True, filled=not is_selected,
                    )
                elif not is_selected:
                    unselected.append(DrawableEntity(entity.id, x, y, radius, color, entity.count))

        chrome = None
        if self._chrome_size != canvas:
            chrome = ChromeSpec(width=canvas[0], height=canvas[1])

        return FrameLayers(
            canvas_size=canvas,
            unselected=tuple(unselected),
            selected=tuple(selected),
            hovered=hovered,
            overlay=self._overlay(),
            chrome=chrome,
            point_count=visible_count,
            selected_count=len(selected_ids),
            frame_index=self._frames_drawn + 1,
        )

    def _overlay(self) -> Optional[SelectionOverlay]:
        if self._selection is None:
            return None
        state = self._selection.state
        if isinstance(state, BoxDragging):
            return SelectionOverlay("box", (state.start, state.current), closed=True)
        if isinstance(state, PolygonDrawing) and state.vertices:
            return SelectionOverlay(
                "polygon", tuple(state.vertices), closed=len(state.vertices) >= 3
            )
        return None

    def _signature(self) -> Any:
        vp = self._viewport.viewport
        state = self._selection.state if self._selection is not None else None
        if isinstance(state, BoxDragging):
            gesture: Any = ("box", state.start, state.current)
        elif isinstance(state, PolygonDrawing):
            gesture = ("polygon", tuple(state.vertices))
        else:
            gesture = None
        selected = self._selection.selected if self._selection is not None else frozenset()
        return (
            self._data_version,
            vp.zoom,
            vp.pan,
            vp.bounds,
            self._viewport.canvas_size,
            selected,
            gesture,
            self._hover_id,
        )

    def request_frame(self, reason: str = "manual") -> FrameLayers:
        """Compose and draw a frame now."""
        with self._frame_lock:
            signature = self._signature()
            layers = self.compose()
            self._renderer.draw_frame(layers)
            # Bookkeeping only after a successful draw so a failed frame is retried.
            if layers.chrome is not None:
                self._chrome_size = layers.canvas_size
            self._last_signature = signature
            self._frames_drawn += 1
            self._log_render(reason, layers)
            return layers

    def _on_tick(self) -> None:
        with self._frame_lock:
            if self._signature() != self._last_signature:
                self.request_frame(reason="tick")

    def start(self) -> bool:
        """Begin the recurring frame schedule on the running asyncio loop.

        Returns False without scheduling anything when no loop is running:
        ticks would then fire on a timer thread, while on-demand frames
        already follow every mutation on the caller's thread.
        """
        if not has_running_loop():
            logger.debug("no running event loop; recurring frames disabled")
            return False
        self._scheduler.start()
        return True

    def stop(self) -> None:
        self._scheduler.stop()

    def _log_render(self, reason: str, layers: FrameLayers) -> None:
        now = time.monotonic()
        if logger.isEnabledFor(logging.INFO) and (now - self._render_info_last_log_t) > 1.0:
            self._render_info_last_log_t = now
            logger.info(
                "frame %d (reason=%s) points=%d selected=%d",
                layers.frame_index, reason, layers.point_count, layers.selected_count,
            )
        if logger.isEnabledFor(logging.DEBUG) and (now - self._render_debug_last_log_t) > 0.5:
            self._render_debug_last_log_t = now
            vp = self._viewport.viewport
            logger.debug("zoom=%.4g pan=(%.1f, %.1f)", vp.zoom, vp.pan_x, vp.pan_y)
