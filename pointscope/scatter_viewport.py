"""Zoom/pan ownership for one scatter surface.

``ViewportController`` is the only writer of :class:`~pointscope.scatter_view.Viewport`.
It clamps zoom, tracks pan gestures and builds fresh transforms on demand.
Change hooks fire after every mutation so the render loop can schedule an
on-demand frame.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Hashable, Optional, Sequence, Tuple

from .geometry import Vec2, as_vec
from .points import DataBounds
from .scatter_transform import CoordinateTransform
from .scatter_view import Viewport

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class ViewportController:
    """Own zoom/pan state and expose the current transform.

    Parameters
    ----------
    canvas_size : tuple[float, float]
        Rendering surface size in pixels.
    zoom_min, zoom_max : float
        Zoom clamp range.
    zoom_step : float
        Factor applied by :meth:`zoom_in` and divided out by :meth:`zoom_out`.
    padding_fraction : float
        Base-scaling padding forwarded to each transform.
    """

    def __init__(
        self,
        *,
        canvas_size: Tuple[float, float] = (500.0, 500.0),
        zoom_min: float = 0.2,
        zoom_max: float = 5.0,
        zoom_step: float = 1.2,
        padding_fraction: float = 0.1,
    ) -> None:
        if not 0 < zoom_min <= zoom_max:
            raise ValueError("zoom range must satisfy 0 < zoom_min <= zoom_max")
        self._viewport = Viewport()
        self._canvas_size = (float(canvas_size[0]), float(canvas_size[1]))
        self.zoom_min = float(zoom_min)
        self.zoom_max = float(zoom_max)
        self.zoom_step = float(zoom_step)
        self.padding_fraction = float(padding_fraction)
        self._is_panning = False
        self._drag_anchor: Optional[Vec2] = None
        self._hooks: Dict[Hashable, Callable[[Viewport], Any]] = {}
        self._hook_counter = 0

    # --- Properties ---

    @property
    def viewport(self) -> Viewport:
        """The live viewport (treat as read-only outside this class)."""
        return self._viewport

    @property
    def zoom(self) -> float:
        return self._viewport.zoom

    @property
    def pan(self) -> Tuple[float, float]:
        return self._viewport.pan

    @property
    def canvas_size(self) -> Tuple[float, float]:
        return self._canvas_size

    @property
    def is_panning(self) -> bool:
        return self._is_panning

    def transform(self) -> CoordinateTransform:
        """Build a transform for the viewport as it is right now."""
        return CoordinateTransform.from_viewport(
            self._viewport, self._canvas_size, padding_fraction=self.padding_fraction
        )

    # --- Hooks ---

    def add_hook(self, callback: Callable[[Viewport], Any], hook_id: Optional[Hashable] = None) -> Hashable:
        """Register a viewport-changed hook and return its id."""
        if hook_id is None:
            self._hook_counter += 1
            hook_id = f"viewport_hook:{self._hook_counter}"
        self._hooks[hook_id] = callback
        return hook_id

    def remove_hook(self, hook_id: Hashable) -> None:
        self._hooks.pop(hook_id, None)

    def _changed(self, reason: str) -> None:
        vp = self._viewport
        logger.debug("viewport %s: zoom=%.4g pan=(%.1f, %.1f)", reason, vp.zoom, vp.pan_x, vp.pan_y)
        for hook_id, callback in list(self._hooks.items()):
            try:
                callback(vp)
            except Exception:
                logger.exception("Viewport hook %r failed", hook_id)

    # --- Zoom ---

    def _clamp(self, zoom: float) -> float:
        return min(self.zoom_max, max(self.zoom_min, zoom))

    def set_zoom(self, zoom: float) -> float:
        """Set zoom to ``zoom`` clamped into range; returns the applied value."""
        self._viewport.zoom = self._clamp(float(zoom))
        self._changed("zoom")
        return self._viewport.zoom

    def zoom_in(self) -> float:
        return self.set_zoom(self._viewport.zoom * self.zoom_step)

    def zoom_out(self) -> float:
        return self.set_zoom(self._viewport.zoom / self.zoom_step)

    def reset_view(self) -> None:
        """Zoom 1.0, pan (0, 0); also ends any pan gesture."""
        self._viewport.zoom = self._clamp(1.0)
        self._viewport.pan_x = 0.0
        self._viewport.pan_y = 0.0
        self.end_pan()
        self._changed("reset")

    # --- Pan ---

    def pan_by(self, delta: Sequence[float]) -> None:
        """Add a screen-space delta to the pan offset (unclamped)."""
        dx, dy = delta
        self._viewport.pan_x += float(dx)
        self._viewport.pan_y += float(dy)
        self._changed("pan")

    def begin_pan(self, anchor: Sequence[float]) -> None:
        self._is_panning = True
        self._drag_anchor = as_vec(anchor)

    def drag_pan(self, pointer: Sequence[float]) -> None:
        """Apply ``pointer - anchor`` and re-anchor at ``pointer``."""
        if not self._is_panning or self._drag_anchor is None:
            return
        current = as_vec(pointer)
        delta = current - self._drag_anchor
        self._drag_anchor = current
        self.pan_by(delta)

    def end_pan(self) -> None:
        self._is_panning = False
        self._drag_anchor = None

    # --- Data / canvas ---

    def set_bounds(self, bounds: DataBounds) -> None:
        """Store the data bounding box of a (re)loaded dataset."""
        self._viewport.bounds = bounds
        self._changed("bounds")

    def set_canvas_size(self, width: float, height: float) -> None:
        if width <= 0 or height <= 0:
            return
        self._canvas_size = (float(width), float(height))
        self._changed("canvas")
