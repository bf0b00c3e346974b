"""Data-space <-> screen-space coordinate transform.

Purpose
-------
``CoordinateTransform`` maps data coordinates to canvas pixels in two
stages:

1. *Base scaling* normalizes the data bounding box into the canvas, leaving
   ``padding_fraction`` of each canvas dimension empty on both sides::

       base = pad + (v - v_min) * scale,  scale = (canvas - 2 * pad) / range

   An axis whose range is at most ``EPSILON`` uses ``scale = 1.0``.
2. *Viewport* zoom/pan around the canvas centre::

       screen = center + (base - center) * zoom + pan

``to_data`` is the exact algebraic inverse of ``to_screen``.

Important gotchas
-----------------
- Screen y grows downward and data y is *not* flipped: larger data y values
  land lower on the canvas.
- Instances are immutable snapshots. Build a fresh one from the viewport
  after every mutation (``ViewportController.transform()`` does this); never
  keep one across a zoom or pan change.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from .geometry import Vec2
from .points import DataBounds
from .scatter_view import Viewport

EPSILON = 1e-12


@dataclass(frozen=True)
class CoordinateTransform:
    """Immutable data <-> screen mapping for one viewport state."""

    bounds: DataBounds
    canvas_width: float
    canvas_height: float
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    padding_fraction: float = 0.1

    @classmethod
    def from_viewport(
        cls,
        viewport: Viewport,
        canvas_size: Tuple[float, float],
        *,
        padding_fraction: float = 0.1,
    ) -> "CoordinateTransform":
        """Snapshot ``viewport`` into a transform for a ``canvas_size`` surface."""
        width, height = canvas_size
        return cls(
            bounds=viewport.bounds,
            canvas_width=float(width),
            canvas_height=float(height),
            zoom=float(viewport.zoom),
            pan_x=float(viewport.pan_x),
            pan_y=float(viewport.pan_y),
            padding_fraction=float(padding_fraction),
        )

    # --- base scaling ---

    @property
    def pad_x(self) -> float:
        return self.canvas_width * self.padding_fraction

    @property
    def pad_y(self) -> float:
        return self.canvas_height * self.padding_fraction

    @property
    def scale_x(self) -> float:
        """Base pixels per data unit along x (1.0 for a degenerate axis)."""
        rng = self.bounds.x_range
        if rng <= EPSILON:
            return 1.0
        return (self.canvas_width - 2.0 * self.pad_x) / rng

    @property
    def scale_y(self) -> float:
        """Base pixels per data unit along y (1.0 for a degenerate axis)."""
        rng = self.bounds.y_range
        if rng <= EPSILON:
            return 1.0
        return (self.canvas_height - 2.0 * self.pad_y) / rng

    @property
    def center(self) -> Vec2:
        return Vec2(self.canvas_width / 2.0, self.canvas_height / 2.0)

    @property
    def pixels_per_unit(self) -> Vec2:
        """Screen pixels per data unit on each axis at the current zoom."""
        return Vec2(self.scale_x * self.zoom, self.scale_y * self.zoom)

    def to_base(self, data_point: Sequence[float]) -> Vec2:
        """Map a data point into the zoom-independent normalized canvas space."""
        x, y = data_point
        return Vec2(
            self.pad_x + (x - self.bounds.min_x) * self.scale_x,
            self.pad_y + (y - self.bounds.min_y) * self.scale_y,
        )

    # --- full mapping ---

    def to_screen(self, data_point: Sequence[float]) -> Vec2:
        """Map a data-space point to screen pixels."""
        bx, by = self.to_base(data_point)
        cx, cy = self.center
        return Vec2(
            cx + (bx - cx) * self.zoom + self.pan_x,
            cy + (by - cy) * self.zoom + self.pan_y,
        )

    def to_data(self, screen_point: Sequence[float]) -> Vec2:
        """Map screen pixels back to data space (inverse of :meth:`to_screen`)."""
        sx, sy = screen_point
        cx, cy = self.center
        bx = cx + (sx - self.pan_x - cx) / self.zoom
        by = cy + (sy - self.pan_y - cy) / self.zoom
        return Vec2(
            self.bounds.min_x + (bx - self.pad_x) / self.scale_x,
            self.bounds.min_y + (by - self.pad_y) / self.scale_y,
        )

    # --- vectorized variants ---

    def to_base_array(self, xs: np.ndarray, ys: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Vectorized :meth:`to_base`."""
        xs = np.asarray(xs, dtype=float)
        ys = np.asarray(ys, dtype=float)
        return (
            self.pad_x + (xs - self.bounds.min_x) * self.scale_x,
            self.pad_y + (ys - self.bounds.min_y) * self.scale_y,
        )

    def to_screen_array(self, xs: np.ndarray, ys: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Vectorized :meth:`to_screen`."""
        bx, by = self.to_base_array(xs, ys)
        cx, cy = self.center
        return (
            cx + (bx - cx) * self.zoom + self.pan_x,
            cy + (by - cy) * self.zoom + self.pan_y,
        )
