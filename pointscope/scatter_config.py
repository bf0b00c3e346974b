"""Explorer configuration.

``ExplorerConfig`` collects every tunable constant of the visualization core
in one frozen dataclass. Numeric fields accept numbers or numeric/symbolic
strings (coerced through :func:`InputConvert`) and are validated eagerly so a
bad configuration fails at construction time rather than mid-gesture.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Union

from .InputConvert import InputConvert
from .scatter_selection import parse_mode

NumberLike = Union[int, float, str]

_FLOAT_FIELDS = (
    "canvas_width",
    "canvas_height",
    "padding_fraction",
    "zoom_min",
    "zoom_max",
    "zoom_step",
    "cluster_zoom_threshold",
    "cluster_grid_size",
    "point_radius",
    "hit_tolerance_px",
    "polygon_close_radius_px",
    "cull_margin_px",
)
_INT_FIELDS = ("cluster_min_points", "frame_interval_ms")


@dataclass(frozen=True)
class ExplorerConfig:
    """Tunable constants for one scatter explorer surface.

    Parameters
    ----------
    canvas_width, canvas_height : float
        Rendering surface size in pixels.
    padding_fraction : float
        Fraction of each canvas dimension left empty on both sides when data
        bounds are normalized into the canvas.
    zoom_min, zoom_max : float
        Zoom clamp range.
    zoom_step : float
        Multiplicative step of ``zoom_in``/``zoom_out``.
    cluster_zoom_threshold : float
        Clustering only happens at or below this zoom.
    cluster_min_points : int
        Clustering only happens with at least this many visible points.
    cluster_grid_size : float
        Grid cell edge in normalized canvas units.
    point_radius : float
        Base marker radius in pixels.
    hit_tolerance_px : float
        Pick radius for click and hover hit-tests.
    polygon_close_radius_px : float
        Distance to the first vertex that closes a polygon.
    frame_interval_ms : int
        Period of the recurring frame schedule.
    cull_margin_px : float
        Entities farther than this outside the canvas are not drawn.
    default_mode : str
        Selection mode at construction (``"click"``, ``"box"``, ``"polygon"``);
        stored in its canonical spelling.
    """

    canvas_width: NumberLike = 500.0
    canvas_height: NumberLike = 500.0
    padding_fraction: NumberLike = 0.1
    zoom_min: NumberLike = 0.2
    zoom_max: NumberLike = 5.0
    zoom_step: NumberLike = 1.2
    cluster_zoom_threshold: NumberLike = 0.5
    cluster_min_points: NumberLike = 100
    cluster_grid_size: NumberLike = 50.0
    point_radius: NumberLike = 4.0
    hit_tolerance_px: NumberLike = 9.0
    polygon_close_radius_px: NumberLike = 15.0
    frame_interval_ms: NumberLike = 100
    cull_margin_px: NumberLike = 8.0
    default_mode: str = "click"

    def __post_init__(self) -> None:
        for name in _FLOAT_FIELDS:
            object.__setattr__(self, name, InputConvert(getattr(self, name), float))
        for name in _INT_FIELDS:
            object.__setattr__(self, name, InputConvert(getattr(self, name), int, truncate=False))

        if self.canvas_width <= 0 or self.canvas_height <= 0:
            raise ValueError("canvas size must be positive")
        if not 0.0 <= self.padding_fraction < 0.5:
            raise ValueError("padding_fraction must be in [0, 0.5)")
        if not 0.0 < self.zoom_min <= 1.0 <= self.zoom_max:
            raise ValueError("zoom range must satisfy 0 < zoom_min <= 1 <= zoom_max")
        if self.zoom_step <= 1.0:
            raise ValueError("zoom_step must be > 1")
        if self.cluster_grid_size <= 0:
            raise ValueError("cluster_grid_size must be > 0")
        if self.frame_interval_ms <= 0:
            raise ValueError("frame_interval_ms must be > 0")
        if self.point_radius <= 0 or self.hit_tolerance_px < 0:
            raise ValueError("point_radius must be > 0 and hit_tolerance_px >= 0")
        if self.polygon_close_radius_px < 0 or self.cull_margin_px < 0:
            raise ValueError("polygon_close_radius_px and cull_margin_px must be >= 0")
        if self.cluster_min_points <= 0:
            raise ValueError("cluster_min_points must be > 0")
        try:
            mode = parse_mode(self.default_mode)
        except ValueError:
            raise ValueError(f"unknown default_mode: {self.default_mode!r}") from None
        object.__setattr__(self, "default_mode", mode.value)

    @property
    def canvas_size(self) -> tuple[float, float]:
        return (self.canvas_width, self.canvas_height)

    def replace(self, **changes: Any) -> "ExplorerConfig":
        """Return a copy with ``changes`` applied (validated again)."""
        return dataclasses.replace(self, **changes)
