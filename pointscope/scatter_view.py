"""Viewport state model.

``Viewport`` is the mutable zoom/pan container read by the transform,
clustering and render modules. Only :class:`~pointscope.scatter_viewport.ViewportController`
writes to it.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .points import DataBounds


@dataclass
class Viewport:
    """Zoom/pan state for one scatter surface.

    Parameters
    ----------
    zoom : float
        Zoom factor, kept inside the controller's clamp range.
    pan_x, pan_y : float
        Pan offset in screen pixels.
    bounds : DataBounds
        Last computed data-space bounding box; drives the base scale.
    """

    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    bounds: DataBounds = field(default_factory=DataBounds)

    @property
    def pan(self) -> tuple[float, float]:
        return (self.pan_x, self.pan_y)
