"""Shared 2-D geometry helpers for screen-space selection math.

Purpose
-------
Small, dependency-light primitives used by the transform, hit-testing and
selection modules: point tuples, rectangle normalization, ray-casting
point-in-polygon tests and their numpy-vectorized counterparts.

Notes
-----
All functions are pure. Scalar helpers operate on ``(x, y)`` tuples; the
``*_mask`` helpers accept coordinate arrays and return boolean masks so a
whole frame of points can be tested at once.
"""

from __future__ import annotations

import math
from typing import NamedTuple, Sequence

import numpy as np


class Vec2(NamedTuple):
    """A 2-D coordinate pair (screen pixels or data units)."""

    x: float
    y: float

    def __add__(self, other: object) -> "Vec2":  # type: ignore[override]
        ox, oy = other  # type: ignore[misc]
        return Vec2(self.x + ox, self.y + oy)

    def __sub__(self, other: object) -> "Vec2":
        ox, oy = other  # type: ignore[misc]
        return Vec2(self.x - ox, self.y - oy)


class Rect(NamedTuple):
    """Axis-aligned rectangle with ``x0 <= x1`` and ``y0 <= y1``."""

    x0: float
    y0: float
    x1: float
    y1: float

    def contains(self, x: float, y: float) -> bool:
        """Return True when ``(x, y)`` lies inside the rectangle, edges included."""
        return self.x0 <= x <= self.x1 and self.y0 <= y <= self.y1


def as_vec(value: Sequence[float]) -> Vec2:
    """Coerce any two-item sequence into a :class:`Vec2` of floats."""
    x, y = value
    return Vec2(float(x), float(y))


def distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Euclidean distance between two points."""
    return math.hypot(a[0] - b[0], a[1] - b[1])


def normalize_rect(corner_a: Sequence[float], corner_b: Sequence[float]) -> Rect:
    """Build a :class:`Rect` from two opposite corners in any order."""
    ax, ay = corner_a
    bx, by = corner_b
    return Rect(min(ax, bx), min(ay, by), max(ax, bx), max(ay, by))


def point_in_polygon(point: Sequence[float], polygon: Sequence[Sequence[float]]) -> bool:
    """Ray-casting point-in-polygon test.

    Parameters
    ----------
    point:
        The ``(x, y)`` point to test.
    polygon:
        Ordered vertex list. The polygon is implicitly closed; fewer than three
        vertices never contain anything.

    Returns
    -------
    bool
        True when a horizontal ray from ``point`` crosses the boundary an odd
        number of times.
    """
    n = len(polygon)
    if n < 3:
        return False
    x, y = point
    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = polygon[i]
        xj, yj = polygon[j]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def rect_mask(xs: np.ndarray, ys: np.ndarray, rect: Rect) -> np.ndarray:
    """Vectorized :meth:`Rect.contains` over coordinate arrays."""
    return (xs >= rect.x0) & (xs <= rect.x1) & (ys >= rect.y0) & (ys <= rect.y1)


def polygon_mask(
    xs: np.ndarray, ys: np.ndarray, polygon: Sequence[Sequence[float]]
) -> np.ndarray:
    """Vectorized :func:`point_in_polygon` over coordinate arrays.

    Evaluates exactly the same edge-crossing predicate as the scalar version,
    one polygon edge at a time, so both agree point for point.
    """
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    inside = np.zeros(xs.shape, dtype=bool)
    n = len(polygon)
    if n < 3:
        return inside
    j = n - 1
    for i in range(n):
        xi, yi = polygon[i]
        xj, yj = polygon[j]
        straddles = (yi > ys) != (yj > ys)
        if yj != yi:
            crossing_x = (xj - xi) * (ys - yi) / (yj - yi) + xi
            inside ^= straddles & (xs < crossing_x)
        j = i
    return inside
