"""Point data model.

Purpose
-------
Defines ``Point``, the immutable record the explorer visualizes, and
``DataBounds``, the data-space bounding box used to derive the base scale of
the coordinate transform.

Important gotchas
-----------------
- ``Point`` is frozen; a dataset reload replaces the whole list.
- ``attributes`` is wrapped in a read-only mapping proxy so shared Point
  instances cannot be mutated through it.
- The empty dataset has the zero box ``DataBounds(0, 0, 0, 0)``; the
  transform treats its zero ranges like any other degenerate axis.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any, Union

from .InputConvert import InputConvert

AttributeValue = Union[str, int, float]


@dataclass(frozen=True)
class Point:
    """One visualized record.

    Parameters
    ----------
    id : str
        Identifier, unique within a loaded dataset.
    x, y : float
        Position in data space. Numeric strings are accepted and coerced.
    attributes : Mapping[str, str | int | float]
        Open attribute map used for coloring and filtering.
    """

    id: str
    x: float
    y: float
    attributes: Mapping[str, AttributeValue] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        x = InputConvert(self.x, float)
        y = InputConvert(self.y, float)
        if not (math.isfinite(x) and math.isfinite(y)):
            raise ValueError(f"Point {self.id!r} has non-finite coordinates ({x}, {y}).")
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "y", y)
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    def get(self, name: str, default: Any = None) -> Any:
        """Return attribute ``name``; ``"id"``, ``"x"`` and ``"y"`` resolve to fields."""
        if name in ("id", "x", "y"):
            return getattr(self, name)
        return self.attributes.get(name, default)


@dataclass(frozen=True)
class DataBounds:
    """Data-space bounding box (min/max per axis)."""

    min_x: float = 0.0
    min_y: float = 0.0
    max_x: float = 0.0
    max_y: float = 0.0

    @property
    def x_range(self) -> float:
        return self.max_x - self.min_x

    @property
    def y_range(self) -> float:
        return self.max_y - self.min_y

    @classmethod
    def of(cls, points: Iterable[Point]) -> "DataBounds":
        """Compute the bounding box of ``points`` (zero box when empty)."""
        xs: list[float] = []
        ys: list[float] = []
        for p in points:
            xs.append(p.x)
            ys.append(p.y)
        if not xs:
            return cls()
        return cls(min(xs), min(ys), max(xs), max(ys))


def points_from_records(records: Iterable[Mapping[str, Any]]) -> list[Point]:
    """Build points from mapping records carrying ``x``/``y`` (and optionally ``id``).

    Remaining keys become attributes. A missing ``id`` falls back to the row
    index, as tabular imports without an id column do.

    Raises
    ------
    ValueError
        If a record lacks ``x`` or ``y`` or has non-numeric coordinates.
    """
    out: list[Point] = []
    for index, record in enumerate(records):
        if "x" not in record or "y" not in record:
            raise ValueError(f"Record {index} must contain x and y fields.")
        attrs = {k: v for k, v in record.items() if k not in ("id", "x", "y")}
        out.append(Point(str(record.get("id", index)), record["x"], record["y"], attrs))
    return out
