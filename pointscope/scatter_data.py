"""Collaborator contracts for data and attribute styling.

Purpose
-------
The visualization core consumes two external collaborators:

- a :class:`DatasetProvider` supplying the ordered point list and reload
  notifications,
- an :class:`AttributeStyleProvider` supplying per-point color and
  visibility (attribute filtering).

This module declares both as ``typing.Protocol`` contracts and ships small
in-memory reference implementations, :class:`InMemoryDataset` and
:class:`AttributeColorizer`, good enough for notebooks and tests. File
import, query parsing and preference storage stay outside the core.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Callable, Dict, Hashable, List, Optional, Protocol, Sequence, runtime_checkable

import numpy as np
from plotly import colors as plotly_colors

from .points import Point, points_from_records

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

CATEGORY_COLORS: tuple[str, ...] = (
    "#4a9eff",
    "#ff6b6b",
    "#4ecdc4",
    "#45b7d1",
    "#f7b731",
    "#5f27cd",
    "#00d2d3",
    "#ff9ff3",
    "#54a0ff",
    "#48dbfb",
)
DEFAULT_COLOR = CATEGORY_COLORS[0]
_RAMP_SIZE = 256


@runtime_checkable
class DatasetProvider(Protocol):
    """Source of the current ordered point list."""

    def points(self) -> Sequence[Point]: ...

    def subscribe(self, callback: Callable[[Sequence[Point]], Any]) -> Hashable: ...

    def unsubscribe(self, handle: Hashable) -> None: ...


@runtime_checkable
class AttributeStyleProvider(Protocol):
    """Per-point render color and visibility."""

    def color_of(self, point: Point) -> str: ...

    def is_visible(self, point: Point) -> bool: ...

    def subscribe(self, callback: Callable[[], Any]) -> Hashable: ...

    def unsubscribe(self, handle: Hashable) -> None: ...


class _Subscribers:
    """Minimal ordered callback registry shared by the reference providers."""

    def __init__(self, prefix: str) -> None:
        self._prefix = prefix
        self._callbacks: Dict[Hashable, Callable[..., Any]] = {}
        self._counter = 0

    def add(self, callback: Callable[..., Any]) -> Hashable:
        self._counter += 1
        handle = f"{self._prefix}:{self._counter}"
        self._callbacks[handle] = callback
        return handle

    def remove(self, handle: Hashable) -> None:
        self._callbacks.pop(handle, None)

    def notify(self, *args: Any) -> None:
        for handle, callback in list(self._callbacks.items()):
            try:
                callback(*args)
            except Exception:
                logger.exception("Subscriber %r failed", handle)


class InMemoryDataset:
    """A dataset held in memory; :meth:`replace` models a reload.

    Raises
    ------
    ValueError
        If two points share an id.
    """

    def __init__(self, points: Iterable[Point] = ()) -> None:
        self._points: List[Point] = self._validated(points)
        self._subscribers = _Subscribers("dataset")

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "InMemoryDataset":
        """Build a dataset from mappings with ``x``, ``y`` and optional ``id`` keys."""
        return cls(points_from_records(records))

    @staticmethod
    def _validated(points: Iterable[Point]) -> List[Point]:
        out = list(points)
        seen: set[str] = set()
        for p in out:
            if p.id in seen:
                raise ValueError(f"Duplicate point id: {p.id!r}")
            seen.add(p.id)
        return out

    def points(self) -> Sequence[Point]:
        return tuple(self._points)

    def __len__(self) -> int:
        return len(self._points)

    def replace(self, points: Iterable[Point]) -> None:
        """Replace every point and notify subscribers synchronously."""
        self._points = self._validated(points)
        logger.info("dataset replaced: %d points", len(self._points))
        self._subscribers.notify(self.points())

    def subscribe(self, callback: Callable[[Sequence[Point]], Any]) -> Hashable:
        return self._subscribers.add(callback)

    def unsubscribe(self, handle: Hashable) -> None:
        self._subscribers.remove(handle)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    try:
        float(str(value).strip())
    except ValueError:
        return False
    return str(value).strip() != ""


class AttributeColorizer:
    """Color points by one attribute and filter them by category.

    Parameters
    ----------
    color_field : str or None
        Attribute to color by. ``None`` paints every point ``DEFAULT_COLOR``.
    palette : Sequence[str]
        Categorical palette, cycled in order of first appearance.
    colorscale : str
        Name of the Plotly sequential colorscale used for numeric fields.

    Notes
    -----
    Call :meth:`fit` with the current points whenever the dataset or color
    field changes. A field is numeric when every present value parses as a
    number, categorical otherwise.
    """

    def __init__(
        self,
        color_field: Optional[str] = "category",
        *,
        palette: Sequence[str] = CATEGORY_COLORS,
        colorscale: str = "Viridis",
    ) -> None:
        self._color_field = color_field
        self._palette = tuple(palette)
        self._colorscale = colorscale
        self._field_type = "categorical"
        self._category_colors: Dict[Any, str] = {}
        self._numeric_range = (0.0, 0.0)
        self._ramp: list[str] = []
        self._hidden_categories: set[Any] = set()
        self._predicate: Optional[Callable[[Point], bool]] = None
        self._subscribers = _Subscribers("style")

    @property
    def color_field(self) -> Optional[str]:
        return self._color_field

    @property
    def field_type(self) -> str:
        """``"numeric"`` or ``"categorical"`` for the fitted color field."""
        return self._field_type

    @property
    def categories(self) -> list[Any]:
        return list(self._category_colors)

    def fit(self, points: Sequence[Point]) -> None:
        """Derive the color mapping from ``points``."""
        field = self._color_field
        self._category_colors = {}
        if field is None:
            self._field_type = "categorical"
            return
        values = [p.get(field) for p in points if p.get(field) is not None]
        if values and all(_is_number(v) for v in values):
            nums = [float(v) for v in values]
            self._field_type = "numeric"
            self._numeric_range = (min(nums), max(nums))
            if not self._ramp:
                self._ramp = plotly_colors.sample_colorscale(
                    self._colorscale, np.linspace(0.0, 1.0, _RAMP_SIZE).tolist()
                )
            return
        self._field_type = "categorical"
        for value in values:
            if value not in self._category_colors:
                self._category_colors[value] = self._palette[len(self._category_colors) % len(self._palette)]

    def set_color_field(self, field: Optional[str], points: Sequence[Point]) -> None:
        """Switch the color field, refit and reset category filters."""
        self._color_field = field
        self._hidden_categories.clear()
        self.fit(points)
        self._subscribers.notify()

    def legend(self) -> list[tuple[str, str]]:
        """Return ``(label, color)`` rows for the current mapping."""
        if self._field_type == "numeric":
            lo, hi = self._numeric_range
            return [(f"{lo:.2f}", self._ramp[0]), (f"{hi:.2f}", self._ramp[-1])]
        return [(str(k), c) for k, c in self._category_colors.items()]

    def color_of(self, point: Point) -> str:
        field = self._color_field
        if field is None:
            return DEFAULT_COLOR
        value = point.get(field)
        if value is None:
            return DEFAULT_COLOR
        if self._field_type == "numeric":
            lo, hi = self._numeric_range
            t = 0.0 if hi - lo <= 0 else (float(value) - lo) / (hi - lo)
            t = min(1.0, max(0.0, t))
            return self._ramp[int(round(t * (_RAMP_SIZE - 1)))]
        color = self._category_colors.get(value)
        if color is None:
            color = self._palette[len(self._category_colors) % len(self._palette)]
            self._category_colors[value] = color
        return color

    # --- Filtering ---

    def set_category_visible(self, category: Any, visible: bool) -> None:
        """Show or hide every point whose color-field value is ``category``."""
        if visible:
            self._hidden_categories.discard(category)
        else:
            self._hidden_categories.add(category)
        self._subscribers.notify()

    def set_filter(self, predicate: Optional[Callable[[Point], bool]]) -> None:
        """Install an extra visibility predicate (e.g. a parsed attribute query)."""
        self._predicate = predicate
        self._subscribers.notify()

    def is_visible(self, point: Point) -> bool:
        if self._hidden_categories and self._color_field is not None:
            if point.get(self._color_field) in self._hidden_categories:
                return False
        if self._predicate is not None:
            return bool(self._predicate(point))
        return True

    def subscribe(self, callback: Callable[[], Any]) -> Hashable:
        return self._subscribers.add(callback)

    def unsubscribe(self, handle: Hashable) -> None:
        self._subscribers.remove(handle)
