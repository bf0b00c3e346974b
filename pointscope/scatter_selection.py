"""Selection state machine and the owned SelectionSet.

Purpose
-------
``SelectionController`` turns pointer input into a set of selected point
ids. It supports three modes:

- ``click``: toggle the entity under the pointer,
- ``box``: drag a rectangle; release replaces the selection,
- ``polygon``: click vertices of a lasso; closing it replaces the selection.

Concepts and structure
----------------------
The controller never owns geometry. Each gesture asks a *scene provider*
for the current :class:`SelectionScene` (transform, visible entities,
visible points), so every decision is made against the frame the user is
looking at. Box and polygon tests happen entirely in screen space.

Gesture state is one of :class:`Idle`, :class:`BoxDragging` or
:class:`PolygonDrawing`. Mode switches, ``cancel()`` and dataset reloads
drop in-progress state without touching the selection.

Important gotchas
-----------------
- Cluster hits expand to member point ids; the selection never stores a
  cluster id.
- Every mutation notifies hooks synchronously, before returning.
- Unknown modes are rejected with a warning and the current mode is kept.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Hashable, Iterable, List, Optional, Sequence, Union

import numpy as np

from .ScatterEvent import SelectionChangedEvent
from .geometry import Vec2, as_vec, distance, normalize_rect, polygon_mask, rect_mask
from .points import Point
from .scatter_clustering import Cluster
from .scatter_hit_test import HitTester
from .scatter_transform import CoordinateTransform

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class SelectionMode(str, Enum):
    """Active selection tool."""

    CLICK = "click"
    BOX = "box"
    POLYGON = "polygon"


# Names used by earlier toolbar iterations.
_MODE_ALIASES = {"select": SelectionMode.BOX, "lasso": SelectionMode.POLYGON}


def parse_mode(value: Union[str, SelectionMode]) -> SelectionMode:
    """Normalize ``value`` to a :class:`SelectionMode`.

    Raises
    ------
    ValueError
        If ``value`` names no known mode.
    """
    if isinstance(value, SelectionMode):
        return value
    key = str(value).strip().lower()
    if key in _MODE_ALIASES:
        return _MODE_ALIASES[key]
    return SelectionMode(key)


@dataclass(frozen=True)
class Idle:
    """No gesture in progress."""


@dataclass
class BoxDragging:
    """Rectangle drag between ``start`` and ``current`` (screen pixels)."""

    start: Vec2
    current: Vec2


@dataclass
class PolygonDrawing:
    """Lasso under construction; vertices are screen pixels."""

    vertices: List[Vec2] = field(default_factory=list)
    closed: bool = False


ToolState = Union[Idle, BoxDragging, PolygonDrawing]


@dataclass(frozen=True)
class SelectionScene:
    """What the user currently sees, as needed by selection gestures.

    Parameters
    ----------
    transform : CoordinateTransform
        Transform of the current frame.
    entities : Sequence[Cluster]
        Visible render entities (hit-test candidates).
    points : Sequence[Point]
        Visible points (box/polygon candidates).
    """

    transform: CoordinateTransform
    entities: Sequence[Cluster]
    points: Sequence[Point]


def points_in_rect(scene: SelectionScene, corner_a: Sequence[float], corner_b: Sequence[float]) -> List[str]:
    """Return ids of scene points whose screen position lies in the rectangle (inclusive)."""
    if not scene.points:
        return []
    xs, ys = _screen_positions(scene)
    mask = rect_mask(xs, ys, normalize_rect(corner_a, corner_b))
    return [p.id for p, keep in zip(scene.points, mask.tolist()) if keep]


def points_in_polygon(scene: SelectionScene, vertices: Sequence[Sequence[float]]) -> List[str]:
    """Return ids of scene points whose screen position lies inside ``vertices``."""
    if not scene.points or len(vertices) < 3:
        return []
    xs, ys = _screen_positions(scene)
    mask = polygon_mask(xs, ys, vertices)
    return [p.id for p, keep in zip(scene.points, mask.tolist()) if keep]


def _screen_positions(scene: SelectionScene) -> tuple[np.ndarray, np.ndarray]:
    n = len(scene.points)
    xs = np.fromiter((p.x for p in scene.points), dtype=float, count=n)
    ys = np.fromiter((p.y for p in scene.points), dtype=float, count=n)
    return scene.transform.to_screen_array(xs, ys)


class SelectionController:
    """Own the selection mode, the gesture state and the SelectionSet.

    Parameters
    ----------
    scene_provider : Callable[[], SelectionScene]
        Returns the scene of the current frame; called once per gesture step.
    mode : str or SelectionMode, default="click"
        Initial mode.
    tolerance_px : float
        Click pick radius in screen pixels.
    close_radius_px : float
        Clicking this close to the first polygon vertex closes the polygon.
    hit_tester : HitTester, optional
        Picking strategy; a default :class:`HitTester` is used when omitted.

    Raises
    ------
    ValueError
        If ``mode`` is not a known selection mode.
    """

    def __init__(
        self,
        scene_provider: Callable[[], SelectionScene],
        *,
        mode: Union[str, SelectionMode] = SelectionMode.CLICK,
        tolerance_px: float = 9.0,
        close_radius_px: float = 15.0,
        hit_tester: Optional[HitTester] = None,
    ) -> None:
        self._scene_provider = scene_provider
        self._mode = parse_mode(mode)
        self._state: ToolState = Idle()
        self._selected: FrozenSet[str] = frozenset()
        self._tolerance_px = float(tolerance_px)
        self._close_radius_px = float(close_radius_px)
        self._hit_tester = hit_tester if hit_tester is not None else HitTester()
        self._hooks: Dict[Hashable, Callable[[SelectionChangedEvent], Any]] = {}
        self._hook_counter = 0

    # --- Properties ---

    @property
    def mode(self) -> SelectionMode:
        return self._mode

    @property
    def state(self) -> ToolState:
        """Current gesture state (read-only view; do not mutate)."""
        return self._state

    @property
    def selected(self) -> FrozenSet[str]:
        """The SelectionSet."""
        return self._selected

    # --- Hooks ---

    def add_hook(
        self, callback: Callable[[SelectionChangedEvent], Any], hook_id: Optional[Hashable] = None
    ) -> Hashable:
        """Register a selection-changed hook and return its id."""
        if hook_id is None:
            self._hook_counter += 1
            hook_id = f"selection_hook:{self._hook_counter}"
        self._hooks[hook_id] = callback
        return hook_id

    def remove_hook(self, hook_id: Hashable) -> None:
        """Unregister ``hook_id`` (missing ids are ignored)."""
        self._hooks.pop(hook_id, None)

    def _commit(self, ids: Iterable[str], reason: str) -> None:
        previous = self._selected
        self._selected = frozenset(ids)
        event = SelectionChangedEvent(selected=self._selected, previous=previous, reason=reason)
        logger.debug("selection %s: %d -> %d ids", reason, len(previous), len(self._selected))
        for hook_id, callback in list(self._hooks.items()):
            try:
                callback(event)
            except Exception:
                logger.exception("Selection hook %r failed", hook_id)

    # --- Mode / gesture control ---

    def set_mode(self, mode: Union[str, SelectionMode]) -> bool:
        """Switch mode, discarding any in-progress gesture.

        Returns
        -------
        bool
            False when ``mode`` is unknown; the previous mode is kept.
        """
        try:
            new_mode = parse_mode(mode)
        except ValueError:
            logger.warning("Rejected unknown selection mode %r; keeping %s", mode, self._mode.value)
            return False
        self._state = Idle()
        self._mode = new_mode
        return True

    def cancel_gesture(self) -> None:
        """Drop in-progress box/polygon state; the selection is untouched."""
        self._state = Idle()

    def cancel(self) -> None:
        """Explicit "cancel" command (same as :meth:`cancel_gesture`)."""
        self.cancel_gesture()

    # --- Pointer input ---

    def pointer_down(self, screen_point: Sequence[float]) -> None:
        if self._mode is SelectionMode.BOX:
            pt = as_vec(screen_point)
            self._state = BoxDragging(start=pt, current=pt)

    def pointer_move(self, screen_point: Sequence[float]) -> None:
        if isinstance(self._state, BoxDragging):
            self._state.current = as_vec(screen_point)

    def pointer_up(self, screen_point: Sequence[float]) -> None:
        if not isinstance(self._state, BoxDragging):
            return
        start = self._state.start
        end = as_vec(screen_point)
        self._state = Idle()
        self._commit(points_in_rect(self._scene_provider(), start, end), "box")

    def click(self, screen_point: Sequence[float]) -> None:
        if self._mode is SelectionMode.CLICK:
            self._click_toggle(as_vec(screen_point))
        elif self._mode is SelectionMode.POLYGON:
            self._add_vertex(as_vec(screen_point))

    def double_click(self, screen_point: Sequence[float]) -> None:
        if self._mode is SelectionMode.POLYGON:
            self.finish()

    def _click_toggle(self, pt: Vec2) -> None:
        scene = self._scene_provider()
        hit = self._hit_tester.pick(pt, scene.entities, self._tolerance_px, scene.transform)
        if hit is None:
            return
        self.toggle_entity(hit)

    def toggle_entity(self, entity: Cluster) -> None:
        """Toggle all member ids of ``entity``.

        If every member is already selected they are all removed, otherwise
        all are added.
        """
        ids = set(entity.point_ids)
        if ids <= self._selected:
            self._commit(self._selected - ids, "click")
        else:
            self._commit(self._selected | ids, "click")

    def _add_vertex(self, pt: Vec2) -> None:
        if not isinstance(self._state, PolygonDrawing):
            self._state = PolygonDrawing()
        vertices = self._state.vertices
        if len(vertices) >= 3 and distance(pt, vertices[0]) <= self._close_radius_px:
            self._state.closed = True
            self.finish()
            return
        vertices.append(pt)

    def finish(self) -> bool:
        """Finalize the polygon when it has at least three vertices.

        Returns
        -------
        bool
            True if a selection was committed.
        """
        state = self._state
        if not isinstance(state, PolygonDrawing) or len(state.vertices) < 3:
            return False
        state.closed = True
        vertices = list(state.vertices)
        self._state = Idle()
        self._commit(points_in_polygon(self._scene_provider(), vertices), "polygon")
        return True

    # --- Direct selection edits ---

    def clear(self) -> None:
        """Empty the selection."""
        self._commit((), "clear")

    def select_ids(self, ids: Iterable[str]) -> None:
        """Replace the selection with ``ids`` restricted to visible points."""
        known = {p.id for p in self._scene_provider().points}
        self._commit((i for i in ids if i in known), "programmatic")

    def prune(self, valid_ids: Iterable[str]) -> bool:
        """Drop selected ids not in ``valid_ids``.

        Returns
        -------
        bool
            True if anything was removed (and a notification sent).
        """
        kept = self._selected.intersection(valid_ids)
        if kept == self._selected:
            return False
        self._commit(kept, "prune")
        return True
