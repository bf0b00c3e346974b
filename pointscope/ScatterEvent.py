"""Notification payloads published to the host UI.

This module defines the immutable structures emitted by
:class:`~pointscope.scatter_selection.SelectionController` and
:class:`~pointscope.ScatterExplorer.ScatterExplorer` hooks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple


@dataclass(frozen=True)
class SelectionChangedEvent:
    """Selection mutation notification.

    Parameters
    ----------
    selected : frozenset[str]
        The SelectionSet after the mutation (point ids only).
    previous : frozenset[str]
        The SelectionSet before the mutation.
    reason : str
        What caused the mutation: ``"click"``, ``"box"``, ``"polygon"``,
        ``"clear"``, ``"prune"`` or ``"programmatic"``.

    Notes
    -----
    Events are delivered synchronously, before the mutating call returns.

    Examples
    --------
    >>> SelectionChangedEvent(selected=frozenset({"a"}), previous=frozenset(), reason="click")  # doctest: +SKIP
    """

    selected: FrozenSet[str]
    previous: FrozenSet[str]
    reason: str

    @property
    def added(self) -> FrozenSet[str]:
        return self.selected - self.previous

    @property
    def removed(self) -> FrozenSet[str]:
        return self.previous - self.selected


@dataclass(frozen=True)
class HoverEvent:
    """Hover notification with a suggested tooltip anchor.

    Parameters
    ----------
    entity_id : str or None
        Hovered entity (point id or cluster id); ``None`` on hover-out.
    anchor : tuple[float, float] or None
        Screen position for a tooltip, slightly above the pointer.
    point_ids : tuple[str, ...]
        Point ids represented by the entity (one for a plain point).
    """

    entity_id: Optional[str]
    anchor: Optional[Tuple[float, float]] = None
    point_ids: Tuple[str, ...] = ()
