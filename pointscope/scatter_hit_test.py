"""Resolve a pointer position to the nearest render entity."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np

from .scatter_clustering import Cluster
from .scatter_transform import CoordinateTransform

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class HitTester:
    """Nearest-centroid picking with a zoom-independent pixel tolerance.

    The pointer is mapped into data space with the inverse transform; the
    data-space offsets to each centroid are then scaled by the transform's
    pixels-per-unit factors, so ``tolerance_px`` is always measured in
    screen pixels regardless of zoom or axis scale.
    """

    def pick(
        self,
        screen_point: Sequence[float],
        candidates: Sequence[Cluster],
        tolerance_px: float,
        transform: CoordinateTransform,
    ) -> Optional[Cluster]:
        """Return the closest candidate within ``tolerance_px``, or ``None``.

        Ties go to the candidate that appears first in ``candidates``.
        """
        if not candidates:
            return None
        px, py = transform.to_data(screen_point)
        ppu_x, ppu_y = transform.pixels_per_unit
        cx = np.fromiter((c.x for c in candidates), dtype=float, count=len(candidates))
        cy = np.fromiter((c.y for c in candidates), dtype=float, count=len(candidates))
        dist = np.hypot((cx - px) * ppu_x, (cy - py) * ppu_y)
        best = int(np.argmin(dist))  # argmin returns the first minimum
        if dist[best] > tolerance_px:
            return None
        return candidates[best]

    def hit_test(
        self,
        screen_point: Sequence[float],
        candidates: Sequence[Cluster],
        tolerance_px: float,
        transform: CoordinateTransform,
    ) -> Optional[str]:
        """Return the id of the entity under ``screen_point``, or ``None``."""
        hit = self.pick(screen_point, candidates, tolerance_px, transform)
        if hit is None:
            return None
        logger.debug("hit %s at %s", hit.id, tuple(screen_point))
        return hit.id
