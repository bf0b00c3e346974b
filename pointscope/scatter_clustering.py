"""Grid clustering of points for render-time performance.

Purpose
-------
When many points are shown zoomed far out, ``ClusteringEngine`` merges the
points of each fixed-size grid cell into one synthetic :class:`Cluster`.
Otherwise every point becomes a singleton cluster, so hit-testing and
selection always operate on a single entity type.

Architecture notes
------------------
- Cells are measured in the normalized canvas space produced by the base
  scaling of :class:`~pointscope.scatter_transform.CoordinateTransform`,
  before zoom and pan. Cell geometry therefore never depends on zoom; zoom
  only decides *whether* to cluster.
- Cluster ids derive from cell coordinates (``cluster_<cx>_<cy>``), so the
  same cell produces the same id on every frame at a fixed zoom. Identity
  across recomputation is otherwise not guaranteed.
- Centroids are running means of member *data* positions; since base
  scaling is affine this is the same point as the mean of their screen
  positions.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence, Tuple

import numpy as np

from .geometry import Vec2
from .points import Point
from .scatter_transform import CoordinateTransform
from .scatter_view import Viewport


@dataclass
class Cluster:
    """A render/selection entity standing in for one or more points."""

    id: str
    x: float
    y: float
    members: List[Point] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.members)

    @property
    def centroid(self) -> Vec2:
        return Vec2(self.x, self.y)

    @property
    def point_ids(self) -> List[str]:
        return [p.id for p in self.members]

    def add(self, point: Point) -> None:
        """Add ``point`` and update the centroid incrementally."""
        self.members.append(point)
        n = len(self.members)
        self.x = (self.x * (n - 1) + point.x) / n
        self.y = (self.y * (n - 1) + point.y) / n

    @classmethod
    def singleton(cls, point: Point) -> "Cluster":
        return cls(id=point.id, x=point.x, y=point.y, members=[point])


class ClusteringEngine:
    """Turn a point list into render entities for the current viewport.

    Parameters
    ----------
    canvas_size : tuple[float, float]
        Canvas size used for the base scaling of cell coordinates.
    zoom_threshold : float
        Clustering happens only when ``zoom <= zoom_threshold``.
    min_points : int
        Clustering happens only with at least this many points.
    grid_size : float
        Cell edge length in normalized canvas units.
    padding_fraction : float
        Base-scaling padding, matching the explorer transform.
    """

    def __init__(
        self,
        *,
        canvas_size: Tuple[float, float] = (500.0, 500.0),
        zoom_threshold: float = 0.5,
        min_points: int = 100,
        grid_size: float = 50.0,
        padding_fraction: float = 0.1,
    ) -> None:
        if grid_size <= 0:
            raise ValueError("grid_size must be > 0")
        self.canvas_size = (float(canvas_size[0]), float(canvas_size[1]))
        self.zoom_threshold = float(zoom_threshold)
        self.min_points = int(min_points)
        self.grid_size = float(grid_size)
        self.padding_fraction = float(padding_fraction)

    def should_cluster(self, point_count: int, zoom: float) -> bool:
        """Return True when ``point_count`` points at ``zoom`` need clustering."""
        return zoom <= self.zoom_threshold and point_count >= self.min_points

    def cluster(self, points: Sequence[Point], viewport: Viewport) -> List[Cluster]:
        """Group ``points`` into clusters for ``viewport``.

        Returns one singleton per point, in input order, unless
        :meth:`should_cluster` holds. Otherwise returns one cluster per
        occupied grid cell, ordered by first appearance of the cell.
        """
        if not self.should_cluster(len(points), viewport.zoom):
            return [Cluster.singleton(p) for p in points]

        base = CoordinateTransform.from_viewport(
            viewport, self.canvas_size, padding_fraction=self.padding_fraction
        )
        xs = np.fromiter((p.x for p in points), dtype=float, count=len(points))
        ys = np.fromiter((p.y for p in points), dtype=float, count=len(points))
        bx, by = base.to_base_array(xs, ys)
        cells_x = np.floor(bx / self.grid_size).astype(int)
        cells_y = np.floor(by / self.grid_size).astype(int)

        clusters: Dict[Tuple[int, int], Cluster] = {}
        for point, cx, cy in zip(points, cells_x.tolist(), cells_y.tolist()):
            key = (cx, cy)
            existing = clusters.get(key)
            if existing is None:
                clusters[key] = Cluster(
                    id=f"cluster_{cx}_{cy}", x=point.x, y=point.y, members=[point]
                )
            else:
                existing.add(point)
        return list(clusters.values())


def cluster_radius(cluster: Cluster, base_radius: float) -> float:
    """Marker radius for ``cluster``: grows with ``ln(count) + 1``, capped at 3x."""
    if cluster.count <= 1:
        return base_radius
    return min(base_radius * (math.log(cluster.count) + 1.0), base_radius * 3.0)


def dominant_color(cluster: Cluster, color_of: Callable[[Point], str]) -> str:
    """Return the most common member color (first encountered wins ties)."""
    if cluster.count == 1:
        return color_of(cluster.members[0])
    counts = Counter(color_of(p) for p in cluster.members)
    return counts.most_common(1)[0][0]
