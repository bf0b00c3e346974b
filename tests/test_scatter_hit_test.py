from __future__ import annotations

import logging

from pointscope.points import DataBounds, Point
from pointscope.scatter_clustering import Cluster
from pointscope.scatter_hit_test import HitTester
from pointscope.scatter_transform import CoordinateTransform

BOUNDS = DataBounds(0.0, 0.0, 4.0, 4.0)  # 100 px per unit at zoom 1


def _entities(*coords: tuple[float, float]) -> list[Cluster]:
    return [Cluster.singleton(Point(f"p{i}", x, y)) for i, (x, y) in enumerate(coords)]


def _transform(zoom: float = 1.0) -> CoordinateTransform:
    return CoordinateTransform(bounds=BOUNDS, canvas_width=500, canvas_height=500, zoom=zoom)


def test_hit_returns_nearest_within_tolerance() -> None:
    entities = _entities((1.0, 1.0), (1.05, 1.0))
    t = _transform()
    # screen of p0 = (150, 150), p1 = (155, 150)
    assert HitTester().hit_test((156.0, 150.0), entities, 9.0, t) == "p1"
    assert HitTester().hit_test((149.0, 151.0), entities, 9.0, t) == "p0"


def test_miss_outside_tolerance_returns_none() -> None:
    entities = _entities((1.0, 1.0))
    assert HitTester().hit_test((160.0, 150.0), entities, 9.0, _transform()) is None


def test_empty_candidates_return_none() -> None:
    assert HitTester().pick((0.0, 0.0), [], 9.0, _transform()) is None


def test_ties_go_to_first_candidate() -> None:
    entities = _entities((1.0, 1.0), (1.0, 1.0))
    assert HitTester().hit_test((150.0, 150.0), entities, 9.0, _transform()) == "p0"


def test_tolerance_is_measured_in_screen_pixels_at_any_zoom() -> None:
    entities = _entities((2.0, 2.0))  # canvas centre at every zoom
    tester = HitTester()
    for zoom in (0.2, 1.0, 5.0):
        t = _transform(zoom)
        assert tester.hit_test((258.0, 250.0), entities, 9.0, t) == "p0"
        assert tester.hit_test((260.0, 250.0), entities, 9.0, t) is None


def test_hit_is_logged_at_debug_level(caplog) -> None:
    entities = _entities((1.0, 1.0))
    with caplog.at_level(logging.DEBUG, logger="pointscope.scatter_hit_test"):
        HitTester().hit_test((150.0, 150.0), entities, 9.0, _transform())
    assert "hit p0" in caplog.text
