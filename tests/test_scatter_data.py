from __future__ import annotations

import logging

import pytest

from pointscope.points import DataBounds, Point, points_from_records
from pointscope.scatter_data import (
    CATEGORY_COLORS,
    DEFAULT_COLOR,
    AttributeColorizer,
    AttributeStyleProvider,
    DatasetProvider,
    InMemoryDataset,
)


def test_reference_providers_satisfy_protocols() -> None:
    assert isinstance(InMemoryDataset(), DatasetProvider)
    assert isinstance(AttributeColorizer(), AttributeStyleProvider)


def test_from_records_uses_row_index_for_missing_ids() -> None:
    ds = InMemoryDataset.from_records(
        [{"x": 1, "y": 2, "category": "a"}, {"id": "named", "x": "0.5", "y": "1/4"}]
    )
    first, second = ds.points()
    assert first.id == "0"
    assert first.attributes == {"category": "a"}
    assert second.id == "named"
    assert (second.x, second.y) == (0.5, 0.25)


def test_records_without_coordinates_are_rejected() -> None:
    with pytest.raises(ValueError, match="x and y"):
        points_from_records([{"id": "a", "x": 1}])


def test_point_rejects_non_finite_coordinates() -> None:
    with pytest.raises(ValueError, match="non-finite"):
        Point("a", float("nan"), 0.0)
    with pytest.raises(ValueError):
        Point("b", "oo", 0.0)


def test_point_attributes_are_read_only() -> None:
    p = Point("a", 0, 0, {"k": 1})
    with pytest.raises(TypeError):
        p.attributes["k"] = 2  # type: ignore[index]
    assert p.get("x") == 0.0 and p.get("k") == 1 and p.get("missing", "d") == "d"


def test_bounds_of_empty_dataset_is_zero_box() -> None:
    assert DataBounds.of([]) == DataBounds(0.0, 0.0, 0.0, 0.0)
    b = DataBounds.of([Point("a", -1, 3), Point("b", 2, -4)])
    assert (b.min_x, b.min_y, b.max_x, b.max_y) == (-1.0, -4.0, 2.0, 3.0)


def test_duplicate_ids_raise() -> None:
    with pytest.raises(ValueError, match="Duplicate"):
        InMemoryDataset([Point("a", 0, 0), Point("a", 1, 1)])


def test_replace_notifies_subscribers_and_isolates_failures(caplog) -> None:
    ds = InMemoryDataset([Point("a", 0, 0)])
    received: list = []

    def broken(_points):
        raise RuntimeError("boom")

    ds.subscribe(broken)
    handle = ds.subscribe(received.append)
    with caplog.at_level(logging.ERROR, logger="pointscope.scatter_data"):
        ds.replace([Point("b", 1, 1), Point("c", 2, 2)])
    assert [p.id for p in received[0]] == ["b", "c"]
    assert "Subscriber" in caplog.text

    ds.unsubscribe(handle)
    ds.replace([])
    assert len(received) == 1


def test_categorical_colors_follow_palette_in_first_seen_order() -> None:
    pts = [Point(str(i), 0, 0, {"category": c}) for i, c in enumerate(["b", "a", "b", "c"])]
    colorizer = AttributeColorizer("category")
    colorizer.fit(pts)
    assert colorizer.field_type == "categorical"
    assert colorizer.categories == ["b", "a", "c"]
    assert colorizer.color_of(pts[0]) == CATEGORY_COLORS[0]
    assert colorizer.color_of(pts[1]) == CATEGORY_COLORS[1]
    assert colorizer.legend()[2] == ("c", CATEGORY_COLORS[2])


def test_missing_field_falls_back_to_default_color() -> None:
    colorizer = AttributeColorizer("category")
    colorizer.fit([Point("a", 0, 0)])
    assert colorizer.color_of(Point("a", 0, 0)) == DEFAULT_COLOR
    assert AttributeColorizer(None).color_of(Point("a", 0, 0)) == DEFAULT_COLOR


def test_numeric_field_uses_sequential_scale() -> None:
    pts = [Point(str(i), 0, 0, {"score": v}) for i, v in enumerate([0.0, 5.0, "10"])]
    colorizer = AttributeColorizer("score")
    colorizer.fit(pts)
    assert colorizer.field_type == "numeric"
    low, mid, high = (colorizer.color_of(p) for p in pts)
    assert len({low, mid, high}) == 3
    assert colorizer.legend() == [("0.00", low), ("10.00", high)]


def test_category_filter_hides_points_and_notifies() -> None:
    pts = [Point("a", 0, 0, {"category": "x"}), Point("b", 0, 0, {"category": "y"})]
    colorizer = AttributeColorizer()
    colorizer.fit(pts)
    notified: list = []
    colorizer.subscribe(lambda: notified.append(True))

    colorizer.set_category_visible("y", False)
    assert [p.id for p in pts if colorizer.is_visible(p)] == ["a"]
    colorizer.set_category_visible("y", True)
    assert all(colorizer.is_visible(p) for p in pts)
    assert len(notified) == 2


def test_predicate_filter() -> None:
    colorizer = AttributeColorizer()
    colorizer.set_filter(lambda p: p.x > 0)
    assert not colorizer.is_visible(Point("a", 0, 0))
    assert colorizer.is_visible(Point("b", 1, 0))
    colorizer.set_filter(None)
    assert colorizer.is_visible(Point("a", 0, 0))


def test_set_color_field_refits_and_resets_filters() -> None:
    pts = [Point("a", 0, 0, {"category": "x", "kind": "k1"})]
    colorizer = AttributeColorizer()
    colorizer.fit(pts)
    colorizer.set_category_visible("x", False)
    colorizer.set_color_field("kind", pts)
    assert colorizer.color_field == "kind"
    assert colorizer.categories == ["k1"]
    assert colorizer.is_visible(pts[0])
