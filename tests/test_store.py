import pytest

from tractmap.geojson import parse_geojson
from tractmap.models import Viewport
from tractmap.store import RegionStore, draw_order


@pytest.fixture
def grid_regions(square_feature, feature_collection):
    # Four 1-degree squares laid out left to right with 1-degree gaps.
    features = [square_feature(f"R{idx}", idx * 2.0, 0.0, size=1.0, z=3 - idx) for idx in range(4)]
    return parse_geojson(feature_collection(*features), layer="grid")


def test_load_is_once_only(grid_regions):
    store = RegionStore("grid")

    assert store.load(grid_regions) is True
    assert store.load(grid_regions) is False
    assert len(store) == 4
    assert store.is_loaded


def test_load_rejects_duplicate_ids(grid_regions):
    store = RegionStore("grid")

    with pytest.raises(ValueError, match="Duplicate region id"):
        store.load([grid_regions[0], grid_regions[0]])


@pytest.mark.parametrize(
    "bounds,expected",
    [
        ((0.2, 0.2, 0.8, 0.8), ["R0"]),
        ((0.5, 0.5, 4.5, 0.7), ["R0", "R1", "R2"]),
        ((1.2, 0.2, 1.8, 0.8), []),
        ((-10.0, -10.0, 10.0, 10.0), ["R0", "R1", "R2", "R3"]),
        ((6.5, 0.9, 9.0, 3.0), ["R3"]),
        ((0.0, 5.0, 10.0, 6.0), []),
    ],
)
def test_regions_intersecting_matches_rectangle_overlap(grid_regions, bounds, expected):
    store = RegionStore("grid")
    store.load(grid_regions)

    visible = store.regions_intersecting(Viewport.from_bounds(*bounds))

    assert [region.name for region in visible] == expected


def test_regions_intersecting_is_repeatable(grid_regions):
    store = RegionStore("grid")
    store.load(grid_regions)
    viewport = Viewport.from_bounds(-1.0, -1.0, 5.0, 2.0)

    first = store.regions_intersecting(viewport)
    second = store.regions_intersecting(viewport)

    assert [r.region_id for r in first] == [r.region_id for r in second]
    # Insertion order, not z order.
    assert [r.name for r in first] == ["R0", "R1", "R2"]


def test_regions_intersecting_accepts_map_rect(grid_regions):
    store = RegionStore("grid")
    store.load(grid_regions)

    rect = grid_regions[1].map_rect

    assert [region.name for region in store.regions_intersecting(rect)] == ["R1"]


def test_get_by_id(grid_regions):
    store = RegionStore("grid")
    store.load(grid_regions)

    assert store.get("grid:2:0").name == "R2"
    assert store.get("grid:99:0") is None


def test_draw_order_is_stable_by_z(square_feature, feature_collection):
    regions = parse_geojson(
        feature_collection(
            square_feature("top", 0.0, 0.0, z=5),
            square_feature("base-a", 0.0, 0.0, z=1),
            square_feature("middle", 0.0, 0.0, z=3),
            square_feature("base-b", 0.0, 0.0, z=1),
        )
    )

    assert [region.name for region in draw_order(regions)] == ["base-a", "base-b", "middle", "top"]


def test_topmost_at_prefers_highest_z(square_feature, feature_collection):
    regions = parse_geojson(
        feature_collection(
            square_feature("Region", 0.0, 0.0, size=1.0, z=1),
            square_feature("Subdivision", 0.4, 0.4, size=0.2, z=3),
            square_feature("Neighborhood", 0.2, 0.2, size=0.6, z=2),
        )
    )
    store = RegionStore()
    store.load(regions)

    assert store.topmost_at(0.5, 0.5).name == "Subdivision"
    assert store.topmost_at(0.25, 0.25).name == "Neighborhood"
    assert store.topmost_at(0.05, 0.05).name == "Region"
    assert store.topmost_at(5.0, 5.0) is None
    assert [region.name for region in store.regions_at(0.5, 0.5)] == ["Region", "Subdivision", "Neighborhood"]


def test_topmost_at_ties_go_to_later_region(square_feature, feature_collection):
    store = RegionStore()
    store.load(
        parse_geojson(
            feature_collection(
                square_feature("first", 0.0, 0.0, z=2),
                square_feature("second", 0.0, 0.0, z=2),
            )
        )
    )

    assert store.topmost_at(0.005, 0.005).name == "second"
