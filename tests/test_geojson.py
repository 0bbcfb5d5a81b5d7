import json
import logging

import pytest

from tractmap.geojson import (
    load_regions_file,
    load_regions_report,
    parse_geojson,
    parse_geojson_report,
    parse_style,
)
from tractmap.models import DEFAULT_STYLE, Viewport
from tractmap.store import RegionStore


def _triangle_feature(properties):
    return {
        "type": "Feature",
        "properties": properties,
        "geometry": {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [0, 1], [0, 0]]]},
    }


def test_triangle_feature_yields_styled_region(feature_collection):
    data = feature_collection(
        _triangle_feature(
            {
                "LblVal": "A",
                "FillClrR": 0.2,
                "FillClrG": 0.3,
                "FillClrB": 0.4,
                "FillOp": 0.5,
                "StrkWt": 2,
                "StrkOp": 1,
                "StrkClr": "black",
                "Z": 3,
            }
        )
    )

    regions = parse_geojson(data, layer="test")

    assert len(regions) == 1
    region = regions[0]
    assert region.name == "A"
    assert region.style.fill_color == (0.2, 0.3, 0.4, 0.5)
    assert region.style.stroke_weight == 2.0
    assert region.style.stroke_opacity == 1.0
    assert region.style.stroke_color == "black"
    assert region.z_index == 3
    assert region.region_id == "test:0:0"
    # GeoJSON is lon/lat; regions store closed (lat, lon) rings.
    assert region.boundary == ((0.0, 0.0), (0.0, 1.0), (1.0, 0.0), (0.0, 0.0))


def test_multipolygon_yields_one_region_per_polygon(feature_collection):
    feature = {
        "type": "Feature",
        "properties": {"LblVal": "Islands", "Z": 2},
        "geometry": {
            "type": "MultiPolygon",
            "coordinates": [
                [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]],
                [[[2, 2], [3, 2], [3, 3], [2, 3], [2, 2]]],
                [[[5, 5], [6, 5], [6, 6], [5, 5]]],
            ],
        },
    }

    regions = parse_geojson(feature_collection(feature), layer="n")

    assert [region.region_id for region in regions] == ["n:0:0", "n:0:1", "n:0:2"]
    assert {region.name for region in regions} == {"Islands"}
    assert all(region.z_index == 2 for region in regions)


def test_polygon_holes_are_kept(feature_collection):
    feature = {
        "type": "Feature",
        "properties": {"LblVal": "Donut"},
        "geometry": {
            "type": "Polygon",
            "coordinates": [
                [[0, 0], [4, 0], [4, 4], [0, 4], [0, 0]],
                [[1, 1], [2, 1], [2, 2], [1, 2], [1, 1]],
            ],
        },
    }

    (region,) = parse_geojson(feature_collection(feature))

    assert len(region.holes) == 1
    assert region.holes[0][0] == region.holes[0][-1]


@pytest.mark.parametrize(
    "data",
    [
        b"not json at all",
        b"",
        b"\xff\xfe\x00garbage",
        json.dumps([1, 2, 3]),
        json.dumps({"type": "Topology"}),
        json.dumps({"type": "FeatureCollection", "features": "nope"}),
    ],
)
def test_unreadable_documents_yield_empty_result(data, caplog):
    with caplog.at_level(logging.ERROR, logger="tractmap.geojson"):
        regions = parse_geojson(data)

    assert regions == []
    assert caplog.records


def test_single_feature_document_is_accepted():
    data = json.dumps(_triangle_feature({"LblVal": "Solo"}))

    regions = parse_geojson(data)

    assert [region.name for region in regions] == ["Solo"]


def test_bad_features_are_skipped_and_rest_continue(feature_collection, square_feature):
    data = feature_collection(
        {"type": "Feature", "properties": {"LblVal": "Line"}, "geometry": {"type": "LineString", "coordinates": [[0, 0], [1, 1]]}},
        {"type": "Feature", "properties": {"LblVal": "Broken"}, "geometry": {"type": "Polygon", "coordinates": [[[0, 0]]]}},
        {"type": "Feature", "properties": {"LblVal": "NoGeometry"}, "geometry": None},
        "not a feature",
        square_feature("Good", 0.0, 0.0),
    )

    report = parse_geojson_report(data, layer="mixed")

    assert [region.name for region in report.regions] == ["Good"]
    assert report.features_seen == 5
    assert report.features_skipped == 4
    assert report.regions[0].region_id == "mixed:4:0"


def test_non_finite_coordinates_are_skipped(feature_collection, square_feature):
    bad = square_feature("Bad", 0.0, 0.0, size=1.0)
    bad["geometry"]["coordinates"] = [[[0, 0], [1, float("nan")], [1, 1], [0, 1], [0, 0]]]
    infinite = square_feature("Infinite", 0.0, 0.0)
    infinite["geometry"] = {
        "type": "MultiPolygon",
        "coordinates": [[[[0, 0], [float("inf"), 0], [1, 1], [0, 0]]]],
    }
    data = feature_collection(bad, infinite, square_feature("Good", 5.0, 5.0))
    assert "NaN" in data

    report = parse_geojson_report(data, layer="nan")
    store = RegionStore("nan")
    store.load(report.regions)

    assert [region.name for region in report.regions] == ["Good"]
    assert report.features_skipped == 2
    assert store.regions_intersecting(Viewport(center_lat=-60.0, center_lon=0.5, lat_delta=0.1, lon_delta=0.1)) == []


def test_non_finite_style_values_use_default_style(feature_collection, square_feature):
    (region,) = parse_geojson(
        feature_collection(square_feature("Odd", 0.0, 0.0, FillClrR=float("nan"), LblLat=float("nan"), LblLng=0.5))
    )

    assert region.style == DEFAULT_STYLE
    assert region.label_anchor is None


def test_multipolygon_parts_share_read_only_properties(feature_collection):
    feature = {
        "type": "Feature",
        "properties": {"LblVal": "Islands", "Extra": 1},
        "geometry": {
            "type": "MultiPolygon",
            "coordinates": [
                [[[0, 0], [1, 0], [1, 1], [0, 0]]],
                [[[2, 2], [3, 2], [3, 3], [2, 2]]],
            ],
        },
    }

    first, second = parse_geojson(feature_collection(feature))

    assert first.properties["Extra"] == 1
    with pytest.raises(TypeError):
        first.properties["Extra"] = 2  # type: ignore[index]
    assert second.properties["Extra"] == 1


@pytest.mark.parametrize("missing_key", ["StrkClr", "StrkWt", "StrkOp", "FillClrR", "FillClrG", "FillClrB", "FillOp"])
def test_missing_style_key_uses_default_style(missing_key, square_feature, feature_collection):
    feature = square_feature("Partial", 0.0, 0.0, z=4)
    del feature["properties"][missing_key]

    (region,) = parse_geojson(feature_collection(feature))

    assert region.style == DEFAULT_STYLE
    assert region.name == "Partial"
    assert region.z_index == 4


@pytest.mark.parametrize(
    "key,value",
    [("StrkWt", "2"), ("FillOp", None), ("FillClrR", True), ("StrkClr", 5), ("StrkClr", "  ")],
)
def test_wrongly_typed_style_key_uses_default_style(key, value, square_feature, feature_collection):
    feature = square_feature("Typed", 0.0, 0.0)
    feature["properties"][key] = value

    (region,) = parse_geojson(feature_collection(feature))

    assert region.style == DEFAULT_STYLE


def test_default_style_is_neutral_gray():
    assert DEFAULT_STYLE.fill_color == (0.5, 0.5, 0.5, 0.5)
    assert DEFAULT_STYLE.stroke_color == "black"
    assert DEFAULT_STYLE.stroke_weight == 1.0


@pytest.mark.parametrize("properties", [None, [], "LblVal=A"])
def test_unusable_property_bag_keeps_region_with_defaults(properties, feature_collection):
    feature = _triangle_feature(properties)

    (region,) = parse_geojson(feature_collection(feature))

    assert region.name is None
    assert region.label_anchor is None
    assert region.style == DEFAULT_STYLE
    assert region.z_index == 0


def test_label_anchor_and_font_size(square_feature, feature_collection):
    feature = square_feature("Anchored", 0.0, 0.0, LblLat=0.005, LblLng=0.004, FntSiz=12)

    (region,) = parse_geojson(feature_collection(feature))

    assert region.label_anchor == (0.005, 0.004)
    assert region.label_point == (0.005, 0.004)
    assert region.font_size == 12.0


def test_partial_label_anchor_is_absent(square_feature, feature_collection):
    feature = square_feature("Half", 0.0, 0.0, LblLat=0.005)

    (region,) = parse_geojson(feature_collection(feature))

    assert region.label_anchor is None
    assert region.label_point == pytest.approx((0.005, 0.005))


@pytest.mark.parametrize("z,expected", [(7, 7), (7.0, 7), (7.5, 0), ("7", 0), (True, 0)])
def test_z_index_parsing(z, expected, square_feature, feature_collection):
    (region,) = parse_geojson(feature_collection(square_feature("Z", 0.0, 0.0, z=z)))

    assert region.z_index == expected


def test_parse_style_reads_back_exact_values():
    properties = {
        "StrkClr": "darkgray",
        "StrkWt": 1.75,
        "StrkOp": 0.6,
        "FillClrR": 0.125,
        "FillClrG": 0.375,
        "FillClrB": 0.9,
        "FillOp": 0.33,
        "Unrelated": "ignored",
    }

    style = parse_style(properties)

    assert style.fill_color == (0.125, 0.375, 0.9, 0.33)
    assert style.stroke_color == "darkgray"
    assert style.stroke_weight == 1.75
    assert style.stroke_opacity == 0.6


def test_load_regions_file_missing_path_is_empty(tmp_path, caplog):
    with caplog.at_level(logging.ERROR, logger="tractmap.geojson"):
        regions = load_regions_file(tmp_path / "missing.geojson")

    assert regions == []
    assert "not found" in caplog.text


def test_load_regions_report_uses_file_stem_as_layer(tmp_path, square_feature, feature_collection):
    path = tmp_path / "subdivisions.geojson"
    path.write_text(feature_collection(square_feature("S", 1.0, 1.0)), encoding="utf-8")

    report = load_regions_report(path)

    assert report.ok
    assert report.layer == "subdivisions"
    assert report.regions[0].layer == "subdivisions"
