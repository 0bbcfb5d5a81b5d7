"""GeoJSON tract file loading.

Loading is best effort: a bad feature is logged and skipped, a bad property
bag falls back to the default style, and an unreadable file yields no
regions. Nothing in this module raises for bad input data.
"""

from __future__ import annotations

import json
import logging
import math
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Mapping, Sequence

from .geo import map_rect_for_lat_lon
from .models import DEFAULT_STYLE, Region, RegionStyle

_LOGGER = logging.getLogger("tractmap.geojson")

LABEL_KEY = "LblVal"
LABEL_LAT_KEY = "LblLat"
LABEL_LNG_KEY = "LblLng"
STROKE_COLOR_KEY = "StrkClr"
STROKE_WEIGHT_KEY = "StrkWt"
STROKE_OPACITY_KEY = "StrkOp"
FILL_KEYS = ("FillClrR", "FillClrG", "FillClrB", "FillOp")
Z_KEY = "Z"
FONT_SIZE_KEY = "FntSiz"

SUPPORTED_GEOMETRIES = ("Polygon", "MultiPolygon")


@dataclass(slots=True)
class LoadResult:
    """Regions from one file plus the counters shown by `validate`/`inspect`."""

    layer: str
    regions: list[Region] = field(default_factory=list)
    features_seen: int = 0
    features_skipped: int = 0
    default_styled: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_geojson(data: bytes | str, *, layer: str = "default") -> list[Region]:
    """Decode a GeoJSON document into regions, one per constituent polygon."""
    return parse_geojson_report(data, layer=layer).regions


def parse_geojson_report(data: bytes | str, *, layer: str = "default") -> LoadResult:
    result = LoadResult(layer=layer)
    try:
        document = json.loads(data)
    except (TypeError, ValueError) as exc:
        result.error = f"Invalid GeoJSON for layer '{layer}': {exc}"
        _LOGGER.error(result.error)
        return result

    features = _top_level_features(document)
    if features is None:
        kind = document.get("type") if isinstance(document, Mapping) else type(document).__name__
        result.error = f"Unsupported GeoJSON top-level object for layer '{layer}': {kind}"
        _LOGGER.error(result.error)
        return result

    for feature_idx, feature in enumerate(features):
        result.features_seen += 1
        regions = _regions_from_feature(feature, feature_idx=feature_idx, layer=layer)
        if not regions:
            result.features_skipped += 1
            continue
        for region in regions:
            if region.style is DEFAULT_STYLE:
                result.default_styled += 1
            result.regions.append(region)

    _LOGGER.info(
        "Parsed layer '%s': %d features, %d regions, %d skipped",
        layer,
        result.features_seen,
        len(result.regions),
        result.features_skipped,
    )
    return result


def load_regions_file(path: Path, *, layer: str | None = None) -> list[Region]:
    """Load one tract file; a missing or unreadable file yields `[]`."""
    return load_regions_report(path, layer=layer).regions


def load_regions_report(path: Path, *, layer: str | None = None) -> LoadResult:
    layer_name = layer or path.stem
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        result = LoadResult(layer=layer_name, error=f"GeoJSON file not found: {path}")
        _LOGGER.error(result.error)
        return result
    except OSError as exc:
        result = LoadResult(layer=layer_name, error=f"Failed reading {path}: {exc}")
        _LOGGER.error(result.error)
        return result
    return parse_geojson_report(data, layer=layer_name)


def load_regions_file_async(
    path: Path,
    *,
    layer: str,
    on_done: Callable[[LoadResult], None],
) -> threading.Thread:
    """Parse a file on a background thread and pass the result to `on_done`.

    `on_done` runs on the background thread; callers hand the result over
    to their own thread (see `MapSession`).
    """

    def _worker() -> None:
        on_done(load_regions_report(path, layer=layer))

    thread = threading.Thread(target=_worker, name=f"tractmap-load-{layer}", daemon=True)
    thread.start()
    return thread


def _top_level_features(document: Any) -> Sequence[Any] | None:
    if not isinstance(document, Mapping):
        return None
    kind = document.get("type")
    if kind == "FeatureCollection":
        features = document.get("features")
        return features if isinstance(features, list) else None
    if kind == "Feature":
        return [document]
    return None


def _regions_from_feature(feature: Any, *, feature_idx: int, layer: str) -> list[Region]:
    if not isinstance(feature, Mapping):
        _LOGGER.warning("Skipping feature #%d in '%s': not an object", feature_idx, layer)
        return []

    polygons = _decode_polygons(feature.get("geometry"), feature_idx=feature_idx, layer=layer)
    if not polygons:
        return []

    raw_props = feature.get("properties")
    if isinstance(raw_props, Mapping):
        properties: Mapping[str, Any] = MappingProxyType(dict(raw_props))
    else:
        _LOGGER.warning(
            "Feature #%d in '%s' has no usable properties; using default style",
            feature_idx,
            layer,
        )
        properties = MappingProxyType({})

    name = _label_text(properties.get(LABEL_KEY))
    style = parse_style(properties)
    if style is DEFAULT_STYLE and properties:
        _LOGGER.debug("Feature #%d (%s) in '%s' uses default style", feature_idx, name, layer)
    z_index = _int_or_none(properties.get(Z_KEY))
    label_anchor = _label_anchor(properties)
    font_size = _number_or_none(properties.get(FONT_SIZE_KEY))

    regions: list[Region] = []
    for poly_idx, polygon in enumerate(polygons):
        boundary = _ring_lat_lon(polygon.exterior.coords)
        holes = tuple(_ring_lat_lon(interior.coords) for interior in polygon.interiors)
        regions.append(
            Region(
                region_id=f"{layer}:{feature_idx}:{poly_idx}",
                layer=layer,
                name=name,
                boundary=boundary,
                map_rect=map_rect_for_lat_lon(boundary),
                holes=holes,
                label_anchor=label_anchor,
                style=style,
                z_index=z_index if z_index is not None else 0,
                font_size=font_size,
                properties=properties,
                polygon=polygon,
            )
        )
    return regions


def _decode_polygons(geometry: Any, *, feature_idx: int, layer: str) -> list[Any]:
    if not isinstance(geometry, Mapping):
        _LOGGER.warning("Skipping feature #%d in '%s': missing geometry", feature_idx, layer)
        return []
    kind = geometry.get("type")
    if kind not in SUPPORTED_GEOMETRIES:
        _LOGGER.warning(
            "Skipping feature #%d in '%s': unsupported geometry type %s",
            feature_idx,
            layer,
            kind,
        )
        return []

    shape, get_coordinates, shapely_error = _require_shapely_shape()
    try:
        decoded = shape(geometry)
    except (ValueError, TypeError, IndexError, KeyError, shapely_error) as exc:
        _LOGGER.warning("Skipping feature #%d in '%s': bad %s geometry: %s", feature_idx, layer, kind, exc)
        return []

    if not all(math.isfinite(value) for value in get_coordinates(decoded).ravel().tolist()):
        _LOGGER.warning("Skipping feature #%d in '%s': non-finite %s coordinates", feature_idx, layer, kind)
        return []

    parts = list(decoded.geoms) if kind == "MultiPolygon" else [decoded]
    polygons = [part for part in parts if not part.is_empty]
    if not polygons:
        _LOGGER.warning("Skipping feature #%d in '%s': empty %s", feature_idx, layer, kind)
    return polygons


def parse_style(properties: Mapping[str, Any]) -> RegionStyle:
    """Build a style from a property bag, all-or-nothing.

    Every style key must be present and well typed, otherwise the region is
    drawn with `DEFAULT_STYLE`.
    """
    stroke_color = properties.get(STROKE_COLOR_KEY)
    if not isinstance(stroke_color, str) or not stroke_color.strip():
        return DEFAULT_STYLE
    stroke_weight = _number_or_none(properties.get(STROKE_WEIGHT_KEY))
    stroke_opacity = _number_or_none(properties.get(STROKE_OPACITY_KEY))
    fill = [_number_or_none(properties.get(key)) for key in FILL_KEYS]
    if stroke_weight is None or stroke_opacity is None:
        return DEFAULT_STYLE
    r, g, b, a = fill
    if r is None or g is None or b is None or a is None:
        return DEFAULT_STYLE
    return RegionStyle(
        fill_color=(r, g, b, a),
        stroke_color=stroke_color.strip(),
        stroke_weight=stroke_weight,
        stroke_opacity=stroke_opacity,
    )


def _label_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _label_anchor(properties: Mapping[str, Any]) -> tuple[float, float] | None:
    lat = _number_or_none(properties.get(LABEL_LAT_KEY))
    lng = _number_or_none(properties.get(LABEL_LNG_KEY))
    if lat is None or lng is None:
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
        return None
    return (lat, lng)


def _number_or_none(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    number = float(value)
    return number if math.isfinite(number) else None


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _ring_lat_lon(coords: Any) -> tuple[tuple[float, float], ...]:
    ring = tuple((float(pt[1]), float(pt[0])) for pt in coords)
    if ring and ring[0] != ring[-1]:
        ring = ring + (ring[0],)
    return ring


def _require_shapely_shape() -> tuple[Any, Any, type[Exception]]:
    try:
        from shapely import get_coordinates
        from shapely.errors import ShapelyError
        from shapely.geometry import shape
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for GeoJSON geometry decoding") from exc
    return (shape, get_coordinates, ShapelyError)
