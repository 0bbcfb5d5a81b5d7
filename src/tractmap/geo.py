"""Planar projection, bounding rectangles and polygon centroids."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterable, Sequence

WEB_MERCATOR_MAX_LAT = 85.05112878


@dataclass(frozen=True, slots=True)
class MapRect:
    """Axis-aligned rectangle in Web Mercator metres."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def intersects(self, other: MapRect) -> bool:
        # Shared edges count as overlap.
        return not (
            other.min_x > self.max_x
            or other.max_x < self.min_x
            or other.min_y > self.max_y
            or other.max_y < self.min_y
        )

    def union(self, other: MapRect) -> MapRect:
        return MapRect(
            min_x=min(self.min_x, other.min_x),
            min_y=min(self.min_y, other.min_y),
            max_x=max(self.max_x, other.max_x),
            max_y=max(self.max_y, other.max_y),
        )


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(float(value), high))


def project_lon_lat(lon: float, lat: float) -> tuple[float, float]:
    """Project one WGS84 coordinate to Web Mercator (x, y)."""
    transformer = _require_pyproj_transformer()
    safe_lat = clamp(lat, -WEB_MERCATOR_MAX_LAT, WEB_MERCATOR_MAX_LAT)
    x, y = transformer.transform(float(lon), safe_lat)
    return (float(x), float(y))


def map_rect_for_lat_lon(points: Iterable[tuple[float, float]]) -> MapRect:
    """Planar bounding rectangle of `(lat, lon)` points."""
    lats: list[float] = []
    lons: list[float] = []
    for lat, lon in points:
        lats.append(clamp(lat, -WEB_MERCATOR_MAX_LAT, WEB_MERCATOR_MAX_LAT))
        lons.append(float(lon))
    if not lats:
        raise ValueError("Cannot compute a bounding rectangle of zero points")
    transformer = _require_pyproj_transformer()
    xs, ys = transformer.transform(lons, lats)
    return MapRect(
        min_x=float(min(xs)),
        min_y=float(min(ys)),
        max_x=float(max(xs)),
        max_y=float(max(ys)),
    )


def lat_lon_bounds(points: Iterable[tuple[float, float]]) -> tuple[float, float, float, float]:
    """Return `(min_lat, min_lon, max_lat, max_lon)` of `(lat, lon)` points."""
    lats: list[float] = []
    lons: list[float] = []
    for lat, lon in points:
        lats.append(float(lat))
        lons.append(float(lon))
    if not lats:
        raise ValueError("Cannot compute bounds of zero points")
    return (min(lats), min(lons), max(lats), max(lons))


def polygon_centroid(ring: Sequence[tuple[float, float]]) -> tuple[float, float]:
    """Area-weighted centroid of a `(lat, lon)` ring.

    Degenerate rings (zero area) fall back to the vertex mean.
    """
    if not ring:
        raise ValueError("Cannot compute the centroid of an empty ring")
    polygon_factory = _require_shapely_polygon_factory()
    lon_lat = [(float(lon), float(lat)) for lat, lon in ring]
    if len(lon_lat) >= 3:
        polygon = polygon_factory(lon_lat)
        if polygon.area > 0.0:
            point = polygon.centroid
            return (float(point.y), float(point.x))
    open_ring = lon_lat[:-1] if len(lon_lat) > 1 and lon_lat[0] == lon_lat[-1] else lon_lat
    count = float(len(open_ring))
    return (
        sum(lat for _, lat in open_ring) / count,
        sum(lon for lon, _ in open_ring) / count,
    )


@lru_cache(maxsize=1)
def _require_pyproj_transformer() -> Any:
    try:
        from pyproj import Transformer
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("pyproj is required for Web Mercator projection") from exc
    return Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)


def _require_shapely_polygon_factory() -> Any:
    try:
        from shapely.geometry import Polygon
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for polygon centroids") from exc
    return Polygon
