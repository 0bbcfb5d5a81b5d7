"""Domain models shared across the map pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from .geo import MapRect, WEB_MERCATOR_MAX_LAT, clamp, lat_lon_bounds, map_rect_for_lat_lon, polygon_centroid

MIN_SPAN_DEG = 1e-5
MAX_LAT_SPAN_DEG = 180.0
MAX_LON_SPAN_DEG = 360.0

# RGB triples for the stroke color names found in tract files.
NAMED_COLORS: Mapping[str, tuple[float, float, float]] = {
    "black": (0.0, 0.0, 0.0),
    "darkgray": (1.0 / 3.0, 1.0 / 3.0, 1.0 / 3.0),
    "gray": (0.5, 0.5, 0.5),
    "lightgray": (2.0 / 3.0, 2.0 / 3.0, 2.0 / 3.0),
    "white": (1.0, 1.0, 1.0),
}
_FALLBACK_COLOR = NAMED_COLORS["gray"]


def color_from_name(name: str) -> tuple[float, float, float]:
    """Resolve a stroke color name, unknown names map to gray."""
    key = name.strip().casefold().replace(" ", "").replace("_", "")
    return NAMED_COLORS.get(key, _FALLBACK_COLOR)


@dataclass(frozen=True, slots=True)
class Coordinate:
    lat: float
    lon: float


@dataclass(frozen=True, slots=True)
class RegionStyle:
    """Fill and stroke settings for one polygon."""

    fill_color: tuple[float, float, float, float]
    stroke_color: str
    stroke_weight: float
    stroke_opacity: float

    @property
    def stroke_rgba(self) -> tuple[float, float, float, float]:
        r, g, b = color_from_name(self.stroke_color)
        return (r, g, b, self.stroke_opacity)


DEFAULT_STYLE = RegionStyle(
    fill_color=(0.5, 0.5, 0.5, 0.5),
    stroke_color="black",
    stroke_weight=1.0,
    stroke_opacity=1.0,
)


@dataclass(frozen=True, slots=True)
class Region:
    """One named tract polygon decoded from a GeoJSON feature.

    Rings are closed sequences of `(lat, lon)` pairs. `map_rect` is the
    planar bounding rectangle used by viewport queries.
    """

    region_id: str
    layer: str
    name: str | None
    boundary: tuple[tuple[float, float], ...]
    map_rect: MapRect
    holes: tuple[tuple[tuple[float, float], ...], ...] = ()
    label_anchor: tuple[float, float] | None = None
    style: RegionStyle = DEFAULT_STYLE
    z_index: int = 0
    font_size: float | None = None
    properties: Mapping[str, Any] = field(default_factory=dict, compare=False)
    polygon: Any = field(default=None, compare=False, repr=False)

    @property
    def display_name(self) -> str:
        return self.name if self.name else "Untitled"

    @property
    def lat_lon_bounds(self) -> tuple[float, float, float, float]:
        """`(min_lat, min_lon, max_lat, max_lon)` of the exterior ring."""
        return lat_lon_bounds(self.boundary)

    @property
    def centroid(self) -> tuple[float, float]:
        return polygon_centroid(self.boundary)

    @property
    def label_point(self) -> tuple[float, float]:
        """Where the label goes: the explicit anchor, else the centroid."""
        return self.label_anchor if self.label_anchor is not None else self.centroid


@dataclass(frozen=True, slots=True)
class Viewport:
    """Visible map extent as a center plus latitude/longitude span."""

    center_lat: float
    center_lon: float
    lat_delta: float
    lon_delta: float

    @classmethod
    def from_bounds(cls, min_lon: float, min_lat: float, max_lon: float, max_lat: float) -> Viewport:
        if max_lon < min_lon or max_lat < min_lat:
            raise ValueError("Bounds must be ordered as min_lon min_lat max_lon max_lat")
        return cls(
            center_lat=(min_lat + max_lat) / 2.0,
            center_lon=(min_lon + max_lon) / 2.0,
            lat_delta=max_lat - min_lat,
            lon_delta=max_lon - min_lon,
        )

    def clamped(self) -> Viewport:
        return Viewport(
            center_lat=clamp(self.center_lat, -90.0, 90.0),
            center_lon=clamp(self.center_lon, -180.0, 180.0),
            lat_delta=clamp(abs(self.lat_delta), MIN_SPAN_DEG, MAX_LAT_SPAN_DEG),
            lon_delta=clamp(abs(self.lon_delta), MIN_SPAN_DEG, MAX_LON_SPAN_DEG),
        )

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """`(min_lat, min_lon, max_lat, max_lon)`, limited to valid ranges."""
        half_lat = self.lat_delta / 2.0
        half_lon = self.lon_delta / 2.0
        return (
            clamp(self.center_lat - half_lat, -90.0, 90.0),
            clamp(self.center_lon - half_lon, -180.0, 180.0),
            clamp(self.center_lat + half_lat, -90.0, 90.0),
            clamp(self.center_lon + half_lon, -180.0, 180.0),
        )

    def contains(self, lat: float, lon: float) -> bool:
        min_lat, min_lon, max_lat, max_lon = self.bounds
        return min_lat <= lat <= max_lat and min_lon <= lon <= max_lon

    def to_map_rect(self) -> MapRect:
        min_lat, min_lon, max_lat, max_lon = self.bounds
        min_lat = clamp(min_lat, -WEB_MERCATOR_MAX_LAT, WEB_MERCATOR_MAX_LAT)
        max_lat = clamp(max_lat, -WEB_MERCATOR_MAX_LAT, WEB_MERCATOR_MAX_LAT)
        return map_rect_for_lat_lon(((min_lat, min_lon), (max_lat, max_lon)))

    def max_delta_from(self, other: Viewport) -> float:
        """Largest per-component change in degrees between two extents."""
        return max(
            abs(self.center_lat - other.center_lat),
            abs(self.center_lon - other.center_lon),
            abs(self.lat_delta - other.lat_delta),
            abs(self.lon_delta - other.lon_delta),
        )
