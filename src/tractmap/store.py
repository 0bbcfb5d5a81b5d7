"""In-memory region store and viewport visibility filter."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, Sequence

from .geo import MapRect
from .models import Region, Viewport

_LOGGER = logging.getLogger("tractmap.store")


class RegionStore:
    """Holds the decoded regions of one or more tract files.

    The store is filled exactly once; later `load` calls are ignored so that
    repeated triggers never duplicate geometry. Queries are brute-force
    rectangle tests, which is plenty for a few hundred polygons.
    """

    def __init__(self, name: str = "regions") -> None:
        self.name = name
        self._regions: tuple[Region, ...] = ()
        self._by_id: dict[str, Region] = {}
        self._loaded = False

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def load(self, regions: Iterable[Region]) -> bool:
        """Store `regions` once. Returns False if the store was already loaded."""
        if self._loaded:
            _LOGGER.debug("Store '%s' already loaded; ignoring repeated load", self.name)
            return False
        stored = tuple(regions)
        by_id: dict[str, Region] = {}
        for region in stored:
            if region.region_id in by_id:
                raise ValueError(f"Duplicate region id '{region.region_id}' in store '{self.name}'")
            by_id[region.region_id] = region
        self._regions = stored
        self._by_id = by_id
        self._loaded = True
        _LOGGER.info("Store '%s' loaded with %d regions", self.name, len(stored))
        return True

    def __len__(self) -> int:
        return len(self._regions)

    def __iter__(self) -> Iterator[Region]:
        return iter(self._regions)

    def get(self, region_id: str) -> Region | None:
        return self._by_id.get(region_id)

    def regions_intersecting(self, extent: Viewport | MapRect) -> list[Region]:
        """Regions whose planar bounding rectangle overlaps `extent`, in insertion order."""
        rect = extent.to_map_rect() if isinstance(extent, Viewport) else extent
        return [region for region in self._regions if region.map_rect.intersects(rect)]

    def regions_at(self, lat: float, lon: float) -> list[Region]:
        """Regions whose polygon covers the point, in insertion order."""
        point = _require_shapely_point_factory()(float(lon), float(lat))
        hits: list[Region] = []
        for region in self._regions:
            if region.polygon is None:
                continue
            if region.polygon.covers(point):
                hits.append(region)
        return hits

    def topmost_at(self, lat: float, lon: float) -> Region | None:
        """The region drawn on top at a point: highest z, later insertion on ties."""
        hits = draw_order(self.regions_at(lat, lon))
        return hits[-1] if hits else None


def draw_order(regions: Sequence[Region]) -> list[Region]:
    """Stable sort by z-index ascending; equal z keeps input order."""
    return sorted(regions, key=lambda region: region.z_index)


def _require_shapely_point_factory() -> Any:
    try:
        from shapely.geometry import Point
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("shapely is required for point hit-testing") from exc
    return Point
