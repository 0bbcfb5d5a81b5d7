"""Viewport state, recentering and visible-region recomputation."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Sequence

from .config import ViewportConfig
from .models import Coordinate, Region, Viewport

_LOGGER = logging.getLogger("tractmap.viewport")

RegionQuery = Callable[[Viewport], Sequence[Region]]
VisibleRegionsListener = Callable[[Viewport, Sequence[Region]], None]


class ViewportState(Enum):
    UNINITIALIZED = "uninitialized"
    CENTERED = "centered"


def location_viewport(coordinate: Coordinate, span_deg: float) -> Viewport:
    return Viewport(
        center_lat=coordinate.lat,
        center_lon=coordinate.lon,
        lat_delta=span_deg,
        lon_delta=span_deg,
    ).clamped()


def region_viewport(region: Region, *, padding_ratio: float, min_padding_deg: float) -> Viewport:
    """Extent centered on a region's bounding box with padding on every side."""
    min_lat, min_lon, max_lat, max_lon = region.lat_lon_bounds
    height = max_lat - min_lat
    width = max_lon - min_lon
    pad_lat = max(height * padding_ratio, min_padding_deg)
    pad_lon = max(width * padding_ratio, min_padding_deg)
    return Viewport(
        center_lat=(min_lat + max_lat) / 2.0,
        center_lon=(min_lon + max_lon) / 2.0,
        lat_delta=height + 2.0 * pad_lat,
        lon_delta=width + 2.0 * pad_lon,
    ).clamped()


def needs_refresh(previous: Viewport | None, current: Viewport, threshold_deg: float) -> bool:
    if previous is None:
        return True
    return current.max_delta_from(previous) > threshold_deg


class ViewportController:
    """Owns the live viewport and the regions visible in it.

    Pans and zooms go through `set_extent`, which skips the region query for
    small moves. Recenter calls always recompute.
    """

    def __init__(self, query: RegionQuery, cfg: ViewportConfig) -> None:
        self._query = query
        self.cfg = cfg
        self._state = ViewportState.UNINITIALIZED
        self._viewport: Viewport | None = None
        self._filtered_viewport: Viewport | None = None
        self._visible: tuple[Region, ...] = ()
        self._last_location: Coordinate | None = None
        self._listeners: list[VisibleRegionsListener] = []

    @property
    def state(self) -> ViewportState:
        return self._state

    @property
    def viewport(self) -> Viewport | None:
        return self._viewport

    @property
    def last_location(self) -> Coordinate | None:
        return self._last_location

    @property
    def visible_regions(self) -> tuple[Region, ...]:
        return self._visible

    @property
    def visible_region_ids(self) -> tuple[str, ...]:
        return tuple(region.region_id for region in self._visible)

    def subscribe(self, listener: VisibleRegionsListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def set_extent(self, viewport: Viewport) -> bool:
        """Store a user-driven extent. Returns True when visible regions were recomputed."""
        clamped = viewport.clamped()
        self._viewport = clamped
        self._state = ViewportState.CENTERED
        if not needs_refresh(self._filtered_viewport, clamped, self.cfg.hysteresis_deg):
            return False
        self._recompute(clamped)
        return True

    def recenter_on_current_location(self, coordinate: Coordinate) -> Viewport:
        self._last_location = coordinate
        return self._apply(location_viewport(coordinate, self.cfg.location_span_deg))

    def recenter_on_region(self, region: Region) -> Viewport:
        return self._apply(
            region_viewport(
                region,
                padding_ratio=self.cfg.padding_ratio,
                min_padding_deg=self.cfg.min_padding_deg,
            )
        )

    def on_location_update(self, coordinate: Coordinate) -> None:
        """Record a location fix; the first fix centers an uninitialized viewport."""
        self._last_location = coordinate
        if self._state is ViewportState.UNINITIALIZED:
            _LOGGER.info("First location fix at %.5f, %.5f", coordinate.lat, coordinate.lon)
            self.recenter_on_current_location(coordinate)

    def refresh(self) -> None:
        """Recompute visible regions for the current extent (e.g. after a layer change)."""
        if self._viewport is None:
            return
        self._recompute(self._viewport)

    def _apply(self, viewport: Viewport) -> Viewport:
        self._viewport = viewport
        self._state = ViewportState.CENTERED
        self._recompute(viewport)
        return viewport

    def _recompute(self, viewport: Viewport) -> None:
        self._visible = tuple(self._query(viewport))
        self._filtered_viewport = viewport
        _LOGGER.debug("Viewport %s shows %d regions", viewport, len(self._visible))
        for listener in list(self._listeners):
            listener(viewport, self._visible)
