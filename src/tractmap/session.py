"""Map session: layers, background loading, viewport and selection."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from .config import AppConfig, LayerConfig
from .geojson import LoadResult, load_regions_file_async, load_regions_report
from .models import Coordinate, Region, Viewport
from .reconcile import OverlayDiff, diff_overlays
from .store import RegionStore, draw_order
from .viewport import ViewportController, ViewportState

_LOGGER = logging.getLogger("tractmap.session")


@dataclass(frozen=True, slots=True)
class MapState:
    """Snapshot handed to the presentation layer on every change."""

    viewport: Viewport | None
    viewport_state: ViewportState
    visible_region_ids: tuple[str, ...]
    selected_region_id: str | None
    last_location: Coordinate | None
    enabled_layers: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class LayerStatus:
    layer: LayerConfig
    enabled: bool
    loaded: bool
    region_count: int


StateListener = Callable[[MapState, OverlayDiff], None]


class MapSession:
    """View-model behind a map screen.

    All mutation happens on the thread that owns the session. Layer files are
    parsed on background threads and queued; `drain_pending_loads` moves the
    parsed regions into their stores.
    """

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg
        self._stores = {layer.name: RegionStore(layer.name) for layer in cfg.layers}
        self._enabled = {layer.name: layer.enabled for layer in cfg.layers}
        self._pending: queue.Queue[LoadResult] = queue.Queue()
        self._in_flight: set[str] = set()
        self._threads: list[threading.Thread] = []
        self._selection: Region | None = None
        self._presented_ids: tuple[str, ...] = ()
        self._listeners: list[StateListener] = []
        self.viewport = ViewportController(self._query_enabled, cfg.viewport)
        self.viewport.subscribe(lambda _viewport, _regions: self._emit())

    @property
    def selection(self) -> Region | None:
        return self._selection

    @property
    def presented_ids(self) -> tuple[str, ...]:
        return self._presented_ids

    @property
    def state(self) -> MapState:
        return MapState(
            viewport=self.viewport.viewport,
            viewport_state=self.viewport.state,
            visible_region_ids=self.viewport.visible_region_ids,
            selected_region_id=self._selection.region_id if self._selection else None,
            last_location=self.viewport.last_location,
            enabled_layers=self.enabled_layers,
        )

    @property
    def enabled_layers(self) -> tuple[str, ...]:
        return tuple(layer.name for layer in self.cfg.layers if self._enabled[layer.name])

    def store(self, layer_name: str) -> RegionStore:
        return self._stores[layer_name]

    def layer_statuses(self) -> list[LayerStatus]:
        return [
            LayerStatus(
                layer=layer,
                enabled=self._enabled[layer.name],
                loaded=self._stores[layer.name].is_loaded,
                region_count=len(self._stores[layer.name]),
            )
            for layer in self.cfg.layers
        ]

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # Loading

    def start_loading(self, layer_names: Iterable[str] | None = None) -> list[threading.Thread]:
        """Kick off background parsing for enabled layers not yet loaded."""
        names = list(layer_names) if layer_names is not None else list(self.enabled_layers)
        started: list[threading.Thread] = []
        for name in names:
            if self._stores[name].is_loaded or name in self._in_flight:
                continue
            self._in_flight.add(name)
            layer = self.cfg.layer(name)
            _LOGGER.info("Loading layer '%s' from %s", name, layer.path)
            thread = load_regions_file_async(layer.path, layer=name, on_done=self._pending.put)
            self._threads.append(thread)
            started.append(thread)
        return started

    def drain_pending_loads(self) -> int:
        """Insert finished background loads into their stores. Returns the count inserted."""
        inserted = 0
        while True:
            try:
                result = self._pending.get_nowait()
            except queue.Empty:
                break
            self._in_flight.discard(result.layer)
            if self._stores[result.layer].load(result.regions):
                inserted += 1
        if inserted:
            self.viewport.refresh()
        return inserted

    def wait_for_loads(self, timeout: float | None = None) -> int:
        """Join outstanding load threads, then drain their results."""
        for thread in self._threads:
            thread.join(timeout)
        self._threads = [thread for thread in self._threads if thread.is_alive()]
        return self.drain_pending_loads()

    def load_blocking(self, layer_names: Iterable[str] | None = None) -> list[LoadResult]:
        """Parse layers on the calling thread."""
        names = list(layer_names) if layer_names is not None else list(self.enabled_layers)
        results: list[LoadResult] = []
        for name in names:
            if self._stores[name].is_loaded or name in self._in_flight:
                continue
            result = load_regions_report(self.cfg.layer(name).path, layer=name)
            self._stores[name].load(result.regions)
            results.append(result)
        self.viewport.refresh()
        return results

    # Layers

    def set_layer_enabled(self, layer_name: str, enabled: bool) -> None:
        if layer_name not in self._enabled:
            raise KeyError(f"Unknown layer: {layer_name}")
        if self._enabled[layer_name] == enabled:
            return
        self._enabled[layer_name] = enabled
        _LOGGER.info("Layer '%s' %s", layer_name, "enabled" if enabled else "disabled")
        if enabled and not self._stores[layer_name].is_loaded:
            self.start_loading([layer_name])
        if not enabled and self._selection is not None and self._selection.layer == layer_name:
            self._selection = None
        if self.viewport.viewport is None:
            self._emit()
        else:
            self.viewport.refresh()

    # Selection

    def select(self, region: Region) -> None:
        """Select a region and recenter on it."""
        self._selection = region
        self.viewport.recenter_on_region(region)

    def select_at(self, lat: float, lon: float) -> Region | None:
        """Select the topmost region under a tap; a miss leaves selection unchanged."""
        hits: list[Region] = []
        for name in self.enabled_layers:
            hits.extend(self._stores[name].regions_at(lat, lon))
        ordered = draw_order(hits)
        if not ordered:
            _LOGGER.debug("No region at %.5f, %.5f", lat, lon)
            return None
        top = ordered[-1]
        self.select(top)
        return top

    def clear_selection(self) -> None:
        if self._selection is None:
            return
        self._selection = None
        self._emit()

    def visible_in_draw_order(self) -> list[Region]:
        return draw_order(self.viewport.visible_regions)

    def _query_enabled(self, viewport: Viewport) -> Sequence[Region]:
        rect = viewport.to_map_rect()
        visible: list[Region] = []
        for name in self.enabled_layers:
            visible.extend(self._stores[name].regions_intersecting(rect))
        return visible

    def _emit(self) -> None:
        diff = diff_overlays(self._presented_ids, self.viewport.visible_regions)
        self._presented_ids = diff.apply(self._presented_ids)
        if not diff.is_empty:
            _LOGGER.debug("Overlays: +%d -%d", len(diff.to_add), len(diff.to_remove))
        state = self.state
        for listener in list(self._listeners):
            listener(state, diff)
