"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml

from .models import Viewport


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _optional_mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    return _mapping(value, field_name)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Expected bool for '{field_name}'")
    return value


def _path_from_cfg(value: Any, field_name: str, root_dir: Path) -> Path:
    raw = _str(value, field_name)
    p = Path(raw)
    return p if p.is_absolute() else root_dir / p


@dataclass(frozen=True, slots=True)
class LayerConfig:
    name: str
    title: str
    path: Path
    enabled: bool

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path, idx: int) -> LayerConfig:
        prefix = f"layers[{idx}]"
        name = _str(raw.get("name"), f"{prefix}.name")
        title_raw = raw.get("title")
        return cls(
            name=name,
            title=_str(title_raw, f"{prefix}.title") if title_raw is not None else name,
            path=_path_from_cfg(raw.get("path"), f"{prefix}.path", root_dir),
            enabled=_bool(raw.get("enabled", True), f"{prefix}.enabled"),
        )


@dataclass(frozen=True, slots=True)
class ViewportConfig:
    initial: Viewport | None = None
    location_span_deg: float = 0.05
    hysteresis_deg: float = 0.05
    padding_ratio: float = 0.25
    min_padding_deg: float = 0.002

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ViewportConfig:
        defaults = cls()
        initial_raw = raw.get("initial")
        initial: Viewport | None = None
        if initial_raw is not None:
            initial_map = _mapping(initial_raw, "viewport.initial")
            initial = Viewport(
                center_lat=_float(initial_map.get("lat"), "viewport.initial.lat"),
                center_lon=_float(initial_map.get("lon"), "viewport.initial.lon"),
                lat_delta=_float(initial_map.get("lat_delta"), "viewport.initial.lat_delta"),
                lon_delta=_float(initial_map.get("lon_delta"), "viewport.initial.lon_delta"),
            ).clamped()

        location_span_deg = _float(
            raw.get("location_span_deg", defaults.location_span_deg), "viewport.location_span_deg"
        )
        hysteresis_deg = _float(raw.get("hysteresis_deg", defaults.hysteresis_deg), "viewport.hysteresis_deg")
        padding_ratio = _float(raw.get("padding_ratio", defaults.padding_ratio), "viewport.padding_ratio")
        min_padding_deg = _float(
            raw.get("min_padding_deg", defaults.min_padding_deg), "viewport.min_padding_deg"
        )
        if location_span_deg <= 0:
            raise ValueError("viewport.location_span_deg must be > 0")
        if hysteresis_deg < 0:
            raise ValueError("viewport.hysteresis_deg must be >= 0")
        if padding_ratio < 0:
            raise ValueError("viewport.padding_ratio must be >= 0")
        if min_padding_deg <= 0:
            raise ValueError("viewport.min_padding_deg must be > 0")
        return cls(
            initial=initial,
            location_span_deg=location_span_deg,
            hysteresis_deg=hysteresis_deg,
            padding_ratio=padding_ratio,
            min_padding_deg=min_padding_deg,
        )


@dataclass(frozen=True, slots=True)
class RenderConfig:
    width_px: int = 1200
    height_px: int = 900
    dpi: int = 150
    label_font_size: float = 9.0
    background: str = "white"

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> RenderConfig:
        defaults = cls()
        width_px = _int(raw.get("width_px", defaults.width_px), "render.width_px")
        height_px = _int(raw.get("height_px", defaults.height_px), "render.height_px")
        dpi = _int(raw.get("dpi", defaults.dpi), "render.dpi")
        if width_px <= 0 or height_px <= 0 or dpi <= 0:
            raise ValueError("render.width_px, render.height_px and render.dpi must be > 0")
        return cls(
            width_px=width_px,
            height_px=height_px,
            dpi=dpi,
            label_font_size=_float(
                raw.get("label_font_size", defaults.label_font_size), "render.label_font_size"
            ),
            background=_str(raw.get("background", defaults.background), "render.background"),
        )


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    logs_dir: Path

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> LoggingConfig:
        return cls(logs_dir=_path_from_cfg(raw.get("logs_dir", "build/logs"), "logging.logs_dir", root_dir))


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path
    layers: tuple[LayerConfig, ...]
    viewport: ViewportConfig
    render: RenderConfig
    logging: LoggingConfig

    def layer(self, name: str) -> LayerConfig:
        for layer in self.layers:
            if layer.name == name:
                return layer
        raise KeyError(f"Unknown layer: {name}")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path) -> AppConfig:
        root_dir = source_path.parent.resolve()
        layers_raw = raw.get("layers")
        if not isinstance(layers_raw, list) or not layers_raw:
            raise ValueError("Expected non-empty list for 'layers'")
        layers: list[LayerConfig] = []
        seen: set[str] = set()
        for idx, item in enumerate(layers_raw):
            layer = LayerConfig.from_mapping(_mapping(item, f"layers[{idx}]"), root_dir, idx)
            if layer.name in seen:
                raise ValueError(f"Duplicate layer name '{layer.name}'")
            seen.add(layer.name)
            layers.append(layer)

        return cls(
            source_path=source_path.resolve(),
            layers=tuple(layers),
            viewport=ViewportConfig.from_mapping(_optional_mapping(raw.get("viewport"), "viewport")),
            render=RenderConfig.from_mapping(_optional_mapping(raw.get("render"), "render")),
            logging=LoggingConfig.from_mapping(
                _optional_mapping(raw.get("logging"), "logging"), root_dir
            ),
        )


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
