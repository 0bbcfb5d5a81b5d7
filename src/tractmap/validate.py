"""Validation layer for config and tract files."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .config import AppConfig, LayerConfig
from .geojson import LoadResult, load_regions_report


@dataclass(slots=True)
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    infos: list[str] = field(default_factory=list)
    layers: dict[str, LoadResult] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def add_info(self, msg: str) -> None:
        self.infos.append(msg)


class Validator:
    """Checks every configured layer file the way the map would load it."""

    def __init__(self, cfg: AppConfig) -> None:
        self.cfg = cfg

    def run(self) -> ValidationReport:
        report = ValidationReport()
        for layer in self.cfg.layers:
            self._validate_layer(report, layer)
        if self.cfg.viewport.initial is None:
            report.add_info("No viewport.initial configured; commands default to the data extent.")
        return report

    def _validate_layer(self, report: ValidationReport, layer: LayerConfig) -> None:
        if not layer.path.exists():
            report.add_error(f"[{layer.name}] Missing GeoJSON file: {layer.path}")
            return
        result = load_regions_report(layer.path, layer=layer.name)
        report.layers[layer.name] = result
        if not result.ok:
            report.add_error(f"[{layer.name}] {result.error}")
            return
        if not result.regions:
            report.add_warning(f"[{layer.name}] No polygon regions found.")
        if result.features_skipped:
            report.add_warning(
                f"[{layer.name}] {result.features_skipped} of {result.features_seen} features skipped."
            )
        if result.default_styled:
            report.add_warning(f"[{layer.name}] {result.default_styled} regions use the default style.")
        unlabeled = sum(1 for region in result.regions if region.name is None)
        if unlabeled:
            report.add_warning(f"[{layer.name}] {unlabeled} regions have no label.")
        report.add_info(
            f"[{layer.name}] {len(result.regions)} regions from {result.features_seen} features."
        )


def format_report_lines(report: ValidationReport) -> Iterable[str]:
    for info in report.infos:
        yield f"[INFO] {info}"
    for warning in report.warnings:
        yield f"[WARN] {warning}"
    for error in report.errors:
        yield f"[ERROR] {error}"
    if report.ok:
        yield "[OK] Validation completed with no errors."
