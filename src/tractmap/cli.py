"""CLI entrypoint for tractmap."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Sequence

from .config import AppConfig, load_config
from .details import format_region_lines, region_details
from .geo import lat_lon_bounds
from .models import Viewport
from .render import render_viewport
from .session import MapSession
from .util import setup_logging, write_json
from .validate import Validator, format_report_lines

LOGGER = logging.getLogger("tractmap.cli")

_DATA_EXTENT_PADDING_RATIO = 0.05


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tractmap",
        description="Tract map boundary loader and viewport tools.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="config.yaml", help="Path to YAML config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")
        p.add_argument(
            "--layer",
            action="append",
            default=[],
            help="Layer name to enable (repeatable). Defaults to layers enabled in config.",
        )

    def add_extent(p: argparse.ArgumentParser) -> None:
        group = p.add_mutually_exclusive_group()
        group.add_argument(
            "--bbox",
            nargs=4,
            type=float,
            metavar=("MIN_LON", "MIN_LAT", "MAX_LON", "MAX_LAT"),
            help="Viewport as a lon/lat bounding box.",
        )
        group.add_argument(
            "--center",
            nargs=2,
            type=float,
            metavar=("LAT", "LON"),
            help="Viewport center; combine with --span.",
        )
        p.add_argument(
            "--span",
            nargs=2,
            type=float,
            metavar=("LAT_DELTA", "LON_DELTA"),
            default=None,
            help="Viewport span in degrees (default: viewport.location_span_deg).",
        )

    validate_p = subparsers.add_parser("validate", help="Validate config and GeoJSON layer files.")
    add_common(validate_p)

    inspect_p = subparsers.add_parser("inspect", help="Summarize loaded layers.")
    add_common(inspect_p)
    inspect_p.add_argument("--json", dest="json_path", default=None, help="Write summary JSON here.")

    query_p = subparsers.add_parser("query", help="List regions visible in a viewport.")
    add_common(query_p)
    add_extent(query_p)

    details_p = subparsers.add_parser("details", help="Show the topmost region at a point.")
    add_common(details_p)
    details_p.add_argument("--at", nargs=2, type=float, metavar=("LAT", "LON"), required=True)
    details_p.add_argument("--json", dest="json_path", default=None, help="Write details JSON here.")

    render_p = subparsers.add_parser("render", help="Render visible regions to a PNG.")
    add_common(render_p)
    add_extent(render_p)
    render_p.add_argument("--out", required=True, help="Output PNG path.")
    render_p.add_argument(
        "--select-at",
        nargs=2,
        type=float,
        metavar=("LAT", "LON"),
        default=None,
        help="Select (and center on) the topmost region at this point before rendering.",
    )

    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    setup_logging(cfg.logging.logs_dir / "tractmap.log", verbose=args.verbose)
    return cfg


def _open_session(cfg: AppConfig, layers: Sequence[str]) -> MapSession:
    session = MapSession(cfg)
    session.load_blocking(layers or None)
    if layers:
        for layer in cfg.layers:
            session.set_layer_enabled(layer.name, layer.name in layers)
    return session


def _resolve_extent(cfg: AppConfig, session: MapSession, args: argparse.Namespace) -> Viewport | None:
    if getattr(args, "bbox", None):
        min_lon, min_lat, max_lon, max_lat = args.bbox
        return Viewport.from_bounds(min_lon, min_lat, max_lon, max_lat)
    span = getattr(args, "span", None) or (cfg.viewport.location_span_deg, cfg.viewport.location_span_deg)
    if getattr(args, "center", None):
        lat, lon = args.center
        return Viewport(center_lat=lat, center_lon=lon, lat_delta=span[0], lon_delta=span[1])
    if cfg.viewport.initial is not None:
        return cfg.viewport.initial
    return _data_extent(session)


def _data_extent(session: MapSession) -> Viewport | None:
    points = [
        point
        for name in session.enabled_layers
        for region in session.store(name)
        for point in region.boundary
    ]
    if not points:
        return None
    min_lat, min_lon, max_lat, max_lon = lat_lon_bounds(points)
    pad_lat = (max_lat - min_lat) * _DATA_EXTENT_PADDING_RATIO
    pad_lon = (max_lon - min_lon) * _DATA_EXTENT_PADDING_RATIO
    return Viewport.from_bounds(min_lon - pad_lon, min_lat - pad_lat, max_lon + pad_lon, max_lat + pad_lat)


def _run_validate(cfg: AppConfig) -> int:
    report = Validator(cfg).run()
    for line in format_report_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _run_inspect(cfg: AppConfig, *, layers: Sequence[str], json_path: str | None) -> int:
    session = _open_session(cfg, layers)
    summary: dict[str, Any] = {"config": str(cfg.source_path), "layers": []}
    for status in session.layer_statuses():
        regions = list(session.store(status.layer.name))
        z_values = sorted({region.z_index for region in regions})
        entry = {
            "name": status.layer.name,
            "title": status.layer.title,
            "path": str(status.layer.path),
            "enabled": status.enabled,
            "loaded": status.loaded,
            "regions": status.region_count,
            "labelled": sum(1 for region in regions if region.name is not None),
            "z_values": z_values,
        }
        summary["layers"].append(entry)
        LOGGER.info(
            "%s [%s]: %d regions%s",
            status.layer.title,
            status.layer.name,
            status.region_count,
            "" if status.enabled else " (disabled)",
        )
    if json_path:
        write_json(Path(json_path), summary)
        LOGGER.info("Inspection JSON written to %s", json_path)
    return 0


def _run_query(cfg: AppConfig, args: argparse.Namespace) -> int:
    session = _open_session(cfg, args.layer)
    extent = _resolve_extent(cfg, session, args)
    if extent is None:
        LOGGER.error("No regions loaded and no viewport given.")
        return 1
    session.viewport.set_extent(extent)
    visible = session.visible_in_draw_order()
    LOGGER.info("%d regions visible in %s", len(visible), session.viewport.viewport)
    for region in visible:
        LOGGER.info("  z=%d %s [%s]", region.z_index, region.display_name, region.region_id)
    return 0


def _run_details(cfg: AppConfig, args: argparse.Namespace) -> int:
    session = _open_session(cfg, args.layer)
    lat, lon = args.at
    region = session.select_at(lat, lon)
    if region is None:
        LOGGER.info("No region at %.6f, %.6f", lat, lon)
        return 1
    for line in format_region_lines(region):
        LOGGER.info(line)
    if args.json_path:
        write_json(Path(args.json_path), region_details(region))
    return 0


def _run_render(cfg: AppConfig, args: argparse.Namespace) -> int:
    session = _open_session(cfg, args.layer)
    if args.select_at:
        selected = session.select_at(*args.select_at)
        if selected is None:
            LOGGER.warning("No region at %.6f, %.6f to select", *args.select_at)
    if session.selection is None:
        extent = _resolve_extent(cfg, session, args)
        if extent is not None:
            session.viewport.set_extent(extent)
    viewport = session.viewport.viewport
    if viewport is None:
        LOGGER.error("No regions loaded and no viewport given.")
        return 1
    result = render_viewport(
        session.viewport.visible_regions,
        viewport=viewport,
        cfg=cfg.render,
        output_path=Path(args.out),
        selected_region_id=session.selection.region_id if session.selection else None,
    )
    if result.labels_skipped:
        LOGGER.info("Skipped %d overlapping labels", len(result.labels_skipped))
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = str(args.command)
    if command == "validate":
        return _run_validate(cfg)
    if command == "inspect":
        return _run_inspect(cfg, layers=args.layer, json_path=args.json_path)
    if command == "query":
        return _run_query(cfg, args)
    if command == "details":
        return _run_details(cfg, args)
    if command == "render":
        return _run_render(cfg, args)
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        return _dispatch(args)
    except (FileNotFoundError, ValueError, KeyError) as exc:
        setup_logging(verbose=args.verbose)
        LOGGER.error("%s", exc)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
