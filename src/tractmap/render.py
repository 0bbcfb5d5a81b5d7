"""Static PNG snapshots of the regions visible in a viewport."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from .config import RenderConfig
from .geo import project_lon_lat
from .models import Region, Viewport
from .store import draw_order

_LOGGER = logging.getLogger("tractmap.render")

_PixelBBox = tuple[float, float, float, float]

_LABEL_COLOR = "black"
_LABEL_BOX_ALPHA = 0.75
_LABEL_PADDING_PX = 2


@dataclass(frozen=True, slots=True)
class RenderRequest:
    regions: Sequence[Region]
    viewport: Viewport
    output_path: Path
    selected_region_id: str | None = None


@dataclass(slots=True)
class RenderResult:
    output_path: Path
    drawn: int = 0
    labels_drawn: int = 0
    labels_skipped: list[str] = field(default_factory=list)


class MapRenderer:
    """Draws regions in z order with their fill, stroke and label."""

    def __init__(self, cfg: RenderConfig) -> None:
        self.cfg = cfg

    def render(self, req: RenderRequest) -> RenderResult:
        plt = _require_matplotlib()
        dpi = self.cfg.dpi
        fig, ax = plt.subplots(figsize=(self.cfg.width_px / dpi, self.cfg.height_px / dpi), dpi=dpi)
        fig.subplots_adjust(left=0.0, right=1.0, bottom=0.0, top=1.0)
        result = RenderResult(output_path=req.output_path)
        try:
            _apply_background(fig=fig, ax=ax, background=self.cfg.background)
            rect = req.viewport.to_map_rect()
            ax.set_xlim(rect.min_x, rect.max_x)
            ax.set_ylim(rect.min_y, rect.max_y)
            ax.set_aspect("equal", adjustable="datalim")
            ax.set_axis_off()

            ordered = draw_order(req.regions)
            for zorder, region in enumerate(ordered, start=1):
                ax.add_patch(
                    _region_patch(region, zorder=zorder, selected=region.region_id == req.selected_region_id)
                )
                result.drawn += 1

            self._place_labels(fig=fig, ax=ax, regions=ordered, viewport=req.viewport, result=result)

            req.output_path.parent.mkdir(parents=True, exist_ok=True)
            fig.savefig(req.output_path, dpi=dpi, format="png")
        finally:
            plt.close(fig)
        _LOGGER.info(
            "Rendered %d regions (%d labels) to %s",
            result.drawn,
            result.labels_drawn,
            result.output_path,
        )
        return result

    def _place_labels(
        self,
        *,
        fig: Any,
        ax: Any,
        regions: Sequence[Region],
        viewport: Viewport,
        result: RenderResult,
    ) -> None:
        renderer = fig.canvas.get_renderer()
        occupied: list[_PixelBBox] = []
        # Topmost regions get first pick of label space.
        for region in reversed(regions):
            if region.name is None:
                continue
            lat, lon = region.label_point
            if not viewport.contains(lat, lon):
                continue
            x, y = project_lon_lat(lon, lat)
            artist = ax.text(
                x,
                y,
                region.name,
                color=_LABEL_COLOR,
                fontsize=region.font_size or self.cfg.label_font_size,
                ha="center",
                va="center",
                zorder=len(regions) + 1,
                bbox={"facecolor": "white", "alpha": _LABEL_BOX_ALPHA, "edgecolor": "none", "pad": 1.5},
            )
            bbox = _expanded_text_bbox(artist=artist, renderer=renderer, padding_px=_LABEL_PADDING_PX)
            if any(_intersection_area(bbox, other) > 0.0 for other in occupied):
                artist.remove()
                result.labels_skipped.append(region.name)
                continue
            occupied.append(bbox)
            result.labels_drawn += 1


def render_viewport(
    regions: Sequence[Region],
    *,
    viewport: Viewport,
    cfg: RenderConfig,
    output_path: Path,
    selected_region_id: str | None = None,
) -> RenderResult:
    return MapRenderer(cfg).render(
        RenderRequest(
            regions=regions,
            viewport=viewport,
            output_path=output_path,
            selected_region_id=selected_region_id,
        )
    )


def patch_colors(region: Region) -> tuple[tuple[float, float, float, float], tuple[float, float, float, float]]:
    """`(face, edge)` RGBA tuples for matplotlib."""
    return (_unit_rgba(region.style.fill_color), _unit_rgba(region.style.stroke_rgba))


def _region_patch(region: Region, *, zorder: int, selected: bool) -> Any:
    path_cls, patch_cls = _require_matplotlib_path()
    vertices: list[tuple[float, float]] = []
    codes: list[int] = []
    rings = [_oriented(region.boundary, clockwise=False)]
    rings.extend(_oriented(hole, clockwise=True) for hole in region.holes)
    for ring in rings:
        projected = [project_lon_lat(lon, lat) for lat, lon in ring]
        vertices.extend(projected)
        codes.append(path_cls.MOVETO)
        codes.extend([path_cls.LINETO] * (len(projected) - 2))
        codes.append(path_cls.CLOSEPOLY)
    face, edge = patch_colors(region)
    return patch_cls(
        path_cls(vertices, codes),
        facecolor=face,
        edgecolor=edge,
        linewidth=region.style.stroke_weight * (2.0 if selected else 1.0),
        zorder=zorder,
    )


def _oriented(ring: Sequence[tuple[float, float]], *, clockwise: bool) -> Sequence[tuple[float, float]]:
    # Signed area in (lon, lat) space; positive means counter-clockwise.
    area = 0.0
    for (lat0, lon0), (lat1, lon1) in zip(ring, ring[1:]):
        area += lon0 * lat1 - lon1 * lat0
    is_clockwise = area < 0.0
    return ring if is_clockwise == clockwise else tuple(reversed(ring))


def _unit_rgba(color: Sequence[float]) -> tuple[float, float, float, float]:
    r, g, b, a = (max(0.0, min(float(c), 1.0)) for c in color)
    return (r, g, b, a)


def _apply_background(*, fig: Any, ax: Any, background: str) -> None:
    if background.casefold() == "transparent":
        fig.patch.set_facecolor("white")
        fig.patch.set_alpha(0.0)
        ax.set_facecolor((1.0, 1.0, 1.0, 0.0))
    else:
        fig.patch.set_facecolor(background)
        ax.set_facecolor(background)


def _expanded_text_bbox(*, artist: Any, renderer: Any, padding_px: int) -> _PixelBBox:
    bbox = artist.get_window_extent(renderer=renderer)
    return (
        float(bbox.x0) - padding_px,
        float(bbox.y0) - padding_px,
        float(bbox.x1) + padding_px,
        float(bbox.y1) + padding_px,
    )


def _intersection_area(left: _PixelBBox, right: _PixelBBox) -> float:
    x0 = max(left[0], right[0])
    y0 = max(left[1], right[1])
    x1 = min(left[2], right[2])
    y1 = min(left[3], right[3])
    if x1 <= x0 or y1 <= y0:
        return 0.0
    return (x1 - x0) * (y1 - y0)


def _require_matplotlib() -> Any:
    try:
        import matplotlib

        matplotlib.use("Agg", force=False)
        import matplotlib.pyplot as plt
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for map rendering") from exc
    return plt


def _require_matplotlib_path() -> tuple[Any, Any]:
    try:
        from matplotlib.patches import PathPatch
        from matplotlib.path import Path as MplPath
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for map rendering") from exc
    return (MplPath, PathPatch)
