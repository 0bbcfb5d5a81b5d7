"""Detail sheet content for a selected region."""

from __future__ import annotations

from typing import Any, Sequence

from .models import Region


def region_details(region: Region) -> dict[str, Any]:
    min_lat, min_lon, max_lat, max_lon = region.lat_lon_bounds
    centroid_lat, centroid_lon = region.centroid
    style = region.style
    return {
        "id": region.region_id,
        "layer": region.layer,
        "name": region.display_name,
        "z_index": region.z_index,
        "label_anchor": list(region.label_anchor) if region.label_anchor else None,
        "centroid": [round(centroid_lat, 6), round(centroid_lon, 6)],
        "bounds": [min_lat, min_lon, max_lat, max_lon],
        "vertex_count": len(region.boundary),
        "hole_count": len(region.holes),
        "style": {
            "fill_color": list(style.fill_color),
            "stroke_color": style.stroke_color,
            "stroke_weight": style.stroke_weight,
            "stroke_opacity": style.stroke_opacity,
        },
    }


def format_region_lines(region: Region) -> Sequence[str]:
    details = region_details(region)
    style = details["style"]
    r, g, b, a = style["fill_color"]
    lines = [
        f"{details['name']} ({details['layer']}, z={details['z_index']})",
        f"  centroid: {details['centroid'][0]:.6f}, {details['centroid'][1]:.6f}",
        f"  fill: rgba({r:.3f}, {g:.3f}, {b:.3f}, {a:.3f})",
        f"  stroke: {style['stroke_color']} weight={style['stroke_weight']:g} "
        f"opacity={style['stroke_opacity']:g}",
    ]
    if details["label_anchor"] is not None:
        lat, lon = details["label_anchor"]
        lines.append(f"  label at: {lat:.6f}, {lon:.6f}")
    return lines
