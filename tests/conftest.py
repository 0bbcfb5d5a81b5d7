import json
import sys
from pathlib import Path

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
SRC = REPO_ROOT / "src"

# Prefer repo sources over any installed package.
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


FULL_STYLE = {
    "StrkClr": "black",
    "StrkWt": 1,
    "StrkOp": 1,
    "FillClrR": 0.2,
    "FillClrG": 0.4,
    "FillClrB": 0.6,
    "FillOp": 0.5,
}


def _square(min_lon, min_lat, size):
    return [
        [min_lon, min_lat],
        [min_lon + size, min_lat],
        [min_lon + size, min_lat + size],
        [min_lon, min_lat + size],
        [min_lon, min_lat],
    ]


@pytest.fixture
def square_feature():
    """Factory for a square Polygon feature with a full style."""

    def _make(name, min_lon, min_lat, size=0.01, z=0, **extra):
        properties = {"LblVal": name, "Z": z, **FULL_STYLE, **extra}
        return {
            "type": "Feature",
            "properties": properties,
            "geometry": {"type": "Polygon", "coordinates": [_square(min_lon, min_lat, size)]},
        }

    return _make


@pytest.fixture
def feature_collection():
    def _make(*features):
        return json.dumps({"type": "FeatureCollection", "features": list(features)})

    return _make


@pytest.fixture
def tract_config(tmp_path, square_feature, feature_collection):
    """Config with three layers on disk; subdivisions start disabled."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "regional.geojson").write_text(
        feature_collection(
            square_feature("Central", -97.78, 30.25, size=0.07, z=1),
            square_feature("East", -97.70, 30.25, size=0.05, z=1),
        ),
        encoding="utf-8",
    )
    (data_dir / "neighborhoods.geojson").write_text(
        feature_collection(
            square_feature("Hyde Park", -97.735, 30.298, size=0.014, z=2),
            square_feature("Far Away", -96.0, 31.0, size=0.01, z=2),
        ),
        encoding="utf-8",
    )
    (data_dir / "subdivisions.geojson").write_text(
        feature_collection(square_feature("Shadow Oaks", -97.73, 30.30, size=0.004, z=3)),
        encoding="utf-8",
    )
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "\n".join(
            [
                "layers:",
                "  - name: regional",
                "    title: Regional Neighborhoods",
                "    path: data/regional.geojson",
                "  - name: neighborhoods",
                "    title: Neighborhoods",
                "    path: data/neighborhoods.geojson",
                "  - name: subdivisions",
                "    title: Subdivisions",
                "    path: data/subdivisions.geojson",
                "    enabled: false",
                "viewport:",
                "  hysteresis_deg: 0.05",
                "logging:",
                "  logs_dir: build/logs",
                "",
            ]
        ),
        encoding="utf-8",
    )
    return config_path
