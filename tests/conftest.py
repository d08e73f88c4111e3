# pylint: disable=missing-module-docstring,missing-function-docstring,redefined-outer-name
import numpy as np
import pytest
import rasterio
from rasterio.io import MemoryFile
from rasterio.transform import from_origin


def _profile(bands: np.ndarray, crs, transform, nodata=None) -> dict:
    profile = {
        "driver": "GTiff",
        "height": bands.shape[1],
        "width": bands.shape[2],
        "count": bands.shape[0],
        "dtype": str(bands.dtype),
        "transform": transform,
    }
    if crs is not None:
        profile["crs"] = crs
    if nodata is not None:
        profile["nodata"] = nodata
    return profile


def _make_bands(count: int = 8, rows: int = 4, cols: int = 4, *, red=0.1, nir=0.5):
    bands = np.full((count, rows, cols), 0.2, dtype="float32")
    if count > 3:
        bands[3] = red
    if count > 7:
        bands[7] = nir
    return bands


@pytest.fixture
def make_bands():
    """Factory for band stacks with constant red (index 3) and NIR (index 7)."""
    return _make_bands


@pytest.fixture
def write_tif(tmp_path):
    """Factory writing a GeoTIFF to ``tmp_path`` and returning its path."""

    def _write(
        bands: np.ndarray,
        name: str = "scene.tif",
        *,
        crs="EPSG:4326",
        transform=None,
        nodata=None,
    ) -> str:
        path = tmp_path / name
        transform = transform or from_origin(-4.03, 5.35, 0.001, 0.001)
        with rasterio.open(
            path, "w", **_profile(bands, crs, transform, nodata)
        ) as dst:
            dst.write(bands)
        return str(path)

    return _write


@pytest.fixture
def tif_bytes():
    """Factory returning in-memory GeoTIFF bytes for a band stack."""

    def _bytes(bands: np.ndarray, *, crs="EPSG:4326", transform=None) -> bytes:
        transform = transform or from_origin(-4.03, 5.35, 0.001, 0.001)
        with MemoryFile() as memfile:
            with memfile.open(**_profile(bands, crs, transform)) as dst:
                dst.write(bands)
            return memfile.read()

    return _bytes


@pytest.fixture
def square_feature():
    """~1.23 ha square near the equator (0.001 degree sides)."""
    return {
        "type": "Feature",
        "properties": {},
        "geometry": {
            "type": "Polygon",
            "coordinates": [
                [[0, 0], [0.001, 0], [0.001, 0.001], [0, 0.001], [0, 0]]
            ],
        },
    }
