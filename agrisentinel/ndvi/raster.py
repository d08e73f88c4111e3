from __future__ import annotations

"""Decoding multi-band GeoTIFFs and turning them into NDVI map overlays."""

import base64
import io
from dataclasses import dataclass

import numpy as np
import rasterio
from rasterio.errors import RasterioError
from rasterio.io import MemoryFile
from rasterio.warp import transform_bounds
from folium.raster_layers import ImageOverlay
from PIL import Image

from agrisentinel.core.exceptions import MissingBandError, RasterDecodeError
from agrisentinel.ndvi.shader import EPSILON, NdviPixelShader, render_overlay

# Sentinel-2 stacks: B4 = red, B8 = NIR (0-based positions)
PREFERRED_RED_INDEX = 3
PREFERRED_NIR_INDEX = 7


@dataclass
class BandRaster:
    """Decoded band stack plus its EPSG:4326 bounds.

    ``values`` has shape ``(bands, rows, cols)``; nodata cells are masked.
    ``bounds`` is ``[[south, west], [north, east]]`` or ``None`` when the
    source carries no CRS.
    """

    values: np.ma.MaskedArray
    bounds: list[list[float]] | None = None

    @property
    def band_count(self) -> int:
        return int(self.values.shape[0])


def _read_dataset(src) -> BandRaster:
    values = src.read(masked=True)
    bounds = None
    if src.crs is not None:
        left, bottom, right, top = src.bounds
        if src.crs.to_string() != "EPSG:4326":
            left, bottom, right, top = transform_bounds(
                src.crs, "EPSG:4326", left, bottom, right, top
            )
        # Cast to built-in float so Folium -> Jinja -> JSON doesn't choke on numpy scalars
        bounds = [
            [float(bottom), float(left)],
            [float(top), float(right)],
        ]
    return BandRaster(values=values, bounds=bounds)


def decode_geotiff(data: bytes) -> BandRaster:
    """Decode GeoTIFF *data* held in memory into a :class:`BandRaster`."""
    if not data:
        raise RasterDecodeError("Empty raster payload")
    try:
        with MemoryFile(data) as memfile:
            with memfile.open() as src:
                return _read_dataset(src)
    except (RasterioError, ValueError) as err:
        raise RasterDecodeError(f"Could not decode GeoTIFF: {err}") from err


def read_geotiff(path: str) -> BandRaster:
    """Decode the GeoTIFF at *path*."""
    try:
        with rasterio.open(path) as src:
            return _read_dataset(src)
    except RasterioError as err:
        raise RasterDecodeError(f"Could not read {path}: {err}") from err


def select_band_indices(band_count: int) -> tuple[int, int]:
    """Pick the (red, nir) band indices for a stack of *band_count* bands.

    Prefers the Sentinel-2 positions. A missing red band falls back to the
    first band; a missing NIR band falls back to the last available one.
    Stacks with fewer than 8 bands therefore give a scrambled NDVI, which is
    still rendered.
    """
    if band_count <= 0:
        raise MissingBandError("Raster has no bands")
    red = PREFERRED_RED_INDEX if PREFERRED_RED_INDEX < band_count else 0
    nir = PREFERRED_NIR_INDEX if PREFERRED_NIR_INDEX < band_count else band_count - 1
    return red, nir


def ndvi_array(raster: BandRaster) -> np.ma.MaskedArray:
    """Vectorised NDVI over the full stack using the selected bands."""
    red_idx, nir_idx = select_band_indices(raster.band_count)
    red = raster.values[red_idx].astype("float64")
    nir = raster.values[nir_idx].astype("float64")
    return (nir - red) / (nir + red + EPSILON)


def encode_png(rgba: np.ndarray) -> bytes:
    """Encode an RGBA uint8 array as PNG bytes."""
    img = Image.fromarray(np.ascontiguousarray(rgba, dtype="uint8"))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@dataclass
class OverlayLayer:
    """Colourised NDVI overlay ready to be placed on a folium map."""

    image_uri: str
    bounds: list[list[float]]
    asset_name: str
    red_index: int
    nir_index: int
    opacity: float = 0.6

    def to_folium(self) -> ImageOverlay:
        return ImageOverlay(
            image=self.image_uri,
            bounds=self.bounds,
            opacity=self.opacity,
            interactive=False,
            cross_origin=False,
            name=f"NDVI {self.asset_name}",
        )


def build_overlay(
    raster: BandRaster,
    asset_name: str,
    *,
    resolution: int = 64,
    opacity: float = 0.6,
) -> OverlayLayer:
    """Render *raster* through the NDVI shader and wrap it as an overlay."""
    if raster.bounds is None:
        raise RasterDecodeError(f"{asset_name} is not georeferenced")
    red_idx, nir_idx = select_band_indices(raster.band_count)
    shader = NdviPixelShader(red_idx, nir_idx)
    rgba = render_overlay(raster.values, shader, resolution)
    b64 = base64.b64encode(encode_png(rgba)).decode("utf-8")
    return OverlayLayer(
        image_uri=f"data:image/png;base64,{b64}",
        bounds=raster.bounds,
        asset_name=asset_name,
        red_index=red_idx,
        nir_index=nir_idx,
        opacity=opacity,
    )
