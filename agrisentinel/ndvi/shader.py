"""Per-pixel NDVI colouring used to build raster overlays."""

from __future__ import annotations

import math
from typing import Any, Sequence

import numpy as np

from agrisentinel.ndvi.classes import classify_ndvi

EPSILON = 1e-6
TRANSPARENT = (0, 0, 0, 0)


def normalized_difference(nir: float, red: float) -> float:
    """Return ``(nir - red) / (nir + red + EPSILON)``."""
    return (nir - red) / (nir + red + EPSILON)


def rgba_css(color: Sequence[int]) -> str:
    """Render an RGBA tuple as a CSS ``rgba()`` string with alpha in 0-1."""
    alpha = color[3] if len(color) > 3 else 255
    return f"rgba({color[0]},{color[1]},{color[2]},{alpha / 255})"


def _sample(values: Sequence[Any], index: int) -> float | None:
    if index < 0 or index >= len(values):
        return None
    value = values[index]
    if value is None or value is np.ma.masked:
        return None
    return float(value)


class NdviPixelShader:
    """Colour a pixel from its band samples.

    The red and NIR indices are fixed at construction, once per raster load.
    Calling the shader returns a CSS colour string; :meth:`color` returns the
    raw RGBA tuple used when painting the overlay image.
    """

    def __init__(self, red_index: int, nir_index: int) -> None:
        self.red_index = red_index
        self.nir_index = nir_index

    def ndvi(self, values: Sequence[Any]) -> float | None:
        """NDVI for *values*, or ``None`` when a designated sample is missing."""
        red = _sample(values, self.red_index)
        nir = _sample(values, self.nir_index)
        if red is None or nir is None:
            return None
        return normalized_difference(nir, red)

    def color(self, values: Sequence[Any]) -> tuple[int, int, int, int]:
        ndvi = self.ndvi(values)
        if ndvi is None:
            return TRANSPARENT
        return classify_ndvi(ndvi).color

    def __call__(self, values: Sequence[Any]) -> str:
        return rgba_css(self.color(values))

    def __repr__(self) -> str:
        return f"NdviPixelShader(red_index={self.red_index}, nir_index={self.nir_index})"


def decimation_step(rows: int, cols: int, resolution: int) -> int:
    """Stride that keeps the longer side at or below *resolution* pixels."""
    if resolution <= 0:
        raise ValueError("resolution must be positive")
    return max(1, math.ceil(max(rows, cols) / resolution))


def render_overlay(
    bands: np.ndarray, shader: NdviPixelShader, resolution: int
) -> np.ndarray:
    """Paint a ``(rows, cols, 4)`` uint8 RGBA image from a band stack.

    *bands* has shape ``(bands, rows, cols)`` and may be a masked array.
    The stack is decimated first, then *shader* is called once per rendered
    pixel.
    """
    stack = np.ma.asarray(bands)
    if stack.ndim != 3:
        raise ValueError(f"Expected a (bands, rows, cols) array, got {stack.shape}")
    step = decimation_step(stack.shape[1], stack.shape[2], resolution)
    sampled = stack[:, ::step, ::step]
    data = np.ma.getdata(sampled)
    mask = np.ma.getmaskarray(sampled)

    out = np.zeros((sampled.shape[1], sampled.shape[2], 4), dtype="uint8")
    for r in range(sampled.shape[1]):
        for c in range(sampled.shape[2]):
            values = [
                None if m else v for v, m in zip(data[:, r, c].tolist(), mask[:, r, c])
            ]
            out[r, c] = shader.color(values)
    return out
