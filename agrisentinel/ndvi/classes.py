"""
Module `ndvi.classes` maps NDVI values to the three land classes shown on
the parcel sizer map (plus a transparent NoData class).
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

BARE_THRESHOLD = 0.25
CULTIVATED_THRESHOLD = 0.60


@dataclass(frozen=True)
class NdviClass:
    """Named NDVI class with an RGBA colour (channels 0-255)."""

    name: str
    color: tuple[int, int, int, int]


NO_DATA = NdviClass("NoData", (0, 0, 0, 0))
BARE_GROUND = NdviClass("Bare ground", (210, 180, 140, 180))  # #D2B48C
CULTIVATED_ZONE = NdviClass("Cultivated zone", (0, 255, 0, 180))  # #00FF00
FOREST_ZONE = NdviClass("Forest zone", (0, 100, 0, 200))  # #006400

NDVI_CLASSES: tuple[NdviClass, ...] = (
    NO_DATA,
    BARE_GROUND,
    CULTIVATED_ZONE,
    FOREST_ZONE,
)


def classify_ndvi(value: float | None) -> NdviClass:
    """Return the :class:`NdviClass` for a single NDVI *value*.

    ``None`` and NaN map to :data:`NO_DATA`.
    """
    if value is None or math.isnan(value):
        return NO_DATA
    if value < BARE_THRESHOLD:
        return BARE_GROUND
    if value < CULTIVATED_THRESHOLD:
        return CULTIVATED_ZONE
    return FOREST_ZONE


def _class_codes(ndvi: np.ndarray) -> np.ndarray:
    """Return an int array indexing :data:`NDVI_CLASSES` for every value."""
    values = np.ma.filled(np.ma.asarray(ndvi, dtype="float64"), np.nan)
    codes = np.full(values.shape, 3, dtype="uint8")
    codes[values < CULTIVATED_THRESHOLD] = 2
    codes[values < BARE_THRESHOLD] = 1
    codes[np.isnan(values)] = 0
    return codes


def classify_array(ndvi: np.ndarray) -> np.ndarray:
    """Vectorised :func:`classify_ndvi` returning an ``(..., 4)`` uint8 RGBA array.

    Masked cells of a masked array are treated as NoData.
    """
    palette = np.array([c.color for c in NDVI_CLASSES], dtype="uint8")
    return palette[_class_codes(ndvi)]


def class_fractions(ndvi: np.ndarray) -> dict[str, float]:
    """Share of cells per class name, NoData included. Empty input gives zeros."""
    codes = _class_codes(ndvi)
    total = codes.size
    counts = np.bincount(codes.ravel(), minlength=len(NDVI_CLASSES))
    return {
        cls.name: (float(counts[i]) / total if total else 0.0)
        for i, cls in enumerate(NDVI_CLASSES)
    }
