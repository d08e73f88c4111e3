"""NDVI classification, per-pixel shading and raster overlay rendering."""

from agrisentinel.ndvi.classes import NdviClass, classify_ndvi, classify_array
from agrisentinel.ndvi.shader import NdviPixelShader, normalized_difference

__all__ = [
    "NdviClass",
    "NdviPixelShader",
    "classify_array",
    "classify_ndvi",
    "normalized_difference",
]
