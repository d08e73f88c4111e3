"""Stateful services behind the parcel sizer map widget."""

from importlib import import_module

__all__ = [
    "MapSession",
    "RasterLoader",
    "PolygonCapture",
]


def __getattr__(name):
    if name == "MapSession":
        return import_module(".map_session", __name__).MapSession
    if name == "RasterLoader":
        return import_module(".raster_loader", __name__).RasterLoader
    if name == "PolygonCapture":
        return import_module(".polygon_capture", __name__).PolygonCapture
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
