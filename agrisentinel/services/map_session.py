"""Per-map state shared by the raster loader and polygon capture.

One :class:`MapSession` exists per rendered map. It holds at most one NDVI
overlay and at most one drawn parcel geometry. Both are replaced with a
remove-before-add discipline and dropped by :meth:`MapSession.release`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from agrisentinel.ndvi.raster import OverlayLayer


@dataclass
class MapSession:
    """Owned state handle for one map instance."""

    lat: float
    lon: float
    overlay: OverlayLayer | None = None
    overlay_owner: Any = field(default=None, repr=False)
    fit_bounds: list[list[float]] | None = None
    max_zoom: int | None = None
    loading: bool = False
    drawn: dict[str, Any] | None = None
    area_ha: float | None = None

    @property
    def center(self) -> list[float]:
        return [self.lat, self.lon]

    def replace_overlay(self, layer: OverlayLayer, owner: Any = None) -> None:
        """Install *layer*, removing any previous overlay first."""
        self.clear_overlay()
        self.overlay = layer
        self.overlay_owner = owner

    def clear_overlay(self, owner: Any = None) -> bool:
        """Remove the overlay. With *owner*, only if that owner installed it."""
        if owner is not None and self.overlay_owner is not owner:
            return False
        self.overlay = None
        self.overlay_owner = None
        self.fit_bounds = None
        self.max_zoom = None
        return True

    def fit_to(self, bounds: list[list[float]], max_zoom: int | None = None) -> None:
        self.fit_bounds = bounds
        self.max_zoom = max_zoom

    def set_drawn(self, feature: dict[str, Any], area_ha: float) -> None:
        self.drawn = feature
        self.area_ha = area_ha

    def clear_drawn(self) -> None:
        self.drawn = None
        self.area_ha = None

    def release(self) -> None:
        """Drop every layer held by this session."""
        self.clear_overlay()
        self.clear_drawn()
        self.loading = False
