"""Capture the parcel polygon drawn on the sizer map and report its area.

The drawing tool is Leaflet.Draw (``folium.plugins.Draw``). In the Streamlit
dashboard its state comes back from ``st_folium`` as a list of GeoJSON
features; :func:`diff_drawings` turns consecutive snapshots into the
``created`` / ``edited`` events that :class:`PolygonCapture` consumes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Literal, Sequence

import folium
import geopandas as gpd
from folium.plugins import Draw
from shapely.geometry import MultiPolygon, Polygon, mapping, shape
from shapely.geometry.base import BaseGeometry

from agrisentinel.services.base import BaseService
from agrisentinel.services.map_session import MapSession

# Equal Earth, used for area in square metres
DEFAULT_AREA_CRS = 8857
SQUARE_METRES_PER_HECTARE = 10_000.0
# degrees; Leaflet serialises coordinates with six decimals
GEOMETRY_TOLERANCE = 1e-6

PolygonCallback = Callable[[dict[str, Any], float], None]


def to_polygon_feature(shape_like: Any) -> dict[str, Any]:
    """Normalise a drawn shape to a GeoJSON ``Feature`` with a ``Polygon``.

    Accepts a Feature, a bare geometry mapping or a shapely geometry.
    Rectangles arrive as polygons already; a single-part MultiPolygon is
    unwrapped. Anything else raises ``ValueError``.
    """
    properties: dict[str, Any] = {}
    if isinstance(shape_like, BaseGeometry):
        geom = shape_like
    elif isinstance(shape_like, dict):
        if shape_like.get("type") == "Feature":
            properties = dict(shape_like.get("properties") or {})
            raw = shape_like.get("geometry")
        else:
            raw = shape_like
        if not raw:
            raise ValueError("Drawn shape has no geometry")
        geom = shape(raw)
    else:
        raise ValueError(f"Unsupported shape: {type(shape_like).__name__}")

    if isinstance(geom, MultiPolygon) and len(geom.geoms) == 1:
        geom = geom.geoms[0]
    if not isinstance(geom, Polygon):
        raise ValueError(f"Expected a polygon, got {geom.geom_type}")
    return {"type": "Feature", "properties": properties, "geometry": mapping(geom)}


def polygon_area_ha(feature: dict[str, Any], area_crs: int = DEFAULT_AREA_CRS) -> float:
    """Planar area of *feature* in hectares, measured in ``area_crs``."""
    geom = shape(feature["geometry"])
    area_m2 = gpd.GeoSeries([geom], crs="EPSG:4326").to_crs(epsg=area_crs).area.iloc[0]
    return float(area_m2) / SQUARE_METRES_PER_HECTARE


@dataclass
class DrawEvent:
    """A drawing-tool event: one created shape or a batch of edited shapes."""

    kind: Literal["created", "edited"]
    features: list[dict[str, Any]] = field(default_factory=list)


def _geometry(feature: dict[str, Any]) -> Any:
    return feature.get("geometry") if feature.get("type") == "Feature" else feature


def same_geometry(a: dict[str, Any] | None, b: dict[str, Any] | None) -> bool:
    """True when two features or geometries describe the same shape.

    Leaflet rounds coordinates to six decimals when it serialises layers, so
    shapes are compared with a small tolerance rather than by value.
    """
    if a is None or b is None:
        return a is b
    geom_a, geom_b = _geometry(a), _geometry(b)
    if not geom_a or not geom_b:
        return geom_a == geom_b
    return shape(geom_a).equals_exact(shape(geom_b), GEOMETRY_TOLERANCE)


def diff_drawings(
    previous: Sequence[dict[str, Any]] | None,
    current: Sequence[dict[str, Any]] | None,
    retained: dict[str, Any] | None = None,
) -> list[DrawEvent]:
    """Derive draw events from two ``all_drawings`` snapshots.

    Leaflet.Draw appends new shapes, so features past the previous length
    are ``created``. Earlier features whose geometry changed form one
    ``edited`` batch. A snapshot that lost shapes is a deletion and produces
    no event.

    With *retained*, only edits to that shape are reported, and a "new"
    shape equal to it (the retained shape re-rendered on a fresh map) is
    not reported as created.
    """
    prev = list(previous or [])
    curr = list(current or [])
    events: list[DrawEvent] = []

    if len(curr) < len(prev):
        return events

    edited = [
        c
        for c, p in zip(curr, prev)
        if not same_geometry(c, p)
        and (retained is None or same_geometry(p, retained))
    ]
    created = [
        c
        for c in curr[len(prev):]
        if retained is None or not same_geometry(c, retained)
    ]

    if edited:
        events.append(DrawEvent("edited", edited))
    for feature in created:
        events.append(DrawEvent("created", [feature]))
    return events


def draw_control(feature_group: folium.FeatureGroup | None = None) -> Draw:
    """Leaflet.Draw control limited to polygons and rectangles."""
    return Draw(
        export=False,
        feature_group=feature_group,
        position="topleft",
        draw_options={
            "polygon": {"allowIntersection": False, "showArea": True},
            "rectangle": {"showArea": True},
            "marker": False,
            "circle": False,
            "circlemarker": False,
            "polyline": False,
        },
        edit_options={"edit": True, "remove": True},
    )


class PolygonCapture(BaseService):
    """Keep the single current parcel polygon and report it to *callback*.

    ``callback(feature, area_ha)`` is invoked once per created shape and once
    per shape of an edit batch, in the order the tool reports them.
    """

    def __init__(
        self,
        session: MapSession,
        callback: PolygonCallback,
        *,
        area_crs: int = DEFAULT_AREA_CRS,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(logger)
        self.session = session
        self.callback = callback
        self.area_crs = area_crs
        self.active = True

    @property
    def current(self) -> dict[str, Any] | None:
        return self.session.drawn

    @property
    def area_ha(self) -> float | None:
        return self.session.area_ha

    def _report(self, shape_like: Any) -> None:
        feature = to_polygon_feature(shape_like)
        area_ha = polygon_area_ha(feature, self.area_crs)
        self.session.set_drawn(feature, area_ha)
        self.logger.debug("Parcel polygon captured: %.4f ha", area_ha)
        self.callback(feature, area_ha)

    def on_created(self, shape_like: Any) -> None:
        if not self.active:
            self.logger.debug("Ignoring created shape after teardown")
            return
        self.session.clear_drawn()
        self._report(shape_like)

    def on_edited(self, shapes: Iterable[Any]) -> None:
        if not self.active:
            self.logger.debug("Ignoring edited shapes after teardown")
            return
        for shape_like in shapes:
            self._report(shape_like)

    def handle(self, events: Iterable[DrawEvent]) -> None:
        for event in events:
            if event.kind == "created":
                for feature in event.features:
                    self.on_created(feature)
            else:
                self.on_edited(event.features)

    def teardown(self) -> None:
        self.active = False
        self.session.clear_drawn()
