"""Parcel sizer map: OSM basemap, NDVI overlay and polygon drawing tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import folium
from folium.raster_layers import TileLayer
from streamlit_folium import st_folium
import streamlit as st

from agrisentinel.core.config import ConfigManager
from agrisentinel.core.logger import Logger
from agrisentinel.services.map_session import MapSession
from agrisentinel.services.polygon_capture import (
    PolygonCallback,
    PolygonCapture,
    diff_drawings,
    draw_control,
)
from agrisentinel.services.raster_loader import RasterLoader

logger = Logger.get_logger(__name__)

LOADING_TEXT = "Loading GeoTIFF and computing NDVI…"
IDLE_TEXT = "Map (OpenStreetMap + client-side NDVI)"
DRAW_HINT = "Tip: draw a polygon (tool at the top left) over the crop area."
SESSION_KEY = "map_sizers"
RELEASED_KEY = "map_sizers_released"


def marker_popup_text(lat: float, lon: float) -> str:
    return f"Point ({lat:.5f}, {lon:.5f})"


def drawn_layer(feature: dict[str, Any]) -> folium.Polygon:
    """Editable Leaflet polygon for a retained parcel Feature.

    A plain polygon rather than ``folium.GeoJson`` so that Leaflet.Draw can
    edit and delete it like a freshly drawn shape.
    """
    ring = feature["geometry"]["coordinates"][0]
    return folium.Polygon(locations=[[lat, lon] for lon, lat in ring[:-1]])


def build_map(
    lat: float,
    lon: float,
    session: MapSession,
    *,
    config: ConfigManager | None = None,
) -> folium.Map:
    """Compose the sizer map from *session* state.

    Layers: basemap, a marker at ``(lat, lon)``, the session's NDVI overlay
    when one is installed, and the Draw control bound to its own feature
    group. That group holds only the retained parcel polygon, so discarded
    shapes never come back after a rerun. The view is fitted to the overlay
    bounds when they are known.
    """
    cfg = config or ConfigManager.default()
    map_cfg = cfg.get_section("map")

    m = folium.Map(location=[lat, lon], zoom_start=map_cfg.get("zoom", 15), tiles=None)
    TileLayer(
        tiles=map_cfg.get("tiles"),
        name="OpenStreetMap",
        attr=map_cfg.get("attribution"),
        overlay=False,
        control=False,
    ).add_to(m)

    folium.Marker(
        location=[lat, lon],
        popup=folium.Popup(marker_popup_text(lat, lon)),
    ).add_to(m)

    if session.overlay is not None:
        session.overlay.to_folium().add_to(m)

    drawn_group = folium.FeatureGroup(name="Drawn parcel")
    if session.drawn is not None:
        drawn_layer(session.drawn).add_to(drawn_group)
    drawn_group.add_to(m)
    draw_control(drawn_group).add_to(m)

    if session.fit_bounds:
        m.fit_bounds(session.fit_bounds, max_zoom=session.max_zoom)
    return m


@dataclass
class SizerState:
    """Everything one sizer map keeps across Streamlit reruns."""

    session: MapSession
    loader: RasterLoader
    capture: PolygonCapture
    tif_name: str | None = None
    drawings: list[dict[str, Any]] = field(default_factory=list)
    # bumped to remount the browser map without stale drawn layers
    generation: int = 0

    def widget_key(self, key: str) -> str:
        return f"{key}_map_{self.generation}"


def _get_state(
    key: str,
    lat: float,
    lon: float,
    on_polygon_generated: PolygonCallback,
    config: ConfigManager,
) -> SizerState:
    store = st.session_state.setdefault(SESSION_KEY, {})
    state = store.get(key)
    if state is None:
        released = st.session_state.setdefault(RELEASED_KEY, {})
        generation, drawings = released.pop(key, (0, []))
        session = MapSession(lat=lat, lon=lon)
        state = SizerState(
            session=session,
            loader=RasterLoader.from_config(session, config),
            capture=PolygonCapture(session, on_polygon_generated),
            drawings=list(drawings),
            generation=generation,
        )
        store[key] = state
        logger.debug("Created map sizer state %s", key)
    state.session.lat, state.session.lon = lat, lon
    state.capture.callback = on_polygon_generated
    return state


def release_map_sizer(key: str = "sizer") -> None:
    """Tear down the sizer stored under *key*, dropping overlay and polygon.

    The browser still reports the old shapes until the map remounts, so the
    last snapshot is carried over to the next sizer under *key* and the
    widget key moves on.
    """
    store = st.session_state.get(SESSION_KEY, {})
    state = store.pop(key, None)
    if state is None:
        return
    state.loader.teardown()
    state.capture.teardown()
    state.session.release()
    st.session_state.setdefault(RELEASED_KEY, {})[key] = (
        state.generation + 1,
        state.drawings,
    )


def display_map_sizer(
    lat: float,
    lon: float,
    tif_name: str,
    on_polygon_generated: PolygonCallback,
    *,
    key: str = "sizer",
    config: ConfigManager | None = None,
) -> MapSession:
    """Render the sizer map and route drawing events to *on_polygon_generated*.

    A new ``tif_name`` triggers one raster load; reruns with the same name
    reuse the installed overlay. Only the last created shape is kept: edits
    to shapes it replaced are ignored, and the map is remounted after each
    creation so they disappear from the browser.

    ``config`` is an injection point for the app and tests; it defaults to
    the bundled ``webapp.toml``.
    """
    cfg = config or ConfigManager.default()
    state = _get_state(key, lat, lon, on_polygon_generated, cfg)

    if state.tif_name != tif_name:
        state.tif_name = tif_name
        with st.spinner(LOADING_TEXT):
            state.loader.load_blocking(tif_name)

    st.caption(LOADING_TEXT if state.session.loading else IDLE_TEXT)

    m = build_map(lat, lon, state.session, config=cfg)
    result = st_folium(
        m,
        width=None,
        height=cfg.get_section("map").get("height", 500),
        key=state.widget_key(key),
        returned_objects=["all_drawings"],
    )

    # None until the browser component has reported anything
    current = (result or {}).get("all_drawings")
    if current is not None:
        events = diff_drawings(state.drawings, current, retained=state.session.drawn)
        state.drawings = list(current)
        state.capture.handle(events)
        if any(event.kind == "created" for event in events):
            state.generation += 1

    st.caption(DRAW_HINT)
    return state.session
