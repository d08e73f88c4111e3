from __future__ import annotations

__doc__ = "Streamlit page for registering a parcel with the NDVI sizer map."

from typing import Any

import streamlit as st

from agrisentinel.core.config import ConfigManager
from agrisentinel.core.logger import Logger
from agrisentinel.core.storage import LocalFS
from agrisentinel.schemas.parcel import ParcelRecord
from agrisentinel.webapp.components.map_widget import (
    display_map_sizer,
    release_map_sizer,
)
from agrisentinel.webapp.components.parcel_form import (
    coordinate_inputs,
    format_area,
    render_parcel_form,
)
from agrisentinel.webapp.services.parcel_state import persist_parcel

# -------------------------------------------------------------------


logger = Logger.get_logger(__name__)

CONFIG = ConfigManager.default()
_raster_cfg = CONFIG.get_section("raster")
_parcel_cfg = CONFIG.get_section("parcel")
TIF_NAME = _raster_cfg.get("default_asset", "s2_Cocoa_ID_bssI9w_2024_01.tif")
DEFAULT_CENTER = (5.34532, -4.02441)

storage = LocalFS(_parcel_cfg.get("storage_root"))


def handle_polygon_generated(feature: dict[str, Any], area_ha: float) -> None:
    """Keep the latest drawn polygon; the last call wins on batch edits."""
    st.session_state["parcel_polygon"] = feature
    st.session_state["parcel_area_ha"] = area_ha


def save_parcel(record: ParcelRecord) -> str:
    """Persist *record* and reset the sizer so the next parcel starts clean."""
    uri = persist_parcel(record, storage)
    logger.info("Saved parcel %s (%.2f ha) to %s", record.name, record.area_ha, uri)
    st.session_state.pop("parcel_polygon", None)
    st.session_state.pop("parcel_area_ha", None)
    release_map_sizer()
    return uri


# ---- Page config -----------------------------------------------------------

st.set_page_config(page_title="AgriSentinel - New parcel", layout="wide")
st.title("New parcel")

form_col, map_col = st.columns(2)

with form_col:
    st.subheader("Parcel details")
    lat, lon = coordinate_inputs(*DEFAULT_CENTER)

with map_col:
    st.subheader("Map & masks")
    st.caption("Colours come from the NDVI. Draw the area to register.")
    display_map_sizer(lat, lon, TIF_NAME, handle_polygon_generated, config=CONFIG)
    if st.session_state.get("parcel_polygon") is not None:
        st.markdown(format_area(st.session_state.get("parcel_area_ha")))

with form_col:
    record = render_parcel_form(
        lat,
        lon,
        st.session_state.get("parcel_polygon"),
        st.session_state.get("parcel_area_ha"),
        culture_types=_parcel_cfg.get("culture_types", []),
    )
    if record is not None:
        saved_uri = save_parcel(record)
        st.success(f"Parcel saved to {saved_uri}")
