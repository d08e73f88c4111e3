"""New-parcel form for the Streamlit dashboard."""

from __future__ import annotations

from datetime import date
from typing import Any, Sequence

import streamlit as st

from agrisentinel.core.exceptions import ParcelValidationError
from agrisentinel.schemas.parcel import ParcelRecord


def format_area(area_ha: float | None) -> str:
    return f"Detected area: {(area_ha or 0.0):.2f} ha"


def coordinate_inputs(default_lat: float, default_lon: float) -> tuple[float, float]:
    """Latitude/longitude inputs that centre the sizer map."""
    cols = st.columns(2)
    lat = cols[0].number_input(
        "Latitude", min_value=-90.0, max_value=90.0, value=default_lat, format="%.5f"
    )
    lon = cols[1].number_input(
        "Longitude",
        min_value=-180.0,
        max_value=180.0,
        value=default_lon,
        format="%.5f",
    )
    return float(lat), float(lon)


def render_parcel_form(
    lat: float,
    lon: float,
    polygon: dict[str, Any] | None,
    area_ha: float | None,
    *,
    culture_types: Sequence[str],
) -> ParcelRecord | None:
    """Render the parcel form; return a validated record once submitted."""

    with st.form("parcel_form"):
        name = st.text_input("Parcel name")
        culture = st.selectbox("Culture type", list(culture_types))
        year = st.number_input(
            "Planting year",
            min_value=1900,
            max_value=date.today().year,
            value=date.today().year,
            step=1,
        )
        density = st.number_input(
            "Planting density (plants/ha)", min_value=0.0, value=1100.0, step=50.0
        )
        forbidden = st.checkbox("Inside a forbidden zone")
        if polygon is not None:
            st.markdown(f"**{format_area(area_ha)}**")
        submitted = st.form_submit_button("Save parcel")

    if not submitted:
        return None
    if polygon is None:
        st.error("Draw the parcel boundary on the map before saving.")
        return None

    record = ParcelRecord(
        name=name,
        culture_type=str(culture),
        planting_year=int(year),
        planting_density=float(density),
        latitude=lat,
        longitude=lon,
        geometry=polygon,
        area_ha=area_ha,
        forbidden_zone=bool(forbidden),
    )
    try:
        record.validate()
    except ParcelValidationError as err:
        st.error(f"Invalid parcel: {err}")
        return None
    return record
