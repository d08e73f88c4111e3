from __future__ import annotations

import types
from pathlib import Path

import streamlit as st
from shapely.geometry import box, mapping

from agrisentinel.core.storage import LocalFS
from agrisentinel.schemas.parcel import ParcelRecord

APP_PATH = Path(__file__).resolve().parents[2] / "agrisentinel" / "webapp" / "app.py"


def _load_app_module():
    """Load app.py up to the Streamlit UI block."""
    src = APP_PATH.read_text(encoding="utf-8")
    prefix = src.split("# ---- Page config")[0]
    module = types.ModuleType("app_partial")
    module.__file__ = str(APP_PATH)
    exec(compile(prefix, str(APP_PATH), "exec"), module.__dict__)
    return module


def _clear_state() -> None:
    for k in list(st.session_state.keys()):
        del st.session_state[k]


def test_handle_polygon_generated_keeps_last_call():
    app = _load_app_module()
    _clear_state()

    app.handle_polygon_generated({"id": 1}, 1.0)
    app.handle_polygon_generated({"id": 2}, 2.0)

    assert st.session_state["parcel_polygon"] == {"id": 2}
    assert st.session_state["parcel_area_ha"] == 2.0


def test_save_parcel_persists_and_resets(tmp_path, monkeypatch):
    app = _load_app_module()
    _clear_state()
    monkeypatch.setattr(app, "storage", LocalFS(str(tmp_path)))
    released = []
    monkeypatch.setattr(app, "release_map_sizer", lambda: released.append(True))
    st.session_state["parcel_polygon"] = {"id": 1}
    st.session_state["parcel_area_ha"] = 3.0

    record = ParcelRecord(
        name="Plot1",
        culture_type="Cocoa",
        planting_year=2020,
        planting_density=1000.0,
        latitude=5.0,
        longitude=-4.0,
        geometry={
            "type": "Feature",
            "properties": {},
            "geometry": mapping(box(-4.0, 5.0, -3.99, 5.01)),
        },
        area_ha=3.0,
    )
    uri = app.save_parcel(record)

    assert Path(uri).exists()
    assert "parcel_polygon" not in st.session_state
    assert released == [True]
