import geopandas as gpd
import pytest
from folium.plugins import Draw
from shapely.geometry import Point, box, mapping, shape

from agrisentinel.services.map_session import MapSession
from agrisentinel.services.polygon_capture import (
    DrawEvent,
    PolygonCapture,
    diff_drawings,
    draw_control,
    polygon_area_ha,
    same_geometry,
    to_polygon_feature,
)


def _feature(geom):
    return {"type": "Feature", "properties": {}, "geometry": mapping(geom)}


@pytest.fixture
def capture():
    calls = []
    session = MapSession(lat=0.0, lon=0.0)
    cap = PolygonCapture(session, lambda f, a: calls.append((f, a)))
    cap.calls = calls
    return cap


def test_rectangle_area_is_planar_area_over_10000(square_feature):
    expected_m2 = (
        gpd.GeoSeries([shape(square_feature["geometry"])], crs="EPSG:4326")
        .to_crs(epsg=8857)
        .area.iloc[0]
    )
    area_ha = polygon_area_ha(square_feature)
    assert area_ha == pytest.approx(expected_m2 / 10_000)
    # 0.001 deg x 0.001 deg at the equator is ~110.6 m x 111.3 m
    assert area_ha == pytest.approx(1.23, rel=0.01)


def test_to_polygon_feature_normalises_inputs(square_feature):
    from_feature = to_polygon_feature(square_feature)
    from_geometry = to_polygon_feature(square_feature["geometry"])
    from_shapely = to_polygon_feature(box(0, 0, 1, 1))
    for feature in (from_feature, from_geometry, from_shapely):
        assert feature["type"] == "Feature"
        assert feature["geometry"]["type"] == "Polygon"


def test_to_polygon_feature_keeps_properties():
    feature = _feature(box(0, 0, 1, 1))
    feature["properties"] = {"kind": "rectangle"}
    assert to_polygon_feature(feature)["properties"] == {"kind": "rectangle"}


def test_to_polygon_feature_unwraps_single_multipolygon():
    multi = {
        "type": "MultiPolygon",
        "coordinates": [[[[0, 0], [1, 0], [1, 1], [0, 0]]]],
    }
    assert to_polygon_feature(multi)["geometry"]["type"] == "Polygon"


@pytest.mark.parametrize(
    "bad", [_feature(Point(0, 0)), {"type": "Feature", "geometry": None}, 42]
)
def test_to_polygon_feature_rejects_non_polygons(bad):
    with pytest.raises(ValueError):
        to_polygon_feature(bad)


def test_created_reports_feature_and_area(capture, square_feature):
    capture.on_created(square_feature)

    assert len(capture.calls) == 1
    feature, area_ha = capture.calls[0]
    assert feature["geometry"]["type"] == "Polygon"
    assert area_ha == pytest.approx(polygon_area_ha(square_feature))
    assert capture.current == feature
    assert capture.area_ha == area_ha


def test_second_create_discards_first(capture):
    first = _feature(box(0, 0, 0.001, 0.001))
    second = _feature(box(0, 0, 0.002, 0.002))

    capture.on_created(first)
    capture.on_created(second)

    assert shape(capture.current["geometry"]).equals(box(0, 0, 0.002, 0.002))
    assert capture.area_ha == pytest.approx(capture.calls[-1][1])
    assert capture.area_ha > capture.calls[0][1]


def test_edit_batch_reports_each_shape_in_order(capture):
    a = _feature(box(0, 0, 0.001, 0.001))
    b = _feature(box(0, 0, 0.003, 0.003))

    capture.on_edited([a, b])

    assert len(capture.calls) == 2
    assert shape(capture.calls[0][0]["geometry"]).equals(box(0, 0, 0.001, 0.001))
    assert shape(capture.calls[1][0]["geometry"]).equals(box(0, 0, 0.003, 0.003))
    # last call is the retained shape
    assert capture.current == capture.calls[1][0]


def test_handle_routes_events(capture, square_feature):
    capture.handle(
        [
            DrawEvent("created", [square_feature]),
            DrawEvent("edited", [square_feature, square_feature]),
        ]
    )
    assert len(capture.calls) == 3


def test_teardown_clears_and_ignores_events(capture, square_feature):
    capture.on_created(square_feature)
    capture.teardown()

    capture.on_created(square_feature)
    capture.on_edited([square_feature])

    assert capture.current is None
    assert capture.area_ha is None
    assert len(capture.calls) == 1


def test_diff_drawings_created():
    a = _feature(box(0, 0, 1, 1))
    events = diff_drawings([], [a])
    assert [e.kind for e in events] == ["created"]
    assert events[0].features == [a]


def test_diff_drawings_edited_batch():
    a, b = _feature(box(0, 0, 1, 1)), _feature(box(2, 2, 3, 3))
    a2, b2 = _feature(box(0, 0, 2, 2)), _feature(box(2, 2, 4, 4))
    events = diff_drawings([a, b], [a2, b2])
    assert len(events) == 1
    assert events[0].kind == "edited"
    assert events[0].features == [a2, b2]


def test_diff_drawings_deletion_only_is_silent():
    a, b = _feature(box(0, 0, 1, 1)), _feature(box(2, 2, 3, 3))
    assert diff_drawings([a, b], [b]) == []
    assert diff_drawings([a], None) == []


def test_diff_drawings_unchanged():
    a = _feature(box(0, 0, 1, 1))
    assert diff_drawings([a], [a]) == []


def test_draw_control_options():
    control = draw_control()
    assert isinstance(control, Draw)
    opts = control.draw_options
    assert opts["polygon"] == {"allowIntersection": False, "showArea": True}
    assert opts["rectangle"] == {"showArea": True}
    for tool in ("marker", "circle", "circlemarker", "polyline"):
        assert opts[tool] is False


def test_diff_drawings_ignores_edits_to_replaced_shapes():
    a, b = _feature(box(0, 0, 1, 1)), _feature(box(2, 2, 3, 3))
    a2, b2 = _feature(box(0, 0, 2, 2)), _feature(box(2, 2, 4, 4))
    retained = to_polygon_feature(b)

    assert diff_drawings([a, b], [a2, b], retained=retained) == []
    events = diff_drawings([a, b], [a2, b2], retained=retained)
    assert [e.kind for e in events] == ["edited"]
    assert events[0].features == [b2]


def test_diff_drawings_skips_rerendered_retained_shape():
    b, c = _feature(box(2, 2, 3, 3)), _feature(box(5, 5, 6, 6))
    retained = to_polygon_feature(b)

    events = diff_drawings([], [b, c], retained=retained)

    assert [e.kind for e in events] == ["created"]
    assert events[0].features == [c]


def test_same_geometry_tolerates_leaflet_rounding():
    exact = _feature(box(0, 0, 0.0012345678, 0.0012345678))
    rounded = _feature(box(0, 0, 0.001235, 0.001235))
    assert same_geometry(exact, rounded)
    assert not same_geometry(exact, _feature(box(0, 0, 0.002, 0.002)))
    assert same_geometry(None, None)
    assert not same_geometry(exact, None)
