from agrisentinel.ndvi.raster import OverlayLayer
from agrisentinel.services.map_session import MapSession


def _layer(name="a.tif"):
    return OverlayLayer(
        image_uri="data:image/png;base64,",
        bounds=[[0.0, 0.0], [1.0, 1.0]],
        asset_name=name,
        red_index=3,
        nir_index=7,
    )


def test_replace_overlay_keeps_single_layer():
    session = MapSession(lat=1.0, lon=2.0)
    owner = object()
    session.replace_overlay(_layer("a.tif"), owner=owner)
    session.fit_to([[0.0, 0.0], [1.0, 1.0]], 17)

    session.replace_overlay(_layer("b.tif"), owner=owner)

    assert session.overlay.asset_name == "b.tif"
    # the fit belonged to the removed overlay
    assert session.fit_bounds is None


def test_clear_overlay_respects_owner():
    session = MapSession(lat=1.0, lon=2.0)
    owner = object()
    session.replace_overlay(_layer(), owner=owner)

    assert session.clear_overlay(owner=object()) is False
    assert session.overlay is not None
    assert session.clear_overlay(owner=owner) is True
    assert session.overlay is None


def test_release_drops_everything():
    session = MapSession(lat=1.0, lon=2.0, loading=True)
    session.replace_overlay(_layer())
    session.set_drawn({"type": "Feature"}, 1.5)

    session.release()

    assert session.overlay is None
    assert session.drawn is None
    assert session.area_ha is None
    assert session.loading is False
    assert session.center == [1.0, 2.0]
