import math

import pytest

from mapcluster.errors import InvalidViewportError
from mapcluster.mercator import (
    clamp_latitude,
    deltas_from_zoom,
    point_to_unit,
    tile_zoom,
    unit_to_point,
    wrap_longitude,
    zoom_from_region,
)
from mapcluster.region import Viewport

W, H = 1080, 2340


def test_projection_origin_and_corners():
    assert point_to_unit(0.0, 0.0) == pytest.approx((0.5, 0.5))
    assert point_to_unit(-180.0, 0.0)[0] == pytest.approx(0.0)
    assert point_to_unit(180.0, 0.0)[0] == pytest.approx(1.0)
    # north is up: y shrinks as latitude grows
    assert point_to_unit(0.0, 60.0)[1] < 0.5 < point_to_unit(0.0, -60.0)[1]


def test_projection_clamps_poles():
    assert point_to_unit(0.0, 90.0)[1] == pytest.approx(0.0, abs=1e-9)
    assert point_to_unit(0.0, -90.0)[1] == pytest.approx(1.0, abs=1e-9)


def test_unit_to_point_inverts_projection():
    x, y = point_to_unit(-73.9857, 40.7484)
    lon, lat = unit_to_point(x, y)
    assert lon == pytest.approx(-73.9857, abs=1e-9)
    assert lat == pytest.approx(40.7484, abs=1e-9)


def test_wrap_longitude():
    assert wrap_longitude(10.0) == 10.0
    assert wrap_longitude(181.0) == pytest.approx(-179.0)
    assert wrap_longitude(-181.0) == pytest.approx(179.0)
    assert wrap_longitude(180.0) == -180.0
    assert wrap_longitude(540.0) == -180.0


def test_clamp_latitude():
    assert clamp_latitude(90) == 85
    assert clamp_latitude(-90) == -85
    assert clamp_latitude(0) == 0
    assert clamp_latitude(45) == 45


def test_zoom_from_region_formula():
    v = Viewport(0, 0, 0.1, 0.1, W, H)
    assert zoom_from_region(v, 256) == pytest.approx(math.log2(360 * (W / 256) / 0.1))


def test_zoom_from_region_rejects_zero_delta():
    v = Viewport(0, 0, 0.1, 0.0, W, H)
    with pytest.raises(InvalidViewportError):
        zoom_from_region(v)


def test_zoom_is_monotonic_in_longitude_delta():
    deltas = [120.0, 40.0, 10.0, 1.0, 0.1, 0.01, 0.001]
    zooms = [zoom_from_region(Viewport(0, 0, d, d, W, H)) for d in deltas]
    assert all(b > a for a, b in zip(zooms, zooms[1:]))


@pytest.mark.parametrize("lat, width, height", [
    (64.1355, 1080, 2340),   # Reykjavik
    (-54.8019, 1080, 2340),  # Ushuaia
    (0.0, 2560, 1080),       # 21:9
    (0.0, 1080, 2560),       # 9:21
])
def test_round_trip_reproduces_longitude_delta(lat, width, height):
    v = Viewport(lat, 0.0, 0.1, 0.1, width, height)
    zoom = zoom_from_region(v)

    _, exact = deltas_from_zoom(zoom, lat, width, height)
    assert exact == pytest.approx(0.1, rel=1e-9)

    _, rounded = deltas_from_zoom(round(zoom), lat, width, height)
    assert rounded == pytest.approx(0.1, rel=0.2)


def test_latitude_delta_grows_with_latitude():
    _, lon_delta = deltas_from_zoom(14, 0.0, W, H)
    at_equator, _ = deltas_from_zoom(14, 0.0, W, H)
    at_reykjavik, _ = deltas_from_zoom(14, 64.1355, W, H)
    assert at_equator == pytest.approx(lon_delta * H / W)
    assert at_reykjavik > at_equator
    assert at_reykjavik > lon_delta


def test_deltas_from_zoom_finite_at_pole():
    lat_delta, lon_delta = deltas_from_zoom(10, 90.0, W, H)
    assert math.isfinite(lat_delta) and lat_delta > 0
    assert math.isfinite(lon_delta) and lon_delta > 0


def test_rapid_zoom_sequence_stays_bounded():
    zooms = []
    for z in [5, 10, 15, 12, 8, 18]:
        lat_delta, lon_delta = deltas_from_zoom(z, 0.0, W, H)
        zooms.append(zoom_from_region(Viewport(0.0, 0.0, lat_delta, lon_delta, W, H)))

    for z in zooms:
        assert math.isfinite(z)
        assert 0 <= z <= 25
    for a, b in zip(zooms, zooms[1:]):
        assert abs(b - a) <= 10 + 1e-9


def test_tile_zoom_rounds_and_clamps():
    assert tile_zoom(13.4, 0, 20) == 13
    assert tile_zoom(13.6, 0, 20) == 14
    assert tile_zoom(12.5, 0, 20) == 13
    assert tile_zoom(13.5, 0, 20) == 14
    assert tile_zoom(-3.0, 0, 20) == 0
    assert tile_zoom(27.0, 0, 20) == 20
    assert tile_zoom(float("inf"), 0, 20) == 20
    assert tile_zoom(float("nan"), 2, 20) == 2
