import math
from dataclasses import replace

import pytest

from mapcluster.errors import InvalidViewportError
from mapcluster.region import Bounds, Viewport, clamp_region_deltas, is_same_region

W, H = 1080, 2340


@pytest.fixture
def base():
    return Viewport(40.7128, -74.006, 0.1, 0.1, W, H)


def test_same_region_is_reflexive_and_symmetric(base):
    other = replace(base, latitude=base.latitude + 5e-7)
    assert is_same_region(base, base)
    assert is_same_region(base, other) == is_same_region(other, base)


def test_sub_epsilon_difference_is_same_region(base):
    nudged = replace(
        base,
        latitude=base.latitude + 1e-7,
        longitude=base.longitude - 1e-7,
        latitude_delta=base.latitude_delta + 1e-7,
        longitude_delta=base.longitude_delta + 1e-7,
    )
    assert is_same_region(base, nudged)


@pytest.mark.parametrize("field", ["latitude", "longitude", "latitude_delta", "longitude_delta"])
def test_visible_difference_is_new_region(base, field):
    moved = replace(base, **{field: getattr(base, field) + 1e-3})
    assert not is_same_region(base, moved)
    assert not is_same_region(moved, base)


def test_same_region_across_antimeridian():
    a = Viewport(0, 180.0 - 1e-8, 1, 1, W, H)
    b = Viewport(0, -180.0 + 1e-8, 1, 1, W, H)
    assert is_same_region(a, b)


def test_clamp_enforces_minimum_delta():
    v = clamp_region_deltas(Viewport(0, 0, 1e-7, 1e-7, W, H))
    assert v.latitude_delta >= 5e-4
    assert v.longitude_delta >= 5e-4


def test_clamp_latitude_to_85():
    assert clamp_region_deltas(Viewport(90, 0, 1, 1, W, H)).latitude == 85
    assert clamp_region_deltas(Viewport(-90, 0, 1, 1, W, H)).latitude == -85


def test_clamp_keeps_valid_viewport(base):
    assert clamp_region_deltas(base) == base


def test_clamp_wraps_longitude():
    v = clamp_region_deltas(Viewport(0, 190.0, 1, 1, W, H))
    assert v.longitude == pytest.approx(-170.0)


@pytest.mark.parametrize("bad", [
    dict(latitude=math.nan),
    dict(longitude=math.inf),
    dict(latitude_delta=-math.inf),
    dict(longitude_delta=math.nan),
    dict(width_px=0),
    dict(height_px=-1),
    dict(latitude="40"),
])
def test_invalid_viewport_rejected(base, bad):
    with pytest.raises(InvalidViewportError):
        replace(base, **bad)


def test_bounds_of_viewport(base):
    b = base.bounds
    assert b.west == pytest.approx(-74.056)
    assert b.east == pytest.approx(-73.956)
    assert b.south == pytest.approx(40.6628)
    assert b.north == pytest.approx(40.7628)
    assert not base.crosses_antimeridian


def test_bounds_crossing_antimeridian():
    v = Viewport(0.0, 180.0, 20.0, 20.0, W, H)
    b = v.bounds
    assert b.west == pytest.approx(170.0)
    assert b.east == pytest.approx(-170.0)
    assert v.crosses_antimeridian

    west_half, east_half = b.split()
    assert west_half == Bounds(b.west, b.south, 180.0, b.north)
    assert east_half == Bounds(-180.0, b.south, b.east, b.north)


def test_bounds_full_world_width():
    b = Viewport(0.0, 30.0, 170.0, 400.0, W, H).bounds
    assert (b.west, b.east) == (-180.0, 180.0)
    assert b.north <= 90.0 and b.south >= -90.0


def test_non_crossing_bounds_split_is_identity():
    b = Bounds(-10.0, -5.0, 10.0, 5.0)
    assert b.split() == [b]
