import numpy as np
import pytest

from mapcluster.config import ClusterConfig
from mapcluster.points import GeoPoint
from mapcluster.region import Viewport

NYC = (40.7484, -73.9857)
PHONE_W, PHONE_H = 1080, 2340


def make_points(coords, prefix="point"):
    return [
        GeoPoint(id=f"{prefix}-{i}", latitude=lat, longitude=lon)
        for i, (lat, lon) in enumerate(coords)
    ]


@pytest.fixture
def config():
    return ClusterConfig()


@pytest.fixture
def nyc_pair():
    lat, lon = NYC
    return make_points([(lat, lon), (lat, lon + 0.0001)])


@pytest.fixture
def nyc_viewport():
    lat, lon = NYC
    return Viewport(lat, lon, 0.1, 0.1, PHONE_W, PHONE_H)


@pytest.fixture
def scattered_points():
    """A few dense neighbourhoods plus uniform noise, fixed seed."""
    rng = np.random.default_rng(42)
    centers = [(40.75, -73.98), (34.05, -118.24), (51.5, -0.12), (-33.87, 151.21)]
    coords = []
    for lat, lon in centers:
        for dlat, dlon in rng.normal(scale=0.05, size=(60, 2)):
            coords.append((lat + dlat, lon + dlon))
    for lat, lon in zip(rng.uniform(-80, 80, 60), rng.uniform(-180, 180, 60)):
        coords.append((float(lat), float(lon)))
    return make_points(coords)
