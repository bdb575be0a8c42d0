"""
Web Mercator helpers shared by the index, the query engine and the viewport
guard.

Points are indexed in *unit* Mercator space: EPSG:3857 metres rescaled so the
world square spans [0, 1] on both axes, x growing east and y growing south
(top-left origin, same orientation as map tiles).
"""
from __future__ import annotations

import math
from typing import Tuple, Union

import numpy as np
from pyproj import Transformer

from .config import LIM, MERCATOR_MAX_LATITUDE
from .errors import InvalidViewportError

WORLD_W = 2 * LIM

TF_4326_3857 = Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True)
TF_3857_4326 = Transformer.from_crs("EPSG:3857", "EPSG:4326", always_xy=True)

ArrayLike = Union[float, np.ndarray]


# ---------------------------------------------------------------------------
# PROJECTION
# ---------------------------------------------------------------------------

def lonlat_to_unit(lon: ArrayLike, lat: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    """Project WGS84 lon/lat (scalars or arrays) into unit Mercator x/y."""
    lon = np.atleast_1d(np.asarray(lon, dtype="float64"))
    lat = np.clip(np.atleast_1d(np.asarray(lat, dtype="float64")),
                  -MERCATOR_MAX_LATITUDE, MERCATOR_MAX_LATITUDE)

    X, Y = TF_4326_3857.transform(lon, lat)

    x = (np.asarray(X) + LIM) / WORLD_W
    y = (LIM - np.asarray(Y)) / WORLD_W
    return np.clip(x, 0.0, 1.0), np.clip(y, 0.0, 1.0)


def unit_to_lonlat(x: ArrayLike, y: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    """Inverse of lonlat_to_unit."""
    X = np.atleast_1d(np.asarray(x, dtype="float64")) * WORLD_W - LIM
    Y = LIM - np.atleast_1d(np.asarray(y, dtype="float64")) * WORLD_W
    lon, lat = TF_3857_4326.transform(X, Y)
    return np.asarray(lon), np.asarray(lat)


def point_to_unit(lon: float, lat: float) -> Tuple[float, float]:
    x, y = lonlat_to_unit(lon, lat)
    return float(x[0]), float(y[0])


def unit_to_point(x: float, y: float) -> Tuple[float, float]:
    lon, lat = unit_to_lonlat(x, y)
    return float(lon[0]), float(lat[0])


def wrap_longitude(lon: float) -> float:
    """Normalise a longitude into [-180, 180)."""
    if -180.0 <= lon < 180.0:
        return lon
    return ((lon + 180.0) % 360.0) - 180.0


def clamp_latitude(lat: float, max_latitude: float = 85.0) -> float:
    """Clamp to the practical Web Mercator band; never rejects."""
    return max(-max_latitude, min(max_latitude, lat))


# ---------------------------------------------------------------------------
# ZOOM <-> REGION
# ---------------------------------------------------------------------------

def zoom_from_region(viewport, tile_size: int = 256) -> float:
    """
    Continuous tile zoom for a viewport:

        zoom = log2(360 * (width_px / tile_size) / longitude_delta)

    The caller clamps degenerate deltas first (see region.clamp_region_deltas).
    """
    lon_delta = viewport.longitude_delta
    width_px = viewport.width_px
    if not (lon_delta > 0 and width_px > 0 and tile_size > 0):
        raise InvalidViewportError(
            f"zoom needs positive longitude_delta/width/tile_size "
            f"(got {lon_delta}, {width_px}, {tile_size})"
        )
    world_tiles = width_px / tile_size
    return math.log2((360.0 * world_tiles) / lon_delta)


def deltas_from_zoom(
    zoom: float,
    latitude: float,
    width_px: float,
    height_px: float,
    tile_size: int = 256,
) -> Tuple[float, float]:
    """
    Inverse of zoom_from_region. Returns (latitude_delta, longitude_delta).

    The latitude span follows the viewport aspect ratio and is stretched by
    1/cos(latitude) for Mercator distortion at the given centre latitude.
    """
    world_tiles = width_px / tile_size
    lon_delta = (360.0 * world_tiles) / (2.0 ** zoom)

    aspect = height_px / width_px
    lat_rad = math.radians(clamp_latitude(latitude))
    lat_delta = lon_delta * aspect / math.cos(lat_rad)

    return lat_delta, lon_delta


def tile_zoom(real_zoom: float, min_zoom: int, max_zoom: int) -> int:
    """Round a continuous zoom to the integer level the index is queried at."""
    if not math.isfinite(real_zoom):
        # infinite zoom only comes from an unclamped zero delta
        return max_zoom if real_zoom > 0 else min_zoom
    # halves round up
    return int(max(min_zoom, min(max_zoom, math.floor(real_zoom + 0.5))))
