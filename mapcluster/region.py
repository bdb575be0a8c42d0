"""
Viewport model and the region stability guard.

Camera-animation callbacks report back a region that is almost, but not
exactly, the one that was requested. ``is_same_region`` treats those as equal
so an update never re-triggers the animation that produced it, and
``clamp_region_deltas`` keeps every viewport inside the range where the zoom
math stays finite.
"""
from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, replace
from typing import List, NamedTuple

from .config import DEFAULT_LIMITS
from .errors import InvalidViewportError
from .mercator import clamp_latitude, wrap_longitude, zoom_from_region


class Bounds(NamedTuple):
    west: float
    south: float
    east: float
    north: float

    @property
    def crosses_antimeridian(self) -> bool:
        return self.east < self.west

    def split(self) -> List["Bounds"]:
        """Non-wrapping boxes covering these bounds (one, or two at the seam)."""
        if not self.crosses_antimeridian:
            return [self]
        return [
            Bounds(self.west, self.south, 180.0, self.north),
            Bounds(-180.0, self.south, self.east, self.north),
        ]


WORLD_BOUNDS = Bounds(-180.0, -90.0, 180.0, 90.0)


@dataclass(frozen=True)
class Viewport:
    latitude: float
    longitude: float
    latitude_delta: float
    longitude_delta: float
    width_px: float
    height_px: float

    def __post_init__(self):
        for name in ("latitude", "longitude", "latitude_delta",
                     "longitude_delta", "width_px", "height_px"):
            value = getattr(self, name)
            if not isinstance(value, numbers.Real) or not math.isfinite(value):
                raise InvalidViewportError(f"Viewport.{name} must be finite (got {value!r})")
        if self.width_px <= 0 or self.height_px <= 0:
            raise InvalidViewportError(
                f"Viewport needs positive pixel dimensions "
                f"(got {self.width_px}x{self.height_px})"
            )

    def zoom(self, tile_size: int = 256) -> float:
        return zoom_from_region(self, tile_size)

    @property
    def bounds(self) -> Bounds:
        half_lat = self.latitude_delta / 2.0
        south = max(-90.0, self.latitude - half_lat)
        north = min(90.0, self.latitude + half_lat)

        if self.longitude_delta >= 360.0:
            return Bounds(-180.0, south, 180.0, north)

        half_lon = self.longitude_delta / 2.0
        west = wrap_longitude(self.longitude - half_lon)
        east = wrap_longitude(self.longitude + half_lon)
        if east == -180.0:
            # keep an eastern edge sitting exactly on the seam as +180
            east = 180.0
        return Bounds(west, south, east, north)

    @property
    def crosses_antimeridian(self) -> bool:
        return self.bounds.crosses_antimeridian


def is_same_region(a: Viewport, b: Viewport, epsilon: float = DEFAULT_LIMITS.epsilon) -> bool:
    """True when centre and spans of both viewports differ by less than epsilon."""
    dlon = abs(wrap_longitude(a.longitude - b.longitude))
    return (
        abs(a.latitude - b.latitude) < epsilon
        and dlon < epsilon
        and abs(a.latitude_delta - b.latitude_delta) < epsilon
        and abs(a.longitude_delta - b.longitude_delta) < epsilon
    )


def clamp_region_deltas(
    viewport: Viewport,
    min_delta: float = DEFAULT_LIMITS.min_delta,
    max_latitude: float = DEFAULT_LIMITS.max_latitude,
) -> Viewport:
    """Enforce delta >= min_delta on both spans and |latitude| <= max_latitude."""
    return replace(
        viewport,
        latitude=clamp_latitude(viewport.latitude, max_latitude),
        longitude=wrap_longitude(viewport.longitude),
        latitude_delta=max(viewport.latitude_delta, min_delta),
        longitude_delta=max(viewport.longitude_delta, min_delta),
    )
