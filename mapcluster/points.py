from __future__ import annotations

import logging
import math
import numbers
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

LAT_MIN, LAT_MAX = -90.0, 90.0
LON_MIN, LON_MAX = -180.0, 180.0


@dataclass(frozen=True)
class GeoPoint:
    """Map-relevant projection of one listing."""

    id: str
    latitude: float
    longitude: float
    rating: Optional[float] = None
    category: str = "unknown"
    title: str = "Untitled"
    description: str = "No description"
    image_url: Optional[str] = None


def is_valid_coordinate(latitude, longitude) -> bool:
    for v in (latitude, longitude):
        if isinstance(v, bool) or not isinstance(v, numbers.Real):
            return False
        if not math.isfinite(v):
            return False
    return LAT_MIN <= latitude <= LAT_MAX and LON_MIN <= longitude <= LON_MAX


def filter_valid_points(points: Iterable[GeoPoint]) -> Tuple[List[GeoPoint], int]:
    """
    Drop points with out-of-range or non-finite coordinates.

    Returns the kept points (input order preserved) and the number dropped.
    """
    kept: List[GeoPoint] = []
    dropped_ids: List[str] = []
    for p in points:
        if is_valid_coordinate(p.latitude, p.longitude):
            kept.append(p)
        else:
            dropped_ids.append(str(p.id))

    if dropped_ids:
        logger.warning(
            "Dropped %d points with invalid coordinates (first: %s)",
            len(dropped_ids), dropped_ids[:5],
        )
    return kept, len(dropped_ids)
