from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Hashable, List, Optional, Sequence, Set, Tuple

from .config import DEFAULT_LIMITS, RegionLimits
from .index import SpatialIndex
from .mercator import lonlat_to_unit, wrap_longitude
from .nodes import RenderableNode
from .region import Bounds, Viewport, clamp_region_deltas

logger = logging.getLogger(__name__)


# ------------------------- cache ------------------------- #
class QueryCache:
    """
    LRU of query results for one index generation.

    Touching the cache with a different generation drops every entry, so
    results of a replaced index are never served.
    """

    def __init__(self, capacity=256):
        self.capacity = capacity
        self.generation: Optional[int] = None
        self._entries: "OrderedDict[Hashable, Tuple[RenderableNode, ...]]" = OrderedDict()

    def _bind(self, generation: int) -> None:
        if generation != self.generation:
            if self._entries:
                logger.debug("query cache reset: generation %s -> %s",
                             self.generation, generation)
            self._entries.clear()
            self.generation = generation

    def get(self, generation: int, key: Hashable) -> Optional[Tuple[RenderableNode, ...]]:
        self._bind(generation)
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return self._entries[key]

    def put(self, generation: int, key: Hashable, nodes: Sequence[RenderableNode]) -> None:
        self._bind(generation)
        self._entries[key] = tuple(nodes)
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            self._entries.popitem(last=False)

    def __len__(self):
        return len(self._entries)


# ------------------------- bounds helpers ------------------------- #
def normalize_bounds(bounds: Bounds) -> Bounds:
    """Wrap longitudes into [-180, 180] and clamp latitudes to [-90, 90]."""
    west, south, east, north = bounds
    if east - west >= 360.0:
        west, east = -180.0, 180.0
    else:
        west = wrap_longitude(west)
        east = wrap_longitude(east)
        if east == -180.0:
            east = 180.0
    south = max(-90.0, min(90.0, south))
    north = max(-90.0, min(90.0, north))
    if south > north:
        south, north = north, south
    return Bounds(west, south, east, north)


def _unit_boxes(part: Bounds) -> List[Tuple[float, float, float, float]]:
    """Unit Mercator boxes for one non-wrapping lon/lat box."""
    xs, ys = lonlat_to_unit([part.west, part.east], [part.north, part.south])
    minx, maxx = float(xs[0]), float(xs[1])
    miny, maxy = float(ys[0]), float(ys[1])
    boxes = [(minx, miny, maxx, maxy)]
    if maxx >= 1.0:
        # the index stores x=1 (lon 180) as x=0
        boxes.append((0.0, miny, 0.0, maxy))
    return boxes


def _dedup_key(node: RenderableNode, precision: int) -> Hashable:
    lon = wrap_longitude(node.longitude)
    return type(node).__name__, node.id, round(node.latitude, precision), round(lon, precision)


# ------------------------- query ------------------------- #
def query(
    index: SpatialIndex,
    bounds: Bounds,
    zoom: int,
    precision: int = DEFAULT_LIMITS.dedup_precision,
) -> List[RenderableNode]:
    """
    Renderable nodes of ``index`` inside ``bounds`` at integer ``zoom``.

    Bounds with east < west cross the antimeridian and are queried as two
    boxes; nodes found by both halves are returned once.
    """
    cfg = index.config
    zoom = max(cfg.min_zoom, min(int(zoom), cfg.max_zoom))
    if index.point_count == 0:
        return []

    positions: List[int] = []
    seen_positions: Set[int] = set()
    for part in normalize_bounds(bounds).split():
        for box in _unit_boxes(part):
            for i in index.range(*box, zoom=zoom):
                if int(i) not in seen_positions:
                    seen_positions.add(int(i))
                    positions.append(int(i))

    out: List[RenderableNode] = []
    seen: Set[Hashable] = set()
    for node in index.nodes_at(zoom, positions):
        key = _dedup_key(node, precision)
        if key in seen:
            continue
        seen.add(key)
        out.append(node)

    logger.debug("query z=%d bounds=%s -> %d nodes", zoom, tuple(bounds), len(out))
    return out


class ClusterQueryEngine:
    """Viewport-level entry point: guard, zoom rounding, split query, cache."""

    def __init__(self, limits: RegionLimits = DEFAULT_LIMITS, cache_capacity: int = 256):
        self.limits = limits
        self.cache = QueryCache(cache_capacity)

    def query(self, index: SpatialIndex, bounds: Bounds, zoom: int) -> List[RenderableNode]:
        p = self.limits.dedup_precision
        key = (tuple(round(v, p) for v in bounds), int(zoom))
        cached = self.cache.get(index.generation, key)
        if cached is not None:
            logger.debug("query cache hit %s", key)
            return list(cached)

        nodes = query(index, bounds, zoom, precision=p)
        self.cache.put(index.generation, key, nodes)
        return nodes

    def query_viewport(self, index: SpatialIndex, viewport: Viewport) -> Tuple[int, List[RenderableNode]]:
        """Clamp the viewport, derive its integer zoom and query it."""
        viewport = clamp_region_deltas(
            viewport, self.limits.min_delta, self.limits.max_latitude
        )
        zoom = index.query_zoom(viewport.zoom(index.config.tile_size))
        return zoom, self.query(index, viewport.bounds, zoom)
