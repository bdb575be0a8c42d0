"""
Hierarchical point clustering over a zoom pyramid.

One level per integer zoom from ``max_zoom + 1`` (the raw points) down to
``min_zoom``. Level z is produced by greedily merging the nodes of level z+1
that fall within ``radius / (extent * 2**z)`` of each other in unit Mercator
space, so every point is represented by exactly one node on every level.

Usage
-----
    index = build_index(points, ClusterConfig())
    ids = index.range(0.0, 0.0, 1.0, 1.0, zoom=3)
    nodes = index.nodes_at(3, ids)
"""
from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import shapely
from shapely import STRtree
from tqdm import tqdm

from .config import DEFAULT_CONFIG, ClusterConfig
from .errors import UnknownClusterError
from .mercator import lonlat_to_unit, tile_zoom, unit_to_lonlat
from .nodes import Cluster, RenderableNode, Singleton
from .points import GeoPoint, filter_valid_points

logger = logging.getLogger(__name__)

_generations = itertools.count(1)


# ---------------------------------------------------------------------------
# LEVEL
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _Level:
    zoom: int
    x: np.ndarray           # unit Mercator, wrapped into [0, 1)
    y: np.ndarray
    num_points: np.ndarray
    node_id: np.ndarray     # cluster id, or point position for singletons
    is_cluster: np.ndarray
    tree: Optional[STRtree]

    def __len__(self):
        return int(self.x.shape[0])


def _make_level(zoom, x, y, num_points, node_id, is_cluster, node_size) -> _Level:
    x = np.asarray(x, dtype="float64")
    y = np.asarray(y, dtype="float64")
    num_points = np.asarray(num_points, dtype="int64")
    node_id = np.asarray(node_id, dtype="int64")
    is_cluster = np.asarray(is_cluster, dtype=bool)

    for arr in (x, y, num_points, node_id, is_cluster):
        arr.setflags(write=False)

    tree = None
    if x.shape[0]:
        tree = STRtree(shapely.points(x, y), node_capacity=node_size)

    return _Level(zoom, x, y, num_points, node_id, is_cluster, tree)


# ---------------------------------------------------------------------------
# INDEX
# ---------------------------------------------------------------------------

class SpatialIndex:
    """
    Immutable clustering pyramid built from one listings snapshot.

    Never mutated after construction; a new snapshot builds a new index with
    a higher ``generation``.
    """

    def __init__(
        self,
        points: Sequence[GeoPoint],
        config: ClusterConfig,
        levels: Dict[int, _Level],
        children: Dict[int, Tuple[int, np.ndarray]],
        dropped: int = 0,
    ):
        self._points = tuple(points)
        self._config = config
        self._levels = levels
        self._children = children
        self.dropped = dropped
        self.generation = next(_generations)

    # ---------------- properties ---------------- #
    @property
    def config(self) -> ClusterConfig:
        return self._config

    @property
    def point_count(self) -> int:
        return len(self._points)

    @property
    def points(self) -> Tuple[GeoPoint, ...]:
        return self._points

    @property
    def levels(self) -> Dict[int, int]:
        """Node count per zoom level."""
        return {z: len(level) for z, level in sorted(self._levels.items())}

    def query_zoom(self, real_zoom: float) -> int:
        return tile_zoom(real_zoom, self._config.min_zoom, self._config.max_zoom)

    # ---------------- range ---------------- #
    def range(self, minx: float, miny: float, maxx: float, maxy: float, zoom: int) -> np.ndarray:
        """Positions of the nodes of level ``zoom`` inside a unit Mercator box (inclusive)."""
        level = self._level(zoom)
        if level.tree is None:
            return np.empty(0, dtype="int64")
        hits = level.tree.query(shapely.box(minx, miny, maxx, maxy))
        return np.sort(np.asarray(hits, dtype="int64"))

    def nodes_at(self, zoom: int, positions: Iterable[int]) -> List[RenderableNode]:
        level = self._level(zoom)
        positions = np.asarray(list(positions), dtype="int64")
        if positions.size == 0:
            return []

        lon, lat = unit_to_lonlat(level.x[positions], level.y[positions])

        out: List[RenderableNode] = []
        for k, i in enumerate(positions):
            if level.is_cluster[i]:
                cid = int(level.node_id[i])
                out.append(Cluster(
                    id=cid,
                    latitude=float(lat[k]),
                    longitude=float(lon[k]),
                    point_count=int(level.num_points[i]),
                    expansion_zoom=self.get_cluster_expansion_zoom(cid),
                ))
            else:
                out.append(self._singleton(int(level.node_id[i])))
        return out

    # ---------------- cluster inspection ---------------- #
    def get_children(self, cluster_id: int) -> List[RenderableNode]:
        """Nodes the cluster was merged from, one zoom level deeper."""
        origin_zoom, members = self._members(cluster_id)
        return self.nodes_at(origin_zoom, members)

    def get_leaves(self, cluster_id: int, limit: int = 10, offset: int = 0) -> List[GeoPoint]:
        leaves = itertools.islice(self._iter_leaves(cluster_id), offset, offset + limit)
        return [self._points[i] for i in leaves]

    def get_cluster_expansion_zoom(self, cluster_id: int) -> int:
        """
        First zoom at which the cluster breaks into more than one node.

        Every merge takes at least two members, so that is the zoom the
        cluster was formed from.
        """
        origin_zoom, _ = self._members(cluster_id)
        return origin_zoom

    # ---------------- internal helpers ---------------- #
    def _level(self, zoom: int) -> _Level:
        z = max(self._config.min_zoom, min(int(zoom), self._config.max_zoom + 1))
        return self._levels[z]

    def _members(self, cluster_id: int) -> Tuple[int, np.ndarray]:
        try:
            return self._children[int(cluster_id)]
        except KeyError:
            raise UnknownClusterError(cluster_id) from None

    def _iter_leaves(self, cluster_id: int) -> Iterator[int]:
        origin_zoom, members = self._members(cluster_id)
        level = self._levels[origin_zoom]
        for i in members:
            if level.is_cluster[i]:
                yield from self._iter_leaves(int(level.node_id[i]))
            else:
                yield int(level.node_id[i])

    def _singleton(self, position: int) -> Singleton:
        p = self._points[position]
        return Singleton(
            id=position,
            latitude=p.latitude,
            longitude=p.longitude,
            source_point_id=p.id,
            rating=p.rating,
            category=p.category,
            title=p.title,
        )

    def __repr__(self):
        return (f"SpatialIndex(generation={self.generation}, points={self.point_count}, "
                f"zooms={self._config.min_zoom}..{self._config.max_zoom})")


# ---------------------------------------------------------------------------
# CLUSTERING
# ---------------------------------------------------------------------------

def _within(level: _Level, i: int, r: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Nodes within r of node i, wrapping across the antimeridian.

    Returns (positions, x_shift) where ``x[pos] + shift`` is the image of the
    neighbour closest to node i.
    """
    x, y = level.x[i], level.y[i]
    shifts = [0.0]
    if x + r >= 1.0:
        shifts.append(1.0)
    if x - r <= 0.0:
        shifts.append(-1.0)

    found: Dict[int, float] = {}
    for shift in shifts:
        cx = x - shift
        hits = level.tree.query(shapely.box(cx - r, y - r, cx + r, y + r))
        if len(hits) == 0:
            continue
        hits = np.asarray(hits, dtype="int64")
        dx = level.x[hits] + shift - x
        dy = level.y[hits] - y
        for j in hits[dx * dx + dy * dy <= r * r]:
            found.setdefault(int(j), shift)

    if not found:
        return np.empty(0, dtype="int64"), np.empty(0)
    pos = np.fromiter(found.keys(), dtype="int64", count=len(found))
    shift = np.fromiter(found.values(), dtype="float64", count=len(found))
    order = np.argsort(pos, kind="stable")
    return pos[order], shift[order]


def _cluster_level(
    level: _Level,
    zoom: int,
    config: ClusterConfig,
    total_points: int,
    children: Dict[int, Tuple[int, np.ndarray]],
) -> _Level:
    r = config.radius / (config.extent * 2 ** zoom)
    n = len(level)
    visited = np.zeros(n, dtype=bool)

    xs: List[float] = []
    ys: List[float] = []
    counts: List[int] = []
    ids: List[int] = []
    flags: List[bool] = []

    def keep(j):
        xs.append(level.x[j])
        ys.append(level.y[j])
        counts.append(level.num_points[j])
        ids.append(level.node_id[j])
        flags.append(level.is_cluster[j])

    for i in range(n):
        if visited[i]:
            continue
        visited[i] = True

        nbrs, shift = _within(level, i, r)
        free = ~visited[nbrs]
        nbrs, shift = nbrs[free], shift[free]

        origin_count = int(level.num_points[i])
        total = origin_count + int(level.num_points[nbrs].sum())

        if total > origin_count and total >= config.min_points:
            visited[nbrs] = True
            w = level.num_points[nbrs]
            wx = level.x[i] * origin_count + float(((level.x[nbrs] + shift) * w).sum())
            wy = level.y[i] * origin_count + float((level.y[nbrs] * w).sum())

            cid = (i << 5) + (zoom + 1) + total_points
            children[cid] = (zoom + 1, np.concatenate(([i], nbrs)).astype("int64"))

            xs.append((wx / total) % 1.0)
            ys.append(wy / total)
            counts.append(total)
            ids.append(cid)
            flags.append(True)
        else:
            keep(i)
            if total > 1:
                # too few to merge; carry the neighbours up unchanged
                visited[nbrs] = True
                for j in nbrs:
                    keep(j)

    return _make_level(zoom, xs, ys, counts, ids, flags, config.node_size)


# ---------------------------------------------------------------------------
# PUBLIC API
# ---------------------------------------------------------------------------

def build_index(
    points: Iterable[GeoPoint],
    config: ClusterConfig = DEFAULT_CONFIG,
    show_progress: bool = False,
) -> SpatialIndex:
    """
    Build a SpatialIndex from a listings snapshot.

    Points with invalid coordinates are dropped (and logged) before indexing.
    """
    t0 = time.perf_counter()
    valid, dropped = filter_valid_points(points)
    n = len(valid)

    lon = np.array([p.longitude for p in valid], dtype="float64")
    lat = np.array([p.latitude for p in valid], dtype="float64")
    if n:
        x, y = lonlat_to_unit(lon, lat)
        x = x % 1.0
    else:
        x, y = lon, lat

    top = config.max_zoom + 1
    levels: Dict[int, _Level] = {
        top: _make_level(top, x, y, np.ones(n), np.arange(n), np.zeros(n, dtype=bool),
                         config.node_size)
    }
    children: Dict[int, Tuple[int, np.ndarray]] = {}

    zooms = range(config.max_zoom, config.min_zoom - 1, -1)
    for z in tqdm(zooms, desc="Clustering zooms", disable=not show_progress):
        levels[z] = _cluster_level(levels[z + 1], z, config, n, children)
        logger.debug("zoom %d: %d nodes", z, len(levels[z]))

    for members in children.values():
        members[1].setflags(write=False)

    index = SpatialIndex(valid, config, levels, children, dropped=dropped)
    logger.info(
        "Built index generation %d: %d points (%d dropped), %d clusters, %.1f ms",
        index.generation, n, dropped, len(children), (time.perf_counter() - t0) * 1000,
    )
    return index
