"""
Map controller: owns the current SpatialIndex and the current viewport.

All state changes happen on the caller's (UI) thread except the reference
swap at the end of a background build, which is a single attribute
assignment guarded by the build ticket check.

Usage
-----
    ctl = MapController(Viewport(40.7128, -74.006, 0.1, 0.1, 1080, 2340))
    ctl.replace_points(points)
    ctl.on_region_change(new_viewport, now=t)
    nodes = ctl.flush(now=t + 0.2)
    decision = ctl.tap_cluster(cluster_id)
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, Future
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Tuple, Union

from .config import DEFAULT_CONFIG, DEFAULT_LIMITS, ClusterConfig, RegionLimits
from .errors import InvalidViewportError, UnknownClusterError
from .expansion import ExpansionController, ExpansionDecision
from .index import SpatialIndex, build_index
from .nodes import Cluster, RenderableNode
from .points import GeoPoint
from .query import ClusterQueryEngine
from .region import Viewport, clamp_region_deltas, is_same_region
from .telemetry import TelemetrySampler

logger = logging.getLogger(__name__)


class MapController:
    def __init__(
        self,
        viewport: Viewport,
        config: ClusterConfig = DEFAULT_CONFIG,
        limits: RegionLimits = DEFAULT_LIMITS,
        diagnostics: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.limits = limits
        self._clock = clock

        self._engine = ClusterQueryEngine(limits)
        self._expansion = ExpansionController(config, limits)
        self._telemetry = TelemetrySampler(config, clock=clock) if diagnostics else None

        self._index: SpatialIndex = build_index([], config)
        self._build_lock = threading.Lock()
        self._build_ticket = 0
        self._swapped_ticket = 0

        self._viewport = self._clamp(viewport)
        self._seq = 0
        self._rendered_seq = 0
        self._pending: Optional[Tuple[int, Viewport, float]] = None

        self._zoom = self.config.min_zoom
        self._nodes: List[RenderableNode] = []
        self._render(self._viewport)

    # ---------------- state ---------------- #
    @property
    def index(self) -> SpatialIndex:
        return self._index

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    @property
    def zoom(self) -> int:
        return self._zoom

    @property
    def nodes(self) -> List[RenderableNode]:
        return list(self._nodes)

    # ---------------- point set ---------------- #
    def replace_points(self, points: Iterable[GeoPoint]) -> SpatialIndex:
        """Build an index for a new snapshot and make it current."""
        with self._build_lock:
            self._build_ticket += 1
            ticket = self._build_ticket
        index = build_index(points, self.config)
        self._swap(index, ticket)
        return self._index

    def build_in_background(self, points: Iterable[GeoPoint], executor: Executor) -> Future:
        """
        Build on ``executor``; the result is swapped in when done unless a
        later request has been swapped in first. Call ``refresh()`` on the UI
        thread afterwards to re-query.
        """
        points = list(points)
        with self._build_lock:
            self._build_ticket += 1
            ticket = self._build_ticket

        future = executor.submit(build_index, points, self.config)
        future.add_done_callback(lambda f: self._on_built(f, ticket))
        return future

    def _on_built(self, future: Future, ticket: int) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Background index build %d failed: %s", ticket, exc)
            return
        self._swap(future.result(), ticket, render=False)

    def _swap(self, index: SpatialIndex, ticket: int, render: bool = True) -> None:
        with self._build_lock:
            if ticket < self._swapped_ticket:
                logger.info("Discarding stale index generation %d (build %d)",
                            index.generation, ticket)
                return
            self._swapped_ticket = ticket
            old = self._index
            self._index = index
        logger.info("Swapped index generation %d -> %d (%d points)",
                    old.generation, index.generation, index.point_count)
        if render:
            self._render(self._viewport)

    def refresh(self) -> List[RenderableNode]:
        return self._render(self._viewport)

    # ---------------- viewport events ---------------- #
    def set_dimensions(self, width_px: float, height_px: float) -> None:
        try:
            viewport = replace(self._viewport, width_px=width_px, height_px=height_px)
        except InvalidViewportError as e:
            logger.warning("Ignoring map dimensions %sx%s: %s", width_px, height_px, e)
            return
        self._render(self._clamp(viewport))

    def submit_region(self, latitude, longitude, latitude_delta, longitude_delta,
                      now: Optional[float] = None) -> bool:
        """Region report from the map widget, using the current pixel size."""
        try:
            viewport = Viewport(
                latitude, longitude, latitude_delta, longitude_delta,
                self._viewport.width_px, self._viewport.height_px,
            )
        except InvalidViewportError as e:
            # keep the previous frame
            logger.warning("Ignoring invalid region: %s", e)
            return False
        return self.on_region_change(viewport, now)

    def on_region_change(self, viewport: Viewport, now: Optional[float] = None) -> bool:
        """
        Queue a region change. Returns False when the region is the one
        already shown (animation echo), True when it was scheduled.
        """
        viewport = self._clamp(viewport)
        if is_same_region(self._viewport, viewport, self.limits.epsilon):
            if self._pending is not None:
                # back on the shown region: the queued one is now stale
                logger.debug("region event %d superseded by return to shown region",
                             self._pending[0])
                self._seq += 1
                self._pending = None
            return False

        now = self._clock() if now is None else now
        self._seq += 1
        if self._pending is not None:
            logger.debug("region event %d superseded by %d", self._pending[0], self._seq)
        self._pending = (self._seq, viewport, now + self.limits.debounce_ms / 1000.0)
        return True

    def flush(self, now: Optional[float] = None) -> Optional[List[RenderableNode]]:
        """Run the pending region change once its debounce window has elapsed."""
        if self._pending is None:
            return None
        now = self._clock() if now is None else now
        seq, viewport, due = self._pending
        if now < due:
            return None
        self._pending = None
        if seq <= self._rendered_seq:
            return None
        self._rendered_seq = seq
        return self._render(viewport)

    # ---------------- interaction ---------------- #
    def tap_cluster(self, cluster: Union[int, Cluster]) -> Optional[ExpansionDecision]:
        """
        Compute the animate-to region for a tapped cluster and make it the
        current viewport. Returns None if the target is the current region.
        """
        if not isinstance(cluster, Cluster):
            cluster = self._find_cluster(cluster)

        decision = self._expansion.decide(cluster, self._viewport)
        if is_same_region(self._viewport, decision.target_viewport, self.limits.epsilon):
            logger.info("Cluster %d: no-op region update prevented", cluster.id)
            return None

        if self._telemetry is not None:
            children = self._index.get_children(cluster.id)
            self._telemetry.record_expansion(cluster.expansion_zoom, len(children))

        # supersede any queued gesture with the expansion target
        self._pending = None
        self._seq += 1
        self._rendered_seq = self._seq
        self._render(decision.target_viewport)
        return decision

    def zoom_in(self) -> Viewport:
        return self._scaled(0.5)

    def zoom_out(self) -> Viewport:
        return self._scaled(2.0)

    def center_on(self, latitude: float, longitude: float, delta: float = 0.01) -> Viewport:
        return self._clamp(replace(
            self._viewport,
            latitude=latitude, longitude=longitude,
            latitude_delta=delta, longitude_delta=delta,
        ))

    # ---------------- internal helpers ---------------- #
    def _scaled(self, factor: float) -> Viewport:
        return self._clamp(replace(
            self._viewport,
            latitude_delta=self._viewport.latitude_delta * factor,
            longitude_delta=self._viewport.longitude_delta * factor,
        ))

    def _clamp(self, viewport: Viewport) -> Viewport:
        return clamp_region_deltas(viewport, self.limits.min_delta, self.limits.max_latitude)

    def _find_cluster(self, cluster_id: int) -> Cluster:
        for node in self._nodes:
            if isinstance(node, Cluster) and node.id == cluster_id:
                return node
        raise UnknownClusterError(cluster_id)

    def _render(self, viewport: Viewport) -> List[RenderableNode]:
        index = self._index
        zoom, nodes = self._engine.query_viewport(index, viewport)
        self._viewport = viewport
        self._zoom = zoom
        self._nodes = nodes
        if self._telemetry is not None:
            self._telemetry.sample(viewport, nodes)
        return list(nodes)
