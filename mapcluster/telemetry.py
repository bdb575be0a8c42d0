from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from typing import Callable, Optional, Sequence

from .config import DEFAULT_CONFIG, ClusterConfig
from .mercator import tile_zoom
from .nodes import Cluster, RenderableNode
from .region import Viewport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TelemetrySample:
    current_tile_zoom: int
    map_width: float
    map_height: float
    radius: float
    tile_size: int
    nodes_count: int
    clusters_count: int
    average_markers_per_cluster: float
    last_expansion_zoom: Optional[float] = None
    last_children_count: Optional[int] = None


class TelemetrySampler:
    """
    Throttled snapshot of the map pipeline for diagnostics.

    Purely observational; nothing reads these samples back.
    """

    def __init__(
        self,
        config: ClusterConfig = DEFAULT_CONFIG,
        interval_s: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.interval_s = interval_s
        self._clock = clock
        self._last_sample_at: Optional[float] = None
        self._last_expansion: Optional[tuple] = None

    def record_expansion(self, expansion_zoom: float, children_count: int) -> None:
        self._last_expansion = (expansion_zoom, children_count)
        logger.info("Cluster expansion: zoom=%s children=%d", expansion_zoom, children_count)

    def sample(self, viewport: Viewport, nodes: Sequence[RenderableNode]) -> Optional[TelemetrySample]:
        now = self._clock()
        if self._last_sample_at is not None and now - self._last_sample_at < self.interval_s:
            return None
        self._last_sample_at = now

        clusters = [n for n in nodes if isinstance(n, Cluster)]
        avg = sum(c.point_count for c in clusters) / len(clusters) if clusters else 0.0
        last_zoom, last_children = self._last_expansion or (None, None)

        sample = TelemetrySample(
            current_tile_zoom=tile_zoom(viewport.zoom(self.config.tile_size),
                                        self.config.min_zoom, self.config.max_zoom),
            map_width=viewport.width_px,
            map_height=viewport.height_px,
            radius=self.config.radius,
            tile_size=self.config.tile_size,
            nodes_count=len(nodes),
            clusters_count=len(clusters),
            average_markers_per_cluster=avg,
            last_expansion_zoom=last_zoom,
            last_children_count=last_children,
        )
        logger.info("Map telemetry: %s", asdict(sample))
        return sample
