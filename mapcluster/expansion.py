"""
Cluster tap -> target zoom -> animate-to region.

The tiered thresholds below are empirically tuned for marker separation on
phone screens and are kept as-is.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from .config import DEFAULT_CONFIG, DEFAULT_LIMITS, ClusterConfig, RegionLimits
from .mercator import deltas_from_zoom
from .nodes import Cluster
from .region import Viewport, clamp_region_deltas

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpansionDecision:
    cluster_id: int
    current_zoom: float
    target_zoom: float
    target_viewport: Viewport


def target_zoom_for(
    point_count: int,
    expansion_zoom: float,
    current_zoom: float,
    max_zoom: float,
    large_cluster_nudge: float = DEFAULT_LIMITS.large_cluster_nudge,
) -> float:
    if point_count <= 2:
        target = max_zoom
    elif point_count <= 4:
        target = max_zoom - 1
    elif point_count <= 8:
        target = max_zoom - 2
    else:
        target = min(expansion_zoom + large_cluster_nudge, max_zoom)

    # never zoom out on an expansion tap
    target = max(target, current_zoom)
    return min(target, max_zoom)


class ExpansionController:
    def __init__(self, config: ClusterConfig = DEFAULT_CONFIG, limits: RegionLimits = DEFAULT_LIMITS):
        self.config = config
        self.limits = limits

    def current_zoom(self, viewport: Viewport) -> float:
        viewport = clamp_region_deltas(viewport, self.limits.min_delta, self.limits.max_latitude)
        z = viewport.zoom(self.config.tile_size)
        return max(float(self.config.min_zoom), min(z, float(self.config.max_zoom)))

    def decide(self, cluster: Cluster, viewport: Viewport) -> ExpansionDecision:
        current = self.current_zoom(viewport)
        target = target_zoom_for(
            cluster.point_count,
            cluster.expansion_zoom,
            current,
            self.config.max_zoom,
            self.limits.large_cluster_nudge,
        )

        # use the cluster latitude, not the current centre, for distortion
        lat_delta, lon_delta = deltas_from_zoom(
            target,
            cluster.latitude,
            viewport.width_px,
            viewport.height_px,
            self.config.tile_size,
        )
        target_viewport = clamp_region_deltas(
            Viewport(
                latitude=cluster.latitude,
                longitude=cluster.longitude,
                latitude_delta=lat_delta,
                longitude_delta=lon_delta,
                width_px=viewport.width_px,
                height_px=viewport.height_px,
            ),
            self.limits.min_delta,
            self.limits.max_latitude,
        )

        logger.info(
            "Expanding cluster %d (%d points): zoom %.2f -> %.2f (expansion zoom %d)",
            cluster.id, cluster.point_count, current, target, cluster.expansion_zoom,
        )
        return ExpansionDecision(cluster.id, current, target, target_viewport)
