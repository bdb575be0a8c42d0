"""Viewport-synchronized clustering of geo-tagged listings."""
from .config import ClusterConfig, RegionLimits, load_config
from .controller import MapController
from .errors import (
    ConfigError,
    InvalidViewportError,
    MapClusterError,
    SnapshotError,
    UnknownClusterError,
)
from .expansion import ExpansionController, ExpansionDecision, target_zoom_for
from .index import SpatialIndex, build_index
from .mercator import clamp_latitude, deltas_from_zoom, zoom_from_region
from .nodes import Cluster, RenderableNode, Singleton
from .points import GeoPoint
from .query import ClusterQueryEngine, query
from .region import Bounds, Viewport, clamp_region_deltas, is_same_region

__all__ = [
    "Bounds",
    "Cluster",
    "ClusterConfig",
    "ClusterQueryEngine",
    "ConfigError",
    "ExpansionController",
    "ExpansionDecision",
    "GeoPoint",
    "InvalidViewportError",
    "MapClusterError",
    "MapController",
    "RegionLimits",
    "RenderableNode",
    "Singleton",
    "SnapshotError",
    "SpatialIndex",
    "UnknownClusterError",
    "Viewport",
    "build_index",
    "clamp_latitude",
    "clamp_region_deltas",
    "deltas_from_zoom",
    "is_same_region",
    "load_config",
    "query",
    "target_zoom_for",
    "zoom_from_region",
]
