from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Global Web Mercator extent
LIM = 20037508.342789244
GLOBAL_BBOX = (-LIM, -LIM, LIM, LIM)

# Latitude at which the Web Mercator square ends
MERCATOR_MAX_LATITUDE = 85.05112878


# ---------------------------------------------------------------------------
# CLUSTER INDEX
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ClusterConfig:
    radius: float = 40.0     # merge distance in screen pixels
    min_zoom: int = 0
    max_zoom: int = 20
    min_points: int = 2
    extent: int = 512        # tile resolution the radius is measured in
    node_size: int = 64      # STRtree node capacity
    tile_size: int = 256

    def __post_init__(self):
        problems = []
        if not self.radius > 0:
            problems.append(f"radius must be > 0 (got {self.radius})")
        if not self.extent > 0:
            problems.append(f"extent must be > 0 (got {self.extent})")
        if self.min_zoom < 0:
            problems.append(f"min_zoom must be >= 0 (got {self.min_zoom})")
        if self.max_zoom < self.min_zoom:
            problems.append(
                f"max_zoom ({self.max_zoom}) must be >= min_zoom ({self.min_zoom})"
            )
        if self.max_zoom > 30:
            # cluster ids pack the origin zoom into 5 bits
            problems.append(f"max_zoom must be <= 30 (got {self.max_zoom})")
        if self.min_points < 2:
            problems.append(f"min_points must be >= 2 (got {self.min_points})")
        if self.node_size < 2:
            problems.append(f"node_size must be >= 2 (got {self.node_size})")
        if not self.tile_size > 0:
            problems.append(f"tile_size must be > 0 (got {self.tile_size})")
        if problems:
            raise ConfigError("Invalid ClusterConfig: " + "; ".join(problems))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ClusterConfig":
        return cls(**_known_fields(cls, data))


# ---------------------------------------------------------------------------
# VIEWPORT GUARD + EXPANSION TUNING
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RegionLimits:
    min_delta: float = 5e-4
    max_latitude: float = 85.0
    epsilon: float = 1e-6
    large_cluster_nudge: float = 0.75
    debounce_ms: int = 120
    animation_ms: int = 500
    dedup_precision: int = 6

    def __post_init__(self):
        problems = []
        if not self.min_delta > 0:
            problems.append(f"min_delta must be > 0 (got {self.min_delta})")
        if not 0 < self.max_latitude <= MERCATOR_MAX_LATITUDE:
            problems.append(
                f"max_latitude must be in (0, {MERCATOR_MAX_LATITUDE}] "
                f"(got {self.max_latitude})"
            )
        if not self.epsilon > 0:
            problems.append(f"epsilon must be > 0 (got {self.epsilon})")
        if self.large_cluster_nudge < 0:
            problems.append(
                f"large_cluster_nudge must be >= 0 (got {self.large_cluster_nudge})"
            )
        if self.debounce_ms < 0:
            problems.append(f"debounce_ms must be >= 0 (got {self.debounce_ms})")
        if self.dedup_precision < 0:
            problems.append(
                f"dedup_precision must be >= 0 (got {self.dedup_precision})"
            )
        if problems:
            raise ConfigError("Invalid RegionLimits: " + "; ".join(problems))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RegionLimits":
        return cls(**_known_fields(cls, data))


def _known_fields(cls, data: Mapping[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - names)
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", cls.__name__, unknown)
    return {k: v for k, v in data.items() if k in names}


def load_config(path: str) -> Tuple[ClusterConfig, RegionLimits]:
    """
    Read a JSON file with optional "cluster" and "limits" sections.

    Missing sections fall back to the defaults.
    """
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Config file not found: {path}")
    with p.open("r", encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")

    cluster = ClusterConfig.from_dict(raw.get("cluster") or {})
    limits = RegionLimits.from_dict(raw.get("limits") or {})
    logger.info("Loaded config from %s: %s, %s", path, cluster, limits)
    return cluster, limits


DEFAULT_CONFIG = ClusterConfig()
DEFAULT_LIMITS = RegionLimits()
