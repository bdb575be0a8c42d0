from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


def abbreviate_count(count: int) -> str:
    """Short marker label for a cluster size: 950, 1.2k, 15k, 3.4M."""
    if count >= 1_000_000:
        return f"{round(count / 100_000) / 10:g}M"
    if count >= 10_000:
        return f"{round(count / 1000)}k"
    if count >= 1000:
        return f"{round(count / 100) / 10:g}k"
    return str(count)


@dataclass(frozen=True)
class Cluster:
    id: int
    latitude: float
    longitude: float
    point_count: int
    expansion_zoom: int

    @property
    def key(self) -> str:
        return f"cluster-{self.id}"

    @property
    def label(self) -> str:
        return abbreviate_count(self.point_count)


@dataclass(frozen=True)
class Singleton:
    id: int                  # position of the point inside its index
    latitude: float
    longitude: float
    source_point_id: str
    rating: Optional[float] = None
    category: str = "unknown"
    title: str = "Untitled"

    @property
    def key(self) -> str:
        return f"listing-{self.source_point_id}"

    @property
    def point_count(self) -> int:
        return 1


RenderableNode = Union[Cluster, Singleton]
