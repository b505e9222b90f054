"""Clustering results. Transient, never persisted."""

from typing import List, Tuple

from pydantic import BaseModel

from .record import EntityType


class Cluster(BaseModel):
    cluster_id: int
    centroid: List[float]
    member_ids: List[Tuple[EntityType, str]]
    size: int


class ClusterResult(BaseModel):
    clusters: List[Cluster]
    iterations: int
    converged: bool

    @property
    def total_size(self) -> int:
        return sum(c.size for c in self.clusters)
