"""Data models for the retrieval engine."""

from .cluster import Cluster, ClusterResult
from .config import (
    DEFAULT_CONFIG,
    DEFAULT_WEIGHTS,
    EngineConfig,
    RankingWeights,
    SearchModeConfig,
    resolve_config,
)
from .record import EntityType, IndexableEntity, RecordKey, VectorRecord, utcnow
from .scoring import ScoreDebugInfo, ScoredCandidate, SimilarityHit, days_since, temporal_score

__all__ = [
    "Cluster",
    "ClusterResult",
    "DEFAULT_CONFIG",
    "DEFAULT_WEIGHTS",
    "EngineConfig",
    "EntityType",
    "IndexableEntity",
    "RankingWeights",
    "RecordKey",
    "ScoreDebugInfo",
    "ScoredCandidate",
    "SearchModeConfig",
    "SimilarityHit",
    "VectorRecord",
    "days_since",
    "resolve_config",
    "temporal_score",
    "utcnow",
]
