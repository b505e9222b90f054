"""
Serendipity: hybrid retrieval and diversity reranking over one vector collection.

Single entry point for the engine package:
- models/: EngineConfig, RankingWeights, VectorRecord, ScoredCandidate, ClusterResult
- store/: VectorStore over a durable store (in-memory or Qdrant), LRU + TTL cache
- stages/: perturbation, similarity search, text match, hybrid scoring, diversity, clustering
- embedding/: Embedder / Tokenizer collaborators
"""

from .engine import ContentSource, SearchOptions, SerendipityEngine
from .errors import (
    DimensionMismatch,
    InsufficientData,
    SerendipityError,
    UpstreamError,
    ValidationError,
)
from .models import (
    ClusterResult,
    EngineConfig,
    EntityType,
    IndexableEntity,
    RankingWeights,
    ScoredCandidate,
    SimilarityHit,
    VectorRecord,
)
from .store import InMemoryStore, VectorStore

__version__ = "1.0.0"

__all__ = [
    "ClusterResult",
    "ContentSource",
    "DimensionMismatch",
    "EngineConfig",
    "EntityType",
    "IndexableEntity",
    "InMemoryStore",
    "InsufficientData",
    "RankingWeights",
    "ScoredCandidate",
    "SearchOptions",
    "SerendipityEngine",
    "SerendipityError",
    "SimilarityHit",
    "UpstreamError",
    "ValidationError",
    "VectorRecord",
    "VectorStore",
]
