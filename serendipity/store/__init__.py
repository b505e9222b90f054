"""Vector storage: cache, durable store protocol and implementations.

QdrantStore lives in store.qdrant_store and is imported on demand.
"""

from .base import CandidateFilter, DurableStore, InMemoryStore
from .cache import VectorCache
from .vector_store import VectorStore, coerce_entity_type, coerce_entity_types

__all__ = [
    "CandidateFilter",
    "DurableStore",
    "InMemoryStore",
    "VectorCache",
    "VectorStore",
    "coerce_entity_type",
    "coerce_entity_types",
]
