"""
VectorStore: keyed vector records over a durable store, with an LRU + TTL cache.

Contains:
- put / batch_put: validate (dimension, finiteness) before any write; upsert keeps created_at
- get: cache-aside read returning a copy; missing key returns None
- candidates: bounded, recency-ordered window scoped to a project (+ global records)
- delete / delete_project: remove from storage and cache

The collection dimension is pinned from config, or discovered from the first
stored vector. Vectors of any other length are rejected with DimensionMismatch;
nothing is truncated or padded. Vectors are kept at float32 precision, the
width every durable store persists.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np
from pydantic import ValidationError as PydanticValidationError

from ..errors import DimensionMismatch, ValidationError, upstream_stage
from ..models.config import EngineConfig
from ..models.record import EntityType, VectorRecord, record_key_str, utcnow
from .base import CandidateFilter, DurableStore
from .cache import VectorCache

logger = logging.getLogger(__name__)

RecordInput = Union[VectorRecord, Mapping[str, Any]]


def coerce_entity_type(value: Any) -> EntityType:
    try:
        return EntityType(value)
    except ValueError as exc:
        allowed = ", ".join(t.value for t in EntityType)
        raise ValidationError(f"Unknown entity type {value!r} (expected one of: {allowed})") from exc


def coerce_entity_types(values: Optional[Iterable[Any]]):
    if not values:
        return None
    return tuple(coerce_entity_type(v) for v in values)


class VectorStore:
    """Keyed vector storage with a bounded, time-boxed cache."""

    def __init__(
        self,
        store: DurableStore,
        dimension: Optional[int] = None,
        cache_max_size: int = 1000,
        cache_ttl_seconds: float = 3600.0,
        cache: Optional[VectorCache] = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._dimension = dimension
        self._dimension_checked = dimension is not None
        self._cache: VectorCache = cache or VectorCache(cache_max_size, cache_ttl_seconds)
        self._now = now
        self._write_lock = threading.Lock()

    @classmethod
    def from_config(cls, store: DurableStore, config: EngineConfig) -> "VectorStore":
        return cls(
            store,
            dimension=config.dimension,
            cache_max_size=config.cache_max_size,
            cache_ttl_seconds=config.cache_ttl_seconds,
        )

    @property
    def cache(self) -> VectorCache:
        return self._cache

    @property
    def dimension(self) -> Optional[int]:
        """Pinned dimension, discovering it from storage on first access."""
        if not self._dimension_checked:
            with upstream_stage("retrieval"):
                sample = self._store.sample_vector()
            if sample:
                self._dimension = len(sample)
                logger.debug("[vector_store] DIMENSION_DISCOVERED dim=%d", self._dimension)
            self._dimension_checked = True
        return self._dimension

    # ------------------------------------------------------------------
    # validation
    # ------------------------------------------------------------------

    def check_vector(self, vector: Sequence[float], expected: Optional[int] = None, key: Optional[str] = None) -> np.ndarray:
        """Validate a vector and return it as a float array. Raises before any mutation."""
        if vector is None:
            raise ValidationError("Vector is required")
        arr = np.asarray(vector, dtype=np.float64)
        if arr.ndim != 1 or arr.size == 0:
            raise ValidationError(f"Vector must be a non-empty 1-D sequence{' for ' + key if key else ''}")
        if not np.all(np.isfinite(arr)):
            raise ValidationError(f"Vector contains non-finite values{' for ' + key if key else ''}")
        expected = expected if expected is not None else self.dimension
        if expected is not None and arr.size != expected:
            logger.warning("[vector_store] DIMENSION_MISMATCH expected=%d got=%d key=%s", expected, arr.size, key)
            raise DimensionMismatch(expected, int(arr.size), key)
        return arr

    def _build(self, data: RecordInput, expected: Optional[int]) -> VectorRecord:
        if isinstance(data, VectorRecord):
            data = data.model_dump()
        else:
            data = dict(data)
        entity_type = coerce_entity_type(data.get("entity_type"))
        entity_id = data.get("entity_id")
        if not entity_id or not isinstance(entity_id, str):
            raise ValidationError("entity_id must be a non-empty string")
        key = record_key_str(entity_type, entity_id)
        arr = self.check_vector(data.get("vector"), expected, key)
        # Stored precision; cache hits and store reads return identical values
        with np.errstate(over="ignore"):
            arr = arr.astype(np.float32).astype(np.float64)
        if not np.all(np.isfinite(arr)):
            raise ValidationError(f"Vector values exceed float32 range for {key}")
        now = self._now()
        try:
            return VectorRecord(
                entity_type=entity_type,
                entity_id=entity_id,
                project_id=data.get("project_id"),
                vector=arr.tolist(),
                magnitude=float(np.linalg.norm(arr)),
                metadata=dict(data.get("metadata") or {}),
                created_at=data.get("created_at") or now,
                updated_at=now,
            )
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid record {key}: {exc}") from exc

    def _keep_created_at(self, record: VectorRecord) -> VectorRecord:
        with upstream_stage("storage"):
            existing = self._store.get_by_key(record.entity_type, record.entity_id)
        if existing is None:
            return record
        return record.model_copy(update={"created_at": existing.created_at})

    def _remember(self, record: VectorRecord) -> None:
        # The cache owns a private copy; callers never share it
        self._cache.put(record.key, record.model_copy(deep=True))

    # ------------------------------------------------------------------
    # writes
    # Store mutation and the matching cache update happen under one lock,
    # so the cache never lags behind a later write or delete.
    # ------------------------------------------------------------------

    def put(
        self,
        entity_type: Any,
        entity_id: str,
        project_id: Optional[str],
        vector: Sequence[float],
        metadata: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> VectorRecord:
        """Validate, upsert and refresh the cache entry. Returns the stored record."""
        with self._write_lock:
            record = self._build(
                {
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "project_id": project_id,
                    "vector": vector,
                    "metadata": metadata,
                    "created_at": created_at,
                },
                self.dimension,
            )
            if created_at is None:
                record = self._keep_created_at(record)
            with upstream_stage("storage"):
                self._store.upsert(record)
            self._pin(len(record.vector))
            self._remember(record)
        return record

    def batch_put(self, records: Sequence[RecordInput]) -> List[VectorRecord]:
        """All-or-nothing upsert: every record is validated before anything is written."""
        if not records:
            return []
        with self._write_lock:
            expected = self.dimension
            built: List[VectorRecord] = []
            for data in records:
                record = self._build(data, expected)
                if expected is None:
                    # First record of an empty collection pins the batch
                    expected = len(record.vector)
                built.append(record)
            keys = [r.key for r in built]
            if len(set(keys)) != len(keys):
                raise ValidationError("Batch contains duplicate (entity_type, entity_id) keys")
            built = [
                r if isinstance(data, Mapping) and data.get("created_at") else self._keep_created_at(r)
                for r, data in zip(built, records)
            ]
            with upstream_stage("storage"):
                self._store.upsert_many(built)
            self._pin(expected)
            for r in built:
                self._remember(r)
        logger.debug("[vector_store] BATCH_PUT count=%d", len(built))
        return built

    def _pin(self, dimension: int) -> None:
        if self._dimension is None:
            self._dimension = dimension
            self._dimension_checked = True
            logger.info("[vector_store] DIMENSION_PINNED dim=%d", dimension)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def get(self, entity_type: Any, entity_id: str) -> Optional[VectorRecord]:
        """Cache-aside read. Returns a copy; mutating it does not touch the cache."""
        key = (coerce_entity_type(entity_type), entity_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached.model_copy(deep=True)
        # Read-through under the write lock so a concurrent write cannot be
        # overwritten in the cache by this older read
        with self._write_lock:
            cached = self._cache.get(key)
            if cached is not None:
                return cached.model_copy(deep=True)
            with upstream_stage("retrieval"):
                record = self._store.get_by_key(*key)
            if record is not None:
                self._remember(record)
        return record

    def candidates(
        self,
        project_id: Optional[str],
        entity_types: Optional[Iterable[Any]] = None,
        limit: int = 100,
        include_global: bool = True,
    ) -> List[VectorRecord]:
        """Most recently updated records in scope, at most limit of them."""
        if limit < 1:
            return []
        flt = CandidateFilter(
            project_id=project_id,
            entity_types=coerce_entity_types(entity_types),
            include_global=include_global,
        )
        with upstream_stage("retrieval"):
            return self._store.query_candidates(flt, limit)

    def count(self) -> int:
        with upstream_stage("retrieval"):
            return self._store.count()

    # ------------------------------------------------------------------
    # deletes
    # ------------------------------------------------------------------

    def delete(self, entity_type: Any, entity_id: str) -> bool:
        key = (coerce_entity_type(entity_type), entity_id)
        with self._write_lock:
            with upstream_stage("storage"):
                removed = self._store.delete(*key)
            self._cache.invalidate(key)
        return removed

    def delete_project(self, project_id: str) -> int:
        """Remove every record owned by project_id (global records are kept)."""
        if not project_id:
            raise ValidationError("project_id is required")
        with self._write_lock:
            with upstream_stage("storage"):
                removed = self._store.delete_where(CandidateFilter(project_id=project_id, include_global=False))
            self._cache.invalidate_where(lambda _k, rec: rec.project_id == project_id)
        logger.info("[vector_store] PROJECT_CLEARED project=%s removed=%d", project_id, removed)
        return removed
