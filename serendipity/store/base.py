"""
Durable store abstraction.

Backing storage for vector records. Implementations: InMemoryStore (tests,
single-process deployments) and QdrantStore (production). Swap via config.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from ..models.record import EntityType, RecordKey, VectorRecord


@dataclass(frozen=True)
class CandidateFilter:
    """Scope for a candidate query.

    project_id None means every record. Otherwise the project's records,
    plus project-less (global) records when include_global is set.
    """

    project_id: Optional[str] = None
    entity_types: Optional[Tuple[EntityType, ...]] = None
    include_global: bool = True

    def matches(self, record: VectorRecord) -> bool:
        if self.entity_types and record.entity_type not in self.entity_types:
            return False
        if self.project_id is None:
            return True
        if record.project_id == self.project_id:
            return True
        return self.include_global and record.project_id is None


class DurableStore(Protocol):
    """Protocol for vector record storage."""

    def upsert(self, record: VectorRecord) -> None:
        """Insert or replace the record with the same (entity_type, entity_id)."""
        ...

    def upsert_many(self, records: Sequence[VectorRecord]) -> None:
        """Write all records or none of them."""
        ...

    def get_by_key(self, entity_type: EntityType, entity_id: str) -> Optional[VectorRecord]:
        """Return the record, or None when missing."""
        ...

    def query_candidates(self, flt: CandidateFilter, limit: int) -> List[VectorRecord]:
        """Up to limit records matching flt, most recently updated first."""
        ...

    def delete(self, entity_type: EntityType, entity_id: str) -> bool:
        """Remove one record. Missing keys are a no-op returning False."""
        ...

    def delete_where(self, flt: CandidateFilter) -> int:
        """Remove every record matching flt; returns the count removed."""
        ...

    def sample_vector(self) -> Optional[List[float]]:
        """Any stored vector (used to discover the collection dimension)."""
        ...

    def count(self) -> int:
        ...


class InMemoryStore:
    """
    Process-local store. Vectors are held as float32 arrays; metadata and
    timestamps stay on a vector-less copy of the record.
    """

    def __init__(self):
        self._rows: Dict[RecordKey, Tuple[VectorRecord, np.ndarray]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _encode(record: VectorRecord) -> Tuple[VectorRecord, np.ndarray]:
        arr = np.asarray(record.vector, dtype=np.float32)
        return record.model_copy(update={"vector": []}), arr

    @staticmethod
    def _decode(row: Tuple[VectorRecord, np.ndarray]) -> VectorRecord:
        shell, arr = row
        return shell.model_copy(update={"vector": arr.astype(float).tolist()})

    def upsert(self, record: VectorRecord) -> None:
        row = self._encode(record)
        with self._lock:
            self._rows[record.key] = row

    def upsert_many(self, records: Sequence[VectorRecord]) -> None:
        # Encode first so a failure leaves the map untouched
        rows = [(r.key, self._encode(r)) for r in records]
        with self._lock:
            self._rows.update(rows)

    def get_by_key(self, entity_type: EntityType, entity_id: str) -> Optional[VectorRecord]:
        row = self._rows.get((EntityType(entity_type), entity_id))
        return self._decode(row) if row is not None else None

    def query_candidates(self, flt: CandidateFilter, limit: int) -> List[VectorRecord]:
        with self._lock:
            rows = list(self._rows.values())
        matching = [row for row in rows if flt.matches(row[0])]
        matching.sort(key=lambda row: row[0].updated_at, reverse=True)
        return [self._decode(row) for row in matching[:limit]]

    def delete(self, entity_type: EntityType, entity_id: str) -> bool:
        with self._lock:
            return self._rows.pop((EntityType(entity_type), entity_id), None) is not None

    def delete_where(self, flt: CandidateFilter) -> int:
        with self._lock:
            doomed = [key for key, row in self._rows.items() if flt.matches(row[0])]
            for key in doomed:
                del self._rows[key]
            return len(doomed)

    def sample_vector(self) -> Optional[List[float]]:
        for _, arr in list(self._rows.values())[:1]:
            return arr.astype(float).tolist()
        return None

    def count(self) -> int:
        return len(self._rows)

    def keys(self) -> Iterable[RecordKey]:
        return list(self._rows.keys())
