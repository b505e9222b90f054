"""
Qdrant-backed durable store.

One collection holds every record. Point ids are uuid5 of "type:id" so
upserts replace in place. Vectors are stored with DOT distance: Qdrant
normalizes vectors in COSINE collections, and records must keep their
original values and magnitude.

Usage:
    store = QdrantStore(url="http://localhost:6333", collection="serendipity")
    store = QdrantStore(location=":memory:")   # local, for tests
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from qdrant_client import QdrantClient
from qdrant_client.http import models

from ..models.record import EntityType, VectorRecord
from .base import CandidateFilter

logger = logging.getLogger(__name__)

_POINT_NAMESPACE = uuid.UUID("6f1d3c9e-8a57-4b8e-9a0f-2a1f7c3d5e41")
RECENCY_FIELD = "updated_ts"


def point_id(entity_type: EntityType, entity_id: str) -> str:
    return str(uuid.uuid5(_POINT_NAMESPACE, f"{EntityType(entity_type).value}:{entity_id}"))


class QdrantStore:
    """DurableStore implementation on a single Qdrant collection."""

    def __init__(
        self,
        url: Optional[str] = None,
        collection: str = "serendipity",
        location: Optional[str] = None,
        dimension: Optional[int] = None,
        timeout: float = 30.0,
        client: Optional[QdrantClient] = None,
    ):
        if client is not None:
            self.client = client
        elif location is not None:
            self.client = QdrantClient(location=location)
        else:
            self.client = QdrantClient(url=url or "http://localhost:6333", timeout=timeout)
        self.collection = collection
        self._ready = self.client.collection_exists(collection)
        if self._ready:
            self._index_recency()
        elif dimension:
            self._create(dimension)

    # ------------------------------------------------------------------
    # collection / payload helpers
    # ------------------------------------------------------------------

    def _create(self, dimension: int) -> None:
        self.client.create_collection(
            collection_name=self.collection,
            vectors_config=models.VectorParams(size=dimension, distance=models.Distance.DOT),
        )
        self._ready = True
        self._index_recency()
        logger.info("[qdrant] COLLECTION_CREATED name=%s dim=%d", self.collection, dimension)

    def _index_recency(self) -> None:
        # order_by needs a range index on the sort key; creating it again is a no-op
        self.client.create_payload_index(
            collection_name=self.collection,
            field_name=RECENCY_FIELD,
            field_schema=models.PayloadSchemaType.FLOAT,
            wait=True,
        )

    def _ensure(self, dimension: int) -> None:
        if not self._ready:
            self._create(dimension)

    @staticmethod
    def _to_point(record: VectorRecord) -> models.PointStruct:
        payload: Dict[str, Any] = {
            "entity_type": record.entity_type.value,
            "entity_id": record.entity_id,
            "project_id": record.project_id,
            "metadata": record.metadata,
            "magnitude": record.magnitude,
            "created_at": record.created_at.isoformat(),
            "updated_at": record.updated_at.isoformat(),
            RECENCY_FIELD: record.updated_at.timestamp(),
        }
        return models.PointStruct(
            id=point_id(record.entity_type, record.entity_id),
            vector=[float(x) for x in record.vector],
            payload=payload,
        )

    @staticmethod
    def _to_record(point: Any) -> VectorRecord:
        payload = point.payload or {}
        return VectorRecord(
            entity_type=EntityType(payload["entity_type"]),
            entity_id=payload["entity_id"],
            project_id=payload.get("project_id"),
            vector=list(point.vector or []),
            magnitude=payload.get("magnitude", 0.0),
            metadata=payload.get("metadata") or {},
            created_at=datetime.fromisoformat(payload["created_at"]),
            updated_at=datetime.fromisoformat(payload["updated_at"]),
        )

    @staticmethod
    def _to_filter(flt: CandidateFilter) -> Optional[models.Filter]:
        must: List[Any] = []
        if flt.entity_types:
            must.append(
                models.FieldCondition(
                    key="entity_type",
                    match=models.MatchAny(any=[t.value for t in flt.entity_types]),
                )
            )
        if flt.project_id is not None:
            own = models.FieldCondition(key="project_id", match=models.MatchValue(value=flt.project_id))
            if flt.include_global:
                must.append(
                    models.Filter(
                        should=[own, models.IsNullCondition(is_null=models.PayloadField(key="project_id"))]
                    )
                )
            else:
                must.append(own)
        return models.Filter(must=must) if must else None

    # ------------------------------------------------------------------
    # DurableStore
    # ------------------------------------------------------------------

    def upsert(self, record: VectorRecord) -> None:
        self.upsert_many([record])

    def upsert_many(self, records: Sequence[VectorRecord]) -> None:
        if not records:
            return
        self._ensure(len(records[0].vector))
        points = [self._to_point(r) for r in records]
        self.client.upsert(collection_name=self.collection, points=points, wait=True)

    def get_by_key(self, entity_type: EntityType, entity_id: str) -> Optional[VectorRecord]:
        if not self._ready:
            return None
        points = self.client.retrieve(
            collection_name=self.collection,
            ids=[point_id(entity_type, entity_id)],
            with_payload=True,
            with_vectors=True,
        )
        return self._to_record(points[0]) if points else None

    def query_candidates(self, flt: CandidateFilter, limit: int) -> List[VectorRecord]:
        """Newest-first window, ordered and bounded by Qdrant."""
        if not self._ready or limit < 1:
            return []
        points, _ = self.client.scroll(
            collection_name=self.collection,
            scroll_filter=self._to_filter(flt),
            limit=limit,
            order_by=models.OrderBy(key=RECENCY_FIELD, direction=models.Direction.DESC),
            with_payload=True,
            with_vectors=True,
        )
        return [self._to_record(p) for p in points]

    def delete(self, entity_type: EntityType, entity_id: str) -> bool:
        if self.get_by_key(entity_type, entity_id) is None:
            return False
        self.client.delete(
            collection_name=self.collection,
            points_selector=models.PointIdsList(points=[point_id(entity_type, entity_id)]),
            wait=True,
        )
        return True

    def delete_where(self, flt: CandidateFilter) -> int:
        if not self._ready:
            return 0
        qfilter = self._to_filter(flt)
        removed = self.client.count(collection_name=self.collection, count_filter=qfilter, exact=True).count
        if removed:
            self.client.delete(
                collection_name=self.collection,
                points_selector=models.FilterSelector(filter=qfilter or models.Filter()),
                wait=True,
            )
        return removed

    def sample_vector(self) -> Optional[List[float]]:
        if not self._ready:
            return None
        points, _ = self.client.scroll(
            collection_name=self.collection, limit=1, with_payload=False, with_vectors=True
        )
        return list(points[0].vector) if points else None

    def count(self) -> int:
        if not self._ready:
            return 0
        return self.client.count(collection_name=self.collection, exact=True).count
