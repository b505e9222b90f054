"""
Hybrid scoring: fuses vector, text, temporal, project and type factors.

final_score = vector * w_vector + text * w_text + temporal * w_temporal
              + project * w_project + type * w_type

The diversity weight sits in the same normalized weight set but is applied
by the reranker, not here. A candidate found by only one retrieval source
gets 0 for the other source's factor.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from ..models.config import DEFAULT_WEIGHTS, RankingWeights
from ..models.record import EntityType, VectorRecord, utcnow
from ..models.scoring import ScoreDebugInfo, ScoredCandidate, days_since, temporal_score
from ..utils.vectors import cosine_similarity
from .text_match import TextMatchScorer

logger = logging.getLogger(__name__)

SOURCE_VECTOR = "vector"
SOURCE_TEXT = "text"
SOURCE_BOTH = "both"


def project_score(candidate_project: Optional[str], query_project: Optional[str]) -> float:
    """1.0 on a match; 0.5 when unscoped or scoped to another project."""
    if query_project is not None and candidate_project == query_project:
        return 1.0
    return 0.5


def type_score(candidate_type: EntityType, entity_types: Optional[Sequence[EntityType]]) -> float:
    """1.0 when the type is requested, 0.0 when another type was requested, 0.5 with no filter."""
    if not entity_types:
        return 0.5
    return 1.0 if candidate_type in entity_types else 0.0


class HybridScorer:
    def __init__(
        self,
        weights: Optional[RankingWeights] = None,
        temporal_decay_days: float = 30.0,
        text_scorer: Optional[TextMatchScorer] = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self._weights = (weights or DEFAULT_WEIGHTS).normalized()
        self.temporal_decay_days = temporal_decay_days
        self.text_scorer = text_scorer or TextMatchScorer()
        self._now = now
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # weights
    # ------------------------------------------------------------------

    def get_weights(self) -> RankingWeights:
        """Current normalized weights (immutable snapshot)."""
        return self._weights

    def update_weights(self, partial: Mapping[str, float]) -> RankingWeights:
        """Merge partial weights into the current set and renormalize."""
        with self._lock:
            try:
                merged = self._weights.merged(dict(partial))
            except PydanticValidationError as exc:
                raise ValidationError(f"Invalid ranking weights: {exc.errors()[0]['msg']}") from exc
            self._weights = merged.normalized()
        logger.info("[hybrid] WEIGHTS_UPDATED %s", self._weights.model_dump())
        return self._weights

    # ------------------------------------------------------------------
    # scoring
    # ------------------------------------------------------------------

    def score_candidate(
        self,
        record: VectorRecord,
        query_vector: Optional[Sequence[float]],
        tokens: Sequence[str],
        project_id: Optional[str] = None,
        entity_types: Optional[Sequence[EntityType]] = None,
        source: str = SOURCE_VECTOR,
        now: Optional[datetime] = None,
        weights: Optional[RankingWeights] = None,
    ) -> ScoredCandidate:
        w = weights or self._weights

        # 1) vector factor against the unperturbed query
        vector_score = 0.0
        if query_vector is not None and source != SOURCE_TEXT:
            vector_score = cosine_similarity(query_vector, record.vector)

        # 2) text factor
        title_matches = content_matches = 0
        text = 0.0
        if tokens and source != SOURCE_VECTOR:
            title_matches, content_matches, text = self.text_scorer.count(tokens, record.title, record.content)

        # 3) recency, project, type
        age = days_since(record.created_at, now or self._now())
        temporal = temporal_score(age, self.temporal_decay_days)
        project = project_score(record.project_id, project_id)
        etype = type_score(record.entity_type, entity_types)

        final = (
            vector_score * w.vector
            + text * w.text
            + temporal * w.temporal
            + project * w.project
            + etype * w.type
        )
        return ScoredCandidate(
            entity_type=record.entity_type,
            entity_id=record.entity_id,
            project_id=record.project_id,
            title=record.title,
            metadata=record.metadata,
            vector=record.vector or None,
            vector_score=vector_score,
            text_score=text,
            temporal_score=temporal,
            project_score=project,
            type_score=etype,
            final_score=final,
            source=source,
            debug=ScoreDebugInfo(
                title_matches=title_matches,
                content_matches=content_matches,
                days_since_created=age,
            ),
        )

    def score(
        self,
        records: Iterable[VectorRecord],
        query_vector: Optional[Sequence[float]],
        tokens: Sequence[str],
        project_id: Optional[str] = None,
        entity_types: Optional[Sequence[EntityType]] = None,
        sources: Optional[Dict[Any, str]] = None,
    ) -> List[ScoredCandidate]:
        """Score every record. sources maps record key -> vector | text | both."""
        now = self._now()
        weights = self._weights
        sources = sources or {}
        scored = [
            self.score_candidate(
                r,
                query_vector,
                tokens,
                project_id=project_id,
                entity_types=entity_types,
                source=sources.get(r.key, SOURCE_BOTH),
                now=now,
                weights=weights,
            )
            for r in records
        ]
        logger.debug("[hybrid] SCORED count=%d", len(scored))
        return scored
