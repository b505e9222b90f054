"""
Scoring model: ScoredCandidate, SimilarityHit and time helpers.

Contains:
- ScoredCandidate: a record with its per-factor and final scores
- SimilarityHit: one result of a pure vector search
- days_since, temporal_score: used by the hybrid scorer
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .record import EntityType


def days_since(created_at: datetime, now: Optional[datetime] = None) -> float:
    """Fractional days elapsed since created_at (naive datetimes are taken as UTC)."""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (now - created_at).total_seconds() / 86400.0)


def temporal_score(days_old: float, decay_days: float = 30.0) -> float:
    """Exponential decay: ~1.0 for now, ~0.3679 at decay_days."""
    return math.exp(-days_old / decay_days)


class SimilarityHit(BaseModel):
    entity_type: EntityType
    entity_id: str
    similarity: float
    distance: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ScoreDebugInfo(BaseModel):
    """Diagnostics attached to each scored candidate."""

    title_matches: int = 0
    content_matches: int = 0
    days_since_created: float = 0.0
    diversity_penalty: Optional[float] = None

    @property
    def text_matches(self) -> int:
        return self.title_matches + self.content_matches


class ScoredCandidate(BaseModel):
    """A candidate with all its scoring components."""

    entity_type: EntityType
    entity_id: str
    project_id: Optional[str] = None
    title: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    # Kept for the diversity pass; excluded from API payloads
    vector: Optional[List[float]] = Field(default=None, exclude=True)

    vector_score: float = 0.0
    text_score: float = 0.0
    temporal_score: float = 0.0
    project_score: float = 0.0
    type_score: float = 0.0
    final_score: float = 0.0

    # vector | text | both
    source: str = "vector"
    debug: ScoreDebugInfo = Field(default_factory=ScoreDebugInfo)

    @property
    def key(self):
        return (self.entity_type, self.entity_id)
