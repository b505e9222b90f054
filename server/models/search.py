"""Search request/response models."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from serendipity.models import EntityType, ScoredCandidate, SimilarityHit


class SearchRequest(BaseModel):
    query: Optional[str] = None
    query_vector: Optional[List[float]] = None
    project_id: Optional[str] = None
    entity_types: Optional[List[EntityType]] = None
    mode: str = "similar"
    limit: int = Field(20, ge=1, le=200)
    min_score: Optional[float] = None
    perturbation_type: str = "gaussian"
    exclude_ids: List[Any] = []
    diversify: bool = True
    text_only: bool = False


class KnnRequest(BaseModel):
    query_vector: List[float]
    project_id: Optional[str] = None
    k: int = Field(10, ge=1, le=200)
    entity_types: Optional[List[EntityType]] = None


class RelatedRequest(BaseModel):
    entity_type: EntityType
    entity_id: str
    mode: str = "similar"
    limit: int = Field(10, ge=1, le=200)
    project_id: Optional[str] = None
    entity_types: Optional[List[EntityType]] = None
    perturbation_type: str = "gaussian"


class ScoreDebug(BaseModel):
    text_matches: int
    days_since_created: float
    diversity_penalty: Optional[float] = None


class SearchResultItem(BaseModel):
    entity_type: EntityType
    entity_id: str
    project_id: Optional[str] = None
    title: str = ""
    metadata: Dict[str, Any] = {}
    vector_score: float
    text_score: float
    temporal_score: float
    project_score: float
    type_score: float
    final_score: float
    source: str
    debug: ScoreDebug

    @classmethod
    def from_candidate(cls, c: ScoredCandidate) -> "SearchResultItem":
        return cls(
            entity_type=c.entity_type,
            entity_id=c.entity_id,
            project_id=c.project_id,
            title=c.title,
            metadata=c.metadata,
            vector_score=c.vector_score,
            text_score=c.text_score,
            temporal_score=c.temporal_score,
            project_score=c.project_score,
            type_score=c.type_score,
            final_score=c.final_score,
            source=c.source,
            debug=ScoreDebug(
                text_matches=c.debug.text_matches,
                days_since_created=round(c.debug.days_since_created, 3),
                diversity_penalty=c.debug.diversity_penalty,
            ),
        )


class SearchResponse(BaseModel):
    results: List[SearchResultItem]
    count: int


class HitsResponse(BaseModel):
    results: List[SimilarityHit]
    count: int


class SimilarityRequest(BaseModel):
    text1: str
    text2: str


class SimilarityResponse(BaseModel):
    similarity: float
