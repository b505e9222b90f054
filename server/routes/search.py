"""Search endpoints: hybrid search, k-nearest neighbours, related items."""

from fastapi import APIRouter

from ..models import HitsResponse, KnnRequest, RelatedRequest, SearchRequest, SearchResponse, SearchResultItem
from ..state import get_state

router = APIRouter()


@router.post("", response_model=SearchResponse)
def search(request: SearchRequest):
    """Hybrid search with diversity reranking."""
    engine = get_state().engine
    results = engine.search(request.query, **request.model_dump(exclude={"query"}))
    items = [SearchResultItem.from_candidate(c) for c in results]
    return SearchResponse(results=items, count=len(items))


@router.post("/knn", response_model=HitsResponse)
def knn(request: KnnRequest):
    engine = get_state().engine
    hits = engine.knn(request.query_vector, request.project_id, request.k, request.entity_types)
    return HitsResponse(results=hits, count=len(hits))


@router.post("/related", response_model=HitsResponse)
def related(request: RelatedRequest):
    """Items near a stored item (the item itself is excluded)."""
    engine = get_state().engine
    hits = engine.find_related(
        request.entity_type,
        request.entity_id,
        mode=request.mode,
        limit=request.limit,
        project_id=request.project_id,
        entity_types=request.entity_types,
        perturbation_type=request.perturbation_type,
    )
    return HitsResponse(results=hits, count=len(hits))
