"""Text-to-text similarity endpoint."""

from fastapi import APIRouter

from ..models import SimilarityRequest, SimilarityResponse
from ..state import get_state

router = APIRouter()


@router.post("", response_model=SimilarityResponse)
def text_similarity(request: SimilarityRequest):
    """Cosine similarity between the embeddings of two texts."""
    similarity = get_state().engine.text_similarity(request.text1, request.text2)
    return SimilarityResponse(similarity=similarity)
