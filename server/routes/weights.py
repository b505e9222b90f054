"""Ranking weight endpoints."""

from fastapi import APIRouter

from ..models import WeightsUpdateRequest
from ..state import get_state

router = APIRouter()


@router.get("")
def get_weights():
    return get_state().engine.get_weights().model_dump()


@router.patch("")
def update_weights(request: WeightsUpdateRequest):
    """Merge partial weights and renormalize; returns the normalized set."""
    return get_state().engine.update_weights(request.partial()).model_dump()
