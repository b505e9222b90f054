"""Project-scoped endpoints: reindex and clustering."""

from typing import Optional

from fastapi import APIRouter

from ..models import ClusterRequest, ReindexRequest
from ..state import get_state

router = APIRouter()


@router.post("/{project_id}/reindex")
def reindex_project(project_id: str, request: Optional[ReindexRequest] = None):
    """Rebuild a project's index from the given entities (or the content source)."""
    entities = request.entities if request is not None else None
    return get_state().engine.reindex_project(project_id, entities)


@router.post("/{project_id}/clusters")
def cluster_project(project_id: str, request: ClusterRequest):
    result = get_state().engine.cluster(
        project_id,
        request.k,
        entity_types=request.entity_types,
        max_iterations=request.max_iterations,
    )
    return result.model_dump(mode="json")
