"""Index maintenance endpoints."""

from fastapi import APIRouter

from serendipity.models import EntityType

from ..models import IndexRequest
from ..state import get_state

router = APIRouter()


@router.post("")
def index_entities(request: IndexRequest):
    """Embed and upsert entities. More than one entity is written as one batch."""
    engine = get_state().engine
    if len(request.entities) == 1:
        records = [engine.index(request.entities[0])]
    else:
        records = engine.index_many(request.entities)
    return {
        "status": "indexed",
        "count": len(records),
        "keys": [f"{r.entity_type.value}:{r.entity_id}" for r in records],
    }


@router.delete("/{entity_type}/{entity_id}")
def delete_entity(entity_type: EntityType, entity_id: str):
    removed = get_state().engine.delete(entity_type, entity_id)
    return {"status": "deleted" if removed else "not_found", "removed": removed}
