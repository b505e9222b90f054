"""Root and health endpoints."""

from fastapi import APIRouter

from ..state import get_state

router = APIRouter()


@router.get("/")
def root():
    state = get_state()
    return {
        "name": "Serendipity Search API",
        "version": "1.0.0",
        "status": "ready",
        "endpoints": {
            "search": ["/api/search", "/api/search/knn", "/api/search/related"],
            "similarity": ["/api/similarity"],
            "index": ["/api/index", "/api/index/{entity_type}/{entity_id}"],
            "projects": ["/api/projects/{project_id}/reindex", "/api/projects/{project_id}/clusters"],
            "weights": ["/api/weights"],
        },
        "backend": state.config.vector_backend,
    }


@router.get("/api/health")
def health():
    state = get_state()
    stats = state.engine.stats()
    return {
        "status": "healthy",
        "records": stats["records"],
        "dimension": stats["dimension"],
        "embedder": stats["embedder"],
        "cache": stats["cache"],
    }
