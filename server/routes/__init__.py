"""Register all route modules on the FastAPI app."""

from fastapi import FastAPI

from .index import router as index_router
from .projects import router as projects_router
from .root import router as root_router
from .search import router as search_router
from .similarity import router as similarity_router
from .weights import router as weights_router


def register_routes(app: FastAPI) -> None:
    """Attach all API routers to the app."""
    app.include_router(root_router)
    app.include_router(search_router, prefix="/api/search", tags=["search"])
    app.include_router(similarity_router, prefix="/api/similarity", tags=["search"])
    app.include_router(index_router, prefix="/api/index", tags=["index"])
    app.include_router(projects_router, prefix="/api/projects", tags=["projects"])
    app.include_router(weights_router, prefix="/api/weights", tags=["weights"])
