"""
Serendipity Search API: FastAPI app factory.

Use: uvicorn server.app:app
Or:  from server import app
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from serendipity import DimensionMismatch, InsufficientData, UpstreamError, ValidationError

from .config import get_config
from .routes import register_routes
from .state import get_state

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Translate engine errors into HTTP responses."""

    @app.exception_handler(DimensionMismatch)
    def _dimension_mismatch(request: Request, exc: DimensionMismatch):
        return JSONResponse(
            status_code=422,
            content={"detail": str(exc), "expected": exc.expected, "actual": exc.actual},
        )

    @app.exception_handler(ValidationError)
    def _validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(InsufficientData)
    def _insufficient_data(request: Request, exc: InsufficientData):
        return JSONResponse(
            status_code=409,
            content={"detail": str(exc), "required": exc.required, "available": exc.available},
        )

    @app.exception_handler(UpstreamError)
    def _upstream_error(request: Request, exc: UpstreamError):
        logger.error("[api] UPSTREAM_ERROR stage=%s path=%s", exc.stage, request.url.path, exc_info=exc)
        return JSONResponse(status_code=502, content={"detail": str(exc), "stage": exc.stage})


def create_app() -> FastAPI:
    """Build FastAPI app with CORS, error handlers, routes, and startup."""
    config = get_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    app = FastAPI(
        title="Serendipity Search API",
        description="Hybrid retrieval with serendipity modes, diversity reranking and clustering",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)
    register_routes(app)

    @app.on_event("startup")
    def _startup_logging():
        state = get_state()
        stats = state.engine.stats()
        logger.info(
            "[startup] Serendipity Search API ready backend=%s embedder=%s records=%d",
            state.config.vector_backend, stats["embedder"], stats["records"],
        )

    return app


app = create_app()
