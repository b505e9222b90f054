"""Application state: configuration and the engine built from it."""

import logging
from typing import Optional

from serendipity import EngineConfig, InMemoryStore, SerendipityEngine
from serendipity.embedding import HashEmbedder
from serendipity.embedding.openai_embedder import OpenAIEmbedder

from .config import ServerConfig, get_config

logger = logging.getLogger(__name__)


class AppState:
    """Global application state."""

    def __init__(self, config: ServerConfig, engine: Optional[SerendipityEngine] = None):
        self.config = config
        self.engine = engine or self._create_engine(config)

    @staticmethod
    def _create_embedder(config: ServerConfig):
        """OpenAI when a key is set; the hash stub only when explicitly enabled."""
        if config.stub_embedder:
            logger.warning("[startup] Embedder: HashEmbedder (STUB_EMBEDDER=true)")
            return HashEmbedder(dimensions=config.embedding_dimensions)
        if config.openai_api_key:
            logger.info("[startup] Embedder: OpenAI %s", config.embedding_model)
            return OpenAIEmbedder(
                api_key=config.openai_api_key,
                model=config.embedding_model,
                dimensions=config.embedding_dimensions,
            )
        logger.warning(
            "[startup] Embedder: none (OPENAI_API_KEY not set); text queries fail with 502 unless text_only is set"
        )
        return None

    @staticmethod
    def _create_store(config: ServerConfig, dimension: int):
        if config.vector_backend == "qdrant":
            from serendipity.store.qdrant_store import QdrantStore

            logger.info("[startup] Vector store: Qdrant %s/%s", config.qdrant_url, config.qdrant_collection)
            return QdrantStore(url=config.qdrant_url, collection=config.qdrant_collection, dimension=dimension)
        logger.info("[startup] Vector store: in-memory")
        return InMemoryStore()

    def _create_engine(self, config: ServerConfig) -> SerendipityEngine:
        ok, errors = config.validate()
        if not ok:
            raise ValueError("Invalid server configuration: " + "; ".join(errors))
        embedder = self._create_embedder(config)
        engine_config = EngineConfig(
            dimension=embedder.dimensions if embedder is not None else None,
            cache_max_size=config.cache_max_size,
            cache_ttl_seconds=config.cache_ttl_seconds,
        )
        store = self._create_store(config, config.embedding_dimensions)
        return SerendipityEngine(store, embedder=embedder, config=engine_config)


# Global state instance
_state: Optional[AppState] = None


def get_state() -> AppState:
    """Get the global application state."""
    global _state
    if _state is None:
        _state = AppState(get_config())
    return _state


def set_state(state: Optional[AppState]) -> None:
    """Replace the global state (tests inject an engine with fakes)."""
    global _state
    _state = state
