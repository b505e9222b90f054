"""
Server Configuration

Loads configuration from environment variables and provides defaults.
Reads a project-root .env file using python-dotenv.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

root_env = Path(__file__).resolve().parent.parent / ".env"
if root_env.exists():
    load_dotenv(root_env)


def _env_bool(key: str, default: bool = False) -> bool:
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ServerConfig:
    """Server configuration."""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # Embeddings
    openai_api_key: Optional[str] = None
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    # Deterministic hash embedder; tests and offline demos only
    stub_embedder: bool = False

    # Vector storage: "memory" | "qdrant"
    vector_backend: str = "memory"
    qdrant_url: Optional[str] = None
    qdrant_collection: str = "serendipity"

    # Vector cache
    cache_max_size: int = 1000
    cache_ttl_seconds: float = 3600.0

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            embedding_model=os.getenv("EMBEDDING_MODEL", "text-embedding-3-small"),
            embedding_dimensions=int(os.getenv("EMBEDDING_DIMENSIONS", "1536")),
            stub_embedder=_env_bool("STUB_EMBEDDER"),
            vector_backend=os.getenv("VECTOR_BACKEND", "memory").strip().lower(),
            qdrant_url=os.getenv("QDRANT_URL") or None,
            qdrant_collection=os.getenv("QDRANT_COLLECTION", "serendipity"),
            cache_max_size=int(os.getenv("CACHE_MAX_SIZE", "1000")),
            cache_ttl_seconds=float(os.getenv("CACHE_TTL_SECONDS", "3600")),
        )

    def validate(self) -> tuple[bool, list[str]]:
        """
        Validate the configuration.

        Returns:
            (is_valid, list_of_errors)
        """
        errors = []

        if self.vector_backend not in ("memory", "qdrant"):
            errors.append(f"Unknown VECTOR_BACKEND: {self.vector_backend}")

        if self.vector_backend == "qdrant" and not self.qdrant_url:
            errors.append("QDRANT_URL is required when VECTOR_BACKEND=qdrant")

        if self.cache_max_size < 1:
            errors.append("CACHE_MAX_SIZE must be >= 1")

        if self.cache_ttl_seconds <= 0:
            errors.append("CACHE_TTL_SECONDS must be > 0")

        # No embedder is allowed: search then runs text-only and indexing fails

        return len(errors) == 0, errors


# Global config instance
_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = ServerConfig.from_env()
    return _config


def reload_config() -> ServerConfig:
    """Reload configuration from environment."""
    global _config
    _config = None
    return get_config()
