"""
OpenAI embedder.

Usage:
    embedder = OpenAIEmbedder(api_key="sk-...")
    vector = embedder.embed("Chapter 3\n\nThe harbour at dawn")
"""

import logging
import os
from typing import List, Optional, Sequence

from openai import OpenAI

logger = logging.getLogger(__name__)


class OpenAIEmbedder:
    """Generates embeddings using OpenAI's embedding API, in batches."""

    DEFAULT_MODEL = "text-embedding-3-small"
    DEFAULT_DIMENSIONS = 1536
    BATCH_SIZE = 100

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        dimensions: int = DEFAULT_DIMENSIONS,
        client: Optional[OpenAI] = None,
    ):
        """
        Args:
            api_key: OpenAI API key (falls back to OPENAI_API_KEY env var)
            model: Embedding model to use
            dimensions: Embedding dimensions requested from the API
            client: Pre-built client (tests inject a fake here)
        """
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.model = model
        self.dimensions = dimensions
        self._client = client

    @property
    def client(self) -> OpenAI:
        """Get or create OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise ValueError(
                    "OpenAI API key not provided. Set OPENAI_API_KEY environment variable "
                    "or pass api_key to OpenAIEmbedder."
                )
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    def embed(self, text: str) -> List[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        vectors: List[List[float]] = []
        if not texts:
            return vectors
        for i in range(0, len(texts), self.BATCH_SIZE):
            # The API rejects empty strings
            batch = [t if t.strip() else " " for t in texts[i:i + self.BATCH_SIZE]]
            response = self.client.embeddings.create(
                model=self.model,
                input=batch,
                dimensions=self.dimensions,
            )
            ordered = sorted(response.data, key=lambda item: item.index)
            vectors.extend(item.embedding for item in ordered)
        logger.debug("[embedding] OPENAI_BATCH model=%s count=%d", self.model, len(vectors))
        return vectors
