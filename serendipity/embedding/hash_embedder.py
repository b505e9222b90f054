"""
Deterministic hash embedder: a test affordance, never a silent fallback.

Each token is hashed into a signed bucket, so texts that share words land
near each other. Useful for tests and offline demos without a model.
Every construction and call logs a warning.
"""

import hashlib
import logging
from typing import List, Optional, Sequence

import numpy as np

from .base import Tokenizer
from .tokenizer import SimpleTokenizer

logger = logging.getLogger(__name__)


class HashEmbedder:
    def __init__(self, dimensions: int = 256, tokenizer: Optional[Tokenizer] = None):
        self.dimensions = dimensions
        self.tokenizer = tokenizer or SimpleTokenizer()
        logger.warning("[embedding] STUB_EMBEDDER_ENABLED dim=%d", dimensions)

    def embed(self, text: str) -> List[float]:
        logger.warning("[embedding] STUB_EMBEDDER_USED chars=%d", len(text))
        vec = np.zeros(self.dimensions, dtype=np.float64)
        for token in self.tokenizer.tokenize(text):
            digest = hashlib.md5(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "little") % self.dimensions
            sign = 1.0 if digest[4] & 1 else -1.0
            vec[bucket] += sign
        norm = np.linalg.norm(vec)
        return (vec / norm if norm > 0 else vec).tolist()

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        return [self.embed(t) for t in texts]
