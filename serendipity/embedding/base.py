"""
Collaborator interfaces: Embedder (text -> vector) and Tokenizer (text -> tokens).

Both are injected into the engine; nothing here is a process-wide singleton.
"""

from typing import List, Protocol, Sequence


class Embedder(Protocol):
    """Turns text into fixed-length float vectors."""

    dimensions: int

    def embed(self, text: str) -> List[float]:
        ...

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        ...


class Tokenizer(Protocol):
    """Turns text into an ordered sequence of normalized tokens."""

    def tokenize(self, text: str) -> List[str]:
        ...
