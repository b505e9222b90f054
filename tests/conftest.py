"""Shared fixtures: deterministic embedder, stepping clock, seeded engine."""

from datetime import datetime, timedelta, timezone
from typing import List, Sequence

import numpy as np
import pytest

from serendipity import EngineConfig, InMemoryStore, SerendipityEngine, VectorStore

VOCAB = ("ocean", "forest", "city", "dragon")


class KeywordEmbedder:
    """One axis per vocabulary word plus a small floor, L2-normalized."""

    dimensions = len(VOCAB)

    def __init__(self):
        self.calls = 0

    def embed(self, text: str) -> List[float]:
        self.calls += 1
        lowered = text.lower()
        vec = np.array([lowered.count(word) + 0.01 for word in VOCAB], dtype=float)
        return (vec / np.linalg.norm(vec)).tolist()

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        return [self.embed(t) for t in texts]


class FailingEmbedder:
    dimensions = len(VOCAB)

    def embed(self, text: str) -> List[float]:
        raise ConnectionError("embedding service unreachable")

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        raise ConnectionError("embedding service unreachable")


class StepClock:
    """Returns a strictly increasing UTC time on every call."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, tzinfo=timezone.utc), step_seconds: float = 1.0):
        self.current = start
        self.step = timedelta(seconds=step_seconds)

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def vector_store(memory_store, clock):
    return VectorStore(memory_store, now=clock)


@pytest.fixture
def embedder():
    return KeywordEmbedder()


@pytest.fixture
def engine(memory_store, embedder, rng):
    return SerendipityEngine(memory_store, embedder=embedder, config=EngineConfig(), rng=rng)


@pytest.fixture
def failing_embedder():
    return FailingEmbedder()
