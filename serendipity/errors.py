"""
Error taxonomy for the retrieval engine.

- ValidationError: malformed input (empty vector, negative k, nothing to rank)
- DimensionMismatch: vector length differs from the pinned collection dimension
- InsufficientData: corpus smaller than the requested k, or empty
- UpstreamError: embedder / tokenizer / store failure, tagged with the stage

Missing keys on get/delete are not errors; those return None or no-op.
"""

from contextlib import contextmanager
from typing import Optional


class SerendipityError(Exception):
    """Base class for all engine errors."""


class ValidationError(SerendipityError):
    """Input rejected before any work or mutation happened."""


class DimensionMismatch(ValidationError):
    """Vector length does not match the collection dimension."""

    def __init__(self, expected: int, actual: int, key: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        self.key = key
        where = f" for {key}" if key else ""
        super().__init__(f"Vector dimension mismatch{where}: expected {expected}, got {actual}")


class InsufficientData(SerendipityError):
    """Not enough stored vectors to satisfy the request."""

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(f"Need at least {required} vectors, only {available} available")


class UpstreamError(SerendipityError):
    """A collaborator (embedder, tokenizer, store) failed.

    `stage` names where it happened: embedding, tokenize, retrieval, scoring, storage.
    """

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(f"[{stage}] {message}")


@contextmanager
def upstream_stage(stage: str):
    """Re-raise collaborator failures as UpstreamError tagged with stage.

    Engine errors pass through untouched.
    """
    try:
        yield
    except SerendipityError:
        raise
    except Exception as exc:
        raise UpstreamError(stage, f"{type(exc).__name__}: {exc}") from exc
