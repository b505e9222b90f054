"""
Vector utilities: cosine similarity, magnitude, normalization and blending.
"""

from typing import Optional, Sequence

import numpy as np

Vector = Sequence[float]


def as_vector(v: Vector) -> np.ndarray:
    return np.asarray(v, dtype=np.float64)


def magnitude(v: Vector) -> float:
    return float(np.linalg.norm(as_vector(v)))


def normalize(v: Vector) -> np.ndarray:
    """Unit-length copy of v; a zero vector is returned unchanged."""
    arr = as_vector(v)
    norm = np.linalg.norm(arr)
    return arr / norm if norm > 0 else arr


def cosine_similarity(v1: Vector, v2: Vector) -> float:
    """Compute cosine similarity between two vectors. Zero magnitude gives 0.0."""
    if v1 is None or v2 is None or len(v1) == 0 or len(v2) == 0:
        return 0.0
    a = as_vector(v1)
    b = as_vector(v2)
    if a.shape != b.shape:
        return 0.0
    norm_product = np.linalg.norm(a) * np.linalg.norm(b)
    if norm_product == 0 or not np.isfinite(norm_product):
        return 0.0
    return float(np.dot(a, b) / norm_product)


def blend_vectors(vectors: Sequence[Vector], weights: Optional[Sequence[float]] = None) -> np.ndarray:
    """Weighted sum of vectors, renormalized. Equal weights when none are given."""
    if not vectors:
        raise ValueError("blend_vectors needs at least one vector")
    matrix = np.vstack([as_vector(v) for v in vectors])
    if weights is None:
        w = np.full(len(vectors), 1.0 / len(vectors))
    else:
        if len(weights) != len(vectors):
            raise ValueError("weights and vectors differ in length")
        w = np.asarray(weights, dtype=np.float64)
    return normalize(w @ matrix)
