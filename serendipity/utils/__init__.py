"""Vector math helpers."""

from .vectors import as_vector, blend_vectors, cosine_similarity, magnitude, normalize

__all__ = ["as_vector", "blend_vectors", "cosine_similarity", "magnitude", "normalize"]
