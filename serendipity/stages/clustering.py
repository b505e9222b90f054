"""
k-means++ clustering in cosine geometry.

Seeding: first centroid uniform at random; each next one drawn with
probability proportional to (1 - sim)^2 to its nearest chosen centroid.
Iteration: assign to the most similar centroid, recompute centroids as
renormalized member means. Converged when every centroid keeps cosine
>= threshold to its previous value. Empty clusters keep their centroid.
"""

import logging
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ..errors import InsufficientData, ValidationError
from ..models.cluster import Cluster, ClusterResult
from ..models.config import EngineConfig, resolve_config
from ..models.record import EntityType
from ..store.vector_store import VectorStore

logger = logging.getLogger(__name__)

MemberId = Tuple[EntityType, str]


def _unit_matrix(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    matrix = np.asarray(vectors, dtype=np.float64)
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    safe = np.where(norms > 0, norms, 1.0)
    return matrix / safe


def _row_cosines(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Row-wise cosine; two zero rows count as identical."""
    dots = np.sum(a * b, axis=1)
    norms = np.linalg.norm(a, axis=1) * np.linalg.norm(b, axis=1)
    out = np.where(norms > 0, dots / np.where(norms > 0, norms, 1.0), 0.0)
    both_zero = (np.linalg.norm(a, axis=1) == 0) & (np.linalg.norm(b, axis=1) == 0)
    out[both_zero] = 1.0
    return out


class ClusterEngine:
    def __init__(
        self,
        vector_store: VectorStore,
        rng: Optional[np.random.Generator] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.vector_store = vector_store
        self.rng = rng if rng is not None else np.random.default_rng()
        self.config = resolve_config(config)

    # ------------------------------------------------------------------
    # seeding / assignment
    # ------------------------------------------------------------------

    def _seed(self, X: np.ndarray, k: int) -> np.ndarray:
        n = X.shape[0]
        chosen = [int(self.rng.integers(n))]
        while len(chosen) < k:
            nearest = np.max(X @ X[chosen].T, axis=1)
            weights = np.clip(1.0 - nearest, 0.0, None) ** 2
            weights[chosen] = 0.0
            total = weights.sum()
            if total > 0:
                idx = int(self.rng.choice(n, p=weights / total))
            else:
                # Every point coincides with a chosen centroid
                pool = [i for i in range(n) if i not in chosen]
                idx = int(self.rng.choice(pool))
            chosen.append(idx)
        return X[chosen].copy()

    @staticmethod
    def assign(X: np.ndarray, centroids: np.ndarray) -> np.ndarray:
        """Index of the most similar centroid per row (ties -> lowest index)."""
        return np.argmax(X @ centroids.T, axis=1)

    # ------------------------------------------------------------------
    # core loop
    # ------------------------------------------------------------------

    def kmeans(
        self,
        member_ids: Sequence[Any],
        vectors: Sequence[Sequence[float]],
        k: int,
        max_iterations: Optional[int] = None,
    ) -> ClusterResult:
        """Cluster already-loaded vectors. member_ids[i] labels vectors[i]."""
        if not isinstance(k, (int, np.integer)) or isinstance(k, bool) or k < 1:
            raise ValidationError(f"k must be a positive integer, got {k!r}")
        max_iterations = max_iterations if max_iterations is not None else self.config.cluster_max_iterations
        if max_iterations < 1:
            raise ValidationError(f"max_iterations must be >= 1, got {max_iterations}")
        if len(vectors) < k:
            raise InsufficientData(required=k, available=len(vectors))

        X = _unit_matrix(vectors)
        centroids = self._seed(X, k)
        threshold = self.config.convergence_threshold

        iterations = 0
        converged = False
        for iterations in range(1, max_iterations + 1):
            labels = self.assign(X, centroids)
            updated = centroids.copy()
            for j in range(k):
                members = X[labels == j]
                if len(members) == 0:
                    logger.debug("[cluster] EMPTY_CLUSTER id=%d iteration=%d", j, iterations)
                    continue
                mean = members.mean(axis=0)
                norm = np.linalg.norm(mean)
                if norm > 0:
                    updated[j] = mean / norm
            stable = _row_cosines(updated, centroids) >= threshold
            centroids = updated
            if stable.all():
                converged = True
                break

        labels = self.assign(X, centroids)
        clusters: List[Cluster] = []
        for j in range(k):
            idxs = np.flatnonzero(labels == j)
            clusters.append(
                Cluster(
                    cluster_id=j,
                    centroid=centroids[j].tolist(),
                    member_ids=[member_ids[i] for i in idxs],
                    size=int(idxs.size),
                )
            )
        empty = sum(1 for c in clusters if c.size == 0)
        if empty:
            logger.warning("[cluster] EMPTY_CLUSTERS count=%d k=%d", empty, k)
        logger.info(
            "[cluster] DONE n=%d k=%d iterations=%d converged=%s", len(vectors), k, iterations, converged
        )
        return ClusterResult(clusters=clusters, iterations=iterations, converged=converged)

    def cluster(
        self,
        project_id: Optional[str],
        k: int,
        entity_types: Optional[Iterable[Any]] = None,
        max_iterations: Optional[int] = None,
    ) -> ClusterResult:
        """k-means++ over a project's own vectors (project_id None = every vector)."""
        if not isinstance(k, (int, np.integer)) or isinstance(k, bool) or k < 1:
            raise ValidationError(f"k must be a positive integer, got {k!r}")
        records = self.vector_store.candidates(
            project_id,
            entity_types,
            limit=self.config.cluster_max_points,
            include_global=False,
        )
        if len(records) < k:
            raise InsufficientData(required=k, available=len(records))
        return self.kmeans(
            [r.key for r in records],
            [r.vector for r in records],
            k,
            max_iterations=max_iterations,
        )
