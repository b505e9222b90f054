"""
Similarity search: nearest vectors under exact / similar / serendipity modes.

1) resolve noise level and candidate window from the mode
2) perturb the query (no-op in exact mode)
3) fetch the recency-ordered candidate window from the VectorStore
4) cosine similarity against every non-excluded candidate
5) threshold, sort descending, keep top `limit`

Only the candidate window is scored, so recall is bounded by window size.
"""

import logging
from typing import Any, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

from ..errors import ValidationError
from ..models.config import EngineConfig, resolve_config
from ..models.record import VectorRecord
from ..models.scoring import SimilarityHit
from ..store.vector_store import VectorStore
from .perturbation import PerturbationGenerator

logger = logging.getLogger(__name__)


def exclusion_set(exclude_ids: Optional[Iterable[Any]]) -> Tuple[Set[str], Set[Tuple[str, str]]]:
    """Split exclusions into bare entity ids and (entity_type, entity_id) pairs."""
    bare: Set[str] = set()
    pairs: Set[Tuple[str, str]] = set()
    for item in exclude_ids or ():
        if isinstance(item, (tuple, list)) and len(item) == 2:
            etype, eid = item
            pairs.add((getattr(etype, "value", etype), eid))
        else:
            bare.add(item)
    return bare, pairs


def similarities(query: np.ndarray, records: Sequence[VectorRecord]) -> np.ndarray:
    """Cosine similarity of query to each record; zero magnitudes score 0."""
    if not records:
        return np.zeros(0)
    matrix = np.asarray([r.vector for r in records], dtype=np.float64)
    dots = matrix @ query
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    out = np.zeros(len(records))
    nonzero = norms > 0
    out[nonzero] = dots[nonzero] / norms[nonzero]
    return out


class SimilaritySearchEngine:
    def __init__(
        self,
        vector_store: VectorStore,
        perturbation: Optional[PerturbationGenerator] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.vector_store = vector_store
        self.perturbation = perturbation or PerturbationGenerator()
        self.config = resolve_config(config)

    def search_records(
        self,
        query_vector: Sequence[float],
        project_id: Optional[str] = None,
        mode: str = "similar",
        limit: int = 10,
        entity_types: Optional[Iterable[Any]] = None,
        threshold: float = 0.0,
        exclude_ids: Optional[Iterable[Any]] = None,
        perturbation_type: str = "gaussian",
    ) -> List[Tuple[VectorRecord, float]]:
        """Search returning (record, similarity) pairs, best first."""
        if limit is None or limit < 1:
            raise ValidationError(f"limit must be >= 1, got {limit}")
        if mode not in self.config.modes:
            raise ValidationError(f"Unknown search mode {mode!r}")
        query = self.vector_store.check_vector(query_vector)

        # 1) mode parameters
        mode_cfg = self.config.mode(mode)
        window = mode_cfg.window(limit)

        # 2) perturb
        probe = np.asarray(
            self.perturbation.perturb(query.tolist(), mode_cfg.noise_level, perturbation_type),
            dtype=np.float64,
        )

        # 3) candidate window
        records = self.vector_store.candidates(project_id, entity_types, window)

        # 4) score non-excluded candidates
        bare, pairs = exclusion_set(exclude_ids)
        kept = [
            r for r in records
            if r.entity_id not in bare and (r.entity_type.value, r.entity_id) not in pairs
        ]
        sims = similarities(probe, kept)

        # 5) threshold + sort (stable for ties)
        scored = [(r, float(s)) for r, s in zip(kept, sims) if s >= threshold]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        logger.debug(
            "[search] MODE=%s noise=%.2f window=%d fetched=%d scored=%d returned=%d",
            mode, mode_cfg.noise_level, window, len(records), len(kept), min(limit, len(scored)),
        )
        return scored[:limit]

    def search(
        self,
        query_vector: Sequence[float],
        project_id: Optional[str] = None,
        mode: str = "similar",
        limit: int = 10,
        entity_types: Optional[Iterable[Any]] = None,
        threshold: float = 0.0,
        exclude_ids: Optional[Iterable[Any]] = None,
        perturbation_type: str = "gaussian",
    ) -> List[SimilarityHit]:
        """Nearest records to query_vector under the given mode."""
        pairs = self.search_records(
            query_vector,
            project_id=project_id,
            mode=mode,
            limit=limit,
            entity_types=entity_types,
            threshold=threshold,
            exclude_ids=exclude_ids,
            perturbation_type=perturbation_type,
        )
        return [
            SimilarityHit(
                entity_type=r.entity_type,
                entity_id=r.entity_id,
                similarity=sim,
                distance=1.0 - sim,
                metadata=r.metadata,
            )
            for r, sim in pairs
        ]

    def knn(
        self,
        query_vector: Sequence[float],
        project_id: Optional[str],
        k: int,
        entity_types: Optional[Iterable[Any]] = None,
        threshold: float = 0.0,
        exclude_ids: Optional[Iterable[Any]] = None,
    ) -> List[SimilarityHit]:
        """Literal k nearest neighbours: exact mode, no perturbation."""
        return self.search(
            query_vector,
            project_id=project_id,
            mode="exact",
            limit=k,
            entity_types=entity_types,
            threshold=threshold,
            exclude_ids=exclude_ids,
        )
