"""
Diversity reranking: greedy maximal-marginal-relevance selection loop.

For each slot, picks the best remaining candidate by
    adjusted = final_score - diversity_weight * (Σ sim(c, s) + type_penalty * same_type(s))
over the already selected items s. Output is always a permutation of the input.
"""

from typing import Dict, List, Optional, Sequence

import numpy as np

from ..models.scoring import ScoredCandidate


def _unit_rows(candidates: Sequence[ScoredCandidate]) -> List[Optional[np.ndarray]]:
    rows: List[Optional[np.ndarray]] = []
    for c in candidates:
        if not c.vector:
            rows.append(None)
            continue
        v = np.asarray(c.vector, dtype=np.float64)
        norm = np.linalg.norm(v)
        rows.append(v / norm if norm > 0 else None)
    return rows


def _with_penalty(candidate: ScoredCandidate, penalty: float) -> ScoredCandidate:
    debug = candidate.debug.model_copy(update={"diversity_penalty": penalty})
    return candidate.model_copy(update={"debug": debug})


class DiversityReranker:
    def __init__(self, type_penalty: float = 0.1):
        self.type_penalty = type_penalty

    def rerank(self, candidates: Sequence[ScoredCandidate], diversity_weight: float) -> List[ScoredCandidate]:
        """
        Reorder candidates to reduce redundancy.

        Args:
            candidates: Scored candidates in any order. Not mutated.
            diversity_weight: Normalized diversity weight; 0 disables reranking.

        Returns:
            Same candidates, reordered. With diversity_weight 0 (or fewer than
            two candidates) this is plain descending final_score order.
        """
        # Stable sort: equal final scores keep input order
        ordered = sorted(candidates, key=lambda c: c.final_score, reverse=True)
        if diversity_weight <= 0 or len(ordered) < 2:
            return ordered

        rows = _unit_rows(ordered)
        remaining = list(range(len(ordered)))
        selected: List[ScoredCandidate] = [_with_penalty(ordered[0], 0.0)]
        remaining.pop(0)

        # Running penalty terms per remaining candidate
        sim_sum: Dict[int, float] = {i: 0.0 for i in remaining}
        same_type: Dict[int, int] = {i: 0 for i in remaining}
        last = 0

        while remaining:
            last_row = rows[last]
            last_type = ordered[last].entity_type
            for i in remaining:
                if last_row is not None and rows[i] is not None:
                    sim_sum[i] += float(np.dot(rows[i], last_row))
                if ordered[i].entity_type == last_type:
                    same_type[i] += 1

            best_idx: Optional[int] = None
            best_adjusted = -np.inf
            for pos, i in enumerate(remaining):
                penalty = diversity_weight * (sim_sum[i] + self.type_penalty * same_type[i])
                adjusted = ordered[i].final_score - penalty
                if adjusted > best_adjusted:
                    best_adjusted = adjusted
                    best_idx = pos

            chosen = remaining.pop(best_idx)
            selected.append(_with_penalty(ordered[chosen], ordered[chosen].final_score - best_adjusted))
            last = chosen

        return selected
