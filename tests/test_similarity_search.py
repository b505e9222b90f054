"""
Similarity search tests: exact nearest neighbours, exclusions, thresholds,
mode windows and the bounded candidate window.

Run:
----
    pytest tests/test_similarity_search.py -v
"""

import math

import numpy as np
import pytest

from serendipity.errors import DimensionMismatch, ValidationError
from serendipity.models import EngineConfig, SearchModeConfig
from serendipity.stages.perturbation import PerturbationGenerator
from serendipity.stages.similarity_search import SimilaritySearchEngine


@pytest.fixture
def search_engine(vector_store, rng):
    vector_store.put("knowledge", "A", "p1", [1.0, 0.0])
    vector_store.put("knowledge", "B", "p1", [0.0, 1.0])
    vector_store.put("knowledge", "C", "p1", [0.9, 0.1])
    return SimilaritySearchEngine(vector_store, PerturbationGenerator(rng))


class TestExactSearch:
    def test_nearest_two(self, search_engine):
        hits = search_engine.search([1.0, 0.0], "p1", mode="exact", limit=2)
        assert [h.entity_id for h in hits] == ["A", "C"]
        assert hits[0].similarity == pytest.approx(1.0)
        assert hits[1].similarity == pytest.approx(0.9 / math.sqrt(0.82))
        assert hits[1].distance == pytest.approx(1.0 - hits[1].similarity)

    def test_knn_matches_exact_mode(self, search_engine):
        knn = search_engine.knn([1.0, 0.0], "p1", 3)
        assert [h.entity_id for h in knn] == ["A", "C", "B"]
        assert knn[2].similarity == pytest.approx(0.0)

    def test_exact_is_deterministic(self, search_engine):
        first = search_engine.search([0.6, 0.8], "p1", mode="exact", limit=3)
        second = search_engine.search([0.6, 0.8], "p1", mode="exact", limit=3)
        assert [(h.entity_id, h.similarity) for h in first] == [(h.entity_id, h.similarity) for h in second]

    def test_exclude_ids(self, search_engine):
        hits = search_engine.search([1.0, 0.0], "p1", mode="exact", limit=3, exclude_ids=["A"])
        assert [h.entity_id for h in hits] == ["C", "B"]
        hits = search_engine.search([1.0, 0.0], "p1", mode="exact", limit=3, exclude_ids=[("knowledge", "C")])
        assert [h.entity_id for h in hits] == ["A", "B"]

    def test_threshold(self, search_engine):
        hits = search_engine.search([1.0, 0.0], "p1", mode="exact", limit=3, threshold=0.5)
        assert [h.entity_id for h in hits] == ["A", "C"]

    def test_metadata_returned(self, vector_store, rng):
        vector_store.put("plot", "twist", "p9", [1.0, 1.0], {"title": "The Twist"})
        engine = SimilaritySearchEngine(vector_store, PerturbationGenerator(rng))
        hits = engine.search([1.0, 1.0], "p9", mode="exact", limit=1, entity_types=["plot"])
        assert hits[0].metadata == {"title": "The Twist"}

    def test_zero_vector_candidate_scores_zero(self, vector_store, rng):
        vector_store.put("knowledge", "zero", "p1", [0.0, 0.0])
        engine = SimilaritySearchEngine(vector_store, PerturbationGenerator(rng))
        hits = engine.search([1.0, 0.0], "p1", mode="exact", limit=1)
        assert hits[0].similarity == 0.0

    def test_empty_corpus(self, vector_store, rng):
        engine = SimilaritySearchEngine(vector_store, PerturbationGenerator(rng))
        assert engine.search([1.0, 0.0], "p1", mode="serendipity", limit=5) == []


class TestPerturbedModes:
    @pytest.mark.parametrize("mode", ["similar", "serendipity"])
    def test_results_sorted_and_bounded(self, search_engine, mode):
        hits = search_engine.search([1.0, 0.0], "p1", mode=mode, limit=2)
        assert len(hits) <= 2
        sims = [h.similarity for h in hits]
        assert sims == sorted(sims, reverse=True)

    def test_serendipity_moves_the_probe(self, vector_store):
        for i in range(8):
            angle = i * math.pi / 16
            vector_store.put("knowledge", f"k{i}", "p1", [math.cos(angle), math.sin(angle), 0.0, 0.0])
        engine = SimilaritySearchEngine(vector_store, PerturbationGenerator(np.random.default_rng(5)))
        seen = {
            tuple(round(h.similarity, 6) for h in engine.search([1.0, 0.0, 0.0, 0.0], "p1", mode="serendipity", limit=3))
            for _ in range(5)
        }
        assert len(seen) > 1


class TestValidation:
    def test_query_dimension_mismatch(self, search_engine):
        with pytest.raises(DimensionMismatch):
            search_engine.search([1.0, 0.0, 0.0], "p1", mode="exact")

    def test_unknown_mode(self, search_engine):
        with pytest.raises(ValidationError):
            search_engine.search([1.0, 0.0], "p1", mode="chaos")

    @pytest.mark.parametrize("limit", [0, -3])
    def test_bad_limit(self, search_engine, limit):
        with pytest.raises(ValidationError):
            search_engine.search([1.0, 0.0], "p1", limit=limit)


class TestCandidateWindow:
    def test_mode_windows(self):
        modes = EngineConfig().modes
        assert modes["exact"].window(10) == 20
        assert modes["exact"].window(25) == 25
        assert modes["similar"].window(10) == 30
        assert modes["similar"].window(30) == 45
        assert modes["serendipity"].window(10) == 50
        assert modes["serendipity"].window(41) == 103

    def test_recall_is_bounded_by_window(self, vector_store, rng):
        # Best match is the oldest record; 25 newer ones fill the 20-item window
        vector_store.put("knowledge", "best", "p1", [1.0, 0.0])
        for i in range(25):
            vector_store.put("knowledge", f"filler{i}", "p1", [0.1, 1.0])
        engine = SimilaritySearchEngine(vector_store, PerturbationGenerator(rng))
        hits = engine.search([1.0, 0.0], "p1", mode="exact", limit=1)
        assert hits[0].entity_id != "best"

        wide = EngineConfig(modes={
            "exact": SearchModeConfig(noise_level=0.0, pool_size=100),
            "similar": SearchModeConfig(noise_level=0.1, pool_size=100),
            "serendipity": SearchModeConfig(noise_level=0.3, pool_size=100),
        })
        engine = SimilaritySearchEngine(vector_store, PerturbationGenerator(rng), wide)
        assert engine.search([1.0, 0.0], "p1", mode="exact", limit=1)[0].entity_id == "best"
