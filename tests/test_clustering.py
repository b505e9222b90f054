"""
Clustering tests: k-means++ on two directional groups, size accounting,
assignment stability, empty clusters and scope.

Run:
----
    pytest tests/test_clustering.py -v
"""

import math

import numpy as np
import pytest

from serendipity.errors import InsufficientData, ValidationError
from serendipity.stages.clustering import ClusterEngine, _unit_matrix


def _unit(degrees):
    rad = math.radians(degrees)
    return [math.cos(rad), math.sin(rad)]


GROUPS = {
    "east": [-5.0, 0.0, 5.0],
    "north": [85.0, 90.0, 95.0],
}


@pytest.fixture
def populated(vector_store):
    for name, angles in GROUPS.items():
        for i, angle in enumerate(angles):
            vector_store.put("knowledge", f"{name}{i}", "p1", _unit(angle))
    return vector_store


class TestTwoGroups:
    def test_converges_to_group_centroids(self, populated, rng):
        result = ClusterEngine(populated, rng).cluster("p1", 2)
        assert result.converged
        assert result.iterations <= 10
        assert len(result.clusters) == 2

        groups = sorted({eid.rstrip("0123456789") for _, eid in c.member_ids} for c in result.clusters)
        assert groups == [{"east"}, {"north"}]

        centroids = sorted((c.centroid for c in result.clusters), key=lambda v: v[1])
        assert centroids[0] == pytest.approx([1.0, 0.0], abs=1e-6)
        assert centroids[1] == pytest.approx([0.0, 1.0], abs=1e-6)

    def test_sizes_sum_to_total(self, populated, rng):
        result = ClusterEngine(populated, rng).cluster("p1", 2)
        assert sum(c.size for c in result.clusters) == 6
        assert result.total_size == 6
        assert all(c.size == len(c.member_ids) for c in result.clusters)

    def test_extra_assignment_pass_is_stable(self, populated, rng):
        result = ClusterEngine(populated, rng).cluster("p1", 2)
        records = populated.candidates("p1", limit=100, include_global=False)
        X = _unit_matrix([r.vector for r in records])
        centroids = np.asarray([c.centroid for c in result.clusters])
        labels = ClusterEngine.assign(X, centroids)
        for record, label in zip(records, labels):
            assert record.key in result.clusters[int(label)].member_ids

    @pytest.mark.parametrize("seed", range(5))
    def test_partition_for_any_seed(self, populated, seed):
        result = ClusterEngine(populated, np.random.default_rng(seed)).cluster("p1", 2)
        assert sorted(c.size for c in result.clusters) == [3, 3]


class TestEdgeCases:
    def test_fewer_vectors_than_k(self, populated, rng):
        with pytest.raises(InsufficientData) as info:
            ClusterEngine(populated, rng).cluster("p1", 7)
        assert info.value.required == 7
        assert info.value.available == 6

    def test_empty_scope(self, vector_store, rng):
        with pytest.raises(InsufficientData):
            ClusterEngine(vector_store, rng).cluster("nobody", 1)

    @pytest.mark.parametrize("k", [0, -2, 1.5])
    def test_invalid_k(self, populated, rng, k):
        with pytest.raises(ValidationError):
            ClusterEngine(populated, rng).cluster("p1", k)

    def test_empty_clusters_keep_centroid(self, vector_store, rng):
        for i in range(3):
            vector_store.put("plot", f"same{i}", "p1", [0.0, 2.0])
        result = ClusterEngine(vector_store, rng).cluster("p1", 3)
        assert [c.size for c in result.clusters] == [3, 0, 0]
        for c in result.clusters:
            assert c.centroid == pytest.approx([0.0, 1.0])
        assert result.converged

    def test_iteration_cap(self, populated, rng):
        result = ClusterEngine(populated, rng).cluster("p1", 2, max_iterations=1)
        assert result.iterations == 1

    def test_scope_excludes_global_and_other_projects(self, populated, rng):
        populated.put("knowledge", "global", None, _unit(45))
        populated.put("knowledge", "elsewhere", "p2", _unit(45))
        result = ClusterEngine(populated, rng).cluster("p1", 2)
        members = {eid for c in result.clusters for _, eid in c.member_ids}
        assert "global" not in members and "elsewhere" not in members
        assert result.total_size == 6

    def test_type_filter(self, populated, rng):
        populated.put("chapter", "ch", "p1", _unit(45))
        result = ClusterEngine(populated, rng).cluster("p1", 1, entity_types=["chapter"])
        assert result.clusters[0].member_ids == [populated.get("chapter", "ch").key]
