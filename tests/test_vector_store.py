"""
VectorStore tests: dimension pinning, batch atomicity, cache-aside reads,
candidate windows, project deletes, upstream tagging.

Run:
----
    pytest tests/test_vector_store.py -v
"""

import threading

import pytest

from serendipity.errors import DimensionMismatch, UpstreamError, ValidationError
from serendipity.models import EntityType, VectorRecord
from serendipity.store import InMemoryStore, VectorStore


class BrokenStore(InMemoryStore):
    def upsert(self, record):
        raise RuntimeError("disk full")

    def upsert_many(self, records):
        raise RuntimeError("disk full")

    def query_candidates(self, flt, limit):
        raise TimeoutError("query timed out")


class PausingStore(InMemoryStore):
    """Blocks the next upsert after it has written, until released."""

    def __init__(self):
        super().__init__()
        self.pause_next = False
        self.written = threading.Event()
        self.release = threading.Event()

    def upsert(self, record):
        super().upsert(record)
        if self.pause_next:
            self.pause_next = False
            self.written.set()
            self.release.wait(timeout=5)


def _rec(entity_id, vector, project_id="p1", entity_type="knowledge"):
    return {"entity_type": entity_type, "entity_id": entity_id, "project_id": project_id, "vector": vector}


class TestPutAndGet:
    def test_put_then_get(self, vector_store):
        stored = vector_store.put("knowledge", "k1", "p1", [3.0, 4.0], {"title": "Tides"})
        assert stored.magnitude == pytest.approx(5.0)
        got = vector_store.get(EntityType.KNOWLEDGE, "k1")
        assert got.vector == pytest.approx([3.0, 4.0])
        assert got.metadata["title"] == "Tides"
        assert got.project_id == "p1"

    def test_missing_key_is_none_not_error(self, vector_store):
        assert vector_store.get("chapter", "nope") is None
        assert vector_store.delete("chapter", "nope") is False

    def test_upsert_keeps_created_at(self, vector_store):
        first = vector_store.put("chapter", "c1", "p1", [1.0, 0.0])
        second = vector_store.put("chapter", "c1", "p1", [0.0, 1.0])
        assert second.created_at == first.created_at
        assert second.updated_at > first.updated_at
        assert vector_store.count() == 1
        assert vector_store.get("chapter", "c1").vector == pytest.approx([0.0, 1.0])

    def test_unknown_entity_type(self, vector_store):
        with pytest.raises(ValidationError):
            vector_store.put("poem", "x", None, [1.0])

    @pytest.mark.parametrize("bad", [[], [float("nan"), 1.0], [float("inf"), 0.0]])
    def test_invalid_vectors_rejected(self, vector_store, bad):
        with pytest.raises(ValidationError):
            vector_store.put("knowledge", "k1", "p1", bad)
        assert vector_store.count() == 0


class TestDimension:
    def test_first_write_pins_dimension(self, vector_store):
        assert vector_store.dimension is None
        vector_store.put("knowledge", "k1", "p1", [1.0, 0.0, 0.0])
        assert vector_store.dimension == 3
        with pytest.raises(DimensionMismatch) as info:
            vector_store.put("knowledge", "k2", "p1", [1.0, 0.0])
        assert info.value.expected == 3
        assert info.value.actual == 2
        assert vector_store.count() == 1

    def test_configured_dimension(self, memory_store, clock):
        store = VectorStore(memory_store, dimension=4, now=clock)
        with pytest.raises(DimensionMismatch):
            store.put("plot", "p", None, [1.0, 2.0, 3.0])

    def test_dimension_discovered_from_existing_data(self, memory_store, clock):
        memory_store.upsert(VectorRecord(entity_type="plot", entity_id="x", vector=[1.0, 2.0]))
        store = VectorStore(memory_store, now=clock)
        assert store.dimension == 2
        with pytest.raises(DimensionMismatch):
            store.put("plot", "y", None, [1.0, 2.0, 3.0])

    def test_query_vector_check(self, vector_store):
        vector_store.put("knowledge", "k1", "p1", [1.0, 0.0])
        with pytest.raises(DimensionMismatch):
            vector_store.check_vector([1.0, 0.0, 0.0])


class TestBatchPut:
    def test_batch_writes_all(self, vector_store):
        written = vector_store.batch_put([_rec("a", [1.0, 0.0]), _rec("b", [0.0, 1.0])])
        assert len(written) == 2
        assert vector_store.count() == 2

    def test_one_invalid_record_writes_nothing(self, vector_store, memory_store):
        vector_store.put("knowledge", "existing", "p1", [1.0, 1.0])
        batch = [_rec(f"n{i}", [float(i), 1.0]) for i in range(5)]
        batch.insert(3, _rec("bad", [1.0, 2.0, 3.0]))
        with pytest.raises(ValidationError):
            vector_store.batch_put(batch)
        assert set(memory_store.keys()) == {(EntityType.KNOWLEDGE, "existing")}

    def test_batch_on_empty_collection_must_agree(self, vector_store):
        with pytest.raises(DimensionMismatch):
            vector_store.batch_put([_rec("a", [1.0, 0.0]), _rec("b", [1.0, 0.0, 0.0])])
        assert vector_store.count() == 0
        assert vector_store.dimension is None

    def test_duplicate_keys_rejected(self, vector_store):
        with pytest.raises(ValidationError):
            vector_store.batch_put([_rec("a", [1.0, 0.0]), _rec("a", [0.0, 1.0])])
        assert vector_store.count() == 0

    def test_bad_entity_type_in_batch(self, vector_store):
        with pytest.raises(ValidationError):
            vector_store.batch_put([_rec("a", [1.0, 0.0]), _rec("b", [1.0, 0.0], entity_type="poem")])
        assert vector_store.count() == 0


class TestCacheAside:
    def test_get_serves_from_cache(self, vector_store, memory_store):
        vector_store.put("knowledge", "k1", "p1", [1.0, 0.0])
        memory_store.delete(EntityType.KNOWLEDGE, "k1")
        assert vector_store.get("knowledge", "k1") is not None
        vector_store.cache.clear()
        assert vector_store.get("knowledge", "k1") is None

    def test_miss_repopulates_cache(self, vector_store):
        vector_store.put("knowledge", "k1", "p1", [1.0, 0.0])
        vector_store.cache.clear()
        vector_store.get("knowledge", "k1")
        assert (EntityType.KNOWLEDGE, "k1") in vector_store.cache

    def test_delete_clears_cache(self, vector_store):
        vector_store.put("knowledge", "k1", "p1", [1.0, 0.0])
        assert vector_store.delete("knowledge", "k1") is True
        assert vector_store.get("knowledge", "k1") is None


class TestCandidates:
    @pytest.fixture(autouse=True)
    def setup(self, vector_store):
        self.store = vector_store
        vector_store.put("knowledge", "old", "p1", [1.0, 0.0])
        vector_store.put("chapter", "mid", "p1", [1.0, 0.0])
        vector_store.put("knowledge", "global", None, [1.0, 0.0])
        vector_store.put("knowledge", "other", "p2", [1.0, 0.0])
        vector_store.put("character", "new", "p1", [1.0, 0.0])

    def _ids(self, records):
        return [r.entity_id for r in records]

    def test_scope_includes_global_and_orders_by_recency(self):
        assert self._ids(self.store.candidates("p1", limit=10)) == ["new", "global", "mid", "old"]

    def test_limit_bounds_window(self):
        assert self._ids(self.store.candidates("p1", limit=2)) == ["new", "global"]

    def test_type_filter(self):
        assert self._ids(self.store.candidates("p1", ["knowledge"], limit=10)) == ["global", "old"]

    def test_project_only(self):
        ids = self._ids(self.store.candidates("p1", limit=10, include_global=False))
        assert ids == ["new", "mid", "old"]

    def test_unscoped_sees_everything(self):
        assert len(self.store.candidates(None, limit=10)) == 5

    def test_delete_project_keeps_global_and_other_projects(self):
        self.store.get("knowledge", "old")
        assert self.store.delete_project("p1") == 3
        assert self._ids(self.store.candidates(None, limit=10)) == ["other", "global"]
        assert self.store.get("knowledge", "old") is None


class TestUpstreamErrors:
    def test_write_failure_tagged_storage(self, clock):
        store = VectorStore(BrokenStore(), now=clock)
        with pytest.raises(UpstreamError) as info:
            store.put("knowledge", "k", None, [1.0])
        assert info.value.stage == "storage"
        assert isinstance(info.value.__cause__, RuntimeError)

    def test_read_failure_tagged_retrieval(self, clock):
        store = VectorStore(BrokenStore(), now=clock)
        with pytest.raises(UpstreamError) as info:
            store.candidates("p1", limit=5)
        assert info.value.stage == "retrieval"


class TestWriteSerialization:
    @pytest.fixture(autouse=True)
    def setup(self, clock):
        self.backend = PausingStore()
        self.store = VectorStore(self.backend, now=clock)

    def _paused_put(self, vector):
        self.backend.pause_next = True
        writer = threading.Thread(target=self.store.put, args=("knowledge", "k1", "p1", vector))
        writer.start()
        assert self.backend.written.wait(timeout=5)
        return writer

    def _run_blocked(self, target, *args):
        other = threading.Thread(target=target, args=args)
        other.start()
        other.join(timeout=0.1)
        # Still waiting for the paused writer to finish
        assert other.is_alive()
        return other

    def test_delete_during_put_leaves_nothing_cached(self):
        writer = self._paused_put([1.0, 0.0])
        deleter = self._run_blocked(self.store.delete, "knowledge", "k1")
        self.backend.release.set()
        writer.join(timeout=5)
        deleter.join(timeout=5)
        assert self.backend.get_by_key(EntityType.KNOWLEDGE, "k1") is None
        assert self.store.get("knowledge", "k1") is None

    def test_racing_puts_cache_the_last_write(self):
        writer = self._paused_put([1.0, 0.0])
        second = self._run_blocked(self.store.put, "knowledge", "k1", "p1", [0.0, 1.0])
        self.backend.release.set()
        writer.join(timeout=5)
        second.join(timeout=5)
        assert self.backend.get_by_key(EntityType.KNOWLEDGE, "k1").vector == [0.0, 1.0]
        assert self.store.get("knowledge", "k1").vector == [0.0, 1.0]


class TestReadIsolation:
    def test_cached_and_stored_reads_agree(self, vector_store):
        vector_store.put("knowledge", "k1", "p1", [0.1, 0.2, 0.3])
        from_cache = vector_store.get("knowledge", "k1")
        vector_store.cache.clear()
        from_store = vector_store.get("knowledge", "k1")
        assert from_cache.vector == from_store.vector
        assert from_cache.magnitude == from_store.magnitude

    def test_float32_overflow_rejected(self, vector_store):
        with pytest.raises(ValidationError):
            vector_store.put("knowledge", "k1", "p1", [1e39, 0.0])
        assert vector_store.count() == 0

    def test_mutating_a_read_does_not_touch_the_cache(self, vector_store):
        vector_store.put("knowledge", "k1", "p1", [1.0, 0.0], metadata={"title": "Harbour"})
        first = vector_store.get("knowledge", "k1")
        first.metadata["title"] = "changed"
        first.vector[0] = 9.0
        again = vector_store.get("knowledge", "k1")
        assert again.metadata["title"] == "Harbour"
        assert again.vector == [1.0, 0.0]

    def test_returned_put_record_is_not_the_cached_one(self, vector_store):
        record = vector_store.put("knowledge", "k1", "p1", [1.0, 0.0], metadata={"title": "Harbour"})
        record.metadata["title"] = "changed"
        assert vector_store.get("knowledge", "k1").metadata["title"] == "Harbour"
