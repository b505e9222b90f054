"""
SerendipityEngine: the public surface of the retrieval engine.

Search runs as an ordered pipeline:
1) tokenize the query and resolve the query embedding (embedder or caller-supplied)
2) retrieve: vector candidates (mode-perturbed) ∪ lexical candidates, merged by key
3) score: hybrid factor fusion against the unperturbed query
4) rerank: greedy diversity selection
5) drop results under min_score, keep top `limit`

Indexing, reindexing, deletion, related-item lookup and clustering are
exposed here too. Stages are never handed to callers directly.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .embedding.base import Embedder, Tokenizer
from .errors import UpstreamError, ValidationError, upstream_stage
from .models.cluster import ClusterResult
from .models.config import EngineConfig, RankingWeights, resolve_config
from .models.record import EntityType, IndexableEntity, VectorRecord, utcnow
from .models.scoring import ScoredCandidate, SimilarityHit
from .stages.clustering import ClusterEngine
from .stages.diversity import DiversityReranker
from .stages.hybrid_scoring import SOURCE_BOTH, SOURCE_TEXT, SOURCE_VECTOR, HybridScorer
from .stages.perturbation import PerturbationGenerator, PerturbationType
from .stages.similarity_search import SimilaritySearchEngine, exclusion_set
from .stages.text_match import TextMatchScorer
from .store.base import DurableStore
from .store.vector_store import VectorStore, coerce_entity_type, coerce_entity_types
from .utils.vectors import blend_vectors, cosine_similarity

logger = logging.getLogger(__name__)

EntityInput = Union[IndexableEntity, Mapping[str, Any]]


class SearchOptions(BaseModel):
    """Options for a hybrid search."""

    model_config = ConfigDict(extra="forbid")

    project_id: Optional[str] = None
    entity_types: Optional[List[EntityType]] = None
    mode: str = "similar"
    limit: int = Field(20, ge=1)
    # None = EngineConfig.default_min_score
    min_score: Optional[float] = None
    # Caller-supplied embedding; skips the embedder when set
    query_vector: Optional[List[float]] = None
    perturbation_type: PerturbationType = PerturbationType.GAUSSIAN
    exclude_ids: List[Any] = Field(default_factory=list)
    diversify: bool = True
    # Lexical retrieval only; the query is never embedded
    text_only: bool = False


class ContentSource(Protocol):
    """Supplies a project's current content for reindexing."""

    def list_project_entities(self, project_id: str) -> Iterable[EntityInput]:
        ...


def _coerce_entity(entity: EntityInput) -> IndexableEntity:
    if isinstance(entity, IndexableEntity):
        return entity
    try:
        return IndexableEntity.model_validate(entity)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid entity: {exc.errors()[0]['msg']}") from exc


class SerendipityEngine:
    """
    Hybrid retrieval and reranking over one vector collection.

    Usage:
        engine = SerendipityEngine(InMemoryStore(), embedder=OpenAIEmbedder())
        engine.index({"entity_type": "chapter", "entity_id": "c1", "project_id": "p1",
                      "title": "Harbour", "content": "..."})
        results = engine.search("harbour at dawn", SearchOptions(project_id="p1", mode="serendipity"))
    """

    def __init__(
        self,
        store: Union[DurableStore, VectorStore],
        embedder: Optional[Embedder] = None,
        tokenizer: Optional[Tokenizer] = None,
        config: Optional[EngineConfig] = None,
        rng: Optional[np.random.Generator] = None,
        content_source: Optional[ContentSource] = None,
        now=utcnow,
    ):
        self.config = resolve_config(config)
        if isinstance(store, VectorStore):
            self.vector_store = store
        else:
            self.vector_store = VectorStore.from_config(store, self.config)
        self.embedder = embedder
        self.content_source = content_source
        rng = rng if rng is not None else np.random.default_rng()

        self.perturbation = PerturbationGenerator(rng)
        self.similarity = SimilaritySearchEngine(self.vector_store, self.perturbation, self.config)
        self.text_scorer = TextMatchScorer(tokenizer)
        self.scorer = HybridScorer(
            weights=self.config.weights,
            temporal_decay_days=self.config.temporal_decay_days,
            text_scorer=self.text_scorer,
            now=now,
        )
        self.reranker = DiversityReranker(self.config.type_penalty)
        self.clusters = ClusterEngine(self.vector_store, rng, self.config)

    # ------------------------------------------------------------------
    # embedding
    # ------------------------------------------------------------------

    def _require_embedder(self) -> Embedder:
        if self.embedder is None:
            raise UpstreamError("embedding", "No embedder configured")
        return self.embedder

    def _embed(self, text: str) -> List[float]:
        embedder = self._require_embedder()
        with upstream_stage("embedding"):
            return list(embedder.embed(text))

    def _embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        embedder = self._require_embedder()
        with upstream_stage("embedding"):
            vectors = [list(v) for v in embedder.embed_batch(list(texts))]
        if len(vectors) != len(texts):
            raise UpstreamError("embedding", f"Embedder returned {len(vectors)} vectors for {len(texts)} texts")
        return vectors

    # ------------------------------------------------------------------
    # search
    # ------------------------------------------------------------------

    def _options(self, options: Optional[SearchOptions], overrides: Dict[str, Any]) -> SearchOptions:
        if options is not None and not overrides:
            return options
        base = options.model_dump() if options is not None else {}
        base.update(overrides)
        try:
            return SearchOptions.model_validate(base)
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid search options: {exc.errors()[0]['msg']}") from exc

    def _resolve_query_vector(self, query: Optional[str], opts: SearchOptions) -> Optional[List[float]]:
        if opts.query_vector is not None:
            self.vector_store.check_vector(opts.query_vector)
            return list(opts.query_vector)
        if not query or not query.strip() or opts.text_only:
            return None
        # No embedder configured is an UpstreamError, never a silent text-only search
        vector = self._embed(query)
        self.vector_store.check_vector(vector)
        return vector

    def search(self, query: Optional[str] = None, options: Optional[SearchOptions] = None, **overrides) -> List[ScoredCandidate]:
        """Hybrid search. Returns scored, diversity-reranked candidates (possibly empty)."""
        opts = self._options(options, overrides)
        if opts.mode not in self.config.modes:
            raise ValidationError(f"Unknown search mode {opts.mode!r}")
        has_text = bool(query and query.strip())
        if not has_text and opts.query_vector is None:
            raise ValidationError("Either a text query or a query vector is required")

        # 1) query tokens + embedding
        tokens = self.text_scorer.tokens(query)
        query_vector = self._resolve_query_vector(query, opts)
        if query_vector is None and not tokens:
            raise ValidationError("Query has no searchable tokens and no embedding")

        entity_types = list(coerce_entity_types(opts.entity_types) or ()) or None
        candidate_limit = opts.limit * self.config.hybrid_candidate_multiplier

        # 2) retrieve from both sources, merge by key
        merged: Dict[Tuple[EntityType, str], VectorRecord] = {}
        sources: Dict[Tuple[EntityType, str], str] = {}
        if query_vector is not None:
            for record, _sim in self.similarity.search_records(
                query_vector,
                project_id=opts.project_id,
                mode=opts.mode,
                limit=candidate_limit,
                entity_types=entity_types,
                exclude_ids=opts.exclude_ids,
                perturbation_type=opts.perturbation_type.value,
            ):
                merged[record.key] = record
                sources[record.key] = SOURCE_VECTOR
        if tokens:
            window = self.vector_store.candidates(opts.project_id, entity_types, self.config.text_scan_window)
            bare, pairs = exclusion_set(opts.exclude_ids)
            window = [
                r for r in window
                if r.entity_id not in bare and (r.entity_type.value, r.entity_id) not in pairs
            ]
            for match in self.text_scorer.match(tokens, window, candidate_limit):
                key = match.record.key
                if key in merged:
                    sources[key] = SOURCE_BOTH
                else:
                    merged[key] = match.record
                    sources[key] = SOURCE_TEXT
        if not merged:
            logger.debug("[search] NO_CANDIDATES mode=%s project=%s", opts.mode, opts.project_id)
            return []

        # 3) + 4) score then rerank on one weight snapshot
        weights = self.scorer.get_weights()
        with upstream_stage("scoring"):
            scored = self.scorer.score(
                merged.values(),
                query_vector,
                tokens,
                project_id=opts.project_id,
                entity_types=entity_types,
                sources=sources,
            )
            diversity = weights.diversity if opts.diversify else 0.0
            ranked = self.reranker.rerank(scored, diversity)

        # 5) threshold + top-K
        min_score = self.config.default_min_score if opts.min_score is None else opts.min_score
        results = [c for c in ranked if c.final_score >= min_score][: opts.limit]
        logger.info(
            "[search] HYBRID mode=%s tokens=%d vector=%s candidates=%d returned=%d",
            opts.mode, len(tokens), query_vector is not None, len(merged), len(results),
        )
        return results

    def knn(
        self,
        query_vector: Sequence[float],
        project_id: Optional[str] = None,
        k: int = 10,
        entity_types: Optional[Iterable[Any]] = None,
    ) -> List[SimilarityHit]:
        return self.similarity.knn(query_vector, project_id, k, entity_types=entity_types)

    def find_related(
        self,
        entity_type: Any,
        entity_id: str,
        mode: str = "similar",
        limit: int = 10,
        project_id: Optional[str] = None,
        entity_types: Optional[Iterable[Any]] = None,
        perturbation_type: str = "gaussian",
    ) -> List[SimilarityHit]:
        """Items near a stored item, excluding the item itself. Unknown item -> []."""
        record = self.vector_store.get(entity_type, entity_id)
        if record is None:
            return []
        return self.similarity.search(
            record.vector,
            project_id=project_id if project_id is not None else record.project_id,
            mode=mode,
            limit=limit,
            entity_types=entity_types,
            exclude_ids=[(record.entity_type.value, record.entity_id)],
            perturbation_type=perturbation_type,
        )

    def find_related_many(
        self,
        anchors: Sequence[Tuple[Any, str]],
        weights: Optional[Sequence[float]] = None,
        mode: str = "similar",
        limit: int = 10,
        project_id: Optional[str] = None,
        entity_types: Optional[Iterable[Any]] = None,
    ) -> List[SimilarityHit]:
        """Items near a weighted blend of several stored items. Anchors are excluded."""
        if weights is not None and len(weights) != len(anchors):
            raise ValidationError("weights must match anchors in length")
        vectors: List[List[float]] = []
        kept_weights: List[float] = []
        excluded = []
        for i, (etype, eid) in enumerate(anchors):
            excluded.append((coerce_entity_type(etype).value, eid))
            record = self.vector_store.get(etype, eid)
            if record is None:
                continue
            vectors.append(record.vector)
            kept_weights.append(weights[i] if weights is not None else 1.0)
        if not vectors:
            return []
        blended = blend_vectors(vectors, kept_weights)
        return self.similarity.search(
            blended.tolist(),
            project_id=project_id,
            mode=mode,
            limit=limit,
            entity_types=entity_types,
            exclude_ids=excluded,
        )

    def text_similarity(self, text1: str, text2: str) -> float:
        """Cosine similarity between the embeddings of two texts."""
        if not text1 or not text1.strip() or not text2 or not text2.strip():
            raise ValidationError("Both texts are required")
        first, second = self._embed_many([text1, text2])
        return cosine_similarity(first, second)

    # ------------------------------------------------------------------
    # indexing
    # ------------------------------------------------------------------

    @staticmethod
    def _metadata(entity: IndexableEntity) -> Dict[str, Any]:
        metadata = dict(entity.metadata)
        metadata["title"] = entity.title
        metadata["content"] = entity.content
        return metadata

    def index(self, entity: EntityInput) -> VectorRecord:
        """Embed one entity and upsert its vector."""
        entity = _coerce_entity(entity)
        vector = self._embed(entity.embed_text())
        record = self.vector_store.put(
            entity.entity_type,
            entity.entity_id,
            entity.project_id,
            vector,
            metadata=self._metadata(entity),
            created_at=entity.created_at,
        )
        logger.info("[index] INDEXED %s:%s project=%s", entity.entity_type.value, entity.entity_id, entity.project_id)
        return record

    def _records_for(self, entities: Sequence[IndexableEntity]) -> List[Dict[str, Any]]:
        vectors = self._embed_many([e.embed_text() for e in entities])
        return [
            {
                "entity_type": e.entity_type,
                "entity_id": e.entity_id,
                "project_id": e.project_id,
                "vector": v,
                "metadata": self._metadata(e),
                "created_at": e.created_at,
            }
            for e, v in zip(entities, vectors)
        ]

    def index_many(self, entities: Iterable[EntityInput]) -> List[VectorRecord]:
        """Embed every entity, then write them in one all-or-nothing batch."""
        typed = [_coerce_entity(e) for e in entities]
        if not typed:
            return []
        records = self.vector_store.batch_put(self._records_for(typed))
        logger.info("[index] BATCH_INDEXED count=%d", len(records))
        return records

    def reindex_project(self, project_id: str, entities: Optional[Iterable[EntityInput]] = None) -> Dict[str, int]:
        """
        Rebuild a project's index.

        Embeds everything before touching storage, so an embedding failure
        leaves the existing index intact. Then clears the project's records and
        writes the new ones.

        Returns:
            {"count": number of records written}
        """
        if not project_id:
            raise ValidationError("project_id is required")
        if entities is None:
            if self.content_source is None:
                raise ValidationError("No entities given and no content source configured")
            with upstream_stage("retrieval"):
                entities = list(self.content_source.list_project_entities(project_id))
        typed = [_coerce_entity(e).model_copy(update={"project_id": project_id}) for e in entities]

        records = self._records_for(typed) if typed else []
        expected = self.vector_store.dimension
        for rec in records:
            self.vector_store.check_vector(rec["vector"], expected, f"{rec['entity_type'].value}:{rec['entity_id']}")
            expected = expected or len(rec["vector"])

        removed = self.vector_store.delete_project(project_id)
        written = self.vector_store.batch_put(records)
        logger.info("[index] REINDEXED project=%s removed=%d written=%d", project_id, removed, len(written))
        return {"count": len(written)}

    def delete(self, entity_type: Any, entity_id: str) -> bool:
        """Remove an entity's vector. Missing entities are a no-op."""
        return self.vector_store.delete(entity_type, entity_id)

    # ------------------------------------------------------------------
    # clustering / weights / status
    # ------------------------------------------------------------------

    def cluster(
        self,
        project_id: Optional[str],
        k: int,
        entity_types: Optional[Iterable[Any]] = None,
        max_iterations: Optional[int] = None,
    ) -> ClusterResult:
        return self.clusters.cluster(project_id, k, entity_types=entity_types, max_iterations=max_iterations)

    def update_weights(self, partial: Mapping[str, float]) -> RankingWeights:
        return self.scorer.update_weights(partial)

    def get_weights(self) -> RankingWeights:
        return self.scorer.get_weights()

    def stats(self) -> Dict[str, Any]:
        return {
            "records": self.vector_store.count(),
            "dimension": self.vector_store.dimension,
            "cache": self.vector_store.cache.stats(),
            "embedder": type(self.embedder).__name__ if self.embedder is not None else None,
        }
