"""
Engine configuration: ranking weights, search modes, cache and clustering parameters.

EngineConfig defaults are defined here. The server may pass a nested dict
(e.g. loaded from JSON); from_dict() merges it with these defaults.
"""

import math
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

WEIGHT_FIELDS = ("vector", "text", "temporal", "diversity", "project", "type")


class RankingWeights(BaseModel):
    """Six non-negative ranking weights. Use normalized() before scoring."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    vector: float = Field(0.4, ge=0.0)
    text: float = Field(0.3, ge=0.0)
    temporal: float = Field(0.1, ge=0.0)
    diversity: float = Field(0.1, ge=0.0)
    project: float = Field(0.05, ge=0.0)
    type: float = Field(0.05, ge=0.0)

    def total(self) -> float:
        return sum(getattr(self, name) for name in WEIGHT_FIELDS)

    def normalized(self) -> "RankingWeights":
        """Scale so the six weights sum to 1. All-zero falls back to the defaults."""
        total = self.total()
        if total <= 0:
            return DEFAULT_WEIGHTS
        if math.isclose(total, 1.0, rel_tol=0.0, abs_tol=1e-12):
            return self
        return RankingWeights(**{name: getattr(self, name) / total for name in WEIGHT_FIELDS})

    def merged(self, partial: Dict[str, float]) -> "RankingWeights":
        """Overlay a partial mapping; unknown keys and negative values are rejected."""
        data = self.model_dump()
        data.update(partial)
        return RankingWeights.model_validate(data)


DEFAULT_WEIGHTS = RankingWeights()


class SearchModeConfig(BaseModel):
    """Noise level and candidate window for one search mode."""

    model_config = ConfigDict(frozen=True)

    noise_level: float = Field(0.0, ge=0.0, le=1.0)
    # Minimum candidate window fetched from the store
    pool_size: int = Field(20, ge=1)
    # Window grows to ceil(limit * pool_multiplier) when that is larger than pool_size
    pool_multiplier: float = Field(1.0, ge=1.0)

    def window(self, limit: int) -> int:
        return max(self.pool_size, math.ceil(limit * self.pool_multiplier))


def _default_modes() -> Dict[str, SearchModeConfig]:
    return {
        "exact": SearchModeConfig(noise_level=0.0, pool_size=20, pool_multiplier=1.0),
        "similar": SearchModeConfig(noise_level=0.1, pool_size=30, pool_multiplier=1.5),
        "serendipity": SearchModeConfig(noise_level=0.3, pool_size=50, pool_multiplier=2.5),
    }


class EngineConfig(BaseModel):
    """Configuration for the retrieval engine."""

    # -------------------------------------------------------------------------
    # Vector collection
    # -------------------------------------------------------------------------

    # Pinned vector length. None = discover from the first stored vector.
    dimension: Optional[int] = Field(None, ge=1)

    # -------------------------------------------------------------------------
    # Vector cache (LRU + TTL)
    # -------------------------------------------------------------------------

    cache_max_size: int = Field(1000, ge=1)
    cache_ttl_seconds: float = Field(3600.0, gt=0)

    # -------------------------------------------------------------------------
    # Search modes
    # window = max(pool_size, ceil(limit * pool_multiplier))
    # -------------------------------------------------------------------------

    modes: Dict[str, SearchModeConfig] = Field(default_factory=_default_modes)

    # -------------------------------------------------------------------------
    # Hybrid scoring
    # final = Σ factor * weight over vector/text/temporal/project/type
    # diversity weight is consumed by the reranker only
    # -------------------------------------------------------------------------

    weights: RankingWeights = DEFAULT_WEIGHTS

    # temporal = exp(-days / temporal_decay_days); 30 days scores ~0.3679
    temporal_decay_days: float = Field(30.0, gt=0)

    # Each retrieval source (vector, text) fetches limit * this many candidates
    hybrid_candidate_multiplier: int = Field(3, ge=1)

    # Most recent records scanned for lexical matches per query
    text_scan_window: int = Field(500, ge=1)

    # Results scoring below this after reranking are dropped
    default_min_score: float = 0.1

    # -------------------------------------------------------------------------
    # Diversity reranking
    # adjusted = final - diversity_weight * (Σ sim(selected) + type_penalty * same_type_count)
    # -------------------------------------------------------------------------

    type_penalty: float = Field(0.1, ge=0.0)

    # -------------------------------------------------------------------------
    # Clustering (k-means++)
    # -------------------------------------------------------------------------

    cluster_max_iterations: int = Field(100, ge=1)
    # Converged once every centroid keeps cosine >= this to its previous value
    convergence_threshold: float = Field(0.999, gt=0.0, le=1.0)
    # Upper bound on vectors pulled from the store for one clustering run
    cluster_max_points: int = Field(10000, ge=1)

    @model_validator(mode="after")
    def modes_present(self):
        missing = [name for name in ("exact", "similar", "serendipity") if name not in self.modes]
        if missing:
            raise ValueError(f"Search modes missing: {', '.join(missing)}")
        return self

    def mode(self, name: str) -> SearchModeConfig:
        return self.modes[name]

    @classmethod
    def from_dict(cls, config_dict: Dict) -> "EngineConfig":
        """Create config from a nested dictionary (e.g., loaded from JSON)."""
        flat = {}
        if "dimension" in config_dict:
            flat["dimension"] = config_dict["dimension"]
        if "cache" in config_dict:
            cache = config_dict["cache"]
            if "max_size" in cache:
                flat["cache_max_size"] = cache["max_size"]
            if "ttl_seconds" in cache:
                flat["cache_ttl_seconds"] = cache["ttl_seconds"]
        if "weights" in config_dict:
            flat["weights"] = DEFAULT_WEIGHTS.merged(config_dict["weights"])
        if "modes" in config_dict:
            modes = _default_modes()
            for name, overrides in config_dict["modes"].items():
                base = modes.get(name, SearchModeConfig())
                modes[name] = SearchModeConfig.model_validate({**base.model_dump(), **overrides})
            flat["modes"] = modes
        if "scoring" in config_dict:
            flat.update(config_dict["scoring"])
        if "clustering" in config_dict:
            cl = config_dict["clustering"]
            if "max_iterations" in cl:
                flat["cluster_max_iterations"] = cl["max_iterations"]
            if "convergence_threshold" in cl:
                flat["convergence_threshold"] = cl["convergence_threshold"]
            if "max_points" in cl:
                flat["cluster_max_points"] = cl["max_points"]
        allowed = set(cls.model_fields)
        filtered = {k: v for k, v in flat.items() if k in allowed}
        return cls.model_validate(filtered)


DEFAULT_CONFIG = EngineConfig()


def resolve_config(config: Optional["EngineConfig"]) -> "EngineConfig":
    """Return config or DEFAULT_CONFIG when none is provided."""
    return config if config is not None else DEFAULT_CONFIG
