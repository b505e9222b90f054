"""Pydantic request/response models for the API."""

from .clusters import ClusterRequest
from .index import IndexRequest, ReindexRequest
from .search import (
    HitsResponse,
    KnnRequest,
    RelatedRequest,
    SearchRequest,
    SearchResponse,
    SearchResultItem,
    SimilarityRequest,
    SimilarityResponse,
)
from .weights import WeightsUpdateRequest

__all__ = [
    "ClusterRequest",
    "HitsResponse",
    "IndexRequest",
    "KnnRequest",
    "ReindexRequest",
    "RelatedRequest",
    "SearchRequest",
    "SearchResponse",
    "SearchResultItem",
    "SimilarityRequest",
    "SimilarityResponse",
    "WeightsUpdateRequest",
]
