"""Indexing and reindexing request models."""

from typing import List, Optional

from pydantic import BaseModel

from serendipity.models import IndexableEntity


class IndexRequest(BaseModel):
    entities: List[IndexableEntity]


class ReindexRequest(BaseModel):
    # None = pull entities from the configured content source
    entities: Optional[List[IndexableEntity]] = None
