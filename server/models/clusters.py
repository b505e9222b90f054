"""Clustering request models."""

from typing import List, Optional

from pydantic import BaseModel, Field

from serendipity.models import EntityType


class ClusterRequest(BaseModel):
    k: int = Field(..., ge=1)
    entity_types: Optional[List[EntityType]] = None
    max_iterations: Optional[int] = Field(None, ge=1, le=1000)
