"""
Vector record model: one stored vector per (entity_type, entity_id).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class EntityType(str, Enum):
    """Kinds of content that get indexed."""

    KNOWLEDGE = "knowledge"
    CHAPTER = "chapter"
    CHARACTER = "character"
    PLOT = "plot"


RecordKey = Tuple[EntityType, str]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VectorRecord(BaseModel):
    """A stored embedding plus the metadata the scorers read (title, content)."""

    model_config = ConfigDict(use_enum_values=False)

    entity_type: EntityType
    entity_id: str
    project_id: Optional[str] = None
    vector: List[float]
    magnitude: float = 0.0
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def key(self) -> RecordKey:
        return (self.entity_type, self.entity_id)

    @property
    def title(self) -> str:
        return str(self.metadata.get("title") or "")

    @property
    def content(self) -> str:
        return str(self.metadata.get("content") or "")


class IndexableEntity(BaseModel):
    """Content handed to the engine for (re)indexing."""

    entity_type: EntityType
    entity_id: str
    project_id: Optional[str] = None
    title: str = ""
    content: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    def embed_text(self) -> str:
        """Text sent to the embedder: title, blank line, content."""
        return f"{self.title}\n\n{self.content}"


def record_key_str(entity_type: EntityType, entity_id: str) -> str:
    return f"{EntityType(entity_type).value}:{entity_id}"
