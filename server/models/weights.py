"""Ranking weight models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class WeightsUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    vector: Optional[float] = Field(None, ge=0.0)
    text: Optional[float] = Field(None, ge=0.0)
    temporal: Optional[float] = Field(None, ge=0.0)
    diversity: Optional[float] = Field(None, ge=0.0)
    project: Optional[float] = Field(None, ge=0.0)
    type: Optional[float] = Field(None, ge=0.0)

    def partial(self) -> dict:
        return self.model_dump(exclude_none=True)
