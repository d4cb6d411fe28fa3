"""Semantic search response schemas."""

from typing import Any

from pydantic import BaseModel, Field


class SearchHit(BaseModel):
    """One vector-index match."""

    id: str
    score: float
    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class SearchResults(BaseModel):
    query: str
    min_score: float
    hits: list[SearchHit] = Field(default_factory=list)
