"""Vector-store models: published points and search hits."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PublishedPoint(BaseModel):
    """One chunk as stored in a knowledge-base collection.

    ``payload`` holds the chunk text, heading path, type, tags and document
    metadata (source identity, revision, timestamps, last editor).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    vector: list[float]
    payload: dict[str, Any] = Field(default_factory=dict)


class SearchHit(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    score: float = Field(description="Cosine similarity in [0, 1].")
    text: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)
