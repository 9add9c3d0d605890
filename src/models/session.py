"""Draft session models.

A :class:`Session` is the mutable workspace between ingestion and publish.
Models are frozen; every change produces a new instance via
``model_copy(update={...})`` and is written back through the draft store,
which bumps ``version`` on each successful compare-and-swap write.

Lifecycle::

    DRAFT --preview--> PREVIEW --preview--> PREVIEW
    PREVIEW --return_to_draft--> DRAFT
    DRAFT | PREVIEW --publish--> (removed)
    DRAFT | PREVIEW --delete---> (removed)
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.models.chunk import Chunk


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SourceType(str, Enum):  # noqa: UP042
    MANUAL = "manual"
    WEB = "web"
    WIKI = "wiki"


class SessionStatus(str, Enum):  # noqa: UP042
    DRAFT = "DRAFT"
    PREVIEW = "PREVIEW"
    PUBLISHED = "PUBLISHED"


class Source(BaseModel):
    """Identity of an ingested document."""

    model_config = ConfigDict(frozen=True)

    source_type: SourceType
    source_url: str = Field(description="Canonical locator; manual:// URI for pasted text.")
    source_id: str = Field(description="Deterministic replace-on-republish key.")


class Session(BaseModel):
    """Ephemeral draft workspace for one source's chunk list."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    source_id: str
    source_type: SourceType
    source_url: str
    user_id: str
    title: str | None = None
    status: SessionStatus = SessionStatus.DRAFT
    content: str = Field(description="Normalized text the chunkers operate on.")
    raw_content: str | None = Field(default=None, description="Original payload for provenance.")
    chunks: list[Chunk] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    version: int = Field(default=0, ge=0, description="Bumped on every stored write.")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def source(self) -> Source:
        return Source(
            source_type=self.source_type,
            source_url=self.source_url,
            source_id=self.source_id,
        )

    def find_chunk(self, chunk_id: str) -> int:
        """Return the index of *chunk_id*, or ``-1``."""
        for index, chunk in enumerate(self.chunks):
            if chunk.id == chunk_id:
                return index
        return -1


class PreviewReport(BaseModel):
    """Validation report returned when a session enters PREVIEW."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    status: SessionStatus
    is_valid: bool
    warnings: list[str] = Field(default_factory=list)
    chunk_count: int = 0


class PublishResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str
    collection_id: str
    published_chunks: int = Field(ge=0)


class UserRole(str, Enum):  # noqa: UP042
    """Caller role taken from the ``X-User-Role`` header.

    ``L2`` is the restricted "Simple Mode" role and the default for a
    missing or unknown header.
    """

    ML = "ML"
    DEV = "DEV"
    L2 = "L2"

    @classmethod
    def parse(cls, value: str | None) -> UserRole:
        if not value:
            return cls.L2
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.L2

    @property
    def is_elevated(self) -> bool:
        return self is not UserRole.L2
