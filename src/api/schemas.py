"""Pydantic request/response schemas for the ingestion API.

Defines the public contract for every REST endpoint: ingestion, draft
session editing, preview, publish, collections and health.

Field names are snake_case in Python and camelCase on the wire
(``sessionId``, ``splitPoints``); both spellings are accepted on input.
Request schemas end with "Request", response schemas with "Response".
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.chunk import Chunk, ChunkingMethod, ChunkingOptions, ChunkType
from src.models.session import PreviewReport, PublishResult, Session, SessionStatus, SourceType
from src.models.vector import SearchHit


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


class ChunkingConfig(_ApiModel):
    """Chunking choices supplied with an ingest or generate request."""

    method: ChunkingMethod = ChunkingMethod.LLM
    chunk_size: int = Field(default=1000, ge=100, le=20000, description="Character method only.")
    overlap: int = Field(default=100, ge=0, le=5000, description="Character method only.")

    def to_options(self) -> ChunkingOptions:
        return ChunkingOptions(method=self.method, chunk_size=self.chunk_size, overlap=self.overlap)


class IngestRequest(_ApiModel):
    """Create a draft session from one source.

    Exactly the locator field matching ``source_type`` is used: ``content``
    for manual, ``url`` for web, ``page`` (id or page URL) for wiki.
    """

    source_type: SourceType
    content: str | None = None
    url: str | None = None
    page: str | None = None
    chunking: ChunkingConfig | None = None
    auto_chunk: bool = Field(default=True, description="Chunk immediately after ingestion.")
    tags: list[str] = Field(default_factory=list)

    def locator(self) -> str | None:
        if self.source_type is SourceType.MANUAL:
            return self.content
        if self.source_type is SourceType.WEB:
            return self.url
        return self.page


class GenerateChunksRequest(_ApiModel):
    chunking: ChunkingConfig | None = None


# ---------------------------------------------------------------------------
# Sessions and chunks
# ---------------------------------------------------------------------------


class ChunkView(_ApiModel):
    id: str
    text: str
    is_dirty: bool
    heading_path: list[str] = Field(default_factory=list)
    type: ChunkType | None = None

    @classmethod
    def from_chunk(cls, chunk: Chunk) -> ChunkView:
        return cls(
            id=chunk.id,
            text=chunk.text,
            is_dirty=chunk.is_dirty,
            heading_path=list(chunk.heading_path),
            type=chunk.type,
        )


class SessionResponse(_ApiModel):
    """Draft session as shown to clients (raw content omitted)."""

    session_id: str
    source_id: str
    source_type: SourceType
    source_url: str
    user_id: str
    title: str | None = None
    status: SessionStatus
    version: int
    chunks: list[ChunkView] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_session(cls, session: Session) -> SessionResponse:
        return cls(
            session_id=session.session_id,
            source_id=session.source_id,
            source_type=session.source_type,
            source_url=session.source_url,
            user_id=session.user_id,
            title=session.title,
            status=session.status,
            version=session.version,
            chunks=[ChunkView.from_chunk(chunk) for chunk in session.chunks],
            created_at=session.created_at,
            updated_at=session.updated_at,
        )


class SessionListResponse(_ApiModel):
    session_ids: list[str]
    total: int


class DeleteSessionResponse(_ApiModel):
    session_id: str
    deleted: bool


class UpdateChunkRequest(_ApiModel):
    text: str = Field(description="New chunk text; may be blank while drafting.")


class MergeChunksRequest(_ApiModel):
    chunk_ids: list[str] = Field(description="Merged in the order given.")


class SplitChunkRequest(_ApiModel):
    """Exactly one of ``split_points`` or ``new_text_blocks`` is required."""

    split_points: list[int] | None = Field(default=None, description="Character offsets into the chunk text.")
    new_text_blocks: list[str] | None = None


class PreviewResponse(_ApiModel):
    session_id: str
    status: SessionStatus
    is_valid: bool
    warnings: list[str] = Field(default_factory=list)
    chunk_count: int

    @classmethod
    def from_report(cls, report: PreviewReport) -> PreviewResponse:
        return cls(**report.model_dump())


# ---------------------------------------------------------------------------
# Publish and collections
# ---------------------------------------------------------------------------


class PublishRequest(_ApiModel):
    target_collection_id: str = Field(min_length=1)


class PublishResponse(_ApiModel):
    session_id: str
    collection_id: str
    published_chunks: int

    @classmethod
    def from_result(cls, result: PublishResult) -> PublishResponse:
        return cls(**result.model_dump())


class CreateCollectionRequest(_ApiModel):
    collection_id: str = Field(min_length=1)


class CollectionResponse(_ApiModel):
    collection_id: str
    collection_name: str
    created: bool


class SearchRequest(_ApiModel):
    query: str = Field(min_length=1)
    limit: int = Field(default=10, ge=1, le=100)
    filters: dict[str, Any] | None = None


class SearchHitView(_ApiModel):
    id: str
    score: float
    text: str
    payload: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_hit(cls, hit: SearchHit) -> SearchHitView:
        return cls(**hit.model_dump())


class SearchResponse(_ApiModel):
    collection_id: str
    results: list[SearchHitView]


# ---------------------------------------------------------------------------
# Health and errors
# ---------------------------------------------------------------------------


class HealthResponse(_ApiModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error envelope returned by the error-handling middleware."""

    error: str
    kind: str
    detail: str
    retryable: bool = False
    context: dict[str, Any] = Field(default_factory=dict)
