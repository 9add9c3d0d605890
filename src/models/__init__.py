"""Domain models: re-exports all public model classes.

The models are organized across four submodules by domain concern:
    - document.py -- parsed document structure (sections, tables, code)
    - chunk.py    -- chunk candidates, draft chunks and the LLM chunk schema
    - session.py  -- sources, draft sessions, roles and publish results
    - vector.py   -- points written to and hits read from the vector store
"""

from __future__ import annotations

from src.models.chunk import (
    CHUNK_RESPONSE_JSON_SCHEMA,
    Chunk,
    ChunkCandidate,
    ChunkingMethod,
    ChunkingOptions,
    ChunkType,
    LLMChunkItem,
    LLMChunkResponse,
)
from src.models.document import CodeBlock, DocumentStructure, Section, Table
from src.models.session import (
    PreviewReport,
    PublishResult,
    Session,
    SessionStatus,
    Source,
    SourceType,
    UserRole,
)
from src.models.vector import PublishedPoint, SearchHit

__all__ = [
    "CHUNK_RESPONSE_JSON_SCHEMA",
    "Chunk",
    "ChunkCandidate",
    "ChunkType",
    "ChunkingMethod",
    "ChunkingOptions",
    "CodeBlock",
    "DocumentStructure",
    "LLMChunkItem",
    "LLMChunkResponse",
    "PreviewReport",
    "PublishResult",
    "PublishedPoint",
    "SearchHit",
    "Section",
    "Session",
    "SessionStatus",
    "Source",
    "SourceType",
    "Table",
    "UserRole",
]
