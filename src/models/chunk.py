"""Chunk models -- chunker output, session chunks and the LLM wire schema.

Layers with different strictness:

* :class:`ChunkCandidate` -- what the chunkers emit before a session exists.
* :class:`Chunk` -- a unit inside a draft session; carries the dirty flag.
* :class:`LLMChunkResponse` -- the exact JSON shape the chunking model must
  return.  Validated with ``extra="forbid"`` so anything unexpected is
  rejected instead of coerced.
* :class:`LLMTagResponse` -- the keyword tags the tagging model returns
  for one chunk.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChunkType(str, Enum):  # noqa: UP042
    """Coarse semantic type attached to a chunk."""

    KNOWLEDGE = "knowledge"
    NAVIGATION = "navigation"
    TABLE_ROW = "table_row"
    CODE = "code"
    FAQ = "faq"
    GLOSSARY = "glossary"


class ChunkingMethod(str, Enum):  # noqa: UP042
    """How a session's content is turned into chunks."""

    LLM = "llm"
    STRUCTURED = "structured"
    CHARACTER = "character"


class ChunkingOptions(BaseModel):
    """Per-request chunking choices."""

    model_config = ConfigDict(frozen=True)

    method: ChunkingMethod = ChunkingMethod.LLM
    chunk_size: int = Field(default=1000, ge=100, le=20000, description="Character chunker size.")
    overlap: int = Field(default=100, ge=0, le=5000, description="Character chunker overlap.")


class ChunkCandidate(BaseModel):
    """A chunk proposed by a chunker, not yet attached to a session."""

    model_config = ConfigDict(frozen=True)

    text: str
    heading_path: list[str] = Field(default_factory=list)
    type: ChunkType = ChunkType.KNOWLEDGE
    token_count: int | None = Field(default=None, ge=0)


class Chunk(BaseModel):
    """A retrievable unit inside a draft session.

    Order is implicit: a chunk's position in ``Session.chunks``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique within the owning session.")
    text: str = Field(description="May be empty while drafting; dropped at publish.")
    is_dirty: bool = Field(default=False, description="True once user-edited, split or merged.")
    heading_path: list[str] = Field(default_factory=list)
    type: ChunkType | None = None


# ---------------------------------------------------------------------------
# LLM wire schema
# ---------------------------------------------------------------------------


class LLMChunkItem(BaseModel):
    """One chunk object as returned by the chunking model."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(pattern=r"^temp_\d+$")
    text: str = Field(min_length=1)
    type: ChunkType | None = None

    @field_validator("text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("chunk text must not be whitespace-only")
        return value


class LLMChunkResponse(BaseModel):
    """Top-level chunking response: ``{"chunks": [...]}`` with at least one item."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    chunks: list[LLMChunkItem] = Field(min_length=1)


# Schema handed to the OpenAI ``response_format`` parameter.  Strict mode
# requires every property to be listed as required; ``type`` is nullable.
CHUNK_RESPONSE_JSON_SCHEMA: dict = {
    "type": "json_schema",
    "json_schema": {
        "name": "chunk_response",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "chunks": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "id": {"type": "string"},
                            "text": {"type": "string"},
                            "type": {
                                "type": ["string", "null"],
                                "enum": [t.value for t in ChunkType] + [None],
                            },
                        },
                        "required": ["id", "text", "type"],
                        "additionalProperties": False,
                    },
                },
            },
            "required": ["chunks"],
            "additionalProperties": False,
        },
    },
}


class LLMTagResponse(BaseModel):
    """Tagging response: ``{"tags": [...]}`` with 3 to 12 keyword tags."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    tags: list[str] = Field(min_length=3, max_length=12)


TAG_RESPONSE_JSON_SCHEMA: dict = {
    "type": "json_schema",
    "json_schema": {
        "name": "tag_response",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "tags": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["tags"],
            "additionalProperties": False,
        },
    },
}
