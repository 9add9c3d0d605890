"""Structured-document models produced by the document structurer.

A raw document (markdown-flavoured text or wiki storage HTML) is parsed into
three independent lists:

* a forest of :class:`Section` objects following the heading hierarchy,
* the :class:`Table` objects found anywhere in the text,
* the fenced / ``<pre>`` :class:`CodeBlock` objects.

Sections are assembled incrementally (children are attached while the
hierarchy is built), so unlike the rest of the models they are not frozen.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Section(BaseModel):
    """A heading and the prose that follows it up to the next heading."""

    level: int = Field(ge=1, le=6, description="Heading depth, 1 = top level.")
    heading: str = Field(description="Heading text without the marker.")
    content: str = Field(default="", description="Body text under this heading.")
    children: list[Section] = Field(default_factory=list)
    start_offset: int = Field(default=0, ge=0, description="Offset of the heading line.")
    end_offset: int = Field(default=0, ge=0, description="Offset just past the section body.")


class Table(BaseModel):
    """A table with a header row and zero or more data rows."""

    model_config = ConfigDict(frozen=True)

    headers: list[str] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)
    caption: str | None = None


class CodeBlock(BaseModel):
    """A fenced or preformatted code block, kept verbatim."""

    model_config = ConfigDict(frozen=True)

    language: str | None = None
    code: str


class DocumentStructure(BaseModel):
    """Everything the semantic chunker needs from one parsed document."""

    sections: list[Section] = Field(default_factory=list, description="Root sections.")
    tables: list[Table] = Field(default_factory=list)
    code_blocks: list[CodeBlock] = Field(default_factory=list)
