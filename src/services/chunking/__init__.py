"""Chunking pipeline -- raw text to ordered chunk candidates.

Stages overview:

1. **Structure** (structurer.py) -- Markdown line scan or BeautifulSoup walk
   over wiki HTML into a section tree plus tables and code blocks.

2. **Split** (splitter.py) -- Over-long sections are cut at paragraph, line
   or sentence boundaries within a token budget (token_estimator.py).

3. **Classify** (classifier.py) -- Each prose chunk is typed as knowledge,
   navigation, FAQ or glossary by a swappable IChunkClassifier.

4. **Chunk** -- three interchangeable chunkers:
   SemanticChunker (structured, no model calls), LLMChunker (windowed,
   schema-validated model output) and CharacterChunker (fixed size with
   overlap).

ChunkingService picks the chunker for a request's ChunkingOptions.
"""

from src.services.chunking.character_chunker import CharacterChunker
from src.services.chunking.chunking_service import ChunkingService, html_to_text
from src.services.chunking.classifier import KeywordChunkClassifier
from src.services.chunking.llm_chunker import LLMChunker, build_windows, deduplicate_candidates
from src.services.chunking.semantic_chunker import SemanticChunker
from src.services.chunking.structurer import (
    HTMLStructurer,
    MarkdownStructurer,
    structure_document,
)

__all__ = [
    "CharacterChunker",
    "ChunkingService",
    "HTMLStructurer",
    "KeywordChunkClassifier",
    "LLMChunker",
    "MarkdownStructurer",
    "SemanticChunker",
    "build_windows",
    "deduplicate_candidates",
    "html_to_text",
    "structure_document",
]
