"""Chunking dispatch -- one entry point for the three chunking methods.

* ``llm``        -- :class:`LLMChunker`; falls back to ``structured`` when no
  model provider is configured.
* ``structured`` -- structurer + :class:`SemanticChunker`, no model calls.
* ``character``  -- :class:`CharacterChunker` with the request's size/overlap.

Wiki storage HTML is flattened to text before it is handed to the LLM or
character chunkers; the structured path parses the HTML itself.
"""

from __future__ import annotations

import structlog
from bs4 import BeautifulSoup

from src.interfaces.llm_provider import ILLMProvider
from src.models.chunk import ChunkCandidate, ChunkingMethod, ChunkingOptions
from src.models.session import SourceType
from src.services.chunking.character_chunker import CharacterChunker
from src.services.chunking.llm_chunker import LLMChunker
from src.services.chunking.semantic_chunker import SemanticChunker
from src.services.chunking.structurer import looks_like_html, structure_document
from src.utils.errors import InputValidationError
from src.utils.text_normalizer import normalize_line_endings

logger = structlog.get_logger(logger_name=__name__)


def html_to_text(html: str) -> str:
    """Return the visible text of *html* with one block per paragraph."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    lines = (line.strip() for line in soup.get_text("\n").split("\n"))
    return "\n\n".join(line for line in lines if line)


class ChunkingService:
    """Route content to the chunker selected by :class:`ChunkingOptions`.

    Parameters
    ----------
    semantic_chunker:
        Used for the structured method and as the LLM fallback.
    llm_chunker:
        Used for the LLM method; ``None`` when no model is configured.
    llm:
        The provider behind *llm_chunker*, consulted for availability.
    """

    def __init__(
        self,
        semantic_chunker: SemanticChunker,
        llm_chunker: LLMChunker | None = None,
        llm: ILLMProvider | None = None,
    ) -> None:
        self._semantic = semantic_chunker
        self._llm_chunker = llm_chunker
        self._llm = llm

    @property
    def llm_available(self) -> bool:
        return self._llm_chunker is not None and (self._llm is None or self._llm.is_available())

    async def chunk(
        self,
        content: str,
        options: ChunkingOptions | None = None,
        source_type: SourceType | None = None,
    ) -> list[ChunkCandidate]:
        """Chunk *content* with the requested method.

        Raises
        ------
        InputValidationError
            If *content* is blank or the character options are inconsistent.
        """
        options = options or ChunkingOptions()
        text = normalize_line_endings(content).strip()
        if not text:
            raise InputValidationError("Content cannot be empty or whitespace-only")

        method = options.method
        if method is ChunkingMethod.LLM and not self.llm_available:
            logger.warning("llm_chunking_unavailable_fallback", fallback=ChunkingMethod.STRUCTURED.value)
            method = ChunkingMethod.STRUCTURED

        is_html = source_type is SourceType.WIKI or looks_like_html(text)

        if method is ChunkingMethod.STRUCTURED:
            candidates = self._semantic.chunk(structure_document(text, source_type))
        elif method is ChunkingMethod.CHARACTER:
            if options.overlap >= options.chunk_size:
                raise InputValidationError(
                    "overlap must be smaller than chunk_size",
                    context={"chunk_size": options.chunk_size, "overlap": options.overlap},
                )
            plain = html_to_text(text) if is_html else text
            candidates = CharacterChunker(options.chunk_size, options.overlap).chunk(plain)
        else:
            plain = html_to_text(text) if is_html else text
            candidates = await self._llm_chunker.chunk(plain)

        logger.info(
            "content_chunked",
            method=method.value,
            requested_method=options.method.value,
            chunk_count=len(candidates),
        )
        return candidates
