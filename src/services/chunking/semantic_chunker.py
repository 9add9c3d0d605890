"""Semantic chunking of a structured document (no model calls).

Turns a :class:`~src.models.document.DocumentStructure` into an ordered list
of :class:`~src.models.chunk.ChunkCandidate`, honouring three thresholds:

* ``target_tokens`` -- a section at or under this size becomes one chunk;
* ``max_tokens``    -- hard ceiling for any split piece;
* ``min_tokens``    -- split pieces below this are dropped as fragments.

Sections come first (document order), then one candidate per table row,
then code blocks -- intact when they fit, otherwise split at line
boundaries.
"""

from __future__ import annotations

import structlog

from src.interfaces.chunk_classifier import IChunkClassifier
from src.models.chunk import ChunkCandidate, ChunkType
from src.models.document import CodeBlock, DocumentStructure, Section, Table
from src.services.chunking.classifier import KeywordChunkClassifier
from src.services.chunking.splitter import split_on_boundaries
from src.services.chunking.structurer import flatten_sections
from src.services.chunking.token_estimator import estimate_tokens

logger = structlog.get_logger(logger_name=__name__)

ROW_SEPARATOR = " / "
HEADER_SEPARATOR = " | "


class SemanticChunker:
    """Structure-aware chunker.

    Parameters
    ----------
    target_tokens, max_tokens, min_tokens:
        Size thresholds (see module docstring).
    classifier:
        Chunk-type strategy; :class:`KeywordChunkClassifier` by default.
    model_family:
        Passed to the token estimator.
    """

    def __init__(
        self,
        target_tokens: int = 300,
        max_tokens: int = 700,
        min_tokens: int = 50,
        classifier: IChunkClassifier | None = None,
        model_family: str = "openai",
    ) -> None:
        if not 0 < min_tokens <= target_tokens <= max_tokens:
            raise ValueError("expected 0 < min_tokens <= target_tokens <= max_tokens")
        self._target = target_tokens
        self._max = max_tokens
        self._min = min_tokens
        self._classifier = classifier or KeywordChunkClassifier()
        self._model_family = model_family

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, structure: DocumentStructure) -> list[ChunkCandidate]:
        candidates: list[ChunkCandidate] = []
        candidates.extend(self._chunk_sections(structure.sections))
        for table in structure.tables:
            candidates.extend(self._chunk_table(table))
        for block in structure.code_blocks:
            candidates.extend(self._chunk_code(block))

        logger.debug(
            "semantic_chunking_complete",
            candidates=len(candidates),
            tables=len(structure.tables),
            code_blocks=len(structure.code_blocks),
        )
        return candidates

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _chunk_sections(self, sections: list[Section]) -> list[ChunkCandidate]:
        candidates: list[ChunkCandidate] = []

        for section, path in flatten_sections(sections):
            content = section.content.strip()
            if not content:
                continue

            tokens = self._tokens(content)
            if tokens <= self._target:
                candidates.append(self._candidate(content, path, tokens=tokens))
                continue

            emitted = 0
            for piece in split_on_boundaries(content, self._target, self._max, self._model_family):
                piece_tokens = self._tokens(piece)
                if not piece or piece_tokens < self._min:
                    continue
                emitted += 1
                piece_path = path if emitted == 1 else [*path, f"(part {emitted})"]
                candidates.append(self._candidate(piece, piece_path, tokens=piece_tokens))

        return candidates

    # ------------------------------------------------------------------
    # Tables / code
    # ------------------------------------------------------------------

    def _chunk_table(self, table: Table) -> list[ChunkCandidate]:
        path = ["Table", table.caption] if table.caption else ["Table"]
        if table.headers:
            path = [*path, HEADER_SEPARATOR.join(table.headers)]

        candidates: list[ChunkCandidate] = []
        for row in table.rows:
            if not any(cell.strip() for cell in row):
                continue
            text = ROW_SEPARATOR.join(row)
            candidates.append(
                ChunkCandidate(
                    text=text,
                    heading_path=list(path),
                    type=ChunkType.TABLE_ROW,
                    token_count=self._tokens(text),
                )
            )
        return candidates

    def _chunk_code(self, block: CodeBlock) -> list[ChunkCandidate]:
        path = ["Code", block.language] if block.language else ["Code"]
        if not block.code.strip():
            return []

        tokens = self._tokens(block.code)
        pieces = [block.code] if tokens <= self._max else self._split_code(block.code)
        return [
            ChunkCandidate(
                text=piece,
                heading_path=list(path),
                type=ChunkType.CODE,
                token_count=self._tokens(piece),
            )
            for piece in pieces
            if piece.strip()
        ]

    def _split_code(self, code: str) -> list[str]:
        """Accumulate whole lines until the next one would exceed ``max_tokens``.

        Each line is costed with its trailing newline so the joined piece
        stays within the ceiling.
        """
        pieces: list[str] = []
        current: list[str] = []
        current_tokens = 0

        for line in code.split("\n"):
            line_tokens = self._tokens(line + "\n")
            if current and current_tokens + line_tokens > self._max:
                pieces.append("\n".join(current))
                current, current_tokens = [], 0
            current.append(line)
            current_tokens += line_tokens

        if current:
            pieces.append("\n".join(current))
        return pieces

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _candidate(self, text: str, path: list[str], tokens: int) -> ChunkCandidate:
        return ChunkCandidate(
            text=text,
            heading_path=list(path),
            type=self._classifier.classify(text),
            token_count=tokens,
        )

    def _tokens(self, text: str) -> int:
        return estimate_tokens(text, self._model_family)
