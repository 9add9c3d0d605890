"""Fixed-size character chunking with overlap and boundary snapping.

The cheap, deterministic alternative to LLM chunking.  Each window ends at
the last paragraph break, line break, sentence end or space found in the
final 30% of the window; only when none exists is the text cut hard.
"""

from __future__ import annotations

import re

from src.models.chunk import ChunkCandidate, ChunkType
from src.services.chunking.token_estimator import estimate_tokens

_SENTENCE_END = re.compile(r"[.!?]\s")


class CharacterChunker:
    """Split text into ``chunk_size``-character windows sharing ``overlap`` chars."""

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        self._chunk_size = chunk_size
        self._overlap = overlap

    def chunk(self, content: str) -> list[ChunkCandidate]:
        text = content.strip()
        if not text:
            return []
        if len(text) <= self._chunk_size:
            return [self._candidate(text)]

        candidates: list[ChunkCandidate] = []
        start = 0
        while start < len(text):
            end = min(start + self._chunk_size, len(text))
            if end < len(text):
                end = self._best_split(text, start, end)

            piece = text[start:end].strip()
            if piece:
                candidates.append(self._candidate(piece))
            if end >= len(text):
                break
            start += max(end - start - self._overlap, 1)

        return candidates

    @staticmethod
    def _best_split(text: str, start: int, target_end: int) -> int:
        search_start = start + int((target_end - start) * 0.7)
        window = text[search_start:target_end]

        index = window.rfind("\n\n")
        if index >= 0:
            return search_start + index + 2
        index = window.rfind("\n")
        if index >= 0:
            return search_start + index + 1
        sentence_ends = list(_SENTENCE_END.finditer(window))
        if sentence_ends:
            return search_start + sentence_ends[-1].end()
        index = window.rfind(" ")
        if index >= 0:
            return search_start + index + 1
        return target_end

    @staticmethod
    def _candidate(text: str) -> ChunkCandidate:
        return ChunkCandidate(
            text=text,
            type=ChunkType.KNOWLEDGE,
            token_count=estimate_tokens(text),
        )
