"""Keyword/pattern chunk-type classifier.

Checks, in order: navigation keywords (contacts, channels, link lists),
question/answer prefixes for FAQ, a leading ``Term - definition`` shape for
glossary entries, else knowledge.  Table rows and code are typed by the
chunker itself and never reach the classifier.
"""

from __future__ import annotations

import re

from src.interfaces.chunk_classifier import IChunkClassifier
from src.models.chunk import ChunkType

NAVIGATION_KEYWORDS: tuple[str, ...] = (
    "контакты",
    "контактные данные",
    "slack",
    "репозиторий",
    "как проходить",
    "быстрая навигация",
    "ссылки:",
    "полезные ссылки",
    "где найти",
    "канал в slack",
    "github",
    "confluence",
    "useful links",
    "quick links",
    "contacts:",
    "where to find",
)

_FAQ_PREFIX = re.compile(r"^\s*(q:|question:|вопрос:|a:|answer:|ответ:)", re.IGNORECASE)
_GLOSSARY_LEAD = re.compile(r"^[A-Za-zА-Яа-яЁё][A-Za-zА-Яа-яЁё ]{0,59}\s*[-–—]\s+\S")


class KeywordChunkClassifier(IChunkClassifier):
    """Default heuristic classifier.

    Parameters
    ----------
    navigation_keywords:
        Lower-case substrings that mark a chunk as navigation.  Defaults to
        :data:`NAVIGATION_KEYWORDS`.
    """

    def __init__(self, navigation_keywords: tuple[str, ...] | None = None) -> None:
        self._navigation_keywords = navigation_keywords or NAVIGATION_KEYWORDS

    def classify(self, text: str) -> ChunkType:
        lowered = text.lower()
        if any(keyword in lowered for keyword in self._navigation_keywords):
            return ChunkType.NAVIGATION
        if _FAQ_PREFIX.match(text):
            return ChunkType.FAQ
        if _GLOSSARY_LEAD.match(text.lstrip()):
            return ChunkType.GLOSSARY
        return ChunkType.KNOWLEDGE
