"""Manual (pasted text) ingestion strategy."""

from __future__ import annotations

import structlog

from src.interfaces.ingest_strategy import IIngestStrategy, IngestResult
from src.models.session import SourceType
from src.utils.errors import InputValidationError
from src.utils.text_normalizer import manual_source_url, normalize_line_endings

logger = structlog.get_logger(logger_name=__name__)


class ManualStrategy(IIngestStrategy):
    """Accept pasted text as-is after line-ending normalisation.

    The locator *is* the content.  Its ``source_url`` is a ``manual://``
    URI derived from the content hash, so re-pasting the same text
    addresses the same published source.
    """

    def __init__(self, min_length: int = 1, max_length: int = 1_000_000) -> None:
        self._min_length = min_length
        self._max_length = max_length

    async def ingest(self, locator: str) -> IngestResult:
        content = normalize_line_endings(locator or "").strip()
        if not content:
            raise InputValidationError("Content cannot be empty or whitespace-only")
        if len(content) < self._min_length:
            raise InputValidationError(
                f"Content is shorter than {self._min_length} characters",
                context={"length": len(content)},
            )
        if len(content) > self._max_length:
            raise InputValidationError(
                f"Content exceeds {self._max_length} characters",
                context={"length": len(content)},
            )

        source_url = manual_source_url(content)
        logger.info("manual_content_ingested", source_url=source_url, length=len(content))
        return IngestResult(
            content=content,
            title=None,
            source_url=source_url,
            raw_content=locator,
        )

    def get_source_type(self) -> SourceType:
        return SourceType.MANUAL
