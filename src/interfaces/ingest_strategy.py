"""Abstract base class for source ingestion strategies.

A strategy turns a locator (pasted text, a URL, a wiki page id) into
normalized text.  Errors are raised as
:class:`~src.utils.errors.IngestionError` or
:class:`~src.utils.errors.InputValidationError` with their ``retryable``
flag already decided, and propagate unchanged into session creation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from src.models.session import SourceType


@dataclass(frozen=True)
class IngestResult:
    """Normalized output of one ingestion.

    Attributes
    ----------
    content:
        Text handed to the chunkers (markdown-flavoured or storage HTML).
    title:
        Document title when known.
    source_url:
        Canonical locator; ``manual://<hash>`` for pasted text.
    raw_content:
        The original payload for provenance.
    metadata:
        Strategy-specific extras (HTTP status, wiki page version, ...).
    """

    content: str
    title: str | None
    source_url: str
    raw_content: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


# Concrete implementations: ManualStrategy, WebStrategy, WikiStrategy
# Located in: src/providers/ingest/
class IIngestStrategy(ABC):
    """Contract for per-source-type fetch/extract strategies."""

    @abstractmethod
    async def ingest(self, locator: str) -> IngestResult:
        """Fetch and normalize the document addressed by *locator*.

        Raises
        ------
        src.utils.errors.InputValidationError
            If *locator* is malformed or the content fails size checks.
        src.utils.errors.IngestionError
            If fetching or extraction fails.
        """

    @abstractmethod
    def get_source_type(self) -> SourceType:
        """Return the source type this strategy handles."""
