"""Orchestrator for ingestion: **fetch -> identify -> chunk -> draft**.

:class:`IngestionService` coordinates the per-source-type strategies, the
chunking service and the draft store without any of them knowing about each
other:

    1. IIngestStrategy   -- turns a locator into normalized content
    2. derive_source_id  -- stable identity for replace-on-republish
    3. ChunkingService   -- optional immediate chunking
    4. DraftSessionStore -- persists the new DRAFT session

Strategy and chunking errors propagate unchanged; no session is created
unless every earlier step succeeded.
"""

from __future__ import annotations

import time

import structlog

from src.interfaces.ingest_strategy import IIngestStrategy
from src.models.chunk import ChunkingOptions
from src.models.session import Session, Source, SourceType
from src.services.chunking.chunking_service import ChunkingService
from src.services.draft_store import DraftSessionStore, candidates_to_chunks
from src.utils.errors import InputValidationError
from src.utils.text_normalizer import derive_source_id

logger = structlog.get_logger(logger_name=__name__)


class IngestionService:
    """Create draft sessions from manual text, web pages and wiki pages.

    Parameters
    ----------
    strategies:
        One strategy per supported source type.
    chunking:
        Chunking dispatcher used when immediate chunking is requested.
    drafts:
        Draft session store the new session is written to.
    """

    def __init__(
        self,
        strategies: list[IIngestStrategy],
        chunking: ChunkingService,
        drafts: DraftSessionStore,
    ) -> None:
        self._strategies = {strategy.get_source_type(): strategy for strategy in strategies}
        self._chunking = chunking
        self._drafts = drafts

    @property
    def supported_source_types(self) -> list[SourceType]:
        return list(self._strategies)

    async def ingest(
        self,
        source_type: SourceType,
        locator: str,
        user_id: str,
        chunking: ChunkingOptions | None = None,
        auto_chunk: bool = True,
        tags: list[str] | None = None,
    ) -> Session:
        """Fetch *locator*, optionally chunk it, and open a DRAFT session.

        Raises
        ------
        InputValidationError
            Unsupported source type, or invalid locator/content.
        src.utils.errors.IngestionError
            If the strategy fails to fetch or extract the document.
        src.utils.errors.KMSError
            Chunking failures when *auto_chunk* is set.
        """
        strategy = self._strategies.get(source_type)
        if strategy is None:
            raise InputValidationError(
                f"Unsupported source type: {source_type}",
                context={"supported": [t.value for t in self._strategies]},
            )

        started = time.monotonic()
        result = await strategy.ingest(locator)
        source = Source(
            source_type=source_type,
            source_url=result.source_url,
            source_id=derive_source_id(source_type.value, result.source_url, result.content),
        )

        chunks = []
        if auto_chunk:
            candidates = await self._chunking.chunk(result.content, chunking, source_type)
            chunks = candidates_to_chunks(candidates)

        metadata = dict(result.metadata)
        if tags:
            metadata["tags"] = list(tags)

        session = await self._drafts.create(
            source=source,
            content=result.content,
            user_id=user_id,
            chunks=chunks,
            raw_content=result.raw_content,
            title=result.title,
            metadata=metadata,
        )
        logger.info(
            "ingestion_complete",
            session_id=session.session_id,
            source_type=source_type.value,
            source_id=source.source_id,
            chunk_count=len(chunks),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return session
