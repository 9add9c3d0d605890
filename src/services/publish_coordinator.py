"""Publish coordinator -- ordered replace of a source's published chunks.

``publish`` runs strictly in this order:

1. load the session (not-found if absent);
2. check the target collection exists (not-found otherwise);
3. keep only chunks with non-blank text; if none survive, retire the
   session and report zero without touching the vector store;
4. tag the surviving chunks (when a tagger is configured; a failed
   tagging call yields no tags for that chunk) and embed every text --
   an embedding failure aborts before the vector store is modified and
   leaves the session for a retry;
5. delete all points in the collection whose ``source_id`` matches;
6. upsert the new points;
7. delete the draft session.

Steps 5 and 6 are not atomic to an observer: between them the source's old
content is briefly unsearchable.  Each call is retried on retryable
vector-store errors.  A failure that outlasts the retries leaves the session
in place so the publish can be retried; re-running is idempotent because
point ids are derived from ``source_id`` and the chunk's content hash.
"""

from __future__ import annotations

import hashlib
import re
import uuid
from typing import Any

import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.chunk import Chunk
from src.models.session import PublishResult, Session, utc_now
from src.models.vector import PublishedPoint
from src.services.draft_store import DraftSessionStore
from src.services.embedding_batcher import EmbeddingBatcher
from src.services.tag_extractor import TagExtractor
from src.utils.concurrency import retry_async
from src.utils.errors import CollectionNotFoundError, InputValidationError
from src.utils.text_normalizer import compute_content_hash, detect_language, normalize_tag

logger = structlog.get_logger(logger_name=__name__)

SECTION_SEPARATOR = " / "

# Collection ids become part of a vector-store collection name.
_COLLECTION_ID = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9_-]{0,58}[A-Za-z0-9])?$")


def collection_name(collection_id: str, prefix: str = "kb_") -> str:
    """Return the vector-store collection name for *collection_id*."""
    if not _COLLECTION_ID.match(collection_id or ""):
        raise InputValidationError(
            "Collection id must be 1-60 letters, digits, '-' or '_' and start/end alphanumeric",
            context={"collection_id": collection_id},
        )
    return f"{prefix}{collection_id}"


def point_id(source_id: str, content_hash: str, occurrence: int = 0) -> str:
    """Stable point id: identical chunks of a source keep their id on republish."""
    key = f"{source_id}:{content_hash}"
    if occurrence:
        key = f"{key}:{occurrence}"
    return str(uuid.UUID(hex=hashlib.md5(key.encode("utf-8")).hexdigest()))  # noqa: S324


class PublishCoordinator:
    """Move a draft session's chunks into a knowledge-base collection.

    Parameters
    ----------
    drafts:
        Draft session store.
    embedder:
        Batched embedding generator.
    vector_store:
        Target vector store.
    collection_prefix:
        Prefix for collection names (``kb_`` by default).
    tagger:
        Optional LLM tagger; its per-chunk tags join the session tags.
    max_retries, backoff_base:
        Retry policy for the delete and upsert calls.
    """

    def __init__(
        self,
        drafts: DraftSessionStore,
        embedder: EmbeddingBatcher,
        vector_store: IVectorStoreProvider,
        collection_prefix: str = "kb_",
        tagger: TagExtractor | None = None,
        max_retries: int = 2,
        backoff_base: float = 0.5,
    ) -> None:
        self._drafts = drafts
        self._embedder = embedder
        self._vector_store = vector_store
        self._prefix = collection_prefix
        self._tagger = tagger
        self._max_retries = max_retries
        self._backoff_base = backoff_base

    def collection_name(self, collection_id: str) -> str:
        return collection_name(collection_id, self._prefix)

    async def publish(
        self,
        session_id: str,
        target_collection_id: str,
        acting_user_id: str,
    ) -> PublishResult:
        """Replace the session source's published chunks in the collection.

        Raises
        ------
        src.utils.errors.SessionNotFoundError
            If the session does not exist.
        CollectionNotFoundError
            If the target collection does not exist.
        src.utils.errors.KMSError
            Embedding or vector-store failures; the session is kept.
        """
        session = await self._drafts.get(session_id)
        name = self.collection_name(target_collection_id)
        if not await self._vector_store.collection_exists(name):
            raise CollectionNotFoundError(target_collection_id)

        log = logger.bind(
            session_id=session_id,
            collection=name,
            source_id=session.source_id,
        )
        chunks = [chunk for chunk in session.chunks if chunk.text.strip()]

        if not chunks:
            await self._drafts.delete(session_id)
            log.info("publish_complete", published_chunks=0, skipped="all chunks empty")
            return PublishResult(
                session_id=session_id,
                collection_id=target_collection_id,
                published_chunks=0,
            )

        chunk_tags = await self._tag([chunk.text for chunk in chunks])
        vectors = await self._embedder.embed([chunk.text for chunk in chunks])
        points = self._build_points(session, chunks, vectors, acting_user_id, chunk_tags)
        source_filter = {"source_id": session.source_id}

        try:
            deleted = await retry_async(
                lambda: self._vector_store.delete_by_filter(name, source_filter),
                max_retries=self._max_retries,
                backoff_base=self._backoff_base,
                operation_name="publish_delete",
                logger=log,
            )
            written = await retry_async(
                lambda: self._vector_store.upsert(name, points),
                max_retries=self._max_retries,
                backoff_base=self._backoff_base,
                operation_name="publish_upsert",
                logger=log,
            )
        except Exception as exc:
            log.error(
                "publish_store_failure",
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise

        await self._drafts.delete(session_id)
        log.info("publish_complete", published_chunks=written, replaced_points=deleted)
        return PublishResult(
            session_id=session_id,
            collection_id=target_collection_id,
            published_chunks=written,
        )

    async def _tag(self, texts: list[str]) -> list[list[str]]:
        if self._tagger is None:
            return [[] for _ in texts]
        return await self._tagger.extract_batch(texts)

    @staticmethod
    def _build_points(
        session: Session,
        chunks: list[Chunk],
        vectors: list[list[float]],
        acting_user_id: str,
        chunk_tags: list[list[str]],
    ) -> list[PublishedPoint]:
        published_at = utc_now().isoformat()
        session_tags = [normalize_tag(tag) for tag in session.metadata.get("tags", [])]
        session_tags = [tag for tag in session_tags if tag]
        seen: dict[str, int] = {}
        points: list[PublishedPoint] = []

        for index, (chunk, vector, extra_tags) in enumerate(zip(chunks, vectors, chunk_tags, strict=True)):
            content_hash = compute_content_hash(chunk.text)
            occurrence = seen.get(content_hash, 0)
            seen[content_hash] = occurrence + 1

            payload: dict[str, Any] = {
                "text": chunk.text,
                "source_url": session.source_url,
                "source_type": session.source_type.value,
                "source_id": session.source_id,
                "last_modified_by": acting_user_id,
                "last_modified_at": published_at,
                "revision": session.version,
                "chunk_index": index,
                "heading_path": list(chunk.heading_path),
                "section": SECTION_SEPARATOR.join(chunk.heading_path),
                "chunk_type": chunk.type.value if chunk.type else None,
                "content_hash": content_hash,
                "lang": detect_language(chunk.text),
                "tags": list(dict.fromkeys([*session_tags, *extra_tags])),
                "title": session.title,
                "is_dirty": chunk.is_dirty,
            }
            points.append(
                PublishedPoint(
                    id=point_id(session.source_id, content_hash, occurrence),
                    vector=vector,
                    payload=payload,
                )
            )
        return points
