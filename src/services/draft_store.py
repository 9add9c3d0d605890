"""Draft session store -- lifecycle and optimistic writes over an ISessionStore.

Every change to a session goes through :meth:`DraftSessionStore.mutate`:
read the current record, apply a pure ``Session -> Session`` function, and
write it back with compare-and-swap on ``version``.  A lost race re-reads
and re-applies the function, up to ``max_retries`` times, so two concurrent
edits of one session can no longer silently overwrite each other.

Each successful write bumps ``version``, stamps ``updated_at`` and refreshes
the session's time-to-live.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from typing import Any

import structlog

from src.interfaces.session_store import ISessionStore
from src.models.chunk import Chunk, ChunkCandidate
from src.models.session import Session, Source, utc_now
from src.utils.errors import ConcurrentModificationError, SessionNotFoundError, StateConflictError

logger = structlog.get_logger(logger_name=__name__)

SessionMutation = Callable[[Session], Session]


def new_session_id() -> str:
    return f"session_{uuid.uuid4()}"


def new_chunk_id() -> str:
    return f"chunk_{uuid.uuid4()}"


def candidates_to_chunks(candidates: list[ChunkCandidate]) -> list[Chunk]:
    """Attach fresh session-scoped ids to chunker output."""
    return [
        Chunk(
            id=new_chunk_id(),
            text=candidate.text,
            heading_path=list(candidate.heading_path),
            type=candidate.type,
        )
        for candidate in candidates
    ]


class DraftSessionStore:
    """Session lifecycle on top of a keyed store with conditional writes.

    Parameters
    ----------
    store:
        Backing :class:`ISessionStore`.
    ttl:
        Session time-to-live in seconds, refreshed on every write.
    max_retries:
        Compare-and-swap retries before :class:`ConcurrentModificationError`.
    """

    def __init__(self, store: ISessionStore, ttl: int = 86400, max_retries: int = 5) -> None:
        self._store = store
        self._ttl = ttl
        self._max_retries = max_retries

    @property
    def ttl(self) -> int:
        return self._ttl

    async def create(
        self,
        source: Source,
        content: str,
        user_id: str,
        chunks: list[Chunk] | None = None,
        raw_content: str | None = None,
        title: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Session:
        """Store a new DRAFT session and return it."""
        session = Session(
            session_id=new_session_id(),
            source_id=source.source_id,
            source_type=source.source_type,
            source_url=source.source_url,
            user_id=user_id,
            title=title,
            content=content,
            raw_content=raw_content,
            chunks=list(chunks or []),
            metadata=dict(metadata or {}),
        )
        if not await self._store.create(session, self._ttl):
            raise StateConflictError(
                f"Session {session.session_id} already exists",
                context={"session_id": session.session_id},
            )
        logger.info(
            "session_created",
            session_id=session.session_id,
            source_id=session.source_id,
            source_type=session.source_type.value,
            chunk_count=len(session.chunks),
        )
        return session

    async def get(self, session_id: str) -> Session:
        """Return the live session or raise :class:`SessionNotFoundError`."""
        session = await self._store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def update(self, session_id: str, **fields: Any) -> Session:
        """Overwrite top-level session fields (``status``, ``chunks``, ...)."""
        return await self.mutate(session_id, lambda session: session.model_copy(update=fields))

    async def mutate(self, session_id: str, mutation: SessionMutation) -> Session:
        """Apply *mutation* to the latest version and write it conditionally.

        *mutation* may raise (e.g. a lifecycle guard); the error propagates
        and nothing is written.

        Raises
        ------
        SessionNotFoundError
            If the session is absent or disappears mid-update.
        ConcurrentModificationError
            If every attempt lost the race to another writer.
        """
        attempts = self._max_retries + 1
        for attempt in range(1, attempts + 1):
            current = await self.get(session_id)
            changed = mutation(current)
            updated = changed.model_copy(
                update={"version": current.version + 1, "updated_at": utc_now()}
            )
            if await self._store.compare_and_set(updated, current.version, self._ttl):
                return updated

            logger.info(
                "session_write_conflict",
                session_id=session_id,
                attempt=attempt,
                expected_version=current.version,
            )

        if await self._store.get(session_id) is None:
            raise SessionNotFoundError(session_id)
        raise ConcurrentModificationError(session_id, attempts)

    async def delete(self, session_id: str) -> bool:
        deleted = await self._store.delete(session_id)
        if deleted:
            logger.info("session_deleted", session_id=session_id)
        return deleted

    async def list_ids(self) -> list[str]:
        return await self._store.list_ids()
