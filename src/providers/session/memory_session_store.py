"""In-memory draft session store using ``cachetools.TLRUCache``.

Suitable for development and single-process deployments.  Each entry
carries its own time-to-live, refreshed on every successful write, and the
least-recently-used session is evicted once ``max_sessions`` is reached.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

import structlog
from cachetools import TLRUCache

from src.interfaces.session_store import ISessionStore
from src.models.session import Session

logger = structlog.get_logger(logger_name=__name__)

_Entry = tuple[Session, int]


def _time_to_use(_key: str, value: _Entry, now: float) -> float:
    return now + value[1]


class MemorySessionStore(ISessionStore):
    """Process-local session store.

    Parameters
    ----------
    max_sessions:
        Maximum live sessions before LRU eviction.
    timer:
        Clock used for expiry; injectable for tests.
    """

    def __init__(
        self,
        max_sessions: int = 10000,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache: TLRUCache[str, _Entry] = TLRUCache(
            maxsize=max_sessions,
            ttu=_time_to_use,
            timer=timer,
        )
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # ISessionStore implementation
    # ------------------------------------------------------------------

    async def get(self, session_id: str) -> Session | None:
        entry = self._cache.get(session_id)
        return entry[0] if entry is not None else None

    async def create(self, session: Session, ttl: int) -> bool:
        async with self._lock:
            if session.session_id in self._cache:
                return False
            self._cache[session.session_id] = (session, ttl)
        logger.debug("session_stored", session_id=session.session_id, version=session.version)
        return True

    async def compare_and_set(self, session: Session, expected_version: int, ttl: int) -> bool:
        async with self._lock:
            entry = self._cache.get(session.session_id)
            if entry is None or entry[0].version != expected_version:
                return False
            self._cache[session.session_id] = (session, ttl)
        logger.debug("session_stored", session_id=session.session_id, version=session.version)
        return True

    async def delete(self, session_id: str) -> bool:
        async with self._lock:
            return self._cache.pop(session_id, None) is not None

    async def list_ids(self) -> list[str]:
        self._cache.expire()
        return list(self._cache.keys())

    def get_provider_name(self) -> str:
        return "memory"
