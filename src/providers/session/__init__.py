"""Draft session store implementations.

Two implementations of ISessionStore (src/interfaces/session_store.py):
    - MemorySessionStore -- cachetools TLRUCache, per-entry TTL, LRU eviction.
    - SQLiteSessionStore -- aiosqlite, JSON blob per session, survives restarts.

main.py picks one from the ``session_backend`` setting.
"""

from src.providers.session.memory_session_store import MemorySessionStore
from src.providers.session.sqlite_session_store import SQLiteSessionStore

__all__ = ["MemorySessionStore", "SQLiteSessionStore"]
