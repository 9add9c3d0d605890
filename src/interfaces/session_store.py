"""Abstract base class for draft-session key-value storage.

The store is a dumb keyed blob store with per-key expiry and one
conditional write primitive.  Lifecycle rules and retry-on-conflict live in
:class:`~src.services.draft_store.DraftSessionStore`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.session import Session


# Concrete implementations: MemorySessionStore, SQLiteSessionStore
# Located in: src/providers/session/
class ISessionStore(ABC):
    """Contract for session persistence keyed by session id."""

    @abstractmethod
    async def get(self, session_id: str) -> Session | None:
        """Return the stored session, or ``None`` if absent or expired."""

    @abstractmethod
    async def create(self, session: Session, ttl: int) -> bool:
        """Store a new session.

        Returns
        -------
        bool
            ``False`` if a live session with the same id already exists.
        """

    @abstractmethod
    async def compare_and_set(self, session: Session, expected_version: int, ttl: int) -> bool:
        """Replace the stored session only if its version is *expected_version*.

        The expiry is refreshed to *ttl* seconds on success.

        Returns
        -------
        bool
            ``True`` if the write happened; ``False`` on a version mismatch
            or when the session no longer exists.
        """

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Remove a session.  Returns ``True`` if something was deleted."""

    @abstractmethod
    async def list_ids(self) -> list[str]:
        """Return the ids of all live sessions."""

    async def initialize(self) -> None:  # noqa: B027
        """Prepare backing storage.  No-op for in-memory stores."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
