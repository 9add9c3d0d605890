"""Abstract base class for vector-store service providers.

Each knowledge base lives in its own collection whose name is derived
deterministically from the collection id (``kb_<id>``).  The publish path
only needs existence checks, delete-by-filter and upsert; search is exposed
for callers that want to verify what was published.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.vector import PublishedPoint, SearchHit


# Concrete implementation: ChromaDBProvider (src/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for collection-scoped vector storage.

    **Filter syntax** for :meth:`delete_by_filter` is a flat equality map on
    payload fields, e.g. ``{"source_id": "ab12..."}``.  Multiple keys are
    AND-ed.
    """

    @abstractmethod
    async def collection_exists(self, name: str) -> bool:
        """Return ``True`` if a collection called *name* exists."""

    @abstractmethod
    async def create_collection(self, name: str) -> bool:
        """Create *name* if missing.

        Returns
        -------
        bool
            ``True`` if the collection was created, ``False`` if it existed.
        """

    @abstractmethod
    async def delete_by_filter(self, name: str, filters: dict[str, Any]) -> int:
        """Delete every point in *name* whose payload matches *filters*.

        Parameters
        ----------
        name:
            Collection name.
        filters:
            Equality filters on payload fields.  Must not be empty.

        Returns
        -------
        int
            Number of points removed.

        Raises
        ------
        ValueError
            If *filters* is empty.
        src.utils.errors.RAGError
            If the store operation fails.
        """

    @abstractmethod
    async def upsert(self, name: str, points: list[PublishedPoint]) -> int:
        """Insert or replace *points* in collection *name*.

        Returns
        -------
        int
            Number of points written.

        Raises
        ------
        src.utils.errors.RAGError
            If the store operation fails.
        """

    @abstractmethod
    async def search(
        self,
        name: str,
        vector: list[float],
        limit: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        """Return up to *limit* hits ranked by similarity (descending)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the backing store is reachable."""
