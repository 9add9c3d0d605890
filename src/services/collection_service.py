"""Knowledge-base collection helpers: create and query collections."""

from __future__ import annotations

from typing import Any

import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.vector import SearchHit
from src.services.embedding_batcher import EmbeddingBatcher
from src.services.publish_coordinator import collection_name
from src.utils.errors import CollectionNotFoundError, InputValidationError

logger = structlog.get_logger(logger_name=__name__)


class CollectionService:
    """Create knowledge-base collections and search published chunks."""

    def __init__(
        self,
        vector_store: IVectorStoreProvider,
        embedder: EmbeddingBatcher,
        collection_prefix: str = "kb_",
    ) -> None:
        self._vector_store = vector_store
        self._embedder = embedder
        self._prefix = collection_prefix

    @property
    def prefix(self) -> str:
        return self._prefix

    async def create(self, collection_id: str) -> bool:
        """Create the collection; ``False`` when it already existed."""
        name = collection_name(collection_id, self._prefix)
        created = await self._vector_store.create_collection(name)
        logger.info("collection_ensured", collection=name, created=created)
        return created

    async def search(
        self,
        collection_id: str,
        query: str,
        limit: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        """Embed *query* and return the closest published chunks."""
        if not query or not query.strip():
            raise InputValidationError("Search query cannot be empty or whitespace-only")
        name = collection_name(collection_id, self._prefix)
        if not await self._vector_store.collection_exists(name):
            raise CollectionNotFoundError(collection_id)

        vectors = await self._embedder.embed([query])
        hits = await self._vector_store.search(name, vectors[0], limit=limit, filters=filters)
        logger.info("collection_searched", collection=name, results=len(hits))
        return hits
