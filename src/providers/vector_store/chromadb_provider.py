"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`.
Every knowledge base is its own collection using cosine distance.  Fully
local, no external service required.

ChromaDB metadata values must be scalars, so list payload fields
(``heading_path``, ``tags``) are flattened on write and restored on read,
and ``None`` values are dropped.  The client is synchronous; each call runs
in a worker thread under ``vector_store_timeout``.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from typing import Any, TypeVar

# Disable ChromaDB telemetry before importing chromadb.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.vector import PublishedPoint, SearchHit
from src.utils.errors import RAGError

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

HEADING_SEPARATOR = " > "
TAG_SEPARATOR = ","
_LIST_FIELDS = {"heading_path": HEADING_SEPARATOR, "tags": TAG_SEPARATOR}


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    Points are always upserted with pre-computed vectors, so ChromaDB's
    built-in embedding is never invoked.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "Vectors are pre-computed; ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Collection-per-knowledge-base vector store backed by ChromaDB."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        timeout: float = 30.0,
        client: Any | None = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._timeout = timeout
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        self._collections: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def collection_exists(self, name: str) -> bool:
        if name in self._collections:
            return True
        names = await self._run("list_collections", self._list_collection_names)
        return name in names

    async def create_collection(self, name: str) -> bool:
        if await self.collection_exists(name):
            return False
        await self._run("create_collection", lambda: self._open_collection(name))
        logger.info("chromadb_collection_created", collection=name)
        return True

    async def delete_by_filter(self, name: str, filters: dict[str, Any]) -> int:
        if not filters:
            raise ValueError("delete_by_filter requires at least one filter")
        where = self._translate_filters(filters)

        def _delete() -> int:
            collection = self._open_collection(name)
            existing = collection.get(where=where, include=[])
            ids = existing.get("ids") or []
            if ids:
                collection.delete(where=where)
            return len(ids)

        deleted = await self._run("delete_by_filter", _delete, collection=name)
        logger.info("chromadb_deleted_by_filter", collection=name, filters=filters, deleted=deleted)
        return deleted

    async def upsert(self, name: str, points: list[PublishedPoint]) -> int:
        if not points:
            return 0

        def _upsert() -> int:
            collection = self._open_collection(name)
            collection.upsert(
                ids=[point.id for point in points],
                embeddings=[point.vector for point in points],
                documents=[str(point.payload.get("text", "")) for point in points],
                metadatas=[self._to_metadata(point.payload) for point in points],
            )
            return len(points)

        written = await self._run("upsert", _upsert, collection=name)
        logger.info("chromadb_upserted", collection=name, points=written)
        return written

    async def search(
        self,
        name: str,
        vector: list[float],
        limit: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        def _query() -> dict[str, Any]:
            collection = self._open_collection(name)
            kwargs: dict[str, Any] = {"query_embeddings": [vector], "n_results": max(1, limit)}
            if filters:
                kwargs["where"] = self._translate_filters(filters)
            return collection.query(**kwargs)

        results = await self._run("search", _query, collection=name)
        if not results.get("ids") or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = (results.get("documents") or [[""] * len(ids)])[0]
        metadatas = (results.get("metadatas") or [[{}] * len(ids)])[0]
        distances = (results.get("distances") or [[0.0] * len(ids)])[0]

        hits = [
            SearchHit(
                id=point_id,
                score=max(0.0, min(1.0, 1.0 - distance)),
                text=document or "",
                payload=self._from_metadata(meta or {}),
            )
            for point_id, document, meta, distance in zip(
                ids, documents, metadatas, distances, strict=True
            )
        ]
        hits.sort(key=lambda hit: hit.score, reverse=True)
        logger.info(
            "chromadb_query",
            collection=name,
            results_count=len(hits),
            top_score=hits[0].score if hits else 0.0,
        )
        return hits

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        try:
            self._client.heartbeat()
        except Exception as exc:  # noqa: BLE001
            logger.warning("chromadb_unavailable", error=str(exc))
            return False
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(self, operation: str, fn: Callable[[], _T], **log_fields: Any) -> _T:
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise RAGError(
                message=f"ChromaDB {operation} timed out after {self._timeout}s",
                provider_name="chromadb",
                context={"operation": operation, **log_fields},
            ) from exc
        except (RAGError, ValueError):
            raise
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB {operation} failed: {exc}",
                provider_name="chromadb",
                context={"operation": operation, **log_fields},
            ) from exc

    def _list_collection_names(self) -> set[str]:
        # Older clients return Collection objects, newer ones plain names.
        return {
            item if isinstance(item, str) else item.name
            for item in self._client.list_collections()
        }

    def _open_collection(self, name: str) -> Any:
        collection = self._collections.get(name)
        if collection is not None:
            return collection
        # A collection persisted with a different embedding function makes
        # newer clients raise ValueError; reopen it without one.
        try:
            collection = self._client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            collection = self._client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine"},
            )
        self._collections[name] = collection
        return collection

    @staticmethod
    def _translate_filters(filters: dict[str, Any]) -> dict[str, Any]:
        """Equality map to a ChromaDB ``where`` clause (``$and`` for several keys)."""
        clauses = [{key: {"$eq": value}} for key, value in filters.items()]
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}

    @staticmethod
    def _to_metadata(payload: dict[str, Any]) -> dict[str, str | int | float | bool]:
        metadata: dict[str, str | int | float | bool] = {}
        for key, value in payload.items():
            if key == "text" or value is None:
                continue
            if key in _LIST_FIELDS and isinstance(value, list):
                metadata[key] = _LIST_FIELDS[key].join(str(item) for item in value)
            elif isinstance(value, (str, int, float, bool)):
                metadata[key] = value
            else:
                metadata[key] = str(value)
        return metadata

    @staticmethod
    def _from_metadata(meta: dict[str, Any]) -> dict[str, Any]:
        payload = dict(meta)
        for key, separator in _LIST_FIELDS.items():
            value = payload.get(key)
            if isinstance(value, str):
                payload[key] = [part for part in value.split(separator) if part]
        return payload
