"""Shared pytest fixtures for the knowledge ingestion test suite."""

from __future__ import annotations

import hashlib
import json
import struct
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider, LLMCompletion
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.chunk import Chunk, ChunkType
from src.models.session import Session, SessionStatus, SourceType
from src.models.vector import PublishedPoint, SearchHit
from src.providers.session.memory_session_store import MemorySessionStore
from src.services.draft_store import DraftSessionStore

# ---------------------------------------------------------------------------
# Sample content
# ---------------------------------------------------------------------------

SAMPLE_MARKDOWN = """Intro paragraph before any heading.

# Onboarding

Welcome to the platform team. This page explains how deployments work.

## Deployments

Deployments run from the main branch every weekday at 10:00.

| Service | Owner |
|---------|-------|
| api | platform |
| web | frontend |

```python
print("hello")
```
"""


@pytest.fixture
def sample_markdown() -> str:
    return SAMPLE_MARKDOWN


@pytest.fixture(autouse=True)
def offline_token_counts(monkeypatch: pytest.MonkeyPatch) -> None:
    """Count tokens with the character estimate so no BPE download is needed.

    Tests that exercise the tiktoken path patch ``_encoding`` again.
    """
    monkeypatch.setattr("src.services.chunking.token_estimator._encoding", lambda model_family: None)


# ---------------------------------------------------------------------------
# LLM
# ---------------------------------------------------------------------------


def paragraph_completion(**kwargs: Any) -> LLMCompletion:
    """Fake structured completion: one chunk per blank-line separated paragraph."""
    paragraphs = [p.strip() for p in kwargs["user_prompt"].split("\n\n") if p.strip()]
    payload = {
        "chunks": [
            {"id": f"temp_{index}", "text": text, "type": None}
            for index, text in enumerate(paragraphs, start=1)
        ]
    }
    return LLMCompletion(content=json.dumps(payload), finish_reason="stop", model="gpt-4o")


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider that chunks by paragraph.

    Override ``complete_structured.side_effect`` (or ``return_value``) for
    specific responses.
    """
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "openai"
    mock.get_model_name.return_value = "gpt-4o"
    mock.is_available.return_value = True
    mock.complete_structured = AsyncMock(side_effect=paragraph_completion)
    return mock


# ---------------------------------------------------------------------------
# Embeddings / vector store
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 16


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Deterministic unit-length vector derived from the SHA-256 of *text*."""
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    values = [((v / 2**32) * 2.0) - 1.0 for v in struct.unpack(f"<{dim}I", raw[: dim * 4])]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider; records every batch."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str], timeout: float | None = None) -> list[list[float]]:
        self.calls.append(list(texts))
        return [_hash_to_vector(t) for t in texts]

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_model_name(self) -> str:
        return "mock-embedding-model"

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class MockVectorStore(IVectorStoreProvider):
    """Dict-backed vector store.

    ``operations`` logs ``(operation, collection)`` tuples so tests can
    assert call order (delete before upsert).
    """

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, PublishedPoint]] = {}
        self.operations: list[tuple[str, str]] = []

    async def collection_exists(self, name: str) -> bool:
        return name in self.collections

    async def create_collection(self, name: str) -> bool:
        self.operations.append(("create_collection", name))
        if name in self.collections:
            return False
        self.collections[name] = {}
        return True

    async def delete_by_filter(self, name: str, filters: dict[str, Any]) -> int:
        self.operations.append(("delete_by_filter", name))
        points = self.collections[name]
        doomed = [
            point_id
            for point_id, point in points.items()
            if all(point.payload.get(key) == value for key, value in filters.items())
        ]
        for point_id in doomed:
            del points[point_id]
        return len(doomed)

    async def upsert(self, name: str, points: list[PublishedPoint]) -> int:
        self.operations.append(("upsert", name))
        for point in points:
            self.collections[name][point.id] = point
        return len(points)

    async def search(
        self,
        name: str,
        vector: list[float],
        limit: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchHit]:
        hits = []
        for point in self.collections[name].values():
            if filters and not all(point.payload.get(k) == v for k, v in filters.items()):
                continue
            dot = sum(a * b for a, b in zip(vector, point.vector, strict=True))
            hits.append(
                SearchHit(
                    id=point.id,
                    score=max(0.0, min(1.0, dot)),
                    text=point.payload.get("text", ""),
                    payload=dict(point.payload),
                )
            )
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:limit]

    def get_provider_name(self) -> str:
        return "mock-vector-store"

    def is_available(self) -> bool:
        return True


@pytest.fixture
def embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def vector_store() -> MockVectorStore:
    return MockVectorStore()


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


@pytest.fixture
def memory_store() -> MemorySessionStore:
    return MemorySessionStore(max_sessions=100)


@pytest.fixture
def drafts(memory_store: MemorySessionStore) -> DraftSessionStore:
    return DraftSessionStore(store=memory_store, ttl=3600, max_retries=2)


@pytest.fixture
def session_factory():
    """Return a builder for :class:`Session` objects with sensible defaults."""

    def _make(
        texts: list[str] | None = None,
        status: SessionStatus = SessionStatus.DRAFT,
        **overrides: Any,
    ) -> Session:
        chunks = [
            Chunk(id=f"chunk_{index}", text=text, heading_path=["Doc"], type=ChunkType.KNOWLEDGE)
            for index, text in enumerate(texts if texts is not None else ["alpha", "beta"], start=1)
        ]
        fields: dict[str, Any] = {
            "session_id": "session_test",
            "source_id": "src-1",
            "source_type": SourceType.MANUAL,
            "source_url": "manual://abc",
            "user_id": "alice",
            "status": status,
            "content": "\n\n".join(chunk.text for chunk in chunks),
            "chunks": chunks,
        }
        fields.update(overrides)
        return Session(**fields)

    return _make
