"""Integration tests for the REST API using TestClient.

Real services are wired together over an in-memory session store, the
dict-backed vector store and the deterministic embedding provider from
conftest; the chunking LLM is the paragraph-splitting mock.
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.middleware import ErrorHandlingMiddleware
from src.api.routes import router as api_router
from src.providers.ingest.manual_strategy import ManualStrategy
from src.providers.session.memory_session_store import MemorySessionStore
from src.services.chunk_editor import ChunkMutationEngine
from src.services.chunking.chunking_service import ChunkingService
from src.services.chunking.llm_chunker import LLMChunker
from src.services.chunking.semantic_chunker import SemanticChunker
from src.services.collection_service import CollectionService
from src.services.draft_store import DraftSessionStore
from src.services.embedding_batcher import EmbeddingBatcher
from src.services.ingestion_service import IngestionService
from src.services.publish_coordinator import PublishCoordinator

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _create_test_app(llm, embedding_provider, vector_store, openai_ok: bool = True) -> FastAPI:
    """Create a FastAPI app with real services over in-memory backends."""
    app = FastAPI()
    app.add_middleware(ErrorHandlingMiddleware)
    app.include_router(api_router)

    drafts = DraftSessionStore(store=MemorySessionStore(max_sessions=50), ttl=600, max_retries=2)
    chunking = ChunkingService(
        semantic_chunker=SemanticChunker(),
        llm_chunker=LLMChunker(llm=llm, max_retries=0, backoff_base=0),
        llm=llm,
    )
    embedder = EmbeddingBatcher(embedding_provider, batch_size=8, backoff_base=0)

    app.state.draft_store = drafts
    app.state.vector_store = vector_store
    app.state.ingestion_service = IngestionService([ManualStrategy()], chunking, drafts)
    app.state.chunk_editor = ChunkMutationEngine(drafts=drafts, chunking=chunking)
    app.state.publish_coordinator = PublishCoordinator(drafts, embedder, vector_store)
    app.state.collection_service = CollectionService(vector_store, embedder)
    app.state.provider_registry = {"llm": openai_ok, "embedding": openai_ok, "session_store": True}
    return app


@pytest.fixture
def client(mock_llm_provider, embedding_provider, vector_store):
    app = _create_test_app(mock_llm_provider, embedding_provider, vector_store)
    with TestClient(app) as test_client:
        yield test_client


def _ingest(client: TestClient, content: str = "A.\n\nB.\n\nC.", **extra) -> dict:
    response = client.post(
        "/api/v1/ingest",
        json={"sourceType": "manual", "content": content, **extra},
        headers={"X-User-Id": "alice"},
    )
    assert response.status_code == 201, response.text
    return response.json()


# ---------------------------------------------------------------------------
# End-to-end flow
# ---------------------------------------------------------------------------


class TestIngestEditPublish:
    def test_full_flow(self, client: TestClient, vector_store) -> None:
        session = _ingest(client)
        sid = session["sessionId"]
        assert session["status"] == "DRAFT"
        assert session["userId"] == "alice"
        assert [c["text"] for c in session["chunks"]] == ["A.", "B.", "C."]

        first, second, _ = (c["id"] for c in session["chunks"])
        merged = client.post(f"/api/v1/session/{sid}/chunks/merge", json={"chunkIds": [first, second]})
        assert merged.status_code == 200
        chunks = merged.json()["chunks"]
        assert [c["text"] for c in chunks] == ["A.\n\nB.", "C."]
        assert chunks[0]["isDirty"] is True
        assert merged.json()["version"] == 1

        preview = client.post(f"/api/v1/session/{sid}/preview")
        assert preview.status_code == 201
        assert preview.json()["isValid"] is True
        assert preview.json()["warnings"] == []
        assert preview.json()["status"] == "PREVIEW"

        created = client.post("/api/v1/collections", json={"collectionId": "docs"})
        assert created.status_code == 201
        assert created.json() == {"collectionId": "docs", "collectionName": "kb_docs", "created": True}

        published = client.post(
            f"/api/v1/session/{sid}/publish",
            json={"targetCollectionId": "docs"},
            headers={"X-User-Id": "bob"},
        )
        assert published.status_code == 201
        assert published.json()["publishedChunks"] == 2

        payloads = [p.payload for p in vector_store.collections["kb_docs"].values()]
        assert {p["last_modified_by"] for p in payloads} == {"bob"}
        assert client.get(f"/api/v1/session/{sid}").status_code == 404

        results = client.post("/api/v1/collections/docs/search", json={"query": "C.", "limit": 1})
        assert results.status_code == 200
        assert results.json()["results"][0]["text"] == "C."

    def test_edit_blocked_in_preview_until_returned(self, client: TestClient) -> None:
        session = _ingest(client)
        sid, chunk_id = session["sessionId"], session["chunks"][0]["id"]
        client.post(f"/api/v1/session/{sid}/preview")

        blocked = client.patch(f"/api/v1/session/{sid}/chunks/{chunk_id}", json={"text": "x"})
        assert blocked.status_code == 409
        assert blocked.json()["kind"] == "state_conflict"

        assert client.post(f"/api/v1/session/{sid}/draft").json()["status"] == "DRAFT"
        edited = client.patch(f"/api/v1/session/{sid}/chunks/{chunk_id}", json={"text": "x"})
        assert edited.status_code == 200
        assert edited.json()["chunks"][0]["text"] == "x"

    def test_generate_after_ingest_without_chunking(self, client: TestClient) -> None:
        session = _ingest(client, autoChunk=False)
        assert session["chunks"] == []

        generated = client.post(
            f"/api/v1/session/{session['sessionId']}/chunks",
            json={"chunking": {"method": "character", "chunkSize": 100, "overlap": 0}},
        )

        assert generated.status_code == 200
        assert [c["text"] for c in generated.json()["chunks"]] == ["A.\n\nB.\n\nC."]

    def test_list_and_delete(self, client: TestClient) -> None:
        sid = _ingest(client)["sessionId"]

        assert client.get("/api/v1/session").json() == {"sessionIds": [sid], "total": 1}
        assert client.delete(f"/api/v1/session/{sid}").json() == {"sessionId": sid, "deleted": True}
        assert client.delete(f"/api/v1/session/{sid}").status_code == 404


class TestSplitRoles:
    def test_default_role_forbidden(self, client: TestClient) -> None:
        session = _ingest(client, content="alpha beta")
        sid, chunk_id = session["sessionId"], session["chunks"][0]["id"]

        response = client.post(
            f"/api/v1/session/{sid}/chunks/{chunk_id}/split",
            json={"splitPoints": [5]},
            headers={"X-User-Role": "L2"},
        )

        assert response.status_code == 403
        assert "Simple Mode" in response.json()["detail"]

    def test_ml_role_can_split(self, client: TestClient) -> None:
        session = _ingest(client, content="alpha beta")
        sid, chunk_id = session["sessionId"], session["chunks"][0]["id"]

        response = client.post(
            f"/api/v1/session/{sid}/chunks/{chunk_id}/split",
            json={"splitPoints": [5]},
            headers={"X-User-Role": "ml"},
        )

        assert response.status_code == 200
        assert [c["text"] for c in response.json()["chunks"]] == ["alpha", "beta"]


class TestErrors:
    def test_missing_content(self, client: TestClient) -> None:
        response = client.post("/api/v1/ingest", json={"sourceType": "manual"})

        assert response.status_code == 400
        assert response.json()["context"] == {"field": "content"}

    def test_unknown_session(self, client: TestClient) -> None:
        response = client.get("/api/v1/session/session_nope")

        assert response.status_code == 404
        assert response.json()["error"] == "SessionNotFoundError"

    def test_publish_to_missing_collection(self, client: TestClient) -> None:
        sid = _ingest(client)["sessionId"]

        response = client.post(f"/api/v1/session/{sid}/publish", json={"targetCollectionId": "nope"})

        assert response.status_code == 404
        assert client.get(f"/api/v1/session/{sid}").status_code == 200

    def test_publish_with_malformed_collection_id(self, client: TestClient) -> None:
        sid = _ingest(client)["sessionId"]

        response = client.post(f"/api/v1/session/{sid}/publish", json={"targetCollectionId": "has space"})

        assert response.status_code == 400
        assert response.json()["context"] == {"collection_id": "has space"}
        assert client.get(f"/api/v1/session/{sid}").status_code == 200

    def test_publish_errors_documented(self, client: TestClient) -> None:
        operation = client.get("/openapi.json").json()["paths"]["/api/v1/session/{session_id}/publish"]["post"]

        assert {"400", "404"} <= set(operation["responses"])
        assert "targetCollectionId" in operation["responses"]["400"]["description"]

    def test_bad_collection_id(self, client: TestClient) -> None:
        response = client.post("/api/v1/collections", json={"collectionId": "has space"})

        assert response.status_code == 400

    def test_schema_violation(self, client: TestClient) -> None:
        response = client.post("/api/v1/ingest", json={"sourceType": "ftp", "content": "x"})

        assert response.status_code == 422


class TestHealth:
    def test_healthy(self, client: TestClient) -> None:
        body = client.get("/api/v1/health").json()

        assert body["status"] == "healthy"
        assert body["providers"]["vector_store"] is True

    def test_degraded_without_openai(self, mock_llm_provider, embedding_provider, vector_store) -> None:
        app = _create_test_app(mock_llm_provider, embedding_provider, vector_store, openai_ok=False)

        with TestClient(app) as client:
            assert client.get("/api/v1/health").json()["status"] == "degraded"
