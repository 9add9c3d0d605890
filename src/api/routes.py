"""FastAPI API routes for the knowledge ingestion service.

Provides REST endpoints for ingestion, draft session editing, preview,
publish, collection management and health.  Service dependencies are
resolved from ``app.state`` via FastAPI's ``Depends`` using the
``Annotated`` pattern.

    Endpoint                                         Method  Description
    /api/v1/ingest                                   POST    Fetch a source -> DRAFT session
    /api/v1/session                                  GET     List live session ids
    /api/v1/session/{sid}                            GET     Fetch a session
    /api/v1/session/{sid}                            DELETE  Discard a session
    /api/v1/session/{sid}/chunks                     POST    Generate chunks for an unchunked session
    /api/v1/session/{sid}/chunks/{cid}               PATCH   Edit one chunk's text
    /api/v1/session/{sid}/chunks/merge               POST    Merge chunks
    /api/v1/session/{sid}/chunks/{cid}/split         POST    Split a chunk (elevated roles)
    /api/v1/session/{sid}/preview                    POST    Validate and move to PREVIEW
    /api/v1/session/{sid}/draft                      POST    Return to DRAFT
    /api/v1/session/{sid}/publish                    POST    Embed and replace in a collection
    /api/v1/collections                              POST    Create a collection
    /api/v1/collections/{cid}/search                 POST    Semantic search
    /api/v1/health                                   GET     Health check + provider status

The acting user comes from the ``X-User-Id`` header and the role from
``X-User-Role`` (ML, DEV or L2; anything else is treated as L2).
Application errors are turned into JSON by ``ErrorHandlingMiddleware``.
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Body, Depends, Header, Request

from src.api.schemas import (
    CollectionResponse,
    CreateCollectionRequest,
    DeleteSessionResponse,
    GenerateChunksRequest,
    HealthResponse,
    IngestRequest,
    MergeChunksRequest,
    PreviewResponse,
    PublishRequest,
    PublishResponse,
    SearchHitView,
    SearchRequest,
    SearchResponse,
    SessionListResponse,
    SessionResponse,
    SplitChunkRequest,
    UpdateChunkRequest,
)
from src.models.session import UserRole
from src.services.chunk_editor import ChunkMutationEngine
from src.services.collection_service import CollectionService
from src.services.draft_store import DraftSessionStore
from src.services.ingestion_service import IngestionService
from src.services.publish_coordinator import PublishCoordinator, collection_name
from src.utils.errors import InputValidationError, SessionNotFoundError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

APP_VERSION = "0.1.0"

router = APIRouter(prefix="/api/v1")


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_ingestion(request: Request) -> IngestionService:
    """Return the ingestion service from application state."""
    return request.app.state.ingestion_service


def _get_drafts(request: Request) -> DraftSessionStore:
    """Return the draft session store from application state."""
    return request.app.state.draft_store


def _get_editor(request: Request) -> ChunkMutationEngine:
    return request.app.state.chunk_editor


def _get_publisher(request: Request) -> PublishCoordinator:
    return request.app.state.publish_coordinator


def _get_collections(request: Request) -> CollectionService:
    return request.app.state.collection_service


def _get_user_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    return (x_user_id or "").strip() or "anonymous"


def _get_user_role(x_user_role: Annotated[str | None, Header()] = None) -> UserRole:
    return UserRole.parse(x_user_role)


IngestionDep = Annotated[IngestionService, Depends(_get_ingestion)]
DraftsDep = Annotated[DraftSessionStore, Depends(_get_drafts)]
EditorDep = Annotated[ChunkMutationEngine, Depends(_get_editor)]
PublisherDep = Annotated[PublishCoordinator, Depends(_get_publisher)]
CollectionsDep = Annotated[CollectionService, Depends(_get_collections)]
UserIdDep = Annotated[str, Depends(_get_user_id)]
UserRoleDep = Annotated[UserRole, Depends(_get_user_role)]


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@router.post(
    "/ingest",
    response_model=SessionResponse,
    status_code=201,
    summary="Ingest a source into a new draft session",
)
async def ingest(
    body: IngestRequest,
    ingestion: IngestionDep,
    user_id: UserIdDep,
) -> SessionResponse:
    """Fetch the source, optionally chunk it, and open a DRAFT session."""
    locator = body.locator()
    if not locator or not locator.strip():
        field = {"manual": "content", "web": "url", "wiki": "page"}[body.source_type.value]
        raise InputValidationError(
            f"'{field}' is required for source type {body.source_type.value}",
            context={"field": field},
        )

    session = await ingestion.ingest(
        source_type=body.source_type,
        locator=locator,
        user_id=user_id,
        chunking=body.chunking.to_options() if body.chunking else None,
        auto_chunk=body.auto_chunk,
        tags=body.tags,
    )
    return SessionResponse.from_session(session)


# ---------------------------------------------------------------------------
# Draft sessions
# ---------------------------------------------------------------------------


@router.get("/session", response_model=SessionListResponse, summary="List live sessions")
async def list_sessions(drafts: DraftsDep) -> SessionListResponse:
    session_ids = await drafts.list_ids()
    return SessionListResponse(session_ids=session_ids, total=len(session_ids))


@router.get("/session/{session_id}", response_model=SessionResponse, summary="Fetch a session")
async def get_session(session_id: str, drafts: DraftsDep) -> SessionResponse:
    return SessionResponse.from_session(await drafts.get(session_id))


@router.delete(
    "/session/{session_id}",
    response_model=DeleteSessionResponse,
    summary="Discard a draft session",
)
async def delete_session(session_id: str, drafts: DraftsDep, user_id: UserIdDep) -> DeleteSessionResponse:
    if not await drafts.delete(session_id):
        raise SessionNotFoundError(session_id)
    _logger.info("session_discarded", session_id=session_id, user_id=user_id)
    return DeleteSessionResponse(session_id=session_id, deleted=True)


@router.post(
    "/session/{session_id}/chunks",
    response_model=SessionResponse,
    summary="Generate chunks for a session ingested without chunking",
)
async def generate_chunks(
    session_id: str,
    editor: EditorDep,
    body: Annotated[GenerateChunksRequest | None, Body()] = None,
) -> SessionResponse:
    options = body.chunking.to_options() if body and body.chunking else None
    session = await editor.generate_chunks(session_id, options)
    return SessionResponse.from_session(session)


@router.post(
    "/session/{session_id}/chunks/merge",
    response_model=SessionResponse,
    summary="Merge chunks in the given order",
)
async def merge_chunks(session_id: str, body: MergeChunksRequest, editor: EditorDep) -> SessionResponse:
    session = await editor.merge_chunks(session_id, body.chunk_ids)
    return SessionResponse.from_session(session)


@router.patch(
    "/session/{session_id}/chunks/{chunk_id}",
    response_model=SessionResponse,
    summary="Replace one chunk's text",
)
async def update_chunk(
    session_id: str,
    chunk_id: str,
    body: UpdateChunkRequest,
    editor: EditorDep,
) -> SessionResponse:
    session = await editor.update_chunk(session_id, chunk_id, body.text)
    return SessionResponse.from_session(session)


@router.post(
    "/session/{session_id}/chunks/{chunk_id}/split",
    response_model=SessionResponse,
    summary="Split a chunk by offsets or explicit text blocks",
)
async def split_chunk(
    session_id: str,
    chunk_id: str,
    body: SplitChunkRequest,
    editor: EditorDep,
    role: UserRoleDep,
) -> SessionResponse:
    session = await editor.split_chunk(
        session_id,
        chunk_id,
        role=role,
        split_points=body.split_points,
        new_text_blocks=body.new_text_blocks,
    )
    return SessionResponse.from_session(session)


@router.post(
    "/session/{session_id}/preview",
    response_model=PreviewResponse,
    status_code=201,
    summary="Validate the session and move it to PREVIEW",
)
async def preview_session(session_id: str, editor: EditorDep) -> PreviewResponse:
    return PreviewResponse.from_report(await editor.preview(session_id))


@router.post(
    "/session/{session_id}/draft",
    response_model=SessionResponse,
    summary="Return a previewed session to DRAFT",
)
async def return_to_draft(session_id: str, editor: EditorDep) -> SessionResponse:
    return SessionResponse.from_session(await editor.return_to_draft(session_id))


@router.post(
    "/session/{session_id}/publish",
    response_model=PublishResponse,
    status_code=201,
    summary="Embed the session's chunks and replace its source in a collection",
    responses={
        400: {"description": "Malformed targetCollectionId (1-60 letters, digits, '-' or '_')"},
        404: {"description": "Session or target collection not found"},
    },
)
async def publish_session(
    session_id: str,
    body: PublishRequest,
    publisher: PublisherDep,
    user_id: UserIdDep,
) -> PublishResponse:
    """Publish a session into an existing collection.

    A ``targetCollectionId`` that is not a valid collection id is rejected
    with 400 before the collection lookup; a well-formed id with no
    collection behind it is a 404.  Either way the session is kept.
    """
    result = await publisher.publish(
        session_id=session_id,
        target_collection_id=body.target_collection_id,
        acting_user_id=user_id,
    )
    return PublishResponse.from_result(result)


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


@router.post(
    "/collections",
    response_model=CollectionResponse,
    status_code=201,
    summary="Create a knowledge-base collection",
)
async def create_collection(body: CreateCollectionRequest, collections: CollectionsDep) -> CollectionResponse:
    created = await collections.create(body.collection_id)
    return CollectionResponse(
        collection_id=body.collection_id,
        collection_name=collection_name(body.collection_id, collections.prefix),
        created=created,
    )


@router.post(
    "/collections/{collection_id}/search",
    response_model=SearchResponse,
    summary="Semantic search over a collection",
)
async def search_collection(
    collection_id: str,
    body: SearchRequest,
    collections: CollectionsDep,
) -> SearchResponse:
    hits = await collections.search(collection_id, body.query, limit=body.limit, filters=body.filters)
    return SearchResponse(
        collection_id=collection_id,
        results=[SearchHitView.from_hit(hit) for hit in hits],
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and provider availability.

    ``unhealthy`` when the vector store is down; ``degraded`` when only the
    OpenAI key is missing (manual ingest and non-LLM chunking still work).
    """
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))
    vector_store = getattr(request.app.state, "vector_store", None)
    if vector_store is not None:
        providers["vector_store"] = vector_store.is_available()

    vector_ok = providers.get("vector_store", False)
    openai_ok = providers.get("llm", False) and providers.get("embedding", False)
    if vector_ok and openai_ok:
        status = "healthy"
    elif vector_ok:
        status = "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(status=status, version=APP_VERSION, providers=providers)
