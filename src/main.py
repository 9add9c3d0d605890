"""Knowledge ingestion service FastAPI application entry point.

Wires together all providers, services, and routes via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml`` and configures
structured logging before the app is built.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import APP_VERSION
from src.api.routes import router as api_router
from src.config.loader import settings_from_config
from src.config.settings import Settings
from src.interfaces.session_store import ISessionStore
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.ingest.manual_strategy import ManualStrategy
from src.providers.ingest.web_strategy import WebStrategy
from src.providers.ingest.wiki_strategy import WikiStrategy
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.providers.session.memory_session_store import MemorySessionStore
from src.providers.session.sqlite_session_store import SQLiteSessionStore
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.chunk_editor import ChunkMutationEngine
from src.services.chunking.chunking_service import ChunkingService
from src.services.chunking.classifier import KeywordChunkClassifier
from src.services.chunking.llm_chunker import LLMChunker
from src.services.chunking.semantic_chunker import SemanticChunker
from src.services.collection_service import CollectionService
from src.services.draft_store import DraftSessionStore
from src.services.embedding_batcher import EmbeddingBatcher
from src.services.ingestion_service import IngestionService
from src.services.publish_coordinator import PublishCoordinator
from src.services.tag_extractor import TagExtractor
from src.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = settings_from_config()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_session_store(app_settings: Settings) -> ISessionStore:
    """Select the draft session backend (``memory`` or ``sqlite``)."""
    if app_settings.session_backend == "sqlite":
        return SQLiteSessionStore(db_path=app_settings.session_db_path)
    return MemorySessionStore(max_sessions=app_settings.session_max_sessions)


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    # -- OpenAI (chunking LLM + embeddings) --
    llm = OpenAILLMProvider(settings=app_settings)
    embedding_provider = OpenAIEmbeddingProvider(settings=app_settings)
    if not llm.is_available():
        _logger.warning(
            "openai_not_configured",
            msg="OPENAI_API_KEY is not set. LLM chunking falls back to structured; publish is unavailable.",
        )

    # -- Vector store --
    vector_store = ChromaDBProvider(
        persist_directory=app_settings.vector_store_dir,
        timeout=app_settings.vector_store_timeout,
    )

    # -- Draft sessions --
    session_store = _build_session_store(app_settings)
    draft_store = DraftSessionStore(
        store=session_store,
        ttl=app_settings.session_ttl,
        max_retries=app_settings.session_update_retries,
    )

    # -- Chunking --
    classifier = KeywordChunkClassifier()
    semantic_chunker = SemanticChunker(
        target_tokens=app_settings.chunk_target_tokens,
        max_tokens=app_settings.chunk_max_tokens,
        min_tokens=app_settings.chunk_min_tokens,
        classifier=classifier,
    )
    llm_chunker = LLMChunker(
        llm=llm,
        max_content_length=app_settings.chunking_max_content_length,
        window_overlap=app_settings.chunking_window_overlap,
        max_retries=app_settings.chunking_max_retries,
        timeout=app_settings.chunking_timeout,
        concurrency=app_settings.chunking_concurrency,
        backoff_base=app_settings.retry_backoff_base,
        classifier=classifier,
        target_tokens=app_settings.chunk_target_tokens,
        min_tokens=app_settings.chunk_min_tokens,
        max_tokens=app_settings.chunk_max_tokens,
    )
    chunking = ChunkingService(semantic_chunker=semantic_chunker, llm_chunker=llm_chunker, llm=llm)

    # -- Ingestion strategies --
    web_strategy = WebStrategy(
        timeout=app_settings.web_fetch_timeout,
        max_content_length=app_settings.web_max_content_length,
        user_agent=app_settings.web_user_agent,
    )
    wiki_strategy = WikiStrategy(
        base_url=app_settings.wiki_base_url,
        user_email=app_settings.wiki_user_email,
        api_token=app_settings.wiki_api_token,
        timeout=app_settings.web_fetch_timeout,
    )
    strategies = [
        ManualStrategy(
            min_length=app_settings.manual_min_content_length,
            max_length=app_settings.manual_max_content_length,
        ),
        web_strategy,
        wiki_strategy,
    ]

    # -- Services --
    embedder = EmbeddingBatcher(
        provider=embedding_provider,
        batch_size=app_settings.embedding_batch_size,
        max_retries=app_settings.embedding_max_retries,
        timeout=app_settings.embedding_timeout,
        backoff_base=app_settings.retry_backoff_base,
    )
    ingestion_service = IngestionService(strategies=strategies, chunking=chunking, drafts=draft_store)
    chunk_editor = ChunkMutationEngine(drafts=draft_store, chunking=chunking)
    tagger = TagExtractor(llm=llm) if app_settings.tagging_enabled and llm.is_available() else None
    publish_coordinator = PublishCoordinator(
        drafts=draft_store,
        embedder=embedder,
        vector_store=vector_store,
        collection_prefix=app_settings.collection_prefix,
        tagger=tagger,
        max_retries=app_settings.vector_store_max_retries,
        backoff_base=app_settings.retry_backoff_base,
    )
    collection_service = CollectionService(
        vector_store=vector_store,
        embedder=embedder,
        collection_prefix=app_settings.collection_prefix,
    )

    # -- Provider registry for /health --
    provider_registry: dict[str, bool] = {
        "llm": llm.is_available(),
        "embedding": embedding_provider.is_available(),
        "vector_store": vector_store.is_available(),
        "session_store": True,
        "wiki": wiki_strategy.is_configured(),
    }

    return {
        "session_store": session_store,
        "draft_store": draft_store,
        "vector_store": vector_store,
        "ingestion_service": ingestion_service,
        "chunk_editor": chunk_editor,
        "publish_coordinator": publish_coordinator,
        "collection_service": collection_service,
        "ingest_strategies": strategies,
        "provider_registry": provider_registry,
        "primary_llm_name": llm.get_provider_name(),
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    await components["session_store"].initialize()

    _logger.info(
        "app_startup",
        version=APP_VERSION,
        environment=settings.app_env,
        primary_llm=components["primary_llm_name"],
        session_backend=components["session_store"].get_provider_name(),
    )

    yield

    # -- Shutdown: close strategy-owned httpx clients --
    for strategy in components["ingest_strategies"]:
        aclose = getattr(strategy, "aclose", None)
        if aclose is not None:
            await aclose()
    _logger.info("app_shutdown", message="HTTP clients closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="Knowledge Ingestion API",
        version=APP_VERSION,
        description=(
            "Ingest manual text, web pages and wiki pages into editable draft "
            "sessions, chunk them, review and edit the chunks, then publish "
            "them as embeddings into a vector collection."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
