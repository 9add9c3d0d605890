"""Unit tests for ChunkMutationEngine edits and the preview lifecycle."""

from __future__ import annotations

import pytest
import pytest_asyncio

from src.models.chunk import ChunkingMethod, ChunkingOptions, ChunkType
from src.models.session import SessionStatus, UserRole
from src.services.chunk_editor import ChunkMutationEngine, split_text, validate_session
from src.services.chunking.chunking_service import ChunkingService
from src.services.chunking.llm_chunker import LLMChunker
from src.services.chunking.semantic_chunker import SemanticChunker
from src.services.draft_store import DraftSessionStore
from src.utils.errors import (
    ChunkNotFoundError,
    ForbiddenError,
    InputValidationError,
    StateConflictError,
)


@pytest.fixture
def engine(drafts: DraftSessionStore, mock_llm_provider) -> ChunkMutationEngine:
    chunking = ChunkingService(
        semantic_chunker=SemanticChunker(),
        llm_chunker=LLMChunker(llm=mock_llm_provider, max_retries=0, backoff_base=0),
        llm=mock_llm_provider,
    )
    return ChunkMutationEngine(drafts=drafts, chunking=chunking)


@pytest_asyncio.fixture
async def stored(memory_store, session_factory):
    """Store a DRAFT session with chunks alpha / beta / gamma and return it."""
    session = session_factory(texts=["alpha", "beta", "gamma"])
    await memory_store.create(session, ttl=3600)
    return session


class TestSplitText:
    def test_offsets_sorted_and_clamped(self) -> None:
        assert split_text("alpha beta gamma", [10, 5, 99]) == ["alpha", "beta", "gamma"]

    def test_empty_pieces_dropped(self) -> None:
        assert split_text("abc", [0, 0, 3]) == ["abc"]


class TestValidateSession:
    def test_warnings(self, session_factory) -> None:
        assert validate_session(session_factory(texts=[])) == ["No chunks to publish"]
        assert validate_session(session_factory(texts=["ok", " ", ""])) == ["2 empty chunks found"]
        assert validate_session(session_factory()) == []


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_marks_dirty(self, engine: ChunkMutationEngine, stored) -> None:
        updated = await engine.update_chunk(stored.session_id, "chunk_2", "BETA")

        assert [c.text for c in updated.chunks] == ["alpha", "BETA", "gamma"]
        assert [c.is_dirty for c in updated.chunks] == [False, True, False]
        assert updated.version == stored.version + 1

    @pytest.mark.asyncio
    async def test_unknown_chunk(self, engine: ChunkMutationEngine, stored) -> None:
        with pytest.raises(ChunkNotFoundError):
            await engine.update_chunk(stored.session_id, "chunk_404", "x")

    @pytest.mark.asyncio
    async def test_not_in_draft(self, engine: ChunkMutationEngine, memory_store, session_factory) -> None:
        session = session_factory(status=SessionStatus.PREVIEW)
        await memory_store.create(session, ttl=60)

        with pytest.raises(StateConflictError, match="non-DRAFT"):
            await engine.update_chunk(session.session_id, "chunk_1", "x")


class TestMerge:
    @pytest.mark.asyncio
    async def test_merge_keeps_request_order_at_earliest_position(
        self, engine: ChunkMutationEngine, stored
    ) -> None:
        updated = await engine.merge_chunks(stored.session_id, ["chunk_3", "chunk_1"])

        assert [c.text for c in updated.chunks] == ["gamma\n\nalpha", "beta"]
        merged = updated.chunks[0]
        assert merged.is_dirty is True
        assert merged.id not in {"chunk_1", "chunk_3"}
        assert merged.heading_path == ["Doc"]

    @pytest.mark.asyncio
    async def test_merge_adjacent_middle(self, engine: ChunkMutationEngine, stored) -> None:
        updated = await engine.merge_chunks(stored.session_id, ["chunk_2", "chunk_3"])

        assert [c.text for c in updated.chunks] == ["alpha", "beta\n\ngamma"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("chunk_ids", "message"),
        [
            (["chunk_1"], "At least two"),
            (["chunk_1", "chunk_1"], "Duplicate"),
            (["chunk_1", "chunk_9"], "not found"),
        ],
    )
    async def test_invalid_requests(
        self, engine: ChunkMutationEngine, drafts, stored, chunk_ids: list[str], message: str
    ) -> None:
        with pytest.raises(InputValidationError, match=message):
            await engine.merge_chunks(stored.session_id, chunk_ids)

        assert len((await drafts.get(stored.session_id)).chunks) == 3


class TestSplit:
    @pytest.mark.asyncio
    async def test_l2_forbidden(self, engine: ChunkMutationEngine, stored) -> None:
        with pytest.raises(ForbiddenError, match="Simple Mode"):
            await engine.split_chunk(stored.session_id, "chunk_1", UserRole.L2, split_points=[2])

    @pytest.mark.asyncio
    async def test_split_points(self, engine: ChunkMutationEngine, memory_store, session_factory) -> None:
        session = session_factory(texts=["first", "alpha beta gamma", "last"])
        await memory_store.create(session, ttl=60)

        updated = await engine.split_chunk(
            session.session_id, "chunk_2", UserRole.ML, split_points=[5, 10]
        )

        assert [c.text for c in updated.chunks] == ["first", "alpha", "beta", "gamma", "last"]
        assert [c.is_dirty for c in updated.chunks] == [False, True, True, True, False]
        assert all(c.type is ChunkType.KNOWLEDGE for c in updated.chunks)

    @pytest.mark.asyncio
    async def test_new_text_blocks(self, engine: ChunkMutationEngine, stored) -> None:
        updated = await engine.split_chunk(
            stored.session_id, "chunk_1", UserRole.DEV, new_text_blocks=["al", "  ", "pha"]
        )

        assert [c.text for c in updated.chunks] == ["al", "pha", "beta", "gamma"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs",
        [
            {},
            {"split_points": [1], "new_text_blocks": ["a"]},
            {"new_text_blocks": [" ", ""]},
        ],
    )
    async def test_invalid_split(self, engine: ChunkMutationEngine, stored, kwargs: dict) -> None:
        with pytest.raises(InputValidationError):
            await engine.split_chunk(stored.session_id, "chunk_1", UserRole.ML, **kwargs)

    @pytest.mark.asyncio
    async def test_unknown_chunk(self, engine: ChunkMutationEngine, stored) -> None:
        with pytest.raises(ChunkNotFoundError):
            await engine.split_chunk(stored.session_id, "chunk_9", UserRole.ML, split_points=[1])


class TestGenerate:
    @pytest.mark.asyncio
    async def test_generate_from_content(
        self, engine: ChunkMutationEngine, memory_store, session_factory
    ) -> None:
        session = session_factory(texts=[], content="One.\n\nTwo.")
        await memory_store.create(session, ttl=60)

        updated = await engine.generate_chunks(session.session_id)

        assert [c.text for c in updated.chunks] == ["One.", "Two."]
        assert all(c.id.startswith("chunk_") for c in updated.chunks)

    @pytest.mark.asyncio
    async def test_structured_method(
        self, engine: ChunkMutationEngine, memory_store, session_factory, mock_llm_provider
    ) -> None:
        session = session_factory(texts=[], content="# Title\n\nBody text.")
        await memory_store.create(session, ttl=60)

        updated = await engine.generate_chunks(
            session.session_id, ChunkingOptions(method=ChunkingMethod.STRUCTURED)
        )

        assert updated.chunks
        mock_llm_provider.complete_structured.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_existing_chunks_conflict(self, engine: ChunkMutationEngine, stored) -> None:
        with pytest.raises(StateConflictError, match="already has chunks"):
            await engine.generate_chunks(stored.session_id)

    @pytest.mark.asyncio
    async def test_blank_content(self, engine: ChunkMutationEngine, memory_store, session_factory) -> None:
        session = session_factory(texts=[], content="   ")
        await memory_store.create(session, ttl=60)

        with pytest.raises(InputValidationError, match="no content"):
            await engine.generate_chunks(session.session_id)


class TestPreviewLifecycle:
    @pytest.mark.asyncio
    async def test_preview_then_return(self, engine: ChunkMutationEngine, stored) -> None:
        report = await engine.preview(stored.session_id)

        assert report.status is SessionStatus.PREVIEW
        assert report.is_valid is True
        assert report.chunk_count == 3

        with pytest.raises(StateConflictError):
            await engine.merge_chunks(stored.session_id, ["chunk_1", "chunk_2"])

        back = await engine.return_to_draft(stored.session_id)
        assert back.status is SessionStatus.DRAFT
        merged = await engine.merge_chunks(stored.session_id, ["chunk_1", "chunk_2"])
        assert len(merged.chunks) == 2

    @pytest.mark.asyncio
    async def test_preview_reports_empty_chunks(
        self, engine: ChunkMutationEngine, memory_store, session_factory
    ) -> None:
        session = session_factory(texts=["ok", ""])
        await memory_store.create(session, ttl=60)

        report = await engine.preview(session.session_id)

        assert report.is_valid is False
        assert report.warnings == ["1 empty chunks found"]

    @pytest.mark.asyncio
    async def test_preview_is_repeatable(self, engine: ChunkMutationEngine, stored) -> None:
        await engine.preview(stored.session_id)
        report = await engine.preview(stored.session_id)

        assert report.status is SessionStatus.PREVIEW

    @pytest.mark.asyncio
    async def test_return_to_draft_idempotent(self, engine: ChunkMutationEngine, stored) -> None:
        same = await engine.return_to_draft(stored.session_id)

        assert same.version == stored.version
        assert same.status is SessionStatus.DRAFT
