"""Unit tests for the exception hierarchy and its HTTP mapping."""

from __future__ import annotations

import pytest

from src.api.middleware import status_code_for
from src.utils.errors import (
    AuthenticationError,
    ChunkingParseError,
    ChunkNotFoundError,
    CollectionNotFoundError,
    ConcurrentModificationError,
    ConfigurationError,
    ForbiddenError,
    IngestionError,
    InputValidationError,
    KMSError,
    RAGError,
    RateLimitError,
    SessionNotFoundError,
    StateConflictError,
    UpstreamPermanentError,
    UpstreamTimeoutError,
    UpstreamTransientError,
)


class TestKMSError:
    def test_str_prefixes_provider(self) -> None:
        assert str(KMSError("boom", provider_name="openai")) == "[openai] boom"
        assert str(KMSError("boom")) == "boom"

    def test_with_context_skips_none(self) -> None:
        error = KMSError("boom", context={"a": 1})

        returned = error.with_context(b=2, c=None)

        assert returned is error
        assert error.context == {"a": 1, "b": 2}

    def test_retryable_defaults_by_class(self) -> None:
        assert UpstreamTransientError().retryable is True
        assert RateLimitError(retry_after=3).retryable is True
        assert RAGError().retryable is True
        assert UpstreamPermanentError().retryable is False
        assert InputValidationError().retryable is False
        assert ConcurrentModificationError("s1", 3).retryable is True

    def test_chunking_parse_error_retryable_flag(self) -> None:
        assert ChunkingParseError(retryable=True).retryable is True
        error = ChunkingParseError("bad", raw_response="{}")
        assert error.retryable is False
        assert error.raw_response == "{}"

    def test_not_found_context(self) -> None:
        assert SessionNotFoundError("s1").context == {"session_id": "s1"}
        assert ChunkNotFoundError("c1", "s1").context == {"chunk_id": "c1", "session_id": "s1"}
        assert CollectionNotFoundError("docs").message == "Collection docs not found"

    def test_kinds(self) -> None:
        assert InputValidationError().kind == "validation"
        assert SessionNotFoundError("s").kind == "not_found"
        assert ConcurrentModificationError("s", 1).kind == "state_conflict"
        assert RateLimitError().kind == "upstream_transient"
        assert ChunkingParseError().kind == "upstream_permanent"


class TestStatusCodeFor:
    @pytest.mark.parametrize(
        ("error", "status"),
        [
            (InputValidationError(), 400),
            (SessionNotFoundError("s"), 404),
            (ChunkNotFoundError("c"), 404),
            (CollectionNotFoundError("x"), 404),
            (StateConflictError(), 409),
            (ConcurrentModificationError("s", 2), 409),
            (ForbiddenError(), 403),
            (RateLimitError(), 429),
            (UpstreamTimeoutError(), 504),
            (UpstreamTransientError(), 502),
            (RAGError(), 502),
            (ChunkingParseError(), 422),
            (AuthenticationError(), 502),
            (UpstreamPermanentError(), 502),
            (IngestionError(retryable=True), 502),
            (IngestionError(retryable=False), 400),
            (ConfigurationError(), 500),
            (KMSError(), 500),
        ],
    )
    def test_mapping(self, error: KMSError, status: int) -> None:
        assert status_code_for(error) == status
