"""Unit tests for EmbeddingBatcher batching, validation and retries."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.services.embedding_batcher import EmbeddingBatcher
from src.utils.errors import (
    AuthenticationError,
    InputValidationError,
    UpstreamPermanentError,
    UpstreamTransientError,
)


def _mock_provider(**embed_kwargs) -> MagicMock:
    provider = MagicMock(spec=IEmbeddingProvider)
    provider.get_model_name.return_value = "text-embedding-3-small"
    provider.get_provider_name.return_value = "openai_embedding"
    provider.embed = AsyncMock(**embed_kwargs)
    return provider


class TestEmbeddingBatcher:
    @pytest.mark.asyncio
    async def test_batches_preserve_order(self, embedding_provider) -> None:
        batcher = EmbeddingBatcher(embedding_provider, batch_size=2)
        texts = ["a", "b", "c", "d", "e"]

        vectors = await batcher.embed(texts)

        assert embedding_provider.calls == [["a", "b"], ["c", "d"], ["e"]]
        assert len(vectors) == 5
        assert vectors[4] == (await embedding_provider.embed(["e"]))[0]

    @pytest.mark.asyncio
    async def test_empty_input(self, embedding_provider) -> None:
        assert await EmbeddingBatcher(embedding_provider).embed([]) == []
        assert embedding_provider.calls == []

    @pytest.mark.asyncio
    async def test_blank_text_rejected_before_any_call(self, embedding_provider) -> None:
        with pytest.raises(InputValidationError, match="index 1"):
            await EmbeddingBatcher(embedding_provider).embed(["ok", "   "])

        assert embedding_provider.calls == []

    def test_batch_size_must_be_positive(self, embedding_provider) -> None:
        with pytest.raises(ValueError):
            EmbeddingBatcher(embedding_provider, batch_size=0)

    @pytest.mark.asyncio
    async def test_transient_failure_retried(self) -> None:
        provider = _mock_provider(
            side_effect=[UpstreamTransientError("blip", provider_name="openai_embedding"), [[0.1, 0.2]]]
        )
        batcher = EmbeddingBatcher(provider, max_retries=2, backoff_base=0, timeout=5.0)

        assert await batcher.embed(["hello"]) == [[0.1, 0.2]]
        assert provider.embed.await_count == 2
        assert provider.embed.await_args.kwargs == {"timeout": 5.0}

    @pytest.mark.asyncio
    async def test_transient_exhausted_carries_context(self) -> None:
        provider = _mock_provider(side_effect=UpstreamTransientError("down", provider_name="openai_embedding"))
        batcher = EmbeddingBatcher(provider, max_retries=1, backoff_base=0)

        with pytest.raises(UpstreamTransientError) as exc_info:
            await batcher.embed(["hello"])

        context = exc_info.value.context
        assert context["attempts"] == 2
        assert context["model"] == "text-embedding-3-small"
        assert context["batch"] == 0
        assert provider.embed.await_count == 2

    @pytest.mark.asyncio
    async def test_permanent_failure_not_retried(self) -> None:
        provider = _mock_provider(side_effect=AuthenticationError("bad key", provider_name="openai_embedding"))
        batcher = EmbeddingBatcher(provider, max_retries=3, backoff_base=0)

        with pytest.raises(AuthenticationError):
            await batcher.embed(["hello"])

        assert provider.embed.await_count == 1

    @pytest.mark.asyncio
    async def test_vector_count_mismatch(self) -> None:
        provider = _mock_provider(return_value=[[0.1]])
        batcher = EmbeddingBatcher(provider)

        with pytest.raises(UpstreamPermanentError, match="1 vectors for 2 texts"):
            await batcher.embed(["a", "b"])
