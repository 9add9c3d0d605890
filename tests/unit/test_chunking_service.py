"""Unit tests for ChunkingService method dispatch and fallbacks."""

from __future__ import annotations

import pytest

from src.models.chunk import ChunkingMethod, ChunkingOptions, ChunkType
from src.models.session import SourceType
from src.services.chunking.chunking_service import ChunkingService, html_to_text
from src.services.chunking.llm_chunker import LLMChunker
from src.services.chunking.semantic_chunker import SemanticChunker
from src.utils.errors import InputValidationError


@pytest.fixture
def service(mock_llm_provider) -> ChunkingService:
    return ChunkingService(
        semantic_chunker=SemanticChunker(),
        llm_chunker=LLMChunker(llm=mock_llm_provider, max_retries=0, backoff_base=0),
        llm=mock_llm_provider,
    )


class TestHtmlToText:
    def test_blocks_become_paragraphs(self) -> None:
        html = "<h1>Title</h1><p>First.</p><script>var x = 1;</script><p>Second.</p>"

        assert html_to_text(html) == "Title\n\nFirst.\n\nSecond."


class TestChunkingService:
    @pytest.mark.asyncio
    async def test_default_method_is_llm(self, service: ChunkingService, mock_llm_provider) -> None:
        result = await service.chunk("A.\n\nB.\n\nC.")

        assert [c.text for c in result] == ["A.", "B.", "C."]
        mock_llm_provider.complete_structured.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_blank_content_rejected(self, service: ChunkingService) -> None:
        with pytest.raises(InputValidationError):
            await service.chunk(" \r\n ")

    @pytest.mark.asyncio
    async def test_structured_method(self, service: ChunkingService, mock_llm_provider, sample_markdown) -> None:
        result = await service.chunk(sample_markdown, ChunkingOptions(method=ChunkingMethod.STRUCTURED))

        assert len(result) == 6
        assert result[3].type is ChunkType.TABLE_ROW
        mock_llm_provider.complete_structured.assert_not_called()

    @pytest.mark.asyncio
    async def test_llm_unavailable_falls_back_to_structured(self, service: ChunkingService, mock_llm_provider) -> None:
        mock_llm_provider.is_available.return_value = False

        result = await service.chunk("# Title\n\nBody text.")

        assert [c.heading_path for c in result] == [["Title"]]
        mock_llm_provider.complete_structured.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_llm_chunker_falls_back(self) -> None:
        service = ChunkingService(semantic_chunker=SemanticChunker())

        assert service.llm_available is False
        result = await service.chunk("Plain text only.")

        assert [c.text for c in result] == ["Plain text only."]
        assert result[0].heading_path == ["Content"]

    @pytest.mark.asyncio
    async def test_character_method(self, service: ChunkingService) -> None:
        text = "word " * 100
        options = ChunkingOptions(method=ChunkingMethod.CHARACTER, chunk_size=200, overlap=20)

        result = await service.chunk(text, options)

        assert len(result) > 1
        assert all(len(c.text) <= 200 for c in result)

    @pytest.mark.asyncio
    async def test_character_overlap_must_be_smaller(self, service: ChunkingService) -> None:
        options = ChunkingOptions(method=ChunkingMethod.CHARACTER, chunk_size=100, overlap=100)

        with pytest.raises(InputValidationError):
            await service.chunk("some text", options)

    @pytest.mark.asyncio
    async def test_wiki_html_flattened_for_llm(self, service: ChunkingService, mock_llm_provider) -> None:
        await service.chunk("<h1>Guide</h1><p>Intro.</p>", source_type=SourceType.WIKI)

        prompt = mock_llm_provider.complete_structured.call_args.kwargs["user_prompt"]
        assert "<p>" not in prompt
        assert prompt == "Guide\n\nIntro."

    @pytest.mark.asyncio
    async def test_wiki_html_parsed_for_structured(self, service: ChunkingService) -> None:
        result = await service.chunk(
            "<h1>Guide</h1><p>Intro.</p>",
            ChunkingOptions(method=ChunkingMethod.STRUCTURED),
            SourceType.WIKI,
        )

        assert [(c.heading_path, c.text) for c in result] == [(["Guide"], "Intro.")]
