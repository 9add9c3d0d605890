"""Unit tests for SemanticChunker and CharacterChunker."""

from __future__ import annotations

import pytest

from src.models.chunk import ChunkType
from src.models.document import CodeBlock, DocumentStructure, Section, Table
from src.services.chunking.character_chunker import CharacterChunker
from src.services.chunking.semantic_chunker import SemanticChunker
from src.services.chunking.structurer import MarkdownStructurer

PARAGRAPH = ("word " * 80).strip()  # 399 chars, 100 tokens


def _structure(*sections: Section, tables=None, code=None) -> DocumentStructure:
    return DocumentStructure(sections=list(sections), tables=tables or [], code_blocks=code or [])


class TestSemanticChunker:
    def test_sample_document_order(self, sample_markdown: str) -> None:
        structure = MarkdownStructurer().parse(sample_markdown)

        candidates = SemanticChunker().chunk(structure)

        assert [c.heading_path for c in candidates] == [
            ["Content"],
            ["Onboarding"],
            ["Onboarding", "Deployments"],
            ["Table", "Service | Owner"],
            ["Table", "Service | Owner"],
            ["Code", "python"],
        ]
        assert candidates[3].text == "api / platform"
        assert candidates[3].type is ChunkType.TABLE_ROW
        assert candidates[5].type is ChunkType.CODE
        assert candidates[5].text == 'print("hello")'
        assert all(c.token_count and c.token_count > 0 for c in candidates)

    def test_small_section_is_one_chunk_even_below_min(self) -> None:
        chunker = SemanticChunker(target_tokens=100, max_tokens=200, min_tokens=50)

        candidates = chunker.chunk(_structure(Section(level=1, heading="Tiny", content="Short.")))

        assert len(candidates) == 1
        assert candidates[0].heading_path == ["Tiny"]

    def test_large_section_split_with_part_suffix(self) -> None:
        chunker = SemanticChunker(target_tokens=100, max_tokens=200, min_tokens=20)
        content = "\n\n".join([PARAGRAPH] * 4)

        candidates = chunker.chunk(_structure(Section(level=1, heading="Big", content=content)))

        assert [c.heading_path for c in candidates] == [
            ["Big"],
            ["Big", "(part 2)"],
            ["Big", "(part 3)"],
            ["Big", "(part 4)"],
        ]
        assert all(c.token_count <= 200 for c in candidates)

    def test_fragment_below_min_dropped(self) -> None:
        chunker = SemanticChunker(target_tokens=100, max_tokens=200, min_tokens=20)
        content = PARAGRAPH + "\n\ntiny tail."

        candidates = chunker.chunk(_structure(Section(level=1, heading="Big", content=content)))

        assert len(candidates) == 1
        assert "tiny tail" not in candidates[0].text

    def test_part_numbers_count_emitted_pieces(self) -> None:
        chunker = SemanticChunker(target_tokens=100, max_tokens=200, min_tokens=50)
        lead = ("word " * 32).strip()  # 159 chars, 40 tokens: dropped
        content = "\n\n".join([lead, PARAGRAPH, PARAGRAPH, PARAGRAPH])

        candidates = chunker.chunk(_structure(Section(level=1, heading="Big", content=content)))

        assert [c.heading_path for c in candidates] == [
            ["Big"],
            ["Big", "(part 2)"],
            ["Big", "(part 3)"],
        ]
        assert all(c.text == PARAGRAPH for c in candidates)

    def test_empty_sections_skipped(self) -> None:
        parent = Section(level=1, heading="Parent", content="")
        parent.children.append(Section(level=2, heading="Child", content="Body."))

        candidates = SemanticChunker().chunk(_structure(parent))

        assert [c.heading_path for c in candidates] == [["Parent", "Child"]]

    def test_table_with_caption_skips_blank_rows(self) -> None:
        table = Table(headers=["a"], rows=[["", " "], ["x"]], caption="Cap")

        candidates = SemanticChunker().chunk(_structure(tables=[table]))

        assert len(candidates) == 1
        assert candidates[0].heading_path == ["Table", "Cap", "a"]
        assert candidates[0].text == "x"

    def test_oversized_code_split_on_lines(self) -> None:
        chunker = SemanticChunker(target_tokens=100, max_tokens=200, min_tokens=20)
        code = "\n".join(["a" * 40] * 50)

        candidates = chunker.chunk(_structure(code=[CodeBlock(language=None, code=code)]))

        assert [c.text.count("\n") + 1 for c in candidates] == [18, 18, 14]
        assert all(c.token_count <= 200 for c in candidates)
        assert all(c.heading_path == ["Code"] for c in candidates)

    def test_invalid_thresholds(self) -> None:
        with pytest.raises(ValueError):
            SemanticChunker(target_tokens=100, max_tokens=50, min_tokens=10)


class TestCharacterChunker:
    def test_short_text_single_chunk(self) -> None:
        candidates = CharacterChunker(chunk_size=100, overlap=10).chunk("  hello world  ")

        assert [c.text for c in candidates] == ["hello world"]
        assert candidates[0].type is ChunkType.KNOWLEDGE

    def test_empty(self) -> None:
        assert CharacterChunker(chunk_size=100, overlap=10).chunk("   ") == []

    def test_overlap_without_boundaries(self) -> None:
        text = "abcdefghij" * 30

        pieces = [c.text for c in CharacterChunker(chunk_size=100, overlap=20).chunk(text)]

        assert len(pieces) == 4
        assert pieces[0][-20:] == pieces[1][:20]
        assert pieces[-1] == text[240:]

    def test_snaps_to_space(self) -> None:
        text = "a" * 80 + " " + "b" * 100

        pieces = [c.text for c in CharacterChunker(chunk_size=100, overlap=0).chunk(text)]

        assert pieces == ["a" * 80, "b" * 100]

    def test_overlap_must_be_smaller_than_size(self) -> None:
        with pytest.raises(ValueError):
            CharacterChunker(chunk_size=100, overlap=100)
