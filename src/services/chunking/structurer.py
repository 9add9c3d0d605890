"""Document structuring -- raw text into sections, tables and code blocks.

Two parsers produce the same :class:`~src.models.document.DocumentStructure`:

1. :class:`MarkdownStructurer` -- a single left-to-right line scan with three
   mutually exclusive modes (in code fence, in table, in heading content).
   Used for manual and web sources.

2. :class:`HTMLStructurer` -- BeautifulSoup walk over wiki storage HTML:
   ``h1``-``h6`` sections, ``<table>`` elements (``thead`` or first row as
   headers, ``<caption>``), ``<pre>`` blocks and wiki code macros.

Both feed the flat section list through :func:`build_hierarchy`, a stack
build that pops until the top-of-stack level is strictly less than the new
section's level.  A document with no headings is wrapped in one synthetic
level-1 section called "Content".
"""

from __future__ import annotations

import re
from collections.abc import Iterator

import structlog
from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from src.models.document import CodeBlock, DocumentStructure, Section, Table
from src.models.session import SourceType

logger = structlog.get_logger(logger_name=__name__)

_HEADING_LINE = re.compile(r"^(#{1,6})\s+(.+)$")
_FENCE_LANGUAGE = re.compile(r"```\s*([\w+#.-]+)?")
_HTML_HINT = re.compile(r"^\s*<(?:!doctype|html|body|div|p|h[1-6]|table|ac:|ul|ol)\b", re.IGNORECASE)

_SYNTHETIC_HEADING = "Content"

_HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]
_BLOCK_TAGS = frozenset(
    {"p", "div", "li", "br", "tr", "ul", "ol", "blockquote", "section", "article", "dd", "dt"}
)


# ---------------------------------------------------------------------------
# Hierarchy helpers
# ---------------------------------------------------------------------------


def build_hierarchy(sections: list[Section]) -> list[Section]:
    """Nest a flat, document-ordered section list by heading level.

    Returns the root sections; children are attached in place.
    """
    roots: list[Section] = []
    stack: list[Section] = []

    for section in sections:
        while stack and stack[-1].level >= section.level:
            stack.pop()
        if stack:
            stack[-1].children.append(section)
        else:
            roots.append(section)
        stack.append(section)

    return roots


def flatten_sections(
    sections: list[Section],
    parent_path: list[str] | None = None,
) -> Iterator[tuple[Section, list[str]]]:
    """Yield ``(section, heading_path)`` depth-first, in document order."""
    base = parent_path or []
    for section in sections:
        path = [*base, section.heading] if section.heading else list(base)
        yield section, path
        yield from flatten_sections(section.children, path)


def heading_paths(structure: DocumentStructure) -> list[list[str]]:
    """Return every section's breadcrumb, in document order."""
    return [path for _, path in flatten_sections(structure.sections)]


def _synthetic_section(text: str, start: int = 0) -> Section:
    return Section(
        level=1,
        heading=_SYNTHETIC_HEADING,
        content=text.strip(),
        start_offset=start,
        end_offset=start + len(text),
    )


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------


class MarkdownStructurer:
    """Line-scan parser for markdown-flavoured text."""

    def parse(self, text: str) -> DocumentStructure:
        lines = text.split("\n")
        flat: list[Section] = []
        tables: list[Table] = []
        code_blocks: list[CodeBlock] = []

        position = 0
        current: Section | None = None
        body: list[str] = []
        preamble: list[str] = []

        in_code = False
        code_lines: list[str] = []
        code_language: str | None = None
        table_lines: list[str] = []

        def finish_section() -> None:
            nonlocal body
            if current is not None:
                current.content = "\n".join(body).strip()
                current.end_offset = position
                flat.append(current)
            body = []

        def finish_table() -> None:
            nonlocal table_lines
            table = self._parse_table(table_lines)
            if table is not None:
                tables.append(table)
            table_lines = []

        for line in lines:
            line_start = position
            position += len(line) + 1
            stripped = line.strip()

            if stripped.startswith("```"):
                if in_code:
                    if code_lines:
                        code_blocks.append(CodeBlock(language=code_language, code="\n".join(code_lines)))
                    in_code, code_lines, code_language = False, [], None
                else:
                    if table_lines:
                        finish_table()
                    in_code = True
                    match = _FENCE_LANGUAGE.match(stripped)
                    code_language = match.group(1) if match and match.group(1) else None
                continue

            if in_code:
                code_lines.append(line)
                continue

            if stripped.startswith("|"):
                table_lines.append(stripped)
                continue
            if table_lines:
                finish_table()

            heading = _HEADING_LINE.match(line)
            if heading:
                finish_section()
                current = Section(
                    level=len(heading.group(1)),
                    heading=heading.group(2).strip(),
                    start_offset=line_start,
                    end_offset=position,
                )
                continue

            target = body if current is not None else preamble
            if stripped or target:
                target.append(line)

        # Unterminated fence: keep what was collected.
        if in_code and code_lines:
            code_blocks.append(CodeBlock(language=code_language, code="\n".join(code_lines)))
        if table_lines:
            finish_table()
        finish_section()

        preamble_text = "\n".join(preamble).strip()
        if preamble_text:
            flat.insert(0, _synthetic_section(preamble_text))

        return DocumentStructure(
            sections=build_hierarchy(flat),
            tables=tables,
            code_blocks=code_blocks,
        )

    @staticmethod
    def _parse_table(lines: list[str]) -> Table | None:
        """First row is the header, second the separator; the rest are data."""
        if len(lines) < 2:
            return None

        headers = [cell.strip() for cell in lines[0].split("|")]
        headers = [cell for cell in headers if cell]
        if not headers:
            return None

        rows: list[list[str]] = []
        for line in lines[2:]:
            cells = [cell.strip() for cell in line.split("|")][1 : len(headers) + 1]
            if not cells:
                continue
            cells.extend([""] * (len(headers) - len(cells)))
            rows.append(cells[: len(headers)])

        return Table(headers=headers, rows=rows, caption=None)


# ---------------------------------------------------------------------------
# HTML (wiki storage format)
# ---------------------------------------------------------------------------


class HTMLStructurer:
    """BeautifulSoup parser for wiki storage HTML."""

    def parse(self, html: str) -> DocumentStructure:
        soup = BeautifulSoup(html, "html.parser")

        # Tables and code are lifted out first so their text does not leak
        # into the surrounding section bodies.
        code_blocks = self._extract_code(soup)
        tables = self._extract_tables(soup)

        flat: list[Section] = []
        parts: list[str] = []
        preamble: list[str] = []
        current: Section | None = None
        offset = 0

        def finish_section() -> None:
            nonlocal parts
            if current is not None:
                current.content = _clean_text("".join(parts))
                current.end_offset = offset
                flat.append(current)
            parts = []

        for node in soup.descendants:
            if isinstance(node, Tag):
                if node.name in _HEADING_TAGS:
                    finish_section()
                    current = Section(
                        level=int(node.name[1]),
                        heading=node.get_text(" ", strip=True),
                        start_offset=offset,
                        end_offset=offset,
                    )
                elif node.name in _BLOCK_TAGS:
                    (parts if current is not None else preamble).append("\n")
                continue
            if not isinstance(node, NavigableString) or isinstance(node, Comment):
                continue
            if node.find_parent(_HEADING_TAGS) is not None:
                continue
            value = str(node)
            offset += len(value)
            (parts if current is not None else preamble).append(value)

        finish_section()

        preamble_text = _clean_text("".join(preamble))
        if preamble_text:
            flat.insert(0, _synthetic_section(preamble_text))

        return DocumentStructure(
            sections=build_hierarchy(flat),
            tables=tables,
            code_blocks=code_blocks,
        )

    @staticmethod
    def _extract_code(soup: BeautifulSoup) -> list[CodeBlock]:
        blocks: list[CodeBlock] = []

        for macro in soup.find_all("ac:structured-macro", attrs={"ac:name": "code"}):
            language = None
            for param in macro.find_all("ac:parameter"):
                if param.get("ac:name") == "language":
                    language = param.get_text(strip=True) or None
            body = macro.find("ac:plain-text-body")
            code = body.get_text() if body is not None else ""
            if code.strip():
                blocks.append(CodeBlock(language=language, code=code.strip("\n")))
            macro.decompose()

        for pre in soup.find_all("pre"):
            language = None
            inner = pre.find("code")
            classes = (inner.get("class") if inner is not None else None) or pre.get("class") or []
            for cls in classes:
                if cls.startswith("language-"):
                    language = cls.removeprefix("language-") or None
            code = pre.get_text()
            if code.strip():
                blocks.append(CodeBlock(language=language, code=code.strip("\n")))
            pre.decompose()

        return blocks

    @staticmethod
    def _extract_tables(soup: BeautifulSoup) -> list[Table]:
        tables: list[Table] = []

        for element in soup.find_all("table"):
            caption_tag = element.find("caption")
            caption = caption_tag.get_text(" ", strip=True) if caption_tag is not None else None

            rows = [
                [cell.get_text(" ", strip=True) for cell in tr.find_all(["th", "td"])]
                for tr in element.find_all("tr")
            ]
            rows = [row for row in rows if row]

            thead = element.find("thead")
            if thead is not None:
                headers = [th.get_text(" ", strip=True) for th in thead.find_all(["th", "td"])]
                data = [
                    [cell.get_text(" ", strip=True) for cell in tr.find_all(["th", "td"])]
                    for tr in element.find_all("tr")
                    if tr.find_parent("thead") is None
                ]
                data = [row for row in data if row]
            elif rows:
                headers, data = rows[0], rows[1:]
            else:
                headers, data = [], []

            if headers or data:
                tables.append(Table(headers=headers, rows=data, caption=caption or None))
            element.decompose()

        return tables


def _clean_text(text: str) -> str:
    lines = [re.sub(r"[ \t\xa0]+", " ", line).strip() for line in text.split("\n")]
    joined = "\n".join(lines)
    return re.sub(r"\n{3,}", "\n\n", joined).strip()


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def looks_like_html(text: str) -> bool:
    return bool(_HTML_HINT.match(text))


def structure_document(text: str, source_type: SourceType | str | None = None) -> DocumentStructure:
    """Parse *text* with the structurer matching its source type / shape."""
    use_html = source_type in (SourceType.WIKI, SourceType.WIKI.value) or looks_like_html(text)
    parser = HTMLStructurer() if use_html else MarkdownStructurer()
    structure = parser.parse(text)
    logger.debug(
        "document_structured",
        parser=type(parser).__name__,
        sections=sum(1 for _ in flatten_sections(structure.sections)),
        tables=len(structure.tables),
        code_blocks=len(structure.code_blocks),
    )
    return structure
