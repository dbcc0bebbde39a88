"""Content renderers for Folio.

This module turns a unit's body into a render tree (see ``folio.nodes``).
Each renderer handles a single type of content.

Key classes:
- ExactFence: mistune plugin for fenced code blocks.
- MarkdownRenderer: Renders Markdown through mistune's AST.
- HTMLRenderer: Passes through HTML content as a single raw block.
- RendererRegistry: Picks a renderer for a source file.

A fence only closes on a line carrying the same character repeated exactly
the opening length, so code samples containing fence-like lines of another
length or character stay in one block. This holds at every depth, inside
block quotes and list items as well as at the top level. An opening fence
that never closes raises UnterminatedCodeBlock instead of swallowing the
rest of its container.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import mistune
from mistune.block_parser import BlockParser
from mistune.core import BlockState
from mistune.helpers import unescape_char
from mistune.util import unescape

from .errors import UnterminatedCodeBlock
from .nodes import (
    Block,
    Blockquote,
    CodeBlock,
    CodeSpan,
    Emphasis,
    Heading,
    Image,
    Inline,
    InlineHtml,
    LineBreak,
    Link,
    List,
    Paragraph,
    RawHtml,
    SoftBreak,
    Strikethrough,
    Strong,
    Table,
    Text,
    ThematicBreak,
    plain_text,
)
from .protocols import ContentRenderer
from .utils import is_html, is_markdown

MARKDOWN_PLUGINS = ["strikethrough", "table", "url"]


class ExactFence:
    """mistune plugin replacing the ``fenced_code`` block rule.

    mistune closes a fence on any run at least as long as the opener; this
    rule only accepts a run of exactly the same length. Containers hand
    their stripped content back to the same rule, so nested fences follow
    it too.

    Args:
        source: The Markdown being rendered, used to report line numbers.
        unit_id: Id of the unit, for error reporting.
        line_offset: Number of source lines preceding ``source``.
    """

    def __init__(self, source: str, unit_id: str | None = None, line_offset: int = 0):
        self.lines = source.replace("\r\n", "\n").replace("\r", "\n").split("\n")
        self.unit_id = unit_id
        self.line_offset = line_offset

    def __call__(self, md: mistune.Markdown) -> None:
        md.block.register("fenced_code", None, self.parse_fenced_code)

    def parse_fenced_code(
        self, block: BlockParser, m: re.Match, state: BlockState
    ) -> int | None:
        indent = m.group("fenced_1")
        fence = m.group("fenced_2")
        info = m.group("fenced_3")
        # Info strings of backtick fences cannot contain backticks
        if fence[0] == "`" and "`" in info:
            return None

        closing = re.compile(r"^ {0,3}" + re.escape(fence) + r"[ \t]*(?:\n|$)", re.M)
        start = m.end() + 1
        end = closing.search(state.src, start)
        if end is None:
            line = self.source_line(state, m.start())
            raise UnterminatedCodeBlock(self.unit_id, line, fence)

        body = state.src[start : end.start()]
        if indent:
            body = "\n".join(_dedent(line, len(indent)) for line in body.split("\n"))
        token: dict[str, Any] = {
            "type": "block_code",
            "raw": body,
            "style": "fenced",
            "marker": fence,
        }
        info = unescape(unescape_char(info)).strip()
        if info:
            token["attrs"] = {"info": info}
        state.append_token(token)
        return end.end()

    def source_line(self, state: BlockState, pos: int) -> int:
        """Line number in the unit's file of position ``pos`` in ``state``."""
        line = state.src.count("\n", 0, pos) + 1 + self.line_offset
        if state.parent is None:
            return line
        return line + self._container_origin(state.src)

    def _container_origin(self, text: str) -> int:
        # Container content is its source lines with prefixes (quote markers,
        # list indentation) stripped, so each of its lines is a suffix of the
        # matching source line.
        inner = [_squash(line) for line in text.split("\n")]
        outer = [_squash(line) for line in self.lines]

        def aligned(origin: int) -> bool:
            for offset, line in enumerate(inner):
                index = origin + offset
                if index >= len(outer):
                    if line:
                        return False
                elif not outer[index].endswith(line):
                    return False
            return True

        return next((origin for origin in range(len(outer)) if aligned(origin)), 0)


def _squash(line: str) -> str:
    return " ".join(line.split())


def _dedent(line: str, width: int) -> str:
    removed = 0
    while removed < width and line[removed : removed + 1] == " ":
        removed += 1
    return line[removed:]


class MarkdownRenderer:
    """Renders Markdown content to a render tree.

    The body is parsed with mistune in AST mode and converted into frozen
    nodes. A fresh mistune instance is created per call so renders share
    no state.
    """

    @property
    def source_type(self) -> str:
        """Return the source type identifier."""
        return "markdown"

    def can_render(self, path: Path) -> bool:
        """Check if this renderer can handle the given file."""
        return is_markdown(path)

    def render(
        self, content: str, unit_id: str | None = None, line_offset: int = 0
    ) -> tuple[Block, ...]:
        """Render Markdown content to a tuple of block nodes.

        Args:
            content: Markdown source content.
            unit_id: Id of the unit being rendered.
            line_offset: Number of source lines before the body.

        Returns:
            Block nodes in document order.

        Raises:
            UnterminatedCodeBlock: If a fence is opened but never closed.
        """
        plugins = [*MARKDOWN_PLUGINS, ExactFence(content, unit_id, line_offset)]
        markdown = mistune.create_markdown(renderer="ast", plugins=plugins)
        return tuple(self._convert_blocks(markdown(content)))

    def _convert_blocks(self, tokens: list[dict[str, Any]]) -> list[Block]:
        blocks: list[Block] = []
        for token in tokens:
            block = self._convert_block(token)
            if block is not None:
                blocks.append(block)
        return blocks

    def _convert_block(self, token: dict[str, Any]) -> Block | None:
        kind = token["type"]
        attrs = token.get("attrs") or {}
        if kind == "blank_line":
            return None
        if kind == "heading":
            children = self._convert_inlines(token.get("children", []))
            return Heading(
                level=attrs.get("level", 1),
                text=plain_text(children),
                children=children,
            )
        if kind in ("paragraph", "block_text"):
            return Paragraph(self._convert_inlines(token.get("children", [])))
        if kind == "block_code":
            info = (attrs.get("info") or "").strip()
            code = token.get("raw", "")
            if code.endswith("\n"):
                code = code[:-1]
            return CodeBlock(language=info.split()[0] if info else None, text=code)
        if kind == "block_quote":
            return Blockquote(tuple(self._convert_blocks(token.get("children", []))))
        if kind == "thematic_break":
            return ThematicBreak()
        if kind == "list":
            items = tuple(
                tuple(self._convert_blocks(item.get("children", [])))
                for item in token.get("children", [])
            )
            return List(
                ordered=bool(attrs.get("ordered")),
                items=items,
                start=attrs.get("start", 1),
                tight=bool(token.get("tight", True)),
            )
        if kind == "table":
            return self._convert_table(token)
        if kind == "block_html":
            return RawHtml(token.get("raw", ""))
        if "children" in token:
            return Paragraph(self._convert_inlines(token["children"]))
        return RawHtml(token.get("raw", ""))

    def _convert_table(self, token: dict[str, Any]) -> Table:
        header: tuple[tuple[Inline, ...], ...] = ()
        aligns: tuple[str | None, ...] = ()
        rows: list[tuple[tuple[Inline, ...], ...]] = []
        for part in token.get("children", []):
            if part["type"] == "table_head":
                cells = part.get("children", [])
                header = tuple(self._convert_inlines(c.get("children", [])) for c in cells)
                aligns = tuple((c.get("attrs") or {}).get("align") for c in cells)
            elif part["type"] == "table_body":
                for row in part.get("children", []):
                    rows.append(
                        tuple(
                            self._convert_inlines(c.get("children", []))
                            for c in row.get("children", [])
                        )
                    )
        return Table(header=header, rows=tuple(rows), aligns=aligns)

    def _convert_inlines(self, tokens: list[dict[str, Any]]) -> tuple[Inline, ...]:
        spans: list[Inline] = []
        for token in tokens:
            span = self._convert_inline(token)
            # Merge adjacent text runs; mistune splits them around markers
            if isinstance(span, Text) and spans and isinstance(spans[-1], Text):
                spans[-1] = Text(spans[-1].text + span.text)
            else:
                spans.append(span)
        return tuple(spans)

    def _convert_inline(self, token: dict[str, Any]) -> Inline:
        kind = token["type"]
        attrs = token.get("attrs") or {}
        if kind == "text":
            return Text(unescape(token.get("raw", "")))
        if kind == "emphasis":
            return Emphasis(self._convert_inlines(token.get("children", [])))
        if kind == "strong":
            return Strong(self._convert_inlines(token.get("children", [])))
        if kind == "strikethrough":
            return Strikethrough(self._convert_inlines(token.get("children", [])))
        if kind == "codespan":
            return CodeSpan(token.get("raw", ""))
        if kind == "link":
            return Link(
                target=attrs.get("url", ""),
                children=self._convert_inlines(token.get("children", [])),
                title=attrs.get("title"),
            )
        if kind == "image":
            alt = plain_text(self._convert_inlines(token.get("children", [])))
            return Image(source=attrs.get("url", ""), alt=alt, title=attrs.get("title"))
        if kind == "linebreak":
            return LineBreak()
        if kind == "softbreak":
            return SoftBreak()
        if kind == "inline_html":
            return InlineHtml(token.get("raw", ""))
        if "children" in token:
            return Text(plain_text(self._convert_inlines(token["children"])))
        return Text(unescape(token.get("raw", "")))


class HTMLRenderer:
    """Passes through HTML content unchanged as a single raw block."""

    @property
    def source_type(self) -> str:
        """Return the source type identifier."""
        return "html"

    def can_render(self, path: Path) -> bool:
        """Check if this renderer can handle the given file."""
        return is_html(path)

    def render(
        self, content: str, unit_id: str | None = None, line_offset: int = 0
    ) -> tuple[Block, ...]:
        """Wrap HTML content in a RawHtml block."""
        if not content.strip():
            return ()
        return (RawHtml(content),)


class RendererRegistry:
    """Registry for content renderers.

    This registry allows adding new renderers without modifying
    existing code.
    """

    def __init__(self):
        """Initialize the registry with default renderers."""
        self._renderers: list[ContentRenderer] = []
        self.register(MarkdownRenderer())
        self.register(HTMLRenderer())

    def register(self, renderer: ContentRenderer) -> None:
        """Register a new renderer.

        Args:
            renderer: A ContentRenderer implementation.
        """
        self._renderers.append(renderer)

    def get_renderer(self, path: Path) -> ContentRenderer | None:
        """Get the appropriate renderer for a file.

        Returns:
            The first renderer that can handle the file, or None.
        """
        for renderer in self._renderers:
            if renderer.can_render(path):
                return renderer
        return None

    def for_source_type(self, source_type: str) -> ContentRenderer | None:
        """Get the renderer registered for a source type, or None."""
        for renderer in self._renderers:
            if renderer.source_type == source_type:
                return renderer
        return None


default_renderer_registry = RendererRegistry()
