"""HTML serialization of render trees.

Key classes:
- TocEntry: Dataclass representing a heading for TOC generation.
- HtmlWriter: Converts a tuple of block nodes into an HTML fragment.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from mistune.util import escape, safe_entity
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

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
)


@dataclass(frozen=True)
class TocEntry:
    """Represents a heading extracted from the render tree for TOC generation.

    Attributes:
        id: Anchor ID for the heading (URL-friendly slug).
        text: The text content of the heading.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


def generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = text.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


class HtmlWriter:
    """Writes a render tree as HTML.

    A writer keeps heading id counters while writing, so use one instance
    per document.

    Attributes:
        highlight: Whether to run code blocks through Pygments.
        headings: TOC entries collected during writing.
    """

    def __init__(self, highlight: bool = True):
        self.highlight = highlight
        self.headings: list[TocEntry] = []
        self._heading_id_counts: dict[str, int] = {}
        self._used_ids: set[str] = set()

    def write(self, tree: tuple[Block, ...]) -> tuple[str, list[TocEntry]]:
        """Render blocks to HTML.

        Args:
            tree: Block nodes produced by a renderer.

        Returns:
            Tuple of (HTML fragment, list of TocEntry objects).
        """
        html = "".join(self._block(block) for block in tree)
        return html, list(self.headings)

    def _blocks(self, blocks: tuple[Block, ...], tight: bool = False) -> str:
        parts = []
        for block in blocks:
            if tight and isinstance(block, Paragraph):
                parts.append(self._inlines(block.children))
            else:
                parts.append(self._block(block))
        return "".join(parts)

    def _block(self, block: Block) -> str:
        if isinstance(block, Heading):
            return self._heading(block)
        if isinstance(block, Paragraph):
            return f"<p>{self._inlines(block.children)}</p>\n"
        if isinstance(block, CodeBlock):
            return self._code_block(block)
        if isinstance(block, List):
            return self._list(block)
        if isinstance(block, Blockquote):
            return f"<blockquote>\n{self._blocks(block.children)}</blockquote>\n"
        if isinstance(block, ThematicBreak):
            return "<hr />\n"
        if isinstance(block, Table):
            return self._table(block)
        if isinstance(block, RawHtml):
            return block.html if block.html.endswith("\n") else f"{block.html}\n"
        raise TypeError(f"Unsupported block node: {block!r}")

    def _heading(self, block: Heading) -> str:
        base_id = generate_heading_id(block.text) or "section"
        heading_id = base_id
        while heading_id in self._used_ids:
            self._heading_id_counts[base_id] = self._heading_id_counts.get(base_id, 0) + 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        self._used_ids.add(heading_id)
        self.headings.append(TocEntry(id=heading_id, text=block.text, level=block.level))
        inner = self._inlines(block.children) if block.children else escape(block.text)
        return f'<h{block.level} id="{heading_id}">{inner}</h{block.level}>\n'

    def _code_block(self, block: CodeBlock) -> str:
        code = block.text + "\n"
        if block.language and self.highlight:
            try:
                lexer = get_lexer_by_name(block.language, stripall=False)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        lang_class = (
            f' class="language-{escape(block.language)}"' if block.language else ""
        )
        return f"<pre><code{lang_class}>{escape(code)}</code></pre>\n"

    def _list(self, block: List) -> str:
        tag = "ol" if block.ordered else "ul"
        start = f' start="{block.start}"' if block.ordered and block.start != 1 else ""
        items = []
        for item in block.items:
            body = self._blocks(item, tight=block.tight)
            if not block.tight:
                body = f"\n{body}"
            items.append(f"<li>{body}</li>\n")
        return f"<{tag}{start}>\n{''.join(items)}</{tag}>\n"

    def _table(self, block: Table) -> str:
        def cell(tag: str, spans: tuple[Inline, ...], index: int) -> str:
            align = block.aligns[index] if index < len(block.aligns) else None
            style = f' style="text-align:{align}"' if align else ""
            return f"<{tag}{style}>{self._inlines(spans)}</{tag}>"

        head = "".join(cell("th", spans, i) for i, spans in enumerate(block.header))
        rows = "".join(
            "<tr>" + "".join(cell("td", spans, i) for i, spans in enumerate(row)) + "</tr>\n"
            for row in block.rows
        )
        body = f"<tbody>\n{rows}</tbody>\n" if rows else ""
        return f"<table>\n<thead>\n<tr>{head}</tr>\n</thead>\n{body}</table>\n"

    def _inlines(self, spans: tuple[Inline, ...]) -> str:
        return "".join(self._inline(span) for span in spans)

    def _inline(self, span: Inline) -> str:
        if isinstance(span, Text):
            return escape(span.text)
        if isinstance(span, Emphasis):
            return f"<em>{self._inlines(span.children)}</em>"
        if isinstance(span, Strong):
            return f"<strong>{self._inlines(span.children)}</strong>"
        if isinstance(span, Strikethrough):
            return f"<del>{self._inlines(span.children)}</del>"
        if isinstance(span, CodeSpan):
            return f"<code>{escape(span.code)}</code>"
        if isinstance(span, Link):
            title = f' title="{safe_entity(span.title)}"' if span.title else ""
            return f'<a href="{safe_entity(span.target)}"{title}>{self._inlines(span.children)}</a>'
        if isinstance(span, Image):
            title = f' title="{safe_entity(span.title)}"' if span.title else ""
            return f'<img src="{safe_entity(span.source)}" alt="{escape(span.alt)}"{title} />'
        if isinstance(span, LineBreak):
            return "<br />\n"
        if isinstance(span, SoftBreak):
            return "\n"
        if isinstance(span, InlineHtml):
            return span.html
        raise TypeError(f"Unsupported inline node: {span!r}")


def render_html(
    tree: tuple[Block, ...], highlight: bool = True
) -> tuple[str, list[TocEntry]]:
    """Convenience wrapper writing a tree with a fresh HtmlWriter."""
    return HtmlWriter(highlight=highlight).write(tree)
