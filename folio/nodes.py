"""Render tree nodes.

The Markdown renderer produces an ordered tuple of block nodes; paragraphs,
headings and list items hold inline spans. All nodes are frozen dataclasses
made of tuples, so two trees rendered from the same source compare equal and
can be shared between threads.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


# Inline spans


@dataclass(frozen=True)
class Text:
    text: str


@dataclass(frozen=True)
class Emphasis:
    children: tuple[Inline, ...]


@dataclass(frozen=True)
class Strong:
    children: tuple[Inline, ...]


@dataclass(frozen=True)
class Strikethrough:
    children: tuple[Inline, ...]


@dataclass(frozen=True)
class CodeSpan:
    """Inline code, verbatim."""

    code: str


@dataclass(frozen=True)
class Link:
    target: str
    children: tuple[Inline, ...]
    title: str | None = None


@dataclass(frozen=True)
class Image:
    source: str
    alt: str
    title: str | None = None


@dataclass(frozen=True)
class LineBreak:
    pass


@dataclass(frozen=True)
class SoftBreak:
    pass


@dataclass(frozen=True)
class InlineHtml:
    html: str


Inline = Union[
    Text,
    Emphasis,
    Strong,
    Strikethrough,
    CodeSpan,
    Link,
    Image,
    LineBreak,
    SoftBreak,
    InlineHtml,
]


# Blocks


@dataclass(frozen=True)
class Heading:
    level: int
    text: str
    children: tuple[Inline, ...] = ()


@dataclass(frozen=True)
class Paragraph:
    children: tuple[Inline, ...]


@dataclass(frozen=True)
class List:
    """Ordered or unordered list; each item is a tuple of blocks."""

    ordered: bool
    items: tuple[tuple[Block, ...], ...]
    start: int = 1
    tight: bool = True


@dataclass(frozen=True)
class CodeBlock:
    """Code sample kept verbatim and unescaped."""

    language: str | None
    text: str


@dataclass(frozen=True)
class Blockquote:
    children: tuple[Block, ...]


@dataclass(frozen=True)
class ThematicBreak:
    pass


@dataclass(frozen=True)
class Table:
    header: tuple[tuple[Inline, ...], ...]
    rows: tuple[tuple[tuple[Inline, ...], ...], ...]
    aligns: tuple[str | None, ...] = ()


@dataclass(frozen=True)
class RawHtml:
    html: str


Block = Union[
    Heading, Paragraph, List, CodeBlock, Blockquote, ThematicBreak, Table, RawHtml
]


def plain_text(spans: tuple[Inline, ...]) -> str:
    """Flatten inline spans to their text content."""
    parts: list[str] = []
    for span in spans:
        if isinstance(span, Text):
            parts.append(span.text)
        elif isinstance(span, CodeSpan):
            parts.append(span.code)
        elif isinstance(span, Image):
            parts.append(span.alt)
        elif isinstance(span, (SoftBreak, LineBreak)):
            parts.append(" ")
        elif isinstance(span, (Emphasis, Strong, Strikethrough, Link)):
            parts.append(plain_text(span.children))
    return "".join(parts)
