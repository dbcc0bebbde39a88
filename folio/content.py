"""Content processing for Folio.

This module discovers content files, turns each one into an immutable
ContentUnit, and renders units into RenderedUnit records.

Key classes:
- ContentUnit: Frozen dataclass representing one post or page.
- RenderedUnit: A unit together with its render tree and HTML.
- FileContentLoader: Discovers content files in a source tree.
- ContentUnitBuilder: Builds ContentUnit instances from source text.

Construction is two-phase: parsing yields the immutable ContentUnit, and the
rendering stage computes the tree once into a separate RenderedUnit.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Any

from .errors import InvalidField
from .frontmatter import parse_front_matter
from .html_writer import TocEntry, render_html
from .nodes import Block, Paragraph, plain_text
from .renderers import RendererRegistry, default_renderer_registry
from .utils import (
    extract_date_from_name,
    is_html,
    is_markdown,
    parse_date,
    slugify,
    titleize,
    unique,
)

logger = logging.getLogger(__name__)

POSTS_DIR = "_posts"
EXCERPT_LIMIT = 160


@dataclass(frozen=True)
class ContentUnit:
    """Represents one post or page.

    Attributes:
        id: Source path relative to the source root (POSIX form).
        kind: "post" for files under a _posts directory, otherwise "page".
        title: Human-readable title.
        body: Raw body text after the front matter.
        source_type: "markdown" or "html".
        slug: URL-friendly slug from the filename.
        date: Publication date; always set for posts.
        layout: Name of the layout to wrap the unit in, if any.
        categories: Categories in display order, de-duplicated.
        tags: Tags in display order, de-duplicated.
        permalink: Explicit permalink pattern, if any.
        published: False when front matter sets ``published: false``.
        front_matter: The complete front matter, unknown keys included.
        body_line: Number of source lines preceding the body.
    """

    id: str
    kind: str
    title: str
    body: str
    source_type: str
    slug: str
    date: datetime | None = None
    layout: str | None = None
    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    permalink: str | None = None
    published: bool = True
    front_matter: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({}), compare=False
    )
    body_line: int = 0

    @property
    def is_post(self) -> bool:
        return self.kind == "post"

    @property
    def source_path(self) -> PurePosixPath:
        return PurePosixPath(self.id)


@dataclass(frozen=True)
class RenderedUnit:
    """A content unit with its render tree computed.

    Attributes:
        unit: The parsed unit.
        tree: Block nodes produced by the renderer.
        html: HTML fragment written from the tree.
        toc: Headings for table-of-contents generation.
        excerpt: Short plain-text summary.
    """

    unit: ContentUnit
    tree: tuple[Block, ...]
    html: str
    toc: tuple[TocEntry, ...] = ()
    excerpt: str = ""

    @property
    def id(self) -> str:
        return self.unit.id


class FileContentLoader:
    """Loads content files from a directory.

    Directories starting with ``_`` or ``.`` are internal (layouts, output,
    VCS metadata) and skipped, except ``_posts``.

    Attributes:
        source_root: Directory containing site content.
    """

    def __init__(self, source_root: Path, exclude: Iterable[Path] = ()):
        self.source_root = source_root
        self.exclude = [p.resolve() for p in exclude]

    def iter_files(self) -> list[Path]:
        """List all content files, sorted by relative path.

        Returns:
            List of paths to content files.
        """
        files: list[Path] = []
        for path in sorted(self.source_root.rglob("*")):
            if path.is_dir():
                continue
            rel = path.relative_to(self.source_root)
            if any(_is_internal(part) for part in rel.parts[:-1]):
                continue
            if rel.name.startswith(("_", ".")):
                continue
            if self._excluded(path):
                continue
            if is_markdown(path) or is_html(path):
                files.append(path)
        return files

    def _excluded(self, path: Path) -> bool:
        resolved = path.resolve()
        return any(
            resolved == excluded or excluded in resolved.parents
            for excluded in self.exclude
        )


def _is_internal(part: str) -> bool:
    return part.startswith(".") or (part.startswith("_") and part != POSTS_DIR)


class ContentUnitBuilder:
    """Builds ContentUnit objects from source files.

    Attributes:
        source_root: Directory the unit ids are relative to.
        renderer_registry: Registry used to classify the source type.
    """

    def __init__(
        self,
        source_root: Path,
        renderer_registry: RendererRegistry | None = None,
    ):
        self.source_root = source_root
        self.renderer_registry = renderer_registry or default_renderer_registry

    def build(self, path: Path) -> ContentUnit:
        """Build a ContentUnit from a source file."""
        unit_id = path.relative_to(self.source_root).as_posix()
        return self.build_from_text(unit_id, path.read_text(encoding="utf-8"))

    def build_from_text(self, unit_id: str, text: str) -> ContentUnit:
        """Build a ContentUnit from source text.

        Args:
            unit_id: Source path relative to the source root.
            text: Raw file content.

        Returns:
            The parsed unit.

        Raises:
            MalformedFrontMatter: If the front matter block is missing or invalid.
            InvalidField: If a known field has an unusable value.
        """
        front_matter, body = parse_front_matter(text, unit_id)
        source = PurePosixPath(unit_id)
        directories = source.parts[:-1]
        kind = "post" if POSTS_DIR in directories else "page"

        renderer = self.renderer_registry.get_renderer(Path(source.name))
        source_type = renderer.source_type if renderer else "html"

        categories = list(self._path_categories(directories)) if kind == "post" else []
        categories.extend(_string_list(front_matter.get("category"), "category", unit_id))
        categories.extend(
            _string_list(front_matter.get("categories"), "categories", unit_id)
        )
        tags = _string_list(front_matter.get("tags"), "tags", unit_id)

        title = front_matter.get("title")
        return ContentUnit(
            id=unit_id,
            kind=kind,
            title=str(title) if title is not None else titleize(source.name),
            body=body,
            source_type=source_type,
            slug=slugify(_stem(source.name)),
            date=self._date(front_matter, source, kind, unit_id),
            layout=_optional_str(front_matter, "layout", unit_id),
            categories=unique(categories),
            tags=unique(tags),
            permalink=_optional_str(front_matter, "permalink", unit_id),
            published=front_matter.get("published", True) is not False,
            front_matter=MappingProxyType(dict(front_matter)),
            body_line=text[: len(text) - len(body)].count("\n"),
        )

    @staticmethod
    def _path_categories(directories: tuple[str, ...]) -> list[str]:
        """Directories above ``_posts`` become categories."""
        index = directories.index(POSTS_DIR)
        return [part for part in directories[:index] if not _is_internal(part)]

    @staticmethod
    def _date(
        front_matter: Mapping[str, Any],
        source: PurePosixPath,
        kind: str,
        unit_id: str,
    ) -> datetime | None:
        raw = front_matter.get("date")
        if raw is not None:
            try:
                return parse_date(raw)
            except ValueError as exc:
                if kind == "post":
                    raise InvalidField("date", unit_id, str(exc)) from exc
                logger.warning("%s: ignoring unparseable date %r", unit_id, raw)
                return None
        if kind != "post":
            return None
        date = extract_date_from_name(_stem(source.name))
        if date is None:
            raise InvalidField(
                "date", unit_id, "posts need a YYYY-MM-DD filename prefix or a date"
            )
        return date


def _stem(name: str) -> str:
    return re.sub(r"\.(md|markdown|html)$", "", name, flags=re.IGNORECASE)


def _string_list(value: Any, name: str, unit_id: str) -> list[str]:
    """Normalize a categories/tags value into a list of strings.

    Strings are split on whitespace; lists keep one term per entry.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    if isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if isinstance(item, (dict, list, tuple)):
                raise InvalidField(name, unit_id, f"unexpected entry {item!r}")
            if item is not None:
                items.append(str(item))
        return items
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return [str(value)]
    raise InvalidField(name, unit_id, f"expected a list or string, got {value!r}")


def _optional_str(front_matter: Mapping[str, Any], key: str, unit_id: str) -> str | None:
    value = front_matter.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidField(key, unit_id, f"expected a string, got {value!r}")
    return value


def render_unit(
    unit: ContentUnit,
    renderer_registry: RendererRegistry | None = None,
    highlight: bool = True,
) -> RenderedUnit:
    """Render a unit's body into a RenderedUnit.

    Args:
        unit: Parsed content unit.
        renderer_registry: Optional custom renderer registry.
        highlight: Whether code blocks are highlighted with Pygments.

    Returns:
        The rendered unit.
    """
    registry = renderer_registry or default_renderer_registry
    renderer = registry.for_source_type(unit.source_type)
    if renderer is None:
        raise ValueError(f"No renderer for source type {unit.source_type!r}")
    tree = renderer.render(unit.body, unit.id, unit.body_line)
    html, toc = render_html(tree, highlight=highlight)
    return RenderedUnit(
        unit=unit,
        tree=tree,
        html=html,
        toc=tuple(toc),
        excerpt=_excerpt(unit, tree),
    )


def _excerpt(unit: ContentUnit, tree: tuple[Block, ...]) -> str:
    """Front matter excerpt/description, else the first paragraph."""
    for key in ("excerpt", "description"):
        value = unit.front_matter.get(key)
        if isinstance(value, str) and value.strip():
            return " ".join(value.split())
    for block in tree:
        if isinstance(block, Paragraph):
            text = " ".join(plain_text(block.children).split())
            if text:
                return text[:EXCERPT_LIMIT]
    return ""
