"""Layouts and layout composition for Folio.

Layouts live in ``_layouts/`` as Jinja2 templates. A layout may declare a
parent in its own front matter (``layout: default``); composition renders
the innermost layout first and feeds each result into the parent's
``{{ content }}`` insertion point until a layout without a parent is reached.

Key classes:
- Layout: Frozen dataclass for one named template.
- LayoutRegistry: Read-only mapping of layout names, loaded once per build.
- LayoutComposer: Wraps rendered HTML in a layout chain.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import TemplateError
from markupsafe import Markup

from .errors import (
    BuildError,
    InvalidLayout,
    LayoutCycle,
    MalformedFrontMatter,
    UnknownLayout,
    format_error_message,
)
from .frontmatter import parse_front_matter

if TYPE_CHECKING:
    from .templates import TemplateEngine

logger = logging.getLogger(__name__)

LAYOUTS_DIR = "_layouts"
LAYOUT_SUFFIXES = (".html.jinja", ".jinja", ".html")
INSERTION_POINT_RE = re.compile(r"\{\{-?\s*content(?:\s*\|\s*safe)?\s*-?\}\}")


@dataclass(frozen=True)
class Layout:
    """A named template with an optional parent.

    Attributes:
        name: Layout name (filename without suffix).
        template_body: Jinja2 source with one ``{{ content }}`` insertion point.
        parent: Name of the wrapping layout, if any.
        source: Path of the layout file, if loaded from disk.
    """

    name: str
    template_body: str
    parent: str | None = None
    source: Path | None = None


def layout_name(path: Path) -> str | None:
    """Return the layout name for a file, or None if it is not a layout."""
    for suffix in LAYOUT_SUFFIXES:
        if path.name.endswith(suffix) and len(path.name) > len(suffix):
            return path.name[: -len(suffix)]
    return None


def parse_layout(name: str, text: str, source: Path | None = None) -> Layout:
    """Build a Layout from template source.

    The front matter block is optional for layouts; when present its
    ``layout`` key names the parent.

    Raises:
        InvalidLayout: If the front matter is malformed or the template does
            not contain exactly one insertion point.
        LayoutCycle: If the layout names itself as parent.
    """
    parent = None
    body = text
    if re.match(r"---[ \t]*\r?\n", text):
        try:
            meta, body = parse_front_matter(text, name)
        except MalformedFrontMatter as exc:
            raise InvalidLayout(name, exc.message) from exc
        parent = meta.get("layout")
        if parent is not None and not isinstance(parent, str):
            raise InvalidLayout(name, f"parent layout must be a string, got {parent!r}")
    if parent == name:
        raise LayoutCycle([name, name])
    count = len(INSERTION_POINT_RE.findall(body))
    if count != 1:
        raise InvalidLayout(
            name, f"expected exactly one {{{{ content }}}} insertion point, found {count}"
        )
    return Layout(name=name, template_body=body, parent=parent or None, source=source)


class LayoutRegistry(Mapping[str, Layout]):
    """Read-only registry of layouts by name."""

    def __init__(self, layouts: Mapping[str, Layout] | None = None):
        self._layouts = dict(layouts or {})

    def __getitem__(self, key: str) -> Layout:
        return self._layouts[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._layouts)

    def __len__(self) -> int:
        return len(self._layouts)

    def chain(self, name: str, unit_id: str | None = None) -> list[Layout]:
        """Walk the parent chain starting at ``name``, innermost first.

        Raises:
            UnknownLayout: If a layout in the chain is not registered.
            LayoutCycle: If the chain revisits a layout.
        """
        chain: list[Layout] = []
        visited: list[str] = []
        current: str | None = name
        while current is not None:
            if current in visited:
                raise LayoutCycle(visited + [current], unit_id)
            layout = self._layouts.get(current)
            if layout is None:
                raise UnknownLayout(current, unit_id)
            visited.append(current)
            chain.append(layout)
            current = layout.parent
        return chain

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"LayoutRegistry({sorted(self._layouts)})"


def load_layouts(source_root: Path) -> LayoutRegistry:
    """Load every layout under ``source_root/_layouts``.

    Raises:
        InvalidLayout: For duplicate names or unusable templates.
    """
    layouts_dir = source_root / LAYOUTS_DIR
    layouts: dict[str, Layout] = {}
    if not layouts_dir.is_dir():
        return LayoutRegistry()
    for path in sorted(layouts_dir.rglob("*")):
        if not path.is_file():
            continue
        name = layout_name(path)
        if name is None:
            continue
        rel = path.relative_to(layouts_dir).parent
        if rel != Path("."):
            name = f"{rel.as_posix()}/{name}"
        if name in layouts:
            raise InvalidLayout(name, f"defined twice ({layouts[name].source} and {path})")
        layouts[name] = parse_layout(name, path.read_text(encoding="utf-8"), path)
        logger.debug("Loaded layout %s (parent: %s)", name, layouts[name].parent)
    return LayoutRegistry(layouts)


class LayoutComposer:
    """Composes rendered HTML with a layout and its ancestors.

    Attributes:
        registry: Layouts available to the build.
        engine: Template engine holding the compiled layouts.
    """

    def __init__(self, registry: LayoutRegistry, engine: TemplateEngine):
        self.registry = registry
        self.engine = engine

    def compose(
        self,
        html: str,
        layout: str | None,
        context: dict[str, Any],
        unit_id: str | None = None,
    ) -> str:
        """Wrap ``html`` in ``layout`` and each of its parents.

        Args:
            html: Rendered body HTML.
            layout: Name of the innermost layout; None leaves html untouched.
            context: Template variables (``page``, ``site``, ...).
            unit_id: Id of the unit being composed, for error reporting.

        Returns:
            The final document.
        """
        if layout is None:
            return html
        output = html
        for stage in self.registry.chain(layout, unit_id):
            try:
                output = self.engine.render_layout(stage, Markup(output), context)
            except TemplateError as exc:
                raise BuildError(
                    f"Layout '{stage.name}': {format_error_message(exc)}", unit_id, exc
                ) from exc
        return output
