"""Template rendering engine for Folio.

This module uses Jinja2 to render layouts and taxonomy listing documents,
and assembles the variables templates see.

Key class:
- TemplateEngine: Compiles layouts and renders them with a context.

Key functions:
- render_toc: Nested HTML list from TOC entries.
- build_site_context: The ``site`` variable shared by every document.
- build_page_context: The ``page`` variable of one unit.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    Template,
    TemplateSyntaxError,
    select_autoescape,
)
from markupsafe import Markup, escape

from .content import RenderedUnit
from .errors import InvalidLayout, format_error_message
from .html_writer import TocEntry
from .layouts import Layout, LayoutRegistry
from .taxonomy import Taxonomy, sort_units
from .utils import absolute_url

__all__ = [
    "TemplateEngine",
    "build_page_context",
    "build_site_context",
    "render_toc",
    "unit_summary",
]

INCLUDES_DIR = "_includes"

LISTING_TEMPLATE = """\
<section class="taxonomy taxonomy-{{ taxonomy }}">
<h1>{{ term }}</h1>
<ul>
{% for item in units %}<li><a href="{{ url_for(item.url) }}">{{ item.title }}</a>\
{% if item.date %} <time datetime="{{ item.date.strftime('%Y-%m-%d') }}">\
{{ item.date.strftime('%Y-%m-%d') }}</time>{% endif %}</li>
{% endfor %}</ul>
</section>
"""


def render_toc(toc: Iterable[TocEntry]) -> Markup:
    """Render a table of contents as nested HTML from TOC entries.

    Generates properly nested `<ul><li><a href="#id">text</a></li></ul>` structure
    based on heading levels.

    Args:
        toc: TOC entries of a page.

    Returns:
        Markup-safe HTML string of the nested TOC, or empty Markup if no headings.
    """
    headings = list(toc or ())
    if not headings:
        return Markup("")

    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in headings:
        level = heading.level

        # Close nested lists if going to a shallower level
        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        else:
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(
            f'<li><a href="#{escape(heading.id)}">{escape(heading.text)}</a>'
        )

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Layouts are compiled once when the engine is created; compiled templates
    are only read afterwards, so one engine can serve every worker thread.

    Attributes:
        source_root: Root of the source tree (``_includes`` lives there).
        config: Site configuration.
        env: Jinja2 environment.
    """

    def __init__(
        self,
        source_root: Path,
        config: Mapping[str, Any],
        registry: LayoutRegistry | None = None,
    ):
        """Initialize the template engine.

        Args:
            source_root: Root of the source tree.
            config: Site configuration (``url`` is used by url_for).
            registry: Layouts to compile.

        Raises:
            InvalidLayout: If a layout has a Jinja syntax error.
        """
        self.source_root = source_root
        self.config = config
        self.root_url = str(config.get("url") or "")
        self.env = Environment(
            loader=FileSystemLoader([source_root / INCLUDES_DIR]),
            autoescape=select_autoescape(["html", "xml"], default_for_string=True),
        )
        self._install_globals()
        self._templates: dict[str, Template] = {
            name: self._compile(layout) for name, layout in (registry or {}).items()
        }
        self._listing_template = self.env.from_string(LISTING_TEMPLATE)

    def _install_globals(self) -> None:
        """Install global functions in the Jinja environment."""
        self.env.globals["url_for"] = self.url_for
        self.env.globals["render_toc"] = render_toc
        self.env.globals["pygments_css"] = self._pygments_css

    @staticmethod
    def _pygments_css() -> Markup:
        """Return Pygments CSS styles for syntax highlighting."""
        from pygments.formatters import HtmlFormatter

        return Markup(HtmlFormatter().get_style_defs(".highlight"))

    def _compile(self, layout: Layout) -> Template:
        try:
            return self.env.from_string(layout.template_body)
        except TemplateSyntaxError as exc:
            raise InvalidLayout(layout.name, format_error_message(exc)) from exc

    def url_for(self, path: str) -> str:
        """Generate a URL for a path, applying the site url if configured.

        Args:
            path: Path to generate URL for.

        Returns:
            Full URL with the site url prefix if configured.
        """
        return absolute_url(self.root_url, path)

    def render_layout(
        self, layout: Layout, content: Markup, context: Mapping[str, Any]
    ) -> str:
        """Render one layout with ``content`` at its insertion point."""
        template = self._templates.get(layout.name)
        if template is None:
            template = self._compile(layout)
        return template.render({**context, "content": content})

    def render_listing(self, context: Mapping[str, Any]) -> str:
        """Render the built-in listing body for a taxonomy term."""
        return self._listing_template.render(context)


def unit_summary(rendered: RenderedUnit, url: str) -> dict[str, Any]:
    """Lightweight view of a unit for listings and navigation."""
    unit = rendered.unit
    return {
        "id": unit.id,
        "kind": unit.kind,
        "title": unit.title,
        "url": url,
        "date": unit.date,
        "excerpt": rendered.excerpt,
        "categories": list(unit.categories),
        "tags": list(unit.tags),
    }


def build_site_context(
    config: Mapping[str, Any],
    rendered_units: Iterable[RenderedUnit],
    permalinks: Mapping[str, str],
    taxonomy: Taxonomy,
) -> dict[str, Any]:
    """Build the ``site`` variable shared by every document.

    Returns:
        Config values plus ``posts`` (newest first), ``pages``, and
        ``categories``/``tags`` mapping each term to its member summaries.
    """
    by_id = {r.id: r for r in rendered_units}
    summaries = {uid: unit_summary(r, permalinks[uid]) for uid, r in by_id.items()}
    ordered = [summaries[u.id] for u in sort_units(r.unit for r in by_id.values())]
    site = dict(config)
    site.update(
        {
            "posts": [s for s in ordered if s["kind"] == "post"],
            "pages": [s for s in ordered if s["kind"] == "page"],
            "categories": {
                term: [summaries[uid] for uid in ids]
                for term, ids in taxonomy.categories.items()
            },
            "tags": {
                term: [summaries[uid] for uid in ids]
                for term, ids in taxonomy.tags.items()
            },
        }
    )
    return site


def build_page_context(
    rendered: RenderedUnit,
    url: str,
    site: Mapping[str, Any],
) -> dict[str, Any]:
    """Build the ``page`` variable for one unit.

    Front matter keys are exposed as-is; computed values (url, date,
    categories, ...) take precedence. Posts also get ``previous`` (older)
    and ``next`` (newer) summaries.
    """
    unit = rendered.unit
    page: dict[str, Any] = dict(unit.front_matter)
    page.update(unit_summary(rendered, url))
    page["layout"] = unit.layout
    page["toc"] = list(rendered.toc)
    page["previous"] = None
    page["next"] = None
    if unit.is_post:
        posts = site.get("posts", [])
        index = next((i for i, p in enumerate(posts) if p["id"] == unit.id), None)
        if index is not None:
            page["next"] = posts[index - 1] if index > 0 else None
            page["previous"] = posts[index + 1] if index + 1 < len(posts) else None
    return page
