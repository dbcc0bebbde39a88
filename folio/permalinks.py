"""Permalink resolution for Folio.

A unit's public path comes from its explicit ``permalink`` pattern when it
has one, otherwise from the configured post pattern (posts) or from its
source location (pages). Patterns may use these placeholders:

    :year :month :day :short_year :i_month :i_day :y_day
    :hour :minute :second :title :slug :categories

``:title`` is the front matter ``slug`` when given, else the slugified title.
``:slug`` is the filename slug. Unrecognised placeholders are kept verbatim.

Collisions can only be seen across the whole corpus, so resolve_permalinks
is a single pass over every unit after parsing.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import PurePosixPath
from urllib.parse import unquote

from .content import ContentUnit
from .errors import AmbiguousPermalink, InvalidField
from .utils import slugify_text

DEFAULT_POST_PATTERN = "/:year/:month/:day/:title/"

PERMALINK_STYLES = {
    "date": "/:categories/:year/:month/:day/:title.html",
    "pretty": "/:categories/:year/:month/:day/:title/",
    "ordinal": "/:categories/:year/:y_day/:title.html",
    "none": "/:categories/:title.html",
}

PLACEHOLDER_RE = re.compile(r":([a-z_]+)")

DATE_PLACEHOLDERS = {
    "year": lambda d: f"{d.year:04d}",
    "month": lambda d: f"{d.month:02d}",
    "day": lambda d: f"{d.day:02d}",
    "short_year": lambda d: f"{d.year % 100:02d}",
    "i_month": lambda d: str(d.month),
    "i_day": lambda d: str(d.day),
    "y_day": lambda d: f"{d.timetuple().tm_yday:03d}",
    "hour": lambda d: f"{d.hour:02d}",
    "minute": lambda d: f"{d.minute:02d}",
    "second": lambda d: f"{d.second:02d}",
}


def expand_style(pattern: str) -> str:
    """Expand a named permalink style; other patterns pass through."""
    return PERMALINK_STYLES.get(pattern, pattern)


def title_slug(unit: ContentUnit) -> str:
    """Slug used for the ``:title`` placeholder."""
    explicit = unit.front_matter.get("slug")
    if explicit is not None:
        return slugify_text(str(explicit)) or unit.slug
    return slugify_text(unit.title) or unit.slug


def substitute(pattern: str, unit: ContentUnit) -> str:
    """Replace recognised placeholders in ``pattern`` with the unit's values.

    Raises:
        InvalidField: If a date placeholder is used on an undated unit.
    """

    def repl(match: re.Match) -> str:
        name = match.group(1)
        if name in DATE_PLACEHOLDERS:
            if unit.date is None:
                raise InvalidField(
                    "date", unit.id, f"permalink placeholder ':{name}' needs a date"
                )
            return DATE_PLACEHOLDERS[name](unit.date)
        if name == "title":
            return title_slug(unit)
        if name == "slug":
            return unit.slug
        if name == "categories":
            return "/".join(filter(None, (slugify_text(c) for c in unit.categories)))
        return match.group(0)

    return normalize(PLACEHOLDER_RE.sub(repl, pattern))


def normalize(path: str) -> str:
    """Ensure a single leading slash and no repeated slashes."""
    collapsed = re.sub(r"/{2,}", "/", f"/{path.strip()}")
    return collapsed


def page_path(unit: ContentUnit) -> str:
    """Path derived from a page's location in the source tree.

    ``about.md`` maps to ``/about/``, ``docs/index.md`` to ``/docs/``
    and ``index.md`` to ``/``.
    """
    source = PurePosixPath(unit.id)
    segments = [part for part in source.parent.parts if part]
    if unit.slug != "index":
        segments.append(unit.slug)
    path = "/".join(segments)
    return f"/{path}/" if path else "/"


def resolve_permalink(
    unit: ContentUnit, post_pattern: str = DEFAULT_POST_PATTERN
) -> str:
    """Compute the public path of one unit.

    Args:
        unit: The unit to route.
        post_pattern: Default pattern (or style name) for posts.

    Returns:
        Normalized path starting with ``/``.
    """
    if unit.permalink:
        return substitute(expand_style(unit.permalink), unit)
    if unit.is_post:
        return substitute(expand_style(post_pattern), unit)
    return page_path(unit)


def output_path(permalink: str, owner: str | None = None) -> PurePosixPath:
    """Map a permalink to a file path relative to the output root.

    Paths ending in ``/`` or without an extension become directories with
    an ``index.html``. Percent-encoded segments are decoded, so
    ``/tags/C%2B%2B/`` is written to ``tags/C++/index.html``, the file a
    static host serves for that URL.

    Raises:
        InvalidField: If the permalink escapes the output root.
    """
    decoded = unquote(permalink)
    parts = [part for part in decoded.split("/") if part]
    if any(part in (".", "..") for part in parts):
        raise InvalidField("permalink", owner, f"{permalink!r} leaves the output root")
    if not parts:
        return PurePosixPath("index.html")
    if decoded.endswith("/") or not PurePosixPath(parts[-1]).suffix:
        parts.append("index.html")
    return PurePosixPath(*parts)


def check_collisions(claims: Iterable[tuple[str, str]]) -> None:
    """Fail if two owners claim the same output file.

    Args:
        claims: Pairs of (owner id, permalink).

    Raises:
        AmbiguousPermalink: Naming the permalink and both owners.
    """
    seen: dict[PurePosixPath, str] = {}
    for owner, permalink in claims:
        target = output_path(permalink, owner)
        if target in seen and seen[target] != owner:
            raise AmbiguousPermalink(permalink, (seen[target], owner))
        seen[target] = owner


def resolve_permalinks(
    units: Iterable[ContentUnit], post_pattern: str = DEFAULT_POST_PATTERN
) -> dict[str, str]:
    """Resolve every unit's permalink and check for collisions.

    Args:
        units: All units of the build.
        post_pattern: Default pattern (or style name) for posts.

    Returns:
        Mapping of unit id to permalink.

    Raises:
        AmbiguousPermalink: If two units resolve to the same output file.
    """
    resolved = {unit.id: resolve_permalink(unit, post_pattern) for unit in units}
    check_collisions(resolved.items())
    return resolved
