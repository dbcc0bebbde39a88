"""Utility functions for Folio.

This module contains small helpers used throughout the Folio codebase:
string processing, date handling and path handling.

Key functions:
    slugify: Convert filenames to URL slugs.
    slugify_text: Convert free text (titles) to URL slugs.
    term_slug: Percent-encoded path segment for taxonomy terms.
    absolute_url: Prefix a site path with the root URL.
    titleize: Convert filenames to human-readable titles.
    extract_date_from_name: Extract date from a YYYY-MM-DD filename prefix.
    parse_date: Interpret a front matter date value.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import re
import shutil
import unicodedata
from collections.abc import Iterable
from datetime import date, datetime, timezone
from pathlib import Path
from urllib.parse import quote

DATE_PREFIX_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})-(.+)$")

_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S %z",
    "%Y-%m-%d %H:%M %z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
)


def split_date_prefix(name: str) -> tuple[str | None, str]:
    """Split a ``YYYY-MM-DD-`` prefix from a filename stem.

    Args:
        name: Filename stem.

    Returns:
        Tuple of (date prefix or None, remainder).
    """
    match = DATE_PREFIX_RE.match(name)
    if not match:
        return None, name
    return "-".join(match.group(1, 2, 3)), match.group(4)


def slugify(name: str) -> str:
    """Convert filename (without extension) to slug, dropping date prefix.

    Args:
        name: Filename stem.

    Returns:
        URL-friendly slug.
    """
    _, cleaned = split_date_prefix(name)
    return slugify_text(cleaned) or "index"


def slugify_text(text: str) -> str:
    """Convert arbitrary text to a lowercase, hyphen separated slug.

    Examples:
        >>> slugify_text("Mastering Optionals in Swift")
        'mastering-optionals-in-swift'
    """
    normalized = unicodedata.normalize("NFKD", text)
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", ascii_text)
    return cleaned.strip("-").lower()


def term_slug(term: str) -> str:
    """Path segment for a taxonomy term.

    The term is percent-encoded rather than slugified, so distinct terms
    (``Swift`` and ``swift``, ``C++`` and ``C#``) never share a listing path.

    Examples:
        >>> term_slug("C++")
        'C%2B%2B'
    """
    return quote(term, safe="")


def absolute_url(root_url: str, path: str) -> str:
    """Prefix a site path with the root URL, avoiding double slashes.

    Absolute URLs pass through unchanged.

    Examples:
        >>> absolute_url("https://example.com/", "about/")
        'https://example.com/about/'
    """
    if path.startswith(("http://", "https://", "//")):
        return path
    suffix = path if path.startswith("/") else f"/{path}"
    if not root_url:
        return suffix
    return f"{root_url.rstrip('/')}{suffix}"


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Removes date prefixes (YYYY-MM-DD), replaces hyphens and underscores
    with spaces, and capitalizes each word.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'
    """
    _, base = split_date_prefix(Path(filename).stem)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_date_from_name(name: str) -> datetime | None:
    """Extract a date from a filename with YYYY-MM-DD prefix.

    Returns:
        datetime object if a valid date prefix is found, None otherwise.
    """
    prefix, _ = split_date_prefix(name)
    if prefix is None:
        return None
    try:
        return datetime.strptime(prefix, "%Y-%m-%d")
    except ValueError:
        return None


def parse_date(value: object) -> datetime:
    """Interpret a front matter date value.

    Accepts datetime/date objects (as produced by YAML timestamps) and
    strings such as ``2024-01-01``, ``2024-01-01 10:30`` or
    ``2024-01-01 10:30:00 +0800``.

    Raises:
        ValueError: If the value cannot be interpreted as a date.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        raise ValueError(f"expected a date, got {type(value).__name__}")
    text = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"unrecognised date {value!r}") from None


def comparable_date(value: datetime) -> datetime:
    """Return a naive UTC datetime so aware and naive dates can be ordered."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def unique(items: Iterable[str]) -> tuple[str, ...]:
    """De-duplicate while keeping first-seen order."""
    seen: list[str] = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return tuple(seen)


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    If the directory exists, removes all contents. Creates the
    directory if it doesn't exist.
    """
    if path.exists():
        shutil.rmtree(str(path), ignore_errors=True)
        if path.exists():
            # Fallback for stubborn directories
            for item in path.rglob("*"):
                if item.is_file():
                    item.unlink()
            for item in sorted(
                [p for p in path.rglob("*") if p.is_dir()], reverse=True
            ):
                item.rmdir()
            path.rmdir()
    path.mkdir(parents=True, exist_ok=True)


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file."""
    return path.suffix.lower() in (".md", ".markdown")


def is_template(path: Path) -> bool:
    """Check if a path is a Jinja template file.

    Matches both .jinja and .html.jinja extensions.
    """
    return path.suffixes[-2:] == [".html", ".jinja"] or path.suffix == ".jinja"


def is_html(path: Path) -> bool:
    """Check if a path is a plain HTML file (not a Jinja template)."""
    return path.suffix.lower() == ".html" and not is_template(path)
