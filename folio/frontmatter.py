"""Front matter parsing for Folio.

A content file opens with a YAML block between ``---`` markers (the closing
marker may also be ``...``). The block is required: a file without one, or
whose block is not a YAML mapping, is rejected with MalformedFrontMatter.

Key functions:
- parse_front_matter: Split a source into (metadata, body).
- dump_front_matter: Serialize metadata and body back into a source.
"""

from __future__ import annotations

import re
from typing import Any

import yaml

from .errors import MalformedFrontMatter

FRONT_MATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(?P<meta>.*?)(?:^|\n)(?:---|\.\.\.)[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)


def parse_front_matter(
    text: str, unit_id: str | None = None
) -> tuple[dict[str, Any], str]:
    """Extract YAML front matter from content.

    Args:
        text: Raw file content.
        unit_id: Id of the source, used for error reporting.

    Returns:
        Tuple of (front matter dict, remaining body).

    Raises:
        MalformedFrontMatter: If the block is missing, unterminated, or not a
            YAML mapping.
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    if not re.match(r"---[ \t]*\r?\n", text):
        raise MalformedFrontMatter(
            "Expected a front matter block opening with '---'", unit_id
        )
    match = FRONT_MATTER_RE.match(text)
    if not match:
        raise MalformedFrontMatter("Front matter block is never closed", unit_id)
    try:
        data = yaml.safe_load(match.group("meta"))
    except yaml.YAMLError as exc:
        raise MalformedFrontMatter(
            f"Front matter is not valid YAML: {exc}", unit_id
        ) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedFrontMatter(
            f"Front matter must be a mapping, got {type(data).__name__}", unit_id
        )
    return data, text[match.end() :]


def dump_front_matter(metadata: dict[str, Any], body: str = "") -> str:
    """Serialize metadata and body back into a front matter document.

    Args:
        metadata: Front matter mapping.
        body: Body text placed after the closing marker.

    Returns:
        Source text that parse_front_matter reads back to the same values.
    """
    block = yaml.safe_dump(
        metadata, sort_keys=False, allow_unicode=True, default_flow_style=False
    )
    if not metadata:
        block = ""
    return f"---\n{block}---\n{body}"
