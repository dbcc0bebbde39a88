"""Taxonomy indexing for Folio.

Categories and tags are indexed separately. Each index maps a term name to
the ids of the units that reference it, newest first, undated units last,
ties broken by id. Term identity is case-sensitive: ``Swift`` and ``swift``
are distinct terms.

Key classes:
- TermIndex: Read-only mapping of term name to ordered unit ids.
- Taxonomy: The category and tag indexes of one build.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import datetime

from .content import ContentUnit
from .utils import comparable_date

CATEGORY = "category"
TAG = "tag"


def chronological_key(unit: ContentUnit) -> tuple[int, float, str]:
    """Sort key: newest first, undated last, then id ascending."""
    if unit.date is None:
        return (1, 0.0, unit.id)
    moment = comparable_date(unit.date)
    return (0, -(moment - datetime(1970, 1, 1)).total_seconds(), unit.id)


def sort_units(units: Iterable[ContentUnit]) -> list[ContentUnit]:
    """Order units newest first with undated units last."""
    return sorted(units, key=chronological_key)


class TermIndex(Mapping[str, tuple[str, ...]]):
    """Mapping of term name to the ordered ids of its member units."""

    def __init__(self, mapping: Mapping[str, Iterable[str]]):
        self._mapping = {name: tuple(ids) for name, ids in mapping.items() if ids}

    def __getitem__(self, key: str) -> tuple[str, ...]:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def members(self, term: str) -> tuple[str, ...]:
        """Ids of the units referencing ``term``, or an empty tuple."""
        return self._mapping.get(term, ())

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TermIndex({len(self._mapping)} terms)"


@dataclass(frozen=True)
class Taxonomy:
    """Category and tag indexes built over the whole corpus."""

    categories: TermIndex
    tags: TermIndex

    def index(self, kind: str) -> TermIndex:
        if kind == CATEGORY:
            return self.categories
        if kind == TAG:
            return self.tags
        raise KeyError(kind)


def index_terms(units: Iterable[ContentUnit], attribute: str) -> TermIndex:
    """Build a TermIndex from one taxonomy attribute of the units.

    Args:
        units: All content units of the build.
        attribute: ``"categories"`` or ``"tags"``.

    Returns:
        Index with terms sorted by name and members in chronological order.
    """
    index: dict[str, list[str]] = {}
    for unit in sort_units(units):
        for term in getattr(unit, attribute):
            members = index.setdefault(term, [])
            if unit.id not in members:
                members.append(unit.id)
    return TermIndex(dict(sorted(index.items())))


def build_taxonomy(units: Iterable[ContentUnit]) -> Taxonomy:
    """Index all units by category and by tag."""
    units = list(units)
    return Taxonomy(
        categories=index_terms(units, "categories"),
        tags=index_terms(units, "tags"),
    )
