"""Protocol definitions for Folio.

Renderers are looked up through a registry, so anything implementing
ContentRenderer can be registered alongside the built-in Markdown and HTML
renderers.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .nodes import Block


@runtime_checkable
class ContentRenderer(Protocol):
    """Protocol for turning a unit body into a render tree.

    Implementations handle one content type each.
    """

    @abstractmethod
    def can_render(self, path: Path) -> bool:
        """Check if this renderer can handle the given file."""
        ...

    @abstractmethod
    def render(
        self, content: str, unit_id: str | None = None, line_offset: int = 0
    ) -> tuple[Block, ...]:
        """Render content to a tuple of block nodes.

        Args:
            content: Body text after the front matter.
            unit_id: Id of the unit, for error reporting.
            line_offset: Source lines preceding the body, so reported line
                numbers match the file.

        Returns:
            The render tree.
        """
        ...

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source type identifier (e.g., 'markdown', 'html')."""
        ...
