"""Build errors for Folio.

Every error here is fatal at build granularity: the first one raised aborts
the whole build. Each carries enough context (the unit id, and where relevant
the layout, field or path involved) to locate the offending source.
"""

from __future__ import annotations

from collections.abc import Sequence


class BuildError(Exception):
    """Error during site build with source context.

    Attributes:
        message: Human-readable error message.
        unit_id: Id of the content unit (or layout) that caused the error.
        original_error: The original exception that was caught, if any.
    """

    def __init__(
        self,
        message: str,
        unit_id: str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.unit_id = unit_id
        self.original_error = original_error
        super().__init__(f"{unit_id}: {message}" if unit_id else message)


class MalformedFrontMatter(BuildError):
    """The source does not open with a well-formed front matter block."""


class InvalidField(BuildError):
    """A known front matter field is missing or cannot be interpreted."""

    def __init__(self, field: str, unit_id: str | None = None, detail: str = ""):
        self.field = field
        message = f"Invalid field '{field}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, unit_id)


class UnterminatedCodeBlock(BuildError):
    """A fenced code block is opened but never closed."""

    def __init__(self, unit_id: str | None, line: int, fence: str):
        self.line = line
        self.fence = fence
        super().__init__(
            f"Code fence {fence!r} opened on line {line} is never closed", unit_id
        )


class AmbiguousPermalink(BuildError):
    """Two distinct units resolve to the same public path."""

    def __init__(self, path: str, unit_ids: Sequence[str]):
        self.path = path
        self.unit_ids = tuple(unit_ids)
        super().__init__(
            f"Permalink {path} is claimed by {' and '.join(self.unit_ids)}",
            self.unit_ids[0] if self.unit_ids else None,
        )


class UnknownLayout(BuildError):
    """A unit or layout names a layout that is not registered."""

    def __init__(self, layout: str, unit_id: str | None = None):
        self.layout = layout
        super().__init__(f"Unknown layout '{layout}'", unit_id)


class LayoutCycle(BuildError):
    """A layout parent chain revisits a layout."""

    def __init__(self, chain: Sequence[str], unit_id: str | None = None):
        self.chain = tuple(chain)
        super().__init__(f"Layout cycle: {' -> '.join(self.chain)}", unit_id)


class InvalidLayout(BuildError):
    """A layout file cannot be used as a template."""

    def __init__(self, layout: str, detail: str):
        self.layout = layout
        super().__init__(f"Invalid layout '{layout}': {detail}", layout)


def format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    # Handle common Jinja2/template errors
    if error_type == "TemplateSyntaxError":
        lineno = getattr(exc, "lineno", None)
        return f"Template syntax error on line {lineno}: {getattr(exc, 'message', error_msg)}"
    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"
