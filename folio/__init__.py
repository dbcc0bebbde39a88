"""Folio static site generator.

This package turns a tree of posts and pages (YAML front matter followed by
Markdown) into a static blog. Content is parsed, rendered into a tree of
block and inline nodes, indexed by category and tag, routed to permalinks and
finally wrapped in Jinja2 layouts that may inherit from one another.

The main entry point is the CLI module, which provides the ``build`` and
``check`` commands.

Pipeline stages, one module each:
- frontmatter: metadata block extraction
- renderers: Markdown to render tree
- taxonomy: category and tag indexes
- permalinks: public path resolution and collision detection
- layouts: layout registry and composition
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
