"""Feed generation for Folio.

This module generates sitemap.xml and rss.xml from the documents of a
build. Feed generation is separate from build orchestration; new formats
are added by registering another FeedGenerator subclass.

Classes:
    FeedItem: One document as seen by the feeds.
    FeedGenerator: Base class for feed generators.
    SitemapGenerator: Generates sitemap.xml files.
    RSSGenerator: Generates RSS feed files.
    FeedRegistry: Registry for managing feed generators.

Functions:
    create_default_feed_registry: Create a registry with default generators.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from markupsafe import escape

from .utils import absolute_url, comparable_date

RSS_LIMIT = 20
RSS_DATE_FORMAT = "%a, %d %b %Y %H:%M:%S +0000"


@dataclass(frozen=True)
class FeedItem:
    """A published document.

    Attributes:
        title: Document title.
        url: Site-relative permalink.
        kind: "post", "page" or "listing".
        date: Publication date, if any.
        description: Short plain-text summary.
    """

    title: str
    url: str
    kind: str
    date: datetime | None = None
    description: str = ""


def _rss_date(value: datetime) -> str:
    return comparable_date(value).strftime(RSS_DATE_FORMAT)


class FeedGenerator(ABC):
    """Abstract base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Return the output filename for this feed."""
        ...

    @abstractmethod
    def generate(
        self,
        items: Iterable[FeedItem],
        config: Mapping[str, Any],
    ) -> str | None:
        """Generate feed content.

        Args:
            items: Documents to consider for the feed.
            config: Site configuration containing ``url`` and ``title``.

        Returns:
            Feed content as a string, or None if the feed cannot be generated
            (no base URL configured).
        """
        ...

    def write(
        self,
        output_dir: Path,
        items: Iterable[FeedItem],
        config: Mapping[str, Any],
    ) -> bool:
        """Generate and write the feed to the output directory.

        Returns:
            True if the feed was written, False if skipped.
        """
        content = self.generate(items, config)
        if content is None:
            return False
        (output_dir / self.filename).write_text(content, encoding="utf-8")
        return True


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml listing every document.

    Requires ``url`` in the configuration to generate absolute URLs.
    """

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(
        self,
        items: Iterable[FeedItem],
        config: Mapping[str, Any],
    ) -> str | None:
        base_url = str(config.get("url") or "").rstrip("/")
        if not base_url:
            return None

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for item in sorted(items, key=lambda i: i.url):
            loc = escape(absolute_url(base_url, item.url))
            if item.date is not None:
                lastmod = item.date.strftime("%Y-%m-%d")
                lines.append(
                    f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>"
                )
            else:
                lines.append(f"  <url><loc>{loc}</loc></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


class RSSGenerator(FeedGenerator):
    """Generates an RSS 2.0 feed of the newest posts.

    Requires ``url`` in the configuration to generate absolute URLs.
    Uses ``title`` from the configuration for the channel title.
    """

    def __init__(self, limit: int = RSS_LIMIT):
        self.limit = limit

    @property
    def filename(self) -> str:
        return "rss.xml"

    def generate(
        self,
        items: Iterable[FeedItem],
        config: Mapping[str, Any],
    ) -> str | None:
        base_url = str(config.get("url") or "").rstrip("/")
        if not base_url:
            return None
        title = str(config.get("title") or "Folio Feed")

        posts = [i for i in items if i.kind == "post" and i.date is not None]
        posts.sort(key=lambda i: (comparable_date(i.date), i.url), reverse=True)

        entries = []
        for post in posts[: self.limit]:
            link = escape(absolute_url(base_url, post.url))
            description = escape(post.description or post.title)
            entries.append(
                f"<item><title>{escape(post.title)}</title><link>{link}</link>"
                f"<guid>{link}</guid>"
                f"<description>{description}</description>"
                f"<pubDate>{_rss_date(post.date)}</pubDate></item>"
            )

        build_date = datetime.now(timezone.utc).strftime(RSS_DATE_FORMAT)
        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{escape(title)}</title>",
            f"<link>{escape(base_url)}</link>",
            f"<description>{escape(title)}</description>",
            f"<lastBuildDate>{build_date}</lastBuildDate>",
        ]
        rss.extend(entries)
        rss.append("</channel></rss>")
        return "\n".join(rss) + "\n"


class FeedRegistry:
    """Registry for managing feed generators."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def generate_all(
        self,
        output_dir: Path,
        items: Iterable[FeedItem],
        config: Mapping[str, Any],
    ) -> list[str]:
        """Generate all registered feeds.

        Returns:
            List of filenames that were generated.
        """
        items_list = list(items)
        generated = []
        for generator in self._generators:
            if generator.write(output_dir, items_list, config):
                generated.append(generator.filename)
        return generated


def create_default_feed_registry() -> FeedRegistry:
    """Create a registry with sitemap and RSS generators."""
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(RSSGenerator())
    return registry
