"""Site building functionality for Folio.

This module runs the whole pipeline over a source tree:

1. Load configuration and layouts.
2. Parse and render every content file (in parallel, one task per unit).
3. Barrier: index taxonomy terms and resolve permalinks over the whole
   corpus, failing on any collision.
4. Compose every document with its layout chain (in parallel).
5. Write documents, taxonomy listings and feeds.

Nothing is written until every stage has succeeded, so a failed build
leaves the output directory untouched.

Key functions:
- build_site: Main function to build the entire site.
- load_config: Loads site configuration from folio.yaml.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

import yaml

from .content import ContentUnitBuilder, FileContentLoader, RenderedUnit, render_unit
from .errors import BuildError
from .feeds import FeedItem, create_default_feed_registry
from .layouts import LayoutComposer, load_layouts
from .permalinks import (
    DEFAULT_POST_PATTERN,
    check_collisions,
    normalize,
    output_path,
    resolve_permalinks,
)
from .taxonomy import CATEGORY, TAG, Taxonomy, build_taxonomy
from .templates import (
    TemplateEngine,
    build_page_context,
    build_site_context,
)
from .utils import ensure_clean_dir, term_slug

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

CONFIG_FILE = "folio.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "title": "",
    "url": "",
    "permalink": DEFAULT_POST_PATTERN,
    "category_path": "/categories/:name/",
    "tag_path": "/tags/:name/",
    "category_layout": None,
    "tag_layout": None,
    "highlight": True,
    "workers": None,
    "include_unpublished": False,
}


@dataclass(frozen=True)
class ListingDocument:
    """A generated page listing the members of one taxonomy term.

    Attributes:
        id: Owner id used in collision reports, e.g. ``category:Swift``.
        taxonomy: "category" or "tag".
        term: Term name.
        permalink: Public path of the listing.
        members: Ids of the member units, in index order.
    """

    id: str
    taxonomy: str
    term: str
    permalink: str
    members: tuple[str, ...]


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        units: Rendered units in source order.
        permalinks: Permalink of every unit, by unit id.
        taxonomy: Category and tag indexes.
        listings: Generated taxonomy listing documents.
        documents: Final HTML of every document, by owner id.
        config: Effective configuration.
        output_dir: Directory the site was written to, if any.
        feeds: Names of the feed files written.
    """

    units: list[RenderedUnit]
    permalinks: dict[str, str]
    taxonomy: Taxonomy
    listings: list[ListingDocument]
    documents: dict[str, str]
    config: dict[str, Any]
    output_dir: Path | None = None
    feeds: list[str] = field(default_factory=list)


def load_config(source_root: Path) -> dict[str, Any]:
    """Load site configuration from folio.yaml.

    Args:
        source_root: Root directory of the source tree.

    Returns:
        Dictionary containing configuration values, with defaults applied.
    """
    config_path = source_root / CONFIG_FILE
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            try:
                loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise BuildError(f"Invalid configuration: {exc}", CONFIG_FILE, exc) from exc
        if isinstance(loaded, dict):
            config.update(loaded)
        else:
            logger.warning("%s is not a mapping; using defaults", config_path)
    return config


def run_parallel(
    func: Callable[[T], R], items: Sequence[T], workers: int | None = None
) -> list[R]:
    """Apply ``func`` to every item on a thread pool.

    Results are returned in input order. The first failure cancels every
    task that has not started yet and is re-raised.
    """
    if not items:
        return []
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures: list[Future[R]] = [executor.submit(func, item) for item in items]
        try:
            return [future.result() for future in futures]
        except BaseException:
            for future in futures:
                future.cancel()
            raise


def _workers(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise BuildError(f"workers must be a positive integer, got {value!r}", CONFIG_FILE)
    return value


def _check_output_dir(source_root: Path, output_dir: Path) -> None:
    source = source_root.resolve()
    output = output_dir.resolve()
    if output == source or output in source.parents:
        raise BuildError(
            f"Output directory {output_dir} would overwrite the source tree {source_root}"
        )


def build_listings(taxonomy: Taxonomy, config: dict[str, Any]) -> list[ListingDocument]:
    """Create one listing document per category and per tag."""
    listings = []
    for kind in (CATEGORY, TAG):
        pattern = str(config.get(f"{kind}_path") or f"/{kind}/:name/")
        for term, members in taxonomy.index(kind).items():
            listings.append(
                ListingDocument(
                    id=f"{kind}:{term}",
                    taxonomy=kind,
                    term=term,
                    permalink=normalize(pattern.replace(":name", term_slug(term))),
                    members=members,
                )
            )
    return listings


def build_site(
    source_root: Path,
    output_dir: Path | None = None,
    include_unpublished: bool | None = None,
    url: str | None = None,
    workers: int | None = None,
    clean_output: bool = True,
) -> BuildResult:
    """Build the entire static site.

    Args:
        source_root: Root directory of the source tree.
        output_dir: Directory to write to; None runs every stage without
            writing anything.
        include_unpublished: Build units marked ``published: false``
            (overrides configuration).
        url: Absolute base URL (overrides configuration).
        workers: Thread pool size (overrides configuration).
        clean_output: Whether to wipe the output directory before writing.

    Returns:
        BuildResult describing every generated document.

    Raises:
        BuildError: On the first fatal error of any stage.
    """
    source_root = Path(source_root)
    if not source_root.is_dir():
        raise BuildError(f"Source directory {source_root} does not exist")
    if output_dir is not None:
        output_dir = Path(output_dir)
        _check_output_dir(source_root, output_dir)

    config = load_config(source_root)
    if url is not None:
        config["url"] = url
    if workers is not None:
        config["workers"] = workers
    if include_unpublished is not None:
        config["include_unpublished"] = include_unpublished
    pool_size = _workers(config.get("workers"))
    highlight = bool(config.get("highlight", True))
    keep_unpublished = bool(config.get("include_unpublished"))

    registry = load_layouts(source_root)
    engine = TemplateEngine(source_root, config, registry)
    logger.info("Loaded %d layouts", len(registry))

    loader = FileContentLoader(
        source_root, exclude=[output_dir] if output_dir is not None else []
    )
    builder = ContentUnitBuilder(source_root)

    def parse_and_render(path: Path) -> RenderedUnit | None:
        unit = builder.build(path)
        if not unit.published and not keep_unpublished:
            logger.debug("Skipping unpublished %s", unit.id)
            return None
        logger.debug("Rendering %s", unit.id)
        return render_unit(unit, highlight=highlight)

    paths = loader.iter_files()
    rendered = [
        r for r in run_parallel(parse_and_render, paths, pool_size) if r is not None
    ]
    logger.info("Parsed and rendered %d of %d content files", len(rendered), len(paths))

    units = [r.unit for r in rendered]
    taxonomy = build_taxonomy(units)
    permalinks = resolve_permalinks(units, str(config.get("permalink") or DEFAULT_POST_PATTERN))
    listings = build_listings(taxonomy, config)
    check_collisions(
        [*permalinks.items(), *((listing.id, listing.permalink) for listing in listings)]
    )
    logger.info(
        "Indexed %d categories and %d tags",
        len(taxonomy.categories),
        len(taxonomy.tags),
    )

    site = build_site_context(config, rendered, permalinks, taxonomy)
    composer = LayoutComposer(registry, engine)

    def compose_unit(item: RenderedUnit) -> str:
        page = build_page_context(item, permalinks[item.id], site)
        return composer.compose(
            item.html, item.unit.layout, {"page": page, "site": site}, item.id
        )

    def compose_listing(listing: ListingDocument) -> str:
        members = site["categories" if listing.taxonomy == CATEGORY else "tags"][
            listing.term
        ]
        context = {
            "site": site,
            "term": listing.term,
            "taxonomy": listing.taxonomy,
            "units": members,
            "page": {
                "id": listing.id,
                "kind": "listing",
                "title": listing.term,
                "url": listing.permalink,
                "taxonomy": listing.taxonomy,
            },
        }
        body = engine.render_listing(context)
        layout = config.get(f"{listing.taxonomy}_layout")
        return composer.compose(body, layout, context, listing.id)

    documents = dict(
        zip([r.id for r in rendered], run_parallel(compose_unit, rendered, pool_size))
    )
    documents.update(
        zip([l.id for l in listings], run_parallel(compose_listing, listings, pool_size))
    )
    logger.info("Composed %d documents", len(documents))

    result = BuildResult(
        units=rendered,
        permalinks=permalinks,
        taxonomy=taxonomy,
        listings=listings,
        documents=documents,
        config=config,
    )
    if output_dir is not None:
        _write_output(result, output_dir, clean_output)
    return result


def _write_output(result: BuildResult, output_dir: Path, clean_output: bool) -> None:
    """Write every document and feed of a finished build."""
    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)

    owners = [*result.permalinks.items()]
    owners.extend((listing.id, listing.permalink) for listing in result.listings)
    for owner, permalink in owners:
        target = output_dir / output_path(permalink, owner)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(result.documents[owner], encoding="utf-8")
        logger.debug("Wrote %s -> %s", owner, target)
    logger.info("Wrote %d documents into %s", len(owners), output_dir)

    items = [
        FeedItem(
            title=r.unit.title,
            url=result.permalinks[r.id],
            kind=r.unit.kind,
            date=r.unit.date,
            description=r.excerpt,
        )
        for r in result.units
    ]
    items.extend(
        FeedItem(title=listing.term, url=listing.permalink, kind="listing")
        for listing in result.listings
    )
    result.feeds = create_default_feed_registry().generate_all(
        output_dir, items, result.config
    )
    result.output_dir = output_dir
    if result.feeds:
        logger.info("Generated %s", ", ".join(result.feeds))
