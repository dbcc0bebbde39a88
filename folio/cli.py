"""Command-line interface for Folio.

This module defines the CLI commands using the Click framework.

Commands:
- build: Build the site from SOURCE into OUTPUT.
- check: Run the whole pipeline over SOURCE without writing anything.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__
from .errors import BuildError


@click.group()
@click.version_option(version=__version__, prog_name="folio")
@click.option("-v", "--verbose", is_flag=True, help="Log every unit as it is processed")
@click.option("-q", "--quiet", is_flag=True, help="Only log warnings and errors")
def cli(verbose: bool, quiet: bool):
    """Folio static blog generator."""
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _build_options(func):
    func = click.option(
        "--workers", type=click.IntRange(min=1), help="Number of worker threads"
    )(func)
    func = click.option(
        "--url", help="Absolute base URL of the site (overrides folio.yaml)"
    )(func)
    func = click.option(
        "--drafts", is_flag=True, help="Include content marked published: false"
    )(func)
    return func


def _report_failure(exc: BuildError, source: Path) -> None:
    """Display a build error in a user-friendly way."""
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    if exc.unit_id:
        click.echo(click.style(f"  Source: {exc.unit_id}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
    click.echo(click.style(f"  ({type(exc).__name__} in {source})", dim=True), err=True)


@cli.command()
@click.argument(
    "source", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.argument("output", type=click.Path(file_okay=False, path_type=Path))
@_build_options
@click.option(
    "--no-clean", is_flag=True, help="Keep existing files in the output directory"
)
def build(
    source: Path,
    output: Path,
    drafts: bool,
    url: str | None,
    workers: int | None,
    no_clean: bool,
):
    """Build the site from SOURCE into OUTPUT."""
    from .build import build_site

    try:
        result = build_site(
            source,
            output,
            include_unpublished=drafts or None,
            url=url,
            workers=workers,
            clean_output=not no_clean,
        )
    except BuildError as exc:
        _report_failure(exc, source)
        raise SystemExit(1) from None
    click.echo(
        f"Built {len(result.units)} units and {len(result.listings)} listings "
        f"into {result.output_dir}"
    )


@cli.command()
@click.argument(
    "source", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@_build_options
def check(source: Path, drafts: bool, url: str | None, workers: int | None):
    """Run every build stage over SOURCE without writing output."""
    from .build import build_site

    try:
        result = build_site(
            source, None, include_unpublished=drafts or None, url=url, workers=workers
        )
    except BuildError as exc:
        _report_failure(exc, source)
        raise SystemExit(1) from None
    click.echo(
        click.style("OK", fg="green", bold=True)
        + f" {len(result.units)} units, {len(result.taxonomy.categories)} categories, "
        f"{len(result.taxonomy.tags)} tags"
    )


def main():
    """Entry point for the CLI application."""
    cli()
