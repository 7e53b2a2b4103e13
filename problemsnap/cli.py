"""problemsnap CLI: attach, scrape company lists, merge, capture snapshots.

Every command attaches to a browser that is already running with remote
debugging enabled, e.g. ``chrome --remote-debugging-port=9222``.

Usage:
    problemsnap attach                          # Open the Playwright Inspector
    problemsnap companies --output company      # One JSON file per company
    problemsnap merge company/*.json -o problems.json
    problemsnap snapshot problems.json --output snapshots
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any, TypeVar

import click
from playwright.async_api import Error as PlaywrightError

from problemsnap.common.exceptions import (
    BrowserSetupException,
    InputFileException,
)
from problemsnap.common.records import (
    load_problem_records,
    merge_problem_records,
    save_problem_records,
)
from problemsnap.driver.connection import (
    DEFAULT_ENDPOINT,
    attach_inspector,
    connect_over_cdp,
    first_context,
    first_page,
)
from problemsnap.driver.scroll import ScrollOptions
from problemsnap.driver.steps import DEFAULT_STEPS, TOPICS_STEP

F = TypeVar("F", bound=Callable[..., Any])


def _configure_logging(verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _endpoint_option(func: F) -> F:
    return click.option(
        "--endpoint",
        default=DEFAULT_ENDPOINT,
        show_default=True,
        help="CDP endpoint of the running browser.",
    )(func)


def _run(coro: Coroutine[Any, Any, None]) -> None:
    """Run a command coroutine, turning setup failures into CLI errors."""
    try:
        asyncio.run(coro)
    except BrowserSetupException as e:
        raise click.ClickException(str(e)) from e
    except PlaywrightError as e:
        raise click.ClickException(
            f"An unrecoverable browser error occurred: {e.message}"
        ) from e


@click.group()
@click.version_option(package_name="problemsnap")
def cli() -> None:
    """problemsnap: scrape problem lists and page snapshots over CDP."""


@cli.command()
@_endpoint_option
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
def attach(endpoint: str, verbose: bool) -> None:
    """Attach to the first open tab and open the Playwright Inspector."""
    _configure_logging(verbose)
    _run(attach_inspector(endpoint))


@cli.command()
@click.argument("input_file", type=click.Path(path_type=Path))
@_endpoint_option
@click.option(
    "--output",
    "output_dir",
    type=click.Path(path_type=Path),
    default=Path("snapshots"),
    show_default=True,
    help="Directory for <problem>/index.mhtml files.",
)
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=20,
    show_default=True,
    help="Number of tabs open at once.",
)
@click.option(
    "--strategy",
    type=click.Choice(["chunked", "pool"]),
    default="chunked",
    show_default=True,
    help="Chunks with a barrier between them, or a worker pool.",
)
@click.option(
    "--timeout",
    "navigation_timeout",
    type=click.IntRange(min=0),
    default=90000,
    show_default=True,
    help="Navigation timeout in milliseconds.",
)
@click.option(
    "--with-topics",
    is_flag=True,
    help='Also open the "Topics" tab before capturing.',
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
def snapshot(
    input_file: Path,
    endpoint: str,
    output_dir: Path,
    concurrency: int,
    strategy: str,
    navigation_timeout: int,
    with_topics: bool,
    verbose: bool,
) -> None:
    """Save every problem in INPUT_FILE as an MHTML snapshot.

    INPUT_FILE is a JSON array of {"Name": ..., "link": ...} objects.
    Problems whose snapshot already exists are skipped, so re-running the
    command retries only what failed.

    \b
    Examples:
        problemsnap snapshot sql_problems.json --output Database-sql
        problemsnap snapshot problems.json --concurrency 5 --strategy pool
    """
    from problemsnap.driver.snapshot import SnapshotPipeline

    _configure_logging(verbose)

    try:
        records = load_problem_records(input_file)
    except InputFileException as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Found {len(records)} problems to process.")

    steps = list(DEFAULT_STEPS)
    if with_topics:
        steps.insert(1, TOPICS_STEP)

    async def _go() -> None:
        async with connect_over_cdp(endpoint) as browser:
            context = first_context(browser, endpoint)
            pipeline = SnapshotPipeline(
                context,
                output_dir,
                concurrency=concurrency,
                steps=steps,
                navigation_timeout=navigation_timeout,
                strategy=strategy,  # type: ignore[arg-type]
            )
            report = await pipeline.run(records)
            click.echo(report.summary())

    _run(_go())
    click.echo("Done.")


@cli.command()
@_endpoint_option
@click.option(
    "--output",
    "output_dir",
    type=click.Path(path_type=Path),
    default=Path("company"),
    show_default=True,
    help="Directory for <company>.json files.",
)
@click.option(
    "--company",
    "companies",
    multiple=True,
    help="Scrape only this company (repeatable). Default: all companies.",
)
@click.option(
    "--skip-existing",
    is_flag=True,
    help="Skip companies whose JSON file already exists.",
)
@click.option(
    "--confirmations",
    type=click.IntRange(min=1),
    default=5,
    show_default=True,
    help="Consecutive loader-free samples that end the scroll.",
)
@click.option(
    "--scroll-interval",
    type=click.IntRange(min=0),
    default=10,
    show_default=True,
    help="Delay between scroll samples in milliseconds.",
)
@click.option(
    "--max-rounds",
    type=click.IntRange(min=0),
    default=1000,
    show_default=True,
    help="Give up scrolling after this many samples (0 = never).",
)
@click.option(
    "--quiet-scroll",
    is_flag=True,
    help="Log per-sample scroll progress at DEBUG instead of INFO.",
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
def companies(
    endpoint: str,
    output_dir: Path,
    companies: tuple[str, ...],
    skip_existing: bool,
    confirmations: int,
    scroll_interval: int,
    max_rounds: int,
    quiet_scroll: bool,
    verbose: bool,
) -> None:
    """Write the problem list of each company filter to its own JSON file."""
    from problemsnap.driver.company_scraper import CompanyScraper

    _configure_logging(verbose)

    scroll_options = ScrollOptions(
        interval_ms=scroll_interval,
        confirmations_required=confirmations,
        verbose=not quiet_scroll,
        max_rounds=max_rounds or None,
    )

    async def _go() -> None:
        async with connect_over_cdp(endpoint) as browser:
            context = first_context(browser, endpoint)
            page = await first_page(context, create=True)
            scraper = CompanyScraper(
                page,
                output_dir,
                scroll_options=scroll_options,
                skip_existing=skip_existing,
            )
            report = await scraper.run(list(companies) or None)
            click.echo(report.summary())

    _run(_go())
    click.echo("Done.")


@cli.command()
@click.argument(
    "inputs", nargs=-1, required=True, type=click.Path(path_type=Path)
)
@click.option(
    "-o",
    "--output",
    "output_file",
    type=click.Path(path_type=Path),
    default=Path("company_problems.json"),
    show_default=True,
    help="Merged problem list.",
)
@click.option(
    "--difficulty",
    "difficulties",
    multiple=True,
    help="Keep only this difficulty (repeatable), e.g. --difficulty Hard.",
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
def merge(
    inputs: tuple[Path, ...],
    output_file: Path,
    difficulties: tuple[str, ...],
    verbose: bool,
) -> None:
    """Merge problem lists into one list without duplicate names.

    INPUTS are JSON files (or directories of JSON files) written by the
    ``companies`` command. The result is the input format of ``snapshot``.
    """
    _configure_logging(verbose)

    paths: list[Path] = []
    for path in inputs:
        if path.is_dir():
            paths.extend(
                p
                for p in sorted(path.glob("*.json"))
                if p.resolve() != output_file.resolve()
            )
        else:
            paths.append(path)

    try:
        records = merge_problem_records(paths, set(difficulties) or None)
    except InputFileException as e:
        raise click.ClickException(str(e)) from e

    save_problem_records(output_file, records)
    click.echo(
        f"Merged {len(records)} problems from {len(paths)} files "
        f"into {output_file}"
    )


def main() -> None:
    """Entry point for the ``problemsnap`` console script."""
    cli()
