"""
Scrape commands: run the ingestion stage without matching or dispatch.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List

import typer
from rich.table import Table

from tenderwatch.cli.common import bootstrap, console, err_console

app = typer.Typer(
    help="Run the scraper stage on its own",
    no_args_is_help=True,
)


def _print_result(result) -> None:
    table = Table(title=f"Scrape run #{result.run_id}", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Pages scraped", str(result.pages_scraped))
    table.add_row("Records found", str(result.records_found))
    table.add_row("Added", f"[green]{result.added}[/green]")
    table.add_row("Duplicate skipped", str(result.duplicate_skipped))
    table.add_row("Date-filtered skipped", str(result.date_filtered_skipped))
    table.add_row("Expired skipped", str(result.expired_skipped))
    table.add_row("Errors", f"[red]{result.errors_count}[/red]" if result.errors_count else "0")
    if result.stopped_early:
        table.add_row("Stopped early", "yes")
    console.print(table)

    for error in result.errors[:10]:
        err_console.print(f"  [red]-[/red] {error}")


@app.command("run")
def run_scrape(
    pages: int = typer.Option(5, "--pages", "-n", min=0, help="Listing pages to scan (0 = all)"),
    today_only: bool = typer.Option(
        True,
        "--today-only/--all-dates",
        help="Only ingest tenders that start today",
    ),
    headed: bool = typer.Option(False, "--headed", help="Show the browser window"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """Scrape the live GeM listing and store new tenders."""
    from tenderwatch.core.errors import SourceError
    from tenderwatch.core.orchestrator.scraper import TenderScraper
    from tenderwatch.core.portals.gem import GemListingSource

    config, session_factory = bootstrap(verbose)
    if headed:
        config.scraper.headless = False

    scraper = TenderScraper(
        session_factory,
        lambda: GemListingSource(config.scraper),
        regions=config.scraper.regions,
    )

    try:
        result = asyncio.run(scraper.scrape(max_pages=pages, today_only=today_only))
    except SourceError as e:
        err_console.print(f"[red]Scrape failed:[/red] {e}")
        raise typer.Exit(1)

    _print_result(result)


@app.command("file")
def scrape_file(
    paths: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Saved listing pages, in order"),
    today_only: bool = typer.Option(
        False,
        "--today-only/--all-dates",
        help="Only ingest tenders that start today",
    ),
) -> None:
    """Ingest tenders from saved listing HTML."""
    from tenderwatch.core.orchestrator.scraper import TenderScraper
    from tenderwatch.core.portals.html_pages import HtmlPagesSource

    config, session_factory = bootstrap()

    scraper = TenderScraper(
        session_factory,
        lambda: HtmlPagesSource.from_files(
            paths,
            base_url=config.scraper.listing_url,
            selectors=config.scraper.selectors,
            source_name=config.scraper.source_name,
        ),
        regions=config.scraper.regions,
    )
    result = asyncio.run(scraper.scrape(max_pages=0, today_only=today_only, run_type="file"))
    _print_result(result)


@app.command("runs")
def list_runs(
    limit: int = typer.Option(20, "--limit", "-l", help="Number of runs to show"),
) -> None:
    """Show recent scrape runs."""
    from tenderwatch.persistence.db import session_scope
    from tenderwatch.persistence.repo import RunRepository

    _, session_factory = bootstrap()

    with session_scope(session_factory) as session:
        runs = RunRepository(session).get_recent(limit)

        if not runs:
            console.print("[dim]No scrape runs recorded yet.[/dim]")
            return

        table = Table(title="Recent Scrape Runs", show_header=True, header_style="bold magenta")
        table.add_column("ID", justify="right")
        table.add_column("Type")
        table.add_column("Status")
        table.add_column("Started")
        table.add_column("Pages", justify="right")
        table.add_column("Added", justify="right")
        table.add_column("Dup", justify="right")
        table.add_column("Filtered", justify="right")
        table.add_column("Duration", justify="right")

        for run in runs:
            style = {"COMPLETED": "green", "FAILED": "red"}.get(run.status, "yellow")
            duration = f"{run.duration_seconds:.1f}s" if run.duration_seconds is not None else "-"
            table.add_row(
                str(run.id),
                run.run_type,
                f"[{style}]{run.status}[/{style}]",
                run.started_at.strftime("%Y-%m-%d %H:%M"),
                str(run.pages_scraped),
                str(run.records_added),
                str(run.duplicate_skipped),
                str(run.date_filtered_skipped),
                duration,
            )

        console.print(table)
