"""
TenderWatch CLI - Main entry point.

Scrapes the GeM bid listing, reconciles expiry, matches subscriptions
and emails customers, on demand or on an interval.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.panel import Panel
from rich.table import Table
from rich.traceback import install as install_rich_traceback

from tenderwatch import __app_name__, __version__

from .common import bootstrap, console, err_console, load_config, state

# Load environment variables from .env (if present)
load_dotenv()

install_rich_traceback(show_locals=False, width=120)

app = typer.Typer(
    name=__app_name__,
    help="GeM tender scraper and subscription alert pipeline",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to app.yaml (default: configs/app.yaml)",
        envvar="TENDERWATCH_CONFIG",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """TenderWatch - GeM tender alerts."""
    state["config_path"] = config


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import db, queue, schedule, scrape, tenders  # noqa: E402

app.add_typer(scrape.app, name="scrape", help="Run the scraper stage on its own")
app.add_typer(schedule.app, name="schedule", help="Run the interval scheduler")
app.add_typer(queue.app, name="queue", help="Build, drain and inspect the notification queue")
app.add_typer(tenders.app, name="tenders", help="Browse stored tenders")
app.add_typer(db.app, name="db", help="Database operations")


# =============================================================================
# Init Command
# =============================================================================


@app.command()
def init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing configuration",
    ),
) -> None:
    """Initialize TenderWatch directories, configuration and database."""
    from tenderwatch.core.config.loader import dump_default_config
    from tenderwatch.persistence.db import init_db

    config_path = state["config_path"] or Path("configs/app.yaml")
    if not config_path.exists() or force:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text("# TenderWatch configuration\n" + dump_default_config(), encoding="utf-8")
        console.print(f"[green]OK[/green] Wrote {config_path}")
    else:
        console.print(f"[dim]{config_path} exists; use --force to overwrite[/dim]")

    config = load_config()
    config.ensure_directories()
    init_db(config.database.url)

    console.print()
    console.print(Panel.fit(
        "[bold green]OK - TenderWatch initialized[/bold green]\n\n"
        "Next steps:\n"
        "  1. Set SMTP credentials in [cyan].env[/cyan] and [cyan]email.backend: smtp[/cyan]\n"
        "  2. Run the pipeline once: [yellow]tenderwatch run --pages 3[/yellow]\n"
        "  3. Start the scheduler: [yellow]tenderwatch schedule start[/yellow]",
        title="[bold]Initialization Complete[/bold]",
        border_style="green",
    ))


# =============================================================================
# Run Command (manual trigger)
# =============================================================================


@app.command("run")
def run_pipeline(
    pages: int = typer.Option(3, "--pages", "-n", min=0, help="Listing pages to scan (0 = all)"),
    today_only: bool = typer.Option(
        True,
        "--today-only/--all-dates",
        help="Only ingest tenders that start today",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """Run scrape, expiry, matching and dispatch once."""
    from tenderwatch.core.errors import PipelineAlreadyRunningError, SourceError
    from tenderwatch.core.logging import json_dumps
    from tenderwatch.core.orchestrator.runner import build_pipeline
    from tenderwatch.core.scheduler.service import create_scheduler

    config, session_factory = bootstrap(verbose)
    scheduler = create_scheduler(config, session_factory, build_pipeline(config, session_factory))

    try:
        result = asyncio.run(scheduler.trigger(pages=pages, today_only=today_only))
    except PipelineAlreadyRunningError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except SourceError as e:
        err_console.print(f"[red]Scrape failed:[/red] {e}")
        raise typer.Exit(1)

    console.print_json(json_dumps(result.to_dict()))


# =============================================================================
# Status Command
# =============================================================================


@app.command()
def status() -> None:
    """Show tender, queue and recent run statistics."""
    from tenderwatch.persistence.db import session_scope
    from tenderwatch.persistence.repo import QueueRepository, RunRepository, TenderRepository

    _, session_factory = bootstrap()

    with session_scope(session_factory) as session:
        tender_counts = TenderRepository(session).count_by_status()
        queue_counts = QueueRepository(session).count_by_status()
        runs = RunRepository(session).get_recent(limit=5)

        counts_table = Table(title="Records", show_header=True, header_style="bold magenta")
        counts_table.add_column("Table", style="cyan")
        counts_table.add_column("Status")
        counts_table.add_column("Count", justify="right")
        for status_name, count in sorted(tender_counts.items()):
            counts_table.add_row("tenders", status_name, str(count))
        for status_name, count in sorted(queue_counts.items()):
            counts_table.add_row("queue", status_name, str(count))

        console.print()
        if tender_counts or queue_counts:
            console.print(counts_table)
        else:
            console.print("[dim]No tenders scraped yet.[/dim]")

        if runs:
            console.print()
            last = runs[0]
            console.print(
                f"Last run [cyan]#{last.id}[/cyan] ({last.run_type}) "
                f"{last.status} at {last.started_at:%Y-%m-%d %H:%M}: "
                f"{last.records_added} added, {last.duplicate_skipped} duplicate"
            )


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
