"""
Scheduler commands.
"""

from __future__ import annotations

import asyncio

import typer
from rich.table import Table

from tenderwatch.cli.common import bootstrap, console, load_config

app = typer.Typer(
    help="Run the interval scheduler",
    no_args_is_help=True,
)


@app.command("start")
def start_scheduler(
    run_now: bool = typer.Option(False, "--run-now", help="Fire one run immediately"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """Start the scheduler in the foreground (Ctrl+C to stop)."""
    from tenderwatch.core.orchestrator.runner import build_pipeline
    from tenderwatch.core.scheduler.service import create_scheduler

    config, session_factory = bootstrap(verbose)
    if not config.scheduler.enabled:
        console.print("[yellow]Scheduler is disabled in configuration (scheduler.enabled)[/yellow]")
        raise typer.Exit(1)
    if run_now:
        config.scheduler.run_on_start = True

    scheduler = create_scheduler(config, session_factory, build_pipeline(config, session_factory))

    console.print(
        f"[bold]Scheduler running[/bold]: every {config.scheduler.interval_minutes} min, "
        f"{config.scheduler.pages or 'all'} page(s), lock={config.scheduler.lock_backend.value}. "
        "Press Ctrl+C to stop."
    )
    try:
        asyncio.run(scheduler.start())
    except KeyboardInterrupt:
        console.print("\n[yellow]Scheduler stopped[/yellow]")


@app.command("show")
def show_schedule() -> None:
    """Show the effective scheduler settings."""
    config = load_config()
    sched = config.scheduler

    table = Table(title="Scheduler", show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Enabled", "yes" if sched.enabled else "no")
    table.add_row("Interval", f"{sched.interval_minutes} min")
    table.add_row("Pages per run", str(sched.pages or "all"))
    table.add_row("Today only", "yes" if sched.today_only else "no")
    table.add_row("Manual default pages", str(sched.manual_pages))
    table.add_row("Timezone", sched.timezone)
    table.add_row("Lock backend", sched.lock_backend.value)
    if sched.lock_backend.value == "database":
        table.add_row("Lock TTL", f"{sched.lock_ttl_minutes} min")
    console.print(table)
