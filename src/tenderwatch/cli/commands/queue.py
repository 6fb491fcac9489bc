"""
Notification queue commands.
"""

from __future__ import annotations

from typing import Optional

import typer
from rich.table import Table

from tenderwatch.cli.common import bootstrap, console

app = typer.Typer(
    help="Build, drain and inspect the notification queue",
    no_args_is_help=True,
)


@app.command("build")
def build_queue(
    lookback: Optional[int] = typer.Option(
        None,
        "--lookback-minutes",
        "-l",
        min=1,
        help="Match tenders ingested within this many minutes",
    ),
) -> None:
    """Match recent tenders against subscriptions."""
    from datetime import timedelta

    from tenderwatch.core.orchestrator.matcher import QueueBuilder

    config, session_factory = bootstrap()
    builder = QueueBuilder(session_factory, lookback_minutes=config.matcher.lookback_minutes)
    queued = builder.build_queue(timedelta(minutes=lookback) if lookback else None)
    console.print(f"[green]OK[/green] {queued} notification(s) queued")


@app.command("process")
def process_queue(
    batch_size: Optional[int] = typer.Option(None, "--batch-size", "-b", min=1, help="Rows per drain"),
) -> None:
    """Send pending notifications."""
    from tenderwatch.core.notify.email import create_sender
    from tenderwatch.core.orchestrator.dispatch import DispatchProcessor

    config, session_factory = bootstrap()
    processor = DispatchProcessor(
        session_factory,
        create_sender(config.email),
        display_limit=config.dispatch.display_limit,
        frontend_url=config.dispatch.frontend_url,
    )
    result = processor.process_queue(batch_size or config.dispatch.batch_size)

    console.print(
        f"[green]{result.sent}[/green] row(s) sent in {result.emails_sent} email(s), "
        f"[red]{result.failed}[/red] row(s) failed"
    )
    for error in result.errors:
        console.print(f"  [red]-[/red] {error}")


@app.command("status")
def queue_status() -> None:
    """Count queue rows by status."""
    from tenderwatch.persistence.db import session_scope
    from tenderwatch.persistence.repo import QueueRepository

    _, session_factory = bootstrap()
    with session_scope(session_factory) as session:
        counts = QueueRepository(session).count_by_status()

    if not counts:
        console.print("[dim]Queue is empty.[/dim]")
        return

    table = Table(title="Notification Queue", show_header=True, header_style="bold magenta")
    table.add_column("Status", style="cyan")
    table.add_column("Count", justify="right")
    for status_name, count in sorted(counts.items()):
        table.add_row(status_name, str(count))
    console.print(table)


@app.command("requeue-failed")
def requeue_failed_rows(
    max_attempts: Optional[int] = typer.Option(
        None,
        "--max-attempts",
        min=1,
        help="Only rows attempted fewer times than this",
    ),
    backoff_minutes: Optional[int] = typer.Option(
        None,
        "--backoff-minutes",
        min=0,
        help="Base wait after the first failure; doubles per attempt",
    ),
) -> None:
    """Move retryable FAILED rows back to PENDING."""
    from tenderwatch.core.orchestrator.dispatch import requeue_failed

    config, session_factory = bootstrap()
    count = requeue_failed(
        session_factory,
        max_attempts=max_attempts or config.dispatch.requeue_max_attempts,
        backoff_minutes=config.dispatch.requeue_backoff_minutes if backoff_minutes is None else backoff_minutes,
    )
    console.print(f"[green]OK[/green] {count} row(s) requeued")
