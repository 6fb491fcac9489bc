"""
Tender browsing commands.
"""

from __future__ import annotations

from typing import Optional

import typer
from rich.table import Table

from tenderwatch.cli.common import bootstrap, console

app = typer.Typer(
    help="Browse stored tenders",
    no_args_is_help=True,
)


@app.command("list")
def list_tenders(
    status: Optional[str] = typer.Option("ACTIVE", "--status", "-s", help="ACTIVE or EXPIRED (empty for all)"),
    region: Optional[str] = typer.Option(None, "--region", "-r", help="Region contains"),
    category: Optional[str] = typer.Option(None, "--category", help="Category contains"),
    search: Optional[str] = typer.Option(None, "--search", "-q", help="Search title, bid number, department"),
    limit: int = typer.Option(50, "--limit", "-l", min=1, help="Rows to show"),
    offset: int = typer.Option(0, "--offset", min=0, help="Rows to skip"),
) -> None:
    """List tenders, newest first."""
    from tenderwatch.persistence.db import session_scope
    from tenderwatch.persistence.repo import TenderRepository

    _, session_factory = bootstrap()

    with session_scope(session_factory) as session:
        rows = TenderRepository(session).list_tenders(
            status=status or None,
            region=region,
            category=category,
            search=search,
            limit=limit,
            offset=offset,
        )

        if not rows:
            console.print("[dim]No tenders match.[/dim]")
            return

        table = Table(title=f"Tenders ({len(rows)})", show_header=True, header_style="bold magenta")
        table.add_column("Bid No", style="cyan", no_wrap=True)
        table.add_column("Title", max_width=50)
        table.add_column("Region")
        table.add_column("Qty", justify="right")
        table.add_column("Closes")
        table.add_column("Status")

        for tender in rows:
            style = "green" if tender.status == "ACTIVE" else "dim"
            table.add_row(
                tender.reference_id,
                tender.title,
                tender.region or "-",
                str(tender.quantity) if tender.quantity is not None else "-",
                tender.closing_at.strftime("%Y-%m-%d %H:%M") if tender.closing_at else "-",
                f"[{style}]{tender.status}[/{style}]",
            )

        console.print(table)


@app.command("stats")
def tender_stats(
    expiring_days: int = typer.Option(3, "--expiring-days", min=1, help="Window for 'expiring soon'"),
) -> None:
    """Totals, regions and categories."""
    from tenderwatch.persistence.db import session_scope
    from tenderwatch.persistence.repo import TenderRepository

    _, session_factory = bootstrap()

    with session_scope(session_factory) as session:
        repo = TenderRepository(session)
        stats = repo.stats(expiring_days=expiring_days)
        regions = repo.regions()
        categories = repo.categories()

    console.print(
        f"Total [bold]{stats['total']}[/bold], active [green]{stats['active']}[/green], "
        f"closing within {expiring_days} day(s) [yellow]{stats['expiring_soon']}[/yellow]"
    )
    if regions:
        console.print(f"[cyan]Regions[/cyan] ({len(regions)}): {', '.join(regions)}")
    if categories:
        shown = ", ".join(categories[:20])
        more = f" ... +{len(categories) - 20}" if len(categories) > 20 else ""
        console.print(f"[cyan]Categories[/cyan] ({len(categories)}): {shown}{more}")


@app.command("expire")
def expire_tenders() -> None:
    """Mark tenders past their closing date as EXPIRED."""
    from tenderwatch.core.orchestrator.expiry import ExpiryReconciler

    _, session_factory = bootstrap()
    count = ExpiryReconciler(session_factory).reconcile_expired()
    console.print(f"[green]OK[/green] {count} tender(s) expired")
