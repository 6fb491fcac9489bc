"""
Database management commands.
"""

from __future__ import annotations

import typer
from alembic import command
from alembic.config import Config
from alembic.util.exc import CommandError

from tenderwatch.cli.common import console, err_console, load_config

app = typer.Typer(
    help="Database operations",
    no_args_is_help=True,
)


def _alembic_config() -> Config:
    alembic_cfg = Config("alembic.ini")
    alembic_cfg.set_main_option("sqlalchemy.url", load_config().database.url)
    return alembic_cfg


@app.command("init")
def init_database(
    drop_existing: bool = typer.Option(
        False,
        "--drop",
        help="Drop existing tables before creating",
    ),
) -> None:
    """Create all tables. Use --drop to reset the database."""
    from tenderwatch.persistence.db import drop_db, init_db

    config = load_config()

    if drop_existing:
        if not typer.confirm("This will DELETE ALL DATA. Continue?", default=False):
            raise typer.Abort()

        console.print("[yellow]Dropping existing tables...[/yellow]")
        drop_db(config.database.url)

    console.print("Creating database schema...")
    init_db(config.database.url)

    console.print("[green]OK[/green] Database initialized")


@app.command("migrate")
def run_migrations(
    revision: str = typer.Option(
        "head",
        "--revision",
        "-r",
        help="Target revision (default: head)",
    ),
) -> None:
    """Run Alembic migrations."""
    console.print(f"Running migrations to: {revision}")

    try:
        command.upgrade(_alembic_config(), revision)
    except CommandError as e:
        err_console.print(f"[red]Migration failed:[/red] {e}")
        raise typer.Exit(1)

    console.print("[green]OK[/green] Migrations complete")


@app.command("downgrade")
def downgrade_database(
    revision: str = typer.Argument(..., help="Target revision"),
) -> None:
    """Downgrade database to a specific revision."""
    if not typer.confirm(f"Downgrade to revision '{revision}'? This may lose data."):
        raise typer.Abort()

    console.print(f"Downgrading to: {revision}")

    try:
        command.downgrade(_alembic_config(), revision)
    except CommandError as e:
        err_console.print(f"[red]Downgrade failed:[/red] {e}")
        raise typer.Exit(1)

    console.print("[green]OK[/green] Downgrade complete")
