"""
Shared CLI plumbing: config path, logging and database bootstrap.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from sqlalchemy.orm import Session, sessionmaker

from tenderwatch.core.config.loader import ConfigError, load_app_config
from tenderwatch.core.config.models import AppConfig
from tenderwatch.core.logging import setup_logging
from tenderwatch.persistence.db import get_session_factory, init_db

console = Console()
err_console = Console(stderr=True)

# Set by the root callback (--config)
state: dict[str, Path | None] = {"config_path": None}


def load_config() -> AppConfig:
    """Load app.yaml, exiting with a readable message when it is invalid."""
    try:
        return load_app_config(state["config_path"])
    except ConfigError as e:
        err_console.print(f"[red]Configuration error:[/red] {e}")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(1)


def bootstrap(verbose: bool = False) -> tuple[AppConfig, sessionmaker[Session]]:
    """Load configuration, configure logging and open the database."""
    config = load_config()
    config.ensure_directories()
    setup_logging(
        level="DEBUG" if verbose else config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        rich_console=config.logging.rich_console,
    )
    init_db(config.database.url, echo=config.database.echo)
    return config, get_session_factory(config.database.url)
