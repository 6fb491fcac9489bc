"""CLI command modules."""

from . import db, queue, schedule, scrape, tenders

__all__ = [
    "db",
    "queue",
    "schedule",
    "scrape",
    "tenders",
]
