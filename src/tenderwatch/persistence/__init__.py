"""Database persistence layer."""

from .db import create_db_engine, create_session_factory, get_engine, get_session_factory, init_db, session_scope
from .models import (
    Base,
    Customer,
    DispatchQueueItem,
    QueueStatus,
    RunLock,
    ScrapeRun,
    Subscription,
    Tender,
    TenderStatus,
)
from .repo import QueueRepository, RunRepository, SubscriptionRepository, TenderRepository

__all__ = [
    "create_db_engine",
    "create_session_factory",
    "get_engine",
    "get_session_factory",
    "init_db",
    "session_scope",
    "Base",
    "Customer",
    "DispatchQueueItem",
    "QueueStatus",
    "RunLock",
    "ScrapeRun",
    "Subscription",
    "Tender",
    "TenderStatus",
    "QueueRepository",
    "RunRepository",
    "SubscriptionRepository",
    "TenderRepository",
]
