"""
SQLAlchemy ORM models for TenderWatch.

Defines the complete database schema including:
- Tenders: Listing records ingested from the portal
- Customers: Alert recipients (maintained by the CRM, read-only here)
- Subscriptions: Per-customer category/region preferences
- DispatchQueueItems: One alert candidate per (tender, customer)
- ScrapeRuns: Execution logs
- RunLocks: Overlap protection across processes
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Naive UTC timestamp used for all bookkeeping columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# Status Enums
# =============================================================================


class TenderStatus(str, Enum):
    """Lifecycle of a tender record. ACTIVE -> EXPIRED only."""

    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"


class QueueStatus(str, Enum):
    """Dispatch state of a queue row. SENT and FAILED are terminal."""

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class RunStatus(str, Enum):
    """Status of a scrape run log entry."""

    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


# =============================================================================
# Base Class
# =============================================================================


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    type_annotation_map = {
        dict[str, Any]: JSON,
        list[str]: JSON,
    }


# =============================================================================
# Mixins
# =============================================================================


class TimestampMixin:
    """Mixin providing created_at and updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime,
        default=None,
        onupdate=utcnow,
        nullable=True,
    )


# =============================================================================
# Tender Model
# =============================================================================


class Tender(Base, TimestampMixin):
    """A single tender notice scraped from the listing portal.

    ``reference_id`` is the portal's bid number and the natural dedup key.
    ``published_at`` and ``closing_at`` are stored as the portal shows them
    (naive, portal-local time).
    """

    __tablename__ = "tenders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reference_id: Mapped[str] = mapped_column(String(200), unique=True, nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(1000), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    region: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Dates
    published_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    closing_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TenderStatus.ACTIVE.value,
        index=True,
    )

    source: Mapped[str] = mapped_column(String(50), nullable=False, default="GEM")
    source_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    queue_items: Mapped[list["DispatchQueueItem"]] = relationship(
        "DispatchQueueItem",
        back_populates="tender",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_tender_status_closing", "status", "closing_at"),
        Index("ix_tender_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Tender(id={self.id}, reference_id='{self.reference_id}', status='{self.status}')>"


# =============================================================================
# Customer & Subscription Models
# =============================================================================


class Customer(Base, TimestampMixin):
    """Alert recipient. Owned by the CRM; this package only reads it."""

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    company: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    billing_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    subscription: Mapped["Subscription | None"] = relationship(
        "Subscription",
        back_populates="customer",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, name='{self.name}')>"


class Subscription(Base, TimestampMixin):
    """Category keywords and regions a customer wants alerts for.

    An empty ``categories`` or ``regions`` list means "no constraint".
    """

    __tablename__ = "tender_subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("customers.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    categories: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    regions: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    customer: Mapped["Customer"] = relationship("Customer", back_populates="subscription")

    def __repr__(self) -> str:
        return f"<Subscription(id={self.id}, customer_id={self.customer_id}, active={self.is_active})>"


# =============================================================================
# Dispatch Queue Model
# =============================================================================


class DispatchQueueItem(Base):
    """Pending or completed alert for one (tender, customer) pair."""

    __tablename__ = "tender_notification_queue"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tender_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tenders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    customer_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=QueueStatus.PENDING.value,
        index=True,
    )
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_attempt_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
        index=True,
    )

    tender: Mapped["Tender"] = relationship("Tender", back_populates="queue_items")
    customer: Mapped["Customer"] = relationship("Customer")

    __table_args__ = (
        UniqueConstraint("tender_id", "customer_id", name="uq_queue_tender_customer"),
        Index("ix_queue_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<DispatchQueueItem(id={self.id}, tender_id={self.tender_id}, "
            f"customer_id={self.customer_id}, status='{self.status}')>"
        )


# =============================================================================
# Scrape Run Model
# =============================================================================


class ScrapeRun(Base):
    """Execution log for a scrape run."""

    __tablename__ = "scrape_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    run_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="manual",  # manual, scheduled
    )
    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=RunStatus.RUNNING.value,
        index=True,
    )

    # Parameters
    max_pages: Mapped[int] = mapped_column(Integer, default=0)
    today_only: Mapped[bool] = mapped_column(Boolean, default=True)

    # Timing
    started_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
        index=True,
    )
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Statistics
    pages_scraped: Mapped[int] = mapped_column(Integer, default=0)
    records_found: Mapped[int] = mapped_column(Integer, default=0)
    records_added: Mapped[int] = mapped_column(Integer, default=0)
    duplicate_skipped: Mapped[int] = mapped_column(Integer, default=0)
    date_filtered_skipped: Mapped[int] = mapped_column(Integer, default=0)
    expired_skipped: Mapped[int] = mapped_column(Integer, default=0)
    errors_count: Mapped[int] = mapped_column(Integer, default=0)

    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def duration_seconds(self) -> float | None:
        """Calculate run duration in seconds."""
        if self.finished_at and self.started_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def __repr__(self) -> str:
        return f"<ScrapeRun(id={self.id}, run_type='{self.run_type}', status='{self.status}')>"


# =============================================================================
# Lock Model (for overlap protection)
# =============================================================================


class RunLock(Base):
    """Database lock for preventing overlapping pipeline runs."""

    __tablename__ = "run_locks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lock_name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    holder_id: Mapped[str] = mapped_column(String(100), nullable=False)  # host:pid:uuid

    def __repr__(self) -> str:
        return f"<RunLock(name='{self.lock_name}', holder='{self.holder_id}')>"
