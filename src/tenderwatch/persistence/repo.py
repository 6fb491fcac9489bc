"""
Repository pattern for database operations.

Thin query helpers over the ORM models. Repositories never commit;
transaction boundaries belong to the pipeline stage using them.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Iterable, Sequence

from sqlalchemy import and_, distinct, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from .models import (
    Customer,
    DispatchQueueItem,
    QueueStatus,
    RunStatus,
    ScrapeRun,
    Subscription,
    Tender,
    TenderStatus,
    utcnow,
)


# =============================================================================
# Tender Repository
# =============================================================================


class TenderRepository:
    """Repository for Tender records."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, tender_id: int) -> Tender | None:
        """Get tender by ID."""
        return self.session.get(Tender, tender_id)

    def get_by_reference(self, reference_id: str) -> Tender | None:
        """Get tender by portal reference id."""
        stmt = select(Tender).where(Tender.reference_id == reference_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def existing_reference_ids(self, reference_ids: Iterable[str]) -> set[str]:
        """Return the subset of ``reference_ids`` already stored (one query)."""
        ids = list({ref for ref in reference_ids if ref})
        if not ids:
            return set()
        stmt = select(Tender.reference_id).where(Tender.reference_id.in_(ids))
        return set(self.session.execute(stmt).scalars().all())

    def add(self, **fields: Any) -> Tender:
        """Insert a new ACTIVE tender and flush it."""
        tender = Tender(status=TenderStatus.ACTIVE.value, **fields)
        self.session.add(tender)
        self.session.flush()
        return tender

    def expire_overdue(self, now: datetime) -> int:
        """Flip ACTIVE tenders whose closing date is before ``now`` to EXPIRED."""
        stmt = (
            update(Tender)
            .where(
                and_(
                    Tender.status == TenderStatus.ACTIVE.value,
                    Tender.closing_at.is_not(None),
                    Tender.closing_at < now,
                )
            )
            .values(status=TenderStatus.EXPIRED.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount or 0

    def recent_active(self, since: datetime) -> Sequence[Tender]:
        """ACTIVE tenders ingested at or after ``since``."""
        stmt = (
            select(Tender)
            .where(
                and_(
                    Tender.status == TenderStatus.ACTIVE.value,
                    Tender.created_at >= since,
                )
            )
            .order_by(Tender.created_at.asc(), Tender.id.asc())
        )
        return self.session.execute(stmt).scalars().all()

    def list_tenders(
        self,
        status: str | None = None,
        region: str | None = None,
        category: str | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Tender]:
        """List tenders with filters, newest first."""
        stmt = select(Tender)

        conditions = []
        if status is not None:
            conditions.append(Tender.status == status.upper())
        if region:
            conditions.append(Tender.region.ilike(f"%{region}%"))
        if category:
            conditions.append(Tender.category.ilike(f"%{category}%"))
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    Tender.title.ilike(pattern),
                    Tender.reference_id.ilike(pattern),
                    Tender.description.ilike(pattern),
                )
            )

        if conditions:
            stmt = stmt.where(and_(*conditions))

        stmt = stmt.order_by(Tender.created_at.desc(), Tender.id.desc())
        stmt = stmt.limit(limit).offset(offset)

        return self.session.execute(stmt).scalars().all()

    def stats(self, now: datetime | None = None, expiring_days: int = 3) -> dict[str, int]:
        """Total, active and soon-to-close counts."""
        now = now or datetime.now()
        total = self.session.execute(select(func.count(Tender.id))).scalar_one()
        active = self.session.execute(
            select(func.count(Tender.id)).where(Tender.status == TenderStatus.ACTIVE.value)
        ).scalar_one()
        expiring = self.session.execute(
            select(func.count(Tender.id)).where(
                and_(
                    Tender.status == TenderStatus.ACTIVE.value,
                    Tender.closing_at >= now,
                    Tender.closing_at <= now + timedelta(days=expiring_days),
                )
            )
        ).scalar_one()
        return {"total": total, "active": active, "expiring_soon": expiring}

    def regions(self) -> list[str]:
        """Distinct non-empty regions, sorted."""
        stmt = select(distinct(Tender.region)).where(Tender.region.is_not(None)).order_by(Tender.region)
        return [r for r in self.session.execute(stmt).scalars().all() if r]

    def categories(self) -> list[str]:
        """Distinct non-empty category labels, sorted."""
        stmt = (
            select(distinct(Tender.category))
            .where(Tender.category.is_not(None))
            .order_by(Tender.category)
        )
        return [c for c in self.session.execute(stmt).scalars().all() if c]

    def count_by_status(self) -> dict[str, int]:
        """Count tenders grouped by status."""
        stmt = select(Tender.status, func.count(Tender.id)).group_by(Tender.status)
        return {status: count for status, count in self.session.execute(stmt).all()}


# =============================================================================
# Subscription Repository
# =============================================================================


class SubscriptionRepository:
    """Read access to customer subscriptions."""

    def __init__(self, session: Session):
        self.session = session

    def active_for_billing_customers(self) -> Sequence[Subscription]:
        """Active subscriptions whose customer is billing-active."""
        stmt = (
            select(Subscription)
            .join(Subscription.customer)
            .options(joinedload(Subscription.customer))
            .where(
                and_(
                    Subscription.is_active == True,  # noqa: E712
                    Customer.billing_active == True,  # noqa: E712
                )
            )
            .order_by(Subscription.customer_id)
        )
        return self.session.execute(stmt).scalars().all()


# =============================================================================
# Dispatch Queue Repository
# =============================================================================


class QueueRepository:
    """Repository for dispatch queue rows."""

    def __init__(self, session: Session):
        self.session = session

    def existing_pairs(
        self,
        tender_ids: Iterable[int],
        customer_ids: Iterable[int],
    ) -> set[tuple[int, int]]:
        """Return (tender_id, customer_id) pairs already queued, in one query."""
        t_ids = list(set(tender_ids))
        c_ids = list(set(customer_ids))
        if not t_ids or not c_ids:
            return set()
        stmt = select(DispatchQueueItem.tender_id, DispatchQueueItem.customer_id).where(
            and_(
                DispatchQueueItem.tender_id.in_(t_ids),
                DispatchQueueItem.customer_id.in_(c_ids),
            )
        )
        return {(t, c) for t, c in self.session.execute(stmt).all()}

    def enqueue(self, tender_id: int, customer_id: int) -> bool:
        """Insert a PENDING row unless the pair already exists.

        The insert runs in a SAVEPOINT so a unique-constraint race only
        rolls back this row.

        Returns:
            True if a row was inserted
        """
        try:
            with self.session.begin_nested():
                self.session.add(
                    DispatchQueueItem(
                        tender_id=tender_id,
                        customer_id=customer_id,
                        status=QueueStatus.PENDING.value,
                    )
                )
        except IntegrityError:
            return False
        return True

    def fetch_pending(self, limit: int) -> Sequence[DispatchQueueItem]:
        """Oldest PENDING rows with tender and customer loaded."""
        stmt = (
            select(DispatchQueueItem)
            .options(
                joinedload(DispatchQueueItem.tender),
                joinedload(DispatchQueueItem.customer),
            )
            .where(DispatchQueueItem.status == QueueStatus.PENDING.value)
            .order_by(DispatchQueueItem.created_at.asc(), DispatchQueueItem.id.asc())
            .limit(limit)
        )
        return self.session.execute(stmt).scalars().all()

    def mark(
        self,
        item_ids: Sequence[int],
        status: QueueStatus,
        *,
        attempted_at: datetime,
        error_message: str | None = None,
        increment_retry: bool = False,
    ) -> int:
        """Move PENDING rows to ``status`` in a single UPDATE.

        Rows that are no longer PENDING are left alone.
        """
        if not item_ids:
            return 0
        values: dict[str, Any] = {
            "status": status.value,
            "last_attempt_at": attempted_at,
            "error_message": error_message,
        }
        if increment_retry:
            values["retry_count"] = DispatchQueueItem.retry_count + 1
        stmt = (
            update(DispatchQueueItem)
            .where(
                and_(
                    DispatchQueueItem.id.in_(list(item_ids)),
                    DispatchQueueItem.status == QueueStatus.PENDING.value,
                )
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount or 0

    def count_by_status(self) -> dict[str, int]:
        """Count queue rows grouped by status."""
        stmt = select(DispatchQueueItem.status, func.count(DispatchQueueItem.id)).group_by(
            DispatchQueueItem.status
        )
        return {status: count for status, count in self.session.execute(stmt).all()}

    def failed_items(self, max_attempts: int) -> Sequence[DispatchQueueItem]:
        """FAILED rows that have been attempted fewer than ``max_attempts`` times."""
        stmt = (
            select(DispatchQueueItem)
            .where(
                and_(
                    DispatchQueueItem.status == QueueStatus.FAILED.value,
                    DispatchQueueItem.retry_count < max_attempts,
                )
            )
            .order_by(DispatchQueueItem.id.asc())
        )
        return self.session.execute(stmt).scalars().all()


# =============================================================================
# Run Repository
# =============================================================================


class RunRepository:
    """Repository for ScrapeRun operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, run_type: str = "manual", max_pages: int = 0, today_only: bool = True) -> ScrapeRun:
        """Create a new scrape run."""
        run = ScrapeRun(
            run_type=run_type,
            max_pages=max_pages,
            today_only=today_only,
            status=RunStatus.RUNNING.value,
        )
        self.session.add(run)
        self.session.flush()
        return run

    def get_by_id(self, run_id: int) -> ScrapeRun | None:
        """Get run by ID."""
        return self.session.get(ScrapeRun, run_id)

    def record_stats(self, run_id: int, stats: dict[str, int]) -> None:
        """Overwrite run counters from a stats mapping."""
        run = self.get_by_id(run_id)
        if not run:
            return
        for field, value in stats.items():
            if hasattr(run, field):
                setattr(run, field, value)

    def complete(
        self,
        run_id: int,
        status: str = RunStatus.COMPLETED.value,
        error_message: str | None = None,
    ) -> None:
        """Mark a run as complete."""
        run = self.get_by_id(run_id)
        if not run:
            return

        run.status = status
        run.finished_at = utcnow()
        run.error_message = error_message

    def get_recent(self, limit: int = 20) -> Sequence[ScrapeRun]:
        """Get recent runs."""
        stmt = select(ScrapeRun).order_by(ScrapeRun.started_at.desc(), ScrapeRun.id.desc()).limit(limit)
        return self.session.execute(stmt).scalars().all()


