"""
Dispatch processor: drains the notification queue as one email per customer.

A customer group either ends up entirely SENT or entirely FAILED for an
attempt; its rows are updated in a single transaction after the send.
"""

from __future__ import annotations

import html
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Sequence

from sqlalchemy.orm import Session, sessionmaker

from tenderwatch.core.notify.email import EmailSender
from tenderwatch.persistence.db import session_scope
from tenderwatch.persistence.models import Customer, DispatchQueueItem, QueueStatus, Tender, utcnow
from tenderwatch.persistence.repo import QueueRepository

logger = logging.getLogger(__name__)

NO_EMAIL_ERROR = "Customer has no usable email address"
TITLE_PREVIEW_CHARS = 100


# =============================================================================
# Results
# =============================================================================


@dataclass
class DispatchResult:
    """Outcome of one queue drain."""

    sent: int = 0  # queue rows marked SENT
    failed: int = 0  # queue rows marked FAILED
    emails_sent: int = 0
    emails_failed: int = 0
    groups: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sent": self.sent,
            "failed": self.failed,
            "emails_sent": self.emails_sent,
            "emails_failed": self.emails_failed,
            "groups": self.groups,
        }


@dataclass
class CustomerGroup:
    """Pending rows for a single customer."""

    customer: Customer
    items: list[DispatchQueueItem] = field(default_factory=list)

    @property
    def item_ids(self) -> list[int]:
        return [item.id for item in self.items]

    @property
    def tenders(self) -> list[Tender]:
        return [item.tender for item in self.items]


def usable_email(address: str | None) -> bool:
    return bool(address and address.strip() and "@" in address)


def group_by_customer(items: Sequence[DispatchQueueItem]) -> list[CustomerGroup]:
    """Group rows by customer, keeping first-seen order."""
    groups: OrderedDict[int, CustomerGroup] = OrderedDict()
    for item in items:
        group = groups.get(item.customer_id)
        if group is None:
            group = groups[item.customer_id] = CustomerGroup(customer=item.customer)
        group.items.append(item)
    return list(groups.values())


# =============================================================================
# Email Rendering
# =============================================================================


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


def _tender_row(tender: Tender) -> str:
    e = html.escape
    title = tender.title or ""
    if len(title) > TITLE_PREVIEW_CHARS:
        title = title[:TITLE_PREVIEW_CHARS] + "..."
    closing = tender.closing_at.strftime("%d/%m/%Y") if tender.closing_at else "N/A"
    link = e(tender.source_url or "#", quote=True)
    action = (
        f'<a href="{link}" style="background: #28a745; color: white; padding: 6px 12px; '
        f'border-radius: 4px; text-decoration: none; font-size: 12px;">View on GeM</a>'
        if tender.source_url
        else "-"
    )
    cell = 'style="padding: 10px; border-bottom: 1px solid #eee; text-align: center;"'
    return (
        "<tr>"
        '<td style="padding: 10px; border-bottom: 1px solid #eee;">'
        f'<strong><a href="{link}" style="color: #667eea; text-decoration: none;">{e(tender.reference_id)}</a></strong><br>'
        f'<span style="color: #666;">{e(title)}</span>'
        "</td>"
        f"<td {cell}>{e(tender.region or 'N/A')}</td>"
        f"<td {cell}>{closing}</td>"
        f"<td {cell}>{action}</td>"
        "</tr>"
    )


def render_email(
    customer_name: str,
    tenders: Sequence[Tender],
    *,
    display_limit: int = 10,
    frontend_url: str = "http://localhost:3000",
) -> tuple[str, str]:
    """Build the subject and HTML body of a tender digest.

    Args:
        customer_name: Greeting name
        tenders: Every tender in the group; only ``display_limit`` are listed
        display_limit: Rows shown before the overflow line
        frontend_url: Base URL for the "View All Tenders" button

    Returns:
        (subject, html)
    """
    count = len(tenders)
    subject = f"\U0001F514 {count} New Tender{_plural(count)} Matching Your Preferences"

    rows = "".join(_tender_row(t) for t in tenders[:display_limit])
    overflow = ""
    if count > display_limit:
        overflow = f'<p style="color: #666; text-align: center;">...and {count - display_limit} more tenders</p>'

    all_link = html.escape(f"{frontend_url.rstrip('/')}/scraped-tenders", quote=True)

    body = f"""
<div style="font-family: Arial, sans-serif; max-width: 700px; margin: 0 auto;">
  <div style="background: #667eea; padding: 20px; text-align: center;">
    <h1 style="color: white; margin: 0;">New Tenders Alert</h1>
  </div>
  <div style="padding: 20px; background: #f9f9f9;">
    <p>Dear {html.escape(customer_name)},</p>
    <p>We found <strong>{count} new tender{_plural(count)}</strong> matching your preferences:</p>
    <table style="width: 100%; border-collapse: collapse; background: white;">
      <thead>
        <tr style="background: #f0f0f0;">
          <th style="padding: 12px; text-align: left;">Tender Details</th>
          <th style="padding: 12px; text-align: center;">State</th>
          <th style="padding: 12px; text-align: center;">End Date</th>
          <th style="padding: 12px; text-align: center;">Action</th>
        </tr>
      </thead>
      <tbody>{rows}</tbody>
    </table>
    {overflow}
    <div style="text-align: center; margin-top: 20px;">
      <a href="{all_link}" style="background: #667eea; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block;">View All Tenders</a>
    </div>
  </div>
  <div style="padding: 15px; text-align: center; color: #999; font-size: 12px;">
    <p>This is an automated tender alert. To update your preferences, please visit your profile.</p>
  </div>
</div>
"""
    return subject, body


# =============================================================================
# Processor
# =============================================================================


class DispatchProcessor:
    """Sends pending notifications, one email per customer."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        sender: EmailSender,
        *,
        display_limit: int = 10,
        frontend_url: str = "http://localhost:3000",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.sender = sender
        self.display_limit = display_limit
        self.frontend_url = frontend_url
        self.clock = clock

    def process_queue(self, batch_size: int = 200) -> DispatchResult:
        """Drain up to ``batch_size`` PENDING rows."""
        result = DispatchResult()

        with session_scope(self.session_factory) as session:
            items = QueueRepository(session).fetch_pending(batch_size)
        if not items:
            logger.info("Notification queue is empty")
            return result

        groups = group_by_customer(items)
        result.groups = len(groups)
        logger.info("Dispatching %d queued notification(s) to %d customer(s)", len(items), len(groups))

        for group in groups:
            self._dispatch_group(group, result)

        logger.info(
            "Dispatch done: %d row(s) sent in %d email(s), %d row(s) failed",
            result.sent,
            result.emails_sent,
            result.failed,
        )
        return result

    def _dispatch_group(self, group: CustomerGroup, result: DispatchResult) -> None:
        customer = group.customer

        if not usable_email(customer.email):
            logger.warning("Customer %s has no usable email; failing %d row(s)", customer.id, len(group.items))
            result.failed += self._mark(group, QueueStatus.FAILED, NO_EMAIL_ERROR)
            result.errors.append(f"customer {customer.id}: {NO_EMAIL_ERROR}")
            return

        subject, body = render_email(
            customer.name,
            group.tenders,
            display_limit=self.display_limit,
            frontend_url=self.frontend_url,
        )

        try:
            delivered = self.sender.send(customer.email.strip(), subject, body)
            error = None if delivered else "Email sender reported failure"
        except Exception as e:
            delivered = False
            error = str(e) or type(e).__name__

        if delivered:
            result.sent += self._mark(group, QueueStatus.SENT)
            result.emails_sent += 1
            return

        logger.error("Email to customer %s failed: %s", customer.id, error)
        result.failed += self._mark(group, QueueStatus.FAILED, error, increment_retry=True)
        result.emails_failed += 1
        result.errors.append(f"customer {customer.id}: {error}")

    def _mark(
        self,
        group: CustomerGroup,
        status: QueueStatus,
        error: str | None = None,
        *,
        increment_retry: bool = False,
    ) -> int:
        with session_scope(self.session_factory) as session:
            return QueueRepository(session).mark(
                group.item_ids,
                status,
                attempted_at=self.clock(),
                error_message=error,
                increment_retry=increment_retry,
            )


# =============================================================================
# Failed-row Requeue
# =============================================================================


def requeue_failed(
    session_factory: sessionmaker[Session],
    *,
    max_attempts: int = 3,
    backoff_minutes: int = 30,
    now: datetime | None = None,
) -> int:
    """Move retryable FAILED rows back to PENDING.

    Only rows that actually attempted a send (``retry_count >= 1``) and
    are below ``max_attempts`` qualify. A row becomes eligible once
    ``backoff_minutes * 2 ** (retry_count - 1)`` has passed since its last
    attempt. Rows failed for a missing email address never qualify.

    Returns:
        Number of rows requeued
    """
    now = now or utcnow()
    requeued = 0

    with session_scope(session_factory) as session:
        for item in QueueRepository(session).failed_items(max_attempts):
            if item.retry_count < 1:
                continue
            wait = timedelta(minutes=backoff_minutes * 2 ** (item.retry_count - 1))
            if item.last_attempt_at is not None and item.last_attempt_at + wait > now:
                continue
            item.status = QueueStatus.PENDING.value
            item.error_message = None
            requeued += 1

    logger.info("Requeued %d failed notification(s)", requeued)
    return requeued
