"""
Subscription matching and dispatch queue building.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session, sessionmaker

from tenderwatch.core.normalize.regions import keyword_matches, region_matches
from tenderwatch.persistence.db import session_scope
from tenderwatch.persistence.models import Subscription, Tender, utcnow
from tenderwatch.persistence.repo import QueueRepository, SubscriptionRepository, TenderRepository

logger = logging.getLogger(__name__)


def subscription_matches(subscription: Subscription, tender: Tender) -> bool:
    """Whether ``tender`` is relevant to ``subscription``.

    Region and keyword tests are loose case-insensitive substring checks;
    an empty list on either side means no constraint.
    """
    if not region_matches(tender.region, subscription.regions or []):
        return False
    return keyword_matches(
        (tender.title, tender.description, tender.category),
        subscription.categories or [],
    )


class QueueBuilder:
    """Enqueues one PENDING row per new (tender, customer) match."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        lookback_minutes: int = 150,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session_factory = session_factory
        self.lookback = timedelta(minutes=lookback_minutes)
        self.clock = clock

    def build_queue(self, lookback: timedelta | None = None) -> int:
        """Match recent tenders against active subscriptions.

        Args:
            lookback: Window of ingestion time to consider; defaults to the
                configured lookback

        Returns:
            Number of queue rows inserted
        """
        since = self.clock() - (lookback or self.lookback)

        with session_scope(self.session_factory) as session:
            subscriptions = SubscriptionRepository(session).active_for_billing_customers()
            if not subscriptions:
                logger.info("No active subscriptions; nothing to queue")
                return 0

            tenders = TenderRepository(session).recent_active(since)
            if not tenders:
                logger.info("No tenders ingested since %s", since.isoformat(timespec="minutes"))
                return 0

            queue = QueueRepository(session)
            already = queue.existing_pairs(
                (t.id for t in tenders),
                (s.customer_id for s in subscriptions),
            )

            queued = 0
            for subscription in subscriptions:
                for tender in tenders:
                    pair = (tender.id, subscription.customer_id)
                    if pair in already or not subscription_matches(subscription, tender):
                        continue
                    if queue.enqueue(*pair):
                        queued += 1
                    already.add(pair)

        logger.info(
            "Queued %d notification(s) from %d tender(s) and %d subscription(s)",
            queued,
            len(tenders),
            len(subscriptions),
        )
        return queued
