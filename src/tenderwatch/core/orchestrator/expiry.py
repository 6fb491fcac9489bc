"""
Expiry reconciliation: ACTIVE tenders past their closing date become EXPIRED.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session, sessionmaker

from tenderwatch.persistence.db import session_scope
from tenderwatch.persistence.repo import TenderRepository

logger = logging.getLogger(__name__)


class ExpiryReconciler:
    """Flips overdue tenders to EXPIRED in one bulk update."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.session_factory = session_factory
        self.clock = clock

    def reconcile_expired(self, now: datetime | None = None) -> int:
        """Expire every ACTIVE tender closing strictly before ``now``.

        Already-expired rows are never touched, so a second call with the
        same ``now`` returns 0.
        """
        now = now or self.clock()
        with session_scope(self.session_factory) as session:
            count = TenderRepository(session).expire_overdue(now)

        if count:
            logger.info("Expired %d tender(s) closing before %s", count, now.isoformat(timespec="minutes"))
        else:
            logger.debug("No overdue tenders")
        return count
