"""
Run lock management for pipeline execution.

The scheduler's in-process state is always the first guard; the
database lock here is added for deployments running more than one
scheduler process against the same database.
"""

from __future__ import annotations

import asyncio
import logging
import os
import socket
from datetime import timedelta
from uuid import uuid4

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from tenderwatch.persistence.models import RunLock, utcnow

logger = logging.getLogger(__name__)


def make_holder_id() -> str:
    """Identifier for this process, stored on lock rows."""
    return f"{socket.gethostname()}-{os.getpid()}-{uuid4().hex[:8]}"


class LockManager:
    """Manages RunLock rows in database for overlap protection.

    Each call opens and commits its own short session so the lock is
    visible to other processes immediately.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def acquire(self, lock_name: str, holder_id: str, ttl_minutes: int = 120) -> bool:
        """Acquire lock. Returns True if acquired, False if held by another."""
        now = utcnow()
        expires_at = now + timedelta(minutes=ttl_minutes)

        with self._session_factory() as session:
            # Take over an expired (crashed holder) or re-entrant lock in one
            # conditional statement so two contenders cannot both win
            stmt = (
                update(RunLock)
                .where(
                    RunLock.lock_name == lock_name,
                    or_(RunLock.expires_at <= now, RunLock.holder_id == holder_id),
                )
                .values(holder_id=holder_id, acquired_at=now, expires_at=expires_at)
                .execution_options(synchronize_session=False)
            )
            if session.execute(stmt).rowcount:
                session.commit()
                return True

            # No row, or a live row held by someone else: the unique name decides
            session.add(
                RunLock(
                    lock_name=lock_name,
                    acquired_at=now,
                    expires_at=expires_at,
                    holder_id=holder_id,
                )
            )
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return False
            return True

    def extend(self, lock_name: str, holder_id: str, ttl_minutes: int = 120) -> bool:
        """Push the expiry of a held lock forward. False if not held by us."""
        with self._session_factory() as session:
            stmt = select(RunLock).where(RunLock.lock_name == lock_name)
            lock = session.execute(stmt).scalar_one_or_none()
            if lock is None or lock.holder_id != holder_id:
                return False
            lock.expires_at = utcnow() + timedelta(minutes=ttl_minutes)
            session.commit()
            return True

    def release(self, lock_name: str, holder_id: str) -> bool:
        """Release lock. Returns True if released, False if not held by us."""
        with self._session_factory() as session:
            stmt = select(RunLock).where(RunLock.lock_name == lock_name)
            lock = session.execute(stmt).scalar_one_or_none()

            if lock is None or lock.holder_id != holder_id:
                return False

            session.delete(lock)
            session.commit()
            return True

    def is_locked(self, lock_name: str) -> bool:
        """Check if lock is currently held (not expired)."""
        with self._session_factory() as session:
            stmt = select(RunLock).where(RunLock.lock_name == lock_name)
            lock = session.execute(stmt).scalar_one_or_none()

            if lock is None:
                return False

            return lock.expires_at > utcnow()

    def cleanup_expired(self) -> int:
        """Remove all expired locks. Returns count removed."""
        with self._session_factory() as session:
            result = session.execute(delete(RunLock).where(RunLock.expires_at <= utcnow()))
            session.commit()
            return int(result.rowcount or 0)


async def heartbeat(
    manager: LockManager,
    lock_name: str,
    holder_id: str,
    ttl_minutes: int,
    interval_seconds: float,
) -> None:
    """Keep extending a held lock until cancelled.

    Database errors are logged and retried on the next beat; the task only
    ends by cancellation.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            held = await asyncio.to_thread(manager.extend, lock_name, holder_id, ttl_minutes)
        except SQLAlchemyError:
            logger.exception("Could not extend run lock %s", lock_name)
            continue
        if not held:
            logger.warning("Run lock %s is no longer held by %s", lock_name, holder_id)
