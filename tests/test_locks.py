from datetime import timedelta

from sqlalchemy import select

from tenderwatch.core.scheduler.locks import LockManager, make_holder_id
from tenderwatch.persistence.db import session_scope
from tenderwatch.persistence.models import RunLock, utcnow

LOCK = "tender-pipeline"


def lock_row(session_factory):
    with session_scope(session_factory) as session:
        return session.execute(select(RunLock).where(RunLock.lock_name == LOCK)).scalar_one_or_none()


def test_acquire_and_release(session_factory):
    locks = LockManager(session_factory)

    assert locks.acquire(LOCK, "host-a")
    assert locks.is_locked(LOCK)
    assert not locks.acquire(LOCK, "host-b")

    assert not locks.release(LOCK, "host-b")
    assert locks.release(LOCK, "host-a")
    assert not locks.is_locked(LOCK)
    assert locks.acquire(LOCK, "host-b")


def test_reacquire_by_same_holder(session_factory):
    locks = LockManager(session_factory)
    assert locks.acquire(LOCK, "host-a")
    assert locks.acquire(LOCK, "host-a")


def test_expired_lock_can_be_taken_over(session_factory):
    locks = LockManager(session_factory)
    with session_scope(session_factory) as session:
        now = utcnow()
        session.add(RunLock(
            lock_name=LOCK,
            holder_id="crashed",
            acquired_at=now - timedelta(hours=3),
            expires_at=now - timedelta(hours=1),
        ))

    assert not locks.is_locked(LOCK)
    assert locks.acquire(LOCK, "host-b")
    assert lock_row(session_factory).holder_id == "host-b"


def test_extend_pushes_expiry(session_factory):
    locks = LockManager(session_factory)
    locks.acquire(LOCK, "host-a", ttl_minutes=1)
    before = lock_row(session_factory).expires_at

    assert locks.extend(LOCK, "host-a", ttl_minutes=60)
    assert lock_row(session_factory).expires_at > before
    assert not locks.extend(LOCK, "host-b", ttl_minutes=60)


def test_cleanup_expired(session_factory):
    locks = LockManager(session_factory)
    with session_scope(session_factory) as session:
        session.add(RunLock(lock_name="stale", holder_id="x", acquired_at=utcnow(), expires_at=utcnow() - timedelta(minutes=1)))
    locks.acquire(LOCK, "host-a")

    assert locks.cleanup_expired() == 1
    assert locks.is_locked(LOCK)


def test_holder_ids_are_unique():
    assert make_holder_id() != make_holder_id()


def test_expired_lock_goes_to_exactly_one_contender(session_factory):
    with session_scope(session_factory) as session:
        now = utcnow()
        session.add(RunLock(
            lock_name=LOCK,
            holder_id="crashed",
            acquired_at=now - timedelta(hours=3),
            expires_at=now - timedelta(minutes=1),
        ))

    first = LockManager(session_factory)
    second = LockManager(session_factory)

    assert first.acquire(LOCK, "host-a")
    assert not second.acquire(LOCK, "host-b")
    assert lock_row(session_factory).holder_id == "host-a"
