"""Store-backed leases for arbitrating scheduled jobs across instances.

A lease is a row in ``job_locks`` whose primary key is the lock key. Whoever
inserts the row holds the key until ``expires_at``. This is not a strict
lock: a holder that outlives its lease can be preempted by another instance,
in which case the job runs twice. Stand-up creation and compilation are
idempotent, so that window is tolerated.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Generator

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from standup_bot.models import JobLock, SessionLocal, utcnow

logger = logging.getLogger(__name__)

DEFAULT_LEASE_SECONDS = 60


class LockManager:
    """Acquire, release and extend leases keyed by an opaque string."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        lease_seconds: int = DEFAULT_LEASE_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.lease = timedelta(seconds=lease_seconds)
        self.clock = clock

    def acquire(self, key: str, holder_id: str) -> bool:
        """Try to take the lease. False means a live lease is held elsewhere."""
        if self._insert(key, holder_id):
            logger.debug("Lock acquired: %s by %s", key, holder_id)
            return True

        # The row may be a lease nobody released; clear those and try once more
        self.purge_expired()
        if self._insert(key, holder_id):
            logger.debug("Lock acquired after cleanup: %s by %s", key, holder_id)
            return True

        logger.debug("Lock busy: %s (wanted by %s)", key, holder_id)
        return False

    def release(self, key: str, holder_id: str) -> None:
        """Drop the lease. A missing row means it already expired or was released."""
        db = self.session_factory()
        try:
            result = db.execute(delete(JobLock).where(JobLock.key == key))
            db.commit()
        finally:
            db.close()

        if result.rowcount:
            logger.debug("Lock released: %s by %s", key, holder_id)
        else:
            logger.debug("Lock %s was not held when %s released it", key, holder_id)

    def extend(self, key: str, holder_id: str) -> bool:
        """Push the expiry one lease forward from now."""
        db = self.session_factory()
        try:
            result = db.execute(
                update(JobLock)
                .where(JobLock.key == key)
                .values(expires_at=self.clock() + self.lease)
            )
            db.commit()
        finally:
            db.close()

        if result.rowcount:
            logger.debug("Lock extended: %s by %s", key, holder_id)
            return True
        logger.debug("Cannot extend %s for %s: not held", key, holder_id)
        return False

    def purge_expired(self) -> int:
        """Delete every lease whose expiry has passed. Returns the number removed."""
        db = self.session_factory()
        try:
            result = db.execute(delete(JobLock).where(JobLock.expires_at < self.clock()))
            db.commit()
        finally:
            db.close()

        if result.rowcount:
            logger.debug("Cleaned up %d expired locks", result.rowcount)
        return result.rowcount

    @contextmanager
    def lease_for(self, key: str, holder_id: str) -> Generator[bool, None, None]:
        """Yield whether the lease was acquired; release it on exit if it was."""
        acquired = self.acquire(key, holder_id)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(key, holder_id)

    def _insert(self, key: str, holder_id: str) -> bool:
        db = self.session_factory()
        try:
            db.add(JobLock(key=key, held_by=holder_id, expires_at=self.clock() + self.lease))
            db.commit()
            return True
        except IntegrityError:
            db.rollback()
            return False
        finally:
            db.close()
