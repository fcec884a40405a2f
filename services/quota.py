import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class QuotaExceeded(Exception):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Daily quota limit exceeded ({limit} images per day).")


@dataclass
class QuotaRecord:
    identity: str
    count: int
    day: date


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    remaining: Optional[int] = None


class UsageStore:
    """Storage for per-identity usage records.

    increment_with_reset must be atomic for a given identity: the
    read-reset-check-write sequence cannot interleave with another call
    for the same identity.
    """

    def get(self, identity: str) -> Optional[QuotaRecord]:
        raise NotImplementedError

    def set(self, record: QuotaRecord) -> None:
        raise NotImplementedError

    def increment_with_reset(self, identity: str, amount: int, today: date, limit: int) -> Optional[QuotaRecord]:
        """Add amount to today's count; return the updated record, or None when it would exceed limit."""
        raise NotImplementedError

    def sweep(self, today: date) -> int:
        """Drop records from previous days; return how many were removed."""
        raise NotImplementedError


class InMemoryUsageStore(UsageStore):

    def __init__(self):
        self._records: Dict[str, QuotaRecord] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._table_lock = threading.Lock()

    def _lock_for(self, identity):
        with self._table_lock:
            lock = self._locks.get(identity)
            if lock is None:
                lock = self._locks[identity] = threading.Lock()
            return lock

    @contextmanager
    def _locked(self, identity):
        while True:
            lock = self._lock_for(identity)
            lock.acquire()
            # a sweep may have dropped this lock between lookup and acquire
            if self._locks.get(identity) is lock:
                break
            lock.release()
        try:
            yield
        finally:
            lock.release()

    def get(self, identity):
        record = self._records.get(identity)
        if record is None:
            return None
        return QuotaRecord(record.identity, record.count, record.day)

    def set(self, record):
        with self._locked(record.identity):
            self._records[record.identity] = QuotaRecord(record.identity, record.count, record.day)

    def increment_with_reset(self, identity, amount, today, limit):
        with self._locked(identity):
            record = self._records.get(identity)
            if record is None or record.day != today:
                record = QuotaRecord(identity, 0, today)
            if record.count + amount > limit:
                return None
            updated = QuotaRecord(identity, record.count + amount, today)
            self._records[identity] = updated
            return QuotaRecord(updated.identity, updated.count, updated.day)

    def sweep(self, today):
        removed = 0
        with self._table_lock:
            for identity, lock in list(self._locks.items()):
                if not lock.acquire(blocking=False):
                    # in use right now; the next sweep gets it
                    continue
                try:
                    record = self._records.get(identity)
                    if record is None or record.day != today:
                        del self._locks[identity]
                        if record is not None:
                            del self._records[identity]
                            removed += 1
                finally:
                    lock.release()
        return removed

    def __len__(self):
        return len(self._records)


class QuotaTracker:

    def __init__(self, store: UsageStore, daily_limit: int, today: Callable[[], date] = utc_today):
        self.store = store
        self.daily_limit = daily_limit
        self._today = today
        self._last_sweep: Optional[date] = None
        self._sweep_lock = threading.Lock()

    def _sweep_if_new_day(self, today):
        with self._sweep_lock:
            if self._last_sweep == today:
                return
            self._last_sweep = today
        removed = self.store.sweep(today)
        if removed:
            logger.info("Evicted %d stale usage records", removed)

    def check_and_consume(self, identity: str, requested: int, is_privileged: bool) -> QuotaDecision:
        if is_privileged:
            return QuotaDecision(allowed=True)

        today = self._today()
        self._sweep_if_new_day(today)

        record = self.store.increment_with_reset(identity, requested, today, self.daily_limit)
        if record is None:
            logger.info("Quota rejected %d images for %s (limit %d)", requested, identity, self.daily_limit)
            return QuotaDecision(allowed=False, remaining=self._remaining(identity, today))
        return QuotaDecision(allowed=True, remaining=self.daily_limit - record.count)

    def _remaining(self, identity, today):
        record = self.store.get(identity)
        used = record.count if record is not None and record.day == today else 0
        return max(self.daily_limit - used, 0)
