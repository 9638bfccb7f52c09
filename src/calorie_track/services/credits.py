"""Daily credit ledger for upstream model calls."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Protocol

from calorie_track.domain.credits import CreditRecord, CreditStatus

DEFAULT_DAILY_LIMIT = 1000

_logger = logging.getLogger(__name__)


class CreditStore(Protocol):
    """Keyed storage for per-user, per-day call counts."""

    def get_count(self, user_id: str, day: date) -> int:
        """Return the count for the user on the day, creating it at zero."""

    def increment(self, user_id: str, day: date) -> int:
        """Atomically add one to the count and return the new value."""

    def delete_before(self, day: date) -> int:
        """Delete records older than the given day and return how many."""

    def list_records(self) -> list[CreditRecord]:
        """Return every stored record."""


@dataclass
class InMemoryCreditStore(CreditStore):
    """Process-local credit store; counts reset when the process restarts."""

    _counts: dict[tuple[str, date], int] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def get_count(self, user_id: str, day: date) -> int:
        """Return today's count, creating the record lazily."""
        with self._lock:
            return self._counts.setdefault((user_id, day), 0)

    def increment(self, user_id: str, day: date) -> int:
        """Increment under the store lock so concurrent updates are not lost."""
        with self._lock:
            count = self._counts.get((user_id, day), 0) + 1
            self._counts[(user_id, day)] = count
            return count

    def delete_before(self, day: date) -> int:
        """Drop records from earlier days."""
        with self._lock:
            stale = [key for key in self._counts if key[1] < day]
            for key in stale:
                del self._counts[key]
            return len(stale)

    def list_records(self) -> list[CreditRecord]:
        """Return a snapshot of all records."""
        with self._lock:
            return [
                CreditRecord(user_id=user_id, day=day, count=count)
                for (user_id, day), count in sorted(self._counts.items())
            ]


def _local_now() -> datetime:
    return datetime.now().astimezone()


@dataclass
class CreditLedger:
    """Admission checks and usage accounting against a daily limit.

    Admitted calls hold a reservation until they commit a credit or release
    it. Within one process, used plus reserved credits never exceed the limit.
    """

    store: CreditStore
    limit: int = DEFAULT_DAILY_LIMIT
    clock: Callable[[], datetime] = _local_now
    _pending: dict[str, int] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def today(self) -> date:
        """Return the current day key from the injected clock."""
        return self.clock().date()

    def used(self, user_id: str) -> int:
        """Return how many calls the user has made today."""
        return self.store.get_count(user_id, self.today())

    def check_remaining(self, user_id: str) -> int:
        """Return remaining credits for today, never below zero."""
        return max(0, self.limit - self.used(user_id))

    def admit(self, user_id: str) -> bool:
        """Return true when the user may make another call today."""
        return self.used(user_id) < self.limit

    def reserve(self, user_id: str) -> bool:
        """Hold a credit for an in-flight call if the limit allows it."""
        with self._lock:
            pending = self._pending.get(user_id, 0)
            if self.used(user_id) + pending >= self.limit:
                return False
            self._pending[user_id] = pending + 1
            return True

    def release(self, user_id: str) -> None:
        """Drop a reservation without consuming a credit."""
        with self._lock:
            pending = self._pending.get(user_id, 0) - 1
            if pending > 0:
                self._pending[user_id] = pending
            else:
                self._pending.pop(user_id, None)

    def commit(self, user_id: str) -> int:
        """Turn a reservation into a used credit and return the new count."""
        try:
            return self.increment(user_id)
        finally:
            self.release(user_id)

    def increment(self, user_id: str) -> int:
        """Record one successful call for today and return the new count."""
        count = self.store.increment(user_id, self.today())
        _logger.info(
            "Credit used: user=%s used=%s limit=%s", user_id, count, self.limit
        )
        return count

    def status(self, user_id: str) -> CreditStatus:
        """Return today's credit status including the next reset time."""
        return CreditStatus(
            limit=self.limit,
            used=self.used(user_id),
            reset_time=self.next_reset(),
        )

    def next_reset(self) -> datetime:
        """Return the next local midnight."""
        now = self.clock()
        tomorrow = now.date() + timedelta(days=1)
        return datetime.combine(tomorrow, time.min, tzinfo=now.tzinfo)

    def purge_stale(self) -> int:
        """Delete records from previous days."""
        removed = self.store.delete_before(self.today())
        if removed:
            _logger.info("Purged %s stale credit records", removed)
        return removed

    def records(self) -> list[CreditRecord]:
        """Return every stored record."""
        return self.store.list_records()
