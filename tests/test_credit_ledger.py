"""Tests for the daily credit ledger."""

from concurrent.futures import ThreadPoolExecutor
from datetime import date

from calorie_track.services.credits import CreditLedger, InMemoryCreditStore
from tests.conftest import FixedClock


def _ledger(limit: int = 5, clock: FixedClock | None = None) -> CreditLedger:
    return CreditLedger(
        store=InMemoryCreditStore(), limit=limit, clock=clock or FixedClock()
    )


def test_new_user_has_full_limit() -> None:
    ledger = _ledger(limit=5)

    assert ledger.check_remaining("user-1") == 5
    assert ledger.admit("user-1") is True


def test_remaining_after_calls_is_clamped_at_zero() -> None:
    ledger = _ledger(limit=3)

    for expected in (2, 1, 0):
        ledger.increment("user-1")
        assert ledger.check_remaining("user-1") == expected

    ledger.increment("user-1")
    assert ledger.check_remaining("user-1") == 0
    assert ledger.admit("user-1") is False


def test_users_are_counted_independently() -> None:
    ledger = _ledger(limit=2)
    ledger.increment("user-1")
    ledger.increment("user-1")

    assert ledger.admit("user-1") is False
    assert ledger.admit("user-2") is True


def test_day_rollover_restores_full_limit() -> None:
    clock = FixedClock()
    ledger = _ledger(limit=2, clock=clock)
    ledger.increment("user-1")
    ledger.increment("user-1")
    assert ledger.admit("user-1") is False

    clock.advance(days=1)

    assert ledger.admit("user-1") is True
    assert ledger.check_remaining("user-1") == 2


def test_status_reports_next_local_midnight() -> None:
    clock = FixedClock()
    ledger = _ledger(limit=10, clock=clock)
    ledger.increment("user-1")

    status = ledger.status("user-1")

    assert status.used == 1
    assert status.remaining == 9
    assert status.reset_time.date() == date(2024, 5, 15)
    assert status.reset_time.hour == 0
    assert status.reset_time.utcoffset() == clock.now.utcoffset()
    assert status.to_payload()["resetTime"] == "2024-05-15T00:00:00+03:00"


def test_reservations_count_against_the_limit() -> None:
    ledger = _ledger(limit=2)

    assert ledger.reserve("user-1") is True
    assert ledger.reserve("user-1") is True
    assert ledger.reserve("user-1") is False
    assert ledger.reserve("user-2") is True

    assert ledger.commit("user-1") == 1
    ledger.release("user-1")

    assert ledger.used("user-1") == 1
    assert ledger.reserve("user-1") is True
    assert ledger.reserve("user-1") is False


def test_concurrent_reservations_never_exceed_limit() -> None:
    ledger = _ledger(limit=10)

    with ThreadPoolExecutor(max_workers=8) as pool:
        granted = list(pool.map(lambda _: ledger.reserve("user-1"), range(50)))

    assert granted.count(True) == 10


def test_concurrent_increments_are_not_lost() -> None:
    store = InMemoryCreditStore()
    day = date(2024, 5, 14)

    with ThreadPoolExecutor(max_workers=16) as pool:
        list(pool.map(lambda _: store.increment("user-1", day), range(500)))

    assert store.get_count("user-1", day) == 500


def test_purge_stale_drops_previous_days_only() -> None:
    clock = FixedClock()
    ledger = _ledger(clock=clock)
    ledger.increment("user-1")
    clock.advance(days=1)
    ledger.increment("user-2")

    removed = ledger.purge_stale()

    assert removed == 1
    records = ledger.records()
    assert [record.user_id for record in records] == ["user-2"]
    assert records[0].count == 1
