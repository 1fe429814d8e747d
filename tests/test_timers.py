"""Tests for the timer heap and per-handler timer table."""

import threading
from datetime import UTC, datetime

import pytest

from lull.scheduling import TimerKind, TimerTable


async def fire(handle) -> None:
    pass


@pytest.fixture
def table() -> TimerTable:
    return TimerTable()


class TestArm:
    """Tests for arming and releasing timers."""

    def test_arm_records_active_timer(self, table):
        timer = table.arm(
            "a", TimerKind.PERIODIC, when=10.0, callback=fire, interval=5.0, period=5.0
        )

        assert "a" in table
        assert len(table) == 1
        assert table.get("a") is timer
        assert timer.due == 10.0
        assert timer.handle.interval == 5.0
        assert timer.special is False

    def test_arm_replaces_previous_timer(self, table):
        first = table.arm("a", TimerKind.PERIODIC, when=10.0, callback=fire)
        second = table.arm(
            "a", TimerKind.IDLE_WAIT, when=20.0, callback=fire, special=True
        )

        assert first.handle.cancelled
        assert not second.handle.cancelled
        assert len(table) == 1
        assert table.get("a").kind == TimerKind.IDLE_WAIT
        assert table.next_due() == 20.0

    def test_release(self, table):
        timer = table.arm("a", TimerKind.PERIODIC, when=10.0, callback=fire)

        assert table.release("a") is True
        assert table.release("a") is False
        assert timer.handle.cancelled
        assert "a" not in table

    def test_release_all(self, table):
        handles = [
            table.arm(name, TimerKind.PERIODIC, when=10.0, callback=fire).handle
            for name in ("a", "b", "c")
        ]

        assert table.release_all() == 3
        assert all(h.cancelled for h in handles)
        assert len(table) == 0
        assert table.next_due() is None

    def test_is_current(self, table):
        old = table.arm("a", TimerKind.PERIODIC, when=10.0, callback=fire).handle
        new = table.arm("a", TimerKind.PERIODIC, when=10.0, callback=fire).handle

        assert table.is_current("a", new)
        assert not table.is_current("a", old)
        assert not table.is_current("b", new)

    def test_snapshot_is_a_copy(self, table):
        table.arm("a", TimerKind.PERIODIC, when=10.0, callback=fire)
        snapshot = table.snapshot()
        table.release("a")

        assert "a" in snapshot
        assert "a" not in table

    def test_shared_lock(self):
        lock = threading.RLock()
        table = TimerTable(lock)

        with lock:
            table.arm("a", TimerKind.PERIODIC, when=10.0, callback=fire)
            assert table.next_due() == 10.0
        assert table.release("a") is True

    def test_arm_records_clock_occurrence(self, table):
        occurrence = datetime(2026, 1, 12, 14, 30, tzinfo=UTC)
        timer = table.arm(
            "a", TimerKind.PERIODIC, when=10.0, callback=fire, occurrence=occurrence
        )

        assert timer.occurrence == occurrence
        rearmed = table.arm("a", TimerKind.PERIODIC, when=10.0, callback=fire)
        assert rearmed.occurrence is None


class TestDispatchOrder:
    """Tests for heap ordering and due-handle selection."""

    def test_pop_due_orders_by_time_then_priority(self, table):
        a = table.arm("a", TimerKind.PERIODIC, when=10.0, callback=fire, priority=1)
        b = table.arm("b", TimerKind.PERIODIC, when=10.0, callback=fire, priority=0)
        c = table.arm("c", TimerKind.PERIODIC, when=5.0, callback=fire, priority=2)

        popped = [table.pop_due(10.0) for _ in range(3)]

        assert popped == [c.handle, b.handle, a.handle]
        assert table.pop_due(10.0) is None

    def test_pop_due_respects_now(self, table):
        table.arm("a", TimerKind.PERIODIC, when=10.0, callback=fire)

        assert table.pop_due(9.999) is None
        assert table.pop_due(10.0) is not None

    def test_cancelled_handles_are_skipped(self, table):
        table.arm("a", TimerKind.PERIODIC, when=5.0, callback=fire)
        b = table.arm("b", TimerKind.PERIODIC, when=10.0, callback=fire)
        table.release("a")

        assert table.next_due() == 10.0
        assert table.pop_due(20.0) is b.handle


class TestReschedule:
    """Tests for periodic re-arming after a fire."""

    def test_periodic_advances_by_interval(self, table):
        timer = table.arm(
            "a", TimerKind.PERIODIC, when=10.0, callback=fire, interval=5.0
        )
        handle = table.pop_due(10.0)

        assert table.reschedule(handle, 10.0) is True
        assert timer.due == 15.0
        assert table.next_due() == 15.0

    def test_skips_missed_cycles(self, table):
        timer = table.arm(
            "a", TimerKind.PERIODIC, when=10.0, callback=fire, interval=5.0
        )
        handle = table.pop_due(10.0)

        table.reschedule(handle, 100.0)

        assert timer.due == 105.0

    def test_one_shot_is_not_rescheduled(self, table):
        table.arm("a", TimerKind.IDLE_WAIT, when=10.0, callback=fire)
        handle = table.pop_due(10.0)

        assert table.reschedule(handle, 10.0) is False
        assert table.next_due() is None

    def test_cancelled_is_not_rescheduled(self, table):
        table.arm("a", TimerKind.PERIODIC, when=10.0, callback=fire, interval=5.0)
        handle = table.pop_due(10.0)
        table.release("a")

        assert table.reschedule(handle, 10.0) is False
        assert table.next_due() is None
