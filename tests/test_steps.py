"""Tests for clock-time to step conversion."""

from datetime import UTC, date, datetime

import pytest

from lull.scheduling import AtClock, next_occurrence, seconds_until, steps_until

NOW = datetime(2026, 1, 12, 14, 0, tzinfo=UTC)


class TestStepsUntil:
    """Tests for steps_until()."""

    def test_later_today(self):
        assert steps_until(AtClock(14, 30), NOW) == 30

    def test_earlier_rolls_to_tomorrow(self):
        # 23h30m
        assert steps_until(AtClock(14, 30), NOW.replace(hour=15)) == 1410
        assert steps_until(AtClock(13, 30), NOW) == 1410

    def test_same_minute_is_tomorrow(self):
        assert steps_until(AtClock(14, 0), NOW) == 1440

    def test_same_minute_with_seconds_elapsed(self):
        now = NOW.replace(second=30)
        # 86370s is 1439.5 steps, rounds to even
        assert steps_until(AtClock(14, 0), now) == 1440

    def test_custom_step_seconds(self):
        assert steps_until(AtClock(14, 30), NOW, step_seconds=30) == 60
        assert steps_until(AtClock(16, 0), NOW, step_seconds=3600) == 2

    @pytest.mark.parametrize(
        ("now", "clock", "expected"),
        [
            (NOW.replace(minute=0, second=30), AtClock(14, 2), 2),  # 1.5 steps
            (NOW.replace(hour=13, minute=57, second=30), AtClock(14, 0), 2),  # 2.5
            (NOW.replace(second=30), AtClock(14, 1), 0),  # 0.5
        ],
    )
    def test_rounds_half_to_even(self, now, clock, expected):
        assert steps_until(clock, now) == expected

    def test_naive_datetime(self):
        now = datetime(2026, 1, 12, 23, 0)
        assert steps_until(AtClock(1, 0), now) == 120

    @pytest.mark.parametrize("step_seconds", [0, -60])
    def test_rejects_non_positive_step(self, step_seconds):
        with pytest.raises(ValueError):
            steps_until(AtClock(14, 30), NOW, step_seconds)


class TestNextOccurrence:
    """Tests for calendar rollover."""

    def test_month_rollover(self):
        now = datetime(2026, 1, 31, 23, 50, tzinfo=UTC)
        deadline = next_occurrence(AtClock(0, 10), now)

        assert deadline.date() == date(2026, 2, 1)
        assert steps_until(AtClock(0, 10), now) == 20

    def test_year_rollover(self):
        now = datetime(2026, 12, 31, 23, 59, tzinfo=UTC)
        deadline = next_occurrence(AtClock(0, 0), now)

        assert deadline == datetime(2027, 1, 1, 0, 0, tzinfo=UTC)
        assert steps_until(AtClock(0, 0), now) == 1

    def test_leap_day(self):
        now = datetime(2028, 2, 28, 12, 0, tzinfo=UTC)
        deadline = next_occurrence(AtClock(6, 0), now)
        assert deadline.date() == date(2028, 2, 29)

    def test_keeps_tzinfo(self, new_york):
        now = datetime(2026, 6, 1, 9, 0, tzinfo=new_york)
        assert next_occurrence(AtClock(10, 0), now).tzinfo is new_york


class TestDaylightSaving:
    """Tests for elapsed time across UTC offset changes."""

    def test_spring_forward_day_is_23_hours(self, new_york):
        # Clocks jump from 02:00 to 03:00 on 2026-03-08
        now = datetime(2026, 3, 7, 3, 0, tzinfo=new_york)
        assert seconds_until(AtClock(3, 0), now) == 23 * 3600
        assert steps_until(AtClock(3, 0), now) == 23 * 60

    def test_fall_back_day_is_25_hours(self, new_york):
        # Clocks fall from 02:00 back to 01:00 on 2026-11-01
        now = datetime(2026, 10, 31, 3, 0, tzinfo=new_york)
        assert seconds_until(AtClock(3, 0), now) == 25 * 3600
