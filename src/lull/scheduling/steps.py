"""Wall-clock deadline to time-step conversion."""

from datetime import UTC, datetime, time, timedelta

from lull.scheduling.types import AtClock

DEFAULT_STEP_SECONDS = 60.0
SECONDS_PER_DAY = 24 * 60 * 60


def next_occurrence(clock: AtClock, now: datetime) -> datetime:
    """Get the next occurrence of a clock time strictly after the current minute.

    A target earlier than or equal to the current hour:minute rolls to the same
    time on the next calendar day. The result carries `now`'s tzinfo; for aware
    datetimes the UTC offset is resolved for the target date, so DST
    transitions are accounted for.
    """
    day = now.date()
    if (clock.hour, clock.minute) <= (now.hour, now.minute):
        day += timedelta(days=1)
    return datetime.combine(day, time(clock.hour, clock.minute), tzinfo=now.tzinfo)


def seconds_between(start: datetime, end: datetime) -> float:
    """Elapsed seconds from `start` to `end`."""
    if start.tzinfo is not None:
        # Aware datetimes sharing a tzinfo subtract as wall time; go through
        # UTC to get elapsed seconds across offset changes.
        return (end.astimezone(UTC) - start.astimezone(UTC)).total_seconds()
    return (end - start).total_seconds()


def seconds_until(clock: AtClock, now: datetime) -> float:
    """Seconds from `now` until the next occurrence of `clock`."""
    return seconds_between(now, next_occurrence(clock, now))


def steps_until(
    clock: AtClock, now: datetime, step_seconds: float = DEFAULT_STEP_SECONDS
) -> int:
    """Number of time steps until the next occurrence of `clock`.

    Rounds with Python's round(), i.e. half-to-even.

    Args:
        clock: Daily deadline.
        now: Current wall-clock time (naive or aware).
        step_seconds: Seconds per step.

    Returns:
        Step count, never negative.
    """
    if step_seconds <= 0:
        raise ValueError(f"step_seconds must be positive, got {step_seconds}")
    return round(seconds_until(clock, now) / step_seconds)
