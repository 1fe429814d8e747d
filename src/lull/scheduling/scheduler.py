"""Scheduler: handler registration and timer reconciliation.

Every registry change triggers a full reconciliation: all timers are
cancelled and every handler is re-armed from scratch. No timer survives a
registry mutation.
"""

import logging
import threading
import time
from collections.abc import Callable, Hashable
from datetime import datetime, tzinfo
from functools import partial
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from lull.scheduling.dispatcher import Dispatcher, FailureSink
from lull.scheduling.idle import IdleClock, InputIdleClock
from lull.scheduling.registry import HandlerRegistry
from lull.scheduling.steps import (
    DEFAULT_STEP_SECONDS,
    SECONDS_PER_DAY,
    next_occurrence,
    seconds_between,
)
from lull.scheduling.timers import ActiveTimer, TimerTable
from lull.scheduling.types import (
    IMMEDIATE_IDLE_SECONDS,
    AfterSteps,
    AtClock,
    DontCare,
    EveryN,
    EveryStep,
    HandlerCallback,
    HandlerEntry,
    Immediate,
    TimerKind,
)

logger = logging.getLogger(__name__)

ChangeListener = Callable[[], None]


def _resolve_timezone(timezone: str | tzinfo) -> tzinfo:
    if isinstance(timezone, tzinfo):
        return timezone
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("invalid_timezone", extra={"schedule.timezone": timezone})
        return ZoneInfo("UTC")


class Scheduler:
    """Owns the handler registry and exactly one timer per armed handler.

    Example:
        scheduler = Scheduler(idle_clock, step_seconds=60)
        scheduler.add_handler("close-connections", EveryN(5), AfterSteps(1), close)
        runner = SchedulerRunner(scheduler)
        await runner.start()

    Args:
        idle_clock: Source of seconds since last user input.
        step_seconds: Duration of one step. Read once; use set_step_seconds()
            to change it.
        timezone: Zone for clock-time handlers (IANA name or tzinfo).
        clock: Monotonic time source for timers.
        wall_clock: Current wall-clock time for clock-time handlers. Defaults
            to now in `timezone`.
        failure_sink: Receives a CallbackFailure for every failing callback.
    """

    def __init__(
        self,
        idle_clock: IdleClock | None = None,
        *,
        step_seconds: float = DEFAULT_STEP_SECONDS,
        timezone: str | tzinfo = "UTC",
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] | None = None,
        failure_sink: FailureSink | None = None,
    ) -> None:
        if step_seconds <= 0:
            raise ValueError(f"step_seconds must be positive, got {step_seconds}")
        self._step_seconds = float(step_seconds)
        self._tz = _resolve_timezone(timezone)
        self._clock = clock
        self._wall_clock = wall_clock or (lambda: datetime.now(self._tz))
        self._lock = threading.RLock()
        self._registry = HandlerRegistry()
        self._timers = TimerTable(self._lock)
        self._listeners: list[ChangeListener] = []
        self._dispatcher = Dispatcher(
            self._timers,
            idle_clock if idle_clock is not None else InputIdleClock(clock),
            clock,
            clock_plan=self._clock_plan,
            failure_sink=failure_sink,
        )

    @property
    def registry(self) -> HandlerRegistry:
        return self._registry

    @property
    def step_seconds(self) -> float:
        return self._step_seconds

    @property
    def active_timers(self) -> dict[Hashable, ActiveTimer]:
        """Snapshot of the timer table."""
        return self._timers.snapshot()

    def timer_for(self, handler_id: Hashable) -> ActiveTimer | None:
        return self._timers.get(handler_id)

    # ------------------------------------------------------------------
    # Registration API
    # ------------------------------------------------------------------

    def add_handler(
        self,
        handler_id: Hashable,
        time: object,
        idle: object,
        callback: HandlerCallback,
        *,
        init: bool = True,
    ) -> HandlerEntry:
        """Register (or replace) a handler and reconcile.

        `time` and `idle` accept TimeSpec/IdleSpec values or their raw forms
        (None, True, a positive int, or "HH:MM" for time).

        Raises:
            ConfigurationError: If the schedule or callback is malformed.
        """
        with self._lock:
            entry = self._registry.add(handler_id, time, idle, callback)
            if init:
                self.init()
            return entry

    def remove_handler(self, handler_id: Hashable, *, init: bool = True) -> bool:
        """Unregister a handler and reconcile. Unknown ids are ignored."""
        with self._lock:
            removed = self._registry.remove(handler_id)
            self._dispatcher.forget(handler_id)
            if init:
                self.init()
            return removed

    def cancel_all(self) -> int:
        """Release every timer. Handler definitions are kept."""
        with self._lock:
            released = self._timers.release_all()
        if released:
            logger.debug("timers_cancelled", extra={"timer.count": released})
        self._notify()
        return released

    def init(self) -> None:
        """Reconcile: cancel all timers, then arm one per non-inert handler."""
        with self._lock:
            self._timers.release_all()
            for priority, entry in enumerate(self._registry):
                self._arm(entry, priority)
            armed = len(self._timers)
        logger.debug(
            "scheduler_reconciled",
            extra={"handler.count": len(self._registry), "timer.count": armed},
        )
        self._notify()

    def set_step_seconds(self, step_seconds: float) -> None:
        """Change the step duration and re-arm every handler against it."""
        if step_seconds <= 0:
            raise ValueError(f"step_seconds must be positive, got {step_seconds}")
        with self._lock:
            self._timers.release_all()
            self._step_seconds = float(step_seconds)
            self.init()

    # ------------------------------------------------------------------
    # Inhibit
    # ------------------------------------------------------------------

    @property
    def inhibited(self) -> bool:
        return self._dispatcher.inhibited

    def inhibit(self) -> None:
        """Keep timers running but stop invoking callbacks."""
        self._dispatcher.inhibited = True

    def resume(self) -> None:
        self._dispatcher.inhibited = False

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def next_due(self) -> float | None:
        """Clock time of the earliest pending timer, if any."""
        return self._timers.next_due()

    def seconds_until_next(self) -> float | None:
        due = self.next_due()
        if due is None:
            return None
        return max(0.0, due - self._clock())

    async def run_pending(self) -> int:
        """Fire every timer due now, one at a time. Returns the number fired."""
        now = self._clock()
        fired = 0
        while (handle := self._timers.pop_due(now)) is not None:
            try:
                await handle.callback(handle)
            except Exception as e:
                logger.error(
                    "timer_fire_error",
                    extra={"error.type": type(e).__name__, "error.message": str(e)},
                    exc_info=True,
                )
            fired += 1
            self._timers.reschedule(handle, self._clock())
        return fired

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.warning("scheduler_listener_error", exc_info=True)

    # ------------------------------------------------------------------
    # Timer mode derivation
    # ------------------------------------------------------------------

    def _clock_plan(self, entry: HandlerEntry) -> tuple[float, datetime]:
        """Delay until a clock handler's next unserved occurrence, and that occurrence.

        The delay is a whole number of steps, capped at one day. It is zero only
        when the occurrence is less than half a step away and has not run yet.
        """
        assert isinstance(entry.time, AtClock)
        now = self._wall_clock()
        occurrence = next_occurrence(entry.time, now)
        served = self._dispatcher.served_occurrence(entry.id)
        if served is not None and occurrence <= served:
            occurrence = next_occurrence(entry.time, served)
        steps = max(round(seconds_between(now, occurrence) / self._step_seconds), 0)
        return min(steps * self._step_seconds, float(SECONDS_PER_DAY)), occurrence

    def _arm(self, entry: HandlerEntry, priority: int) -> ActiveTimer | None:
        now = self._clock()
        time_spec, idle_spec = entry.time, entry.idle
        dispatcher = self._dispatcher

        if isinstance(time_spec, AtClock):
            if not isinstance(idle_spec, DontCare):
                logger.debug(
                    "clock_handler_ignores_idle",
                    extra={"handler.id": str(entry.id), "handler.idle": str(idle_spec)},
                )
            delay, occurrence = self._clock_plan(entry)
            return self._timers.arm(
                entry.id,
                TimerKind.PERIODIC,
                when=now + delay,
                callback=partial(dispatcher.fire_at_clock, entry),
                interval=float(SECONDS_PER_DAY),
                priority=priority,
                period=delay,
                occurrence=occurrence,
            )

        if isinstance(time_spec, EveryStep | EveryN):
            period = time_spec.steps * self._step_seconds
            if isinstance(idle_spec, DontCare):
                return self._timers.arm(
                    entry.id,
                    TimerKind.PERIODIC,
                    when=now + period,
                    callback=partial(dispatcher.fire_periodic, entry),
                    interval=period,
                    priority=priority,
                    period=period,
                )
            if isinstance(idle_spec, Immediate):
                threshold = IMMEDIATE_IDLE_SECONDS
            else:
                threshold = idle_spec.steps * self._step_seconds
            return self._timers.arm(
                entry.id,
                TimerKind.SPECIAL_PERIODIC,
                when=now + period,
                callback=partial(dispatcher.fire_gated, entry),
                interval=period,
                priority=priority,
                period=period,
                idle_threshold=threshold,
            )

        if isinstance(idle_spec, AfterSteps):
            threshold = idle_spec.steps * self._step_seconds
            delay = max(threshold - dispatcher.idle_seconds(), 0.0)
            return self._timers.arm(
                entry.id,
                TimerKind.IDLE_WAIT,
                when=now + delay,
                callback=partial(dispatcher.fire_idle_wait, entry),
                priority=priority,
                idle_threshold=threshold,
            )

        logger.debug("handler_inert", extra={"handler.id": str(entry.id)})
        return None
