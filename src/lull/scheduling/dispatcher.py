"""Dispatcher: callback execution, idle gate and re-arm protocol.

Every timer fire ends up in one of the fire_* coroutines below. They run one
at a time from Scheduler.run_pending(), so callbacks never overlap.

Callbacks have no timeout. A callback that blocks stalls every other handler
until it returns.
"""

import inspect
import logging
from collections.abc import Callable, Hashable
from datetime import datetime
from functools import partial

from lull.scheduling.errors import CallbackFailure
from lull.scheduling.idle import IdleClock
from lull.scheduling.timers import TimerHandle, TimerTable
from lull.scheduling.types import HandlerEntry, TimerKind

logger = logging.getLogger(__name__)

FailureSink = Callable[[CallbackFailure], None]


class Dispatcher:
    """Runs handler callbacks with error isolation and gates them on idle time."""

    def __init__(
        self,
        timers: TimerTable,
        idle_clock: IdleClock,
        clock: Callable[[], float],
        *,
        clock_plan: Callable[[HandlerEntry], tuple[float, datetime]],
        failure_sink: FailureSink | None = None,
    ) -> None:
        self._timers = timers
        self._idle_clock = idle_clock
        self._clock = clock
        self._clock_plan = clock_plan
        self._failure_sink = failure_sink
        # handler id -> clock time of the last idle-wait invocation
        self._served_at: dict[Hashable, float] = {}
        # handler id -> last clock occurrence a daily handler ran for
        self._clock_served: dict[Hashable, datetime] = {}
        self.inhibited = False

    def forget(self, handler_id: Hashable) -> None:
        self._served_at.pop(handler_id, None)
        self._clock_served.pop(handler_id, None)

    def served_occurrence(self, handler_id: Hashable) -> datetime | None:
        return self._clock_served.get(handler_id)

    def idle_seconds(self) -> float:
        """Read the idle clock. A failing source counts as not idle."""
        try:
            return max(0.0, float(self._idle_clock.seconds_idle()))
        except OSError as e:
            logger.warning("idle_clock_failed", extra={"error.message": str(e)})
            return 0.0

    # ------------------------------------------------------------------
    # Callback execution
    # ------------------------------------------------------------------

    async def invoke(self, entry: HandlerEntry) -> bool:
        """Run a handler callback. Returns True if it completed without error."""
        if self.inhibited:
            logger.debug("handler_inhibited", extra={"handler.id": str(entry.id)})
            return False

        logger.debug("handler_invoked", extra={"handler.id": str(entry.id)})
        try:
            result = entry.callback()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(
                "handler_callback_error",
                extra={
                    "handler.id": str(entry.id),
                    "error.type": type(e).__name__,
                    "error.message": str(e),
                },
                exc_info=True,
            )
            self._report(CallbackFailure(handler_id=entry.id, error=e))
            return False
        return True

    def _report(self, failure: CallbackFailure) -> None:
        if self._failure_sink is None:
            return
        try:
            self._failure_sink(failure)
        except Exception:
            logger.warning("failure_sink_error", exc_info=True)

    # ------------------------------------------------------------------
    # Timer fire entry points
    # ------------------------------------------------------------------

    async def fire_periodic(self, entry: HandlerEntry, handle: TimerHandle) -> None:
        """Ungated periodic timer: always invoke."""
        await self.invoke(entry)

    async def fire_at_clock(self, entry: HandlerEntry, handle: TimerHandle) -> None:
        """Daily clock timer: run once per occurrence, then plan the next one.

        The timer delay is capped at a day, so across a DST change it can wake
        ahead of its occurrence. That wake only shortens the next delay.
        """
        timer = self._timers.get(entry.id)
        if timer is None or not self._timers.is_current(entry.id, handle):
            return
        delay, occurrence = self._clock_plan(entry)
        if occurrence == timer.occurrence and delay > 0:
            logger.debug(
                "clock_handler_early_wake",
                extra={"handler.id": str(entry.id), "timer.delay": delay},
            )
            handle.interval = timer.period = delay
            return

        # Recorded before the callback runs, so a re-arm from inside it
        # plans for the following day.
        if timer.occurrence is not None:
            self._clock_served[entry.id] = timer.occurrence
        delay, timer.occurrence = self._clock_plan(entry)
        handle.interval = timer.period = delay
        await self.invoke(entry)

    async def fire_gated(self, entry: HandlerEntry, handle: TimerHandle) -> None:
        """Special periodic timer: invoke only if idle long enough, else re-arm."""
        timer = self._timers.get(entry.id)
        if timer is None or not self._timers.is_current(entry.id, handle):
            return
        threshold = timer.idle_threshold or 0.0
        idle = self.idle_seconds()
        if idle > threshold:
            await self.invoke(entry)
            return

        # Not idle enough: swap the periodic timer for a one-shot idle wait.
        # arm() releases the periodic handle before installing the new one.
        logger.debug(
            "idle_gate_deferred",
            extra={
                "handler.id": str(entry.id),
                "idle.seconds": round(idle, 3),
                "idle.threshold": threshold,
            },
        )
        self._timers.arm(
            entry.id,
            TimerKind.IDLE_WAIT,
            when=self._clock() + threshold,
            callback=partial(self.fire_special, entry),
            priority=handle.priority,
            period=timer.period,
            idle_threshold=threshold,
            special=True,
        )

    async def fire_special(self, entry: HandlerEntry, handle: TimerHandle) -> None:
        """One-shot re-arm timer: restore the periodic timer, then retry the gate."""
        timer = self._timers.get(entry.id)
        if timer is None or not self._timers.is_current(entry.id, handle):
            return
        period = timer.period or 0.0
        threshold = timer.idle_threshold or 0.0
        self._timers.arm(
            entry.id,
            TimerKind.SPECIAL_PERIODIC,
            when=self._clock() + period,
            callback=partial(self.fire_gated, entry),
            interval=period,
            priority=handle.priority,
            period=period,
            idle_threshold=threshold,
        )
        idle = self.idle_seconds()
        if idle > threshold:
            await self.invoke(entry)
        else:
            logger.debug(
                "idle_gate_still_busy",
                extra={"handler.id": str(entry.id), "idle.seconds": round(idle, 3)},
            )

    async def fire_idle_wait(self, entry: HandlerEntry, handle: TimerHandle) -> None:
        """Idle-wait timer: invoke once per idle period of at least the threshold."""
        timer = self._timers.get(entry.id)
        if timer is None or not self._timers.is_current(entry.id, handle):
            return
        threshold = timer.idle_threshold or 0.0
        now = self._clock()
        idle = self.idle_seconds()
        served = self._served_at.get(entry.id)
        # Input since the last invocation means this is a new idle period
        fresh = served is None or idle < now - served

        run = idle >= threshold and fresh
        if idle >= threshold:
            delay = threshold
        else:
            delay = threshold - idle

        self._timers.arm(
            entry.id,
            TimerKind.IDLE_WAIT,
            when=now + delay,
            callback=partial(self.fire_idle_wait, entry),
            priority=handle.priority,
            idle_threshold=threshold,
        )
        if run:
            self._served_at[entry.id] = now
            await self.invoke(entry)
