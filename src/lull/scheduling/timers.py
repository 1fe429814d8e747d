"""Timer bookkeeping.

The TimerTable owns the heap of pending timer handles and the ActiveTimer
table (one timer per handler id). All times are seconds on the scheduler's
monotonic clock.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from datetime import datetime
from heapq import heappop, heappush
from itertools import count

from lull.scheduling.types import TimerKind

logger = logging.getLogger(__name__)

TimerCallback = Callable[["TimerHandle"], Awaitable[None]]


class TimerHandle:
    """A single armed timer.

    `interval` is None for one-shot timers. A periodic handle is pushed back
    onto the heap after firing unless it was cancelled meanwhile.
    """

    __slots__ = ("when", "interval", "priority", "callback", "_cancelled")

    def __init__(
        self,
        when: float,
        callback: TimerCallback,
        *,
        interval: float | None = None,
        priority: int = 0,
    ) -> None:
        self.when = when
        self.interval = interval
        self.priority = priority
        self.callback = callback
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def __repr__(self) -> str:
        state = " cancelled" if self._cancelled else ""
        return f"<TimerHandle when={self.when:.3f} interval={self.interval}{state}>"


@dataclass
class ActiveTimer:
    """The timer currently owned for a handler."""

    handler_id: Hashable
    kind: TimerKind
    handle: TimerHandle
    period: float | None = None
    idle_threshold: float | None = None
    special: bool = False
    # Wall-clock occurrence a clock timer is armed for
    occurrence: datetime | None = None

    @property
    def due(self) -> float:
        return self.handle.when


class TimerTable:
    """Heap of timer handles plus the per-handler ActiveTimer table.

    Heap order is (due time, handler registration order, arm sequence), so
    coinciding timers fire in registration order.
    """

    def __init__(self, lock: threading.RLock | None = None) -> None:
        self._lock = lock or threading.RLock()
        self._heap: list[tuple[float, int, int, TimerHandle]] = []
        self._seq = count()
        self._active: dict[Hashable, ActiveTimer] = {}

    def __len__(self) -> int:
        return len(self._active)

    def __contains__(self, handler_id: Hashable) -> bool:
        return handler_id in self._active

    def get(self, handler_id: Hashable) -> ActiveTimer | None:
        return self._active.get(handler_id)

    def snapshot(self) -> dict[Hashable, ActiveTimer]:
        with self._lock:
            return dict(self._active)

    # ------------------------------------------------------------------
    # Arming and release
    # ------------------------------------------------------------------

    def arm(
        self,
        handler_id: Hashable,
        kind: TimerKind,
        *,
        when: float,
        callback: TimerCallback,
        interval: float | None = None,
        priority: int = 0,
        period: float | None = None,
        idle_threshold: float | None = None,
        special: bool = False,
        occurrence: datetime | None = None,
    ) -> ActiveTimer:
        """Install a timer for a handler, releasing any previous one first."""
        with self._lock:
            self.release(handler_id)
            handle = TimerHandle(
                when, callback, interval=interval, priority=priority
            )
            self._push(handle)
            timer = ActiveTimer(
                handler_id=handler_id,
                kind=kind,
                handle=handle,
                period=period,
                idle_threshold=idle_threshold,
                special=special,
                occurrence=occurrence,
            )
            self._active[handler_id] = timer
            logger.debug(
                "timer_armed",
                extra={
                    "handler.id": str(handler_id),
                    "timer.kind": kind.value,
                    "timer.when": round(when, 3),
                    "timer.special": special,
                },
            )
            return timer

    def release(self, handler_id: Hashable) -> bool:
        """Cancel and forget the timer for a handler. Returns True if one existed."""
        with self._lock:
            timer = self._active.pop(handler_id, None)
            if timer is None:
                return False
            timer.handle.cancel()
            return True

    def release_all(self) -> int:
        """Cancel every timer and empty the table."""
        with self._lock:
            released = len(self._active)
            for timer in self._active.values():
                timer.handle.cancel()
            self._active.clear()
            self._heap.clear()
            return released

    def is_current(self, handler_id: Hashable, handle: TimerHandle) -> bool:
        """True if `handle` is still the live timer for the handler."""
        timer = self._active.get(handler_id)
        return timer is not None and timer.handle is handle and not handle.cancelled

    # ------------------------------------------------------------------
    # Dispatch support
    # ------------------------------------------------------------------

    def next_due(self) -> float | None:
        with self._lock:
            self._drop_cancelled()
            return self._heap[0][0] if self._heap else None

    def pop_due(self, now: float) -> TimerHandle | None:
        """Remove and return the earliest live handle due at or before `now`."""
        with self._lock:
            self._drop_cancelled()
            if not self._heap or self._heap[0][0] > now:
                return None
            return heappop(self._heap)[3]

    def reschedule(self, handle: TimerHandle, now: float) -> bool:
        """Push a fired periodic handle back for its next cycle."""
        with self._lock:
            if handle.cancelled or handle.interval is None:
                return False
            handle.when += handle.interval
            if handle.when <= now:
                # Fell behind (long callback); skip missed cycles
                handle.when = now + handle.interval
            self._push(handle)
            return True

    def _push(self, handle: TimerHandle) -> None:
        heappush(self._heap, (handle.when, handle.priority, next(self._seq), handle))

    def _drop_cancelled(self) -> None:
        while self._heap and self._heap[0][3].cancelled:
            heappop(self._heap)
