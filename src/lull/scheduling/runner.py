"""Scheduler runner: drives timer dispatch from an asyncio event loop.

The runner owns the loop task. All timer firings are serialized onto it, so
handler callbacks never run concurrently with each other.
"""

import asyncio
import logging

from lull.scheduling.scheduler import Scheduler

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0


class SchedulerRunner:
    """Sleeps until the next due timer and fires it.

    Registry changes wake the runner early, so a newly added handler does not
    wait out a long sleep. `poll_interval` bounds every sleep regardless.

    Example:
        runner = SchedulerRunner(scheduler)
        await runner.start()
        ...
        await runner.stop()
    """

    def __init__(
        self,
        scheduler: Scheduler,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        heartbeat_interval: int = 60,
    ):
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        self._scheduler = scheduler
        self._poll_interval = poll_interval
        self._heartbeat_interval = heartbeat_interval
        self._running = False
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._wake: asyncio.Event | None = None
        self._cycle_count = 0
        self._fired_count = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def fired_count(self) -> int:
        return self._fired_count

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._loop = asyncio.get_running_loop()
        self._wake = asyncio.Event()
        self._scheduler.add_listener(self._on_change)
        logger.info(
            "scheduler_runner_started",
            extra={
                "handler.count": len(self._scheduler.registry),
                "schedule.step_seconds": self._scheduler.step_seconds,
            },
        )
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        """Stop the loop and release every timer."""
        if not self._running:
            return
        self._running = False
        self._scheduler.remove_listener(self._on_change)
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._scheduler.cancel_all()
        logger.info(
            "scheduler_runner_stopped", extra={"timer.fired": self._fired_count}
        )

    def _on_change(self) -> None:
        # May be called from any thread
        loop, wake = self._loop, self._wake
        if loop is None or wake is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(wake.set)

    async def _run_loop(self) -> None:
        while self._running:
            try:
                self._cycle_count += 1
                if self._cycle_count % self._heartbeat_interval == 0:
                    logger.info(
                        "scheduler_runner_heartbeat",
                        extra={
                            "cycle.count": self._cycle_count,
                            "timer.count": len(self._scheduler.active_timers),
                            "timer.fired": self._fired_count,
                        },
                    )
                self._fired_count += await self._scheduler.run_pending()
            except Exception as e:
                logger.error("scheduler_cycle_error", extra={"error.message": str(e)})
            await self._sleep()

    async def _sleep(self) -> None:
        assert self._wake is not None
        # Clear before reading the next deadline so a change in between is seen
        self._wake.clear()
        delay = self._scheduler.seconds_until_next()
        timeout = (
            self._poll_interval if delay is None else min(delay, self._poll_interval)
        )
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=timeout)
        except TimeoutError:
            pass
