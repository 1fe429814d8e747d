"""Shared test fixtures and factories."""

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta, tzinfo
from pathlib import Path

import pytest

from lull.config.paths import get_lull_home
from lull.scheduling import Scheduler

STEP = 60.0
START = datetime(2026, 1, 12, 14, 0, tzinfo=UTC)


# =============================================================================
# Clocks
# =============================================================================


class ManualClock:
    """Virtual time: a monotonic counter and the matching wall-clock time."""

    def __init__(self, start: datetime = START, timezone: tzinfo = UTC) -> None:
        self._start = start
        self._tz = timezone
        self._elapsed = 0.0

    def monotonic(self) -> float:
        return self._elapsed

    def wall(self) -> datetime:
        return (self._start + timedelta(seconds=self._elapsed)).astimezone(self._tz)

    def set(self, elapsed: float) -> None:
        assert elapsed >= self._elapsed, "time cannot move backwards"
        self._elapsed = elapsed


class FakeIdleClock:
    """Idle time derived from the manual clock and the last touch()."""

    def __init__(self, clock: ManualClock) -> None:
        self._clock = clock
        self._last_input = clock.monotonic()
        self.error: OSError | None = None

    def touch(self) -> None:
        self._last_input = self._clock.monotonic()

    def seconds_idle(self) -> float:
        if self.error is not None:
            raise self.error
        return self._clock.monotonic() - self._last_input


class Simulation:
    """A scheduler wired to virtual time, stepped timer by timer."""

    def __init__(
        self,
        step_seconds: float = STEP,
        start: datetime = START,
        timezone: tzinfo = UTC,
    ) -> None:
        self.clock = ManualClock(start, timezone)
        self.idle = FakeIdleClock(self.clock)
        self.failures: list = []
        self.scheduler = Scheduler(
            self.idle,
            step_seconds=step_seconds,
            timezone=timezone,
            clock=self.clock.monotonic,
            wall_clock=self.clock.wall,
            failure_sink=self.failures.append,
        )

    @property
    def now(self) -> float:
        return self.clock.monotonic()

    async def run_until(self, deadline: float) -> int:
        """Fire every timer due up to `deadline`, moving the clock to each one."""
        fired = 0
        while True:
            due = self.scheduler.next_due()
            if due is None or due > deadline:
                break
            self.clock.set(max(due, self.now))
            fired += await self.scheduler.run_pending()
        self.clock.set(max(deadline, self.now))
        return fired

    async def run_for(self, seconds: float) -> int:
        return await self.run_until(self.now + seconds)


class CallRecorder:
    """Callback that records the virtual time of each call."""

    def __init__(self, clock: ManualClock) -> None:
        self._clock = clock
        self.calls: list[float] = []

    def __call__(self) -> None:
        self.calls.append(self._clock.monotonic())


@pytest.fixture
def sim() -> Simulation:
    """Scheduler on virtual time: 60s steps, starting 2026-01-12 14:00 UTC."""
    return Simulation()


@pytest.fixture
def recorder(sim: Simulation) -> CallRecorder:
    return CallRecorder(sim.clock)


@pytest.fixture
def new_york() -> tzinfo:
    from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

    try:
        return ZoneInfo("America/New_York")
    except ZoneInfoNotFoundError:
        pytest.skip("tz database not available")


@pytest.fixture
def new_york_sim(new_york: tzinfo) -> Simulation:
    """Scheduler on virtual time in New York, starting 2026-10-31 15:00 EDT.

    Clocks fall back from 02:00 EDT to 01:00 EST the following night.
    """
    start = datetime(2026, 10, 31, 19, 0, tzinfo=UTC)
    return Simulation(start=start, timezone=new_york)


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def lull_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point LULL_HOME at a temporary directory for every test."""
    home = tmp_path / "lull-home"
    monkeypatch.setenv("LULL_HOME", str(home))
    monkeypatch.delenv("LULL_STEP_SECONDS", raising=False)
    monkeypatch.delenv("LULL_TIMEZONE", raising=False)
    get_lull_home.cache_clear()
    yield home
    get_lull_home.cache_clear()


@pytest.fixture
def config_toml_content() -> str:
    """Valid TOML config content."""
    return """
step_seconds = 30
timezone = "UTC"
poll_interval = 2.5

[handlers.heartbeat]
callback = "time:monotonic"
time = 2

[handlers.nightly]
callback = "time:monotonic"
time = "03:15"

[handlers.idle-cleanup]
callback = "time:monotonic"
idle = 10

[handlers.disabled]
callback = "time:monotonic"
time = true
enabled = false
"""


@pytest.fixture
def config_file(tmp_path: Path, config_toml_content: str) -> Path:
    """Create a temporary config file."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(config_toml_content)
    return config_path


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner with colors disabled."""
    from typer.testing import CliRunner

    return CliRunner(env={"NO_COLOR": "1"})
