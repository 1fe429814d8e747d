"""Schedule types.

Public types:
- TimeSpec: Recurrence of a handler (Never, EveryStep, EveryN, AtClock)
- IdleSpec: Idle requirement of a handler (DontCare, Immediate, AfterSteps)
- HandlerEntry: A registered handler
- HandlerCallback: Zero-argument action, sync or async
- TimerKind: Mode of an armed timer
"""

import re
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from lull.scheduling.errors import ClockParseError, ConfigurationError

# Idle threshold used for IdleSpec.Immediate: the user must be idle by more
# than this to pass the gate.
IMMEDIATE_IDLE_SECONDS = 0.001

_CLOCK_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")

HandlerCallback = Callable[[], Awaitable[Any] | Any]


def _require_positive_steps(steps: object, kind: str) -> None:
    # bool is an int subclass but never a meaningful step count
    if isinstance(steps, bool) or not isinstance(steps, int):
        raise ConfigurationError(
            f"{kind} steps must be an integer, got {type(steps).__name__}"
        )
    if steps <= 0:
        raise ConfigurationError(f"{kind} steps must be positive, got {steps}")


# =============================================================================
# TimeSpec
# =============================================================================


@dataclass(frozen=True, slots=True)
class Never:
    """No recurrence."""

    def __str__(self) -> str:
        return "never"


@dataclass(frozen=True, slots=True)
class EveryStep:
    """Recur every single step."""

    @property
    def steps(self) -> int:
        return 1

    def __str__(self) -> str:
        return "every step"


@dataclass(frozen=True, slots=True)
class EveryN:
    """Recur every `steps` steps."""

    steps: int

    def __post_init__(self) -> None:
        _require_positive_steps(self.steps, "EveryN")

    def __str__(self) -> str:
        return f"every {self.steps} steps"


@dataclass(frozen=True, slots=True)
class AtClock:
    """Recur daily at a wall-clock hour and minute."""

    hour: int
    minute: int

    def __post_init__(self) -> None:
        for name, value, upper in (("hour", self.hour, 23), ("minute", self.minute, 59)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ClockParseError(f"Clock {name} must be an integer: {value!r}")
            if not 0 <= value <= upper:
                raise ClockParseError(f"Clock {name} out of range 0-{upper}: {value}")

    @classmethod
    def parse(cls, text: str) -> "AtClock":
        """Parse an "HH:MM" string.

        Raises:
            ClockParseError: If the text is not a valid 24-hour clock time.
        """
        if not isinstance(text, str):
            raise ClockParseError(f"Clock time must be a string: {text!r}")
        match = _CLOCK_PATTERN.match(text)
        if not match:
            raise ClockParseError(f"Invalid clock time '{text}', expected HH:MM")
        return cls(hour=int(match.group(1)), minute=int(match.group(2)))

    def __str__(self) -> str:
        return f"at {self.hour:02d}:{self.minute:02d}"


TimeSpec = Never | EveryStep | EveryN | AtClock


# =============================================================================
# IdleSpec
# =============================================================================


@dataclass(frozen=True, slots=True)
class DontCare:
    """No idle gating."""

    def __str__(self) -> str:
        return "any"


@dataclass(frozen=True, slots=True)
class Immediate:
    """User must be idle, by any amount."""

    def __str__(self) -> str:
        return "idle"


@dataclass(frozen=True, slots=True)
class AfterSteps:
    """User must have been idle for more than `steps` steps."""

    steps: int

    def __post_init__(self) -> None:
        _require_positive_steps(self.steps, "AfterSteps")

    def __str__(self) -> str:
        return f"idle {self.steps} steps"


IdleSpec = DontCare | Immediate | AfterSteps


def parse_time_spec(value: object) -> TimeSpec:
    """Convert a raw configuration value into a TimeSpec.

    None -> Never, True -> EveryStep, positive int -> EveryN,
    "HH:MM" -> AtClock.
    """
    if isinstance(value, TimeSpec):
        return value
    if value is None or value is False:
        return Never()
    if value is True:
        return EveryStep()
    if isinstance(value, int):
        return EveryN(value)
    if isinstance(value, str):
        return AtClock.parse(value)
    raise ConfigurationError(f"Unsupported time value: {value!r}")


def parse_idle_spec(value: object) -> IdleSpec:
    """Convert a raw configuration value into an IdleSpec.

    None/False -> DontCare, True -> Immediate, positive int -> AfterSteps.
    """
    if isinstance(value, IdleSpec):
        return value
    if value is None or value is False:
        return DontCare()
    if value is True:
        return Immediate()
    if isinstance(value, int):
        return AfterSteps(value)
    raise ConfigurationError(f"Unsupported idle value: {value!r}")


# =============================================================================
# Handlers and timers
# =============================================================================


@dataclass(frozen=True, slots=True)
class HandlerEntry:
    """A registered handler: identity, schedule and callback."""

    id: Hashable
    time: TimeSpec
    idle: IdleSpec
    callback: HandlerCallback

    def __post_init__(self) -> None:
        if not isinstance(self.id, Hashable):
            raise ConfigurationError(f"Handler id must be hashable: {self.id!r}")
        if not isinstance(self.time, TimeSpec):
            raise ConfigurationError(f"Invalid time spec: {self.time!r}")
        if not isinstance(self.idle, IdleSpec):
            raise ConfigurationError(f"Invalid idle spec: {self.idle!r}")
        if not callable(self.callback):
            raise ConfigurationError(f"Handler {self.id!r} callback is not callable")

    @property
    def is_inert(self) -> bool:
        """True when no timer is ever armed for this entry."""
        return isinstance(self.time, Never) and not isinstance(self.idle, AfterSteps)


class TimerKind(StrEnum):
    """Mode of an armed timer."""

    PERIODIC = "periodic"
    IDLE_WAIT = "idle_wait"
    SPECIAL_PERIODIC = "special_periodic"


def timer_kind_for(entry: HandlerEntry) -> TimerKind | None:
    """Derive the initial timer mode for an entry, or None if inert."""
    if isinstance(entry.time, Never):
        if isinstance(entry.idle, AfterSteps):
            return TimerKind.IDLE_WAIT
        return None
    if isinstance(entry.time, AtClock):
        return TimerKind.PERIODIC
    if isinstance(entry.idle, DontCare):
        return TimerKind.PERIODIC
    return TimerKind.SPECIAL_PERIODIC
