"""Scheduling subsystem: periodic and idle-triggered handlers.

Public API:
- Scheduler: Handler registration and timer reconciliation
- SchedulerRunner: asyncio loop that fires due timers
- HandlerRegistry: Ordered handler definitions
- Dispatcher: Callback execution, idle gate and re-arm protocol
- steps_until: Wall-clock deadline to step countdown

Types:
- TimeSpec: Never, EveryStep, EveryN, AtClock
- IdleSpec: DontCare, Immediate, AfterSteps
- HandlerEntry, ActiveTimer, TimerKind
- IdleClock: Idle-time source protocol (InputIdleClock, Win32IdleClock)
"""

from lull.scheduling.dispatcher import Dispatcher
from lull.scheduling.errors import (
    CallbackFailure,
    ClockParseError,
    ConfigurationError,
    SchedulerError,
)
from lull.scheduling.idle import IdleClock, InputIdleClock, Win32IdleClock
from lull.scheduling.registry import HandlerRegistry
from lull.scheduling.runner import SchedulerRunner
from lull.scheduling.scheduler import Scheduler
from lull.scheduling.steps import (
    DEFAULT_STEP_SECONDS,
    next_occurrence,
    seconds_until,
    steps_until,
)
from lull.scheduling.timers import ActiveTimer, TimerHandle, TimerTable
from lull.scheduling.types import (
    AfterSteps,
    AtClock,
    DontCare,
    EveryN,
    EveryStep,
    HandlerCallback,
    HandlerEntry,
    IdleSpec,
    Immediate,
    Never,
    TimeSpec,
    TimerKind,
    parse_idle_spec,
    parse_time_spec,
    timer_kind_for,
)

__all__ = [
    "DEFAULT_STEP_SECONDS",
    "ActiveTimer",
    "AfterSteps",
    "AtClock",
    "CallbackFailure",
    "ClockParseError",
    "ConfigurationError",
    "Dispatcher",
    "DontCare",
    "EveryN",
    "EveryStep",
    "HandlerCallback",
    "HandlerEntry",
    "HandlerRegistry",
    "IdleClock",
    "IdleSpec",
    "Immediate",
    "InputIdleClock",
    "Never",
    "Scheduler",
    "SchedulerError",
    "SchedulerRunner",
    "TimeSpec",
    "TimerHandle",
    "TimerKind",
    "TimerTable",
    "Win32IdleClock",
    "next_occurrence",
    "parse_idle_spec",
    "parse_time_spec",
    "seconds_until",
    "steps_until",
    "timer_kind_for",
]
