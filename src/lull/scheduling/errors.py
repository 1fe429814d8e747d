"""Scheduler error types."""

from collections.abc import Hashable
from dataclasses import dataclass, field
from datetime import UTC, datetime


class SchedulerError(Exception):
    """Base class for scheduler errors."""


class ConfigurationError(SchedulerError, ValueError):
    """A handler schedule was malformed and rejected at registration time."""


class ClockParseError(ConfigurationError):
    """A wall-clock deadline could not be parsed into a valid hour and minute."""


@dataclass
class CallbackFailure:
    """A contained error raised by a handler callback.

    Never raised out of the scheduler; handed to the optional failure sink.
    """

    handler_id: Hashable
    error: Exception
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def message(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"
