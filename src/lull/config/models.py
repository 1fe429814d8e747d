"""Configuration models using Pydantic."""

import logging
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from lull.config.paths import get_system_timezone
from lull.scheduling.errors import ConfigurationError
from lull.scheduling.steps import DEFAULT_STEP_SECONDS
from lull.scheduling.types import IdleSpec, TimeSpec, parse_idle_spec, parse_time_spec

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Configuration error."""

    pass


class HandlerConfig(BaseModel):
    """A handler declared in the config file.

    `time` and `idle` take the raw forms:
    - time: omitted (never), true (every step), N (every N steps), "HH:MM"
    - idle: omitted/false (don't care), true (idle at all), N (idle N steps)
    """

    callback: str
    time: bool | int | str | None = None
    idle: bool | int | None = None
    enabled: bool = True

    @field_validator("callback")
    @classmethod
    def _validate_callback(cls, value: str) -> str:
        module, sep, attr = value.partition(":")
        if not sep or not module.strip() or not attr.strip():
            raise ValueError(f"callback must be 'module:attribute', got '{value}'")
        return value

    @field_validator("time")
    @classmethod
    def _validate_time(cls, value: bool | int | str | None) -> bool | int | str | None:
        try:
            parse_time_spec(value)
        except ConfigurationError as e:
            raise ValueError(str(e)) from e
        return value

    @field_validator("idle")
    @classmethod
    def _validate_idle(cls, value: bool | int | None) -> bool | int | None:
        try:
            parse_idle_spec(value)
        except ConfigurationError as e:
            raise ValueError(str(e)) from e
        return value

    @property
    def time_spec(self) -> TimeSpec:
        return parse_time_spec(self.time)

    @property
    def idle_spec(self) -> IdleSpec:
        return parse_idle_spec(self.idle)


class LullConfig(BaseModel):
    """Root configuration model."""

    step_seconds: float = Field(default=DEFAULT_STEP_SECONDS, gt=0)
    timezone: str = Field(default_factory=get_system_timezone)
    # Upper bound on how long the runner sleeps between checks
    poll_interval: float = Field(default=5.0, gt=0)
    idle_source: Literal["process", "win32"] = "process"
    handlers: dict[str, HandlerConfig] = Field(default_factory=dict)

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone '{value}'") from e
        return value

    def enabled_handlers(self) -> dict[str, HandlerConfig]:
        return {name: h for name, h in self.handlers.items() if h.enabled}
