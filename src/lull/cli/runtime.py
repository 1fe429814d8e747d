"""Shared runtime bootstrap helpers for CLI entrypoints."""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

from lull.config import ConfigError, LullConfig
from lull.scheduling import (
    HandlerCallback,
    IdleClock,
    InputIdleClock,
    Scheduler,
    Win32IdleClock,
)

if TYPE_CHECKING:
    from lull.scheduling import CallbackFailure

logger = logging.getLogger(__name__)


def resolve_callback(path: str) -> HandlerCallback:
    """Import a callback from a "module:attribute" path.

    Raises:
        ConfigError: If the module or attribute cannot be loaded, or the
            attribute is not callable.
    """
    module_name, _, attr_path = path.partition(":")
    try:
        target: object = importlib.import_module(module_name.strip())
    except ImportError as e:
        raise ConfigError(f"Cannot import module for callback '{path}': {e}") from e

    for attr in attr_path.strip().split("."):
        try:
            target = getattr(target, attr)
        except AttributeError as e:
            raise ConfigError(f"Callback '{path}' not found") from e

    if not callable(target):
        raise ConfigError(f"Callback '{path}' is not callable")
    return target  # type: ignore[return-value]


def create_idle_clock(config: LullConfig) -> IdleClock:
    if config.idle_source == "win32":
        return Win32IdleClock()
    return InputIdleClock()


def _log_failure(failure: CallbackFailure) -> None:
    logger.warning(
        "handler_failure_recorded",
        extra={"handler.id": str(failure.handler_id), "error.message": failure.message},
    )


def build_scheduler(
    config: LullConfig,
    *,
    idle_clock: IdleClock | None = None,
) -> Scheduler:
    """Create a scheduler with every enabled configured handler registered.

    Raises:
        ConfigError: If a handler callback cannot be resolved.
        ConfigurationError: If the idle source is unavailable on this platform.
    """
    scheduler = Scheduler(
        idle_clock if idle_clock is not None else create_idle_clock(config),
        step_seconds=config.step_seconds,
        timezone=config.timezone,
        failure_sink=_log_failure,
    )
    for name, handler in config.enabled_handlers().items():
        scheduler.add_handler(
            name,
            handler.time_spec,
            handler.idle_spec,
            resolve_callback(handler.callback),
            init=False,
        )
    scheduler.init()
    return scheduler
