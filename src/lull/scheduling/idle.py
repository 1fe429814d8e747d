"""Idle-time sources.

The scheduler only reads idle time; resetting it on user input is the
source's business.
"""

import ctypes
import sys
import time
from collections.abc import Callable
from typing import Protocol

from lull.scheduling.errors import ConfigurationError


class IdleClock(Protocol):
    """Reports seconds since the last user input."""

    def seconds_idle(self) -> float: ...


class InputIdleClock:
    """Process-local idle clock.

    The application calls touch() whenever it sees user input. Until the first
    touch, idle time counts from construction.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._last_input = clock()

    def touch(self) -> None:
        """Record user input now."""
        self._last_input = self._clock()

    def seconds_idle(self) -> float:
        return max(0.0, self._clock() - self._last_input)


class Win32IdleClock:
    """System-wide idle time from GetLastInputInfo."""

    def __init__(self) -> None:
        if sys.platform != "win32":
            raise ConfigurationError("Win32 idle source is only available on Windows")

    def seconds_idle(self) -> float:
        last_input = _get_last_input_info()
        tick_count_ms = _get_tick_count_ms()
        # GetLastInputInfo reports a 32-bit tick count
        idle_ms = max(0, (tick_count_ms & 0xFFFFFFFF) - last_input)
        return idle_ms / 1000.0


def _get_last_input_info() -> int:
    class LASTINPUTINFO(ctypes.Structure):
        _fields_ = [("cbSize", ctypes.c_uint), ("dwTime", ctypes.c_uint)]

    user32 = ctypes.windll.user32  # type: ignore[attr-defined]
    last_input = LASTINPUTINFO()
    last_input.cbSize = ctypes.sizeof(LASTINPUTINFO)

    if not user32.GetLastInputInfo(ctypes.byref(last_input)):
        raise ctypes.WinError()  # type: ignore[attr-defined]

    return last_input.dwTime


def _get_tick_count_ms() -> int:
    kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]
    if hasattr(kernel32, "GetTickCount64"):
        kernel32.GetTickCount64.restype = ctypes.c_ulonglong
        return int(kernel32.GetTickCount64())
    return int(kernel32.GetTickCount())
