"""Handler registry."""

import logging
from collections.abc import Hashable, Iterator

from lull.scheduling.types import (
    HandlerCallback,
    HandlerEntry,
    IdleSpec,
    TimeSpec,
    parse_idle_spec,
    parse_time_spec,
)

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Ordered mapping from handler id to HandlerEntry.

    Adding an id that already exists drops the old entry and appends the new
    one at the end, so iteration order is order of last registration.
    """

    def __init__(self) -> None:
        self._entries: dict[Hashable, HandlerEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, handler_id: Hashable) -> bool:
        return handler_id in self._entries

    def __iter__(self) -> Iterator[HandlerEntry]:
        return iter(list(self._entries.values()))

    def get(self, handler_id: Hashable) -> HandlerEntry | None:
        return self._entries.get(handler_id)

    def ids(self) -> list[Hashable]:
        return list(self._entries)

    def add(
        self,
        handler_id: Hashable,
        time: TimeSpec | object,
        idle: IdleSpec | object,
        callback: HandlerCallback,
    ) -> HandlerEntry:
        """Register a handler, replacing any entry with the same id.

        Raises:
            ConfigurationError: If the schedule or callback is malformed.
        """
        entry = HandlerEntry(
            id=handler_id,
            time=parse_time_spec(time),
            idle=parse_idle_spec(idle),
            callback=callback,
        )
        replaced = self._entries.pop(handler_id, None) is not None
        self._entries[handler_id] = entry
        logger.debug(
            "handler_registered",
            extra={
                "handler.id": str(handler_id),
                "handler.time": str(entry.time),
                "handler.idle": str(entry.idle),
                "handler.replaced": replaced,
            },
        )
        return entry

    def remove(self, handler_id: Hashable) -> bool:
        """Remove a handler. Returns False if it was not registered."""
        removed = self._entries.pop(handler_id, None) is not None
        if removed:
            logger.debug("handler_removed", extra={"handler.id": str(handler_id)})
        return removed
