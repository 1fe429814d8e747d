"""Tests for the handler registry."""

import pytest

from lull.scheduling import (
    AtClock,
    ConfigurationError,
    DontCare,
    EveryN,
    HandlerRegistry,
    Immediate,
    Never,
)


def noop() -> None:
    pass


class TestHandlerRegistry:
    """Tests for HandlerRegistry."""

    def test_add_parses_raw_values(self):
        registry = HandlerRegistry()
        entry = registry.add("a", "06:30", True, noop)

        assert entry.time == AtClock(6, 30)
        assert entry.idle == Immediate()
        assert registry.get("a") is entry

    def test_iteration_in_registration_order(self):
        registry = HandlerRegistry()
        for name in ("c", "a", "b"):
            registry.add(name, 1, None, noop)

        assert registry.ids() == ["c", "a", "b"]
        assert [e.id for e in registry] == ["c", "a", "b"]

    def test_readd_moves_to_end(self):
        registry = HandlerRegistry()
        registry.add("a", 1, None, noop)
        registry.add("b", 1, None, noop)
        registry.add("a", 2, None, noop)

        assert registry.ids() == ["b", "a"]
        assert registry.get("a").time == EveryN(2)
        assert len(registry) == 2

    def test_invalid_add_keeps_existing_entry(self):
        registry = HandlerRegistry()
        registry.add("a", None, None, noop)

        with pytest.raises(ConfigurationError):
            registry.add("a", "25:00", None, noop)

        assert registry.get("a").time == Never()
        assert registry.get("a").idle == DontCare()

    def test_remove(self):
        registry = HandlerRegistry()
        registry.add("a", 1, None, noop)

        assert registry.remove("a") is True
        assert registry.remove("a") is False
        assert "a" not in registry

    def test_iteration_tolerates_mutation(self):
        registry = HandlerRegistry()
        registry.add("a", 1, None, noop)
        registry.add("b", 1, None, noop)

        for entry in registry:
            registry.remove(entry.id)

        assert len(registry) == 0

    def test_non_string_ids(self):
        registry = HandlerRegistry()
        registry.add(("group", 1), 1, None, noop)
        assert ("group", 1) in registry
