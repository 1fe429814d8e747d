"""CLI command modules."""

from lull.cli.commands import handlers, run, steps

__all__ = [
    "handlers",
    "run",
    "steps",
]
