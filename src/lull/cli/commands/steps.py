"""Clock-time to step conversion command."""

from typing import Annotated

import typer

from lull.cli.console import console, dim, error


def register(app: typer.Typer) -> None:
    """Register the steps-until command."""

    @app.command("steps-until")
    def steps_until_command(
        clock: Annotated[
            str,
            typer.Argument(help="Clock time as HH:MM"),
        ],
        step_seconds: Annotated[
            float,
            typer.Option(
                "--step-seconds",
                "-s",
                help="Seconds per step",
            ),
        ] = 60.0,
        timezone: Annotated[
            str | None,
            typer.Option(
                "--timezone",
                "-z",
                help="IANA timezone (default: system timezone)",
            ),
        ] = None,
    ) -> None:
        """Show how many steps remain until the next HH:MM."""
        from datetime import datetime
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        from lull.config import get_system_timezone
        from lull.scheduling import AtClock, ClockParseError, next_occurrence, steps_until

        if step_seconds <= 0:
            error("--step-seconds must be positive")
            raise typer.Exit(1)

        try:
            at = AtClock.parse(clock)
        except ClockParseError as e:
            error(str(e))
            raise typer.Exit(1) from None

        tz_name = timezone or get_system_timezone()
        try:
            tz = ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            error(f"Unknown timezone '{tz_name}'")
            raise typer.Exit(1) from None

        now = datetime.now(tz)
        steps = steps_until(at, now, step_seconds)
        deadline = next_occurrence(at, now)
        console.print(f"{steps}")
        console.print(dim(f"until {deadline.isoformat()} ({step_seconds:g}s per step)"))
