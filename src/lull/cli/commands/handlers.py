"""Handler listing command."""

from pathlib import Path
from typing import Annotated

import typer

from lull.cli.console import console, create_table, dim, error, warning


def format_countdown(seconds: float | None) -> str:
    """Format a countdown string for a number of seconds until fire."""
    if seconds is None:
        return "[dim]-[/dim]"

    total_seconds = int(seconds)
    if total_seconds <= 0:
        return "[green]now[/green]"

    if total_seconds < 60:
        return f"in {total_seconds}s"

    total_minutes = total_seconds // 60
    if total_minutes < 60:
        return f"in {total_minutes}m"

    hours = total_minutes // 60
    minutes = total_minutes % 60
    if hours < 24:
        if minutes:
            return f"in {hours}h {minutes}m"
        return f"in {hours}h"

    days = hours // 24
    hours = hours % 24
    if hours:
        return f"in {days}d {hours}h"
    return f"in {days}d"


def register(app: typer.Typer) -> None:
    """Register the handlers command."""

    @app.command()
    def handlers(
        config: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
    ) -> None:
        """List configured handlers and when they fire next."""
        import time

        from pydantic import ValidationError

        from lull.cli.runtime import build_scheduler
        from lull.config import ConfigError, load_config
        from lull.scheduling import ConfigurationError, InputIdleClock, timer_kind_for

        try:
            config_obj = load_config(config)
            # Listing never reads a real idle source
            scheduler = build_scheduler(config_obj, idle_clock=InputIdleClock())
        except FileNotFoundError as e:
            error(str(e))
            raise typer.Exit(1) from None
        except ValidationError as e:
            error("Configuration validation failed:")
            for err in e.errors():
                loc = ".".join(str(x) for x in err["loc"])
                console.print(f"  [yellow]{loc}[/yellow]: {err['msg']}")
            raise typer.Exit(1) from None
        except (ConfigError, ConfigurationError) as e:
            error(str(e))
            raise typer.Exit(1) from None

        if not config_obj.handlers:
            warning("No handlers configured")
            return

        table = create_table(
            "Handlers",
            [
                ("Name", "cyan"),
                ("Time", ""),
                ("Idle", ""),
                ("Mode", ""),
                ("Next Fire", ""),
            ],
        )

        now = time.monotonic()
        for name, handler in config_obj.handlers.items():
            if not handler.enabled:
                table.add_row(
                    name,
                    str(handler.time_spec),
                    str(handler.idle_spec),
                    dim("disabled"),
                    format_countdown(None),
                )
                continue

            entry = scheduler.registry.get(name)
            kind = timer_kind_for(entry) if entry else None
            timer = scheduler.timer_for(name)
            table.add_row(
                name,
                str(handler.time_spec),
                str(handler.idle_spec),
                kind.value if kind else dim("inert"),
                format_countdown(timer.due - now if timer else None),
            )

        console.print(table)
        console.print(f"\n{dim(f'Step: {scheduler.step_seconds:g}s')}")
        scheduler.cancel_all()
