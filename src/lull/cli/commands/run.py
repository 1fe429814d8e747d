"""Run the scheduler daemon."""

from pathlib import Path
from typing import Annotated

import typer

from lull.cli.console import console, error


def register(app: typer.Typer) -> None:
    """Register the run command."""

    @app.command()
    def run(
        config: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
        log_to_file: Annotated[
            bool,
            typer.Option(
                "--log-to-file",
                help="Also write JSONL logs to $LULL_HOME/logs",
            ),
        ] = False,
        log_level: Annotated[
            str | None,
            typer.Option(
                "--log-level",
                "-l",
                help="Log level (DEBUG, INFO, WARNING, ERROR)",
            ),
        ] = None,
    ) -> None:
        """Run configured handlers until interrupted."""
        import asyncio

        from pydantic import ValidationError

        from lull.cli.runtime import build_scheduler
        from lull.config import ConfigError, load_config
        from lull.logging import configure_logging
        from lull.scheduling import ConfigurationError, SchedulerRunner

        configure_logging(level=log_level, use_rich=True, log_to_file=log_to_file)

        try:
            config_obj = load_config(config)
            scheduler = build_scheduler(config_obj)
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

        if not scheduler.active_timers:
            console.print("[yellow]No active handlers configured[/yellow]")

        async def run_scheduler() -> None:
            import signal as signal_module

            runner = SchedulerRunner(scheduler, poll_interval=config_obj.poll_interval)
            shutdown_event = asyncio.Event()
            loop = asyncio.get_running_loop()
            for sig in (signal_module.SIGTERM, signal_module.SIGINT):
                try:
                    loop.add_signal_handler(sig, shutdown_event.set)
                except NotImplementedError:
                    # Windows event loops have no signal handler support
                    pass

            await runner.start()
            console.print(
                f"[bold]Running {len(scheduler.active_timers)} handler(s)[/bold] "
                f"[dim](step {scheduler.step_seconds:g}s)[/dim]"
            )
            try:
                await shutdown_event.wait()
            finally:
                await runner.stop()

        try:
            asyncio.run(run_scheduler())
        except KeyboardInterrupt:
            pass
        console.print("[dim]Stopped[/dim]")
