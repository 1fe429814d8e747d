"""Main CLI application."""

import typer

from lull.cli.commands import handlers, run, steps

app = typer.Typer(
    name="lull",
    help="Lull - periodic and idle-triggered handler scheduler",
    no_args_is_help=True,
)

run.register(app)
handlers.register(app)
steps.register(app)


if __name__ == "__main__":
    app()
