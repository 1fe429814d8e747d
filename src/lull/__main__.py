"""Entry point for python -m lull."""

from lull.cli.app import app

if __name__ == "__main__":
    app()
