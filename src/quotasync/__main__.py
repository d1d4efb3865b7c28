"""Entry point for ``python -m quotasync``."""

from quotasync.cli import app

app()
