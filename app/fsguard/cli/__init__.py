"""CLI package for fsguard.

This package contains the Typer application and all subcommands.
"""

from fsguard.cli.main import app

__all__ = ["app"]
