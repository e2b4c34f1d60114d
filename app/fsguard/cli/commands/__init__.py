"""CLI commands for fsguard.

This package contains all subcommand implementations.
"""

from fsguard.cli.commands import clean, config, dupes, size

__all__ = ["clean", "config", "dupes", "size"]
