"""Shared helpers for CLI commands.

Builds the filesystem policy from the global options and turns command
arguments into explicit restrictions.
"""

import os
from pathlib import Path

import typer

from fsguard.core.config import SettingsError
from fsguard.filesystem import FilesystemPolicy, Restrictions
from fsguard.utils.formatting import print_error


def load_policy(ctx: typer.Context) -> FilesystemPolicy:
    """Build the filesystem policy for a command.

    Uses the settings file given with --config, or the default one.

    Raises:
        typer.Exit: If the settings file is invalid.
    """
    obj = ctx.find_root().obj or {}
    try:
        return FilesystemPolicy.from_settings_file(obj.get("config_path"))
    except SettingsError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


def real_path(path: Path) -> Path:
    """Make path absolute and resolve symlinks in its directories.

    The last component is kept as given, so a symlink argument names the
    link itself and not what it points to.
    """
    absolute = Path(os.path.abspath(path))
    if absolute.parent == absolute:
        return absolute
    return absolute.parent.resolve() / absolute.name


def restrict_to(path: Path, policy: FilesystemPolicy, *, write: bool, label: str) -> Restrictions:
    """Create restrictions that cover exactly path and everything below it."""
    return Restrictions(str(real_path(path)), write, label, policy=policy)
