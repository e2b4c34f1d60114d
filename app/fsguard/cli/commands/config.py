"""Settings commands.

Shows the effective filesystem settings and writes a default settings file.
"""

import json
from typing import Annotated

import typer
from rich.table import Table

from fsguard.core.config import FilesystemSettings, SettingsError, load_settings, save_settings
from fsguard.core.paths import get_settings_path
from fsguard.utils.formatting import console, print_error, print_info, print_success

app = typer.Typer(
    help="Show and initialize filesystem settings.",
    invoke_without_command=True,
    no_args_is_help=True,
)

_MODE_KEYS = frozenset({"file_mode", "directory_mode", "ensure_parent_mode"})


def _display_value(key: str, value: object) -> str:
    if key in _MODE_KEYS and isinstance(value, int):
        return f"0o{value:o}"
    return str(value)


@app.command()
def show(
    ctx: typer.Context,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON."),
    ] = False,
) -> None:
    """Show the effective settings."""
    path = (ctx.find_root().obj or {}).get("config_path") or get_settings_path()
    try:
        settings = load_settings(path)
    except SettingsError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    data = settings.model_dump()
    if as_json:
        console.print_json(json.dumps(data))
        return

    table = Table(title=f"Settings ({path})", show_lines=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key, value in data.items():
        table.add_row(key, _display_value(key, value))
    console.print(table)


@app.command()
def init(
    ctx: typer.Context,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing settings file."),
    ] = False,
) -> None:
    """Write a settings file holding the defaults."""
    path = (ctx.find_root().obj or {}).get("config_path") or get_settings_path()
    if path.exists() and not force:
        print_info(f"Settings file already exists: {path} (use --force to overwrite)")
        raise typer.Exit(code=1)

    try:
        saved = save_settings(FilesystemSettings(), path)
    except SettingsError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    print_success(f"Settings written to {saved}")
