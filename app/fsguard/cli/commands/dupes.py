"""Duplicate file command.

Finds files with identical content below a directory.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Annotated

import typer

from fsguard.cli.context import load_policy, real_path, restrict_to
from fsguard.filesystem import FilesystemError, FsDirectory, FsDuplicates
from fsguard.utils.formatting import (
    console,
    create_duplicates_table,
    format_size,
    print_error,
    print_success,
)

app = typer.Typer(
    help="Find files with identical content.",
    invoke_without_command=True,
    no_args_is_help=True,
)


class OutputFormat(str, Enum):
    """Output format options for duplicate groups."""

    TABLE = "table"
    JSON = "json"


@app.callback(invoke_without_command=True)
def find_duplicates(
    ctx: typer.Context,
    path: Annotated[
        Path,
        typer.Argument(help="Directory to scan.", exists=True, file_okay=False),
    ],
    depth: Annotated[
        int,
        typer.Option("--depth", "-d", help="Levels of sub directories to scan.", min=0),
    ] = 1_000_000,
    max_size: Annotated[
        int | None,
        typer.Option("--max-size", help="Skip files larger than this many bytes."),
    ] = None,
    output_format: Annotated[
        OutputFormat,
        typer.Option(
            "--format",
            "-f",
            help="Output format.",
            case_sensitive=False,
        ),
    ] = OutputFormat.TABLE,
) -> None:
    """Find duplicate files below PATH.

    Files are compared by size first; only files sharing a size are hashed.

    Examples:
        fsguard dupes ~/Pictures
        fsguard dupes ~/Downloads --depth 0 --format json
    """
    policy = load_policy(ctx)
    restrictions = restrict_to(path, policy, write=False, label="fsguard dupes")
    directory = FsDirectory(str(real_path(path)), restrictions, policy=policy)

    try:
        with policy.cached():
            duplicates = directory.get_duplicate_files(depth, max_size)
    except FilesystemError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    if not duplicates:
        print_success("No duplicate files found.")
        return

    if output_format == OutputFormat.JSON:
        _print_json(duplicates)
        return

    _print_table(duplicates)
    console.print(
        f"\n[muted]Found {duplicates.count_files()} files in {len(duplicates)} groups "
        f"({format_size(duplicates.total_wasted_bytes())} reclaimable)[/muted]"
    )


def _print_table(duplicates: FsDuplicates) -> None:
    """Display duplicate groups as a Rich table."""
    table = create_duplicates_table()
    for digest, files in duplicates.items():
        for index, file in enumerate(files):
            label = digest[:12] if index == 0 else ""
            table.add_row(label, format_size(file.get_size()), file.source)
    console.print(table)


def _print_json(duplicates: FsDuplicates) -> None:
    """Display duplicate groups as JSON."""
    data = [
        {
            "hash": digest,
            "size_bytes": next(iter(files)).get_size(),
            "paths": files.sources(),
        }
        for digest, files in duplicates.items()
    ]
    console.print_json(json.dumps(data))
