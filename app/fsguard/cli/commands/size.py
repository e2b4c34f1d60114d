"""Tree size command.

Reports the total size and file count below a directory.
"""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import typer

from fsguard.cli.context import load_policy, real_path, restrict_to
from fsguard.filesystem import FilesystemError, FsDirectory
from fsguard.utils.formatting import console, format_size, print_error

app = typer.Typer(
    help="Show the size of a directory tree.",
    invoke_without_command=True,
    no_args_is_help=True,
)


@app.callback(invoke_without_command=True)
def show_size(
    ctx: typer.Context,
    path: Annotated[
        Path,
        typer.Argument(help="Directory to measure.", exists=True, file_okay=False),
    ],
    filesystem: Annotated[
        bool,
        typer.Option("--filesystem", help="Also show usage of the filesystem holding PATH."),
    ] = False,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON."),
    ] = False,
) -> None:
    """Show the total size and number of files below PATH."""
    policy = load_policy(ctx)
    restrictions = restrict_to(path, policy, write=False, label="fsguard size")
    directory = FsDirectory(str(real_path(path)), restrictions, policy=policy)

    try:
        total = directory.tree_file_size()
        count = directory.tree_file_count()
        info = directory.get_filesystem_info() if filesystem else None
    except FilesystemError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    if as_json:
        data: dict[str, object] = {"path": directory.source, "size_bytes": total, "files": count}
        if info is not None:
            data["filesystem"] = asdict(info)
        console.print_json(json.dumps(data))
        return

    console.print(f"[header]{directory.source}[/]")
    console.print(f"  Size:  [info]{format_size(total)}[/] ({total} bytes)")
    console.print(f"  Files: [info]{count}[/]")
    if info is not None:
        console.print(
            f"  Filesystem: {info.filesystem} on {info.mounted_on}, "
            f"{format_size(info.available)} free of {format_size(info.size)} ({info.use_percent}% used)"
        )
