"""Clean command.

Deletes paths and prunes the parent directories they leave empty, without
ever leaving the given root directory.
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from fsguard.cli.context import load_policy, real_path, restrict_to
from fsguard.filesystem import FilesystemError, FsPath
from fsguard.utils.formatting import (
    console,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from fsguard.utils.shell import ProcessFailedError

app = typer.Typer(
    help="Delete paths and prune empty parent directories.",
    invoke_without_command=True,
    no_args_is_help=True,
)


@app.callback(invoke_without_command=True)
def clean_paths(
    ctx: typer.Context,
    paths: Annotated[
        list[Path],
        typer.Argument(help="Files or directories to delete."),
    ],
    root: Annotated[
        Path | None,
        typer.Option(
            "--root",
            "-r",
            help="Directory that bounds deletion and pruning. Defaults to each path itself.",
        ),
    ] = None,
    secure: Annotated[
        bool,
        typer.Option("--secure", help="Overwrite file contents with shred before deleting."),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Show what would be deleted."),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Delete PATHS, then remove parent directories that became empty.

    Pruning stops at the first non-empty directory and never removes the
    --root directory itself.

    Examples:
        fsguard clean ~/scratch/build
        fsguard clean ~/scratch/a/b/c --root ~/scratch --dry-run
    """
    policy = load_policy(ctx)
    targets: list[FsPath] = []

    for path in paths:
        bound = root if root is not None else path
        restrictions = restrict_to(bound, policy, write=True, label="fsguard clean")
        target = FsPath(str(real_path(path)), restrictions, policy=policy)
        if not target.exists(check_dead_symlink=True):
            print_warning(f"Skipping missing path: {target.source}")
            continue
        if not restrictions.allows(target.source, write=True):
            print_error(f"Path {target.source} is outside of {real_path(bound)}")
            raise typer.Exit(code=1)
        targets.append(target)

    if not targets:
        print_info("Nothing to delete.")
        return

    _print_plan(targets, dry_run)
    if dry_run:
        print_info(f"Dry-run: {len(targets)} path(s) would be deleted.")
        return

    if not yes:
        confirmed = typer.confirm(f"\nProceed with deleting {len(targets)} path(s)?", default=False)
        if not confirmed:
            print_info("Aborted.")
            raise typer.Exit(code=0)

    failures = 0
    for target in targets:
        try:
            if secure:
                target.secure_delete()
            else:
                target.delete()
        except (FilesystemError, ProcessFailedError) as e:
            print_error(str(e))
            failures += 1

    if failures:
        print_warning(f"{len(targets) - failures} succeeded, {failures} failed")
        raise typer.Exit(code=1)
    print_success(f"All {len(targets)} path(s) deleted.")


def _print_plan(targets: list[FsPath], dry_run: bool) -> None:
    """Display planned deletions."""
    label = "Planned Deletions (dry-run)" if dry_run else "Planned Deletions"
    table = Table(title=label, show_lines=False)
    table.add_column("Path", style="bold")
    table.add_column("Type", width=14)

    for target in targets:
        table.add_row(target.source, target.get_type_name())

    console.print(table)
