"""
treeops - CLI Interface.

Command-line front end for the tree engines: recursive copy, move, removal,
directory creation, listing and emptying.

Usage Examples:
    # Copy a tree, replacing only older destination files
    python -m treeops cp photos backup/photos --update --preserve

    # Move a folder into an existing one, merging contents
    python -m treeops mv incoming archive --merge

    # Remove a tree, retrying directories that are briefly locked
    python -m treeops rm build -r -f --max-retries 5

    # Create several directories at once
    python -m treeops mkdirp "out/{logs,cache/{a,b}}" --mode 755

    # Copy with a progress bar and a log file
    python -m treeops cp data /mnt/backup/data --progress --log-file copy.log --verbose
"""

import logging
import re
import sys
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from treeops import api
from treeops.models import OperationOptions
from treeops.orchestration import JsonLinesSink, OperationLogger
from treeops.ui import TreeConsole

__version__ = "1.0.0"

# Initialize Typer app
app = typer.Typer(
    name="treeops",
    help="treeops - Copy, move, remove and create directory trees safely.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for consistent output formatting
console = Console()
ui = TreeConsole(console)


def version_callback(value: bool) -> None:
    """Display version information and exit."""
    if value:
        console.print(f"treeops v{__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Send the engines' log records to the console at DEBUG level."""
    if not verbose:
        return
    engine_logger = logging.getLogger("treeops")
    engine_logger.setLevel(logging.DEBUG)
    if not any(isinstance(handler, RichHandler) for handler in engine_logger.handlers):
        engine_logger.addHandler(RichHandler(console=console, show_path=False))


def compile_filter(pattern: Optional[str]) -> Optional["re.Pattern[str]"]:
    """
    Compile a --filter regular expression.

    Raises:
        typer.BadParameter: If the pattern is not a valid regular expression.
    """
    if pattern is None:
        return None
    try:
        return re.compile(pattern)
    except re.error as e:
        raise typer.BadParameter(f"Invalid filter expression: {e}")


@contextmanager
def command_errors(action: str) -> Iterator[None]:
    """Map operation errors to exit codes: 1 for errors, 130 for Ctrl+C."""
    try:
        yield
    except KeyboardInterrupt:
        console.print(f"\n[yellow]{action} interrupted by user.[/yellow]")
        raise typer.Exit(130)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except PermissionError as e:
        console.print(f"[red]Error:[/red] Permission denied - {e}")
        raise typer.Exit(1)
    except OSError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@contextmanager
def operation_log(log_file: Optional[Path], command: str) -> Iterator[Optional[OperationLogger]]:
    """
    Open the --log-file report for a command, if one was requested.

    A log file that cannot be created only produces a warning.
    """
    if log_file is None:
        yield None
        return

    try:
        op_logger = OperationLogger(log_file)
    except OSError as e:
        console.print(
            f"[yellow]Warning:[/yellow] Failed to create log file: {e}. "
            "Continuing without logging."
        )
        yield None
        return

    with op_logger:
        op_logger.log_header(command)
        try:
            yield op_logger
        finally:
            op_logger.log_summary()
    console.print(f"[dim]Log written to: {log_file}[/dim]")


def progress_sink(show_progress: bool, json_lines: bool, description: str):
    """
    Build the progress sink for a command.

    Returns:
        tuple: A context manager to run the operation in, and the sink (or None).
    """
    if json_lines:
        return nullcontext(), JsonLinesSink(sys.stdout)
    if show_progress:
        return ui.create_progress(description)
    return nullcontext(), None


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """treeops - Copy, move, remove and create directory trees safely."""
    pass


@app.command("cp")
def copy_command(
    source: Path = typer.Argument(..., help="File or directory to copy."),
    destination: Path = typer.Argument(..., help="Destination path."),
    overwrite: bool = typer.Option(False, "--overwrite", "-f", help="Replace existing files."),
    update: bool = typer.Option(
        False, "--update", "-u", help="Replace existing files only when the source is newer."
    ),
    no_clobber: bool = typer.Option(
        False, "--no-clobber", "-n", help="Skip existing files instead of failing."
    ),
    preserve: bool = typer.Option(False, "--preserve", "-p", help="Preserve timestamps."),
    dereference: bool = typer.Option(False, "--dereference", "-L", help="Follow symlinks."),
    filter_pattern: Optional[str] = typer.Option(
        None, "--filter", help="Only copy paths matching this regular expression."
    ),
    depth: int = typer.Option(-1, "--depth", "-d", help="Maximum depth (-1 for unlimited)."),
    keep_going: bool = typer.Option(
        False, "--continue-on-error", "-k", help="Record errors and keep copying."
    ),
    ignore_empty_folders: bool = typer.Option(
        False, "--ignore-empty-folders", help="Do not create directories with nothing to copy."
    ),
    show_progress: bool = typer.Option(False, "--progress", "-P", help="Show a progress bar."),
    json_lines: bool = typer.Option(False, "--json", help="Print progress events as JSON lines."),
    log_file: Optional[Path] = typer.Option(None, "--log-file", "-l", help="Path for log file output."),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable verbose output."),
) -> None:
    """
    Copy a file or directory tree (cp -r).
    """
    configure_logging(verbose)

    with command_errors("Copy"), operation_log(log_file, "cp") as op_log:
        context, sink = progress_sink(show_progress, json_lines, f"Copying {source.name}...")
        options = OperationOptions(
            overwrite=overwrite,
            overwrite_newer=update,
            error_on_exist=not no_clobber,
            preserve_timestamps=preserve,
            dereference=dereference,
            filter=compile_filter(filter_pattern),
            depth=depth,
            stop_on_error=not keep_going,
            ignore_empty_folders=ignore_empty_folders,
            progress=sink,
        )
        try:
            with context:
                statistics = api.copy(source, destination, options)
        except OSError as e:
            if op_log:
                op_log.log_failure("copy", e)
            raise

        if op_log:
            op_log.log_operation("copy", source, destination, statistics=statistics)
        if not json_lines:
            ui.display_copy_summary(statistics, source, destination)

        if statistics.errors:
            console.print(f"\n[yellow]Completed with {statistics.errors} error(s).[/yellow]")
            raise typer.Exit(1)


@app.command("mv")
def move_command(
    source: Path = typer.Argument(..., help="File or directory to move."),
    destination: Path = typer.Argument(..., help="Destination path."),
    overwrite: bool = typer.Option(False, "--overwrite", "-f", help="Replace an existing destination."),
    update: bool = typer.Option(
        False, "--update", "-u", help="Replace an existing file only when the source is newer."
    ),
    merge: bool = typer.Option(False, "--merge", "-m", help="Merge into an existing directory."),
    json_lines: bool = typer.Option(False, "--json", help="Print progress events as JSON lines."),
    log_file: Optional[Path] = typer.Option(None, "--log-file", "-l", help="Path for log file output."),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable verbose output."),
) -> None:
    """
    Move a file or directory tree (mv), copying across devices.
    """
    configure_logging(verbose)

    with command_errors("Move"), operation_log(log_file, "mv") as op_log:
        options = OperationOptions(
            overwrite=overwrite,
            overwrite_newer=update,
            merge=merge,
            progress=JsonLinesSink(sys.stdout) if json_lines else None,
        )
        try:
            api.move(source, destination, options)
        except OSError as e:
            if op_log:
                op_log.log_failure("move", e)
            raise

        if op_log:
            op_log.log_operation("move", source, destination)
        if not json_lines:
            console.print(f"[green]Moved[/green] {source} -> {destination}")


@app.command("rm")
def remove_command(
    paths: List[Path] = typer.Argument(..., help="Files or directories to remove."),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Remove directories and their contents."),
    force: bool = typer.Option(False, "--force", "-f", help="Ignore paths that do not exist."),
    max_retries: int = typer.Option(
        0, "--max-retries", help="Retries for directories that are briefly locked."
    ),
    retry_delay: int = typer.Option(
        100, "--retry-delay", help="Base delay between retries in milliseconds."
    ),
    no_preserve_root: bool = typer.Option(
        False, "--no-preserve-root", help="Allow removing a filesystem root."
    ),
    json_lines: bool = typer.Option(False, "--json", help="Print progress events as JSON lines."),
    log_file: Optional[Path] = typer.Option(None, "--log-file", "-l", help="Path for log file output."),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable verbose output."),
) -> None:
    """
    Remove files or directory trees (rm -rf).
    """
    configure_logging(verbose)

    with command_errors("Removal"), operation_log(log_file, "rm") as op_log:
        options = OperationOptions(
            recursive=recursive,
            force=force,
            max_retries=max_retries,
            retry_delay=retry_delay,
            no_preserve_root=no_preserve_root,
            progress=JsonLinesSink(sys.stdout) if json_lines else None,
        )
        for path in paths:
            try:
                api.remove(path, options)
            except OSError as e:
                if op_log:
                    op_log.log_failure("remove", e)
                raise
            if op_log:
                op_log.log_operation("remove", path)
            if not json_lines:
                console.print(f"[green]Removed[/green] {path}")


@app.command("mkdirp")
def mkdirp_command(
    paths: List[str] = typer.Argument(..., help="Directories to create; {a,b} groups are expanded."),
    mode: str = typer.Option("777", "--mode", help="Octal mode for created directories."),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable verbose output."),
) -> None:
    """
    Create directories and any missing parents (mkdir -p).
    """
    configure_logging(verbose)

    with command_errors("Directory creation"):
        created = api.mkdirp(paths, OperationOptions(mode=mode))
        for path in created if isinstance(created, list) else [created]:
            console.print(str(path))


@app.command("ls")
def list_command(
    root: Path = typer.Argument(..., help="File or directory to list."),
    depth: int = typer.Option(-1, "--depth", "-d", help="Maximum depth (-1 for unlimited)."),
    filter_pattern: Optional[str] = typer.Option(
        None, "--filter", help="Only list paths matching this regular expression."
    ),
    dereference: bool = typer.Option(False, "--dereference", "-L", help="Follow symlinks."),
    ignore_access_errors: bool = typer.Option(
        False, "--ignore-access-errors", help="Skip unreadable or vanished entries."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable verbose output."),
) -> None:
    """
    List a tree breadth-first with item types and sizes.
    """
    configure_logging(verbose)

    with command_errors("Listing"):
        items = api.enumerate_tree(
            root,
            depth=depth,
            filter=compile_filter(filter_pattern),
            dereference=dereference,
            ignore_access_errors=ignore_access_errors,
        )
        ui.display_listing(items, root)


@app.command("emptydir")
def empty_dir_command(
    path: Path = typer.Argument(..., help="Directory to empty (created if missing)."),
    max_retries: int = typer.Option(
        0, "--max-retries", help="Retries for directories that are briefly locked."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable verbose output."),
) -> None:
    """
    Remove the contents of a directory but keep the directory.
    """
    configure_logging(verbose)

    with command_errors("Emptying"):
        api.empty_dir(path, max_retries=max_retries)
        console.print(f"[green]Emptied[/green] {path}")


if __name__ == "__main__":
    app()
