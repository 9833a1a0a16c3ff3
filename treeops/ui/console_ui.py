"""Rich console rendering for treeops.

This module provides the TreeConsole class used by the CLI to print copy
statistics, directory listings and error panels, and to bind a Rich progress
bar to the engines' progress events.

Example:
    from treeops.ui import TreeConsole

    ui = TreeConsole()
    progress, sink = ui.create_progress("Copying photos")
    with progress:
        stats = copy(src, dst, progress=sink)
    ui.display_copy_summary(stats, src, dst)
"""

from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    TaskProgressColumn,
    TextColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from treeops.models import CopyProgressEvent, CopyStatistics, TreeItem


class TreeConsole:
    """Rich-based output for tree operations.

    Args:
        console: Optional Rich Console instance for output. Pass a Console
            writing to a StringIO to capture output in tests.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    def display_copy_summary(self, statistics: CopyStatistics, source: Path, destination: Path) -> None:
        """Display the totals of a finished copy.

        Args:
            statistics: Totals returned by the copy engine.
            source: Copied path.
            destination: Destination path.
        """
        border = "green" if not statistics.errors else "yellow"
        self.console.print(Panel(f"{source} -> {destination}", title="Copy Summary", border_style=border))

        table = Table(show_header=True, header_style="bold")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")

        table.add_row("Items", f"{statistics.items:,}")
        table.add_row("Files copied", f"{statistics.files:,}")
        table.add_row("Directories", f"{statistics.directories:,}")
        table.add_row("Links", f"{statistics.links:,}")
        table.add_row("Size", self._format_size(statistics.bytes_copied))
        table.add_row("Overwritten", f"{statistics.overwritten:,}")
        table.add_row("Skipped (existing)", f"{statistics.skipped:,}")
        table.add_row("Errors", f"{statistics.errors:,}")
        table.add_row("Duration", self._format_duration(statistics.time))

        self.console.print(table)

        if statistics.error_list:
            self.display_errors([str(error) for error in statistics.error_list])

    def display_listing(self, items: Sequence[TreeItem], root: Path) -> None:
        """Display an enumerated tree as a table.

        Args:
            items: Items returned by enumerate_tree.
            root: Enumerated root; paths are shown relative to it.
        """
        if not items:
            self.console.print("[yellow]No items found.[/yellow]")
            return

        table = Table(title=str(root))
        table.add_column("Type", style="magenta", no_wrap=True)
        table.add_column("Path", style="white")
        table.add_column("Size", justify="right")

        for item in items:
            item_type = item.item_type
            relative = item.path.relative_to(root) if item.path != root else Path(".")
            size = self._format_size(item.stats.st_size) if item_type.is_copyable_data else ""
            table.add_row(item_type.value, self._truncate_name(str(relative)), size)

        self.console.print(table)
        self.console.print(f"{len(items):,} item(s)")

    def display_errors(self, errors: List[str]) -> None:
        """Display error messages in a separate panel.

        Args:
            errors: Error messages to display; at most ten are shown.
        """
        max_display = 10
        displayed_errors = errors[:max_display]
        remaining = len(errors) - max_display

        error_text = "\n".join(f"- {e}" for e in displayed_errors)
        if remaining > 0:
            error_text += f"\n\n... and {remaining} more errors"

        self.console.print(Panel(error_text, title=f"Errors ({len(errors)})", border_style="red"))

    def create_progress(self, description: str) -> Tuple[Progress, Callable[[Any], None]]:
        """Create a progress bar and a progress sink that drives it.

        Copy events carry the total item count and set the bar directly;
        move and remove events advance it by one with an open total.

        Returns:
            tuple[Progress, Callable]: The Progress instance, which MUST be
                used as a context manager, and the sink to pass as the
                ``progress`` option.

        Example:
            progress, sink = ui.create_progress("Copying")
            with progress:
                copy(src, dst, progress=sink)
        """
        progress = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeRemainingColumn(),
            console=self.console,
        )
        task_id = progress.add_task(description, total=None)

        def sink(event: Any) -> None:
            if isinstance(event, CopyProgressEvent):
                progress.update(task_id, completed=event.items_copied, total=event.total_items)
            else:
                progress.advance(task_id)
            if event.error is not None:
                progress.console.print(f"[red]{event.item}: {event.error}[/red]")

        return progress, sink

    def _format_size(self, bytes_size: int) -> str:
        """Convert bytes to human-readable format (e.g. "10.5 MB")."""
        if bytes_size < 1024:
            return f"{bytes_size} B"
        elif bytes_size < 1024 * 1024:
            return f"{bytes_size / 1024:.1f} KB"
        elif bytes_size < 1024 * 1024 * 1024:
            return f"{bytes_size / (1024 * 1024):.1f} MB"
        else:
            return f"{bytes_size / (1024 * 1024 * 1024):.1f} GB"

    def _format_duration(self, seconds: float) -> str:
        if seconds < 0:
            seconds = 0
        if seconds < 60:
            return f"{seconds:.2f}s"
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs}s"

    def _truncate_name(self, name: str, max_length: int = 80) -> str:
        if len(name) > max_length:
            return name[: max_length - 3] + "..."
        return name
