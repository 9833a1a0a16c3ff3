"""OperationLogger for writing tree operations to a structured log file.

This module provides the OperationLogger class that records each operation
run by the CLI in a sectioned, human-readable report: a header, one section
per operation with its statistics and errors, and a closing summary.
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from treeops.models import CopyStatistics


class OperationLogger:
    """Logger for tree operations with structured output format.

    Usage:
        with OperationLogger(log_path) as op_log:
            op_log.log_header("cp")
            stats = copy(src, dst)
            op_log.log_operation("copy", src, dst, statistics=stats)
            op_log.log_summary()

    Attributes:
        SEPARATOR: The 65-character separator line used between sections.
    """

    SEPARATOR = "=" * 65

    def __init__(self, log_file_path: Optional[Path] = None) -> None:
        """Initialize the OperationLogger.

        Args:
            log_file_path: Optional path for the log file. If not provided,
                generates a timestamped filename in the current directory.

        Raises:
            OSError: If the log file's directory is missing or not writable.
        """
        self._start_timestamp = datetime.now()
        self._file_handle: Optional[TextIO] = None
        self._operation_count = 0
        self._errors: List[str] = []

        if log_file_path is None:
            timestamp_str = self._start_timestamp.strftime("%Y-%m-%d_%H-%M-%S")
            self._log_file_path = Path.cwd() / f"treeops_{timestamp_str}.log"
        else:
            self._log_file_path = Path(log_file_path)

        self._validate_path()

    def _validate_path(self) -> None:
        """Check that the log file can be created.

        Raises:
            OSError: If the parent directory doesn't exist or is not writable.
        """
        parent = self._log_file_path.parent
        if not parent.exists():
            raise OSError(f"Parent directory does not exist: {parent}")
        if not parent.is_dir():
            raise OSError(f"Parent path is not a directory: {parent}")
        try:
            probe = parent / f".treeops_probe_{id(self)}"
            probe.touch()
            probe.unlink()
        except PermissionError:
            raise OSError(f"Permission denied: cannot write to {parent}")

    def __enter__(self) -> "OperationLogger":
        try:
            self._file_handle = open(self._log_file_path, "w", encoding="utf-8")
        except OSError as e:
            raise OSError(f"Cannot open log file for writing: {e}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._file_handle is not None:
            try:
                self._file_handle.close()
            except OSError as e:
                print(f"Warning: Error closing log file: {e}", file=sys.stderr)
            finally:
                self._file_handle = None

    def get_log_path(self) -> Path:
        """Get the path to the log file."""
        return self._log_file_path

    def log_header(self, command: str) -> None:
        """Write the header section.

        Args:
            command: Name of the CLI command being run.
        """
        self._write_separator()
        self._write_line("treeops - Operation Log")
        self._write_separator()
        self._write_line(f"Timestamp: {self._format_timestamp(self._start_timestamp)}")
        self._write_line(f"Command: {command}")
        self._write_line("")

    def log_operation(
        self,
        operation: str,
        source: Path,
        destination: Optional[Path] = None,
        statistics: Optional[CopyStatistics] = None,
        errors: Sequence[BaseException] = (),
    ) -> None:
        """Write one operation entry.

        Args:
            operation: Operation label (``copy``, ``move``, ``remove``, ...).
            source: Path the operation was applied to.
            destination: Destination path for copy and move.
            statistics: Copy totals, when the operation produced them.
            errors: Errors recorded while the operation continued.
        """
        self._operation_count += 1
        now = datetime.now()

        target = f"{source} -> {destination}" if destination is not None else f"{source}"
        self._write_line(f"[{self._format_timestamp(now)}] {operation}: {target}")

        if statistics is not None:
            self._write_line(f"Items: {statistics.items:,}", indent=2)
            self._write_line(f"Files copied: {statistics.files:,}", indent=2)
            self._write_line(f"Directories created: {statistics.directories:,}", indent=2)
            self._write_line(f"Links created: {statistics.links:,}", indent=2)
            self._write_line(f"Bytes copied: {statistics.bytes_copied:,}", indent=2)
            self._write_line(f"Overwritten: {statistics.overwritten}", indent=2)
            self._write_line(f"Skipped (existing): {statistics.skipped}", indent=2)
            errors = list(errors) + list(statistics.error_list)

        if errors:
            self._write_line("Errors:", indent=2)
            for error in errors:
                self._errors.append(str(error))
                self._write_line(f"- {error}", indent=4)
        self._write_line("")

    def log_failure(self, operation: str, error: BaseException) -> None:
        """Write an operation that aborted with an error."""
        self._operation_count += 1
        self._errors.append(str(error))
        now = datetime.now()
        self._write_line(f"[{self._format_timestamp(now)}] {operation} FAILED: {error}")
        self._write_line("")

    def log_summary(self) -> None:
        """Write the summary section with totals and duration."""
        duration = (datetime.now() - self._start_timestamp).total_seconds()
        self._write_separator()
        self._write_line("SUMMARY")
        self._write_separator()
        self._write_line(f"Total operations: {self._operation_count}")
        if self._errors:
            self._write_line(f"Total errors: {len(self._errors)}")
        self._write_line(f"Duration: {self._format_duration(duration)}")
        self._write_line("")
        self._write_line(f"Log file: {self._log_file_path}")
        self._write_separator()

    def _format_duration(self, seconds: float) -> str:
        """Format a duration like "45s", "5m 23s" or "1h 5m 30s"."""
        total_seconds = int(seconds)
        if total_seconds < 60:
            return f"{total_seconds}s"

        hours = total_seconds // 3600
        minutes = (total_seconds % 3600) // 60
        secs = total_seconds % 60
        if hours > 0:
            return f"{hours}h {minutes}m {secs}s"
        return f"{minutes}m {secs}s"

    def _format_timestamp(self, dt: datetime) -> str:
        return dt.strftime("%Y-%m-%d %H:%M:%S")

    def _write_separator(self) -> None:
        self._write_line(self.SEPARATOR)

    def _write_line(self, text: str, indent: int = 0) -> None:
        if self._file_handle is None:
            print(f"Warning: Attempted to write to closed log file: {text}", file=sys.stderr)
            return
        try:
            self._file_handle.write(" " * indent + text + "\n")
        except OSError as e:
            print(f"Warning: Error writing to log file: {e}", file=sys.stderr)
