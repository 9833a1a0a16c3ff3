"""
Core data models for tree operations.

This module contains the following dataclasses:
- TreeItem: A path found by a traversal together with its stat result
- OperationOptions: Immutable per-call configuration shared by every engine
- CopyStatistics: Mutable accumulator returned by a copy
- OperationResult: Tagged success/error value produced by the adapters
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Generic, List, Optional, TextIO, TypeVar, Union

from .item_type import ItemType

T = TypeVar("T")

FilterFunction = Callable[[Path, os.stat_result], bool]
ItemFilter = Union[FilterFunction, re.Pattern]
ProgressSink = Callable[[Any], None]

DEFAULT_BUFFER_LENGTH = 64 * 1024


@dataclass
class TreeItem:
    """A filesystem entry reported by a traversal."""
    path: Path                        # Path of the entry (descendant of the root)
    stats: os.stat_result             # lstat or stat result, depending on dereference

    @property
    def item_type(self) -> ItemType:
        return ItemType.from_stat(self.stats)

    @property
    def is_dir(self) -> bool:
        return self.item_type is ItemType.DIRECTORY


@dataclass(frozen=True)
class OperationOptions:
    """Configuration recognized by copy, move, remove and mkdirp.

    Instances are immutable; derive variants with ``dataclasses.replace``.
    Each engine reads only the fields relevant to it.
    """
    overwrite: bool = False               # Replace existing destination items
    overwrite_newer: bool = False         # Replace only when the source is newer
    dereference: bool = False             # Follow symlinks while traversing
    preserve_timestamps: bool = False     # Copy atime/mtime to copied files
    filter: Optional[ItemFilter] = None   # Callable(path, stats) or compiled regex
    depth: int = -1                       # -1 means unbounded
    error_on_exist: bool = True           # EEXIST when a conflict is not replaced
    stop_on_error: bool = True            # Abort on the first per-item error
    recursive: bool = False               # Allow removing directories
    force: bool = False                   # Missing root is not an error (rm)
    max_retries: int = 0                  # Retry budget for transient rm errors
    retry_delay: int = 100                # Milliseconds, multiplied by attempt number
    merge: bool = False                   # Move: merge into an existing directory
    mode: int = 0o777                     # Mode for directories created by mkdirp
    buffer_length: int = DEFAULT_BUFFER_LENGTH  # Copy buffer in bytes
    progress: Optional[ProgressSink] = None     # Receives one event per item
    errors: Optional[Union[List[OSError], TextIO]] = None  # Error sink when not stopping
    ignore_empty_folders: bool = False    # Copy: skip directories with nothing to copy
    ignore_access_errors: bool = False    # Enumerate: skip vanished/unreadable entries
    no_preserve_root: bool = False        # rm: allow removing a filesystem root

    def __post_init__(self) -> None:
        """Validate option values.

        Raises:
            ValueError: If any value is out of range or of the wrong kind.
        """
        if isinstance(self.mode, str):
            try:
                object.__setattr__(self, "mode", int(self.mode, 8))
            except ValueError:
                raise ValueError(f"mode must be an octal string, got {self.mode!r}")
        if not 0 <= self.mode <= 0o7777:
            raise ValueError(f"mode must be between 0 and 0o7777, got {oct(self.mode)}")
        if self.depth < -1:
            raise ValueError(f"depth must be -1 or greater, got {self.depth}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must not be negative, got {self.max_retries}")
        if self.retry_delay < 0:
            raise ValueError(f"retry_delay must not be negative, got {self.retry_delay}")
        if self.buffer_length <= 0:
            raise ValueError(f"buffer_length must be positive, got {self.buffer_length}")
        if self.filter is not None and not (
            callable(self.filter) or isinstance(self.filter, re.Pattern)
        ):
            raise ValueError("filter must be a callable or a compiled regular expression")

    def matches(self, path: Path, stats: os.stat_result) -> bool:
        """Apply the configured filter to one entry (True when no filter is set)."""
        if self.filter is None:
            return True
        if isinstance(self.filter, re.Pattern):
            return self.filter.search(str(path)) is not None
        return bool(self.filter(path, stats))


@dataclass
class CopyStatistics:
    """Tracks the totals of one copy operation."""
    items: int = 0                    # Items to copy, counted up front
    size: int = 0                     # Copyable bytes, counted up front
    files: int = 0                    # Files (and devices) copied
    directories: int = 0              # Directories created
    links: int = 0                    # Symlinks created
    bytes_copied: int = 0             # Bytes written to destination files
    overwritten: int = 0              # Destination items replaced
    skipped: int = 0                  # Conflicts left untouched
    errors: int = 0                   # Errors encountered
    time: float = 0.0                 # Elapsed seconds
    error_list: List[OSError] = field(default_factory=list)  # Errors kept in memory

    @property
    def processed(self) -> int:
        """Items written to the destination so far."""
        return self.files + self.directories + self.links


@dataclass
class OperationResult(Generic[T]):
    """Success value or error of an operation, for callers that avoid exceptions."""
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Optional[T]:
        """Return the value, raising the stored error if there is one."""
        if self.error is not None:
            raise self.error
        return self.value
