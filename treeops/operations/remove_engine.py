"""
Recursive removal (``rm -rf``) with transient-error retries.

This module contains the RetryingRemovalEngine class. Non-directories are
unlinked first, then directories are removed deepest-first. Directories that
fail with a transient lock error are queued and retried with a linear backoff
once the main pass is over.
"""

import logging
import os
import platform
import time
from pathlib import Path
from typing import List, Optional, Set, Union

from treeops.models import (
    OperationOptions,
    RemoveProgressEvent,
    TreeItem,
    TreeOperationError,
    annotate_error,
    error_code,
)
from treeops.models.errors import TRANSIENT_CODES
from treeops.scanning import enumerate_tree, is_root_path

from .directory_creator import DirectoryCreator

# Configure module logger
logger = logging.getLogger("treeops")

IS_WINDOWS = platform.system() == "Windows"

# Failures that put a directory on the retry queue during the main pass
QUEUE_CODES = frozenset({"ENOTEMPTY", "EEXIST", "EPERM", "EBUSY"})

# Failures retried while draining the queue
RETRY_CODES = TRANSIENT_CODES | {"EEXIST"}

PathArg = Union[str, Path]


class RetryingRemovalEngine:
    """
    Removes files and directory trees, retrying transient failures.

    Options read: ``recursive``, ``force``, ``max_retries``, ``retry_delay``
    (milliseconds), ``no_preserve_root`` and ``progress``.
    """

    def __init__(self, options: Optional[OperationOptions] = None) -> None:
        """
        Create a RetryingRemovalEngine.

        Parameters:
            options (OperationOptions): Removal options; defaults remove only
                files and refuse directories.
        """
        self.options = options or OperationOptions()

    def remove(self, path: PathArg) -> None:
        """
        Remove ``path``.

        Parameters:
            path: File, symlink or directory to remove.

        Raises:
            TreeOperationError: ``EPERM`` when ``path`` is a filesystem root and
                ``no_preserve_root`` is not set; ``EISDIR`` when ``path`` is a
                directory and ``recursive`` is not set.
            OSError: ``ENOENT`` when ``path`` does not exist and ``force`` is not
                set; the last error of a directory whose retries ran out; any
                non-transient error.
        """
        path = Path(path)
        if is_root_path(path) and not self.options.no_preserve_root:
            raise TreeOperationError.create(
                "EPERM",
                f"To remove '{path}' the 'no_preserve_root' option must be set.",
                path,
            )

        try:
            stats = os.lstat(path)
        except FileNotFoundError:
            if self.options.force:
                logger.debug(f"Nothing to remove: {path}")
                return
            raise

        item = TreeItem(path=path, stats=stats)
        if not item.is_dir:
            self._unlink(item)
            return

        if not self.options.recursive:
            raise TreeOperationError.create(
                "EISDIR", f"Path is a directory: rm returned EISDIR (is a directory) '{path}'", path
            )

        logger.info(f"Removing tree: {path}")
        self._remove_tree(path, keep_root=False)

    def empty_dir(self, path: PathArg) -> None:
        """
        Remove everything inside ``path`` but keep the directory itself.

        A missing directory is created instead.

        Raises:
            NotADirectoryError: If ``path`` exists and is not a directory.
        """
        path = Path(path)
        try:
            os.listdir(path)
        except FileNotFoundError:
            DirectoryCreator().mkdirp(path)
            return

        logger.info(f"Emptying directory: {path}")
        self._remove_tree(path, keep_root=True)

    def _remove_tree(self, path: Path, keep_root: bool) -> None:
        """
        Remove a directory tree, optionally keeping its root.

        Parameters:
            path (Path): Directory to remove.
            keep_root (bool): Leave ``path`` itself in place (empty_dir).
        """
        items = enumerate_tree(path)
        if keep_root:
            items = items[1:]
        if not items:
            return

        non_dirs = [item for item in items if not item.is_dir]
        pending = [item for item in items if item.is_dir]

        for item in non_dirs:
            self._unlink(item)

        # Enumeration is breadth-first, so popping from the end removes the
        # deepest directories first
        retry_queue: List[TreeItem] = []
        made_writable: Set[Path] = set()
        while pending:
            item = pending.pop()
            try:
                os.rmdir(item.path)
                self._emit(item)
            except OSError as err:
                self._emit(item, err)
                code = error_code(err)
                if code == "ENOENT":
                    if item in retry_queue:
                        retry_queue.remove(item)
                    continue
                if IS_WINDOWS and isinstance(err, PermissionError) and item.path not in made_writable:
                    # Read-only attribute blocks rmdir on Windows
                    os.chmod(item.path, 0o666)
                    made_writable.add(item.path)
                    pending.append(item)
                    continue
                if code in QUEUE_CODES:
                    if item not in retry_queue:
                        logger.debug(f"Queued for retry ({code}): {item.path}")
                        retry_queue.append(item)
                    continue
                raise annotate_error(err, item.path)

        if retry_queue:
            self._drain_retry_queue(retry_queue)

    def _drain_retry_queue(self, retry_queue: List[TreeItem]) -> None:
        """
        Retry queued directory removals, deepest first.

        Each directory gets one attempt plus up to ``max_retries`` retries,
        sleeping ``retry_delay * attempt`` milliseconds before each retry.

        Raises:
            OSError: The last error of a directory whose retries ran out, or
                a non-transient error.
        """
        for item in retry_queue:
            attempt = 0
            while True:
                try:
                    os.rmdir(item.path)
                    self._emit(item)
                    break
                except OSError as err:
                    self._emit(item, err)
                    code = error_code(err)
                    if code == "ENOENT":
                        break
                    if code in RETRY_CODES and attempt < self.options.max_retries:
                        attempt += 1
                        delay = self.options.retry_delay * attempt / 1000
                        logger.warning(
                            f"Retry {attempt}/{self.options.max_retries} in {delay:.2f}s "
                            f"removing {item.path}: {err}"
                        )
                        time.sleep(delay)
                        continue
                    raise annotate_error(err, item.path)

    def _unlink(self, item: TreeItem) -> None:
        """Unlink a non-directory, clearing the read-only bit on Windows."""
        try:
            try:
                os.unlink(item.path)
            except PermissionError:
                if not IS_WINDOWS:
                    raise
                os.chmod(item.path, 0o666)
                os.unlink(item.path)
        except FileNotFoundError:
            logger.debug(f"Already removed: {item.path}")
        except OSError as err:
            self._emit(item, err)
            raise annotate_error(err, item.path)
        self._emit(item)

    def _emit(self, item: TreeItem, error: Optional[BaseException] = None) -> None:
        if self.options.progress is None:
            return
        self.options.progress(
            RemoveProgressEvent(type=item.item_type.value, item=str(item.path), error=error)
        )
