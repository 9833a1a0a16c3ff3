"""
Recursive copy (``cp -r``) for treeops.

This module contains the TreeCopyEngine class for copying a file or a
directory tree item by item, with conflict policies, permission and timestamp
preservation, symlink re-creation and per-item error handling.
"""

import logging
import os
import stat
import time
from collections import deque
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Deque, List, Optional, Set, Tuple, Union

from treeops.models import (
    CopyProgressEvent,
    CopyStatistics,
    ItemType,
    OperationOptions,
    TreeItem,
    TreeOperationError,
    annotate_error,
)
from treeops.scanning import are_identical, enumerate_tree, is_ancestor_by_inode, is_descendant

from .directory_creator import DirectoryCreator

# Configure module logger
logger = logging.getLogger("treeops")

PathArg = Union[str, Path]

# Owner bits a directory needs while its children are being written
OWNER_RWX = stat.S_IRWXU


@dataclass
class _CopyRun:
    """State of a single copy call."""
    src: Path
    dst: Path
    statistics: CopyStatistics
    started: float
    processed: int = 0
    deferred_modes: List[Tuple[Path, int]] = field(default_factory=list)
    occupied_dirs: Set[Path] = field(default_factory=set)  # Dirs with a non-directory below


class TreeCopyEngine:
    """
    Copies files and directory trees.

    Items are processed one at a time in enumeration order, which places every
    directory before its contents. Conflicts with existing destination files
    are resolved by the options, checked in this order: ``overwrite_newer``
    (replace only when the source is strictly newer), then ``overwrite``
    (always replace); an item that is not replaced fails with ``EEXIST`` when
    ``error_on_exist`` is set and is skipped otherwise.
    """

    def __init__(self, options: Optional[OperationOptions] = None) -> None:
        """
        Create a TreeCopyEngine.

        Parameters:
            options (OperationOptions): Copy options. Defaults refuse to
                replace existing files and stop at the first error.
        """
        self.options = options or OperationOptions()

    def copy(self, src: PathArg, dst: PathArg) -> CopyStatistics:
        """
        Copy ``src`` to ``dst``.

        Parameters:
            src: File, symlink or directory to copy.
            dst: Destination path; its parent directories are created.

        Returns:
            CopyStatistics: Totals for the copy.

        Raises:
            TreeOperationError: ``EINVAL`` when src and dst are the same object
                or dst lies inside src; ``EISDIR``/``ENOTDIR`` on a
                directory/non-directory mismatch. These abort regardless of
                ``stop_on_error``.
            OSError: The first per-item error when ``stop_on_error`` is set.
        """
        src = Path(src)
        dst = Path(dst)
        run = _CopyRun(src=src, dst=dst, statistics=CopyStatistics(), started=time.monotonic())

        src_stat = self._check_paths(src, dst)
        if is_ancestor_by_inode(src, src_stat, dst):
            raise TreeOperationError.create(
                "EINVAL", f"Cannot copy '{src}' to a subdirectory of self '{dst}'", src, dst
            )
        DirectoryCreator().mkdirp(dst.parent)

        items = self._load_items(src, run)
        logger.info(
            f"Copying {run.statistics.items} item(s) ({run.statistics.size} bytes): {src} -> {dst}"
        )

        queue: Deque[TreeItem] = deque(items)
        while queue:
            item = queue.popleft()
            error: Optional[OSError] = None
            try:
                self._copy_item(item, run)
            except OSError as err:
                error = annotate_error(err, item.path)
            run.processed += 1
            self._emit(item, run, error)
            if error is not None:
                self._on_error(error, run)

        self._restore_directory_modes(run)

        run.statistics.time = time.monotonic() - run.started
        logger.info(
            f"Copied {run.statistics.files} file(s), {run.statistics.directories} dir(s), "
            f"{run.statistics.links} link(s) in {run.statistics.time:.2f}s"
        )
        return run.statistics

    def _stat(self, path: Path) -> os.stat_result:
        return os.stat(path) if self.options.dereference else os.lstat(path)

    def _check_paths(self, src: Path, dst: Path) -> os.stat_result:
        """
        Reject requests that can never succeed.

        Returns:
            os.stat_result: Stat of ``src``.
        """
        src_stat = self._stat(src)
        try:
            dst_stat: Optional[os.stat_result] = self._stat(dst)
        except FileNotFoundError:
            dst_stat = None

        src_is_dir = stat.S_ISDIR(src_stat.st_mode)
        if dst_stat is not None:
            if are_identical(src_stat, dst_stat):
                raise TreeOperationError.create(
                    "EINVAL", "Source and destination must not be the same.", src, dst
                )
            dst_is_dir = stat.S_ISDIR(dst_stat.st_mode)
            if src_is_dir and not dst_is_dir:
                raise TreeOperationError.create(
                    "EISDIR", f"Cannot overwrite directory {src} with non-directory {dst}", src, dst
                )
            if not src_is_dir and dst_is_dir:
                raise TreeOperationError.create(
                    "ENOTDIR", f"Cannot overwrite non-directory {src} with directory {dst}", src, dst
                )

        if src_is_dir and is_descendant(src, dst):
            raise TreeOperationError.create(
                "EINVAL", f"Cannot copy '{src}' to a subdirectory of self '{dst}'", src, dst
            )
        return src_stat

    def _load_items(self, src: Path, run: _CopyRun) -> List[TreeItem]:
        """
        Enumerate the source and count items and copyable bytes.

        Also records every directory with a non-directory item somewhere
        below it, which ``ignore_empty_folders`` consults.
        """
        items = enumerate_tree(src, self.options)
        if items and items[0].is_dir:
            # Drop items whose directory was filtered out
            dirs = {item.path for item in items if item.is_dir}
            items = [item for item in items if item.is_dir or item.path.parent in dirs]

            for item in items:
                if item.is_dir:
                    continue
                parent = item.path.parent
                while parent not in run.occupied_dirs:
                    run.occupied_dirs.add(parent)
                    if parent == src:
                        break
                    parent = parent.parent

        statistics = run.statistics
        statistics.items = len(items)
        statistics.size = sum(
            item.stats.st_size for item in items if item.item_type.is_copyable_data
        )
        return items

    def _target_path(self, path: Path, run: _CopyRun) -> Path:
        return run.dst / path.relative_to(run.src)

    def _copy_item(self, item: TreeItem, run: _CopyRun) -> None:
        """Dispatch one item on its type."""
        item_type = item.item_type
        target = self._target_path(item.path, run)

        if item_type is ItemType.DIRECTORY:
            self._on_dir(item, target, run)
        elif item_type.is_copyable_data:
            self._on_file(item, target, run)
        elif item_type is ItemType.SYMBOLIC_LINK:
            self._on_link(item, target, run)
        else:
            raise TreeOperationError.create(
                "EINVAL", f"cannot copy an {item_type.value} file type: {item.path}", item.path
            )

    def _on_dir(self, item: TreeItem, target: Path, run: _CopyRun) -> None:
        """
        Create the destination directory with the source's mode.

        mkdir applies the umask on some platforms, so the mode is set again
        explicitly. A mode without owner rwx would block writing the children,
        so it is applied once the copy is over.
        """
        if self.options.ignore_empty_folders and item.path not in run.occupied_dirs:
            logger.debug(f"Skipped empty directory: {item.path}")
            return

        mode = stat.S_IMODE(item.stats.st_mode)
        working_mode = mode | OWNER_RWX
        DirectoryCreator(replace(self.options, mode=working_mode)).mkdirp(target)
        os.chmod(target, working_mode)
        if working_mode != mode:
            run.deferred_modes.append((target, mode))
        run.statistics.directories += 1
        logger.debug(f"Created directory: {target}")

    def _on_file(self, item: TreeItem, target: Path, run: _CopyRun) -> None:
        """Copy a file or device, applying the conflict policy if target exists."""
        if not self._exists(target):
            self._copy_file(item, target, run)
            return

        if self.options.overwrite_newer:
            target_stat = os.stat(target)
            if item.stats.st_mtime_ns > target_stat.st_mtime_ns:
                self._replace_file(item, target, run)
            else:
                self._on_conflict(target, run)
            return

        if self.options.overwrite:
            self._replace_file(item, target, run)
            return

        self._on_conflict(target, run)

    def _exists(self, path: Path) -> bool:
        try:
            self._stat(path)
        except FileNotFoundError:
            return False
        return True

    def _on_conflict(self, target: Path, run: _CopyRun) -> None:
        """Handle a destination item that is not replaced."""
        if self.options.error_on_exist:
            raise TreeOperationError.create("EEXIST", f"{target} already exists", target)
        run.statistics.skipped += 1
        logger.debug(f"Skipped existing item: {target}")

    def _replace_file(self, item: TreeItem, target: Path, run: _CopyRun) -> None:
        os.unlink(target)
        run.statistics.overwritten += 1
        self._copy_file(item, target, run)

    def _copy_file(self, item: TreeItem, target: Path, run: _CopyRun) -> None:
        """
        Stream the source into the target through a fixed-size buffer.

        With ``preserve_timestamps``, atime is read from a fresh stat of the
        source because reading the file has just changed it.
        """
        mode = stat.S_IMODE(item.stats.st_mode)
        flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC | getattr(os, "O_BINARY", 0)
        written = 0

        with open(item.path, "rb") as source:
            fd = os.open(target, flags, mode)
            with os.fdopen(fd, "wb") as destination:
                while True:
                    chunk = source.read(self.options.buffer_length)
                    if not chunk:
                        break
                    destination.write(chunk)
                    written += len(chunk)

        run.statistics.files += 1
        run.statistics.bytes_copied += written

        if self.options.preserve_timestamps:
            # utime needs a writable target on some platforms
            if not mode & stat.S_IWUSR:
                os.chmod(target, mode | stat.S_IWUSR)
            current = self._stat(item.path)
            os.utime(target, ns=(current.st_atime_ns, item.stats.st_mtime_ns))

        os.chmod(target, mode)
        logger.debug(f"Copied file: {item.path} -> {target}")

    def _resolve_link(self, link: Path, link_target: str) -> str:
        if self.options.dereference:
            return os.path.abspath(os.path.join(os.path.dirname(link), link_target))
        return link_target

    def _on_link(self, item: TreeItem, target: Path, run: _CopyRun) -> None:
        """Re-create a symlink at the destination."""
        link_target = self._resolve_link(item.path, os.readlink(item.path))
        if link_target == str(target):
            return

        if os.path.lexists(target):
            if os.path.islink(target):
                existing = self._resolve_link(target, os.readlink(target))
                if existing == link_target:
                    return
                os.unlink(target)
                run.statistics.overwritten += 1
            elif self.options.overwrite:
                os.unlink(target)
                run.statistics.overwritten += 1
            else:
                self._on_conflict(target, run)
                return

        os.symlink(link_target, target, target_is_directory=os.path.isdir(item.path))
        run.statistics.links += 1
        logger.debug(f"Created symlink: {target} -> {link_target}")

    def _restore_directory_modes(self, run: _CopyRun) -> None:
        """Apply directory modes that were relaxed during the copy, deepest first."""
        for target, mode in reversed(run.deferred_modes):
            try:
                os.chmod(target, mode)
            except OSError as err:
                self._on_error(annotate_error(err, target), run)

    def _emit(self, item: TreeItem, run: _CopyRun, error: Optional[OSError]) -> None:
        if self.options.progress is None:
            return
        statistics = run.statistics
        elapsed = time.monotonic() - run.started
        eta = 0.0
        if statistics.bytes_copied:
            remaining = max(statistics.size - statistics.bytes_copied, 0)
            eta = remaining * (elapsed / statistics.bytes_copied)
        self.options.progress(
            CopyProgressEvent(
                total_items=statistics.items,
                items_copied=run.processed,
                type=item.item_type.value,
                item=str(item.path),
                size=item.stats.st_size,
                eta=eta,
                time_taken=elapsed,
                error=error,
            )
        )

    def _on_error(self, error: OSError, run: _CopyRun) -> None:
        """
        Count an item error, then raise it or record it.

        Errors are recorded to the ``errors`` option (a list, or a text stream
        receiving one line per error) or, when that is unset, to
        ``CopyStatistics.error_list``.
        """
        run.statistics.errors += 1
        if self.options.stop_on_error:
            raise error

        logger.warning(f"Copy error (continuing): {error}")
        sink = self.options.errors
        if sink is None:
            run.statistics.error_list.append(error)
        elif isinstance(sink, list):
            sink.append(error)
        else:
            sink.write(f"{error}\n")
