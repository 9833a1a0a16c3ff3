"""
Atomic move (``mv``) for treeops.

This module contains the AtomicMoveEngine class. A move is a single OS rename
whenever possible; when source and destination are on different devices it
falls back to a copy followed by a recursive removal of the source.
"""

import logging
import os
import stat
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Tuple, Union

from treeops.models import (
    ItemType,
    MoveProgressEvent,
    OperationOptions,
    TreeOperationError,
    annotate_error,
    error_code,
)
from treeops.orchestration.progress import RelaySink
from treeops.scanning import are_identical, is_ancestor_by_inode, is_descendant, is_root_path

from .copy_engine import TreeCopyEngine
from .directory_creator import DirectoryCreator
from .remove_engine import RetryingRemovalEngine

# Configure module logger
logger = logging.getLogger("treeops")

PathArg = Union[str, Path]


def is_case_only_rename(src: PathArg, dst: PathArg) -> bool:
    """
    Check whether ``src`` -> ``dst`` only changes the letter case of a name.

    Callers have already found both paths to be the same object. The rename
    is case-only when both live in the same directory, the basenames differ
    but compare equal case-folded, and the directory listing does not contain
    the destination spelling. The last condition is what tells a
    case-insensitive filesystem apart from two hard links whose names differ
    only in case.
    """
    src_abs = os.path.abspath(src)
    dst_abs = os.path.abspath(dst)
    parent = os.path.dirname(dst_abs)
    if os.path.dirname(src_abs) != parent:
        return False

    src_name = os.path.basename(src_abs)
    dst_name = os.path.basename(dst_abs)
    if src_name == dst_name or src_name.casefold() != dst_name.casefold():
        return False
    return dst_name not in os.listdir(parent)


class AtomicMoveEngine:
    """
    Moves files and directory trees.

    Conflicts at the destination are resolved in this order:

    1. ``merge`` with both sides directories: each child of the source is
       moved into the destination on its own, then the emptied source
       directory is removed.
    2. ``overwrite``: the destination is removed, then the source renamed.
    3. ``overwrite_newer`` for a non-directory: the destination is replaced
       only when the source is strictly newer.
    4. Otherwise an existing destination fails with ``EEXIST``.
    """

    def __init__(self, options: Optional[OperationOptions] = None) -> None:
        """
        Create an AtomicMoveEngine.

        Parameters:
            options (OperationOptions): Options read are ``merge``,
                ``overwrite``, ``overwrite_newer``, ``max_retries``,
                ``retry_delay`` and ``progress``.
        """
        self.options = options or OperationOptions()

    def move(self, src: PathArg, dst: PathArg) -> None:
        """
        Move ``src`` to ``dst``.

        Raises:
            TreeOperationError: ``EINVAL`` for a move onto itself, into its
                own subtree or onto one of its ancestors; ``EISDIR``/``ENOTDIR``
                on a type mismatch; ``EEXIST`` when the destination exists
                and no policy allows replacing it.
            OSError: Any error from rename, or from the copy/remove fallback
                after a cross-device rename failure.
        """
        src = Path(src)
        dst = Path(dst)
        logger.info(f"Moving {src} -> {dst}")

        src_stat = os.lstat(src)
        dst_stat = self._lstat(dst)

        if dst_stat is not None and are_identical(src_stat, dst_stat):
            if not is_case_only_rename(src, dst):
                raise TreeOperationError.create(
                    "EINVAL", "Source and destination must not be the same.", src, dst
                )
            logger.debug(f"Case-only rename: {src} -> {dst}")
            self._rename(src, dst, src_stat)
            return

        self._check_types(src, src_stat, dst, dst_stat)
        if stat.S_ISDIR(src_stat.st_mode) and (
            is_descendant(src, dst) or is_ancestor_by_inode(src, src_stat, dst)
        ):
            raise TreeOperationError.create(
                "EINVAL", f"Cannot move '{src}' to a subdirectory of itself, '{dst}'.", src, dst
            )
        if dst_stat is not None and is_descendant(dst, src):
            raise TreeOperationError.create(
                "EINVAL", f"Cannot replace '{dst}' with its own subdirectory '{src}'.", src, dst
            )

        parent = Path(os.path.abspath(dst)).parent
        if not is_root_path(parent):
            DirectoryCreator().mkdirp(parent)

        self._move_tree(src, src_stat, dst, dst_stat)

    @staticmethod
    def _lstat(path: Path) -> Optional[os.stat_result]:
        try:
            return os.lstat(path)
        except FileNotFoundError:
            return None

    @staticmethod
    def _check_types(
        src: Path, src_stat: os.stat_result, dst: Path, dst_stat: Optional[os.stat_result]
    ) -> None:
        """Reject replacing a directory with a non-directory and the reverse."""
        if dst_stat is None:
            return
        src_is_dir = stat.S_ISDIR(src_stat.st_mode)
        dst_is_dir = stat.S_ISDIR(dst_stat.st_mode)
        if src_is_dir and not dst_is_dir:
            raise TreeOperationError.create(
                "EISDIR", f"Cannot overwrite directory {src} with non-directory {dst}", src, dst
            )
        if not src_is_dir and dst_is_dir:
            raise TreeOperationError.create(
                "ENOTDIR", f"Cannot overwrite non-directory {src} with directory {dst}", src, dst
            )

    def _move_tree(
        self, src: Path, src_stat: os.stat_result, dst: Path, dst_stat: Optional[os.stat_result]
    ) -> None:
        """
        Resolve the destination conflict and rename, merging directories.

        A merge is walked with an explicit stack. A directory entry is pushed
        back marked as visited before its children, so it is popped (and
        removed) only after all of them were moved.
        """
        stack: List[Tuple[Path, Path, bool]] = [(src, dst, False)]
        stats = {src: (src_stat, dst_stat)}

        while stack:
            current_src, current_dst, visited = stack.pop()
            if visited:
                os.rmdir(current_src)
                logger.debug(f"Removed merged directory: {current_src}")
                continue

            if current_src in stats:
                current_src_stat, current_dst_stat = stats.pop(current_src)
            else:
                current_src_stat = os.lstat(current_src)
                current_dst_stat = self._lstat(current_dst)
                self._check_types(current_src, current_src_stat, current_dst, current_dst_stat)

            if current_dst_stat is None:
                self._rename(current_src, current_dst, current_src_stat)
                continue

            src_is_dir = stat.S_ISDIR(current_src_stat.st_mode)
            if self.options.merge and src_is_dir and stat.S_ISDIR(current_dst_stat.st_mode):
                stack.append((current_src, current_dst, True))
                for name in sorted(os.listdir(current_src), reverse=True):
                    stack.append((current_src / name, current_dst / name, False))
                continue

            if self.options.overwrite:
                self._remove_destination(current_dst)
                self._rename(current_src, current_dst, current_src_stat)
                continue

            if (
                self.options.overwrite_newer
                and not src_is_dir
                and current_src_stat.st_mtime_ns > current_dst_stat.st_mtime_ns
            ):
                self._remove_destination(current_dst)
                self._rename(current_src, current_dst, current_src_stat)
                continue

            raise TreeOperationError.create("EEXIST", "dest already exists.", current_dst)

    def _remove_destination(self, path: Path) -> None:
        options = replace(self.options, recursive=True, force=True, progress=None)
        RetryingRemovalEngine(options).remove(path)

    def _rename(self, src: Path, dst: Path, src_stat: os.stat_result) -> None:
        """Rename, falling back to copy and remove across devices."""
        item_type = ItemType.from_stat(src_stat)
        try:
            os.rename(src, dst)
        except OSError as err:
            if error_code(err) != "EXDEV":
                error = annotate_error(err, src)
                self._emit("move", item_type, src, error)
                raise error
            logger.info(f"Cross-device move, copying instead: {src} -> {dst}")
            self._move_across_devices(src, dst)
            return
        self._emit("move", item_type, src)
        logger.debug(f"Renamed: {src} -> {dst}")

    def _move_across_devices(self, src: Path, dst: Path) -> None:
        """Copy ``src`` to ``dst`` keeping timestamps, then remove ``src``."""
        progress = self.options.progress
        copy_options = OperationOptions(
            overwrite=self.options.overwrite,
            preserve_timestamps=True,
            error_on_exist=True,
            buffer_length=self.options.buffer_length,
            progress=RelaySink(progress, "move/copy") if progress is not None else None,
        )
        TreeCopyEngine(copy_options).copy(src, dst)

        remove_options = OperationOptions(
            recursive=True,
            force=True,
            max_retries=self.options.max_retries,
            retry_delay=self.options.retry_delay,
            progress=RelaySink(progress, "move/rm") if progress is not None else None,
        )
        RetryingRemovalEngine(remove_options).remove(src)

    def _emit(
        self, operation: str, item_type: ItemType, path: Path, error: Optional[OSError] = None
    ) -> None:
        if self.options.progress is None:
            return
        self.options.progress(
            MoveProgressEvent(operation=operation, type=item_type.value, item=str(path), error=error)
        )
