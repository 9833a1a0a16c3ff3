"""Tree enumeration for tree operations.

This module provides enumerate_tree, the traversal every engine builds on. It
yields (path, stats) pairs breadth-first, so a directory always appears before
anything inside it.

Example:
    >>> from treeops.scanning import enumerate_tree
    >>> for item in enumerate_tree(Path("/data"), OperationOptions(depth=0)):
    ...     print(item.path, item.item_type.value)
"""

import errno
import logging
import os
from collections import deque
from pathlib import Path
from typing import Deque, List, Optional, Set, Tuple, Union

from treeops.models import OperationOptions, TreeItem

logger = logging.getLogger("treeops")


def enumerate_tree(
    root: Union[str, Path],
    options: Optional[OperationOptions] = None,
) -> List[TreeItem]:
    """List ``root`` and everything beneath it.

    Entries are stat'ed with ``lstat`` so symlinks are reported as symlinks,
    or with ``stat`` when ``options.dereference`` is set. ``options.depth``
    bounds the descent: ``-1`` is unbounded, ``0`` lists the root and its
    immediate entries, ``n`` descends ``n`` further directory levels.

    When ``options.filter`` is set, entries failing it are dropped, but every
    directory on the way to a surviving entry is kept so the result can be
    materialized as a tree.

    Args:
        root: Path to enumerate.
        options: Traversal options; only ``dereference``, ``depth``,
            ``filter`` and ``ignore_access_errors`` are read.

    Returns:
        TreeItem list in breadth-first order, root first.

    Raises:
        OSError: FileNotFoundError if root does not exist, or any error from
            stat/listdir, unless ``ignore_access_errors`` is set.
    """
    options = options or OperationOptions()
    root = Path(root)
    stat_fn = os.stat if options.dereference else os.lstat

    items: List[TreeItem] = []
    pending: Deque[Tuple[Path, int]] = deque([(root, 0)])
    # Track visited directories by (device, inode) to detect symlink cycles
    visited_dirs: Set[Tuple[int, int]] = set()

    while pending:
        path, depth = pending.popleft()
        try:
            stats = stat_fn(path)
        except FileNotFoundError:
            if options.ignore_access_errors:
                logger.debug(f"Skipping vanished entry: {path}")
                continue
            raise

        item = TreeItem(path=path, stats=stats)
        items.append(item)

        if not item.is_dir:
            continue
        if options.depth != -1 and depth > options.depth:
            continue

        if options.dereference:
            dir_id = (stats.st_dev, stats.st_ino)
            if dir_id in visited_dirs:
                logger.debug(f"Skipping directory cycle: {path}")
                continue
            visited_dirs.add(dir_id)

        try:
            names = sorted(os.listdir(path))
        except OSError as e:
            if options.ignore_access_errors and e.errno in (errno.EACCES, errno.EPERM):
                logger.debug(f"Skipping unreadable directory: {path}")
                continue
            raise

        pending.extend((path / name, depth + 1) for name in names)

    if options.filter is None:
        return items
    return _apply_filter(root, items, options)


def _apply_filter(root: Path, items: List[TreeItem], options: OperationOptions) -> List[TreeItem]:
    """Keep matching items plus the directories leading to them."""
    keep: Set[Path] = set()
    for item in items:
        if not options.matches(item.path, item.stats):
            continue
        keep.add(item.path)
        parent = item.path.parent
        while parent not in keep and (parent == root or root in parent.parents):
            keep.add(parent)
            if parent == root:
                break
            parent = parent.parent

    return [item for item in items if item.path in keep]
