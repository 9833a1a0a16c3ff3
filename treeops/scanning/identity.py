"""Identity checks between filesystem paths.

Copy and move refuse to operate on a source that is the destination itself,
or on a directory whose destination lies inside it. Two checks are combined:
path-segment comparison catches the obvious nesting, and an inode walk up the
destination's parents catches nesting hidden behind symlinks or mounts.
"""

import os
from pathlib import Path
from typing import List, Optional, Union

PathArg = Union[str, Path]


def are_identical(stat_a: Optional[os.stat_result], stat_b: Optional[os.stat_result]) -> bool:
    """True if both stat results name the same object (device and inode)."""
    if stat_a is None or stat_b is None:
        return False
    if not stat_a.st_ino or not stat_b.st_ino:
        return False
    return stat_a.st_ino == stat_b.st_ino and stat_a.st_dev == stat_b.st_dev


def _segments(path: PathArg) -> List[str]:
    return list(Path(os.path.normcase(os.path.abspath(path))).parts)


def is_descendant(maybe_ancestor: PathArg, maybe_child: PathArg) -> bool:
    """True if ``maybe_child`` lies strictly below ``maybe_ancestor``.

    Only the absolute, normalized path strings are compared; symlinks are
    not resolved.
    """
    ancestor = _segments(maybe_ancestor)
    child = _segments(maybe_child)
    return len(ancestor) < len(child) and child[: len(ancestor)] == ancestor


def is_root_path(path: PathArg) -> bool:
    """True if ``path`` is a filesystem root (``/``, ``C:\\``)."""
    absolute = os.path.abspath(path)
    return os.path.dirname(absolute) == absolute


def is_ancestor_by_inode(src: PathArg, src_stat: os.stat_result, dst: PathArg) -> bool:
    """Walk ``dst``'s parents looking for the object ``src_stat`` describes.

    Starts at the deepest parent of ``dst`` and stops at the filesystem root
    or where the walk reaches ``src``'s own parent. Parents that do not exist
    yet end the walk.

    Returns:
        True if one of ``dst``'s parents is the same object as ``src``.

    Raises:
        OSError: Any stat failure other than the parent not existing.
    """
    src_parent = os.path.abspath(os.path.dirname(os.path.abspath(src)))
    current = os.path.abspath(dst)
    while True:
        dst_parent = os.path.dirname(current)
        if dst_parent == src_parent or is_root_path(dst_parent) or dst_parent == current:
            return False
        try:
            parent_stat = os.stat(dst_parent)
        except FileNotFoundError:
            return False
        if are_identical(src_stat, parent_stat):
            return True
        current = dst_parent
