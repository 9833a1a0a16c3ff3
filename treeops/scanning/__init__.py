"""Tree scanning package for treeops.

This package provides the read-only building blocks of the tree engines:

- enumerate_tree: Breadth-first traversal producing TreeItem lists, with
  depth bounds, filters and optional symlink dereferencing.
- are_identical, is_descendant, is_ancestor_by_inode: Identity checks used to
  reject self-copy, self-move and copy/move into a directory's own subtree.

Example:
    >>> from treeops.scanning import enumerate_tree, is_descendant
    >>> items = enumerate_tree(Path("/data"))
    >>> is_descendant("/data", "/data/sub")
    True
"""

from .enumerator import enumerate_tree
from .identity import are_identical, is_ancestor_by_inode, is_descendant, is_root_path

__all__ = [
    "enumerate_tree",
    "are_identical",
    "is_descendant",
    "is_ancestor_by_inode",
    "is_root_path",
]
