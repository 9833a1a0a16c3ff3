"""
Operations package for treeops.

This package provides the tree engines:
- DirectoryCreator: Race-safe ``mkdir -p`` with brace expansion
- TreeCopyEngine: ``cp -r`` with conflict policies and per-item errors
- RetryingRemovalEngine: ``rm -rf`` with transient-error retries, ``empty_dir``
- AtomicMoveEngine: ``mv`` with merge and a cross-device copy fallback
"""

from .copy_engine import TreeCopyEngine
from .directory_creator import DirectoryCreator, expand_braces, umask_override
from .move_engine import AtomicMoveEngine, is_case_only_rename
from .remove_engine import RetryingRemovalEngine

__all__ = [
    "DirectoryCreator",
    "expand_braces",
    "umask_override",
    "TreeCopyEngine",
    "RetryingRemovalEngine",
    "AtomicMoveEngine",
    "is_case_only_rename",
]
