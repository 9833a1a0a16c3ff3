"""treeops - Cross-platform tree operations.

Recursive copy, move, removal and directory creation with conflict policies,
cross-device fallbacks and transient-error retries, usable as a library or
through the ``treeops`` command.
"""

__version__ = "1.0.0"

from .api import (
    capture,
    copy,
    copy_async,
    empty_dir,
    empty_dir_async,
    enumerate_tree,
    enumerate_tree_async,
    mkdirp,
    mkdirp_async,
    move,
    move_async,
    remove,
    remove_async,
    submit,
)
from .models import (
    CopyProgressEvent,
    CopyStatistics,
    ItemType,
    MoveProgressEvent,
    OperationOptions,
    OperationResult,
    RemoveProgressEvent,
    TreeItem,
    TreeOperationError,
)

__all__ = [
    "__version__",
    "copy",
    "move",
    "remove",
    "empty_dir",
    "mkdirp",
    "enumerate_tree",
    "copy_async",
    "move_async",
    "remove_async",
    "empty_dir_async",
    "mkdirp_async",
    "enumerate_tree_async",
    "submit",
    "capture",
    "ItemType",
    "TreeItem",
    "OperationOptions",
    "CopyStatistics",
    "OperationResult",
    "TreeOperationError",
    "CopyProgressEvent",
    "MoveProgressEvent",
    "RemoveProgressEvent",
]


def main() -> None:
    """Entry point for the treeops CLI application.

    Imports and runs the Typer app from the treeops.cli module.
    """
    from treeops.cli import app
    app()
