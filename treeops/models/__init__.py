"""
Models package for treeops.

This package provides convenient imports for all data models:
- ItemType: Enum of filesystem entry types
- TreeItem: Path plus stat result produced by a traversal
- OperationOptions: Immutable per-call configuration
- CopyStatistics: Totals accumulated by a copy
- OperationResult: Tagged success/error value
- CopyProgressEvent, MoveProgressEvent, RemoveProgressEvent: Progress records
- TreeOperationError: OSError subclass with a symbolic ``code``
"""

from .item_type import ItemType
from .data_models import (
    CopyStatistics,
    OperationOptions,
    OperationResult,
    TreeItem,
)
from .errors import TreeOperationError, annotate_error, error_code
from .events import CopyProgressEvent, MoveProgressEvent, RemoveProgressEvent

__all__ = [
    "ItemType",
    "TreeItem",
    "OperationOptions",
    "CopyStatistics",
    "OperationResult",
    "TreeOperationError",
    "annotate_error",
    "error_code",
    "CopyProgressEvent",
    "MoveProgressEvent",
    "RemoveProgressEvent",
]
