"""
Progress events emitted by the tree engines.

One event is pushed to the configured progress sink per processed item. Each
event serializes to the small JSON record consumers expect:

- CopyProgressEvent: {totalItems, itemsCopied, type, item, size, eta, timeTaken, error?}
- MoveProgressEvent: {operation, type, item, error?}
- RemoveProgressEvent: {type, item, error?}
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import error_code


def _describe_error(error: BaseException) -> Dict[str, Any]:
    return {"code": error_code(error), "message": str(error)}


@dataclass
class CopyProgressEvent:
    """Progress of a copy after one item was processed."""
    total_items: int                  # Items to copy
    items_copied: int                 # Items processed so far
    type: str                         # ItemType display name
    item: str                         # Source path of the item
    size: int                         # Size of the item in bytes
    eta: float                        # Estimated seconds until completion
    time_taken: float                 # Seconds since the copy started
    error: Optional[BaseException] = None

    def to_dict(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "totalItems": self.total_items,
            "itemsCopied": self.items_copied,
            "type": self.type,
            "item": self.item,
            "size": self.size,
            "eta": self.eta,
            "timeTaken": self.time_taken,
        }
        if self.error is not None:
            record["error"] = _describe_error(self.error)
        return record

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class RemoveProgressEvent:
    """A removal attempt on one item."""
    type: str
    item: str
    error: Optional[BaseException] = None

    def to_dict(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {"type": self.type, "item": self.item}
        if self.error is not None:
            record["error"] = _describe_error(self.error)
        return record

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class MoveProgressEvent:
    """A move step: a rename, or a relayed copy/rm step of the fallback."""
    operation: str                    # "move", "move/copy" or "move/rm"
    type: str
    item: str
    error: Optional[BaseException] = None

    def to_dict(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "operation": self.operation,
            "type": self.type,
            "item": self.item,
        }
        if self.error is not None:
            record["error"] = _describe_error(self.error)
        return record

    def to_json(self) -> str:
        return json.dumps(self.to_dict())
