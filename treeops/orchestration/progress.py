"""
Progress sinks for treeops operations.

A progress sink is any callable taking one event. The sinks here cover the
common consumers: collecting events in memory, streaming them as JSON lines,
and relaying copy/remove events as move events during a cross-device move.
"""

from typing import Any, List, Optional, TextIO

from treeops.models import MoveProgressEvent
from treeops.models.data_models import ProgressSink


class ListSink:
    """Collects every event it receives."""

    def __init__(self) -> None:
        self.events: List[Any] = []

    def __call__(self, event: Any) -> None:
        self.events.append(event)

    def __len__(self) -> int:
        return len(self.events)

    def records(self) -> List[dict]:
        """Serialized form of the collected events."""
        return [event.to_dict() for event in self.events]


class JsonLinesSink:
    """Writes one JSON record per event to a text stream."""

    def __init__(self, stream: TextIO, flush: bool = True) -> None:
        """
        Parameters:
            stream: Destination text stream (file, ``sys.stdout``, ...).
            flush (bool): Flush after every record.
        """
        self.stream = stream
        self.flush = flush

    def __call__(self, event: Any) -> None:
        self.stream.write(event.to_json() + "\n")
        if self.flush:
            self.stream.flush()


class RelaySink:
    """
    Retags copy and remove events as move events.

    Used by the cross-device move fallback so a caller watching a move sees
    ``move/copy`` and ``move/rm`` steps instead of raw copy/remove events.
    """

    def __init__(self, target: Optional[ProgressSink], operation: str) -> None:
        self.target = target
        self.operation = operation

    def __call__(self, event: Any) -> None:
        if self.target is None:
            return
        self.target(
            MoveProgressEvent(
                operation=self.operation,
                type=event.type,
                item=event.item,
                error=event.error,
            )
        )
