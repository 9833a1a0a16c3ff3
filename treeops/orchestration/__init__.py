"""
Orchestration package for treeops.

- ListSink, JsonLinesSink, RelaySink: Progress sinks
- OperationLogger: Structured log-file writer used by the CLI
"""

from .operation_logger import OperationLogger
from .progress import JsonLinesSink, ListSink, RelaySink

__all__ = [
    "OperationLogger",
    "ListSink",
    "JsonLinesSink",
    "RelaySink",
]
