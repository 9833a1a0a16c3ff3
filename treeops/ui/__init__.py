"""Rich console output for treeops."""

from .console_ui import TreeConsole

__all__ = ["TreeConsole"]
