"""
ItemType enum for the kinds of filesystem entries a tree operation can meet.

The engines dispatch on these values:
1. FILE, BLOCK_DEVICE, CHARACTER_DEVICE - streamed byte by byte
2. DIRECTORY - created (copy) or removed after its children (rm)
3. SYMBOLIC_LINK - re-created from its target
4. FIFO, SOCKET, UNKNOWN - cannot be copied
"""

import os
import stat
from enum import Enum


class ItemType(Enum):
    """Encodes the type of a filesystem entry as reported by stat/lstat."""
    FILE = "File"
    DIRECTORY = "Dir"
    BLOCK_DEVICE = "BlockDevice"
    CHARACTER_DEVICE = "CharacterDevice"
    SYMBOLIC_LINK = "SymbolicLink"
    SOCKET = "Socket"
    FIFO = "FIFO"
    UNKNOWN = "Unknown"

    @classmethod
    def from_stat(cls, stats: os.stat_result) -> "ItemType":
        """Classify a stat result.

        Args:
            stats: Result of os.stat or os.lstat.

        Returns:
            The matching ItemType, UNKNOWN when no known type bit is set.
        """
        mode = stats.st_mode
        if stat.S_ISBLK(mode):
            return cls.BLOCK_DEVICE
        if stat.S_ISCHR(mode):
            return cls.CHARACTER_DEVICE
        if stat.S_ISDIR(mode):
            return cls.DIRECTORY
        if stat.S_ISFIFO(mode):
            return cls.FIFO
        if stat.S_ISREG(mode):
            return cls.FILE
        if stat.S_ISSOCK(mode):
            return cls.SOCKET
        if stat.S_ISLNK(mode):
            return cls.SYMBOLIC_LINK
        return cls.UNKNOWN

    @property
    def is_copyable_data(self) -> bool:
        """True for types whose bytes are streamed and counted in sizes."""
        return self in (ItemType.FILE, ItemType.BLOCK_DEVICE, ItemType.CHARACTER_DEVICE)
