"""
Race-safe directory creation (``mkdir -p``) for treeops.

This module contains the DirectoryCreator class, which creates every missing
segment of one or more paths. Creation tolerates other processes creating the
same directories concurrently, and the process umask is cleared for the whole
call so the requested mode is applied verbatim.
"""

import logging
import os
import platform
import re
import stat
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Union

from treeops.models import OperationOptions, TreeOperationError

# Configure module logger
logger = logging.getLogger("treeops")

IS_WINDOWS = platform.system() == "Windows"

# Characters Windows refuses outside the drive/root portion of a path
INVALID_WIN32_CHARS = re.compile(r'[<>:"|?*]')

PathArg = Union[str, Path]


@contextmanager
def umask_override(value: int = 0) -> Iterator[int]:
    """Set the process umask for the duration of a block.

    The umask is process-wide: concurrent callers in other threads see the
    override while the block runs.

    Yields:
        The umask that was in effect before the block.
    """
    previous = os.umask(value)
    try:
        yield previous
    finally:
        os.umask(previous)


def expand_braces(pattern: str) -> List[str]:
    """Expand shell-style ``{a,b}`` groups, including nested and repeated ones.

    Groups without a top-level comma and unbalanced braces are kept literally.

    Example:
        >>> expand_braces("/p/{a,b}/{c,d}")
        ['/p/a/c', '/p/a/d', '/p/b/c', '/p/b/d']
    """
    start = pattern.find("{")
    while start != -1:
        depth = 0
        end = -1
        last = start + 1
        alternatives: List[str] = []
        for index in range(start, len(pattern)):
            char = pattern[index]
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    end = index
                    break
            elif char == "," and depth == 1:
                alternatives.append(pattern[last:index])
                last = index + 1
        if end == -1:
            break
        if alternatives:
            alternatives.append(pattern[last:end])
            prefix, suffix = pattern[:start], pattern[end + 1:]
            expanded: List[str] = []
            for alternative in alternatives:
                expanded.extend(expand_braces(prefix + alternative + suffix))
            return expanded
        start = pattern.find("{", start + 1)
    return [pattern]


class DirectoryCreator:
    """
    Creates directory paths together with their missing parents.

    Creation is iterative: a work stack holds the paths still to create, and a
    missing parent is pushed on top of its child so it gets created first.
    ``EEXIST`` on a path that is already a directory counts as success, which
    lets several creators race on the same path.
    """

    def __init__(self, options: Optional[OperationOptions] = None) -> None:
        """
        Create a DirectoryCreator.

        Parameters:
            options (OperationOptions): Only ``mode`` is read (default 0o777).
        """
        self.options = options or OperationOptions()

    def mkdirp(
        self, paths: Union[PathArg, Sequence[PathArg]]
    ) -> Union[Path, List[Path]]:
        """
        Create each path and any missing parents.

        Brace groups in each path are expanded and duplicates dropped before
        anything is created. The umask is forced to zero for the whole call
        and restored on every exit path.

        Parameters:
            paths: One path or a sequence of paths.

        Returns:
            Path: The created (or already existing) absolute path when one
                path was given and it did not expand to several.
            list[Path]: All paths, in input order, otherwise. A sequence
                always gives a list, even when duplicates collapse to one.

        Raises:
            TreeOperationError: ``EINVAL`` for a path containing a null byte or,
                on Windows, a reserved character.
            OSError: ``EEXIST`` when a segment exists but is not a directory, or
                any other error from mkdir.
        """
        single_input = isinstance(paths, (str, Path))
        targets = self._expand_paths(paths)
        for target in targets:
            self._validate(target)

        created: List[Path] = []
        with umask_override(0):
            for target in targets:
                created.append(self._create(target))

        return created[0] if single_input and len(created) == 1 else created

    def _expand_paths(self, paths: Union[PathArg, Sequence[PathArg]]) -> List[Path]:
        """Expand brace groups, make absolute, and deduplicate in order."""
        if isinstance(paths, (str, Path)):
            paths = [paths]

        seen = set()
        result: List[Path] = []
        for path in paths:
            for expanded in expand_braces(str(path)):
                absolute = Path(os.path.abspath(expanded))
                if absolute not in seen:
                    seen.add(absolute)
                    result.append(absolute)
        return result

    def _validate(self, path: Path) -> None:
        """Reject paths mkdir could never create."""
        text = str(path)
        if "\0" in text:
            raise TreeOperationError.create("EINVAL", "Null byte found in path.", text)
        if IS_WINDOWS and INVALID_WIN32_CHARS.search(text[len(path.anchor):]):
            raise TreeOperationError.create("EINVAL", "Invalid character found in path.", text)

    def _create(self, path: Path) -> Path:
        """
        Create ``path`` and its missing parents using an explicit work stack.

        Parameters:
            path (Path): Absolute path to create.

        Returns:
            Path: ``path``, which exists as a directory afterwards.
        """
        stack: List[Path] = [path]
        pushed: List[Path] = []

        while stack:
            current = stack.pop()
            try:
                os.mkdir(current, self.options.mode)
                logger.debug(f"Created directory: {current}")
            except FileNotFoundError as err:
                parent = current.parent
                if parent == current or current in pushed:
                    raise err
                pushed.append(current)
                stack.append(current)
                stack.append(parent)
            except FileExistsError as err:
                if not self._is_directory(current):
                    raise err
            except OSError as err:
                # EPERM on a drive root, EROFS or EACCES on a directory that
                # already exists are not failures
                if not self._is_directory(current):
                    raise err

        return path

    @staticmethod
    def _is_directory(path: Path) -> bool:
        try:
            return stat.S_ISDIR(os.stat(path).st_mode)
        except OSError:
            return False
