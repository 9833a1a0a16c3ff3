"""
Public entry points for treeops.

Every operation runs the same synchronous engine and is offered in three
forms:

- Blocking: ``copy``, ``move``, ``remove``, ``empty_dir``, ``mkdirp``,
  ``enumerate_tree``. Errors are raised.
- Coroutines: ``copy_async`` and friends run the blocking form on a worker
  thread with ``asyncio.to_thread``.
- Futures: ``submit(func, *args, callback=...)`` schedules any of the
  blocking forms on an executor; the optional callback is called as
  ``callback(error, result)``.

``capture`` turns any of the blocking forms into a tagged OperationResult.

Options are given either as an OperationOptions instance, as keyword
arguments, or both (keywords override the instance):

    >>> copy("photos", "backup/photos", overwrite_newer=True, preserve_timestamps=True)
"""

import asyncio
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, TypeVar, Union

from treeops.models import CopyStatistics, OperationOptions, OperationResult, TreeItem
from treeops.operations import (
    AtomicMoveEngine,
    DirectoryCreator,
    RetryingRemovalEngine,
    TreeCopyEngine,
)
from treeops.scanning import enumerate_tree as _enumerate_tree

logger = logging.getLogger("treeops")

T = TypeVar("T")
PathArg = Union[str, Path]

DEFAULT_WORKERS = 4

_executor: Optional[ThreadPoolExecutor] = None
_executor_lock = threading.Lock()


def _resolve_options(options: Optional[OperationOptions], overrides: dict) -> OperationOptions:
    base = options or OperationOptions()
    return replace(base, **overrides) if overrides else base


def copy(src: PathArg, dst: PathArg, options: Optional[OperationOptions] = None, **overrides: Any) -> CopyStatistics:
    """Copy a file or directory tree. See TreeCopyEngine."""
    return TreeCopyEngine(_resolve_options(options, overrides)).copy(src, dst)


def move(src: PathArg, dst: PathArg, options: Optional[OperationOptions] = None, **overrides: Any) -> None:
    """Move a file or directory tree. See AtomicMoveEngine."""
    AtomicMoveEngine(_resolve_options(options, overrides)).move(src, dst)


def remove(path: PathArg, options: Optional[OperationOptions] = None, **overrides: Any) -> None:
    """Remove a file or directory tree. See RetryingRemovalEngine."""
    RetryingRemovalEngine(_resolve_options(options, overrides)).remove(path)


def empty_dir(path: PathArg, options: Optional[OperationOptions] = None, **overrides: Any) -> None:
    """Empty a directory, creating it when missing."""
    RetryingRemovalEngine(_resolve_options(options, overrides)).empty_dir(path)


def mkdirp(
    paths: Union[PathArg, Sequence[PathArg]],
    options: Optional[OperationOptions] = None,
    **overrides: Any,
) -> Union[Path, List[Path]]:
    """Create directories and their missing parents. See DirectoryCreator."""
    return DirectoryCreator(_resolve_options(options, overrides)).mkdirp(paths)


def enumerate_tree(root: PathArg, options: Optional[OperationOptions] = None, **overrides: Any) -> List[TreeItem]:
    """List a tree breadth-first."""
    return _enumerate_tree(root, _resolve_options(options, overrides))


async def copy_async(src: PathArg, dst: PathArg, options: Optional[OperationOptions] = None, **overrides: Any) -> CopyStatistics:
    return await asyncio.to_thread(copy, src, dst, options, **overrides)


async def move_async(src: PathArg, dst: PathArg, options: Optional[OperationOptions] = None, **overrides: Any) -> None:
    await asyncio.to_thread(move, src, dst, options, **overrides)


async def remove_async(path: PathArg, options: Optional[OperationOptions] = None, **overrides: Any) -> None:
    await asyncio.to_thread(remove, path, options, **overrides)


async def empty_dir_async(path: PathArg, options: Optional[OperationOptions] = None, **overrides: Any) -> None:
    await asyncio.to_thread(empty_dir, path, options, **overrides)


async def mkdirp_async(
    paths: Union[PathArg, Sequence[PathArg]],
    options: Optional[OperationOptions] = None,
    **overrides: Any,
) -> Union[Path, List[Path]]:
    return await asyncio.to_thread(mkdirp, paths, options, **overrides)


async def enumerate_tree_async(root: PathArg, options: Optional[OperationOptions] = None, **overrides: Any) -> List[TreeItem]:
    return await asyncio.to_thread(enumerate_tree, root, options, **overrides)


def capture(func: Callable[..., T], *args: Any, **kwargs: Any) -> OperationResult[T]:
    """
    Run an operation and return its outcome as a tagged result.

    Only OSError (which covers every engine error) and ValueError (invalid
    options) are captured; anything else propagates.

    Example:
        >>> result = capture(remove, "missing")
        >>> result.ok, result.error.errno == errno.ENOENT
        (False, True)
    """
    try:
        return OperationResult(value=func(*args, **kwargs))
    except (OSError, ValueError) as err:
        return OperationResult(error=err)


def _default_executor() -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=DEFAULT_WORKERS, thread_name_prefix="treeops")
        return _executor


def submit(
    func: Callable[..., T],
    *args: Any,
    callback: Optional[Callable[[Optional[BaseException], Optional[T]], None]] = None,
    executor: Optional[Executor] = None,
    **kwargs: Any,
) -> "Future[T]":
    """
    Schedule an operation on an executor.

    Parameters:
        func: One of the blocking operations (or any callable).
        callback: Called once the operation finishes, as
            ``callback(error, None)`` on failure or ``callback(None, result)``
            on success.
        executor: Executor to run on; a shared thread pool by default.

    Returns:
        Future: Resolves to the operation's return value or its error.
    """
    pool = executor or _default_executor()
    future = pool.submit(func, *args, **kwargs)

    if callback is not None:
        def _on_done(done: "Future[T]") -> None:
            if done.cancelled():
                return
            error = done.exception()
            try:
                if error is not None:
                    callback(error, None)
                else:
                    callback(None, done.result())
            except Exception:
                logger.exception(f"Callback for {getattr(func, '__name__', func)} raised")

        future.add_done_callback(_on_done)

    return future
