"""
Error types for tree operations.

Every failure surfaced by the engines is an OSError carrying a POSIX errno.
Errors raised by the engines themselves (identity, containment, type mismatch,
existence conflicts, unsupported items) are TreeOperationError instances;
errors coming from the filesystem are passed through, annotated with the
offending path when the OS did not attach one.
"""

import errno
from pathlib import Path
from typing import Optional, Union

PathArg = Union[str, Path]

# Codes treated as transient during directory removal
TRANSIENT_CODES = frozenset({"EBUSY", "EMFILE", "ENFILE", "ENOTEMPTY", "EPERM"})


class TreeOperationError(OSError):
    """OSError raised by a tree operation, exposing a symbolic ``code``.

    Example:
        >>> err = TreeOperationError.create("EEXIST", "already exists", "/tmp/a")
        >>> err.code
        'EEXIST'
    """

    @classmethod
    def create(
        cls,
        code: str,
        message: str,
        path: Optional[PathArg] = None,
        path2: Optional[PathArg] = None,
    ) -> "TreeOperationError":
        """Build an error from a symbolic POSIX code name.

        Args:
            code: Name from the errno namespace, e.g. "EINVAL".
            message: Human readable description.
            path: Offending path, attached as ``filename``.
            path2: Second path involved (destination), attached as ``filename2``.

        Raises:
            ValueError: If ``code`` is not a known errno name.
        """
        number = getattr(errno, code, None)
        if number is None:
            raise ValueError(f"Unknown error code: {code}")
        if path is None:
            return cls(number, message)
        if path2 is None:
            return cls(number, message, str(path))
        return cls(number, message, str(path), None, str(path2))

    @property
    def code(self) -> Optional[str]:
        """Symbolic POSIX name of ``errno``."""
        return error_code(self)


def error_code(exc: BaseException) -> Optional[str]:
    """Return the symbolic errno name of an exception, or None."""
    number = getattr(exc, "errno", None)
    if number is None:
        return None
    return errno.errorcode.get(number)


def annotate_error(exc: OSError, path: PathArg) -> OSError:
    """Attach ``path`` to an OSError that the OS raised without a filename.

    The original message and errno are preserved. Errors that already name a
    file are returned unchanged.
    """
    if exc.filename is not None or exc.errno is None:
        return exc
    annotated = TreeOperationError(exc.errno, exc.strerror or str(exc), str(path))
    annotated.__cause__ = exc
    return annotated
