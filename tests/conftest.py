"""Pytest fixtures for treeops tests."""

import io
import os
import platform
import tempfile
from pathlib import Path
from typing import Dict, Generator, Optional

import pytest
from rich.console import Console

from treeops.orchestration import ListSink
from treeops.ui import TreeConsole

IS_WINDOWS = platform.system() == "Windows"


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests of a single engine")
    config.addinivalue_line("markers", "integration: workflows spanning several engines")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for isolated test environments.

    Yields:
        Path to the temporary directory.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def build_tree(root: Path, layout: Dict[str, Optional[str]]) -> Path:
    """Create files and directories under ``root``.

    Args:
        root: Directory to build in (created if missing).
        layout: Relative path -> file content, or None for a directory.

    Returns:
        ``root``.
    """
    root.mkdir(parents=True, exist_ok=True)
    for relative, content in layout.items():
        path = root / relative
        if content is None:
            path.mkdir(parents=True, exist_ok=True)
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
    return root


def collect_tree(root: Path) -> Dict[str, Optional[str]]:
    """Read a tree back as relative path -> content (None for directories)."""
    result: Dict[str, Optional[str]] = {}
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames:
            result[Path(dirpath, name).relative_to(root).as_posix()] = None
        for name in filenames:
            path = Path(dirpath, name)
            result[path.relative_to(root).as_posix()] = path.read_text()
    return result


@pytest.fixture
def source_tree(temp_dir: Path) -> Path:
    """Create the two-level tree used by most copy and move tests.

    Creates:
        a/
        ├── file1.txt   "x"
        └── sub/
            └── file2.txt   "y"
    """
    return build_tree(temp_dir / "a", {"file1.txt": "x", "sub/file2.txt": "y"})


@pytest.fixture
def deep_tree(temp_dir: Path) -> Path:
    """Create a tree with files at several depths and an empty directory.

    Creates:
        deep/
        ├── top.txt
        ├── empty/
        ├── docs/
        │   ├── readme.md
        │   └── notes.txt
        └── l1/
            ├── one.txt
            └── l2/
                ├── two.txt
                └── l3/
                    └── three.txt
    """
    return build_tree(
        temp_dir / "deep",
        {
            "top.txt": "top",
            "empty": None,
            "docs/readme.md": "# readme",
            "docs/notes.txt": "notes",
            "l1/one.txt": "one",
            "l1/l2/two.txt": "two",
            "l1/l2/l3/three.txt": "three",
        },
    )


@pytest.fixture
def symlink_tree(temp_dir: Path) -> Optional[Path]:
    """Create a tree containing a relative file symlink.

    Returns:
        Root of the tree, or None when symlinks cannot be created.
    """
    root = build_tree(temp_dir / "links", {"target.txt": "target"})
    try:
        os.symlink("target.txt", root / "link.txt")
    except (OSError, NotImplementedError):
        return None
    return root


@pytest.fixture
def progress_sink() -> ListSink:
    """A progress sink collecting every event."""
    return ListSink()


@pytest.fixture
def string_console() -> Console:
    """A Rich console writing to a string buffer."""
    return Console(file=io.StringIO(), width=120, force_terminal=False)


@pytest.fixture
def tree_console(string_console: Console) -> TreeConsole:
    """TreeConsole bound to a capturing console."""
    return TreeConsole(console=string_console)


def set_mtime(path: Path, seconds: float) -> None:
    """Set both atime and mtime of ``path`` to ``seconds`` since the epoch."""
    os.utime(path, (seconds, seconds))
