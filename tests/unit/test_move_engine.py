"""
Unit tests for AtomicMoveEngine.

Tests cover:
- Renaming files and directories, creating destination parents
- Self-move and move-into-subtree protection
- Conflict policies: EEXIST, overwrite, overwrite_newer, merge
- Cross-device fallback (rename failing with EXDEV)
- Case-only rename detection
- Move progress events
"""

import errno
import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))
from conftest import build_tree, collect_tree, set_mtime

from treeops.models import MoveProgressEvent, OperationOptions, TreeOperationError
from treeops.operations import AtomicMoveEngine, is_case_only_rename


def exdev_rename(src, dst, *args, **kwargs):
    raise OSError(errno.EXDEV, "Invalid cross-device link")


@pytest.mark.unit
class TestMoveBasics:
    """Tests for plain moves."""

    def test_move_file(self, temp_dir: Path):
        src = temp_dir / "a.txt"
        src.write_text("a")
        dst = temp_dir / "b.txt"
        AtomicMoveEngine().move(src, dst)
        assert not src.exists()
        assert dst.read_text() == "a"

    def test_move_tree(self, source_tree: Path, temp_dir: Path):
        expected = collect_tree(source_tree)
        dst = temp_dir / "moved"
        AtomicMoveEngine().move(source_tree, dst)
        assert not source_tree.exists()
        assert collect_tree(dst) == expected

    def test_destination_parents_created(self, source_tree: Path, temp_dir: Path):
        dst = temp_dir / "x" / "y" / "moved"
        AtomicMoveEngine().move(source_tree, dst)
        assert (dst / "sub" / "file2.txt").read_text() == "y"

    def test_missing_source(self, temp_dir: Path):
        with pytest.raises(FileNotFoundError):
            AtomicMoveEngine().move(temp_dir / "missing", temp_dir / "dst")

    def test_symlink_moved_as_link(self, symlink_tree, temp_dir: Path):
        if symlink_tree is None:
            pytest.skip("Symlinks not supported")
        dst = symlink_tree / "renamed.txt"
        AtomicMoveEngine().move(symlink_tree / "link.txt", dst)
        assert os.path.islink(dst)
        assert os.readlink(dst) == "target.txt"


@pytest.mark.unit
class TestMoveProtection:
    """Tests for identity, containment and type checks."""

    def test_move_onto_itself(self, source_tree: Path):
        with pytest.raises(TreeOperationError) as exc_info:
            AtomicMoveEngine().move(source_tree, source_tree)
        assert exc_info.value.code == "EINVAL"
        assert source_tree.exists()

    def test_move_into_own_subdirectory(self, source_tree: Path):
        before = collect_tree(source_tree)
        with pytest.raises(TreeOperationError) as exc_info:
            AtomicMoveEngine().move(source_tree, source_tree / "sub" / "inner")
        assert exc_info.value.code == "EINVAL"
        assert collect_tree(source_tree) == before

    @pytest.mark.parametrize("policy", [{"overwrite": True}, {"merge": True}, {}])
    def test_move_onto_own_ancestor(self, source_tree: Path, policy):
        before = collect_tree(source_tree)
        with pytest.raises(TreeOperationError) as exc_info:
            AtomicMoveEngine(OperationOptions(**policy)).move(source_tree / "sub", source_tree)
        assert exc_info.value.code == "EINVAL"
        assert collect_tree(source_tree) == before

    def test_directory_onto_file(self, source_tree: Path, temp_dir: Path):
        dst = temp_dir / "file"
        dst.write_text("f")
        with pytest.raises(TreeOperationError) as exc_info:
            AtomicMoveEngine(OperationOptions(overwrite=True)).move(source_tree, dst)
        assert exc_info.value.code == "EISDIR"
        assert dst.read_text() == "f"

    def test_file_onto_directory(self, temp_dir: Path):
        src = temp_dir / "file"
        src.write_text("f")
        dst = temp_dir / "dir"
        dst.mkdir()
        with pytest.raises(TreeOperationError) as exc_info:
            AtomicMoveEngine(OperationOptions(overwrite=True)).move(src, dst)
        assert exc_info.value.code == "ENOTDIR"

    def test_hard_links_with_case_different_names(self, temp_dir: Path):
        src = temp_dir / "name.txt"
        src.write_text("x")
        dst = temp_dir / "NAME.txt"
        if dst.exists():
            pytest.skip("Case-insensitive filesystem")
        try:
            os.link(src, dst)
        except OSError:
            pytest.skip("Hard links not supported")
        with pytest.raises(TreeOperationError) as exc_info:
            AtomicMoveEngine().move(src, dst)
        assert exc_info.value.code == "EINVAL"


@pytest.mark.unit
class TestMoveConflicts:
    """Tests for conflict resolution at the destination."""

    def test_existing_destination(self, temp_dir: Path):
        src = temp_dir / "a.txt"
        dst = temp_dir / "b.txt"
        src.write_text("a")
        dst.write_text("b")
        with pytest.raises(TreeOperationError) as exc_info:
            AtomicMoveEngine().move(src, dst)
        assert exc_info.value.code == "EEXIST"
        assert src.exists()
        assert dst.read_text() == "b"

    def test_overwrite_directory(self, source_tree: Path, temp_dir: Path):
        dst = build_tree(temp_dir / "dst", {"stale.txt": "stale", "deep/er/file": "z"})
        AtomicMoveEngine(OperationOptions(overwrite=True)).move(source_tree, dst)
        assert collect_tree(dst) == {"file1.txt": "x", "sub": None, "sub/file2.txt": "y"}
        assert not source_tree.exists()

    @pytest.mark.parametrize(
        "src_mtime, dst_mtime, replaced",
        [(2_000_000_000, 1_000_000_000, True), (1_000_000_000, 2_000_000_000, False)],
    )
    def test_overwrite_newer(self, temp_dir: Path, src_mtime, dst_mtime, replaced):
        src = temp_dir / "src.txt"
        dst = temp_dir / "dst.txt"
        src.write_text("source")
        dst.write_text("destination")
        set_mtime(src, src_mtime)
        set_mtime(dst, dst_mtime)

        engine = AtomicMoveEngine(OperationOptions(overwrite_newer=True))
        if replaced:
            engine.move(src, dst)
            assert dst.read_text() == "source"
            assert not src.exists()
        else:
            with pytest.raises(TreeOperationError) as exc_info:
                engine.move(src, dst)
            assert exc_info.value.code == "EEXIST"
            assert dst.read_text() == "destination"

    def test_merge_disjoint(self, temp_dir: Path):
        src = build_tree(temp_dir / "src", {"new.txt": "new", "shared/one.txt": "1"})
        dst = build_tree(temp_dir / "dst", {"old.txt": "old", "shared/two.txt": "2"})

        AtomicMoveEngine(OperationOptions(merge=True)).move(src, dst)

        assert collect_tree(dst) == {
            "new.txt": "new",
            "old.txt": "old",
            "shared": None,
            "shared/one.txt": "1",
            "shared/two.txt": "2",
        }
        assert not src.exists()

    def test_merge_conflict_without_overwrite(self, temp_dir: Path):
        src = build_tree(temp_dir / "src", {"same.txt": "src"})
        dst = build_tree(temp_dir / "dst", {"same.txt": "dst"})
        with pytest.raises(TreeOperationError) as exc_info:
            AtomicMoveEngine(OperationOptions(merge=True)).move(src, dst)
        assert exc_info.value.code == "EEXIST"
        assert (dst / "same.txt").read_text() == "dst"

    def test_merge_with_overwrite(self, temp_dir: Path):
        src = build_tree(temp_dir / "src", {"same.txt": "src", "sub/deep.txt": "deep"})
        dst = build_tree(temp_dir / "dst", {"same.txt": "dst", "sub/keep.txt": "keep"})

        AtomicMoveEngine(OperationOptions(merge=True, overwrite=True)).move(src, dst)

        assert (dst / "same.txt").read_text() == "src"
        assert (dst / "sub" / "deep.txt").read_text() == "deep"
        assert (dst / "sub" / "keep.txt").read_text() == "keep"
        assert not src.exists()

    def test_merge_child_type_mismatch(self, temp_dir: Path):
        src = build_tree(temp_dir / "src", {"thing/inner.txt": "i"})
        dst = build_tree(temp_dir / "dst", {"thing": "a file"})
        with pytest.raises(TreeOperationError) as exc_info:
            AtomicMoveEngine(OperationOptions(merge=True, overwrite=True)).move(src, dst)
        assert exc_info.value.code == "EISDIR"


@pytest.mark.unit
class TestCrossDevice:
    """Tests for the copy-and-remove fallback."""

    def test_tree_equivalent_after_fallback(self, deep_tree: Path, temp_dir: Path):
        expected = collect_tree(deep_tree)
        dst = temp_dir / "elsewhere" / "deep"

        with patch("treeops.operations.move_engine.os.rename", side_effect=exdev_rename):
            AtomicMoveEngine().move(deep_tree, dst)

        assert collect_tree(dst) == expected
        assert not deep_tree.exists()

    def test_file_fallback_keeps_mtime(self, temp_dir: Path):
        src = temp_dir / "a.bin"
        src.write_bytes(b"\x00\x01\x02" * 1000)
        set_mtime(src, 1_111_111_111)
        dst = temp_dir / "b.bin"

        with patch("treeops.operations.move_engine.os.rename", side_effect=exdev_rename):
            AtomicMoveEngine().move(src, dst)

        assert dst.read_bytes() == b"\x00\x01\x02" * 1000
        assert os.stat(dst).st_mtime == pytest.approx(1_111_111_111)
        assert not src.exists()

    def test_fallback_progress_is_relayed(self, source_tree: Path, temp_dir: Path, progress_sink):
        options = OperationOptions(progress=progress_sink)
        with patch("treeops.operations.move_engine.os.rename", side_effect=exdev_rename):
            AtomicMoveEngine(options).move(source_tree, temp_dir / "dst")

        events = progress_sink.events
        assert all(isinstance(event, MoveProgressEvent) for event in events)
        operations = [event.operation for event in events]
        assert operations.count("move/copy") == 4
        assert operations.count("move/rm") == 4
        assert operations.index("move/rm") > max(
            index for index, operation in enumerate(operations) if operation == "move/copy"
        )

    def test_fallback_relays_to_falsy_sink(self, temp_dir: Path):
        src = build_tree(temp_dir / "src", {"only.txt": "1"})
        received = []

        class FalsySink:
            def __call__(self, event):
                received.append(event)

            def __bool__(self):
                return False

        options = OperationOptions(progress=FalsySink())
        with patch("treeops.operations.move_engine.os.rename", side_effect=exdev_rename):
            AtomicMoveEngine(options).move(src, temp_dir / "dst")

        assert [event.operation for event in received] == ["move/copy"] * 2 + ["move/rm"] * 2

    def test_other_rename_errors_surface(self, temp_dir: Path):
        src = temp_dir / "a.txt"
        src.write_text("a")

        def failing_rename(src_path, dst_path, *args, **kwargs):
            raise OSError(errno.EBUSY, "Device or resource busy")

        with patch("treeops.operations.move_engine.os.rename", side_effect=failing_rename):
            with pytest.raises(OSError) as exc_info:
                AtomicMoveEngine().move(src, temp_dir / "b.txt")

        assert exc_info.value.errno == errno.EBUSY
        assert exc_info.value.filename == str(src)
        assert src.exists()


@pytest.mark.unit
class TestCaseOnlyRename:
    """Tests for case-only rename detection."""

    def test_different_directories(self, temp_dir: Path):
        assert not is_case_only_rename(temp_dir / "a" / "x", temp_dir / "b" / "X")

    def test_same_name(self, temp_dir: Path):
        assert not is_case_only_rename(temp_dir / "x", temp_dir / "x")

    def test_unrelated_names(self, temp_dir: Path):
        assert not is_case_only_rename(temp_dir / "x", temp_dir / "y")

    def test_destination_spelling_listed(self, temp_dir: Path):
        (temp_dir / "Readme").write_text("r")
        (temp_dir / "README").write_text("R")
        if len(os.listdir(temp_dir)) == 1:
            pytest.skip("Case-insensitive filesystem")
        assert not is_case_only_rename(temp_dir / "Readme", temp_dir / "README")

    def test_case_insensitive_listing(self, temp_dir: Path):
        (temp_dir / "Readme").write_text("r")
        with patch("treeops.operations.move_engine.os.listdir", return_value=["Readme"]):
            assert is_case_only_rename(temp_dir / "Readme", temp_dir / "README")

    def test_rename_on_case_insensitive_filesystem(self, temp_dir: Path):
        src = temp_dir / "Readme"
        src.write_text("r")
        if not (temp_dir / "README").exists():
            pytest.skip("Case-sensitive filesystem")
        AtomicMoveEngine().move(src, temp_dir / "README")
        assert os.listdir(temp_dir) == ["README"]


@pytest.mark.unit
class TestMoveProgress:
    """Tests for move progress events."""

    def test_rename_emits_move_event(self, source_tree: Path, temp_dir: Path, progress_sink):
        AtomicMoveEngine(OperationOptions(progress=progress_sink)).move(source_tree, temp_dir / "b")
        assert len(progress_sink.events) == 1
        event = progress_sink.events[0]
        assert event.operation == "move"
        assert event.type == "Dir"
        assert event.item == str(source_tree)
