"""
Unit tests for treeops data models.

Tests cover:
- ItemType classification from stat results
- OperationOptions defaults, validation and octal mode strings
- TreeOperationError codes and annotate_error
- OperationResult tagging
- Progress event serialization
"""

import errno
import json
import os
import re
from dataclasses import FrozenInstanceError, replace
from pathlib import Path

import pytest

from treeops.models import (
    CopyProgressEvent,
    CopyStatistics,
    ItemType,
    MoveProgressEvent,
    OperationOptions,
    OperationResult,
    RemoveProgressEvent,
    TreeItem,
    TreeOperationError,
    annotate_error,
    error_code,
)


@pytest.mark.unit
class TestItemType:
    """Tests for ItemType classification."""

    def test_regular_file(self, temp_dir: Path):
        path = temp_dir / "f.txt"
        path.write_text("data")
        assert ItemType.from_stat(os.lstat(path)) is ItemType.FILE

    def test_directory(self, temp_dir: Path):
        assert ItemType.from_stat(os.lstat(temp_dir)) is ItemType.DIRECTORY

    def test_symlink_reported_by_lstat(self, symlink_tree):
        if symlink_tree is None:
            pytest.skip("Symlinks not supported")
        link = symlink_tree / "link.txt"
        assert ItemType.from_stat(os.lstat(link)) is ItemType.SYMBOLIC_LINK
        assert ItemType.from_stat(os.stat(link)) is ItemType.FILE

    def test_display_names(self):
        assert ItemType.FILE.value == "File"
        assert ItemType.DIRECTORY.value == "Dir"
        assert ItemType.SYMBOLIC_LINK.value == "SymbolicLink"

    def test_copyable_data(self):
        assert ItemType.FILE.is_copyable_data
        assert ItemType.CHARACTER_DEVICE.is_copyable_data
        assert not ItemType.DIRECTORY.is_copyable_data
        assert not ItemType.FIFO.is_copyable_data

    def test_tree_item_is_dir(self, temp_dir: Path):
        item = TreeItem(path=temp_dir, stats=os.lstat(temp_dir))
        assert item.is_dir
        assert item.item_type is ItemType.DIRECTORY


@pytest.mark.unit
class TestOperationOptions:
    """Tests for OperationOptions defaults and validation."""

    def test_defaults(self):
        options = OperationOptions()
        assert options.overwrite is False
        assert options.error_on_exist is True
        assert options.stop_on_error is True
        assert options.depth == -1
        assert options.mode == 0o777
        assert options.retry_delay == 100
        assert options.buffer_length == 64 * 1024

    def test_frozen(self):
        options = OperationOptions()
        with pytest.raises(FrozenInstanceError):
            options.overwrite = True

    def test_replace_creates_variant(self):
        base = OperationOptions(recursive=True)
        variant = replace(base, force=True)
        assert variant.recursive and variant.force
        assert base.force is False

    def test_octal_string_mode(self):
        assert OperationOptions(mode="755").mode == 0o755

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"depth": -2},
            {"max_retries": -1},
            {"retry_delay": -5},
            {"buffer_length": 0},
            {"mode": 0o17777},
            {"mode": "rwx"},
            {"filter": "*.txt"},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            OperationOptions(**kwargs)

    def test_regex_filter_matches_path(self, temp_dir: Path):
        options = OperationOptions(filter=re.compile(r"\.txt$"))
        stats = os.lstat(temp_dir)
        assert options.matches(temp_dir / "a.txt", stats)
        assert not options.matches(temp_dir / "a.md", stats)

    def test_callable_filter(self, temp_dir: Path):
        options = OperationOptions(filter=lambda path, stats: path.name.startswith("keep"))
        stats = os.lstat(temp_dir)
        assert options.matches(temp_dir / "keep.me", stats)
        assert not options.matches(temp_dir / "drop.me", stats)


@pytest.mark.unit
class TestErrors:
    """Tests for TreeOperationError and helpers."""

    def test_create_sets_errno_and_code(self):
        err = TreeOperationError.create("EEXIST", "already exists", "/tmp/x")
        assert isinstance(err, OSError)
        assert err.errno == errno.EEXIST
        assert err.code == "EEXIST"
        assert err.filename == "/tmp/x"

    def test_create_with_two_paths(self):
        err = TreeOperationError.create("EINVAL", "same object", "/a", "/b")
        assert err.filename == "/a"
        assert err.filename2 == "/b"

    def test_unknown_code(self):
        with pytest.raises(ValueError):
            TreeOperationError.create("ENOTACODE", "nope")

    def test_error_code_for_plain_os_error(self):
        assert error_code(FileNotFoundError(errno.ENOENT, "missing")) == "ENOENT"
        assert error_code(ValueError("x")) is None

    def test_annotate_error_adds_path(self):
        original = OSError(errno.EBUSY, "Device or resource busy")
        annotated = annotate_error(original, "/mnt/busy")
        assert annotated.filename == "/mnt/busy"
        assert annotated.errno == errno.EBUSY
        assert annotated.__cause__ is original

    def test_annotate_error_keeps_named_errors(self):
        original = FileNotFoundError(errno.ENOENT, "missing", "/already/named")
        assert annotate_error(original, "/other") is original


@pytest.mark.unit
class TestOperationResult:
    """Tests for OperationResult."""

    def test_success(self):
        result = OperationResult(value=3)
        assert result.ok
        assert result.unwrap() == 3

    def test_failure_unwrap_raises(self):
        err = TreeOperationError.create("EINVAL", "bad")
        result = OperationResult(error=err)
        assert not result.ok
        with pytest.raises(TreeOperationError):
            result.unwrap()


@pytest.mark.unit
class TestProgressEvents:
    """Tests for progress event serialization."""

    def test_copy_event_keys(self):
        event = CopyProgressEvent(
            total_items=10, items_copied=3, type="File", item="/a/b", size=12, eta=1.5, time_taken=0.5
        )
        record = event.to_dict()
        assert record == {
            "totalItems": 10,
            "itemsCopied": 3,
            "type": "File",
            "item": "/a/b",
            "size": 12,
            "eta": 1.5,
            "timeTaken": 0.5,
        }

    def test_error_serialized_with_code(self):
        err = TreeOperationError.create("EEXIST", "exists", "/x")
        record = json.loads(RemoveProgressEvent(type="Dir", item="/x", error=err).to_json())
        assert record["error"]["code"] == "EEXIST"
        assert "exists" in record["error"]["message"]

    def test_move_event(self):
        record = MoveProgressEvent(operation="move/copy", type="File", item="/f").to_dict()
        assert record == {"operation": "move/copy", "type": "File", "item": "/f"}


@pytest.mark.unit
class TestCopyStatistics:
    """Tests for CopyStatistics."""

    def test_processed_counts_written_items(self):
        statistics = CopyStatistics(files=3, directories=2, links=1, skipped=4)
        assert statistics.processed == 6
        assert statistics.error_list == []
