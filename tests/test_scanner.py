"""Tests for directory scanning."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from bucketsync.exceptions import ScanError
from bucketsync.sync.ignore import IgnoreMatcher
from bucketsync.sync.scanner import (
    DirectoryScanner,
    LocalEntry,
    relative_key,
    walk_keys,
)


@pytest.fixture
def tree(tmp_path):
    """Create a small directory tree.

    root/
        a.txt
        secret.txt
        sub/
            b.txt
            secret.txt
            deep/
                c.bin
        empty/
    """
    (tmp_path / "a.txt").write_text("a")
    (tmp_path / "secret.txt").write_text("s")
    (tmp_path / "sub" / "deep").mkdir(parents=True)
    (tmp_path / "sub" / "b.txt").write_text("bb")
    (tmp_path / "sub" / "secret.txt").write_text("s2")
    (tmp_path / "sub" / "deep" / "c.bin").write_bytes(b"\x00" * 10)
    (tmp_path / "empty").mkdir()
    return tmp_path


class TestLocalEntry:
    """Tests for LocalEntry."""

    def test_from_path(self, tmp_path):
        """Test creating an entry from a file path."""
        path = tmp_path / "dir" / "file.txt"
        path.parent.mkdir()
        path.write_text("hello")

        entry = LocalEntry.from_path(path, tmp_path)

        assert entry.key == "dir/file.txt"
        assert entry.path == path.absolute()
        assert entry.size == 5
        assert entry.mtime == path.stat().st_mtime

    def test_relative_key_uses_forward_slashes(self, tmp_path):
        path = tmp_path / "x" / "y" / "z.txt"
        assert relative_key(path, tmp_path) == "x/y/z.txt"


class TestDirectoryScanner:
    """Tests for DirectoryScanner."""

    def test_scan_yields_all_files(self, tree):
        """Test that every file is yielded and directories are not."""
        keys = [entry.key for entry in DirectoryScanner().scan(tree)]
        assert sorted(keys) == [
            "a.txt",
            "secret.txt",
            "sub/b.txt",
            "sub/deep/c.bin",
            "sub/secret.txt",
        ]

    def test_scan_order_is_stable(self, tree):
        scanner = DirectoryScanner()
        first = [entry.key for entry in scanner.scan(tree)]
        second = [entry.key for entry in scanner.scan(tree)]
        assert first == second

    def test_scan_is_lazy(self, tree):
        """Test that scan returns a generator."""
        entries = DirectoryScanner().scan(tree)
        assert next(iter(entries)).key == "a.txt"

    def test_scan_applies_exact_ignore(self, tree):
        """Test that a root-level pattern does not hide nested files."""
        scanner = DirectoryScanner(IgnoreMatcher(["secret.txt"], self_name=""))
        keys = {entry.key for entry in scanner.scan(tree)}
        assert "secret.txt" not in keys
        assert "sub/secret.txt" in keys

    def test_scan_applies_filename_ignore(self, tree):
        matcher = IgnoreMatcher(["secret.txt"], match_filenames=True, self_name="")
        keys = {entry.key for entry in DirectoryScanner(matcher).scan(tree)}
        assert keys == {"a.txt", "sub/b.txt", "sub/deep/c.bin"}

    def test_scan_reports_sizes(self, tree):
        sizes = {entry.key: entry.size for entry in DirectoryScanner().scan(tree)}
        assert sizes["sub/b.txt"] == 2
        assert sizes["sub/deep/c.bin"] == 10

    def test_scan_missing_root_raises(self, tmp_path):
        with pytest.raises(ScanError, match="not a directory"):
            list(DirectoryScanner().scan(tmp_path / "missing"))

    def test_scan_walk_error_is_fatal(self, tree):
        """Test that an I/O error while walking stops the scan."""

        def failing_walk(root, onerror=None):
            yield str(root), ["sub"], ["a.txt"]
            onerror(PermissionError(13, "Permission denied", str(root / "sub")))
            yield str(root / "sub"), [], ["b.txt"]

        with patch("bucketsync.sync.scanner.os.walk", side_effect=failing_walk):
            entries = DirectoryScanner().scan(tree)
            assert next(entries).key == "a.txt"
            with pytest.raises(ScanError, match="Permission denied"):
                next(entries)

    def test_scan_stat_error_is_fatal(self, tree):
        """Test that a file vanishing between listing and stat is fatal."""
        original = LocalEntry.from_path

        def flaky(file_path, base_path):
            if file_path.name == "b.txt":
                raise FileNotFoundError(2, "No such file", str(file_path))
            return original(file_path, base_path)

        with patch.object(LocalEntry, "from_path", side_effect=flaky):
            with pytest.raises(ScanError) as exc_info:
                list(DirectoryScanner().scan(tree))
        assert exc_info.value.key == "sub/b.txt"

    @pytest.mark.skipif(os.name == "nt", reason="symlinks need privileges")
    def test_scan_does_not_follow_directory_symlinks(self, tree, tmp_path_factory):
        outside = tmp_path_factory.mktemp("outside")
        (outside / "x.txt").write_text("x")
        os.symlink(outside, tree / "link", target_is_directory=True)
        keys = {entry.key for entry in DirectoryScanner().scan(tree)}
        assert "link/x.txt" not in keys


class TestWalkKeys:
    """Tests for walk_keys."""

    def test_ignore_rules_not_applied(self, tree):
        """Test that walk_keys returns every file, ignored or not."""
        keys = walk_keys(tree)
        assert "secret.txt" in keys
        assert "sub/secret.txt" in keys
        assert len(keys) == 5

    def test_empty_directory(self, tmp_path):
        assert walk_keys(tmp_path) == set()

    def test_accepts_str(self, tree):
        assert walk_keys(str(tree)) == walk_keys(Path(tree))
