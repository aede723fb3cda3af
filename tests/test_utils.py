"""Unit tests for utility functions."""

import hashlib
from datetime import datetime, timedelta, timezone

import pytest

from bucketsync.utils import (
    calculate_md5,
    format_size,
    is_multipart_etag,
    normalize_etag,
    to_timestamp,
)


class TestCalculateMd5:
    """Tests for calculate_md5 function."""

    def test_matches_hashlib(self, tmp_path):
        """Test digest equals the MD5 of the file content."""
        path = tmp_path / "hello.txt"
        path.write_bytes(b"hello")
        assert calculate_md5(path) == hashlib.md5(b"hello").hexdigest()

    def test_empty_file(self, tmp_path):
        """Test digest of an empty file."""
        path = tmp_path / "empty"
        path.write_bytes(b"")
        assert calculate_md5(path) == "d41d8cd98f00b204e9800998ecf8427e"

    def test_accepts_string_path(self, tmp_path):
        """Test that str paths work too."""
        path = tmp_path / "data.bin"
        path.write_bytes(b"\x00" * 1000)
        assert calculate_md5(str(path)) == hashlib.md5(b"\x00" * 1000).hexdigest()

    def test_missing_file_raises(self, tmp_path):
        """Test that a missing file raises OSError."""
        with pytest.raises(OSError):
            calculate_md5(tmp_path / "missing")


class TestNormalizeEtag:
    """Tests for normalize_etag function."""

    def test_strips_quotes(self):
        assert normalize_etag('"abc123"') == "abc123"

    def test_unquoted_unchanged(self):
        assert normalize_etag("abc123") == "abc123"

    def test_none_and_empty(self):
        assert normalize_etag(None) == ""
        assert normalize_etag("") == ""

    def test_lowercases(self):
        assert normalize_etag('"ABCDEF"') == "abcdef"


class TestIsMultipartEtag:
    """Tests for is_multipart_etag function."""

    def test_multipart(self):
        assert is_multipart_etag("d41d8cd98f00b204e9800998ecf8427e-3")

    def test_single_part(self):
        assert not is_multipart_etag("d41d8cd98f00b204e9800998ecf8427e")


class TestToTimestamp:
    """Tests for to_timestamp function."""

    def test_none(self):
        assert to_timestamp(None) is None

    def test_aware_datetime(self):
        value = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert to_timestamp(value) == 1704067200.0

    def test_naive_datetime_is_utc(self):
        """Test naive datetimes are interpreted as UTC."""
        assert to_timestamp(datetime(2024, 1, 1)) == 1704067200.0

    def test_other_timezone(self):
        value = datetime(2024, 1, 1, 1, tzinfo=timezone(timedelta(hours=1)))
        assert to_timestamp(value) == 1704067200.0


class TestFormatSize:
    """Tests for format_size function."""

    def test_bytes(self):
        assert format_size(256) == "256 B"

    def test_kilobytes(self):
        assert format_size(1536) == "1.5 KB"

    def test_megabytes(self):
        assert format_size(150 * 1024 * 1024) == "150.0 MB"

    def test_gigabytes(self):
        assert format_size(2 * 1024 * 1024 * 1024) == "2.0 GB"
