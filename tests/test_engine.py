"""Tests for the sync engine."""

import io
import os
import threading
import time
from unittest.mock import Mock, patch

import pytest
from rich.console import Console

from bucketsync.config import SyncConfig
from bucketsync.exceptions import (
    CycleInProgressError,
    ReconcileListError,
    RemoteLookupError,
    ScanError,
    StoreError,
    UploadError,
)
from bucketsync.output import OutputFormatter
from bucketsync.store import MemoryObjectStore
from bucketsync.sync import SyncEngine
from bucketsync.sync.scanner import LocalEntry


class LoggingStore(MemoryObjectStore):
    """Memory store that logs every mutating call in order."""

    def __init__(self, failing_puts=(), failing_heads=(), fail_listing=False):
        super().__init__()
        self.calls = []
        self.failing_puts = set(failing_puts)
        self.failing_heads = set(failing_heads)
        self.fail_listing = fail_listing
        self._calls_lock = threading.Lock()

    def _log(self, *call):
        with self._calls_lock:
            self.calls.append(call)

    def head(self, key):
        if key in self.failing_heads:
            raise StoreError(f"HEAD {key} failed: 403")
        return super().head(key)

    def put(self, key, body, size):
        self._log("put", key)
        if key in self.failing_puts:
            raise StoreError(f"PUT {key} failed: 500")
        super().put(key, body, size)

    def iter_keys(self, prefix=""):
        self._log("list")
        if self.fail_listing:
            raise StoreError("ListObjectsV2 failed")
        return super().iter_keys(prefix)

    def delete(self, key):
        self._log("delete", key)
        super().delete(key)

    def keys_of(self, op):
        return [call[1] for call in self.calls if call[0] == op]


def _age(path, seconds=3600):
    """Backdate a file's mtime."""
    ts = time.time() - seconds
    os.utime(path, (ts, ts))


class TestSyncEngine:
    """Test SyncEngine functionality."""

    @pytest.fixture
    def root(self, tmp_path):
        """Create a local tree."""
        (tmp_path / "a.txt").write_text("alpha")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "b.txt").write_text("bravo")
        for path in (tmp_path / "a.txt", tmp_path / "sub" / "b.txt"):
            _age(path)
        return tmp_path

    @pytest.fixture
    def config(self, root):
        """Create a sync config for the tree."""
        return SyncConfig(
            root=root,
            bucket="test-bucket",
            upload_workers=2,
            multipart_threshold=1024,
            part_size=256,
            part_concurrency=2,
        )

    @pytest.fixture
    def mock_output(self):
        """Create a mock output formatter."""
        output = Mock(spec=OutputFormatter)
        output.quiet = True  # Suppress output during tests
        return output

    def test_create_sync_engine(self, config, mock_output):
        store = MemoryObjectStore()
        engine = SyncEngine(store, config, mock_output)
        assert engine.store is store
        assert engine.config is config
        assert engine.output is mock_output
        assert not engine.running

    def test_first_cycle_uploads_and_deletes(self, config, mock_output):
        """Test a full cycle against a bucket with one stale object."""
        store = LoggingStore()
        store.set_object("stale.txt", b"old")

        report = SyncEngine(store, config, mock_output).run_cycle()

        assert report.success
        assert report.fatal is None
        assert report.uploads.succeeded == 2
        assert report.uploads.bytes_transferred == 10
        assert sorted(report.planned_uploads) == ["a.txt", "sub/b.txt"]
        assert report.reconcile.deleted == ["stale.txt"]
        assert store.keys() == {"a.txt", "sub/b.txt"}
        assert store.get("sub/b.txt") == b"bravo"

    def test_second_cycle_is_idempotent(self, config, mock_output):
        """Test that an unchanged tree uploads nothing on the next cycle."""
        store = LoggingStore()
        engine = SyncEngine(store, config, mock_output)
        engine.run_cycle()
        store.calls.clear()

        report = engine.run_cycle()

        assert report.success
        assert report.uploads.succeeded == 0
        assert report.skipped == 2
        assert store.keys_of("put") == []
        assert store.keys_of("delete") == []

    def test_changed_file_is_uploaded_again(self, root, config, mock_output):
        store = LoggingStore()
        engine = SyncEngine(store, config, mock_output)
        engine.run_cycle()
        store.calls.clear()

        (root / "a.txt").write_text("alpha, longer")
        report = engine.run_cycle()

        assert report.planned_uploads == ["a.txt"]
        assert store.get("a.txt") == b"alpha, longer"

    def test_reconcile_runs_after_all_uploads(self, root, config, mock_output):
        """Test that listing and deleting start only after every upload."""
        for i in range(10):
            (root / f"extra{i}.txt").write_text(str(i))
        store = LoggingStore()
        store.set_object("stale.txt", b"old")

        SyncEngine(store, config, mock_output).run_cycle()

        ops = [call[0] for call in store.calls]
        first_list = ops.index("list")
        assert ops.count("put") == 12
        assert all(op == "put" for op in ops[:first_list])
        assert ops[first_list:] == ["list", "delete"]

    def test_ignored_files_are_not_uploaded(self, root, mock_output):
        (root / ".syncignore").write_text("a.txt\n")
        config = SyncConfig.load(root, "test-bucket")
        store = LoggingStore()
        store.set_object("a.txt", b"remote copy")

        report = SyncEngine(store, config, mock_output).run_cycle()

        assert "a.txt" not in store.keys_of("put")
        # Local file exists, so its remote copy is kept
        assert store.get("a.txt") == b"remote copy"
        assert report.reconcile.deleted == []

    def test_upload_failure_does_not_block_reconcile(self, config, mock_output):
        store = LoggingStore(failing_puts={"a.txt"})
        store.set_object("stale.txt", b"old")

        report = SyncEngine(store, config, mock_output).run_cycle()

        assert not report.success
        assert report.fatal is None
        assert report.uploads.failed == 1
        failure = report.uploads.failures[0]
        assert failure.key == "a.txt"
        assert isinstance(failure.error, UploadError)
        assert report.reconcile.deleted == ["stale.txt"]

    def test_lookup_failure_is_per_file(self, config, mock_output):
        store = LoggingStore(failing_heads={"a.txt"})

        report = SyncEngine(store, config, mock_output).run_cycle()

        assert report.uploads.succeeded == 1
        assert report.uploads.failed == 1
        assert isinstance(report.uploads.failures[0].error, RemoteLookupError)
        assert store.keys_of("put") == ["sub/b.txt"]

    def test_scan_error_skips_reconcile(self, root, config, mock_output):
        """Test that a scan failure stops the cycle before reconciliation."""
        store = LoggingStore()
        store.set_object("stale.txt", b"old")
        engine = SyncEngine(store, config, mock_output)

        def broken_scan(scan_root):
            yield LocalEntry.from_path(root / "a.txt", root)
            raise ScanError("Error walking sub: Permission denied")

        with patch.object(engine.scanner, "scan", side_effect=broken_scan):
            report = engine.run_cycle()

        assert not report.success
        assert isinstance(report.fatal, ScanError)
        assert report.reconcile is None
        assert store.keys_of("put") == ["a.txt"]
        assert "list" not in [call[0] for call in store.calls]
        assert "stale.txt" in store.keys()

    def test_list_failure_is_fatal(self, config, mock_output):
        store = LoggingStore(fail_listing=True)

        report = SyncEngine(store, config, mock_output).run_cycle()

        assert not report.success
        assert isinstance(report.fatal, ReconcileListError)
        assert report.reconcile is None
        assert report.uploads.succeeded == 2

    def test_dry_run_changes_nothing(self, config, mock_output):
        """Test that a dry run reports without uploading or deleting."""
        store = LoggingStore()
        store.set_object("stale.txt", b"old")

        report = SyncEngine(store, config, mock_output).run_cycle(dry_run=True)

        assert report.dry_run
        assert sorted(report.planned_uploads) == ["a.txt", "sub/b.txt"]
        assert report.reconcile.deleted == ["stale.txt"]
        assert report.uploads.succeeded == 0
        assert store.keys_of("put") == []
        assert store.keys_of("delete") == []
        assert store.keys() == {"stale.txt"}

    def test_dry_run_records_lookup_failures(self, config, mock_output):
        store = LoggingStore(failing_heads={"sub/b.txt"})

        report = SyncEngine(store, config, mock_output).run_cycle(dry_run=True)

        assert report.uploads.failed == 1
        assert report.planned_uploads == ["a.txt"]

    def test_single_flight(self, config, mock_output):
        """Test that a second concurrent cycle is refused."""
        engine = SyncEngine(MemoryObjectStore(), config, mock_output)
        engine._cycle_lock.acquire()
        try:
            assert engine.running
            with pytest.raises(CycleInProgressError):
                engine.run_cycle()
        finally:
            engine._cycle_lock.release()

        assert engine.run_cycle().success
        assert not engine.running

    def test_summary_displayed(self, config):
        buffer = io.StringIO()
        output = OutputFormatter(
            console=Console(file=buffer, width=200, color_system=None)
        )
        store = MemoryObjectStore()

        SyncEngine(store, config, output).run_cycle()

        lines = buffer.getvalue().splitlines()
        assert "Sync complete!" in lines
        assert "  Uploaded: 2 (10 B)" in lines
        assert "    ↑ a.txt" in lines
        assert "    ↑ sub/b.txt" in lines
        assert "  Deleted remotely: 0" in lines

    def test_uploaded_keys_reported(self, config, mock_output):
        """Test that the report names every uploaded file."""
        store = LoggingStore(failing_puts={"a.txt"})
        (config.root / "c.txt").write_text("charlie")

        report = SyncEngine(store, config, mock_output).run_cycle()

        assert sorted(report.uploads.uploaded) == ["c.txt", "sub/b.txt"]
        assert report.to_dict()["uploads"]["uploaded"] == ["c.txt", "sub/b.txt"]

    def test_progress_not_used_when_quiet(self, config, mock_output):
        SyncEngine(MemoryObjectStore(), config, mock_output).run_cycle()
        mock_output.progress.assert_not_called()

    def test_report_to_dict(self, config, mock_output):
        store = LoggingStore(failing_puts={"a.txt"})
        report = SyncEngine(store, config, mock_output).run_cycle()

        data = report.to_dict()

        assert data["success"] is False
        assert data["uploads"]["succeeded"] == 1
        assert data["uploads"]["failures"][0]["kind"] == "UploadError"
        assert data["reconcile"] == {"deleted": [], "failures": []}
        assert data["fatal"] is None
