"""Core sync engine that runs one sync cycle."""

import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional

from ..config import SyncConfig
from ..exceptions import (
    CycleInProgressError,
    HashError,
    ReconcileListError,
    RemoteLookupError,
    ScanError,
)
from ..output import OutputFormatter
from ..store import ObjectStore
from ..utils import format_size
from .detector import ChangeDetector
from .dispatcher import UploadDispatcher
from .ignore import IgnoreMatcher
from .outcome import CycleReport, UploadTask
from .reconciler import Reconciler
from .scanner import DirectoryScanner

logger = logging.getLogger(__name__)


class SyncEngine:
    """Mirrors ``config.root`` onto ``store``, one cycle at a time.

    A cycle walks the tree, asks the change detector about every file, feeds
    the files to upload into the dispatcher, waits for all uploads and only
    then deletes remote objects whose local file is gone. Two cycles of the
    same engine never overlap.
    """

    def __init__(
        self,
        store: ObjectStore,
        config: SyncConfig,
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize sync engine.

        Args:
            store: Object store to mirror to
            config: Sync settings
            output: Output formatter for displaying progress/status
        """
        self.store = store
        self.config = config
        self.output = output or OutputFormatter(quiet=True)
        self.matcher = IgnoreMatcher(
            config.ignore_patterns, match_filenames=config.match_filenames
        )
        self.scanner = DirectoryScanner(self.matcher)
        self.detector = ChangeDetector(store, config.multipart_threshold)
        self.reconciler = Reconciler(store)
        self._cycle_lock = threading.Lock()

    @property
    def running(self) -> bool:
        """True while a cycle is in progress."""
        return self._cycle_lock.locked()

    def run_cycle(self, dry_run: bool = False) -> CycleReport:
        """Run one full scan -> detect -> upload -> reconcile pass.

        Args:
            dry_run: If True, only report what would be uploaded and deleted

        Returns:
            CycleReport describing the cycle

        Raises:
            CycleInProgressError: If a cycle of this engine is already running
        """
        if not self._cycle_lock.acquire(blocking=False):
            raise CycleInProgressError(
                f"A sync cycle for {self.config.root} is already running"
            )
        try:
            return self._run_cycle(dry_run)
        finally:
            self._cycle_lock.release()

    def _run_cycle(self, dry_run: bool) -> CycleReport:
        start_time = time.time()
        report = CycleReport(dry_run=dry_run)
        root = self.config.root

        if not self.output.quiet:
            self.output.info(f"Syncing: {root} -> {self.store.location}")
            if dry_run:
                self.output.info("Dry run: No changes will be made")
        logger.info("Starting sync cycle of %s (dry_run=%s)", root, dry_run)

        # Step 1-3: scan, detect and upload
        dispatcher = UploadDispatcher(self.store, self.config)
        try:
            if dry_run:
                self._scan_and_detect(report, dispatcher, submit=False)
            else:
                with self._upload_progress(dispatcher), dispatcher:
                    self._scan_and_detect(report, dispatcher, submit=True)
        except ScanError as e:
            logger.error("Scan of %s failed: %s", root, e)
            report.fatal = e
        report.uploads = dispatcher.outcome

        # Step 4: reconcile, strictly after every upload has finished
        if report.fatal is None:
            try:
                if dry_run:
                    report.reconcile = self.reconciler.plan(root)
                else:
                    report.reconcile = self.reconciler.reconcile(root)
            except (ReconcileListError, ScanError) as e:
                logger.error("Reconciliation of %s failed: %s", root, e)
                report.fatal = e
        else:
            logger.warning("Skipping reconciliation because the scan failed")

        report.elapsed = time.time() - start_time
        logger.info(
            "Sync cycle of %s finished in %.2fs (success=%s)",
            root,
            report.elapsed,
            report.success,
        )

        if not self.output.quiet:
            self._display_summary(report)
        return report

    @contextmanager
    def _upload_progress(self, dispatcher: UploadDispatcher) -> Iterator[None]:
        """Show a spinner naming each file as its upload finishes."""
        if self.output.quiet:
            yield
            return
        with self.output.progress("Scanning and uploading...") as advance:
            dispatcher.on_uploaded = lambda key, size: advance(
                f"↑ {key} ({format_size(size)})"
            )
            yield

    def _scan_and_detect(
        self, report: CycleReport, dispatcher: UploadDispatcher, submit: bool
    ) -> None:
        """Walk the tree and queue every file that needs uploading.

        Per-file lookup and hash failures are recorded on the dispatcher's
        outcome; a ScanError propagates and stops production.
        """
        for entry in self.scanner.scan(self.config.root):
            try:
                decision = self.detector.evaluate(entry)
            except (RemoteLookupError, HashError) as e:
                dispatcher.record_failure(entry.key, e)
                continue

            if not decision.upload:
                report.skipped += 1
                logger.debug("%s is up-to-date, skipping upload", entry.key)
                continue

            report.planned_uploads.append(entry.key)
            if submit:
                dispatcher.submit(
                    UploadTask(key=entry.key, path=entry.path, size=entry.size)
                )

    def _display_summary(self, report: CycleReport) -> None:
        """Display sync summary.

        Args:
            report: Report of the finished cycle
        """
        self.output.print("")
        if report.fatal is not None:
            self.output.error(f"Sync failed: {report.fatal}")
        elif report.dry_run:
            self.output.success("Dry run complete!")
        elif report.success:
            self.output.success("Sync complete!")
        else:
            self.output.warning("Sync finished with errors")

        uploads = report.uploads
        if report.dry_run:
            self.output.info(f"  Would upload: {len(report.planned_uploads)}")
            for key in report.planned_uploads:
                self.output.info(f"    ↑ {key}")
        else:
            self.output.info(
                f"  Uploaded: {uploads.succeeded} "
                f"({format_size(uploads.bytes_transferred)})"
            )
            for key in sorted(uploads.uploaded):
                self.output.info(f"    ↑ {key}")
        self.output.info(f"  Up to date: {report.skipped}")

        if report.reconcile is not None:
            label = "Would delete" if report.dry_run else "Deleted remotely"
            self.output.info(f"  {label}: {report.reconcile.deleted_count}")
            for key in report.reconcile.deleted:
                self.output.info(f"    ✗ {key}")
            for error in report.reconcile.failures:
                self.output.warning(f"  ⚠ {error}")

        for failure in uploads.failures:
            self.output.error(f"  {failure.kind}: {failure.error}")
