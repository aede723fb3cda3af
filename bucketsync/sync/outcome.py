"""Results of a sync cycle and its phases."""

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..exceptions import ReconcileDeleteError, SyncError


@dataclass(frozen=True)
class UploadTask:
    """A file queued for upload."""

    key: str
    path: Path
    size: int


@dataclass(frozen=True)
class FileFailure:
    """A per-file failure; the error's class tells which phase failed."""

    key: str
    error: SyncError

    @property
    def kind(self) -> str:
        """Name of the failure variant (e.g. ``UploadError``)."""
        return type(self.error).__name__


class SyncOutcome:
    """Aggregated upload results, shared by all upload workers.

    Workers append under a single lock. Read the counters only after every
    worker has been joined.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.succeeded = 0
        self.bytes_transferred = 0
        self.uploaded: list[str] = []
        self.failures: list[FileFailure] = []

    def record_success(self, key: str, size: int) -> None:
        """Count one uploaded file of ``size`` bytes."""
        with self._lock:
            self.succeeded += 1
            self.uploaded.append(key)
            self.bytes_transferred += size

    def record_failure(self, key: str, error: SyncError) -> None:
        """Append one per-file failure."""
        with self._lock:
            self.failures.append(FileFailure(key=key, error=error))

    @property
    def failed(self) -> int:
        """Number of failed files."""
        return len(self.failures)

    def to_dict(self) -> dict:
        """Convert outcome to dictionary for JSON output."""
        return {
            "succeeded": self.succeeded,
            "bytes_transferred": self.bytes_transferred,
            "uploaded": sorted(self.uploaded),
            "failures": [
                {"key": f.key, "kind": f.kind, "error": str(f.error)}
                for f in self.failures
            ],
        }


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass."""

    deleted: list[str] = field(default_factory=list)
    """Keys deleted (or, in a dry run, that would be deleted)"""

    failures: list[ReconcileDeleteError] = field(default_factory=list)
    """Deletes that failed; they never abort the pass"""

    @property
    def deleted_count(self) -> int:
        return len(self.deleted)

    def to_dict(self) -> dict:
        return {
            "deleted": list(self.deleted),
            "failures": [{"key": e.key, "error": str(e)} for e in self.failures],
        }


@dataclass
class CycleReport:
    """Everything one sync cycle did."""

    uploads: SyncOutcome = field(default_factory=SyncOutcome)
    skipped: int = 0
    planned_uploads: list[str] = field(default_factory=list)
    """Keys the detector selected (filled in every mode)"""

    reconcile: Optional[ReconcileResult] = None
    """None when reconciliation did not run or its listing failed"""

    fatal: Optional[SyncError] = None
    """ScanError or ReconcileListError, if a phase was aborted"""

    dry_run: bool = False
    elapsed: float = 0.0

    @property
    def success(self) -> bool:
        """True if scanning, every upload and the remote listing succeeded.

        Failed deletes do not count against a cycle.
        """
        return self.fatal is None and self.uploads.failed == 0

    def to_dict(self) -> dict:
        """Convert report to dictionary for JSON output."""
        return {
            "success": self.success,
            "dry_run": self.dry_run,
            "elapsed": round(self.elapsed, 3),
            "skipped": self.skipped,
            "planned_uploads": list(self.planned_uploads),
            "uploads": self.uploads.to_dict(),
            "reconcile": self.reconcile.to_dict() if self.reconcile else None,
            "fatal": (
                {"kind": type(self.fatal).__name__, "error": str(self.fatal)}
                if self.fatal
                else None
            ),
        }
