"""Exceptions raised by bucketsync."""

from typing import Optional


class BucketSyncError(Exception):
    """Base exception for all bucketsync errors."""


class SyncConfigError(BucketSyncError):
    """Invalid or unreadable configuration."""


class CycleInProgressError(BucketSyncError):
    """A sync cycle was requested while another one is still running."""


class StoreError(BucketSyncError):
    """The object store failed to complete a request."""


class ObjectNotFoundError(StoreError):
    """The requested object does not exist in the store."""


class SyncError(BucketSyncError):
    """A failure inside a sync cycle.

    Subclasses form the failure taxonomy of a cycle. ``fatal`` tells whether
    the failure aborts its whole phase (scan, listing) or only concerns a
    single file.
    """

    fatal = False

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class ScanError(SyncError):
    """Local I/O failure while walking the directory tree."""

    fatal = True


class RemoteLookupError(SyncError):
    """Remote metadata lookup failed with something other than not-found."""


class HashError(SyncError):
    """The local file could not be read for hashing."""


class UploadError(SyncError):
    """Single-shot or multipart upload failed."""


class ReconcileListError(SyncError):
    """Listing the remote keys failed; reconciliation is aborted."""

    fatal = True


class ReconcileDeleteError(SyncError):
    """Deleting a single remote key failed."""
