"""bucketsync - mirror a local directory tree onto an S3-compatible bucket."""

from .config import SyncConfig
from .exceptions import (
    BucketSyncError,
    CycleInProgressError,
    HashError,
    ObjectNotFoundError,
    ReconcileDeleteError,
    ReconcileListError,
    RemoteLookupError,
    ScanError,
    StoreError,
    SyncConfigError,
    SyncError,
    UploadError,
)
from .store import MemoryObjectStore, ObjectStore, RemoteMeta, S3ObjectStore
from .sync import CycleReport, SyncEngine, SyncScheduler

__version__ = "0.1.0"

__all__ = [
    "SyncConfig",
    "SyncEngine",
    "SyncScheduler",
    "CycleReport",
    "ObjectStore",
    "MemoryObjectStore",
    "S3ObjectStore",
    "RemoteMeta",
    "BucketSyncError",
    "CycleInProgressError",
    "HashError",
    "ObjectNotFoundError",
    "ReconcileDeleteError",
    "ReconcileListError",
    "RemoteLookupError",
    "ScanError",
    "StoreError",
    "SyncConfigError",
    "SyncError",
    "UploadError",
]
