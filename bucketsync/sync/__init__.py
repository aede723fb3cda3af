"""Sync engine for bucketsync - mirror a local tree onto an object store."""

from .detector import ChangeDetector, SyncDecision
from .dispatcher import UploadDispatcher
from .engine import SyncEngine
from .ignore import IgnoreMatcher, load_ignore_file
from .multipart import MultipartUploader
from .outcome import (
    CycleReport,
    FileFailure,
    ReconcileResult,
    SyncOutcome,
    UploadTask,
)
from .reconciler import Reconciler
from .scanner import DirectoryScanner, LocalEntry, walk_keys
from .scheduler import SyncScheduler

__all__ = [
    "SyncEngine",
    "SyncScheduler",
    "ChangeDetector",
    "SyncDecision",
    "UploadDispatcher",
    "MultipartUploader",
    "Reconciler",
    "DirectoryScanner",
    "LocalEntry",
    "walk_keys",
    "IgnoreMatcher",
    "load_ignore_file",
    "CycleReport",
    "FileFailure",
    "ReconcileResult",
    "SyncOutcome",
    "UploadTask",
]
