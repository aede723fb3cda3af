"""Utility functions for bucketsync."""

import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

# =============================================================================
# Constants for file operations
# =============================================================================

MIB: int = 1024 * 1024

# Files larger than this are uploaded in parts (100 MiB)
DEFAULT_MULTIPART_THRESHOLD: int = 100 * MIB

# Size of each part of a multipart upload (50 MiB)
DEFAULT_PART_SIZE: int = 50 * MIB

# Smallest part size S3 accepts for every part but the last one
MIN_PART_SIZE: int = 5 * MIB

# Largest number of parts in one multipart upload
MAX_UPLOAD_PARTS: int = 10000

# Number of files uploaded concurrently
DEFAULT_UPLOAD_WORKERS: int = 5

# Number of parts uploaded concurrently for a single file
DEFAULT_PART_CONCURRENCY: int = 3

# Capacity of the task queue between the scanner and the upload workers
DEFAULT_QUEUE_SIZE: int = 100

# Upper bound for upload_workers * part_concurrency
MAX_IN_FLIGHT_REQUESTS: int = 64

# Read buffer for hashing
HASH_CHUNK_SIZE: int = 8 * MIB

IGNORE_FILE_NAME: str = ".syncignore"


# =============================================================================
# Hash calculation utilities
# =============================================================================


def calculate_md5(file_path: Union[str, Path]) -> str:
    """Calculate the MD5 hex digest of a file.

    Args:
        file_path: Path to the file

    Returns:
        Lowercase hex digest, comparable with a single-part S3 entity tag

    Raises:
        OSError: If the file cannot be opened or read
    """
    md5 = hashlib.md5()
    with open(file_path, "rb") as f:
        while True:
            chunk = f.read(HASH_CHUNK_SIZE)
            if not chunk:
                break
            md5.update(chunk)
    return md5.hexdigest()


def normalize_etag(etag: Optional[str]) -> str:
    """Strip the surrounding quotes S3 puts around entity tags.

    Examples:
        >>> normalize_etag('"5d41402abc4b2a76b9719d911017c592"')
        '5d41402abc4b2a76b9719d911017c592'
        >>> normalize_etag(None)
        ''
    """
    if not etag:
        return ""
    return etag.strip().strip('"').lower()


def is_multipart_etag(etag: str) -> bool:
    """Return True for entity tags of multipart-composed objects ("abc-3")."""
    return "-" in etag


def to_timestamp(value: Optional[datetime]) -> Optional[float]:
    """Convert a remote timestamp to a Unix timestamp.

    Naive datetimes are taken as UTC, which is what object stores report.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
