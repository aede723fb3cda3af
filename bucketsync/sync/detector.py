"""Change detection: decide whether a local file must be uploaded."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..exceptions import (
    HashError,
    ObjectNotFoundError,
    RemoteLookupError,
    StoreError,
)
from ..store import ObjectStore, RemoteMeta
from ..utils import DEFAULT_MULTIPART_THRESHOLD, calculate_md5
from .scanner import LocalEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncDecision:
    """Represents a decision about whether to upload a file."""

    key: str
    """Relative key of the file"""

    upload: bool
    """True if the file must be uploaded"""

    reason: str
    """Human-readable reason for this decision"""

    remote: Optional[RemoteMeta] = None
    """Remote metadata, if the object exists"""


class ChangeDetector:
    """Compares a local file with its remote object.

    The checks run cheapest first: one HEAD request, then size and
    modification time, and only for small files that look newer locally a
    content hash. A local edit that lands within the remote timestamp
    granularity of the previous upload and keeps the size unchanged is
    reported as unchanged; content is never inspected in that case.
    """

    def __init__(
        self,
        store: ObjectStore,
        multipart_threshold: int = DEFAULT_MULTIPART_THRESHOLD,
        hasher: Callable[[Path], str] = calculate_md5,
    ):
        """Initialize change detector.

        Args:
            store: Object store to query
            multipart_threshold: Files above this size are never hashed
            hasher: Function returning the hex MD5 of a local file
        """
        self.store = store
        self.multipart_threshold = multipart_threshold
        self.hasher = hasher

    def needs_upload(self, key: str, local_path: Path) -> bool:
        """Return True if the file at ``local_path`` must be uploaded as ``key``.

        Raises:
            RemoteLookupError: If the HEAD request fails for another reason
                than a missing object
            HashError: If the local file cannot be read
        """
        local_path = Path(local_path)
        try:
            stat = local_path.stat()
        except OSError as e:
            raise HashError(f"Failed to stat local file {local_path}: {e}", key) from e
        entry = LocalEntry(
            key=key, path=local_path, size=stat.st_size, mtime=stat.st_mtime
        )
        return self.evaluate(entry).upload

    def evaluate(self, entry: LocalEntry) -> SyncDecision:
        """Decide whether ``entry`` must be uploaded.

        Raises:
            RemoteLookupError: If the HEAD request fails for another reason
                than a missing object
            HashError: If the local file cannot be read
        """
        try:
            remote = self.store.head(entry.key)
        except ObjectNotFoundError:
            return self._decide(entry, None, True, "New local file")
        except StoreError as e:
            raise RemoteLookupError(
                f"Error checking remote object {entry.key}: {e}", entry.key
            ) from e

        if entry.size != remote.size:
            reason = f"Size differs (local {entry.size}, remote {remote.size})"
            return self._decide(entry, remote, True, reason)

        remote_mtime = remote.mtime
        if remote_mtime is None:
            return self._decide(
                entry, remote, True, "Remote modification time unavailable"
            )

        if entry.mtime <= remote_mtime:
            return self._decide(entry, remote, False, "Remote is up to date")

        # From here on the local file is strictly newer than the remote object
        if entry.size > self.multipart_threshold:
            return self._decide(
                entry, remote, True, "Local file is newer (large file, not hashed)"
            )

        # Multipart entity tags are not content hashes
        if remote.is_multipart:
            return self._decide(
                entry, remote, True, "Local file is newer (multipart entity tag)"
            )

        try:
            local_hash = self.hasher(entry.path)
        except OSError as e:
            raise HashError(
                f"Error calculating local file hash of {entry.path}: {e}", entry.key
            ) from e

        if local_hash != remote.etag:
            return self._decide(entry, remote, True, "Content hash differs")
        return self._decide(entry, remote, False, "Content hash matches")

    def _decide(
        self,
        entry: LocalEntry,
        remote: Optional[RemoteMeta],
        upload: bool,
        reason: str,
    ) -> SyncDecision:
        logger.debug(
            "%s: %s (%s)", entry.key, "upload" if upload else "skip", reason
        )
        return SyncDecision(key=entry.key, upload=upload, reason=reason, remote=remote)
