"""In-memory object store.

Behaves like S3 where the sync engine can observe it: entity tags are the MD5
of the body for single uploads and ``md5(concat(part md5s))-N`` for multipart
uploads, listings are paginated, and aborted uploads leave nothing behind.
"""

from __future__ import annotations

import hashlib
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO, Callable

from ..exceptions import ObjectNotFoundError, StoreError
from .base import CompletedPart, ObjectStore, RemoteMeta


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StoredObject:
    """An object held by ``MemoryObjectStore``."""

    data: bytes
    etag: str
    last_modified: datetime | None


class MemoryObjectStore(ObjectStore):
    """Thread-safe object store kept in a dictionary."""

    def __init__(
        self,
        page_size: int = 1000,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the store.

        Args:
            page_size: Number of keys per listing page.
            clock: Source of ``last_modified`` timestamps.
        """
        self._objects: dict[str, StoredObject] = {}
        self._uploads: dict[str, tuple[str, dict[int, bytes]]] = {}
        self._lock = threading.Lock()
        self._page_size = page_size
        self._clock = clock
        self._next_upload = 0
        self.pages_fetched = 0

    @property
    def location(self) -> str:
        """Return a description of the store."""
        return "In-memory store"

    # =========================
    # Helpers for tests and dry runs
    # =========================

    def set_object(
        self,
        key: str,
        data: bytes,
        last_modified: datetime | None = None,
        etag: str | None = None,
    ) -> None:
        """Store an object with explicit metadata."""
        with self._lock:
            self._objects[key] = StoredObject(
                data=data,
                etag=etag if etag is not None else hashlib.md5(data).hexdigest(),
                last_modified=last_modified,
            )

    def get(self, key: str) -> bytes:
        """Return the body of ``key``."""
        with self._lock:
            if key not in self._objects:
                raise ObjectNotFoundError(f"Object not found: {key}")
            return self._objects[key].data

    def keys(self) -> set[str]:
        """Return a snapshot of every stored key."""
        with self._lock:
            return set(self._objects)

    @property
    def pending_uploads(self) -> int:
        """Number of multipart uploads neither completed nor aborted."""
        with self._lock:
            return len(self._uploads)

    # =========================
    # ObjectStore interface
    # =========================

    def head(self, key: str) -> RemoteMeta:
        """Fetch metadata of ``key``."""
        with self._lock:
            obj = self._objects.get(key)
            if obj is None:
                raise ObjectNotFoundError(f"Object not found: {key}")
            return RemoteMeta(
                key=key,
                size=len(obj.data),
                etag=obj.etag,
                last_modified=obj.last_modified,
            )

    def put(self, key: str, body: BinaryIO, size: int) -> None:
        """Store ``size`` bytes read from ``body``."""
        data = body.read(size)
        if len(data) != size:
            raise StoreError(f"Short read for {key}: {len(data)} of {size} bytes")
        self.set_object(key, data, last_modified=self._clock())

    def create_multipart_upload(self, key: str) -> str:
        """Start a multipart upload."""
        with self._lock:
            self._next_upload += 1
            upload_id = f"upload-{self._next_upload}"
            self._uploads[upload_id] = (key, {})
            return upload_id

    def upload_part(
        self, key: str, upload_id: str, part_number: int, data: bytes
    ) -> str:
        """Store one part."""
        with self._lock:
            if upload_id not in self._uploads:
                raise StoreError(f"No such upload: {upload_id}")
            self._uploads[upload_id][1][part_number] = data
        return hashlib.md5(data).hexdigest()

    def complete_multipart_upload(
        self, key: str, upload_id: str, parts: list[CompletedPart]
    ) -> None:
        """Compose the parts into one object."""
        with self._lock:
            if upload_id not in self._uploads:
                raise StoreError(f"No such upload: {upload_id}")
            _, stored = self._uploads.pop(upload_id)
            data = b"".join(stored[p.part_number] for p in parts)
            digests = b"".join(
                hashlib.md5(stored[p.part_number]).digest() for p in parts
            )
            etag = f"{hashlib.md5(digests).hexdigest()}-{len(parts)}"
            self._objects[key] = StoredObject(
                data=data, etag=etag, last_modified=self._clock()
            )

    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        """Drop the upload and its parts."""
        with self._lock:
            self._uploads.pop(upload_id, None)

    def iter_keys(self, prefix: str = "") -> Iterator[str]:
        """Yield keys page by page in lexical order."""
        with self._lock:
            keys = sorted(k for k in self._objects if k.startswith(prefix))
        for start in range(0, len(keys), self._page_size):
            self.pages_fetched += 1
            yield from keys[start : start + self._page_size]

    def delete(self, key: str) -> None:
        """Delete ``key`` (deleting a missing key is not an error, as on S3)."""
        with self._lock:
            self._objects.pop(key, None)
