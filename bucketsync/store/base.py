"""Object store abstraction used by the sync engine.

This module provides:
- ``RemoteMeta``, the metadata returned by a HEAD request
- ``CompletedPart``, one uploaded part of a multipart upload
- ``ObjectStore``, the abstract interface every backend implements
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO

from ..utils import is_multipart_etag, to_timestamp


@dataclass(frozen=True)
class RemoteMeta:
    """Metadata of a remote object."""

    key: str
    size: int
    etag: str
    """Entity tag with quotes stripped"""

    last_modified: datetime | None = None

    @property
    def mtime(self) -> float | None:
        """Last modification time as Unix timestamp, if known."""
        return to_timestamp(self.last_modified)

    @property
    def is_multipart(self) -> bool:
        """True if the tag belongs to a multipart-composed object."""
        return is_multipart_etag(self.etag)


@dataclass(frozen=True)
class CompletedPart:
    """A successfully uploaded part."""

    part_number: int
    etag: str


class ObjectStore(ABC):
    """Abstract interface for the remote object store.

    Implementations raise ``ObjectNotFoundError`` when a key does not exist and
    ``StoreError`` for every other transport failure. Retries and backoff are
    the implementation's business.
    """

    @property
    @abstractmethod
    def location(self) -> str:
        """Return a human-readable description of the store."""

    @abstractmethod
    def head(self, key: str) -> RemoteMeta:
        """Fetch metadata of ``key``.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            StoreError: For any other failure.
        """

    @abstractmethod
    def put(self, key: str, body: BinaryIO, size: int) -> None:
        """Upload ``size`` bytes from ``body`` as a single object."""

    @abstractmethod
    def create_multipart_upload(self, key: str) -> str:
        """Start a multipart upload and return its upload id."""

    @abstractmethod
    def upload_part(
        self, key: str, upload_id: str, part_number: int, data: bytes
    ) -> str:
        """Upload one part (1-based ``part_number``) and return its entity tag."""

    @abstractmethod
    def complete_multipart_upload(
        self, key: str, upload_id: str, parts: list[CompletedPart]
    ) -> None:
        """Compose the uploaded parts into the final object."""

    @abstractmethod
    def abort_multipart_upload(self, key: str, upload_id: str) -> None:
        """Discard a multipart upload and every part uploaded so far."""

    @abstractmethod
    def iter_keys(self, prefix: str = "") -> Iterator[str]:
        """Yield every key under ``prefix``, fetching pages lazily."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete ``key``."""
