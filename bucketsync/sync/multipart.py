"""Multipart upload of large files."""

import logging
import math
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import BinaryIO

from ..exceptions import StoreError, UploadError
from ..store import CompletedPart, ObjectStore
from ..utils import (
    DEFAULT_PART_CONCURRENCY,
    DEFAULT_PART_SIZE,
    MAX_UPLOAD_PARTS,
    format_size,
)

logger = logging.getLogger(__name__)


class MultipartUploader:
    """Uploads one object as fixed-size parts.

    At most ``part_concurrency`` parts are in flight (and held in memory) at
    any time. If a part fails, no further parts are read, the parts in flight
    are awaited and the whole upload is aborted so no partial object remains.
    """

    def __init__(
        self,
        store: ObjectStore,
        part_size: int = DEFAULT_PART_SIZE,
        part_concurrency: int = DEFAULT_PART_CONCURRENCY,
    ):
        """Initialize multipart uploader.

        Args:
            store: Object store to upload to
            part_size: Size of each part in bytes (the last one may be smaller)
            part_concurrency: Maximum number of parts uploaded concurrently
        """
        self.store = store
        self.part_size = part_size
        self.part_concurrency = part_concurrency

    def part_count(self, size: int) -> int:
        """Number of parts a file of ``size`` bytes is split into."""
        return max(1, math.ceil(size / self.part_size))

    def upload(self, key: str, fileobj: BinaryIO, size: int) -> int:
        """Upload ``size`` bytes from ``fileobj`` as ``key``.

        Args:
            key: Remote key
            fileobj: Binary file positioned at the start of the data
            size: Number of bytes to upload

        Returns:
            Number of bytes transferred

        Raises:
            UploadError: If any part fails; the upload has been aborted
        """
        num_parts = self.part_count(size)
        if num_parts > MAX_UPLOAD_PARTS:
            raise UploadError(
                f"{key} needs {num_parts} parts, more than the limit of "
                f"{MAX_UPLOAD_PARTS}; increase the part size",
                key,
            )

        try:
            upload_id = self.store.create_multipart_upload(key)
        except StoreError as e:
            raise UploadError(f"Failed to upload file via multipart: {e}", key) from e

        logger.debug(
            "Multipart upload of %s (%s) in %d parts, upload id %s",
            key,
            format_size(size),
            num_parts,
            upload_id,
        )
        start = time.time()

        try:
            parts, transferred = self._upload_parts(key, upload_id, fileobj, num_parts)
            if transferred != size:
                raise UploadError(
                    f"{key} changed during upload: read {transferred} of {size} bytes",
                    key,
                )
            self.store.complete_multipart_upload(key, upload_id, parts)
        except UploadError:
            self._abort(key, upload_id)
            raise
        except Exception as e:
            # Any failure, mapped or not, must leave no parts behind
            self._abort(key, upload_id)
            raise UploadError(f"Failed to upload file via multipart: {e}", key) from e

        logger.debug(
            "Multipart upload of %s took %.2fs", key, time.time() - start
        )
        return transferred

    def _upload_parts(
        self, key: str, upload_id: str, fileobj: BinaryIO, num_parts: int
    ) -> tuple[list[CompletedPart], int]:
        """Read parts sequentially and upload them concurrently.

        Returns:
            Completed parts sorted by number, and the number of bytes read
        """
        slots = threading.BoundedSemaphore(self.part_concurrency)
        failed = threading.Event()
        futures: list[Future] = []
        transferred = 0

        def on_done(future: Future) -> None:
            if future.exception() is not None:
                failed.set()
            slots.release()

        with ThreadPoolExecutor(
            max_workers=self.part_concurrency,
            thread_name_prefix="bucketsync-part",
        ) as executor:
            for part_number in range(1, num_parts + 1):
                slots.acquire()
                if failed.is_set():
                    slots.release()
                    break
                try:
                    data = fileobj.read(self.part_size)
                except OSError:
                    slots.release()
                    raise
                if not data:
                    slots.release()
                    break
                transferred += len(data)
                future = executor.submit(
                    self._upload_part, key, upload_id, part_number, data
                )
                future.add_done_callback(on_done)
                futures.append(future)

        # The executor has been shut down: every submitted part is finished
        parts = [future.result() for future in futures]
        return sorted(parts, key=lambda p: p.part_number), transferred

    def _upload_part(
        self, key: str, upload_id: str, part_number: int, data: bytes
    ) -> CompletedPart:
        etag = self.store.upload_part(key, upload_id, part_number, data)
        logger.debug("Uploaded part %d of %s (%d bytes)", part_number, key, len(data))
        return CompletedPart(part_number=part_number, etag=etag)

    def _abort(self, key: str, upload_id: str) -> None:
        try:
            self.store.abort_multipart_upload(key, upload_id)
            logger.debug("Aborted multipart upload %s of %s", upload_id, key)
        except StoreError as e:
            logger.warning("Failed to abort multipart upload of %s: %s", key, e)
