"""Concurrent upload of queued files."""

import logging
import queue
import threading
import time
from collections.abc import Iterable
from typing import Callable, Optional

from ..config import SyncConfig
from ..exceptions import StoreError, SyncError, UploadError
from ..store import ObjectStore
from ..utils import format_size
from .multipart import MultipartUploader
from .outcome import SyncOutcome, UploadTask

logger = logging.getLogger(__name__)


class UploadDispatcher:
    """Fixed pool of upload workers fed through a bounded queue.

    Producers block in ``submit`` while the queue is full, which paces the
    directory walk to the upload speed. A failed upload is recorded and the
    workers carry on with the remaining tasks. ``close`` returns only after
    every worker has drained the queue and exited.

    Examples:
        >>> with UploadDispatcher(store, config) as dispatcher:
        ...     dispatcher.submit(UploadTask("a.txt", Path("/root/a.txt"), 5))
        >>> dispatcher.outcome.succeeded
        1
    """

    def __init__(
        self,
        store: ObjectStore,
        config: SyncConfig,
        multipart: Optional[MultipartUploader] = None,
        on_uploaded: Optional[Callable[[str, int], None]] = None,
    ):
        """Initialize upload dispatcher.

        Args:
            store: Object store to upload to
            config: Worker count, queue size and multipart settings
            multipart: Uploader for large files (built from ``config`` if omitted)
            on_uploaded: Called from a worker thread with the key and size of
                every uploaded file
        """
        self.store = store
        self.workers = config.upload_workers
        self.multipart_threshold = config.multipart_threshold
        self.multipart = multipart or MultipartUploader(
            store,
            part_size=config.part_size,
            part_concurrency=config.part_concurrency,
        )
        self.on_uploaded = on_uploaded
        self.outcome = SyncOutcome()
        self._queue: "queue.Queue[Optional[UploadTask]]" = queue.Queue(
            maxsize=config.queue_size
        )
        self._threads: list[threading.Thread] = []
        self._closed = False

    def __enter__(self) -> "UploadDispatcher":
        self.start()
        return self

    def __exit__(self, exc_type: Optional[type], *exc_info: object) -> None:
        # Ctrl+C and interpreter exit drop queued work; errors still drain it
        cancel = exc_type is not None and not issubclass(exc_type, Exception)
        self.close(cancel=cancel)

    def start(self) -> None:
        """Start the worker threads."""
        if self._threads:
            return
        for worker_id in range(self.workers):
            thread = threading.Thread(
                target=self._worker,
                args=(worker_id,),
                name=f"bucketsync-upload-{worker_id}",
            )
            thread.start()
            self._threads.append(thread)
        logger.debug("Started %d upload workers", self.workers)

    def submit(self, task: UploadTask) -> None:
        """Queue ``task``, blocking while the queue is full."""
        if self._closed:
            raise RuntimeError("Dispatcher is closed")
        self._queue.put(task)

    def record_failure(self, key: str, error: SyncError) -> None:
        """Record a per-file failure that happened before queueing."""
        logger.warning("Failed to sync %s: %s", key, error)
        self.outcome.record_failure(key, error)

    def close(self, cancel: bool = False) -> SyncOutcome:
        """Stop accepting tasks, drain the queue and join every worker.

        Uploads already running always finish (or abort) normally.

        Args:
            cancel: Discard queued tasks that no worker has started yet

        Returns:
            The aggregated outcome, safe to read from now on
        """
        if not self._closed:
            self._closed = True
            if cancel:
                self._discard_pending()
            for _ in self._threads:
                self._queue.put(None)
            for thread in self._threads:
                thread.join()
            logger.debug(
                "Upload workers finished: %d succeeded, %d failed",
                self.outcome.succeeded,
                self.outcome.failed,
            )
        return self.outcome

    def _discard_pending(self) -> None:
        discarded = 0
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
            discarded += 1
        if discarded:
            logger.warning("Cancelled %d queued upload(s)", discarded)

    def dispatch(self, tasks: Iterable[UploadTask]) -> SyncOutcome:
        """Upload every task and wait for all of them.

        Args:
            tasks: Upload tasks, consumed lazily

        Returns:
            The aggregated outcome
        """
        with self:
            for task in tasks:
                self.submit(task)
        return self.outcome

    def _worker(self, worker_id: int) -> None:
        while True:
            task = self._queue.get()
            if task is None:
                return
            start = time.time()
            try:
                transferred = self.upload_file(task)
            except SyncError as e:
                self.record_failure(task.key, e)
            except Exception as e:
                logger.exception("Unexpected error uploading %s", task.key)
                self.record_failure(task.key, UploadError(str(e), task.key))
            else:
                self.outcome.record_success(task.key, transferred)
                logger.info(
                    "[Worker %d] %s uploaded (%s) in %.2fs",
                    worker_id,
                    task.key,
                    format_size(transferred),
                    time.time() - start,
                )
                if self.on_uploaded is not None:
                    self.on_uploaded(task.key, transferred)

    def upload_file(self, task: UploadTask) -> int:
        """Upload one file, single-shot or multipart depending on its size.

        Returns:
            Number of bytes transferred

        Raises:
            UploadError: If opening, reading or uploading fails
        """
        try:
            with open(task.path, "rb") as f:
                if task.size > self.multipart_threshold:
                    logger.debug(
                        "Using multipart upload for %s (size: %d bytes)",
                        task.key,
                        task.size,
                    )
                    return self.multipart.upload(task.key, f, task.size)
                self.store.put(task.key, f, task.size)
                return task.size
        except (StoreError, OSError) as e:
            raise UploadError(f"Failed to upload {task.key}: {e}", task.key) from e
