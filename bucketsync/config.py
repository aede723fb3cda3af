"""Configuration for a sync target.

A ``SyncConfig`` is built once (usually by the CLI) and handed to every
component. It is frozen so that several engines with different settings can
run side by side in one process.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .exceptions import SyncConfigError
from .utils import (
    DEFAULT_MULTIPART_THRESHOLD,
    DEFAULT_PART_CONCURRENCY,
    DEFAULT_PART_SIZE,
    DEFAULT_QUEUE_SIZE,
    DEFAULT_UPLOAD_WORKERS,
    MAX_IN_FLIGHT_REQUESTS,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncConfig:
    """Immutable settings of one local directory mirrored to one bucket."""

    root: Path
    """Local directory to mirror"""

    bucket: str
    """Target bucket name"""

    region: Optional[str] = None
    """Bucket region (None lets boto3 resolve it)"""

    endpoint_url: Optional[str] = None
    """Custom endpoint for S3-compatible stores (MinIO, OVH, ...)"""

    upload_workers: int = DEFAULT_UPLOAD_WORKERS
    """Number of files uploaded concurrently"""

    multipart_threshold: int = DEFAULT_MULTIPART_THRESHOLD
    """Files strictly larger than this many bytes use multipart upload"""

    part_size: int = DEFAULT_PART_SIZE
    """Size of each multipart part in bytes"""

    part_concurrency: int = DEFAULT_PART_CONCURRENCY
    """Parts of one file uploaded concurrently"""

    queue_size: int = DEFAULT_QUEUE_SIZE
    """Capacity of the scanner -> worker task queue"""

    ignore_patterns: tuple[str, ...] = field(default_factory=tuple)
    """Literal patterns excluded from upload"""

    match_filenames: bool = False
    """Also compare ignore patterns against the bare filename"""

    def __post_init__(self) -> None:
        # Accept any path-like / iterable input but store canonical types
        object.__setattr__(self, "root", Path(self.root))
        object.__setattr__(self, "ignore_patterns", tuple(self.ignore_patterns))
        self.validate()

    @property
    def max_in_flight_requests(self) -> int:
        """Worst-case number of concurrent part/object uploads."""
        return self.upload_workers * self.part_concurrency

    @property
    def connection_pool_size(self) -> int:
        """HTTP pool size: every in-flight upload plus the producer's requests."""
        return self.max_in_flight_requests + 1

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            SyncConfigError: If a setting is out of range
        """
        if not self.bucket:
            raise SyncConfigError("Bucket name must not be empty")
        if self.upload_workers < 1:
            raise SyncConfigError("Upload workers must be at least 1")
        if self.part_concurrency < 1:
            raise SyncConfigError("Part concurrency must be at least 1")
        if self.queue_size < 1:
            raise SyncConfigError("Queue size must be at least 1")
        if self.part_size < 1:
            raise SyncConfigError("Part size must be positive")
        if self.multipart_threshold < 1:
            raise SyncConfigError("Multipart threshold must be positive")
        if self.part_size >= self.multipart_threshold:
            raise SyncConfigError("Part size must be smaller than multipart threshold")
        if self.max_in_flight_requests > MAX_IN_FLIGHT_REQUESTS:
            raise SyncConfigError(
                f"upload_workers x part_concurrency = {self.max_in_flight_requests} "
                f"exceeds the limit of {MAX_IN_FLIGHT_REQUESTS} concurrent requests"
            )

    @classmethod
    def load(
        cls,
        root: Path,
        bucket: str,
        extra_ignore: Iterable[str] = (),
        use_ignore_file: bool = True,
        **kwargs,
    ) -> "SyncConfig":
        """Build a config, merging ``.syncignore`` patterns from ``root``.

        Args:
            root: Local directory to mirror
            bucket: Target bucket
            extra_ignore: Additional literal patterns (e.g. from the CLI)
            use_ignore_file: Whether to read ``<root>/.syncignore``
            **kwargs: Any other ``SyncConfig`` field

        Returns:
            SyncConfig instance
        """
        from .sync.ignore import load_ignore_file

        root = Path(root)
        if not root.exists():
            raise SyncConfigError(f"Local directory does not exist: {root}")
        if not root.is_dir():
            raise SyncConfigError(f"Local path is not a directory: {root}")

        patterns: list[str] = []
        if use_ignore_file:
            patterns.extend(load_ignore_file(root))
        for pattern in extra_ignore:
            if pattern not in patterns:
                patterns.append(pattern)

        return cls(root=root, bucket=bucket, ignore_patterns=tuple(patterns), **kwargs)
