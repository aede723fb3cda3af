"""Directory scanning utilities for sync operations."""

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..exceptions import ScanError
from .ignore import IgnoreMatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalEntry:
    """A local file seen during one walk."""

    key: str
    """Relative path (using forward slashes for cross-platform compatibility)"""

    path: Path
    """Absolute path to the file"""

    size: int
    """File size in bytes"""

    mtime: float
    """Last modification time (Unix timestamp)"""

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "LocalEntry":
        """Create LocalEntry from a path.

        Args:
            file_path: Path to the file
            base_path: Base path for calculating relative paths

        Returns:
            LocalEntry instance

        Raises:
            OSError: If the file cannot be stat'ed
        """
        stat = file_path.stat()
        return cls(
            key=relative_key(file_path, base_path),
            path=file_path.absolute(),
            size=stat.st_size,
            mtime=stat.st_mtime,
        )


def relative_key(file_path: Path, base_path: Path) -> str:
    """Relative key of ``file_path`` under ``base_path`` with ``/`` separators."""
    # as_posix() converts host separators on every platform
    return Path(os.path.relpath(file_path, base_path)).as_posix()


def _raise_scan_error(error: OSError) -> None:
    raise ScanError(f"Error walking {error.filename}: {error}") from error


def _walk_files(root: Path) -> Iterator[Path]:
    """Yield every regular file under ``root`` in a stable order.

    Raises:
        ScanError: On the first I/O error; nothing after it is yielded
    """
    if not root.is_dir():
        raise ScanError(f"Local path is not a directory: {root}")
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_scan_error):
        dirnames.sort()
        for name in sorted(filenames):
            yield Path(dirpath) / name


class DirectoryScanner:
    """Walks a local tree and yields the files that may be uploaded.

    Examples:
        >>> scanner = DirectoryScanner(IgnoreMatcher(["tmp.txt"]))
        >>> for entry in scanner.scan(Path("/sync/folder")):
        ...     print(entry.key, entry.size)
    """

    def __init__(self, matcher: Optional[IgnoreMatcher] = None):
        """Initialize directory scanner.

        Args:
            matcher: Ignore matcher applied before yielding (none if omitted)
        """
        self.matcher = matcher or IgnoreMatcher(self_name="")

    def scan(self, root: Path) -> Iterator[LocalEntry]:
        """Lazily walk ``root``.

        Each call re-walks the tree from scratch. Directories are not
        yielded. Ignored files never leave this method.

        Args:
            root: Directory to scan

        Yields:
            LocalEntry for every file that is not ignored

        Raises:
            ScanError: On any I/O error; the walk stops immediately
        """
        root = Path(root)
        for file_path in _walk_files(root):
            key = relative_key(file_path, root)
            if self.matcher.matches(key):
                logger.debug("Ignoring (from rules): %s", key)
                continue
            try:
                yield LocalEntry.from_path(file_path, root)
            except OSError as e:
                raise ScanError(f"Cannot stat {file_path}: {e}", key=key) from e


def walk_keys(root: Path) -> set[str]:
    """Collect the key of every file under ``root``, ignore rules not applied.

    Raises:
        ScanError: On any I/O error
    """
    root = Path(root)
    return {relative_key(file_path, root) for file_path in _walk_files(root)}
