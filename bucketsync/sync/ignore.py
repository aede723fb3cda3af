"""Literal ignore patterns.

Patterns are plain strings compared with a file's relative key (and, when
enabled, with its bare filename). There is no glob expansion and no directory
prefix semantics: ``node_modules/`` only matches a key that is literally
``node_modules/``, and ``*.log`` only matches a file named ``*.log``.
"""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

from ..exceptions import SyncConfigError
from ..utils import IGNORE_FILE_NAME

logger = logging.getLogger(__name__)


def running_program_name() -> str:
    """Filename of the running program, so it never uploads itself."""
    return Path(sys.argv[0]).name if sys.argv and sys.argv[0] else ""


def load_ignore_file(root: Path) -> list[str]:
    """Read patterns from ``<root>/.syncignore``.

    One pattern per line; surrounding whitespace is trimmed, blank lines and
    lines starting with ``#`` are skipped.

    Args:
        root: Directory that may contain the ignore file

    Returns:
        Patterns in file order (empty if the file does not exist)

    Raises:
        SyncConfigError: If the file exists but cannot be read
    """
    ignore_file = Path(root) / IGNORE_FILE_NAME
    try:
        text = ignore_file.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("No %s file found, proceeding without ignoring files", ignore_file)
        return []
    except (OSError, UnicodeDecodeError) as e:
        raise SyncConfigError(f"Error reading {ignore_file}: {e}") from e

    patterns = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        patterns.append(line)

    logger.info("Loaded ignore patterns: %s", patterns)
    return patterns


class IgnoreMatcher:
    """Decides whether a relative key is excluded from upload.

    Examples:
        >>> matcher = IgnoreMatcher(["secret.txt", "*.log"], self_name="")
        >>> matcher.matches("secret.txt")
        True
        >>> matcher.matches("debug.log")
        False
        >>> matcher.matches("sub/secret.txt")
        False
        >>> IgnoreMatcher(["secret.txt"], match_filenames=True).matches(
        ...     "sub/secret.txt"
        ... )
        True
    """

    def __init__(
        self,
        patterns: Iterable[str] = (),
        match_filenames: bool = False,
        self_name: Optional[str] = None,
    ):
        """Initialize the matcher.

        Args:
            patterns: Literal patterns, fixed for the matcher's lifetime
            match_filenames: Also compare patterns with the bare filename
            self_name: Implicit pattern for the running program; defaults to
                the filename of ``sys.argv[0]``
        """
        self.match_filenames = match_filenames
        names = set(patterns)
        if self_name is None:
            self_name = running_program_name()
        if self_name:
            names.add(self_name)
        self._patterns = frozenset(names)

    @property
    def patterns(self) -> frozenset[str]:
        """All active patterns, including the implicit one."""
        return self._patterns

    def matches(self, key: str) -> bool:
        """Return True if ``key`` must not be uploaded."""
        if key in self._patterns:
            return True
        if self.match_filenames:
            return key.rsplit("/", 1)[-1] in self._patterns
        return False
