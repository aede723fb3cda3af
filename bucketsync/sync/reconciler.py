"""Deletion of remote objects that no longer exist locally."""

import logging
from pathlib import Path
from typing import Callable

from ..exceptions import ReconcileDeleteError, ReconcileListError, StoreError
from ..store import ObjectStore
from .outcome import ReconcileResult
from .scanner import walk_keys

logger = logging.getLogger(__name__)


class Reconciler:
    """Removes remote keys without a local counterpart.

    The local side is a fresh, complete walk of the tree that does not apply
    ignore rules: any local file, ignored or not, protects its remote key.
    Ignored files that were uploaded before they were ignored therefore stay
    in the bucket.
    """

    def __init__(
        self,
        store: ObjectStore,
        local_keys: Callable[[Path], set[str]] = walk_keys,
    ):
        """Initialize reconciler.

        Args:
            store: Object store to reconcile
            local_keys: Function returning every local key under a root
        """
        self.store = store
        self.local_keys = local_keys

    def stale_keys(self, root: Path) -> list[str]:
        """Remote keys absent from ``root``, sorted.

        Every listing page is consumed before anything is decided.

        Raises:
            ScanError: If the local walk fails
            ReconcileListError: If listing the remote keys fails
        """
        local = self.local_keys(Path(root))
        try:
            remote = set(self.store.iter_keys())
        except StoreError as e:
            raise ReconcileListError(f"Failed to list remote objects: {e}") from e
        logger.debug(
            "Reconciling %d remote against %d local keys", len(remote), len(local)
        )
        return sorted(remote - local)

    def plan(self, root: Path) -> ReconcileResult:
        """Compute the deletions without performing them."""
        return ReconcileResult(deleted=self.stale_keys(root))

    def reconcile(self, root: Path) -> ReconcileResult:
        """Delete every remote key that has no local file.

        Delete failures are logged and collected; the pass goes on.

        Raises:
            ScanError: If the local walk fails
            ReconcileListError: If listing the remote keys fails
        """
        result = ReconcileResult()
        for key in self.stale_keys(root):
            try:
                self.store.delete(key)
            except StoreError as e:
                error = ReconcileDeleteError(f"Failed to delete {key}: {e}", key)
                logger.warning("%s", error)
                result.failures.append(error)
                continue
            logger.info("%s deleted from remote", key)
            result.deleted.append(key)
        return result
