"""Dual-write storage path.

Every local write is replicated to all enabled, non-excluded destinations
of the repository. If any destination fails, the local file is deleted
again and the write fails, so a repository never serves an artifact that
is missing from one of its mirrors.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

from bucketmirror.core.errors import LocalWriteFailure, RemoteWriteFailure
from bucketmirror.publish.counters import (
    BYTES_PUBLISHED,
    FILES_FAILED,
    FILES_IGNORED,
    FILES_PUBLISHED,
)
from bucketmirror.publish.notify import Notification, NotificationType
from bucketmirror.storage.local import normalize_path
from bucketmirror.storage.remote import store_item

if TYPE_CHECKING:
    from bucketmirror.publish.counters import PublishCounter
    from bucketmirror.publish.marks import PublishMarkStore
    from bucketmirror.publish.notify import FailureNotifier
    from bucketmirror.publish.registry import Destination, DestinationRegistry
    from bucketmirror.storage.local import LocalRepositoryStorage

logger = logging.getLogger(__name__)


class DualWriteStore:
    """Stores files locally and on every configured remote destination.

    Usage:
        store = DualWriteStore(storage, registry, marks, counter)
        try:
            store.store("releases", "/com/acme/app-1.0.jar", data)
        except StorageFailure:
            ...  # nothing was published, local file is gone
    """

    def __init__(
        self,
        storage: LocalRepositoryStorage,
        registry: DestinationRegistry,
        marks: PublishMarkStore,
        counter: PublishCounter,
        notifier: FailureNotifier | None = None,
        parallel: bool = False,
    ) -> None:
        """Initialize the store.

        Args:
            storage: Local repository storage.
            registry: Destination lookup.
            marks: Publish marks shared with the scanner.
            counter: Publish counters.
            notifier: Optional hook called when a write is rolled back.
            parallel: Replicate to all destinations concurrently.
        """
        self._storage = storage
        self._registry = registry
        self._marks = marks
        self._counter = counter
        self._notifier = notifier
        self._parallel = parallel

    def store(self, repository_id: str, path: str, content: bytes) -> None:
        """Store a file locally and replicate it.

        Args:
            repository_id: Repository identifier.
            path: Repository-relative path.
            content: File content.

        Raises:
            LocalWriteFailure: If the local write failed (no remote attempt).
            RemoteWriteFailure: If a destination failed (local write reverted).
        """
        path = normalize_path(path)

        try:
            self._storage.write(repository_id, path, content)
        except OSError as e:
            self._counter.increment(FILES_FAILED)
            logger.error("Local write failed for %s%s: %s", repository_id, path, e)
            raise LocalWriteFailure(repository_id, path, "Local write failed") from e

        destinations = [d for d in self._registry.destinations_for(repository_id) if d.enabled]

        if self._parallel:
            targets = [d for d in destinations if not self._ignored(d, path)]
            failed = self._replicate_parallel(targets, path, content) if targets else None
        else:
            targets, failed = self._replicate_serial(destinations, path, content)

        if not targets:
            logger.debug("No replication target for %s%s", repository_id, path)
            return

        if failed is None:
            self._marks.set(repository_id, path)
            self._counter.increment(FILES_PUBLISHED)
            self._counter.add_bytes(BYTES_PUBLISHED, len(content))
            return

        self._rollback(repository_id, path, failed)

    def _attempt(self, destination: Destination, path: str, content: bytes) -> bool:
        """Store on one destination; unexpected client errors count as failure."""
        try:
            return store_item(destination.client, path, content)
        except Exception:
            logger.exception("Unexpected error replicating %s to '%s'", path, destination.config_id)
            return False

    def _ignored(self, destination: Destination, path: str) -> bool:
        if destination.is_excluded(path):
            self._counter.increment(FILES_IGNORED)
            return True
        return False

    def _replicate_serial(
        self, destinations: list[Destination], path: str, content: bytes
    ) -> tuple[list[Destination], Destination | None]:
        """Replicate in list order, stopping at the first failure.

        Destinations after a failing one are neither attempted nor counted
        as ignored.

        Returns:
            The destinations attempted, and the failing one or None.
        """
        attempted: list[Destination] = []
        for destination in destinations:
            if self._ignored(destination, path):
                continue
            attempted.append(destination)
            if not self._attempt(destination, path, content):
                return attempted, destination
        return attempted, None

    def _replicate_parallel(
        self, targets: list[Destination], path: str, content: bytes
    ) -> Destination | None:
        """Replicate to all targets concurrently.

        Returns:
            The first failing destination in list order, or None.
        """
        with ThreadPoolExecutor(max_workers=len(targets)) as pool:
            results = list(pool.map(lambda d: self._attempt(d, path, content), targets))
        for destination, ok in zip(targets, results):
            if not ok:
                return destination
        return None

    def _rollback(self, repository_id: str, path: str, failed: Destination) -> None:
        try:
            self._storage.delete(repository_id, path)
        except OSError:
            logger.exception("Rollback of %s%s failed", repository_id, path)
        self._counter.increment(FILES_FAILED)
        logger.error(
            "Replication of %s%s to '%s' failed, local write reverted",
            repository_id,
            path,
            failed.config_id,
        )
        if self._notifier is not None:
            self._notifier.notify(
                Notification(
                    title="Replication failed",
                    message=f"{repository_id}{path} could not be stored on '{failed.config_id}'",
                    type=NotificationType.ERROR,
                    details={
                        "repository": repository_id,
                        "path": path,
                        "destination": failed.config_id,
                    },
                )
            )
        raise RemoteWriteFailure(repository_id, path, failed.config_id)
