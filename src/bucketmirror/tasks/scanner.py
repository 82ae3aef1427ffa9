"""Catch-up scanner.

This module provides:
- CatchUpScanner: walks a repository and publishes every unmarked file
- ScannerTask: scheduler task bound to one destination and one invocation mode

Architecture:
    The scanner converges the remote store on the local tree. Files already
    marked as published are skipped, so a scan can be repeated or resumed at
    any time. A failing upload is retried forever with a fixed backoff: the
    scan blocks on a stuck file rather than skip it. Cancellation is checked
    before every file, every attempt and every sleep.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from bucketmirror.core.errors import (
    ConfigurationMissing,
    ScanAborted,
    ScanCancelled,
    ScanFileFailure,
)
from bucketmirror.core.types import ScanMode
from bucketmirror.publish.counters import (
    BYTES_PUBLISHED,
    BYTES_SCANNED,
    FILES_FAILED,
    FILES_IGNORED,
    FILES_PUBLISHED,
    FILES_RETRIED,
    FILES_SCANNED,
    SCAN_RUNS,
)
from bucketmirror.publish.notify import Notification, NotificationType
from bucketmirror.storage.remote import store_item
from bucketmirror.tasks.base import BaseTask, CancellationToken

if TYPE_CHECKING:
    from collections.abc import Callable

    from bucketmirror.publish.counters import PublishCounter
    from bucketmirror.publish.marks import PublishMarkStore
    from bucketmirror.publish.notify import FailureNotifier
    from bucketmirror.publish.registry import Destination, DestinationRegistry
    from bucketmirror.storage.local import LocalRepositoryStorage

logger = logging.getLogger(__name__)

PLUGIN_NAME = "bucketmirror"


@dataclass
class ScanResult:
    """Outcome of one repository scan.

    Attributes:
        repository_id: Scanned repository.
        destination_id: Destination the files were published to.
        scanned: Files visited.
        published: Files uploaded and marked.
        ignored: Files excluded by the destination rules.
        skipped: Files already marked as published.
        retried: Failed upload attempts that were retried.
        failed: Files whose processing raised an error.
        bytes_published: Bytes uploaded.
        cancelled: Whether the scan stopped on cancellation.
    """

    repository_id: str
    destination_id: str
    scanned: int = 0
    published: int = 0
    ignored: int = 0
    skipped: int = 0
    retried: int = 0
    failed: int = 0
    bytes_published: int = 0
    cancelled: bool = False


class CatchUpScanner:
    """Publishes the files a repository holds but its destination lacks.

    Usage:
        scanner = CatchUpScanner(storage, marks, counter, failure_sleep=10.0)
        result = scanner.scan("releases", destination, CancellationToken())
    """

    def __init__(
        self,
        storage: LocalRepositoryStorage,
        marks: PublishMarkStore,
        counter: PublishCounter,
        failure_sleep: float = 10.0,
        file_sleep: float = 0.0,
        notifier: FailureNotifier | None = None,
        notify_after: int = 10,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        """Initialize the scanner.

        Args:
            storage: Local repository storage.
            marks: Publish marks shared with the write path.
            counter: Publish counters.
            failure_sleep: Seconds to wait after a failed upload.
            file_sleep: Seconds to wait after each file.
            notifier: Optional hook for sustained upload failures.
            notify_after: Consecutive failures on one file before notifying.
            sleep: Sleep function (default: the cancellation token's sleep).
        """
        self._storage = storage
        self._marks = marks
        self._counter = counter
        self._failure_sleep = failure_sleep
        self._file_sleep = file_sleep
        self._notifier = notifier
        self._notify_after = notify_after
        self._sleep_fn = sleep

    def pause(self, token: CancellationToken, seconds: float) -> None:
        """Sleep unless cancelled; raises ScanCancelled if cancelled."""
        token.check()
        if seconds <= 0:
            return
        if self._sleep_fn is None:
            token.sleep(seconds)
        else:
            self._sleep_fn(seconds)

    def scan(
        self,
        repository_id: str,
        destination: Destination,
        token: CancellationToken,
        counter: PublishCounter | None = None,
    ) -> ScanResult:
        """Scan one repository for one destination.

        Args:
            repository_id: Repository to walk.
            destination: Destination to publish to.
            token: Cancellation signal.
            counter: Counter scope of the calling task (default: the scanner's).

        Returns:
            ScanResult; ``cancelled`` is set if the scan stopped early.

        Raises:
            ScanAborted: If the repository tree cannot be read.
        """
        if counter is None:
            counter = self._counter
        result = ScanResult(repository_id=repository_id, destination_id=destination.config_id)
        logger.info("Repository scan started: %s -> %s", repository_id, destination.config_id)

        try:
            for path in self._storage.walk(repository_id):
                token.check()
                try:
                    self._process_file(repository_id, path, destination, token, result, counter)
                except ScanFileFailure:
                    result.failed += 1
                    counter.increment(FILES_FAILED)
                    logger.exception("Failed to process %s%s", repository_id, path)
                self.pause(token, self._file_sleep)
        except ScanCancelled:
            result.cancelled = True
            logger.info("Repository scan cancelled: %s -> %s", repository_id, destination.config_id)
        except OSError as e:
            logger.error("Repository scan aborted: %s: %s", repository_id, e)
            raise ScanAborted(f"Cannot read repository '{repository_id}': {e}") from e
        finally:
            logger.info(
                "Repository scan done: %s -> %s (scanned=%d published=%d ignored=%d "
                "skipped=%d retried=%d failed=%d bytes=%d)",
                repository_id,
                destination.config_id,
                result.scanned,
                result.published,
                result.ignored,
                result.skipped,
                result.retried,
                result.failed,
                result.bytes_published,
            )

        return result

    def _process_file(
        self,
        repository_id: str,
        path: str,
        destination: Destination,
        token: CancellationToken,
        result: ScanResult,
        counter: PublishCounter,
    ) -> None:
        """Process one file.

        Raises:
            ScanCancelled: If cancelled; the file is left unmarked.
            ScanFileFailure: For any other error, wrapping the original one.
        """
        try:
            self._publish_file(repository_id, path, destination, token, result, counter)
        except ScanCancelled:
            raise
        except Exception as e:
            raise ScanFileFailure(f"{repository_id}{path}: {e}") from e

    def _publish_file(
        self,
        repository_id: str,
        path: str,
        destination: Destination,
        token: CancellationToken,
        result: ScanResult,
        counter: PublishCounter,
    ) -> None:
        result.scanned += 1
        counter.increment(FILES_SCANNED)
        counter.peek(f"{repository_id}{path}")

        if destination.is_excluded(path):
            result.ignored += 1
            counter.increment(FILES_IGNORED)
            return

        size = self._storage.length(repository_id, path)
        counter.add_bytes(BYTES_SCANNED, size)

        if self._marks.get(repository_id, path):
            result.skipped += 1
            return

        data = self._storage.read(repository_id, path)
        self._publish_with_retry(repository_id, path, data, destination, token, result, counter)

        self._marks.set(repository_id, path)
        result.published += 1
        result.bytes_published += len(data)
        counter.increment(FILES_PUBLISHED)
        counter.add_bytes(BYTES_PUBLISHED, len(data))

    def _publish_with_retry(
        self,
        repository_id: str,
        path: str,
        data: bytes,
        destination: Destination,
        token: CancellationToken,
        result: ScanResult,
        counter: PublishCounter,
    ) -> None:
        """Upload until success; there is no attempt limit."""
        failures = 0
        while True:
            token.check()
            if store_item(destination.client, path, data):
                if failures:
                    logger.info("Published %s%s after %d retries", repository_id, path, failures)
                return

            failures += 1
            result.retried += 1
            counter.increment(FILES_RETRIED)

            if failures == 1:
                logger.warning(
                    "Upload of %s%s to '%s' failed; will wait and try again",
                    repository_id,
                    path,
                    destination.config_id,
                )
            if failures == self._notify_after and self._notifier is not None:
                self._notifier.notify(
                    Notification(
                        title="Publish stalled",
                        message=(
                            f"{repository_id}{path} failed {failures} times "
                            f"on '{destination.config_id}'"
                        ),
                        type=NotificationType.WARNING,
                        details={
                            "repository": repository_id,
                            "path": path,
                            "destination": destination.config_id,
                        },
                    )
                )

            self.pause(token, self._failure_sleep)


def task_name(config_id: str, mode: ScanMode) -> str:
    """Build the display name of a scanner task."""
    return f"{ScannerTask.NAME} [{config_id}] {mode.value} ({PLUGIN_NAME})"


class ScannerTask(BaseTask):
    """Scans every repository bound to one destination.

    Scheduled runs yield to any active on-demand scanner run, so user
    triggered catch-ups are not starved by background schedules.
    """

    NAME = "ScannerTask"

    def __init__(
        self,
        config_id: str,
        mode: ScanMode,
        registry: DestinationRegistry,
        scanner: CatchUpScanner,
        counter: PublishCounter,
        yield_check: Callable[[], bool] | None = None,
        repository_sleep: float = 1.0,
    ) -> None:
        """Initialize the task.

        Args:
            config_id: Destination configuration id.
            mode: Invocation mode.
            registry: Destination lookup, read once per run.
            scanner: Scanner doing the per-repository work.
            counter: Publish counters; each run counts into a fresh scope of it.
            yield_check: Returns True while an on-demand run is active.
            repository_sleep: Seconds to wait before each repository.
        """
        super().__init__()
        self.config_id = config_id
        self.mode = mode
        self._registry = registry
        self._scanner = scanner
        self._counter = counter
        self._yield_check = yield_check
        self._repository_sleep = repository_sleep
        self.results: list[ScanResult] = []
        self.counter = self._new_scope()

    @property
    def name(self) -> str:
        """Return the display name of this task."""
        return task_name(self.config_id, self.mode)

    def should_yield(self) -> bool:
        """Check if this run must give way to an on-demand run."""
        if self.mode == ScanMode.ON_DEMAND:
            return False
        return bool(self._yield_check and self._yield_check())

    def _new_scope(self) -> PublishCounter:
        scope = self._counter.scope()
        scope.register_gauge("task name", lambda: self.name)
        scope.register_gauge("task state", lambda: self.state.name)
        return scope

    def _do_run(self) -> None:
        self.results = []

        if self.should_yield():
            logger.info("%s: yielding to on-demand task", self.name)
            return

        self.counter = self._new_scope()
        self.counter.increment(SCAN_RUNS)

        try:
            destination = self._registry.get(self.config_id)
        except ConfigurationMissing:
            logger.warning("%s: destination not configured, nothing to scan", self.name)
            return

        if not destination.enabled:
            logger.info("%s: destination disabled, nothing to scan", self.name)
            return

        for repository_id in destination.repositories:
            self.token.check()
            self._scanner.pause(self.token, self._repository_sleep)
            result = self._scanner.scan(repository_id, destination, self.token, self.counter)
            self.results.append(result)
            logger.info("%s\n%s", self.name, self.counter.report())
            if result.cancelled:
                return
