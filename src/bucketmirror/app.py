"""Composition root for bucketmirror.

Builds the registry, storage, marks, counters, write path, scanner and
scheduler from a PublishConfig and wires them together.

Usage:
    config = load_config("bucketmirror.json")
    setup_logging(config.log_path)
    with build_publisher(config) as publisher:
        publisher.store.store("releases", "/com/acme/app-1.0.jar", data)
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from bucketmirror.core.schemas import DestinationsFile
from bucketmirror.publish.counters import PublishCounter
from bucketmirror.publish.marks import PublishMarkStore
from bucketmirror.publish.notify import FailureNotifier
from bucketmirror.publish.registry import DestinationRegistry
from bucketmirror.storage.dual_write import DualWriteStore
from bucketmirror.storage.local import LocalRepositoryStorage
from bucketmirror.tasks.scanner import CatchUpScanner
from bucketmirror.tasks.scheduler import ScanScheduler

if TYPE_CHECKING:
    from types import TracebackType

    from bucketmirror.core.config import PublishConfig

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(log_path: Path | None = None, level: int = logging.INFO) -> None:
    """Configure logging to output to stdout and, optionally, a file.

    Args:
        log_path: Path to the log file, or None for stdout only.
        level: Level of the bucketmirror logger.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger("bucketmirror")
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is not None:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # APScheduler is chatty at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def load_destinations(path: Path) -> DestinationsFile:
    """Read and validate the destinations file.

    A missing file means no destinations.
    """
    if not path.exists():
        logger.warning("Destinations file not found: %s", path)
        return DestinationsFile()
    return DestinationsFile.model_validate(json.loads(path.read_text(encoding="utf-8")))


@dataclass
class Publisher:
    """All components of a running bucketmirror instance."""

    config: PublishConfig
    storage: LocalRepositoryStorage
    registry: DestinationRegistry
    marks: PublishMarkStore
    counter: PublishCounter
    notifier: FailureNotifier
    store: DualWriteStore
    scanner: CatchUpScanner
    scheduler: ScanScheduler

    def reload_destinations(self) -> None:
        """Re-read the destinations file into the registry."""
        fresh = DestinationRegistry.from_schema(load_destinations(self.config.destinations_file))
        self.registry.replace(fresh.all())

    def close(self) -> None:
        """Stop the scheduler and close the mark database."""
        self.scheduler.stop()
        self.marks.close()

    def __enter__(self) -> Publisher:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def build_publisher(
    config: PublishConfig,
    registry: DestinationRegistry | None = None,
) -> Publisher:
    """Build and wire every component.

    Args:
        config: Runtime configuration.
        registry: Pre-built registry (default: read config.destinations_file).

    Returns:
        Publisher holding the wired components.
    """
    if registry is None:
        registry = DestinationRegistry.from_schema(load_destinations(config.destinations_file))

    storage = LocalRepositoryStorage(config.storage_path)
    marks = PublishMarkStore(config.state_db_path)
    counter = PublishCounter()
    notifier = FailureNotifier()

    store = DualWriteStore(
        storage,
        registry,
        marks,
        counter,
        notifier=notifier,
        parallel=config.parallel_writes,
    )
    scanner = CatchUpScanner(
        storage,
        marks,
        counter,
        failure_sleep=config.failure_sleep,
        file_sleep=config.file_sleep,
        notifier=notifier,
        notify_after=config.notify_after,
    )
    scheduler = ScanScheduler(
        registry,
        scanner,
        counter,
        repository_sleep=config.repository_sleep,
    )

    logger.info(
        "Publisher ready: %s, %d destinations",
        storage.location,
        len(registry.all()),
    )
    return Publisher(
        config=config,
        storage=storage,
        registry=registry,
        marks=marks,
        counter=counter,
        notifier=notifier,
        store=store,
        scanner=scanner,
        scheduler=scheduler,
    )
