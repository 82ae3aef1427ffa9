"""Scheduler for catch-up scans.

This module provides:
- ScanScheduler: runs ScannerTask instances on crontab schedules or on demand

At most one run per (config id, mode) is active at a time. Scheduled runs
ask the scheduler whether an on-demand run is active and yield if so.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from bucketmirror.core.types import ScanMode
from bucketmirror.tasks.base import TaskState
from bucketmirror.tasks.scanner import ScannerTask, task_name

if TYPE_CHECKING:
    from bucketmirror.publish.counters import PublishCounter
    from bucketmirror.publish.registry import DestinationRegistry
    from bucketmirror.tasks.scanner import CatchUpScanner

logger = logging.getLogger(__name__)


class ScanScheduler:
    """Owns the scanner tasks of the process."""

    def __init__(
        self,
        registry: DestinationRegistry,
        scanner: CatchUpScanner,
        counter: PublishCounter,
        repository_sleep: float = 1.0,
    ) -> None:
        """Initialize the scheduler.

        Args:
            registry: Destination lookup.
            scanner: Scanner shared by all tasks.
            counter: Publish counters.
            repository_sleep: Seconds to wait before each repository.
        """
        self._registry = registry
        self._scanner = scanner
        self._counter = counter
        self._repository_sleep = repository_sleep
        self._scheduler: BackgroundScheduler | None = None
        self._active: dict[tuple[str, ScanMode], ScannerTask] = {}
        self._lock = threading.Lock()

    def create_task(self, config_id: str, mode: ScanMode) -> ScannerTask:
        """Create a task bound to this scheduler's yield check."""
        return ScannerTask(
            config_id,
            mode,
            self._registry,
            self._scanner,
            self._counter,
            yield_check=self.is_on_demand_active,
            repository_sleep=self._repository_sleep,
        )

    def is_on_demand_active(self) -> bool:
        """Check if any on-demand scanner task is running."""
        with self._lock:
            return any(mode == ScanMode.ON_DEMAND for _, mode in self._active)

    def active_tasks(self) -> list[ScannerTask]:
        """List the running tasks."""
        with self._lock:
            return list(self._active.values())

    def _claim(self, task: ScannerTask) -> bool:
        """Register a task as active unless its binding is already taken."""
        key = (task.config_id, task.mode)
        with self._lock:
            if key in self._active:
                logger.info("%s: already running, skipped", task.name)
                return False
            self._active[key] = task
        return True

    def _release(self, task: ScannerTask) -> None:
        key = (task.config_id, task.mode)
        with self._lock:
            if self._active.get(key) is task:
                del self._active[key]

    def _run_claimed(self, task: ScannerTask) -> None:
        try:
            task.run()
        finally:
            self._release(task)

    def execute(self, task: ScannerTask) -> bool:
        """Run a task in the calling thread.

        Returns:
            False if a task with the same binding is already running.
        """
        if not self._claim(task):
            return False
        self._run_claimed(task)
        return True

    def _run_scheduled(self, config_id: str) -> None:
        """Job function for scheduled scans."""
        self.execute(self.create_task(config_id, ScanMode.SCHEDULED))

    def add_scheduled(self, config_id: str, cron: str) -> str:
        """Schedule periodic scans for a destination.

        Args:
            config_id: Destination configuration id.
            cron: Crontab expression (5 fields).

        Returns:
            The job id.
        """
        scheduler = self._ensure_scheduler()
        job_id = task_name(config_id, ScanMode.SCHEDULED)
        scheduler.add_job(
            self._run_scheduled,
            trigger=CronTrigger.from_crontab(cron),
            args=[config_id],
            id=job_id,
            name=job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info("Scheduled %s (%s)", job_id, cron)
        return job_id

    def schedule_all(self) -> list[str]:
        """Schedule every destination that declares a schedule."""
        return [
            self.add_scheduled(d.config_id, d.schedule)
            for d in self._registry.all()
            if d.schedule
        ]

    def run_on_demand(self, config_id: str, wait: bool = False) -> ScannerTask:
        """Start an on-demand scan.

        Args:
            config_id: Destination configuration id.
            wait: Run in the calling thread instead of the scheduler pool.

        A background run counts as active from submission on, so scheduled
        runs yield even before the pool picks it up.

        Returns:
            The created task. It stays IDLE if another on-demand run of the
            same destination is already active.
        """
        task = self.create_task(config_id, ScanMode.ON_DEMAND)
        if wait:
            self.execute(task)
            return task
        if not self._claim(task):
            return task
        try:
            self._ensure_scheduler().add_job(
                self._run_claimed,
                args=[task],
                id=f"{task.name} #{id(task)}",
                name=task.name,
            )
        except Exception:
            self._release(task)
            raise
        return task

    def cancel(self, config_id: str, mode: ScanMode | None = None) -> int:
        """Cancel running tasks of a destination.

        Returns:
            Number of tasks asked to stop.
        """
        with self._lock:
            tasks = [
                task
                for (cid, task_mode), task in self._active.items()
                if cid == config_id and (mode is None or mode == task_mode)
            ]
        for task in tasks:
            task.cancel()
        return len(tasks)

    def _ensure_scheduler(self) -> BackgroundScheduler:
        if self._scheduler is None:
            self._scheduler = BackgroundScheduler()
        return self._scheduler

    @property
    def running(self) -> bool:
        """Check if the scheduler is started."""
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Start the scheduler."""
        scheduler = self._ensure_scheduler()
        if scheduler.running:
            return  # Already running
        scheduler.start()
        logger.info("Scan scheduler started")

    def stop(self) -> None:
        """Cancel running tasks and stop the scheduler."""
        for task in self.active_tasks():
            task.cancel()
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scan scheduler stopped")
        self._scheduler = None
        # Submitted runs that never started will not run any more
        for task in self.active_tasks():
            if task.state == TaskState.IDLE:
                self._release(task)
