"""Background tasks - catch-up scanner and its scheduler."""

from bucketmirror.tasks.base import BaseTask, CancellationToken, TaskState
from bucketmirror.tasks.scanner import CatchUpScanner, ScannerTask, ScanResult, task_name
from bucketmirror.tasks.scheduler import ScanScheduler

__all__ = [
    "BaseTask",
    "CancellationToken",
    "CatchUpScanner",
    "ScanResult",
    "ScanScheduler",
    "ScannerTask",
    "TaskState",
    "task_name",
]
