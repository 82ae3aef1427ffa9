"""Base classes for background tasks.

This module provides:
- CancellationToken: cooperative stop signal shared with a running task
- BaseTask: task base class whose registered name must match the class name
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum, auto
from typing import Any, ClassVar

from bucketmirror.core.errors import ScanCancelled

logger = logging.getLogger(__name__)


class TaskState(Enum):
    """State of a task."""

    IDLE = auto()
    RUNNING = auto()
    COMPLETED = auto()
    CANCELLED = auto()
    FAILED = auto()


class CancellationToken:
    """Cooperative cancellation signal.

    Sleeping through the token wakes up as soon as cancel() is called.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """Check if cancellation was requested."""
        return self._event.is_set()

    def check(self) -> None:
        """Raise ScanCancelled if cancellation was requested."""
        if self._event.is_set():
            raise ScanCancelled("Task cancelled")

    def sleep(self, seconds: float) -> None:
        """Wait for the given time, returning early on cancellation.

        Raises:
            ScanCancelled: If cancelled before or during the wait.
        """
        self.check()
        if seconds > 0 and self._event.wait(seconds):
            raise ScanCancelled("Task cancelled during sleep")


class BaseTask(ABC):
    """Abstract base class for scheduler tasks.

    Subclasses declare ``NAME``, which must equal the class name; the
    scheduler registers and finds tasks by that name.
    """

    NAME: ClassVar[str] = "BaseTask"

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if cls.__dict__.get("NAME") != cls.__name__:
            raise TypeError(f"{cls.__name__}.NAME must match the class name")

    def __init__(self) -> None:
        self.token = CancellationToken()
        self._state = TaskState.IDLE

    @property
    def state(self) -> TaskState:
        """Get current task state."""
        return self._state

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the display name of this task instance."""

    def cancel(self) -> None:
        """Request cancellation of the running task."""
        logger.info("%s: cancellation requested", self.name)
        self.token.cancel()

    def run(self) -> None:
        """Run the task; never raises."""
        self._state = TaskState.RUNNING
        try:
            self._do_run()
        except ScanCancelled:
            self._state = TaskState.CANCELLED
            logger.debug("%s: cancelled", self.name)
        except Exception:
            self._state = TaskState.FAILED
            logger.exception("%s: task failed", self.name)
        else:
            self._state = TaskState.CANCELLED if self.token.cancelled else TaskState.COMPLETED

    @abstractmethod
    def _do_run(self) -> None:
        """Perform the task's work."""
