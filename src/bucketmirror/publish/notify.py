"""Failure notification hook.

Delivery (mail, chat, pager) is left to subscribers; this module only fans
notifications out to registered callbacks.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class NotificationType(Enum):
    """Severity of a notification."""

    INFO = auto()
    WARNING = auto()
    ERROR = auto()


@dataclass
class Notification:
    """Represents a notification for an operator."""

    title: str
    message: str
    type: NotificationType = NotificationType.WARNING
    details: dict[str, str] = field(default_factory=dict)


class FailureNotifier:
    """Dispatches notifications to subscribers.

    A failing subscriber never interrupts replication: its exception is
    logged and the remaining subscribers are still called.
    """

    def __init__(self) -> None:
        self._subscribers: list[Callable[[Notification], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[Notification], None]) -> None:
        """Register a callback."""
        with self._lock:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[Notification], None]) -> None:
        """Remove a callback, if registered."""
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def notify(self, notification: Notification) -> int:
        """Send a notification to all subscribers.

        Returns:
            Number of subscribers that accepted the notification.
        """
        with self._lock:
            subscribers = list(self._subscribers)

        logger.debug("Notification: %s - %s", notification.title, notification.message)
        delivered = 0
        for callback in subscribers:
            try:
                callback(notification)
                delivered += 1
            except Exception:
                logger.exception("Notification subscriber failed")
        return delivered
