"""Publish module - destinations, exclusion rules, marks, counters and notifications."""

from bucketmirror.publish.counters import PublishCounter
from bucketmirror.publish.exclusions import ExclusionRules
from bucketmirror.publish.marks import PublishMarkStore
from bucketmirror.publish.notify import FailureNotifier, Notification, NotificationType
from bucketmirror.publish.registry import Destination, DestinationRegistry

__all__ = [
    "Destination",
    "DestinationRegistry",
    "ExclusionRules",
    "FailureNotifier",
    "Notification",
    "NotificationType",
    "PublishCounter",
    "PublishMarkStore",
]
