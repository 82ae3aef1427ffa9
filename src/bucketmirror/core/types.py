"""Shared types for bucketmirror.

This module defines enums used by the storage path, the registry and the
background scanner.
"""

from __future__ import annotations

from enum import Enum


class ScanMode(str, Enum):
    """How a scanner task was invoked.

    Scheduled runs yield to on-demand runs of the same task family.
    """

    ON_DEMAND = "ON_DEMAND"
    SCHEDULED = "SCHEDULED"


class DestinationState(str, Enum):
    """Whether a destination takes part in replication."""

    ENABLED = "enabled"
    DISABLED = "disabled"
