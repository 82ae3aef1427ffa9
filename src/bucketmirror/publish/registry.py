"""Destination registry.

This module provides:
- Destination: immutable replication target bound to a set of repositories
- DestinationRegistry: lookup by repository id or by configuration id
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from bucketmirror.core.errors import ConfigurationMissing
from bucketmirror.core.types import DestinationState
from bucketmirror.publish.exclusions import ExclusionRules
from bucketmirror.storage.remote import create_client

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from bucketmirror.core.schemas import DestinationsFile, StorageSchema
    from bucketmirror.storage.remote import ReplicationClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Destination:
    """One remote object-store target.

    Attributes:
        config_id: Identifier of the configuration entry.
        client: Replication client for the remote store.
        state: Enabled or disabled.
        exclusions: Paths never replicated to this destination.
        repositories: Repository ids bound to this destination.
        schedule: Optional crontab expression for catch-up scans.
    """

    config_id: str
    client: ReplicationClient
    state: DestinationState = DestinationState.ENABLED
    exclusions: ExclusionRules = field(default_factory=ExclusionRules)
    repositories: tuple[str, ...] = ()
    schedule: str | None = None

    @property
    def enabled(self) -> bool:
        """Check if the destination takes part in replication."""
        return self.state == DestinationState.ENABLED

    def is_excluded(self, path: str) -> bool:
        """Check if a repository path is excluded from this destination."""
        return self.exclusions.is_excluded(path)


class DestinationRegistry:
    """Resolves destinations for repositories and configuration ids.

    Lookups always read the current configuration; ``replace()`` swaps it
    atomically so a change is visible to the next call.
    """

    def __init__(self, destinations: Iterable[Destination] = ()) -> None:
        self._lock = threading.Lock()
        self._destinations: tuple[Destination, ...] = ()
        self.replace(destinations)

    @classmethod
    def from_schema(
        cls,
        config: DestinationsFile,
        client_factory: Callable[[StorageSchema], ReplicationClient] = create_client,
    ) -> DestinationRegistry:
        """Build a registry from a validated destinations file."""
        return cls(
            Destination(
                config_id=entry.id,
                client=client_factory(entry.storage),
                state=DestinationState.ENABLED if entry.enabled else DestinationState.DISABLED,
                exclusions=ExclusionRules(entry.exclusions),
                repositories=tuple(entry.repositories),
                schedule=entry.schedule,
            )
            for entry in config.destinations
        )

    def replace(self, destinations: Iterable[Destination]) -> None:
        """Replace the whole configuration.

        Raises:
            ValueError: If two destinations share a configuration id.
        """
        new = tuple(destinations)
        ids = [d.config_id for d in new]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate destination ids: {', '.join(duplicates)}")
        with self._lock:
            self._destinations = new
        logger.info("Destination registry loaded: %d destinations", len(new))

    def all(self) -> list[Destination]:
        """List all destinations in configuration order."""
        with self._lock:
            return list(self._destinations)

    def destinations_for(self, repository_id: str) -> list[Destination]:
        """Get the destinations bound to a repository, in configuration order.

        Disabled destinations are included; callers check ``enabled``.
        An unknown repository yields an empty list.
        """
        with self._lock:
            return [d for d in self._destinations if repository_id in d.repositories]

    def get(self, config_id: str) -> Destination:
        """Get a destination by configuration id.

        Raises:
            ConfigurationMissing: If no such destination is configured.
        """
        with self._lock:
            for destination in self._destinations:
                if destination.config_id == config_id:
                    return destination
        raise ConfigurationMissing(f"No destination configured for '{config_id}'")

    def repositories_for(self, config_id: str) -> list[str]:
        """Get the repositories bound to a destination."""
        return list(self.get(config_id).repositories)
