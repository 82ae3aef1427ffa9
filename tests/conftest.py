"""Shared fixtures for bucketmirror tests.

Provides an in-memory replication client whose failures can be scripted,
plus ready-made storage, marks, counters and registry instances.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from bucketmirror.core.errors import ReplicationError
from bucketmirror.core.types import DestinationState
from bucketmirror.publish.counters import PublishCounter
from bucketmirror.publish.exclusions import ExclusionRules
from bucketmirror.publish.marks import PublishMarkStore
from bucketmirror.publish.registry import Destination, DestinationRegistry
from bucketmirror.storage.local import LocalRepositoryStorage
from bucketmirror.storage.remote import ReplicationClient


class FakeClient(ReplicationClient):
    """In-memory replication client.

    Attributes:
        objects: Stored objects by path.
        attempts: Every path passed to put(), in call order.
        fail_times: Number of upcoming put() calls that fail.
        always_fail: Make every put() fail.
        on_put: Optional hook called after each successful put.
    """

    def __init__(self, name: str = "fake") -> None:
        self.name = name
        self.objects: dict[str, bytes] = {}
        self.attempts: list[str] = []
        self.fail_times = 0
        self.always_fail = False
        self.on_put: Callable[[str], None] | None = None
        self._lock = threading.Lock()

    @property
    def location(self) -> str:
        return f"Fake: {self.name}"

    def put(self, path: str, data: bytes) -> None:
        with self._lock:
            self.attempts.append(path)
            if self.always_fail:
                raise ReplicationError("remote unavailable")
            if self.fail_times > 0:
                self.fail_times -= 1
                raise ReplicationError("transient failure")
            self.objects[path] = data
        if self.on_put is not None:
            self.on_put(path)

    def exists(self, path: str) -> bool:
        return path in self.objects


def make_destination(
    config_id: str,
    client: ReplicationClient,
    repositories: tuple[str, ...] = ("releases",),
    exclusions: list[str] | None = None,
    enabled: bool = True,
    schedule: str | None = None,
) -> Destination:
    """Build a destination for tests."""
    return Destination(
        config_id=config_id,
        client=client,
        state=DestinationState.ENABLED if enabled else DestinationState.DISABLED,
        exclusions=ExclusionRules(exclusions),
        repositories=repositories,
        schedule=schedule,
    )


@pytest.fixture
def storage(tmp_path: Path) -> LocalRepositoryStorage:
    """Create a local repository storage."""
    return LocalRepositoryStorage(tmp_path / "repos")


@pytest.fixture
def marks() -> Generator[PublishMarkStore, None, None]:
    """Create an in-memory mark store."""
    store = PublishMarkStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def counter() -> PublishCounter:
    """Create publish counters."""
    return PublishCounter()


@pytest.fixture
def client() -> FakeClient:
    """Create a fake replication client."""
    return FakeClient("primary")


@pytest.fixture
def destination(client: FakeClient) -> Destination:
    """Create an enabled destination bound to the 'releases' repository."""
    return make_destination("primary", client)


@pytest.fixture
def registry(destination: Destination) -> DestinationRegistry:
    """Create a registry holding the default destination."""
    return DestinationRegistry([destination])


@pytest.fixture
def make_client() -> Callable[[str], FakeClient]:
    """Factory for additional fake clients."""
    return FakeClient


@pytest.fixture
def make_dest() -> Callable[..., Destination]:
    """Factory for destinations."""
    return make_destination
