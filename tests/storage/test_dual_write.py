"""Tests for the dual-write storage path."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

from bucketmirror.core.errors import LocalWriteFailure, RemoteWriteFailure
from bucketmirror.publish.counters import (
    BYTES_PUBLISHED,
    FILES_FAILED,
    FILES_IGNORED,
    FILES_PUBLISHED,
)
from bucketmirror.publish.marks import PublishMarkStore
from bucketmirror.publish.notify import FailureNotifier, NotificationType
from bucketmirror.publish.registry import Destination, DestinationRegistry
from bucketmirror.storage.dual_write import DualWriteStore
from bucketmirror.storage.local import LocalRepositoryStorage


@pytest.fixture
def two_clients(make_client: Callable) -> tuple:
    return make_client("first"), make_client("second")


@pytest.fixture
def two_registry(two_clients: tuple, make_dest: Callable[..., Destination]) -> DestinationRegistry:
    first, second = two_clients
    return DestinationRegistry([make_dest("first", first), make_dest("second", second)])


def _store(storage, registry, marks, counter, **kwargs) -> DualWriteStore:
    return DualWriteStore(storage, registry, marks, counter, **kwargs)


class TestDualWriteSuccess:
    """Tests for fully successful writes."""

    def test_replicates_to_every_destination(
        self, storage, two_registry, two_clients, marks, counter
    ) -> None:
        """The file should exist locally and on all destinations."""
        store = _store(storage, two_registry, marks, counter)

        store.store("releases", "com/acme/app.jar", b"jar-bytes")

        assert storage.read("releases", "/com/acme/app.jar") == b"jar-bytes"
        for client in two_clients:
            assert client.objects == {"/com/acme/app.jar": b"jar-bytes"}

    def test_marks_and_counts(self, storage, registry, marks, counter) -> None:
        store = _store(storage, registry, marks, counter)

        store.store("releases", "/a.jar", b"12345")

        assert marks.get("releases", "/a.jar") is True
        assert counter.get(FILES_PUBLISHED) == 1
        assert counter.get(BYTES_PUBLISHED) == 5
        assert counter.get(FILES_FAILED) == 0

    def test_no_destinations_is_noop(self, storage, marks, counter) -> None:
        """A repository without destinations is stored locally only."""
        store = _store(storage, DestinationRegistry(), marks, counter)

        store.store("releases", "/a.jar", b"x")

        assert storage.exists("releases", "/a.jar")
        assert marks.get("releases", "/a.jar") is False
        assert counter.get(FILES_PUBLISHED) == 0

    def test_disabled_destination_skipped_without_stats(
        self, storage, marks, counter, make_client, make_dest
    ) -> None:
        off = make_client("off")
        on = make_client("on")
        registry = DestinationRegistry(
            [make_dest("off", off, enabled=False), make_dest("on", on)]
        )

        _store(storage, registry, marks, counter).store("releases", "/a.jar", b"x")

        assert off.attempts == []
        assert on.objects == {"/a.jar": b"x"}
        assert counter.get(FILES_IGNORED) == 0


class TestExclusion:
    """Excluded paths never reach the destination."""

    def test_excluded_path_not_put(self, storage, marks, counter, make_client, make_dest) -> None:
        mirror = make_client("mirror")
        registry = DestinationRegistry([make_dest("mirror", mirror, exclusions=["*.md5"])])
        store = _store(storage, registry, marks, counter)

        store.store("releases", "/a.jar.md5", b"hash")
        store.store("releases", "/a.jar", b"jar")

        assert mirror.attempts == ["/a.jar"]
        assert counter.get(FILES_IGNORED) == 1

    def test_ignored_counted_per_destination(
        self, storage, marks, counter, make_client, make_dest
    ) -> None:
        a, b = make_client("a"), make_client("b")
        registry = DestinationRegistry(
            [make_dest("a", a, exclusions=["*.md5"]), make_dest("b", b, exclusions=["*.md5"])]
        )

        _store(storage, registry, marks, counter).store("releases", "/x.md5", b"h")

        assert counter.get(FILES_IGNORED) == 2
        assert a.attempts == [] and b.attempts == []


class TestRollback:
    """All-or-nothing behavior on remote failure."""

    def test_second_destination_fails(
        self, storage, two_registry, two_clients, marks, counter
    ) -> None:
        """Local file is written then deleted, caller sees a failure."""
        first, second = two_clients
        second.always_fail = True
        store = _store(storage, two_registry, marks, counter)

        with pytest.raises(RemoteWriteFailure) as exc_info:
            store.store("releases", "/a.jar", b"jar")

        assert exc_info.value.destination_id == "second"
        assert storage.exists("releases", "/a.jar") is False
        assert counter.get(FILES_FAILED) == 1
        assert counter.get(FILES_PUBLISHED) == 0
        assert marks.get("releases", "/a.jar") is False
        assert first.attempts == ["/a.jar"]
        assert second.attempts == ["/a.jar"]

    def test_stops_at_first_failure(
        self, storage, two_registry, two_clients, marks, counter
    ) -> None:
        """Destinations after the failing one are not attempted."""
        first, second = two_clients
        first.always_fail = True

        with pytest.raises(RemoteWriteFailure):
            _store(storage, two_registry, marks, counter).store("releases", "/a.jar", b"x")

        assert second.attempts == []

    def test_no_ignored_count_after_failure(
        self, storage, marks, counter, make_client, make_dest
    ) -> None:
        """Exclusions of destinations after the failing one are not evaluated."""
        a, b = make_client("a"), make_client("b")
        a.always_fail = True
        registry = DestinationRegistry([make_dest("a", a), make_dest("b", b, exclusions=["*.md5"])])

        with pytest.raises(RemoteWriteFailure):
            _store(storage, registry, marks, counter).store("releases", "/x.md5", b"h")

        assert counter.get(FILES_IGNORED) == 0
        assert counter.get(FILES_FAILED) == 1

    def test_parallel_keeps_all_or_nothing(
        self, storage, two_registry, two_clients, marks, counter
    ) -> None:
        first, second = two_clients
        second.always_fail = True
        store = _store(storage, two_registry, marks, counter, parallel=True)

        with pytest.raises(RemoteWriteFailure):
            store.store("releases", "/a.jar", b"x")

        assert storage.exists("releases", "/a.jar") is False
        assert counter.get(FILES_PUBLISHED) == 0

    def test_parallel_success(self, storage, two_registry, two_clients, marks, counter) -> None:
        _store(storage, two_registry, marks, counter, parallel=True).store(
            "releases", "/a.jar", b"x"
        )
        assert all(c.exists("/a.jar") for c in two_clients)
        assert marks.get("releases", "/a.jar") is True

    def test_failure_notifies(self, storage, registry, client, marks, counter) -> None:
        client.always_fail = True
        notifier = FailureNotifier()
        received = []
        notifier.subscribe(received.append)

        with pytest.raises(RemoteWriteFailure):
            _store(storage, registry, marks, counter, notifier=notifier).store(
                "releases", "/a.jar", b"x"
            )

        assert len(received) == 1
        assert received[0].type == NotificationType.ERROR
        assert received[0].details["destination"] == "primary"


class TestLocalFailure:
    """Local write failures abort before any remote call."""

    def test_local_failure_makes_no_remote_call(self, registry, client, marks, counter) -> None:
        storage = MagicMock(spec=LocalRepositoryStorage)
        storage.write.side_effect = OSError("disk full")

        with pytest.raises(LocalWriteFailure, match="Local write failed"):
            _store(storage, registry, marks, counter).store("releases", "/a.jar", b"x")

        assert client.attempts == []
        storage.delete.assert_not_called()
        assert counter.get(FILES_FAILED) == 1


class TestAtomicity:
    """Local existence matches remote existence on every target."""

    @pytest.mark.parametrize("failing", [None, "first", "second"])
    def test_local_iff_remote(
        self,
        storage,
        two_registry,
        two_clients,
        marks: PublishMarkStore,
        counter,
        failing: str | None,
    ) -> None:
        for client in two_clients:
            client.always_fail = client.name == failing
        store = _store(storage, two_registry, marks, counter)

        try:
            store.store("releases", "/a.jar", b"x")
        except RemoteWriteFailure:
            pass

        local = storage.exists("releases", "/a.jar")
        assert local == (failing is None)
        if local:
            assert all(c.exists("/a.jar") for c in two_clients)


class TestUnexpectedClientError:
    """Errors outside the replication contract still roll back."""

    def test_unexpected_error_rolls_back(self, storage, registry, client, marks, counter) -> None:
        client.on_put = MagicMock(side_effect=RuntimeError("sdk bug"))

        with pytest.raises(RemoteWriteFailure):
            _store(storage, registry, marks, counter).store("releases", "/a.jar", b"x")

        assert storage.exists("releases", "/a.jar") is False
        assert counter.get(FILES_FAILED) == 1
