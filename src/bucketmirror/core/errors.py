"""Error taxonomy for bucketmirror.

Write-path failures (StorageFailure and subclasses) propagate to the caller
of DualWriteStore.store(). Scan-path failures are absorbed by the scanner,
except ScanCancelled and ScanAborted which end the scan.
"""

from __future__ import annotations


class BucketMirrorError(Exception):
    """Base class for all bucketmirror errors."""


class StorageFailure(BucketMirrorError):
    """A synchronous write could not be completed."""

    def __init__(self, repository_id: str, path: str, message: str) -> None:
        super().__init__(f"{message}: {repository_id}{path}")
        self.repository_id = repository_id
        self.path = path


class LocalWriteFailure(StorageFailure):
    """Local persistence failed; no remote attempt was made."""


class RemoteWriteFailure(StorageFailure):
    """A remote destination failed; the local write was rolled back."""

    def __init__(self, repository_id: str, path: str, destination_id: str) -> None:
        super().__init__(
            repository_id, path, f"Replication to '{destination_id}' failed"
        )
        self.destination_id = destination_id


class ReplicationError(BucketMirrorError):
    """Raised by a ReplicationClient when an object could not be stored."""


class LocalFileNotFoundError(BucketMirrorError):
    """Raised when a repository file does not exist locally."""


class ScanFileFailure(BucketMirrorError):
    """A single file could not be processed during a catch-up scan."""


class ScanCancelled(BucketMirrorError):
    """Cooperative stop request observed by a running scan."""


class ScanAborted(BucketMirrorError):
    """The scan lost access to the repository tree and stopped."""


class ConfigurationMissing(BucketMirrorError):
    """No destination is configured for the requested identifier."""
