"""Storage module - local repository files, remote clients and the dual-write path."""

from bucketmirror.storage.dual_write import DualWriteStore
from bucketmirror.storage.local import LocalRepositoryStorage, normalize_path
from bucketmirror.storage.remote import (
    LocalFSReplicationClient,
    ReplicationClient,
    S3ReplicationClient,
    create_client,
    store_item,
)

__all__ = [
    "DualWriteStore",
    "LocalFSReplicationClient",
    "LocalRepositoryStorage",
    "ReplicationClient",
    "S3ReplicationClient",
    "create_client",
    "normalize_path",
    "store_item",
]
