"""Core module - configuration, schemas, errors and shared types."""

from bucketmirror.core.config import PublishConfig, load_config
from bucketmirror.core.errors import (
    BucketMirrorError,
    ConfigurationMissing,
    LocalFileNotFoundError,
    LocalWriteFailure,
    RemoteWriteFailure,
    ReplicationError,
    ScanAborted,
    ScanCancelled,
    ScanFileFailure,
    StorageFailure,
)
from bucketmirror.core.types import DestinationState, ScanMode

__all__ = [
    # Config
    "PublishConfig",
    "load_config",
    # Errors
    "BucketMirrorError",
    "ConfigurationMissing",
    "LocalFileNotFoundError",
    "LocalWriteFailure",
    "RemoteWriteFailure",
    "ReplicationError",
    "ScanAborted",
    "ScanCancelled",
    "ScanFileFailure",
    "StorageFailure",
    # Types
    "DestinationState",
    "ScanMode",
]
