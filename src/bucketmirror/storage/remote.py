"""Replication clients for remote object storage.

This module provides:
- Abstract interface for storing one file on one destination
- S3ReplicationClient for production (AWS, OVH, MinIO)
- LocalFSReplicationClient for development/testing
- store_item: success/failure wrapper used by the write path and the scanner
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from bucketmirror.core.errors import ReplicationError

if TYPE_CHECKING:
    from typing import Any

    from bucketmirror.core.schemas import StorageSchema

logger = logging.getLogger(__name__)


class ReplicationClient(ABC):
    """Abstract interface for a remote replication target."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Return a human-readable description of the remote target."""

    @abstractmethod
    def put(self, path: str, data: bytes) -> None:
        """Store an object.

        Args:
            path: Repository-relative path (``/group/artifact/file``).
            data: File content.

        Raises:
            ReplicationError: If the object could not be stored.
        """

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Check if an object exists on the remote target."""


def store_item(client: ReplicationClient, path: str, data: bytes) -> bool:
    """Store one file to one destination.

    Returns:
        True on success, False if the remote store reported a failure.
    """
    try:
        client.put(path, data)
    except ReplicationError as e:
        logger.warning("Replication of %s to %s failed: %s", path, client.location, e)
        return False
    logger.debug("Replicated %s to %s (%d bytes)", path, client.location, len(data))
    return True


class S3ReplicationClient(ReplicationClient):
    """S3-compatible replication target."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str = "us-east-1",
    ) -> None:
        """Initialize the S3 client.

        Args:
            bucket: S3 bucket name.
            prefix: Key prefix prepended to every repository path.
            endpoint_url: Custom endpoint URL (for OVH, MinIO, etc.).
            access_key: AWS access key ID.
            secret_key: AWS secret access key.
            region: AWS region (default: us-east-1).
        """
        import boto3

        self._bucket = bucket
        self._prefix = prefix.strip("/")
        self._endpoint_url = endpoint_url
        self._client: Any = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
        )

    @property
    def location(self) -> str:
        """Return the S3 bucket location."""
        if self._endpoint_url:
            return f"S3: {self._endpoint_url}/{self._bucket}"
        return f"S3: s3://{self._bucket}"

    def _key(self, path: str) -> str:
        """Get the S3 key for a repository path."""
        key = path.lstrip("/")
        if self._prefix:
            return f"{self._prefix}/{key}"
        return key

    def put(self, path: str, data: bytes) -> None:
        """Store an object."""
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=self._key(path),
                Body=data,
            )
        except (BotoCoreError, ClientError) as e:
            raise ReplicationError(f"S3 put failed for {self._key(path)}: {e}") from e

    def exists(self, path: str) -> bool:
        """Check if an object exists."""
        from botocore.exceptions import ClientError

        try:
            self._client.head_object(
                Bucket=self._bucket,
                Key=self._key(path),
            )
            return True
        except ClientError:
            return False


class LocalFSReplicationClient(ReplicationClient):
    """Mirror a repository into a local directory (development and tests)."""

    def __init__(self, base_path: Path | str) -> None:
        self._base_path = Path(base_path).resolve()
        self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def location(self) -> str:
        """Return the local mirror path."""
        return f"Local mirror: {self._base_path}"

    def _object_path(self, path: str) -> Path:
        return self._base_path / path.lstrip("/")

    def put(self, path: str, data: bytes) -> None:
        """Store an object."""
        target = self._object_path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise ReplicationError(f"Local mirror write failed for {path}: {e}") from e

    def exists(self, path: str) -> bool:
        """Check if an object exists."""
        return self._object_path(path).is_file()


def create_client(config: StorageSchema) -> ReplicationClient:
    """Factory function to create a replication client from configuration.

    Raises:
        ValueError: If the configuration is incomplete.
    """
    if config.type == "local":
        if not config.local_path:
            raise ValueError("Local replication requires 'local_path' configuration")
        return LocalFSReplicationClient(config.local_path)

    if not config.bucket:
        raise ValueError("S3 replication requires 'bucket' configuration")
    return S3ReplicationClient(
        bucket=config.bucket,
        prefix=config.prefix,
        endpoint_url=config.endpoint_url,
        access_key=config.access_key,
        secret_key=config.secret_key,
        region=config.region,
    )
