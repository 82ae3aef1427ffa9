"""Local repository storage.

Each repository lives in its own sub-directory of the base path. Paths
inside a repository are repository-relative and use ``/`` separators; a
leading ``/`` is accepted and ignored.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path

from bucketmirror.core.errors import LocalFileNotFoundError

logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    """Return a repository path in its canonical ``/a/b`` form.

    Raises:
        ValueError: If the path is empty or escapes the repository.
    """
    parts = [p for p in path.replace("\\", "/").split("/") if p and p != "."]
    if not parts:
        raise ValueError(f"Empty repository path: {path!r}")
    if ".." in parts:
        raise ValueError(f"Repository path escapes its root: {path!r}")
    return "/" + "/".join(parts)


class LocalRepositoryStorage:
    """Filesystem persistence for repository files.

    Reads immediately see preceding writes; all calls are synchronous.
    """

    def __init__(self, base_path: Path | str) -> None:
        """Initialize local storage.

        Args:
            base_path: Base directory for all repositories.
        """
        self._base_path = Path(base_path).resolve()
        self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def location(self) -> str:
        """Return the local storage path."""
        return f"Local filesystem: {self._base_path}"

    def root(self, repository_id: str) -> Path:
        """Get the storage root of a repository.

        Raises:
            ValueError: If the id is not a single directory name.
        """
        if (
            not repository_id
            or repository_id in (".", "..")
            or "/" in repository_id
            or "\\" in repository_id
        ):
            raise ValueError(f"Invalid repository id: {repository_id!r}")
        return self._base_path / repository_id

    def file_path(self, repository_id: str, path: str) -> Path:
        """Get the filesystem path of a repository file."""
        return self.root(repository_id) / normalize_path(path).lstrip("/")

    def relative_path(self, repository_id: str, file: Path) -> str:
        """Get the repository path of a file below the repository root."""
        rel = Path(file).relative_to(self.root(repository_id))
        return normalize_path(rel.as_posix())

    def write(self, repository_id: str, path: str, data: bytes) -> None:
        """Store a file, replacing any previous content.

        Raises:
            OSError: If the file cannot be written.
        """
        target = self.file_path(repository_id, path)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(f".{target.name}.tmp")
        tmp.write_bytes(data)
        os.replace(tmp, target)

    def read(self, repository_id: str, path: str) -> bytes:
        """Read a file.

        Raises:
            LocalFileNotFoundError: If the file doesn't exist.
        """
        target = self.file_path(repository_id, path)
        if not target.is_file():
            raise LocalFileNotFoundError(f"File not found: {repository_id}{normalize_path(path)}")
        return target.read_bytes()

    def exists(self, repository_id: str, path: str) -> bool:
        """Check if a file exists."""
        return self.file_path(repository_id, path).is_file()

    def length(self, repository_id: str, path: str) -> int:
        """Get the size of a file in bytes.

        Raises:
            LocalFileNotFoundError: If the file doesn't exist.
        """
        target = self.file_path(repository_id, path)
        if not target.is_file():
            raise LocalFileNotFoundError(f"File not found: {repository_id}{normalize_path(path)}")
        return target.stat().st_size

    def delete(self, repository_id: str, path: str) -> bool:
        """Delete a file.

        Returns:
            True if the file was deleted, False if it didn't exist.
        """
        target = self.file_path(repository_id, path)
        if target.is_file():
            target.unlink()
            return True
        return False

    def walk(self, repository_id: str) -> Iterator[str]:
        """Yield the repository paths of all files, in directory order.

        Directories are visited top-down with names sorted, so the order is
        stable for a given tree. Symlinks and temporary write files are
        skipped.

        Raises:
            FileNotFoundError: If the repository root doesn't exist.
        """
        root = self.root(repository_id)
        if not root.is_dir():
            raise FileNotFoundError(f"Repository root not found: {root}")

        def _raise(error: OSError) -> None:
            raise error

        for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
            dirnames.sort()
            for name in sorted(filenames):
                file = Path(dirpath) / name
                if file.is_symlink() or (name.startswith(".") and name.endswith(".tmp")):
                    continue
                yield self.relative_path(repository_id, file)
