"""Publish marks.

This module provides:
- PublishMarkStore: SQLite-backed record of files already replicated

Architecture:
    A mark is keyed by (repository id, repository path). It only records
    that the path was published; content changes are not detected. Marks
    only go from unset to set, unless cleared explicitly.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from pathlib import Path

from bucketmirror.storage.local import normalize_path

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


class PublishMarkStore:
    """Durable publish marks shared by the write path and the scanner."""

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the mark database.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        if str(db_path) == MEMORY:
            target = MEMORY
        else:
            self._db_path = Path(db_path)
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(self._db_path)

        # Lock for thread-safe database access
        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            target,
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row

        if target != MEMORY:
            self._conn.execute("PRAGMA journal_mode=WAL")

        self._create_tables()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS publish_marks (
                repository_id TEXT NOT NULL,
                path TEXT NOT NULL,
                published_at REAL NOT NULL,
                PRIMARY KEY (repository_id, path)
            );
        """)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def get(self, repository_id: str, path: str) -> bool:
        """Check if a file is marked as published."""
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM publish_marks WHERE repository_id = ? AND path = ?",
                (repository_id, normalize_path(path)),
            ).fetchone()
        return row is not None

    def set(self, repository_id: str, path: str) -> None:
        """Mark a file as published. Setting an existing mark is a no-op."""
        with self._lock:
            self._conn.execute(
                """
                INSERT OR IGNORE INTO publish_marks (repository_id, path, published_at)
                VALUES (?, ?, ?)
                """,
                (repository_id, normalize_path(path), time.time()),
            )

    def clear(self, repository_id: str, path: str) -> bool:
        """Remove a mark so the next scan publishes the file again.

        Returns:
            True if a mark was removed.
        """
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM publish_marks WHERE repository_id = ? AND path = ?",
                (repository_id, normalize_path(path)),
            )
        removed = cursor.rowcount > 0
        if removed:
            logger.info("Publish mark cleared: %s%s", repository_id, normalize_path(path))
        return removed

    def count(self, repository_id: str) -> int:
        """Count the marked files of a repository."""
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM publish_marks WHERE repository_id = ?",
                (repository_id,),
            ).fetchone()
        return int(row[0])

    def list_paths(self, repository_id: str) -> list[str]:
        """List the marked paths of a repository, sorted."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT path FROM publish_marks WHERE repository_id = ? ORDER BY path",
                (repository_id,),
            ).fetchall()
        return [row["path"] for row in rows]
