"""Publish counters.

Counters are kept twice: per run and for the whole process lifetime. Each
scan run counts into its own ``scope()`` of the shared counter, so concurrent
runs never clear each other's numbers; a scope rolls every increment up to
its parent. Gauges are callables read at report time.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

FILES_SCANNED = "files_scanned"
FILES_PUBLISHED = "files_published"
FILES_IGNORED = "files_ignored"
FILES_RETRIED = "files_retried"
FILES_FAILED = "files_failed"
BYTES_SCANNED = "bytes_scanned"
BYTES_PUBLISHED = "bytes_published"
SCAN_RUNS = "scan_runs"

COUNTER_NAMES = (
    FILES_SCANNED,
    FILES_PUBLISHED,
    FILES_IGNORED,
    FILES_RETRIED,
    FILES_FAILED,
    BYTES_SCANNED,
    BYTES_PUBLISHED,
    SCAN_RUNS,
)


def _format_bytes(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024:
            return f"{value:.1f} {unit}" if unit != "B" else f"{size} B"
        value /= 1024
    return f"{value:.1f} TB"


class PublishCounter:
    """Thread-safe named counters and gauges.

    Usage:
        counter = PublishCounter()
        counter.increment(FILES_PUBLISHED)
        counter.add_bytes(BYTES_PUBLISHED, 1024)
        print(counter.report())
    """

    def __init__(self, parent: PublishCounter | None = None) -> None:
        self._parent = parent
        self._lock = threading.Lock()
        self._run: dict[str, int] = dict.fromkeys(COUNTER_NAMES, 0)
        self._totals: dict[str, int] = dict.fromkeys(COUNTER_NAMES, 0)
        self._gauges: dict[str, Callable[[], Any]] = {}
        self._last_file: str | None = None

    def increment(self, name: str, delta: int = 1) -> None:
        """Increase a counter.

        Raises:
            ValueError: If delta is negative.
        """
        if delta < 0:
            raise ValueError(f"Counter '{name}' cannot decrease (delta={delta})")
        with self._lock:
            self._run[name] = self._run.get(name, 0) + delta
            self._totals[name] = self._totals.get(name, 0) + delta
        if self._parent is not None:
            self._parent.increment(name, delta)

    def add_bytes(self, name: str, n: int) -> None:
        """Add a byte amount to a counter."""
        self.increment(name, n)

    def peek(self, path: str) -> None:
        """Record the file currently being processed."""
        with self._lock:
            self._last_file = path
        if self._parent is not None:
            self._parent.peek(path)

    def scope(self) -> PublishCounter:
        """Create a child counter whose increments also count here."""
        return PublishCounter(parent=self)

    def reset(self) -> None:
        """Clear the per-run counters. Lifetime totals are kept."""
        with self._lock:
            self._run = dict.fromkeys(COUNTER_NAMES, 0)
            self._last_file = None

    def get(self, name: str) -> int:
        """Get a per-run counter value."""
        with self._lock:
            return self._run.get(name, 0)

    def total(self, name: str) -> int:
        """Get a lifetime counter value."""
        if self._parent is not None:
            return self._parent.total(name)
        with self._lock:
            return self._totals.get(name, 0)

    def _lifetime(self) -> dict[str, int]:
        if self._parent is not None:
            return self._parent._lifetime()
        with self._lock:
            return dict(self._totals)

    @property
    def last_file(self) -> str | None:
        """Return the last file recorded with peek()."""
        return self._last_file

    def register_gauge(self, name: str, read: Callable[[], Any]) -> None:
        """Register a named gauge, replacing any gauge with the same name."""
        with self._lock:
            self._gauges[name] = read

    def snapshot(self) -> dict[str, Any]:
        """Get a copy of all values.

        Returns:
            Dict with "run", "totals" and "gauges" entries.
        """
        with self._lock:
            run = dict(self._run)
            gauges = dict(self._gauges)
            last_file = self._last_file
        totals = self._lifetime()

        values: dict[str, Any] = {}
        for name, read in gauges.items():
            try:
                values[name] = read()
            except Exception:
                logger.exception("Gauge '%s' failed", name)
                values[name] = "UNKNOWN"
        values["last_file"] = last_file
        return {"run": run, "totals": totals, "gauges": values}

    def report(self) -> str:
        """Render a human-readable snapshot."""
        snap = self.snapshot()
        lines = ["-- publish report --"]
        for name, value in snap["gauges"].items():
            lines.append(f"{name:>18} : {value}")
        for name in sorted(snap["run"]):
            run = snap["run"][name]
            total = snap["totals"][name]
            if name.startswith("bytes_"):
                lines.append(f"{name:>18} : {_format_bytes(run)} (total {_format_bytes(total)})")
            else:
                lines.append(f"{name:>18} : {run} (total {total})")
        return "\n".join(lines)
