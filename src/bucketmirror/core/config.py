"""Configuration for bucketmirror.

Settings come from a JSON file and may be overridden by ``BUCKETMIRROR_*``
environment variables, the same way the server reads its storage settings.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, get_type_hints

ENV_PREFIX = "BUCKETMIRROR_"


@dataclass
class PublishConfig:
    """Runtime settings for the write path and the catch-up scanner.

    Attributes:
        storage_path: Base directory holding one sub-directory per repository.
        state_db_path: SQLite file holding the publish marks.
        destinations_file: JSON file describing the replication destinations.
        failure_sleep: Seconds to wait before retrying a failed upload.
        file_sleep: Seconds to wait between two files of a scan.
        repository_sleep: Seconds to wait before scanning each repository.
        notify_after: Consecutive failures on one file before notifying.
        parallel_writes: Replicate to all destinations concurrently.
        log_path: Optional log file in addition to stdout.
    """

    storage_path: Path = Path("storage")
    state_db_path: Path = Path("bucketmirror.db")
    destinations_file: Path = Path("destinations.json")
    failure_sleep: float = 10.0
    file_sleep: float = 0.0
    repository_sleep: float = 1.0
    notify_after: int = 10
    parallel_writes: bool = False
    log_path: Path | None = None

    def __post_init__(self) -> None:
        """Normalize paths and validate timings."""
        self.storage_path = Path(self.storage_path)
        self.state_db_path = Path(self.state_db_path)
        self.destinations_file = Path(self.destinations_file)
        if self.log_path is not None:
            self.log_path = Path(self.log_path)
        for name in ("failure_sleep", "file_sleep", "repository_sleep"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.notify_after < 1:
            raise ValueError("notify_after must be at least 1")


def _coerce(value: str, kind: Any) -> Any:
    """Convert an environment string to the declared type of its field."""
    if kind is bool:
        return value.strip().lower() in ("1", "true", "yes", "on")
    if kind is int:
        return int(value)
    if kind is float:
        return float(value)
    return value


def load_config(
    path: Path | str | None = None,
    environ: dict[str, str] | None = None,
) -> PublishConfig:
    """Load configuration from a JSON file and the environment.

    Args:
        path: JSON config file. Missing file means defaults.
        environ: Environment mapping (default: os.environ).

    Returns:
        Validated PublishConfig.

    Raises:
        ValueError: On unknown keys or invalid values.
    """
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    if path is not None:
        config_file = Path(path)
        if config_file.exists():
            values.update(json.loads(config_file.read_text(encoding="utf-8")))

    known = {f.name for f in fields(PublishConfig)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

    hints = get_type_hints(PublishConfig)
    for name in known:
        raw = env.get(ENV_PREFIX + name.upper())
        if raw is None:
            continue
        values[name] = _coerce(raw, hints[name])

    # Relative paths in the file are relative to the file itself
    if path is not None:
        base = Path(path).resolve().parent
        for name in ("storage_path", "state_db_path", "destinations_file", "log_path"):
            if values.get(name) and not Path(values[name]).is_absolute():
                values[name] = base / values[name]

    return PublishConfig(**values)
