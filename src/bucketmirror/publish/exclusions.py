"""Exclusion rules for replication destinations.

This module provides:
- ExclusionRules: decides whether a repository path is excluded from a destination
"""

from __future__ import annotations

import fnmatch
import re

REGEX_PREFIX = "re:"


class ExclusionRules:
    """Immutable set of exclusion patterns.

    Patterns are globs matched against the repository path (``/a/b/c.jar``):
    - ``re:<expr>`` is a regular expression searched in the path
    - patterns containing ``/`` match the whole path (a missing leading
      ``/`` is added, ``**`` crosses directories)
    - patterns ending with ``/`` exclude a directory and everything below
    - other patterns match the file name or any path component
    """

    def __init__(self, patterns: list[str] | tuple[str, ...] | None = None) -> None:
        self._patterns = tuple(p.strip() for p in patterns or () if p.strip())
        self._regexes = tuple(
            re.compile(p[len(REGEX_PREFIX):]) for p in self._patterns if p.startswith(REGEX_PREFIX)
        )
        self._globs = tuple(p for p in self._patterns if not p.startswith(REGEX_PREFIX))

    @property
    def patterns(self) -> tuple[str, ...]:
        """Return the configured patterns."""
        return self._patterns

    def __bool__(self) -> bool:
        return bool(self._patterns)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ExclusionRules):
            return NotImplemented
        return self._patterns == other._patterns

    def __hash__(self) -> int:
        return hash(self._patterns)

    def __repr__(self) -> str:
        return f"ExclusionRules({list(self._patterns)!r})"

    def is_excluded(self, path: str) -> bool:
        """Check if a repository path is excluded.

        Args:
            path: Repository-relative path.

        Returns:
            True if any rule matches.
        """
        rel_str = "/" + path.replace("\\", "/").lstrip("/")
        components = rel_str.strip("/").split("/")

        for regex in self._regexes:
            if regex.search(rel_str):
                return True

        for pattern in self._globs:
            # Directory pattern: exclude everything below
            if pattern.endswith("/"):
                directory = "/" + pattern.strip("/")
                if "/" in pattern.strip("/"):
                    if fnmatch.fnmatchcase(rel_str, directory + "/*"):
                        return True
                elif any(fnmatch.fnmatchcase(c, directory[1:]) for c in components[:-1]):
                    return True
            elif "/" in pattern:
                anchored = pattern if pattern.startswith("/") else "/" + pattern
                if fnmatch.fnmatchcase(rel_str, anchored):
                    return True
                # "a/**/b" also matches "a/b"
                if "/**/" in anchored and fnmatch.fnmatchcase(
                    rel_str, anchored.replace("/**/", "/")
                ):
                    return True
            elif any(fnmatch.fnmatchcase(c, pattern) for c in components):
                return True

        return False
