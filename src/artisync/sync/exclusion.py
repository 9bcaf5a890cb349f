"""
Exclusion rules for archive paths.

Every pattern is a regular expression that must match the *whole* path:
``data\\.json`` excludes ``data.json`` but not ``sub/data.json``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from artisync.utils.logging import get_logger

logger = get_logger("artisync.sync.exclusion")


class ExclusionMatcher:
    """Exclusion patterns compiled once per job."""

    def __init__(self, patterns: Iterable[str] | None = None):
        self.patterns: tuple[str, ...] = tuple(patterns or ())
        self._compiled: list[re.Pattern[str]] = []
        self.invalid: list[str] = []
        for pattern in self.patterns:
            try:
                self._compiled.append(re.compile(pattern))
            except re.error as e:
                # A broken rule must not take the job down: it simply never matches
                logger.warning(f"Ignoring invalid exclude pattern {pattern!r}: {e}")
                self.invalid.append(pattern)

    def matches(self, path: str) -> bool:
        """Return True if any pattern matches the entire path."""
        return any(regex.fullmatch(path) is not None for regex in self._compiled)

    __call__ = matches

    def __repr__(self) -> str:
        return f"ExclusionMatcher({list(self.patterns)!r})"


def is_excluded(path: str, patterns: Iterable[str] | None) -> bool:
    """
    One-shot check of ``path`` against ``patterns``.

    Prefer building an ExclusionMatcher when checking many paths.
    """
    return ExclusionMatcher(patterns).matches(path)
