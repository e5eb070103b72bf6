"""Glob matching for package names.

Only ``*`` is special: it matches zero or more characters. Patterns are
anchored at both ends, and every other character (including ``.``) is
matched literally. This is deliberately narrower than fnmatch, which would
also treat ``?`` and ``[...]`` as wildcards.
"""

from __future__ import annotations

import re
from collections.abc import Iterable


class GlobMatcher:
    """Matches names against ``*`` patterns, caching compiled regexes.

    The cache belongs to the instance, so a matcher can be created per run
    (or per test) without sharing state.
    """

    def __init__(self) -> None:
        self._cache: dict[str, re.Pattern[str]] = {}

    def _compile(self, pattern: str) -> re.Pattern[str]:
        regex = self._cache.get(pattern)
        if regex is None:
            escaped = ".*".join(re.escape(part) for part in pattern.split("*"))
            regex = re.compile(escaped, re.DOTALL)
            self._cache[pattern] = regex
        return regex

    def matches(self, name: str, pattern: str) -> bool:
        """Return True if the whole name matches the pattern.

        Examples:
            matches("@storybook/react", "*storybook*") → True
            matches("rolldown-vite", "vite*") → False
        """
        return self._compile(pattern).fullmatch(name) is not None

    def matches_any(self, name: str, patterns: Iterable[str]) -> bool:
        """Return True if at least one pattern matches the name."""
        return any(self.matches(name, pattern) for pattern in patterns)
