"""
Text detection strategies for page-state signals.

The rate-limit banner and the email verification challenge are recognized
only by their UI copy. Each signal is a ``TextPattern`` so the copy (or the
matching rule) can be swapped through configuration when the feed changes it.
"""

import re
from typing import Iterable, Protocol


class TextPattern(Protocol):
    def matches(self, text: str) -> bool:
        ...


class ExactTextPattern:
    """Matches text equal to the expected copy (surrounding whitespace ignored)."""

    def __init__(self, expected: str):
        self.expected = expected.strip()

    def matches(self, text: str) -> bool:
        return (text or "").strip() == self.expected

    def __repr__(self) -> str:
        return f"ExactTextPattern({self.expected!r})"


class SubstringPattern:
    """Matches text containing the expected copy anywhere."""

    def __init__(self, needle: str):
        self.needle = needle

    def matches(self, text: str) -> bool:
        return self.needle in (text or "")

    def __repr__(self) -> str:
        return f"SubstringPattern({self.needle!r})"


class RegexPattern:
    """Matches text where the regular expression is found."""

    def __init__(self, pattern: str, flags: int = re.I):
        self.regex = re.compile(pattern, flags)

    def matches(self, text: str) -> bool:
        return self.regex.search(text or "") is not None

    def __repr__(self) -> str:
        return f"RegexPattern({self.regex.pattern!r})"


def any_match(pattern: TextPattern, texts: Iterable[str]) -> bool:
    """True when any of ``texts`` matches ``pattern``."""
    return any(pattern.matches(t) for t in texts)
