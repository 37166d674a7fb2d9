"""
Glob matching for channel and participant names.

Patterns use * to match any run of characters (including none) and ? to match
exactly one character. Every other character, dots included, matches itself.
A pattern with neither wildcard is compared with plain string equality.

Compiled expressions are cached per pattern string. Matching a candidate is
always candidate-vs-one-pattern and never depends on previously seen patterns.
"""

import functools
import re


WILDCARD = "*"
"""The pattern matching every candidate."""

_WILDCARD_CHARS = frozenset("*?")


def is_pattern(text: str) -> bool:
    """Returns True if text contains a * or ? wildcard."""
    return any(char in _WILDCARD_CHARS for char in text)


@functools.lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern:
    """Translate a glob pattern into an anchored regular expression."""
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))

    return re.compile("".join(parts), re.DOTALL)


def matches(candidate: str, pattern: str) -> bool:
    """
    Check if a candidate string matches a glob pattern.

    Args:
        candidate (str): The literal channel or participant name.
        pattern (str): The pattern to test against.
    Returns:
        bool: True if the whole candidate matches the pattern.
    Example:
        >>> matches("test.a", "test.?")
        True
        >>> matches("aXb", "a.b")
        False
    """
    if not is_pattern(pattern):
        return candidate == pattern

    return _compile(pattern).fullmatch(candidate) is not None
