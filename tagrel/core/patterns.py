"""Ref filter patterns in the hosted CI syntax.

    *       any characters except "/"
    **      any characters
    ?       zero or one of the preceding character
    +       one or more of the preceding character
    [a-z]   character class
    !pat    negation (later patterns override earlier ones)
    \\x     literal x
"""

from __future__ import annotations

import re
from functools import lru_cache

__all__ = ["compile_pattern", "split_negation", "validate_patterns"]

# Tokens a ? or + quantifier may not follow.
_WILDCARDS = frozenset({"[^/]*", ".*"})


def split_negation(raw: str) -> tuple[bool, str]:
    """Example: split_negation("!v*-rc*") -> (True, "v*-rc*")"""
    if raw.startswith("!"):
        return True, raw[1:]
    return False, raw


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile one filter pattern (without leading !) to an anchored regex.

    Raises:
        ValueError: the pattern has an invalid character class.
    """
    tokens: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "\\" and i + 1 < n:
            tokens.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if c == "*":
            if i + 1 < n and pattern[i + 1] == "*":
                tokens.append(".*")
                i += 2
            else:
                tokens.append("[^/]*")
                i += 1
            continue
        if c in "?+":
            if tokens and tokens[-1] not in _WILDCARDS and not tokens[-1].endswith(("?", "+")):
                tokens[-1] = f"(?:{tokens[-1]}){c}"
            else:
                tokens.append(re.escape(c))
            i += 1
            continue
        if c == "[":
            end = pattern.find("]", i + 1)
            if end > i + 1:
                body = pattern[i + 1 : end].replace("\\", "\\\\")
                tokens.append(f"[{body}]")
                i = end + 1
                continue
        tokens.append(re.escape(c))
        i += 1
    try:
        return re.compile("".join(tokens) + r"\Z")
    except re.error as e:
        raise ValueError(f"invalid tag pattern {pattern!r}: {e}") from e


def validate_patterns(patterns: tuple[str, ...]) -> None:
    """Raise ValueError naming the first pattern that does not compile."""
    for raw in patterns:
        _, pattern = split_negation(raw)
        if not pattern:
            raise ValueError(f"invalid tag pattern {raw!r}: empty")
        compile_pattern(pattern)
