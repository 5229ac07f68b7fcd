"""Tag filter evaluation.

Patterns are matched against the short tag name (`v1.2.0`, not
`refs/tags/v1.2.0`), in order; the last matching pattern decides. Only tag
refs can match. Pattern syntax is described in tagrel.core.patterns.
"""

from __future__ import annotations

from dataclasses import dataclass

from tagrel.core.patterns import compile_pattern, split_negation
from tagrel.pipeline.model import TriggerEvent

__all__ = ["TagFilter", "compile_pattern"]


@dataclass(frozen=True, slots=True)
class TagFilter:
    """Ordered list of tag patterns, as in `on.push.tags`."""

    patterns: tuple[str, ...] = ("v*",)

    def matches_tag(self, tag: str) -> bool:
        """Return True if the last pattern matching tag is a positive one."""
        matched = False
        for raw in self.patterns:
            negated, pattern = split_negation(raw)
            if compile_pattern(pattern).match(tag):
                matched = not negated
        return matched

    def matches(self, event: TriggerEvent) -> bool:
        tag = event.tag
        if tag is None:
            return False
        return self.matches_tag(tag)
