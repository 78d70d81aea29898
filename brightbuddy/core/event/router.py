"""
Wildcard matching for event names.

``*`` matches any run of characters, dots included, so ``"subscription.*"``
catches every subscription event and ``"*"`` catches everything. Every
other character is literal and matching is case-sensitive.
"""

from __future__ import annotations

import re
from functools import lru_cache


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(".*".join(re.escape(piece) for piece in pattern.split("*")), re.DOTALL)


class EventRouter:
    """
    Stateless wildcard matcher.

    >>> router = EventRouter()
    >>> router.matches("subscription.upgraded", "subscription.*")
    True
    >>> router.matches("activity.completed", "achievement.*")
    False
    """

    def matches(self, event_name: str, pattern: str) -> bool:
        if "*" not in pattern:
            return event_name == pattern
        return _compile(pattern).fullmatch(event_name) is not None
