"""Wildcard matching of IAM actions and resource ARNs."""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache


@lru_cache(maxsize=4096)
def _compile(pattern: str, ignore_case: bool) -> re.Pattern[str]:
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    flags = re.DOTALL | (re.IGNORECASE if ignore_case else 0)
    return re.compile("".join(parts), flags)


def matches_action(pattern: str, action: str) -> bool:
    """Whether an action pattern such as ``s3:Get*`` covers ``action``.

    Action names are compared without regard to case.
    """
    if pattern == "*":
        return True
    return _compile(pattern, True).fullmatch(action) is not None


def matches_resource(pattern: str, arn: str) -> bool:
    """Whether a resource pattern with ``*`` and ``?`` wildcards covers ``arn``."""
    if pattern == "*":
        return True
    return _compile(pattern, False).fullmatch(arn) is not None


def matches_not_action(patterns: Iterable[str], action: str) -> bool:
    """Whether a statement with these ``NotAction`` patterns applies to ``action``.

    True when no pattern excludes the action.
    """
    return not any(matches_action(pattern, action) for pattern in patterns)


def matches_not_resource(patterns: Iterable[str], arn: str) -> bool:
    """Whether a statement with these ``NotResource`` patterns applies to ``arn``.

    True when no pattern excludes the resource.
    """
    return not any(matches_resource(pattern, arn) for pattern in patterns)