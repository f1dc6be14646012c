"""Key naming contract shared by every store adapter.

A holder lives at ``"{prefix}:{postfix}"``; the task class namespace is
``"{prefix}:*"``. External tooling inspects keys by this pattern, so these
helpers are the only place that builds store keys.
"""

from __future__ import annotations

from datetime import timedelta
import math

SEPARATOR = ":"

_GLOB_SPECIALS = "\\*?[]"


def holder_key(prefix: str, postfix: str) -> str:
    return f"{prefix}{SEPARATOR}{postfix}"


def namespace(prefix: str) -> str:
    """Literal key prefix shared by all holders of a task class."""
    return f"{prefix}{SEPARATOR}"


def namespace_pattern(prefix: str) -> str:
    """Glob pattern matching every holder key of *prefix*.

    Glob metacharacters inside the prefix are escaped so that a task class named
    ``jobs[1]`` does not match keys of other classes.
    """
    escaped = "".join(f"\\{ch}" if ch in _GLOB_SPECIALS else ch for ch in prefix)
    return f"{escaped}{SEPARATOR}*"


def ledger_key(prefix: str) -> str:
    """Key of the per-class ledger used by the counter strategy.

    Holder keys always contain the separator, so a prefix without one can never
    collide with a holder of another class.
    """
    if SEPARATOR in prefix:
        raise ValueError(f"counter strategy prefix must not contain {SEPARATOR!r}, got {prefix!r}")
    return prefix


def postfix_of(prefix: str, key: str) -> str:
    return key[len(namespace(prefix)):]


def validate_identity(prefix: str, postfix: str) -> None:
    if not prefix:
        raise ValueError("prefix must be a non-empty string")
    if not postfix:
        raise ValueError("postfix must be a non-empty string")


def timeout_to_ms(timeout: float | timedelta) -> int:
    """Convert a holder timeout to whole milliseconds, rounding up."""
    seconds = timeout.total_seconds() if isinstance(timeout, timedelta) else float(timeout)
    if not seconds > 0:
        raise ValueError(f"timeout must be positive, got {timeout!r}")
    return max(1, math.ceil(seconds * 1000))
