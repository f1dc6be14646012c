from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import AcquireResult


class TaskLimiterError(Exception):
    """Base class for task_limiter errors."""


class StoreError(TaskLimiterError):
    """The shared store was unreachable, timed out or rejected a command.

    When raised from an acquire, the holder record may or may not have been
    created.
    """


class SlotNotAcquiredError(TaskLimiterError):
    def __init__(self, prefix: str, postfix: str, result: "AcquireResult") -> None:
        reason = "already held" if result.already_held else "pool is full"
        super().__init__(f"Could not acquire slot {prefix}:{postfix} ({reason})")
        self.prefix = prefix
        self.postfix = postfix
        self.result = result
