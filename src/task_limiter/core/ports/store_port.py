from __future__ import annotations

from typing import Protocol, Sequence

from ..domain.models import AcquireResult, HolderInfo


class HolderStorePort(Protocol):
    """Shared store holding the holder records of every task class.

    Implementations must evaluate ``try_acquire`` as one atomic unit against the
    store: existence check, live count and record creation may not be split
    across round trips.
    """

    def try_acquire(self, prefix: str, postfix: str, limit: int, ttl_ms: int) -> AcquireResult:
        """Record (prefix, postfix) for ttl_ms if fewer than limit holders are live."""

    def release(self, prefix: str, postfix: str) -> None:
        """Remove the holder record. Missing or expired records are a no-op."""

    def count(self, prefix: str) -> int:
        """Return the number of live holders of the task class."""
        ...

    def holders(self, prefix: str) -> Sequence[HolderInfo]:
        """Return live holders of the task class with their remaining TTL."""
        ...
