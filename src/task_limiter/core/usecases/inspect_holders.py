from __future__ import annotations

from typing import Sequence

from ..domain.models import HolderInfo
from ..ports.store_port import HolderStorePort


class InspectHoldersUseCase:
    """Read-only view of a task class for tooling; never used to admit."""

    def __init__(self, store: HolderStorePort) -> None:
        self._store = store

    def count(self, prefix: str) -> int:
        if not prefix:
            raise ValueError("prefix must be a non-empty string")
        return self._store.count(prefix)

    def holders(self, prefix: str) -> Sequence[HolderInfo]:
        if not prefix:
            raise ValueError("prefix must be a non-empty string")
        return sorted(self._store.holders(prefix), key=lambda h: h.postfix)
