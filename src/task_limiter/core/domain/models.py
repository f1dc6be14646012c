from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ...shared.keys import holder_key


@dataclass(frozen=True)
class AcquireResult:
    acquired: bool
    already_held: bool = False

    @property
    def denied(self) -> bool:
        """Pool was full; the ordinary backpressure outcome."""
        return not self.acquired and not self.already_held

    def __bool__(self) -> bool:
        return self.acquired

    @staticmethod
    def granted() -> "AcquireResult":
        return AcquireResult(acquired=True, already_held=False)

    @staticmethod
    def full() -> "AcquireResult":
        return AcquireResult(acquired=False, already_held=False)

    @staticmethod
    def held() -> "AcquireResult":
        return AcquireResult(acquired=False, already_held=True)


@dataclass(frozen=True)
class HolderInfo:
    prefix: str
    postfix: str
    ttl_seconds: Optional[float] = None  # remaining lifetime, None if unknown

    @property
    def key(self) -> str:
        return holder_key(self.prefix, self.postfix)
