from .enums import CountingStrategy, StoreBackend
from .errors import SlotNotAcquiredError, StoreError, TaskLimiterError
from .models import AcquireResult, HolderInfo

__all__ = [
    "AcquireResult",
    "HolderInfo",
    "CountingStrategy",
    "StoreBackend",
    "TaskLimiterError",
    "StoreError",
    "SlotNotAcquiredError",
]
