"""task_limiter package: app/core/infra/shared.

Expose library-friendly API client at the package level.
"""

from .app.api import AppConfig, TaskLimiterClient
from .core.domain import (
    AcquireResult,
    CountingStrategy,
    HolderInfo,
    SlotNotAcquiredError,
    StoreBackend,
    StoreError,
    TaskLimiterError,
)

import logging

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = [
    "TaskLimiterClient",
    "AppConfig",
    "AcquireResult",
    "HolderInfo",
    "CountingStrategy",
    "StoreBackend",
    "TaskLimiterError",
    "StoreError",
    "SlotNotAcquiredError",
]
