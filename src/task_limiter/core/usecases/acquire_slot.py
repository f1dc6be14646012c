from __future__ import annotations

import logging
from datetime import timedelta

from ..domain.models import AcquireResult
from ..ports.store_port import HolderStorePort
from ...shared.keys import holder_key, timeout_to_ms, validate_identity

logger = logging.getLogger(__name__)


class AcquireSlotUseCase:
    """Admission controller: admit a holder only while the task class has room.

    The outcome is one of three: acquired, denied (pool full) or already held
    (the same identity is still recorded). Only store failures raise.
    """

    def __init__(self, store: HolderStorePort) -> None:
        self._store = store

    def execute(
        self,
        prefix: str,
        postfix: str,
        allowed_concurrent_tasks: int,
        timeout: float | timedelta,
    ) -> AcquireResult:
        validate_identity(prefix, postfix)
        if allowed_concurrent_tasks < 1:
            raise ValueError(f"allowed_concurrent_tasks must be >= 1, got {allowed_concurrent_tasks}")
        ttl_ms = timeout_to_ms(timeout)

        result = self._store.try_acquire(prefix, postfix, allowed_concurrent_tasks, ttl_ms)
        key = holder_key(prefix, postfix)
        if result.acquired:
            logger.debug(f"Acquired {key} (limit={allowed_concurrent_tasks}, ttl={ttl_ms}ms)")
        elif result.already_held:
            logger.debug(f"{key} is already held; duplicate acquire")
        else:
            logger.debug(f"Denied {key}: {prefix} is at capacity ({allowed_concurrent_tasks})")
        return result
