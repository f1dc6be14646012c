from __future__ import annotations

import logging
from datetime import timedelta

from .acquire_slot import AcquireSlotUseCase
from ..domain.models import AcquireResult
from ..ports.clock_port import ClockPort

logger = logging.getLogger(__name__)


class AcquireWithRetryUseCase:
    """Poll the admission controller with exponential backoff.

    This sits on top of the acquire/release protocol: a denied attempt is retried
    until ``wait_seconds`` elapses. An already-held answer is returned at once,
    since waiting cannot change it. Store errors propagate on the first failure.
    """

    def __init__(self, acquire: AcquireSlotUseCase, clock: ClockPort) -> None:
        self._acquire = acquire
        self._clock = clock

    def execute(
        self,
        prefix: str,
        postfix: str,
        allowed_concurrent_tasks: int,
        timeout: float | timedelta,
        *,
        wait_seconds: float,
        initial_delay: float = 0.05,
        max_delay: float = 2.0,
        multiplier: float = 2.0,
    ) -> AcquireResult:
        if wait_seconds < 0:
            raise ValueError(f"wait_seconds must be >= 0, got {wait_seconds}")
        if initial_delay <= 0 or multiplier < 1.0:
            raise ValueError("initial_delay must be positive and multiplier >= 1")

        deadline = self._clock.monotonic() + wait_seconds
        delay = initial_delay
        attempt = 1
        while True:
            result = self._acquire.execute(prefix, postfix, allowed_concurrent_tasks, timeout)
            if result.acquired or result.already_held:
                return result

            remaining = deadline - self._clock.monotonic()
            if remaining <= 0:
                logger.info(f"Gave up on {prefix}:{postfix} after {attempt} attempts")
                return result

            pause = min(delay, max_delay, remaining)
            logger.debug(f"{prefix} full, retry #{attempt} in {pause:.3f}s")
            self._clock.sleep(pause)
            delay = min(delay * multiplier, max_delay)
            attempt += 1
