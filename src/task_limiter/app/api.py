from __future__ import annotations

from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path
from typing import Iterator, Sequence

from .container import Container
from ..config.settings import AppConfig
from ..core.domain.enums import CountingStrategy, StoreBackend
from ..core.domain.errors import SlotNotAcquiredError
from ..core.domain.models import AcquireResult, HolderInfo


class TaskLimiterClient:
    """Client for limiting how many holders of a task class run at once.

    The store connection is created once and shared by every call made through
    the client. Close it when done, or use it as a context manager.

    Example:
        # Using default configuration (from environment variables)
        with TaskLimiterClient() as limiter:
            result = limiter.acquire("thumbnailer", job.id, allowed_concurrent_tasks=3, timeout=300)
            if result:
                try:
                    run(job)
                finally:
                    limiter.release("thumbnailer", job.id)

        # Acquire and release around a block
        with TaskLimiterClient(redis_url="redis://cache:6379/1") as limiter:
            with limiter.slot("thumbnailer", job.id, allowed_concurrent_tasks=3, timeout=300):
                run(job)

        # Single host, no Redis
        with TaskLimiterClient(backend="diskcache", store_dir="/tmp/limits") as limiter:
            ...
    """

    def __init__(
        self,
        *,
        backend: StoreBackend | str | None = None,
        strategy: CountingStrategy | str | None = None,
        redis_url: str | None = None,
        store_dir: str | Path | None = None,
        socket_timeout_seconds: float | None = None,
    ):
        """Initialize the client.

        Args:
            backend: 'redis' or 'diskcache'. If None, uses TASK_LIMITER_BACKEND or 'redis'.
            strategy: 'enumeration' or 'counter'. If None, uses TASK_LIMITER_STRATEGY or 'enumeration'.
                      All processes sharing a task class must agree on it.
            redis_url: Redis connection URL. If None, uses TASK_LIMITER_REDIS_URL.
            store_dir: diskcache directory. If None, uses TASK_LIMITER_STORE_DIR or the user cache directory.
            socket_timeout_seconds: Deadline for each store round trip.
        """
        self._container = Container()

        # Build config dict with only provided values
        config_dict: dict[str, object] = {}
        if backend is not None:
            config_dict["backend"] = backend
        if strategy is not None:
            config_dict["strategy"] = strategy
        if redis_url is not None:
            config_dict["redis_url"] = redis_url
        if store_dir is not None:
            config_dict["store_dir"] = Path(store_dir) if isinstance(store_dir, str) else store_dir
        if socket_timeout_seconds is not None:
            config_dict["socket_timeout_seconds"] = socket_timeout_seconds

        if config_dict:
            config = AppConfig(**config_dict)
            self._container.config.from_pydantic(config)

        self._container.init_resources()

    def acquire(
        self,
        prefix: str,
        postfix: str,
        *,
        allowed_concurrent_tasks: int,
        timeout: float | timedelta,
    ) -> AcquireResult:
        """Try to record (prefix, postfix) as a holder of the task class.

        Args:
            prefix: Task class name.
            postfix: Identifier unique among live holders of the class (e.g., a task id).
            allowed_concurrent_tasks: Capacity of the task class.
            timeout: Seconds (or timedelta) after which the holder expires if never released.

        Returns:
            AcquireResult. ``acquired`` is True on admission; ``already_held`` is True when
            the identity is still recorded. Both False means the pool is full.

        Raises:
            StoreError: The store could not be reached. The record may or may not exist.
            ValueError: Invalid arguments.
        """
        return self._container.acquire_uc().execute(prefix, postfix, allowed_concurrent_tasks, timeout)

    def acquire_with_retry(
        self,
        prefix: str,
        postfix: str,
        *,
        allowed_concurrent_tasks: int,
        timeout: float | timedelta,
        wait_seconds: float,
        initial_delay: float = 0.05,
        max_delay: float = 2.0,
    ) -> AcquireResult:
        """Like acquire, but retries a full pool with exponential backoff for up to wait_seconds."""
        uc = self._container.acquire_retry_uc()
        return uc.execute(
            prefix,
            postfix,
            allowed_concurrent_tasks,
            timeout,
            wait_seconds=wait_seconds,
            initial_delay=initial_delay,
            max_delay=max_delay,
        )

    def release(self, prefix: str, postfix: str) -> None:
        """Remove the holder record. Releasing an unknown or expired holder is a no-op."""
        self._container.release_uc().execute(prefix, postfix)

    @contextmanager
    def slot(
        self,
        prefix: str,
        postfix: str,
        *,
        allowed_concurrent_tasks: int,
        timeout: float | timedelta,
    ) -> Iterator[AcquireResult]:
        """Hold a slot for the duration of the with-block.

        Raises:
            SlotNotAcquiredError: The pool is full or the identity is already held.
        """
        result = self.acquire(prefix, postfix, allowed_concurrent_tasks=allowed_concurrent_tasks, timeout=timeout)
        if not result.acquired:
            raise SlotNotAcquiredError(prefix, postfix, result)
        try:
            yield result
        finally:
            self.release(prefix, postfix)

    def count(self, prefix: str) -> int:
        """Return the number of live holders of the task class."""
        return self._container.inspect_uc().count(prefix)

    def holders(self, prefix: str) -> Sequence[HolderInfo]:
        """Return live holders of the task class, sorted by postfix."""
        return self._container.inspect_uc().holders(prefix)

    def close(self) -> None:
        """Close the store connection."""
        self._container.shutdown_resources()

    def __enter__(self) -> TaskLimiterClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


__all__ = [
    "TaskLimiterClient",
    "AppConfig",
]
