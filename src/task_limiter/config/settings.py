from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.domain.enums import CountingStrategy, StoreBackend


class AppConfig(BaseSettings):
    """Application configuration with automatic environment variable loading.

    All settings can be overridden via environment variables with the TASK_LIMITER_ prefix.
    For example:
        - TASK_LIMITER_REDIS_URL=redis://cache.internal:6379/2
        - TASK_LIMITER_STRATEGY=counter
        - TASK_LIMITER_BACKEND=diskcache
        - TASK_LIMITER_STORE_DIR=/var/lib/task-limiter

    Every process that shares a task class must use the same backend and strategy.
    """

    model_config = SettingsConfigDict(
        env_prefix="TASK_LIMITER_",
        case_sensitive=False,
        extra="forbid",
    )

    backend: StoreBackend = Field(
        default=StoreBackend.REDIS,
        description="Shared store holding the holder records: 'redis' or 'diskcache' (single host)",
    )

    strategy: CountingStrategy = Field(
        default=CountingStrategy.ENUMERATION,
        description="How live holders are counted: 'enumeration' (namespace scan) or 'counter' (per-class ledger)",
    )

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )

    socket_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Deadline for a single store round trip. Does not affect holder lifetimes.",
    )

    store_dir: Optional[Path] = Field(
        default=None,
        description="diskcache directory. If None, uses platformdirs.user_cache_dir('task_limiter')",
    )
