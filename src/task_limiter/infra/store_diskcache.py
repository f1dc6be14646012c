from __future__ import annotations

import logging
import os
import sqlite3
import time
from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

import diskcache as dc
from platformdirs import user_cache_dir

from ..core.domain.errors import StoreError
from ..core.domain.models import AcquireResult, HolderInfo
from ..core.ports.store_port import HolderStorePort
from ..shared.keys import holder_key, ledger_key, namespace, postfix_of

logger = logging.getLogger(__name__)


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (dc.Timeout, sqlite3.Error, OSError) as e:
        logger.error(f"diskcache {action} failed: {e}")
        raise StoreError(f"diskcache {action} failed: {e}") from e


class _DiskCacheStore(HolderStorePort):
    """Holder records in a SQLite-backed diskcache shared by processes on one host.

    Every admission runs inside ``Cache.transact()``, which takes a
    ``BEGIN IMMEDIATE`` lock, so the check and the write are one atomic unit.
    """

    def __init__(self, name: str = "holders", base_dir: Optional[str] = None, timeout: float = 5.0) -> None:
        cache_dir = base_dir or os.getenv("TASK_LIMITER_STORE_DIR")
        if cache_dir:
            os.makedirs(cache_dir, exist_ok=True)
            path = os.path.join(cache_dir, name)
        else:
            path = os.path.join(user_cache_dir("task_limiter"), name)
        os.makedirs(path, exist_ok=True)
        self._cache = dc.Cache(path, timeout=timeout)
        self.directory = path

    def _live_keys(self, prefix: str) -> list[str]:
        ns = namespace(prefix)
        # iterkeys also yields expired rows; membership honours expiry.
        return [k for k in self._cache.iterkeys() if isinstance(k, str) and k.startswith(ns) and k in self._cache]

    def close(self) -> None:
        self._cache.close()

    def __enter__(self) -> _DiskCacheStore:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


class DiskCacheEnumerationStore(_DiskCacheStore):
    def try_acquire(self, prefix: str, postfix: str, limit: int, ttl_ms: int) -> AcquireResult:
        key = holder_key(prefix, postfix)
        with _store_errors("acquire"), self._cache.transact():
            if key in self._cache:
                return AcquireResult.held()
            if len(self._live_keys(prefix)) >= limit:
                return AcquireResult.full()
            self._cache.set(key, 1, expire=ttl_ms / 1000.0)
        return AcquireResult.granted()

    def release(self, prefix: str, postfix: str) -> None:
        with _store_errors("release"):
            self._cache.delete(holder_key(prefix, postfix))

    def count(self, prefix: str) -> int:
        with _store_errors("count"):
            return len(self._live_keys(prefix))

    def holders(self, prefix: str) -> Sequence[HolderInfo]:
        result: list[HolderInfo] = []
        with _store_errors("holders"):
            for key in self._live_keys(prefix):
                value, expire_time = self._cache.get(key, expire_time=True)
                if value is None:
                    continue
                ttl = max(0.0, expire_time - time.time()) if expire_time is not None else None
                result.append(HolderInfo(prefix=prefix, postfix=postfix_of(prefix, key), ttl_seconds=ttl))
        return result


class DiskCacheCounterStore(_DiskCacheStore):
    """Per-class ledger ``{postfix: deadline}`` stored under the bare prefix."""

    def _pruned_ledger(self, prefix: str, now: float) -> dict[str, float]:
        ledger = self._cache.get(ledger_key(prefix), default={})
        return {postfix: deadline for postfix, deadline in ledger.items() if deadline > now}

    def _store_ledger(self, prefix: str, ledger: dict[str, float], now: float) -> None:
        if ledger:
            self._cache.set(ledger_key(prefix), ledger, expire=max(ledger.values()) - now)
        else:
            self._cache.delete(ledger_key(prefix))

    def try_acquire(self, prefix: str, postfix: str, limit: int, ttl_ms: int) -> AcquireResult:
        ttl = ttl_ms / 1000.0
        with _store_errors("acquire"), self._cache.transact():
            now = time.time()
            ledger = self._pruned_ledger(prefix, now)
            if postfix in ledger:
                result = AcquireResult.held()
            elif len(ledger) >= limit:
                result = AcquireResult.full()
            else:
                ledger[postfix] = now + ttl
                self._cache.set(holder_key(prefix, postfix), 1, expire=ttl)
                result = AcquireResult.granted()
            self._store_ledger(prefix, ledger, now)
        return result

    def release(self, prefix: str, postfix: str) -> None:
        with _store_errors("release"), self._cache.transact():
            now = time.time()
            ledger = self._pruned_ledger(prefix, now)
            ledger.pop(postfix, None)
            self._store_ledger(prefix, ledger, now)
            self._cache.delete(holder_key(prefix, postfix))

    def count(self, prefix: str) -> int:
        with _store_errors("count"):
            return len(self._pruned_ledger(prefix, time.time()))

    def holders(self, prefix: str) -> Sequence[HolderInfo]:
        with _store_errors("holders"):
            now = time.time()
            ledger = self._pruned_ledger(prefix, now)
        return [
            HolderInfo(prefix=prefix, postfix=postfix, ttl_seconds=deadline - now)
            for postfix, deadline in ledger.items()
        ]
