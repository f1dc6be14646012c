from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Sequence

import redis

from ..core.domain.errors import StoreError
from ..core.domain.models import AcquireResult, HolderInfo
from ..core.ports.store_port import HolderStorePort
from ..shared.keys import holder_key, ledger_key, namespace_pattern, postfix_of

logger = logging.getLogger(__name__)

# Script return codes shared by both strategies.
_ACQUIRED = 1
_FULL = 0
_HELD = 2

# KEYS[1] = holder key "{prefix}:{postfix}"
# ARGV[1] = namespace pattern "{prefix}:*"
# ARGV[2] = allowed concurrent tasks
# ARGV[3] = ttl in milliseconds
#
# KEYS only returns keys that have not expired, so the count is the live holders.
ENUMERATION_ACQUIRE_LUA = """
if redis.call('EXISTS', KEYS[1]) == 1 then
  return 2
end
local n = #redis.call('KEYS', ARGV[1])
if n >= tonumber(ARGV[2]) then
  return 0
end
redis.call('SET', KEYS[1], '1', 'PX', ARGV[3])
return 1
"""

# KEYS[1] = ledger key "{prefix}" (sorted set: member=postfix, score=deadline ms)
# KEYS[2] = holder key "{prefix}:{postfix}"
# ARGV[1] = postfix
# ARGV[2] = allowed concurrent tasks
# ARGV[3] = ttl in milliseconds
#
# Deadlines use the server clock so callers on different hosts agree on expiry.
COUNTER_ACQUIRE_LUA = """
local t = redis.call('TIME')
local now = tonumber(t[1]) * 1000 + math.floor(tonumber(t[2]) / 1000)
redis.call('ZREMRANGEBYSCORE', KEYS[1], '-inf', now)
if redis.call('ZSCORE', KEYS[1], ARGV[1]) then
  return 2
end
if redis.call('ZCARD', KEYS[1]) >= tonumber(ARGV[2]) then
  return 0
end
local ttl = tonumber(ARGV[3])
redis.call('ZADD', KEYS[1], now + ttl, ARGV[1])
redis.call('SET', KEYS[2], '1', 'PX', ttl)
local last = redis.call('ZRANGE', KEYS[1], -1, -1, 'WITHSCORES')
redis.call('PEXPIREAT', KEYS[1], tonumber(last[2]))
return 1
"""

# KEYS[1] = ledger key, KEYS[2] = holder key, ARGV[1] = postfix
COUNTER_RELEASE_LUA = """
redis.call('ZREM', KEYS[1], ARGV[1])
redis.call('DEL', KEYS[2])
return 1
"""

# KEYS[1] = ledger key
COUNTER_COUNT_LUA = """
local t = redis.call('TIME')
local now = tonumber(t[1]) * 1000 + math.floor(tonumber(t[2]) / 1000)
return redis.call('ZCOUNT', KEYS[1], '(' .. now, '+inf')
"""


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except redis.exceptions.RedisError as e:
        logger.error(f"Redis {action} failed: {e}")
        raise StoreError(f"Redis {action} failed: {e}") from e


def _decode_result(code: int) -> AcquireResult:
    code = int(code)
    if code == _ACQUIRED:
        return AcquireResult.granted()
    if code == _HELD:
        return AcquireResult.held()
    if code == _FULL:
        return AcquireResult.full()
    raise StoreError(f"Unexpected admission script result: {code!r}")


class RedisEnumerationStore(HolderStorePort):
    """Holder records are plain keys; the live count is a namespace scan.

    The scan runs inside the admission script, so it is atomic with the decision.
    Its cost grows with the number of keys in the database.
    The client must be created with decode_responses=True.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client
        self._acquire_script = client.register_script(ENUMERATION_ACQUIRE_LUA)

    def try_acquire(self, prefix: str, postfix: str, limit: int, ttl_ms: int) -> AcquireResult:
        with _store_errors("acquire"):
            code = self._acquire_script(
                keys=[holder_key(prefix, postfix)],
                args=[namespace_pattern(prefix), limit, ttl_ms],
            )
        return _decode_result(code)

    def release(self, prefix: str, postfix: str) -> None:
        with _store_errors("release"):
            self._client.delete(holder_key(prefix, postfix))

    def count(self, prefix: str) -> int:
        with _store_errors("count"):
            return len(set(self._client.scan_iter(match=namespace_pattern(prefix))))

    def holders(self, prefix: str) -> Sequence[HolderInfo]:
        with _store_errors("holders"):
            keys = sorted(set(self._client.scan_iter(match=namespace_pattern(prefix))))
            pipe = self._client.pipeline(transaction=False)
            for key in keys:
                pipe.pttl(key)
            ttls = pipe.execute()
        result: list[HolderInfo] = []
        for key, pttl in zip(keys, ttls):
            if pttl == -2:  # expired between scan and PTTL
                continue
            ttl = pttl / 1000.0 if pttl >= 0 else None
            result.append(HolderInfo(prefix=prefix, postfix=postfix_of(prefix, key), ttl_seconds=ttl))
        return result


class RedisCounterStore(HolderStorePort):
    """One sorted set per task class, scored by each holder's expiry deadline.

    Expired members are pruned at the start of every admission, so a holder that
    crashed without releasing stops counting once its deadline passes. A marker
    key "{prefix}:{postfix}" with the same TTL is written alongside.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client
        self._acquire_script = client.register_script(COUNTER_ACQUIRE_LUA)
        self._release_script = client.register_script(COUNTER_RELEASE_LUA)
        self._count_script = client.register_script(COUNTER_COUNT_LUA)

    def try_acquire(self, prefix: str, postfix: str, limit: int, ttl_ms: int) -> AcquireResult:
        with _store_errors("acquire"):
            code = self._acquire_script(
                keys=[ledger_key(prefix), holder_key(prefix, postfix)],
                args=[postfix, limit, ttl_ms],
            )
        return _decode_result(code)

    def release(self, prefix: str, postfix: str) -> None:
        with _store_errors("release"):
            self._release_script(keys=[ledger_key(prefix), holder_key(prefix, postfix)], args=[postfix])

    def count(self, prefix: str) -> int:
        with _store_errors("count"):
            return int(self._count_script(keys=[ledger_key(prefix)]))

    def holders(self, prefix: str) -> Sequence[HolderInfo]:
        with _store_errors("holders"):
            seconds, micros = self._client.time()
            now_ms = seconds * 1000 + micros // 1000
            members = self._client.zrangebyscore(ledger_key(prefix), f"({now_ms}", "+inf", withscores=True)
        return [
            HolderInfo(prefix=prefix, postfix=postfix, ttl_seconds=(deadline - now_ms) / 1000.0)
            for postfix, deadline in members
        ]
