from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor

from task_limiter.core.domain.models import AcquireResult

TTL_MS = 60_000


def test_acquire_records_holder(store):
    result = store.try_acquire("jobs", "1", 2, TTL_MS)

    assert result == AcquireResult(acquired=True, already_held=False)
    assert store.count("jobs") == 1
    assert [h.postfix for h in store.holders("jobs")] == ["1"]


def test_denies_when_pool_is_full(store):
    assert store.try_acquire("jobs", "1", 2, TTL_MS).acquired
    assert store.try_acquire("jobs", "2", 2, TTL_MS).acquired

    result = store.try_acquire("jobs", "3", 2, TTL_MS)

    assert result.denied
    assert not result.already_held
    assert store.count("jobs") == 2


def test_reacquire_of_held_identity_is_reported_distinctly(store):
    assert store.try_acquire("jobs", "1", 5, TTL_MS).acquired

    result = store.try_acquire("jobs", "1", 5, TTL_MS)

    assert result == AcquireResult(acquired=False, already_held=True)
    assert not result.denied
    assert store.count("jobs") == 1


def test_already_held_takes_priority_over_full_pool(store):
    assert store.try_acquire("jobs", "1", 1, TTL_MS).acquired

    assert store.try_acquire("jobs", "1", 1, TTL_MS).already_held
    assert store.try_acquire("jobs", "2", 1, TTL_MS).denied


def test_release_frees_capacity_immediately(store):
    for postfix in ("1", "2", "3"):
        assert store.try_acquire("jobs", postfix, 3, TTL_MS).acquired
    assert store.try_acquire("jobs", "4", 3, TTL_MS).denied

    store.release("jobs", "2")

    assert store.try_acquire("jobs", "4", 3, TTL_MS).acquired
    assert sorted(h.postfix for h in store.holders("jobs")) == ["1", "3", "4"]


def test_release_is_idempotent(store):
    assert store.try_acquire("jobs", "1", 3, TTL_MS).acquired

    store.release("jobs", "missing")
    store.release("other", "1")
    store.release("jobs", "1")
    store.release("jobs", "1")

    assert store.count("jobs") == 0
    assert store.try_acquire("jobs", "1", 3, TTL_MS).acquired


def test_release_does_not_touch_other_holders(store):
    assert store.try_acquire("jobs", "1", 3, TTL_MS).acquired
    assert store.try_acquire("jobs", "2", 3, TTL_MS).acquired

    store.release("jobs", "3")

    assert store.count("jobs") == 2


def test_expired_holders_stop_counting(store):
    """A holder that is never released frees its slot once the TTL passes."""
    assert store.try_acquire("jobs", "1", 2, 200).acquired
    assert store.try_acquire("jobs", "2", 2, 200).acquired
    assert store.try_acquire("jobs", "3", 2, 200).denied

    time.sleep(0.35)

    assert store.count("jobs") == 0
    assert store.try_acquire("jobs", "3", 2, 200).acquired
    # the expired identity can be taken again as well
    assert store.try_acquire("jobs", "1", 2, 200).acquired


def test_task_classes_are_isolated(store):
    assert store.try_acquire("alpha", "1", 1, TTL_MS).acquired
    assert store.try_acquire("beta", "1", 1, TTL_MS).acquired

    assert store.try_acquire("alpha", "2", 1, TTL_MS).denied
    assert store.count("alpha") == 1
    assert store.count("beta") == 1


def test_holders_report_remaining_ttl(store):
    assert store.try_acquire("jobs", "1", 1, 10_000).acquired

    (holder,) = store.holders("jobs")

    assert holder.key == "jobs:1"
    assert holder.ttl_seconds is not None
    assert 0 < holder.ttl_seconds <= 10.0


def test_capacity_invariant_under_concurrent_acquire(store):
    limit = 4
    postfixes = [str(i) for i in range(2 * limit)]

    with ThreadPoolExecutor(max_workers=len(postfixes)) as pool:
        results = list(pool.map(lambda p: store.try_acquire("burst", p, limit, TTL_MS), postfixes))

    assert sum(r.acquired for r in results) == limit
    assert sum(r.denied for r in results) == limit
    assert store.count("burst") == limit


def test_concurrent_acquire_of_same_identity_admits_once(store):
    with ThreadPoolExecutor(max_workers=6) as pool:
        results = list(pool.map(lambda _: store.try_acquire("dup", "same", 10, TTL_MS), range(6)))

    assert sum(r.acquired for r in results) == 1
    assert sum(r.already_held for r in results) == 5
    assert store.count("dup") == 1


def test_limit_three_scenario(store):
    """Six concurrent candidates for three slots; after expiry a new wave runs through."""
    with ThreadPoolExecutor(max_workers=6) as pool:
        first = list(pool.map(lambda p: store.try_acquire("brands", str(p), 3, 300), range(1, 7)))

    assert sum(r.acquired for r in first) == 3
    assert sum(r.denied for r in first) == 3

    time.sleep(0.4)

    for postfix in range(6, 12):
        result = store.try_acquire("brands", str(postfix), 3, 300)
        assert result.acquired, postfix
        store.release("brands", str(postfix))
    assert store.count("brands") == 0
