from __future__ import annotations

from enum import Enum


class CountingStrategy(str, Enum):
    """How live holders of a task class are counted.

    One deployment must use a single strategy for a given task class; mixing them
    breaks the capacity invariant because each strategy only sees its own records.
    """

    ENUMERATION = "enumeration"  # scan "{prefix}:*"
    COUNTER = "counter"  # per-class ledger with per-holder deadlines


class StoreBackend(str, Enum):
    REDIS = "redis"
    DISKCACHE = "diskcache"
