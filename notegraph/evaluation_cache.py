"""Bounded memo of expression results.

The cache is an explicit object rather than module state so each engine (or
each worker thread) can own one and tests can observe eviction directly.

Thread safety
-------------
Every lookup, insert and eviction takes one ``threading.Lock``, so the hit and
miss counters stay exact when several threads share a cache. Evaluation never
calls back into the cache, so the lock is never held across an expression
evaluation.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Hashable, NamedTuple, Optional

__all__ = ["CacheInfo", "EvaluationCache", "EVICTION_POLICIES"]

EVICTION_POLICIES = ("fifo", "lru")

_MISSING = object()


class CacheInfo(NamedTuple):
    hits: int
    misses: int
    evictions: int
    size: int
    capacity: int


class EvaluationCache:
    """Bounded key/value store with oldest-first eviction.

    Parameters
    ----------
    capacity : int, default=1000
        Maximum number of entries kept.
    policy : {"fifo", "lru"}, default="fifo"
        ``"fifo"`` evicts the oldest inserted entry; ``"lru"`` evicts the
        least recently read or written one.
    """

    def __init__(self, capacity: int = 1000, policy: str = "fifo") -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
            raise ValueError(f"capacity must be a positive integer, got {capacity!r}")
        if policy not in EVICTION_POLICIES:
            raise ValueError(f"policy must be one of {EVICTION_POLICIES}, got {policy!r}")
        self._capacity = capacity
        self._policy = policy
        self._store: OrderedDict[Hashable, float] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def policy(self) -> str:
        return self._policy

    def get(self, key: Hashable) -> Optional[float]:
        """Return the cached value for ``key`` or ``None`` on a miss."""
        with self._lock:
            value = self._store.get(key, _MISSING)
            if value is _MISSING:
                self._misses += 1
                return None
            if self._policy == "lru":
                self._store.move_to_end(key)
            self._hits += 1
            return value  # type: ignore[return-value]

    def put(self, key: Hashable, value: float) -> None:
        """Insert ``value``; evicts the oldest entry once capacity is exceeded."""
        with self._lock:
            if key in self._store:
                self._store[key] = value
                if self._policy == "lru":
                    self._store.move_to_end(key)
                return
            self._store[key] = value
            while len(self._store) > self._capacity:
                self._store.popitem(last=False)
                self._evictions += 1

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._hits = self._misses = self._evictions = 0

    def info(self) -> CacheInfo:
        with self._lock:
            return CacheInfo(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                size=len(self._store),
                capacity=self._capacity,
            )

    def keys(self) -> tuple[Hashable, ...]:
        """Snapshot of keys, oldest first."""
        with self._lock:
            return tuple(self._store.keys())

    def __contains__(self, key: Hashable) -> bool:
        return key in self._store

    def __len__(self) -> int:
        return len(self._store)

    def __repr__(self) -> str:
        return f"EvaluationCache(capacity={self._capacity}, policy={self._policy!r}, size={len(self._store)})"
