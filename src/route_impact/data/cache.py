"""Capacity-bounded cache with a pluggable eviction policy."""

import threading
import time
from collections import OrderedDict
from collections.abc import Hashable
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class EvictionPolicy(Protocol[K]):
    """Bookkeeping that decides which key leaves a full cache."""

    def on_insert(self, key: K) -> None: ...

    def on_access(self, key: K) -> None: ...

    def on_remove(self, key: K) -> None: ...

    def victim(self) -> K: ...

    def clear(self) -> None: ...


class LRUPolicy(Generic[K]):
    """Least-recently-used eviction.

    Keys are kept in recency order; the first key is the eviction victim.
    """

    def __init__(self) -> None:
        self._order: OrderedDict[K, None] = OrderedDict()

    def on_insert(self, key: K) -> None:
        self._order[key] = None
        self._order.move_to_end(key)

    def on_access(self, key: K) -> None:
        self._order.move_to_end(key)

    def on_remove(self, key: K) -> None:
        self._order.pop(key, None)

    def victim(self) -> K:
        return next(iter(self._order))

    def clear(self) -> None:
        self._order.clear()


@dataclass
class _Slot(Generic[V]):
    value: V
    expires_at: float | None


class BoundedCache(Generic[K, V]):
    """Thread-safe cache holding at most ``capacity`` entries.

    Every read and write runs under one lock, so reordering, eviction and
    insertion are atomic relative to concurrent queries. Hit and miss counters
    only grow until ``clear()`` is called.
    """

    def __init__(
        self,
        capacity: int,
        policy: EvictionPolicy[K] | None = None,
        ttl: float | None = None,
    ):
        """Initialize the cache.

        Args:
            capacity: Maximum number of entries.
            policy: Eviction policy; least-recently-used if not provided.
            ttl: Optional time-to-live in seconds for each entry.
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._policy: EvictionPolicy[K] = policy if policy is not None else LRUPolicy()
        self._ttl = ttl
        self._slots: dict[K, _Slot[V]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: K) -> V | None:
        """Get a cached value, counting the lookup as a hit or a miss.

        Returns:
            The cached value, or None if absent or expired.
        """
        with self._lock:
            slot = self._slots.get(key)
            if slot is not None and slot.expires_at is not None:
                if time.monotonic() >= slot.expires_at:
                    self._remove(key)
                    slot = None
            if slot is None:
                self._misses += 1
                return None
            self._hits += 1
            self._policy.on_access(key)
            return slot.value

    def put(self, key: K, value: V) -> None:
        """Insert or replace a value, evicting one entry when full."""
        expires_at = time.monotonic() + self._ttl if self._ttl is not None else None
        with self._lock:
            if key in self._slots:
                self._slots[key] = _Slot(value, expires_at)
                self._policy.on_access(key)
                return
            if len(self._slots) >= self._capacity:
                self._remove(self._policy.victim())
            self._slots[key] = _Slot(value, expires_at)
            self._policy.on_insert(key)

    def discard(self, key: K) -> None:
        """Drop an entry if present (does not touch the counters)."""
        with self._lock:
            if key in self._slots:
                self._remove(key)

    def clear(self) -> None:
        """Remove every entry and reset the hit/miss counters."""
        with self._lock:
            self._slots.clear()
            self._policy.clear()
            self._hits = 0
            self._misses = 0

    def _remove(self, key: K) -> None:
        del self._slots[key]
        self._policy.on_remove(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._slots

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    @property
    def hit_rate(self) -> float:
        """Fraction of lookups that were hits (0 when nothing was looked up)."""
        with self._lock:
            total = self._hits + self._misses
            return self._hits / total if total else 0.0
