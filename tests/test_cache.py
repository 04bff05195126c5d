"""Tests for the capacity-bounded query cache."""

import random
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from route_impact.data.cache import BoundedCache, LRUPolicy


def test_cache_returns_stored_value():
    """Cache should return a value that was put."""
    cache: BoundedCache[str, int] = BoundedCache(capacity=3)

    cache.put("a", 1)

    assert cache.get("a") == 1
    assert "a" in cache
    assert len(cache) == 1


def test_cache_evicts_least_recently_used():
    """Inserting into a full cache should evict the oldest entry."""
    cache: BoundedCache[str, int] = BoundedCache(capacity=2)

    cache.put("a", 1)
    cache.put("b", 2)
    cache.put("c", 3)

    assert cache.get("a") is None
    assert cache.get("b") == 2
    assert cache.get("c") == 3
    assert len(cache) == 2


def test_cache_get_promotes_entry():
    """A read should make the entry the most recently used."""
    cache: BoundedCache[str, int] = BoundedCache(capacity=2)

    cache.put("a", 1)
    cache.put("b", 2)
    cache.get("a")
    cache.put("c", 3)

    assert "a" in cache
    assert "b" not in cache


def test_cache_overwrite_does_not_grow():
    """Putting an existing key should replace it in place."""
    cache: BoundedCache[str, int] = BoundedCache(capacity=2)

    cache.put("a", 1)
    cache.put("a", 2)

    assert cache.get("a") == 2
    assert len(cache) == 1


def test_cache_counts_hits_and_misses():
    """Hits and misses should be counted per lookup."""
    cache: BoundedCache[str, int] = BoundedCache(capacity=2)
    cache.put("a", 1)

    cache.get("a")
    cache.get("a")
    cache.get("missing")

    assert cache.hits == 2
    assert cache.misses == 1
    assert cache.hit_rate == pytest.approx(2 / 3)


def test_cache_hit_rate_without_lookups():
    """Hit rate should be zero before any lookup."""
    cache: BoundedCache[str, int] = BoundedCache(capacity=2)
    assert cache.hit_rate == 0.0


def test_cache_clear_resets_counters():
    """Clear should remove entries and reset hit/miss counters."""
    cache: BoundedCache[str, int] = BoundedCache(capacity=2)
    cache.put("a", 1)
    cache.get("a")
    cache.get("b")

    cache.clear()

    assert len(cache) == 0
    assert cache.hits == 0
    assert cache.misses == 0


def test_cache_discard():
    """Discard should drop the entry without touching counters."""
    cache: BoundedCache[str, int] = BoundedCache(capacity=2)
    cache.put("a", 1)

    cache.discard("a")
    cache.discard("never-stored")

    assert "a" not in cache
    assert cache.hits == 0
    assert cache.misses == 0


def test_cache_ttl_expiration():
    """Cache should return None after TTL expires."""
    cache: BoundedCache[str, int] = BoundedCache(capacity=2, ttl=0.05)
    cache.put("a", 1)

    assert cache.get("a") == 1

    time.sleep(0.1)

    assert cache.get("a") is None
    assert "a" not in cache


def test_cache_rejects_zero_capacity():
    """Capacity below one is a configuration error."""
    with pytest.raises(ValueError):
        BoundedCache(capacity=0)


def test_lru_policy_victim_order():
    """The policy should name the least recently touched key."""
    policy: LRUPolicy[str] = LRUPolicy()
    policy.on_insert("a")
    policy.on_insert("b")
    policy.on_access("a")

    assert policy.victim() == "b"

    policy.on_remove("b")
    assert policy.victim() == "a"


def test_cache_concurrent_access_keeps_bookkeeping_consistent():
    """Many threads reading, writing and discarding should never break the bounds."""
    cache: BoundedCache[int, int] = BoundedCache(capacity=8)
    workers = 8
    rounds = 2_000

    def hammer(seed: int) -> int:
        rng = random.Random(seed)
        gets = 0
        for _ in range(rounds):
            key = rng.randrange(32)
            action = rng.random()
            if action < 0.5:
                value = cache.get(key)
                gets += 1
                assert value is None or value == key * 10
            elif action < 0.9:
                cache.put(key, key * 10)
            else:
                cache.discard(key)
        return gets

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(hammer, seed) for seed in range(workers)]
        # result() re-raises any KeyError from inside the cache
        total_gets = sum(future.result() for future in futures)

    assert len(cache) <= cache.capacity
    assert cache.hits + cache.misses == total_gets
    assert set(cache._policy._order) == set(cache._slots)
    for key in list(cache._slots):
        assert cache.get(key) == key * 10
