"""Unit and property tests for the TTL cache."""

from __future__ import annotations

import threading

import pytest
from hypothesis import given
from hypothesis import strategies as st

from listing_store.cache.ttl import DEFAULT_TIER_TTLS, CacheTier, TTLCache


class _FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_default_tier_ttls() -> None:
    assert DEFAULT_TIER_TTLS == {
        CacheTier.CONFIG: 60.0,
        CacheTier.ITEMS: 300.0,
        CacheTier.COLLECTIONS: 600.0,
        CacheTier.SIMILARITY: 1800.0,
    }


def test_get_counts_hits_misses_and_expirations() -> None:
    clock = _FakeClock()
    cache: TTLCache[str, int] = TTLCache(10, clock=clock)

    assert cache.get("a") is None
    cache.set("a", 1)
    assert cache.get("a") == 1
    clock.advance(10)
    assert cache.get("a") is None

    stats = cache.stats()
    assert (stats.hits, stats.misses, stats.expirations, stats.size) == (1, 2, 1, 0)


def test_per_entry_ttl_override() -> None:
    clock = _FakeClock()
    cache: TTLCache[str, str] = TTLCache(10, clock=clock)
    cache.set("short", "x", ttl_seconds=1)
    cache.set("long", "y")

    clock.advance(5)

    assert "short" not in cache
    assert "long" in cache
    assert len(cache) == 1


def test_get_or_load_only_loads_once_until_expiry() -> None:
    clock = _FakeClock()
    cache: TTLCache[str, int] = TTLCache(30, clock=clock)
    calls: list[int] = []

    def loader() -> int:
        calls.append(1)
        return len(calls)

    assert cache.get_or_load("k", loader) == 1
    assert cache.get_or_load("k", loader) == 1
    clock.advance(31)
    assert cache.get_or_load("k", loader) == 2
    assert len(calls) == 2


def test_max_entries_evicts_oldest_inserted() -> None:
    cache: TTLCache[str, int] = TTLCache(60, max_entries=2, clock=_FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)

    assert "a" not in cache
    assert "b" in cache and "c" in cache
    assert cache.stats().evictions == 1


def test_reinserting_existing_key_does_not_evict() -> None:
    cache: TTLCache[str, int] = TTLCache(60, max_entries=2, clock=_FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 3)

    assert cache.get("a") == 3
    assert cache.stats().evictions == 0


def test_invalidate_and_clear() -> None:
    cache: TTLCache[str, int] = TTLCache(60, clock=_FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)

    assert cache.invalidate("a") is True
    assert cache.invalidate("a") is False
    assert cache.clear() == 1
    assert len(cache) == 0


@pytest.mark.parametrize(("ttl", "max_entries"), [(0, None), (-1, None), (10, 0)])
def test_invalid_arguments(ttl: float, max_entries: int | None) -> None:
    with pytest.raises(ValueError):
        TTLCache(ttl, max_entries=max_entries)


def test_concurrent_get_or_load_is_consistent() -> None:
    cache: TTLCache[int, int] = TTLCache(60)
    errors: list[BaseException] = []

    def worker(offset: int) -> None:
        try:
            for key in range(50):
                assert cache.get_or_load(key, lambda k=key: k * 2) == key * 2
        except BaseException as exc:  # noqa: BLE001 - surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(cache) == 50


@given(
    st.lists(st.tuples(st.integers(min_value=0, max_value=20), st.floats(min_value=0, max_value=5)), max_size=60),
    st.integers(min_value=1, max_value=8),
)
def test_size_never_exceeds_max_entries(ops: list[tuple[int, float]], max_entries: int) -> None:
    clock = _FakeClock()
    cache: TTLCache[int, int] = TTLCache(3, max_entries=max_entries, clock=clock)
    for key, step in ops:
        clock.advance(step)
        cache.set(key, key)
        assert len(cache) <= max_entries
        assert cache.get(key) == key
