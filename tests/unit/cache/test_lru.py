"""Tests for the bounded LRU map."""

import pytest

from repomd.cache.lru import MISSING, LRUCache


class TestLRUCache:
    """Size and age bounds."""

    def test_get_missing_returns_default(self) -> None:
        """Missing keys return the default."""
        cache: LRUCache[int] = LRUCache()
        assert cache.get("nope") is None
        assert cache.get("nope", MISSING) is MISSING

    def test_set_then_get(self) -> None:
        cache: LRUCache[str] = LRUCache()
        cache.set("a", "value")
        assert cache.get("a") == "value"
        assert "a" in cache
        assert len(cache) == 1

    def test_falsy_values_are_cached(self) -> None:
        """Cached falsy values are distinguishable from misses."""
        cache: LRUCache[list[int]] = LRUCache()
        cache.set("empty", [])
        assert cache.get("empty", MISSING) == []

    def test_evicts_least_recently_used(self) -> None:
        """Reading an entry protects it from eviction."""
        cache: LRUCache[int] = LRUCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)

        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache

    def test_entries_expire_after_max_age(self, clock) -> None:
        cache: LRUCache[int] = LRUCache(max_age=10.0, clock=clock)
        cache.set("a", 1)

        clock.advance(10.0)
        assert cache.get("a") == 1

        clock.advance(0.1)
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_overwrite_resets_age(self, clock) -> None:
        cache: LRUCache[int] = LRUCache(max_age=10.0, clock=clock)
        cache.set("a", 1)
        clock.advance(8.0)
        cache.set("a", 2)
        clock.advance(8.0)
        assert cache.get("a") == 2

    def test_delete(self) -> None:
        cache: LRUCache[int] = LRUCache()
        cache.set("a", 1)
        assert cache.delete("a") is True
        assert cache.delete("a") is False

    def test_resize_evicts(self) -> None:
        cache: LRUCache[int] = LRUCache(max_size=3)
        for key in ("a", "b", "c"):
            cache.set(key, 0)
        cache.resize(1)
        assert len(cache) == 1
        assert "c" in cache

    def test_items_skips_expired(self, clock) -> None:
        cache: LRUCache[int] = LRUCache(max_age=5.0, clock=clock)
        cache.set("old", 1)
        clock.advance(6.0)
        cache.set("new", 2)
        assert list(cache.items()) == [("new", 2)]

    def test_invalid_size_rejected(self) -> None:
        with pytest.raises(ValueError):
            LRUCache(max_size=0)
