import pytest

from app.services.cache import TTLCache


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def ttl_cache(clock):
    return TTLCache(default_ttl=60, sweep_threshold=3, clock=clock)


class TestTTLCache:
    def test_set_and_get(self, ttl_cache):
        ttl_cache.set("a", {"value": 1})
        assert ttl_cache.get("a") == {"value": 1}
        assert "a" in ttl_cache

    def test_get_missing_returns_default(self, ttl_cache):
        assert ttl_cache.get("missing") is None
        assert ttl_cache.get("missing", "fallback") == "fallback"

    def test_entry_expires(self, ttl_cache, clock):
        ttl_cache.set("a", 1, ttl=10)
        clock.advance(9.9)
        assert ttl_cache.get("a") == 1
        clock.advance(0.1)
        assert ttl_cache.get("a") is None
        assert "a" not in ttl_cache

    def test_default_ttl_applies(self, ttl_cache, clock):
        ttl_cache.set("a", 1)
        clock.advance(59)
        assert "a" in ttl_cache
        clock.advance(1)
        assert "a" not in ttl_cache

    def test_get_or_set_computes_once(self, ttl_cache):
        calls = []

        def compute():
            calls.append(1)
            return "computed"

        assert ttl_cache.get_or_set("k", compute) == "computed"
        assert ttl_cache.get_or_set("k", compute) == "computed"
        assert len(calls) == 1

    def test_get_or_set_recomputes_after_expiry(self, ttl_cache, clock):
        values = iter(["first", "second"])
        assert ttl_cache.get_or_set("k", lambda: next(values), ttl=5) == "first"
        clock.advance(5)
        assert ttl_cache.get_or_set("k", lambda: next(values), ttl=5) == "second"

    def test_get_or_set_does_not_store_failures(self, ttl_cache):
        def boom():
            raise RuntimeError("failed")

        with pytest.raises(RuntimeError):
            ttl_cache.get_or_set("k", boom)
        assert "k" not in ttl_cache

    def test_clear_all(self, ttl_cache):
        ttl_cache.set("a", 1)
        ttl_cache.set("b", 2)
        assert ttl_cache.clear() == 2
        assert len(ttl_cache) == 0

    def test_clear_keys(self, ttl_cache):
        ttl_cache.set("a", 1)
        ttl_cache.set("b", 2)
        assert ttl_cache.clear(keys="a") == 1
        assert ttl_cache.clear(keys=["a", "b", "c"]) == 1
        assert len(ttl_cache) == 0

    def test_clear_pattern(self, ttl_cache):
        ttl_cache.set("dashboard:1", 1)
        ttl_cache.set("dashboard:2", 2)
        ttl_cache.set("analytics:main", 3)
        assert ttl_cache.clear(pattern="dashboard:*") == 2
        assert ttl_cache.get("analytics:main") == 3

    def test_clear_prefix_pattern(self, ttl_cache):
        ttl_cache.set("dashboard:1", 1)
        ttl_cache.set("analytics:main", 3)
        assert ttl_cache.clear(pattern="dashboard:") == 1
        assert "analytics:main" in ttl_cache

    def test_sweep_drops_expired_entries(self, ttl_cache, clock):
        ttl_cache.set("a", 1, ttl=1)
        ttl_cache.set("b", 2, ttl=1)
        ttl_cache.set("c", 3, ttl=1)
        clock.advance(2)
        ttl_cache.set("d", 4)
        assert len(ttl_cache) == 1

    def test_stats_counts_hits_and_misses(self, ttl_cache):
        ttl_cache.set("a", 1)
        ttl_cache.get("a")
        ttl_cache.get("b")
        stats = ttl_cache.stats()
        assert stats["size"] == 1
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["default_ttl"] == 60
