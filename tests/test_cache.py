"""Tests for the result cache."""

from supplier_scoring.core.cache import (
    CacheKeys,
    RedisCache,
    ResultCache,
    SimpleCache,
    build_cache,
    make_cache_key,
    supplier_set_fingerprint,
)
from supplier_scoring.core.config import Settings
from supplier_scoring.schemas.scoring import SupplierIdentity


class TestSimpleCache:

    def test_set_and_get(self):
        cache = SimpleCache()
        cache.set("k", {"a": 1}, ttl_seconds=60)
        assert cache.get("k") == {"a": 1}
        assert cache.get("missing") is None

    def test_expired_entries_are_not_served(self):
        cache = SimpleCache()
        cache.set("k", 1, ttl_seconds=0)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_bounded_size(self):
        cache = SimpleCache(max_entries=10)
        for i in range(25):
            cache.set(f"k{i}", i, ttl_seconds=60)
        assert len(cache) == 10
        assert cache.get("k24") == 24
        assert cache.get("k0") is None

    def test_expired_entries_evicted_before_live_ones(self):
        cache = SimpleCache(max_entries=3)
        cache.set("stale", 0, ttl_seconds=0)
        cache.set("a", 1, ttl_seconds=60)
        cache.set("b", 2, ttl_seconds=60)
        cache.set("c", 3, ttl_seconds=60)
        assert [cache.get(k) for k in ("a", "b", "c")] == [1, 2, 3]

    def test_overwrite_when_full_keeps_other_entries(self):
        cache = SimpleCache(max_entries=10)
        for i in range(10):
            cache.set(f"k{i}", i, ttl_seconds=60)
        cache.set("k3", 33, ttl_seconds=60)
        assert len(cache) == 10
        assert cache.get("k3") == 33
        assert all(cache.get(f"k{i}") == i for i in range(10) if i != 3)

    def test_invalidate_prefix(self):
        cache = SimpleCache()
        cache.set("supplier_score:a", 1, ttl_seconds=60)
        cache.set("supplier_rankings:b", 2, ttl_seconds=60)
        cache.invalidate("supplier_score:")
        assert cache.get("supplier_score:a") is None
        assert cache.get("supplier_rankings:b") == 2


class TestResultCache:

    def test_models_round_trip(self):
        cache = ResultCache(SimpleCache(), ttl_seconds=60)
        identity = SupplierIdentity(supplier_id=4, code="SUP-004", name="Acme")
        cache.save("supplier_score:x", identity)
        assert cache.load("supplier_score:x", SupplierIdentity) == identity
        assert cache.load("supplier_score:y", SupplierIdentity) is None

    def test_stores_json_ready_dumps(self):
        store = SimpleCache()
        ResultCache(store).save("k", SupplierIdentity(supplier_id=1))
        assert store.get("k") == {"supplier_id": 1, "code": "", "name": "", "category": None}

    def test_invalidate_by_prefix(self):
        store = SimpleCache()
        cache = ResultCache(store, ttl_seconds=60)
        cache.save(f"{CacheKeys.SCORE}:a", SupplierIdentity(supplier_id=1))
        cache.save(f"{CacheKeys.RANKINGS}:b", SupplierIdentity(supplier_id=2))
        cache.save("other:c", SupplierIdentity(supplier_id=3))
        cache.invalidate(CacheKeys.SCORE, CacheKeys.RANKINGS)
        assert len(store) == 1


class TestBuildCache:

    def test_memory_cache_without_redis(self):
        cache = build_cache(Settings(_env_file=None, redis_url=None, cache_max_entries=5, cache_ttl_seconds=42))
        assert isinstance(cache.store, SimpleCache)
        assert cache.store.max_entries == 5
        assert cache.ttl_seconds == 42

    def test_unreachable_redis_falls_back_to_memory(self):
        cache = build_cache(Settings(_env_file=None, redis_url="redis://127.0.0.1:1/0"))
        assert not isinstance(cache.store, RedisCache)
        cache.save("k", SupplierIdentity(supplier_id=1))
        assert cache.load("k", SupplierIdentity).supplier_id == 1

    def test_caching_disabled(self):
        assert build_cache(Settings(_env_file=None, cache_enabled=False)) is None


class TestCacheKeys:

    def test_key_is_deterministic(self):
        assert make_cache_key("a", 1, profile="cost") == make_cache_key("a", 1, profile="cost")
        assert make_cache_key("a", 1, profile="cost") != make_cache_key("a", 1, profile="quality")

    def test_fingerprint_ignores_order_and_duplicates(self):
        assert supplier_set_fingerprint([3, 1, 2]) == supplier_set_fingerprint([1, 2, 3, 3])
        assert supplier_set_fingerprint([1, 2]) != supplier_set_fingerprint([1, 2, 3])

    def test_fingerprint_for_every_supplier(self):
        assert supplier_set_fingerprint(None) == "*"
