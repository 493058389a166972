"""
Unit Tests - Redis Cache
"""
import pytest
from fakeredis import aioredis

from analytics_dashboard.serving.cache import CacheManager, aggregation_cache, cache_get, cache_set


@pytest.fixture
async def redis_client():
    client = aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


class TestCacheHelpers:
    """Tests for cache_get/cache_set"""

    async def test_json_round_trip(self, redis_client):
        """Values are stored as JSON"""
        await cache_set("k", {"value": 1.5, "hasData": True}, ttl=60, client=redis_client)

        assert await cache_get("k", client=redis_client) == {"value": 1.5, "hasData": True}
        assert 0 < await redis_client.ttl("k") <= 60

    async def test_missing_key(self, redis_client):
        """Missing keys read as None"""
        assert await cache_get("missing", client=redis_client) is None


class TestCacheManager:
    """Tests for CacheManager"""

    async def test_namespaced_keys(self, redis_client):
        """Keys are prefixed with the namespace"""
        cache = CacheManager("analytics:aggregations", default_ttl=30, client=redis_client)
        await cache.set("metric-1:SUM:all:", {"value": 3})

        assert await redis_client.exists("analytics:aggregations:metric-1:SUM:all:") == 1
        assert await cache.get("metric-1:SUM:all:") == {"value": 3}

    async def test_invalidate_prefix(self, redis_client):
        """Prefix invalidation only touches matching keys in the namespace"""
        cache = CacheManager("agg", client=redis_client)
        other = CacheManager("other", client=redis_client)
        await cache.set("metric-1:SUM", 1)
        await cache.set("metric-1:AVG", 2)
        await cache.set("metric-2:SUM", 3)
        await other.set("metric-1:SUM", 4)

        deleted = await cache.invalidate_prefix("metric-1:")

        assert deleted == 2
        assert await cache.get("metric-2:SUM") == 3
        assert await other.get("metric-1:SUM") == 4

    async def test_invalidate_all(self, redis_client):
        """invalidate_all clears the namespace"""
        cache = CacheManager("agg", client=redis_client)
        await cache.set("a", 1)
        await cache.set("b", 2)

        assert await cache.invalidate_all() == 2
        assert await cache.get("a") is None

    def test_aggregation_cache_without_redis(self):
        """Without an initialized Redis the aggregation cache is disabled"""
        assert aggregation_cache() is None
