"""
Redis Cache Module

Caching layer with:
- Connection pooling
- JSON serialization
- TTL management
- Namespaced invalidation
"""

import json
from typing import Any, Optional, Union
from datetime import timedelta

import structlog
from redis.asyncio import Redis, ConnectionPool

from analytics_dashboard.config import get_settings

logger = structlog.get_logger(__name__)
settings = get_settings()

# Global Redis connection
_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


async def init_redis() -> Redis:
    """Initialize Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    _redis_pool = ConnectionPool.from_url(
        settings.redis.get_url(),
        max_connections=settings.redis.max_connections,
        socket_timeout=settings.redis.socket_timeout,
        decode_responses=settings.redis.decode_responses,
    )

    client = Redis(connection_pool=_redis_pool)

    try:
        await client.ping()
        logger.info("Redis connection established")
    except Exception as e:
        logger.error("Redis connection failed", error=str(e))
        await _redis_pool.disconnect()
        _redis_pool = None
        raise

    _redis_client = client
    return _redis_client


async def close_redis() -> None:
    """Close Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None

    logger.info("Redis connection closed")


def get_redis() -> Redis:
    """Get Redis client instance"""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


def redis_available() -> bool:
    return _redis_client is not None


async def cache_get(key: str, client: Optional[Redis] = None) -> Optional[Any]:
    """
    Get value from cache.

    Returns:
        Cached value or None if not found
    """
    if client is None:
        client = get_redis()
    value = await client.get(key)

    if value is None:
        return None

    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


async def cache_set(
    key: str,
    value: Any,
    ttl: Optional[Union[int, timedelta]] = None,
    client: Optional[Redis] = None,
) -> bool:
    """
    Set value in cache.

    Args:
        key: Cache key
        value: Value to cache (will be JSON serialized)
        ttl: Time-to-live in seconds or timedelta
        client: Redis client, defaults to the shared one
    """
    if client is None:
        client = get_redis()

    try:
        serialized = json.dumps(value, default=str)
    except (TypeError, ValueError) as e:
        logger.warning("Failed to serialize value for cache", key=key, error=str(e))
        return False

    if ttl:
        if isinstance(ttl, timedelta):
            ttl = int(ttl.total_seconds())
        await client.setex(key, ttl, serialized)
    else:
        await client.set(key, serialized)

    return True


async def cache_delete(key: str, client: Optional[Redis] = None) -> bool:
    """Delete key from cache"""
    if client is None:
        client = get_redis()
    result = await client.delete(key)
    return result > 0


async def cache_delete_pattern(pattern: str, client: Optional[Redis] = None) -> int:
    """Delete all keys matching pattern"""
    if client is None:
        client = get_redis()
    keys = [key async for key in client.scan_iter(match=pattern)]

    if not keys:
        return 0

    return await client.delete(*keys)


class CacheManager:
    """
    Cache manager with namespace support and automatic key generation.

    Example:
        cache = CacheManager("analytics:aggregations", default_ttl=60)
        await cache.set("metric-1:SUM:all", result.to_dict())
        cached = await cache.get("metric-1:SUM:all")
    """

    def __init__(self, namespace: str, default_ttl: int = 3600, client: Optional[Redis] = None):
        self.namespace = namespace
        self.default_ttl = default_ttl
        self.client = client

    def _key(self, key: str) -> str:
        """Generate namespaced key"""
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        return await cache_get(self._key(key), client=self.client)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return await cache_set(self._key(key), value, ttl or self.default_ttl, client=self.client)

    async def delete(self, key: str) -> bool:
        return await cache_delete(self._key(key), client=self.client)

    async def invalidate_prefix(self, prefix: str) -> int:
        """Invalidate keys in the namespace starting with `prefix`"""
        return await cache_delete_pattern(f"{self.namespace}:{prefix}*", client=self.client)

    async def invalidate_all(self) -> int:
        """Invalidate all keys in namespace"""
        return await cache_delete_pattern(f"{self.namespace}:*", client=self.client)


def aggregation_cache() -> Optional[CacheManager]:
    """Aggregation result cache, or None when caching is off or Redis is down"""
    if not settings.cache.enabled or not redis_available():
        return None
    return CacheManager(
        f"{settings.cache.namespace}:aggregations",
        default_ttl=settings.cache.aggregation_ttl,
        client=get_redis(),
    )
