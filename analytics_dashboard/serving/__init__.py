"""
Serving Module
"""
from .cache import CacheManager, init_redis, close_redis, get_redis, cache_get, cache_set

__all__ = [
    "CacheManager",
    "init_redis",
    "close_redis",
    "get_redis",
    "cache_get",
    "cache_set",
]
