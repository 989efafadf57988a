"""
Caching Module
Result caches for search outcomes (in-process, Redis, or disabled).
"""

from .result_cache import CacheStatistics, InMemoryResultCache, NullResultCache, ResultCache
from .redis_cache import RedisCacheError, RedisResultCache

__all__ = [
    "CacheStatistics",
    "ResultCache",
    "InMemoryResultCache",
    "NullResultCache",
    "RedisCacheError",
    "RedisResultCache",
]
