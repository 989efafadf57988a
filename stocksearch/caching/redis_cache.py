"""
Redis Cache Client
Shared result cache with connection pooling.
"""

import logging
import pickle
from typing import Any, Dict, Optional

import redis
from redis.connection import ConnectionPool

from .result_cache import ResultCache

logger = logging.getLogger(__name__)


class RedisCacheError(Exception):
    """Exception raised for Redis cache errors."""

    pass


class RedisResultCache(ResultCache):
    """
    Redis-backed result cache.

    Values are pickled and written with SETEX. Connection and serialization
    errors are logged, counted and reported as misses.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        ttl: int = 300,
        key_prefix: str = "stocksearch:",
        client: Optional[redis.Redis] = None,
    ):
        """
        Initialize Redis cache client.

        Args:
            host: Redis host
            port: Redis port
            db: Redis database number
            password: Redis password
            ttl: Default time-to-live in seconds
            key_prefix: Namespace for every key written
            client: Pre-built client (skips pool creation)
        """
        super().__init__()
        self.ttl = ttl
        self.key_prefix = key_prefix
        self.client = client
        self.pool: Optional[ConnectionPool] = None

        if client is None:
            # Create connection pool
            self.pool = ConnectionPool(
                host=host,
                port=port,
                db=db,
                password=password,
                decode_responses=False,  # Values are pickled bytes
                max_connections=20,
                socket_timeout=5,
                socket_connect_timeout=5,
            )

        logger.info(f"Redis result cache initialized: {host}:{port} (db={db})")

    @property
    def backend(self) -> str:
        return "redis"

    def _get_client(self) -> redis.Redis:
        """
        Get Redis client (lazy initialization).

        Raises:
            RedisCacheError: If connection fails
        """
        if self.client is None:
            try:
                self.client = redis.Redis(connection_pool=self.pool)
                # Test connection
                self.client.ping()
                logger.info("Redis connection established")
            except redis.ConnectionError as e:
                self.client = None
                raise RedisCacheError(f"Failed to connect to Redis: {e}")

        return self.client

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def get(self, key: str) -> Optional[Any]:
        try:
            data = self._get_client().get(self._key(key))
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis GET error for key '{key}': {e}")
            self.statistics.record_error()
            self.statistics.record_miss()
            return None

        if data is None:
            self.statistics.record_miss()
            return None

        try:
            value = pickle.loads(data)
        except (pickle.UnpicklingError, AttributeError, EOFError, ImportError, TypeError) as e:
            logger.error(f"Error deserializing cached data for key '{key}': {e}")
            self.statistics.record_error()
            self.statistics.record_miss()
            return None

        self.statistics.record_hit()
        return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        ttl = self.ttl if ttl is None else ttl
        try:
            data = pickle.dumps(value)
        except (pickle.PicklingError, AttributeError, TypeError) as e:
            logger.error(f"Error serializing data for key '{key}': {e}")
            self.statistics.record_error()
            return False

        try:
            self._get_client().setex(self._key(key), ttl, data)
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis SET error for key '{key}': {e}")
            self.statistics.record_error()
            return False

        self.statistics.record_set()
        return True

    def clear(self) -> None:
        """Delete every key under this cache's prefix."""
        try:
            client = self._get_client()
            keys = list(client.scan_iter(match=f"{self.key_prefix}*"))
            if keys:
                client.delete(*keys)
            logger.info(f"Cleared {len(keys)} cached results")
        except (redis.RedisError, RedisCacheError) as e:
            logger.error(f"Redis CLEAR error: {e}")
            self.statistics.record_error()

    def ping(self) -> bool:
        try:
            return bool(self._get_client().ping())
        except (redis.RedisError, RedisCacheError) as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    def stats(self) -> Dict[str, Any]:
        stats = super().stats()
        stats["ttl_seconds"] = self.ttl
        return stats
