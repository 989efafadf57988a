"""
Result Cache
TTL caches for complete search outcomes, keyed by query signature.
"""

import copy
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class CacheStatistics:
    """Track cache performance metrics."""

    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.sets = 0
        self.expirations = 0
        self.evictions = 0
        self.errors = 0

        self.start_time = time.time()
        self._lock = threading.Lock()

    def record_hit(self):
        """Record a cache hit."""
        with self._lock:
            self.hits += 1

    def record_miss(self):
        """Record a cache miss."""
        with self._lock:
            self.misses += 1

    def record_set(self):
        """Record a cache set operation."""
        with self._lock:
            self.sets += 1

    def record_expiration(self, count: int = 1):
        with self._lock:
            self.expirations += count

    def record_eviction(self):
        with self._lock:
            self.evictions += 1

    def record_error(self):
        """Record a cache error."""
        with self._lock:
            self.errors += 1

    def get_hit_rate(self) -> float:
        """Calculate overall hit rate."""
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0

    def get_stats(self) -> Dict[str, Any]:
        """Get all statistics."""
        return {
            "uptime_seconds": time.time() - self.start_time,
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "expirations": self.expirations,
            "evictions": self.evictions,
            "errors": self.errors,
            "hit_rate_percent": self.get_hit_rate(),
        }


class ResultCache(ABC):
    """Cache of search outcomes. Failures must surface as misses, never raise."""

    def __init__(self):
        self.statistics = CacheStatistics()

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on miss or expiry."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store value; returns True when stored."""

    @abstractmethod
    def clear(self) -> None:
        """Drop every entry."""

    def stats(self) -> Dict[str, Any]:
        stats = self.statistics.get_stats()
        stats["backend"] = self.backend
        return stats

    @property
    def backend(self) -> str:
        return type(self).__name__


class InMemoryResultCache(ResultCache):
    """
    Process-local TTL cache.

    Entries expire ttl seconds after insertion. Expired entries are dropped
    lazily on lookup and purged opportunistically on insert. When full, the
    oldest entry is evicted. All access is serialized by a lock so a reader
    never observes a half-written entry; concurrent writes to one key keep
    the last value written.

    Values are deep-copied on the way in and on the way out, so a caller that
    mutates what it stored or what it got back never alters the cached entry.
    """

    def __init__(
        self,
        ttl: int = 300,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__()
        self.ttl = ttl
        self.max_entries = max_entries
        self.clock = clock
        self._entries: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def backend(self) -> str:
        return "memory"

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.statistics.record_miss()
                return None

            expires_at, value = entry
            if expires_at <= self.clock():
                del self._entries[key]
                self.statistics.record_expiration()
                self.statistics.record_miss()
                return None

        self.statistics.record_hit()
        return copy.deepcopy(value)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        ttl = self.ttl if ttl is None else ttl
        with self._lock:
            now = self.clock()
            self._purge_expired(now)

            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_entries:
                self._entries.popitem(last=False)
                self.statistics.record_eviction()

            self._entries[key] = (now + ttl, copy.deepcopy(value))

        self.statistics.record_set()
        return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("In-memory result cache cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            self.statistics.record_expiration(len(expired))

    def stats(self) -> Dict[str, Any]:
        stats = super().stats()
        stats["entries"] = len(self)
        stats["ttl_seconds"] = self.ttl
        return stats


class NullResultCache(ResultCache):
    """Cache that never stores anything."""

    @property
    def backend(self) -> str:
        return "none"

    def get(self, key: str) -> Optional[Any]:
        self.statistics.record_miss()
        return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        return False

    def clear(self) -> None:
        pass
