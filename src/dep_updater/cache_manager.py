"""
Cache for registry lookups with TTL-based expiration.

Version listings and fetched parent POMs are cached per (name, registry) so a
run that resolves many properties through the same parent, or a caller that
shares one cache across the checkers of a single run, does not repeat
network calls. A cache belongs to the registry client (or the run) that
created it; nothing is kept between runs. Only definitive answers are
cached; unreachable sources are never recorded.
"""

import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, Optional

from .config import get_config


@dataclass(frozen=True)
class CacheKey:
    """Cache key for registry lookups."""

    name: str
    registry_type: str

    def __str__(self) -> str:
        return f"{self.registry_type}:{self.name}"


@dataclass
class CacheEntry:
    """Cache entry with TTL and access tracking."""

    key: CacheKey
    data: Any
    created_at: float
    last_accessed: float
    ttl_seconds: int
    access_count: int = 0

    def is_expired(self) -> bool:
        return (time.time() - self.created_at) > self.ttl_seconds

    def touch(self) -> None:
        self.last_accessed = time.time()
        self.access_count += 1


class CacheStats:
    """Cache performance statistics."""

    def __init__(self):
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expired_removals = 0
        self._lock = Lock()

    def record_hit(self) -> None:
        with self._lock:
            self.hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self.misses += 1

    def record_eviction(self) -> None:
        with self._lock:
            self.evictions += 1

    def record_expired_removal(self) -> None:
        with self._lock:
            self.expired_removals += 1

    def get_hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "hits": self.hits,
                "misses": self.misses,
                "evictions": self.evictions,
                "expired_removals": self.expired_removals,
                "hit_rate": self.get_hit_rate(),
            }


class RegistryCacheManager:
    """
    Thread-safe in-memory cache with TTL expiration and LRU eviction.

    Args:
        max_size: Maximum number of entries before the least recently used is evicted
        default_ttl_seconds: TTL applied when ``put`` is not given one
        enabled: When False every lookup misses and nothing is stored
    """

    def __init__(self, max_size: int = 1000, default_ttl_seconds: int = 3600, enabled: bool = True):
        self.max_size = max_size
        self.default_ttl_seconds = default_ttl_seconds
        self.enabled = enabled
        self._cache: Dict[str, CacheEntry] = {}
        self._lock = Lock()
        self.stats = CacheStats()

    def _evict_lru(self) -> None:
        if not self._cache:
            return
        lru_key = min(self._cache, key=lambda k: self._cache[k].last_accessed)
        del self._cache[lru_key]
        self.stats.record_eviction()

    def get(self, name: str, registry_type: str) -> Optional[Any]:
        """Return cached data, or None on a miss or expired entry."""
        if not self.enabled:
            return None

        key = str(CacheKey(name, registry_type))
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self.stats.record_miss()
                return None
            if entry.is_expired():
                del self._cache[key]
                self.stats.record_expired_removal()
                self.stats.record_miss()
                return None
            entry.touch()
            self.stats.record_hit()
            return entry.data

    def put(self, name: str, registry_type: str, data: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store data under (name, registry_type)."""
        if not self.enabled:
            return

        cache_key = CacheKey(name, registry_type)
        now = time.time()
        with self._lock:
            if str(cache_key) not in self._cache and len(self._cache) >= self.max_size:
                self._evict_lru()
            self._cache[str(cache_key)] = CacheEntry(
                key=cache_key,
                data=data,
                created_at=now,
                last_accessed=now,
                ttl_seconds=ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds,
            )

    def remove(self, name: str, registry_type: str) -> bool:
        with self._lock:
            return self._cache.pop(str(CacheKey(name, registry_type)), None) is not None

    def clear(self) -> int:
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
            return count

    def size(self) -> int:
        with self._lock:
            return len(self._cache)

    def get_stats(self) -> Dict[str, Any]:
        stats = self.stats.get_stats()
        stats["size"] = self.size()
        stats["max_size"] = self.max_size
        return stats


def create_cache_manager() -> RegistryCacheManager:
    """Create an empty cache sized from the performance configuration."""
    performance = get_config().performance
    return RegistryCacheManager(
        max_size=performance.max_cache_size,
        default_ttl_seconds=performance.cache_ttl_seconds,
        enabled=performance.enable_caching,
    )
