"""
TTL key/value cache with an optional persistent mirror.
"""
import re
import time
import threading
import logging
from dataclasses import replace
from typing import Dict, Optional, Callable, Any, Awaitable, Union, Pattern

from .core import CacheEntry
from .persistence import SQLiteCacheMirror

logger = logging.getLogger("cache.service")

DEFAULT_TTL_SECONDS = 5 * 60
DEFAULT_MAX_MEMORY_ITEMS = 100


class CacheService:
    """
    In-memory TTL cache.

    - Entries are fresh while ``now - stored_at < ttl``; stale entries read as absent
    - Every write replaces the previous entry for the key (last write wins)
    - Writes go through to an optional SQLite mirror; mirror failures are logged
      and ignored since memory is authoritative within the process
    - Bounded: past ``max_memory_items`` expired entries go first, then the oldest
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        max_memory_items: int = DEFAULT_MAX_MEMORY_ITEMS,
        mirror: Optional[SQLiteCacheMirror] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache service.

        Args:
            default_ttl: TTL in seconds used when ``set`` is called without one
            max_memory_items: Soft bound on the in-memory map
            mirror: Optional persistent mirror
            clock: Wall-clock source, injectable for tests
        """
        self._cache: Dict[str, CacheEntry] = {}
        self._cache_lock = threading.RLock()
        self._default_ttl = default_ttl
        self._max_memory_items = max_memory_items
        self._mirror = mirror
        self._clock = clock

        self._stats = {
            "hits": 0,
            "misses": 0,
            "mirror_restores": 0,
            "evictions": 0,
        }

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store ``value`` under ``key``, replacing any previous entry."""
        entry = CacheEntry(
            value=value,
            stored_at=self._clock(),
            ttl_seconds=self._default_ttl if ttl is None else ttl,
        )
        with self._cache_lock:
            self._cache[key] = entry
            if len(self._cache) > self._max_memory_items:
                self._cleanup_memory()

        if self._mirror is not None and not self._mirror.save(key, entry):
            # An older mirrored row must not outlive the value that replaced it
            self._mirror.delete(key)

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """
        Return a copy of the fresh entry for ``key``, or None.

        Stale entries are deleted on the way out. On a memory miss the mirror
        is consulted and a fresh mirrored entry is restored into memory.
        """
        now = self._clock()
        with self._cache_lock:
            entry = self._cache.get(key)
            if entry is not None:
                if entry.is_fresh(now):
                    self._stats["hits"] += 1
                    logger.debug(f"CACHE HIT: {key} [age={entry.age_seconds(now):.1f}s]")
                    return replace(entry)
                del self._cache[key]
                logger.debug(f"CACHE EXPIRED: {key}")

        if self._mirror is not None:
            mirrored = self._mirror.load(key)
            if mirrored is not None:
                if mirrored.is_fresh(now):
                    with self._cache_lock:
                        self._cache[key] = mirrored
                        self._stats["hits"] += 1
                        self._stats["mirror_restores"] += 1
                    logger.debug(f"CACHE HIT (mirror): {key}")
                    return replace(mirrored)
                self._mirror.delete(key)

        with self._cache_lock:
            self._stats["misses"] += 1
        return None

    def get(self, key: str, default: Any = None) -> Any:
        """Return the fresh value for ``key``, or ``default``."""
        entry = self.get_entry(key)
        if entry is None:
            return default
        return entry.value

    def delete(self, key: str) -> bool:
        """
        Remove a specific cache entry.

        Returns:
            True if an in-memory entry was found and removed
        """
        with self._cache_lock:
            found = self._cache.pop(key, None) is not None
        if self._mirror is not None:
            self._mirror.delete(key)
        if found:
            logger.info(f"Invalidated cache: {key}")
        return found

    def invalidate_pattern(self, pattern: Union[str, Pattern[str]]) -> int:
        """
        Invalidate all cache entries matching a pattern.

        Args:
            pattern: Substring to look for in keys, or a compiled regex
                     matched anywhere in the key

        Returns:
            Number of in-memory entries invalidated
        """
        is_regex = isinstance(pattern, re.Pattern)
        label = pattern.pattern if is_regex else pattern

        def matches(key: str) -> bool:
            if is_regex:
                return pattern.search(key) is not None
            return pattern in key

        with self._cache_lock:
            to_delete = [k for k in self._cache if matches(k)]
            for key in to_delete:
                del self._cache[key]

        if self._mirror is not None:
            self._mirror.delete_many([k for k in self._mirror.keys() if matches(k)])

        if to_delete:
            logger.info(f"Invalidated {len(to_delete)} entries matching '{label}'")
        return len(to_delete)

    def clear(self) -> int:
        """
        Clear all cache entries.

        Returns:
            Number of in-memory entries cleared
        """
        with self._cache_lock:
            count = len(self._cache)
            self._cache.clear()
        if self._mirror is not None:
            self._mirror.clear()
        logger.info(f"Cleared {count} cache entries")
        return count

    def dispose(self) -> None:
        """Drop every in-memory entry and detach the mirror."""
        with self._cache_lock:
            self._cache.clear()
        self._mirror = None

    async def get_or_set(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        """
        Return the cached value, or await ``fetcher`` and cache its result.

        A failing fetcher propagates and leaves the cache untouched.
        """
        entry = self.get_entry(key)
        if entry is not None:
            return entry.value

        data = await fetcher()
        self.set(key, data, ttl)
        return data

    def _cleanup_memory(self) -> None:
        """Evict expired entries, then the oldest ones. Caller holds the lock."""
        now = self._clock()
        expired = [k for k, e in self._cache.items() if not e.is_fresh(now)]
        for key in expired:
            del self._cache[key]
        evicted = len(expired)

        overflow = len(self._cache) - self._max_memory_items
        if overflow > 0:
            oldest = sorted(self._cache.items(), key=lambda item: item[1].stored_at)
            for key, _ in oldest[:overflow]:
                del self._cache[key]
            evicted += overflow

        self._stats["evictions"] += evicted
        logger.debug(f"Evicted {evicted} cache entries")

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        persisted = self._mirror.count() if self._mirror is not None else 0
        with self._cache_lock:
            total_requests = self._stats["hits"] + self._stats["misses"]
            hit_rate = (self._stats["hits"] / total_requests * 100) if total_requests > 0 else 0

            return {
                "memory_size": len(self._cache),
                "persisted_size": persisted,
                "max_memory_items": self._max_memory_items,
                "hits": self._stats["hits"],
                "misses": self._stats["misses"],
                "mirror_restores": self._stats["mirror_restores"],
                "evictions": self._stats["evictions"],
                "hit_rate_percent": round(hit_rate, 1),
            }


# Global cache service instance
_cache_service: Optional[CacheService] = None


def get_cache_service() -> CacheService:
    """Get or create the process-wide cache service from settings."""
    global _cache_service
    if _cache_service is None:
        from config.settings import settings

        mirror = SQLiteCacheMirror(settings.cache_db_path) if settings.cache_persist else None
        _cache_service = CacheService(
            default_ttl=settings.cache_default_ttl_seconds,
            max_memory_items=settings.cache_max_memory_items,
            mirror=mirror,
        )
    return _cache_service


def reset_cache_service() -> None:
    """Dispose the process-wide cache service; the next access builds a new one."""
    global _cache_service
    if _cache_service is not None:
        _cache_service.dispose()
    _cache_service = None
