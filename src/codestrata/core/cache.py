"""In-memory TTL cache for analysis results.

Entries are keyed by a pure function of the request, so two identical
requests share an entry until it expires or is invalidated. Entries are
immutable; a recomputation replaces the entry, never edits it.
"""

import hashlib
import threading
import time
from collections.abc import Callable
from pathlib import Path

import orjson
from loguru import logger

from ..config.defaults import DEFAULT_CACHE_MAX_AGE
from .models import AnalysisRequest, AnalysisResult, CacheEntry


class LayeredCache:
    """Thread-safe TTL cache of AnalysisResult values.

    Example:
        >>> cache = LayeredCache(max_age=600)
        >>> key = LayeredCache.make_key(root, request)
        >>> result = cache.get_or_compute(key, lambda: run_pipeline(request))
    """

    def __init__(
        self,
        max_age: float = DEFAULT_CACHE_MAX_AGE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            max_age: Seconds an entry stays fresh
            clock: Time source in seconds, injectable for tests
        """
        self.max_age = max_age
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._key_locks: dict[str, threading.Lock] = {}
        self._hits = 0
        self._misses = 0
        self._expired = 0

    @staticmethod
    def make_key(root: Path | str, request: AnalysisRequest) -> str:
        """Build the cache key of a request.

        Pure: the same root and request always give the same key.
        """
        parts = [
            str(root),
            str(request.layer),
            request.focus_path or "",
            "" if request.max_depth is None else str(request.max_depth),
            "tests" if request.include_tests else "",
        ]
        return "|".join(parts)

    @staticmethod
    def compute_hash(result: AnalysisResult) -> str:
        """SHA-256 of the result's canonical JSON serialization."""
        payload = orjson.dumps(
            result.model_dump(mode="json", by_alias=True), option=orjson.OPT_SORT_KEYS
        )
        return hashlib.sha256(payload).hexdigest()

    def get(self, key: str) -> AnalysisResult | None:
        """Get a fresh result, dropping the entry if it has expired.

        Returns:
            The cached result, or None on a miss
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            if self.clock() - entry.timestamp > self.max_age:
                del self._entries[key]
                self._expired += 1
                self._misses += 1
                logger.debug(f"Cache entry expired: {key}")
                return None

            self._hits += 1
            return entry.data

    def set(self, key: str, result: AnalysisResult) -> CacheEntry:
        """Store a result under a key, replacing any previous entry."""
        entry = CacheEntry(
            data=result, timestamp=self.clock(), hash=self.compute_hash(result)
        )
        with self._lock:
            self._entries[key] = entry
        logger.debug(f"Cached {result.layer} result under {key} ({entry.hash[:12]})")
        return entry

    def get_or_compute(
        self, key: str, factory: Callable[[], AnalysisResult]
    ) -> AnalysisResult:
        """Get a fresh result or build it, with at most one builder per key.

        Concurrent callers for the same key wait for the first builder and
        then read its entry. If the factory raises, nothing is stored.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        with self._key_lock(key):
            cached = self.get(key)
            if cached is not None:
                return cached
            result = factory()
            self.set(key, result)
            return result

    def invalidate(self, key: str) -> bool:
        """Drop one entry.

        Returns:
            True if an entry was removed
        """
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        if removed:
            logger.info(f"Invalidated cache entry {key}")
        return removed

    def clear(self) -> int:
        """Drop every entry.

        Returns:
            Number of entries removed
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Cleared analysis cache ({count} entries)")
        return count

    def stats(self) -> dict[str, float | int]:
        """Cache statistics.

        Returns:
            Dictionary with entries, hits, misses, expired and hit_rate
        """
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "expired": self._expired,
                "hit_rate": self._hits / lookups if lookups else 0.0,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def _key_lock(self, key: str) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock
