"""
Query Cache - in-memory result caching for huginn searches.

Entries are keyed by index version as well as query and options, so a
rebuilt index never serves results computed against an older snapshot.
"""

import hashlib
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class CacheEntry:
    """Represents a cache entry with metadata."""

    key: str
    value: Any
    created_at: float
    accessed_at: float
    ttl: Optional[float] = None  # Time to live in seconds
    index_version: int = 0


@dataclass
class CacheStats:
    """Cache statistics and metrics."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    entry_count: int = 0


class QueryCache:
    """Thread-safe LRU cache for search responses."""

    def __init__(self, max_entries: int = 256, ttl_seconds: Optional[float] = 3600, enabled: bool = True):
        self.max_entries = max(int(max_entries), 1)
        self.default_ttl = ttl_seconds
        self.enabled = enabled

        # Thread safety
        self._lock = threading.RLock()
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self.stats = CacheStats()

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "QueryCache":
        config = config or {}
        return cls(
            max_entries=config.get("max_entries", 256),
            ttl_seconds=config.get("ttl_seconds", 3600),
            enabled=config.get("enabled", True),
        )

    @staticmethod
    def make_key(index_version: int, query: str, options_key: str) -> str:
        """Generate cache key for a query against one index version."""
        key_data = f"{index_version}:{query}:{options_key}"
        return hashlib.sha256(key_data.encode("utf-8")).hexdigest()

    def _is_expired(self, entry: CacheEntry) -> bool:
        if entry.ttl is None:
            return False
        return time.time() - entry.created_at > entry.ttl

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.stats.misses += 1
                return None

            if self._is_expired(entry):
                del self._entries[key]
                self.stats.misses += 1
                self.stats.evictions += 1
                self.stats.entry_count = len(self._entries)
                return None

            entry.accessed_at = time.time()
            self._entries.move_to_end(key)
            self.stats.hits += 1
            return entry.value

    def put(self, key: str, value: Any, index_version: int = 0, ttl: Optional[float] = None) -> None:
        if not self.enabled:
            return

        now = time.time()
        with self._lock:
            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                created_at=now,
                accessed_at=now,
                ttl=self.default_ttl if ttl is None else ttl,
                index_version=index_version,
            )
            self._entries.move_to_end(key)

            # LRU eviction
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
                self.stats.evictions += 1

            self.stats.entry_count = len(self._entries)

    def invalidate_before(self, index_version: int) -> int:
        """Drop entries computed against versions older than ``index_version``."""
        with self._lock:
            stale = [k for k, e in self._entries.items() if e.index_version < index_version]
            for key in stale:
                del self._entries[key]
            self.stats.evictions += len(stale)
            self.stats.entry_count = len(self._entries)
            return len(stale)

    def clear(self) -> int:
        with self._lock:
            cleared = len(self._entries)
            self._entries.clear()
            self.stats = CacheStats()
            return cleared

    def get_cache_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total_requests = self.stats.hits + self.stats.misses
            hit_rate = (self.stats.hits / total_requests * 100) if total_requests > 0 else 0

            return {
                "enabled": self.enabled,
                "hit_rate_percent": round(hit_rate, 2),
                "total_hits": self.stats.hits,
                "total_misses": self.stats.misses,
                "total_evictions": self.stats.evictions,
                "entry_count": len(self._entries),
                "max_entries": self.max_entries,
            }
