#!/usr/bin/env python3
"""
Ephemeral Cache Layer
In-memory TTL cache for derived results (search, aggregates)

Implements:
- get(key) → value | MISS
- set(key, value, ttl_ms)
- invalidate(key_prefix=None)
- clear_expired()
- get_stats() → {hits, misses, writes, evictions, entries}

Entries are safe to lose: nothing here is a durability guarantee.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class _Miss:
    """Sentinel returned by EphemeralCache.get on a miss."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS = _Miss()


@dataclass
class CacheEntry:
    """A cached value with its write time and expiry, in epoch milliseconds."""
    value: Any
    stored_at_ms: int
    expires_at_ms: int

    def __post_init__(self):
        if self.expires_at_ms < self.stored_at_ms:
            raise ValueError("expires_at_ms must be >= stored_at_ms")

    def is_expired(self, now_ms: int) -> bool:
        return now_ms >= self.expires_at_ms


class EphemeralCache:
    """
    Pure in-memory cache with per-entry TTL and prefix invalidation.

    Design principles:
    - Lazy eviction: an expired entry is a miss and is dropped on read
    - Invalidation is cheap and scoped by key prefix
    - Graceful degradation: cache miss = recompute, never an error
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None, name: str = "ephemeral"):
        # clock returns epoch seconds; defaults to time.time at call time
        self._clock = clock
        self.name = name
        self._entries: Dict[str, CacheEntry] = {}

        self.stats = {
            "hits": 0,
            "misses": 0,
            "writes": 0,
            "evictions": 0,
            "invalidations": 0,
        }

    def _now_ms(self) -> int:
        now = self._clock() if self._clock else time.time()
        return int(now * 1000)

    def get(self, key: str) -> Any:
        """Return the cached value, or MISS if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            self.stats["misses"] += 1
            return MISS

        if entry.is_expired(self._now_ms()):
            del self._entries[key]
            self.stats["misses"] += 1
            self.stats["evictions"] += 1
            logger.debug(f"[{self.name}] expired {key}")
            return MISS

        self.stats["hits"] += 1
        return entry.value

    def set(self, key: str, value: Any, ttl_ms: int) -> CacheEntry:
        """Store value under key for ttl_ms milliseconds, replacing any previous entry."""
        if ttl_ms < 0:
            raise ValueError(f"ttl_ms must be non-negative, got {ttl_ms}")

        now = self._now_ms()
        entry = CacheEntry(value=value, stored_at_ms=now, expires_at_ms=now + ttl_ms)
        self._entries[key] = entry
        self.stats["writes"] += 1
        logger.debug(f"[{self.name}] cached {key} (ttl={ttl_ms}ms)")
        return entry

    def delete(self, key: str) -> bool:
        """Drop a single entry. Returns True if it existed."""
        return self._entries.pop(key, None) is not None

    def invalidate(self, key_prefix: Optional[str] = None) -> int:
        """
        Drop cached entries.

        Without a prefix the whole cache is cleared. With a prefix only keys
        starting with it are dropped, e.g. one tenant's search results.
        """
        if key_prefix is None:
            cleared = len(self._entries)
            self._entries.clear()
        else:
            doomed = [k for k in self._entries if k.startswith(key_prefix)]
            for k in doomed:
                del self._entries[k]
            cleared = len(doomed)

        self.stats["invalidations"] += 1
        self.stats["evictions"] += cleared
        if cleared:
            logger.info(f"[{self.name}] invalidated {cleared} entries (prefix={key_prefix!r})")
        return cleared

    def clear_expired(self) -> int:
        """Remove all expired entries. Optional; reads already ignore them."""
        now = self._now_ms()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for k in expired:
            del self._entries[k]

        if expired:
            self.stats["evictions"] += len(expired)
            logger.debug(f"[{self.name}] swept {len(expired)} expired entries")
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_requests = self.stats["hits"] + self.stats["misses"]
        hit_rate = (self.stats["hits"] / total_requests * 100) if total_requests > 0 else 0

        return {
            "hits": self.stats["hits"],
            "misses": self.stats["misses"],
            "hit_rate_percent": round(hit_rate, 1),
            "total_requests": total_requests,
            "entries": len(self._entries),
            "writes": self.stats["writes"],
            "evictions": self.stats["evictions"],
            "invalidations": self.stats["invalidations"],
        }
