#!/usr/bin/env python3
"""
Persistent Store — fail-soft typed access to durable storage

Implements:
- get(key, fallback, use_cache, cache_timeout_ms) → value | fallback | None
- set(key, value, use_cache, cache_timeout_ms) → bool
- remove(key) → bool
- clear() → bool

Every public operation is total: backend and serialization errors are
caught here, logged, reported to listeners and turned into a fallback
value or False. Nothing propagates to the caller.
"""

import json
import logging
from typing import Any, Dict, Optional

from cache.cache import EphemeralCache, MISS
from storage.backends import KeyValueBackend
from storage.errors import (
    ErrorReporter,
    StorageBackendError,
    StorageReadError,
    StorageWriteError,
)

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TIMEOUT_MS = 5 * 60 * 1000
MAX_CACHE_TIMEOUT_MS = 60 * 60 * 1000


class PersistentStore:
    """
    Read/write facade over a KeyValueBackend with an optional read cache.

    Write ordering: durable write first, cache second. The cache never
    holds a value that failed to persist, and a write that bypasses the
    cache evicts any older cached copy of the same key.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        default_cache_timeout_ms: int = DEFAULT_CACHE_TIMEOUT_MS,
        max_cache_timeout_ms: int = MAX_CACHE_TIMEOUT_MS,
        reporter: Optional[ErrorReporter] = None,
        clock=None,
    ):
        self.backend = backend
        self.default_cache_timeout_ms = default_cache_timeout_ms
        self.max_cache_timeout_ms = max_cache_timeout_ms
        self.reporter = reporter or ErrorReporter()
        self._cache = EphemeralCache(clock=clock, name="persistent-read")

    def _resolve_timeout(self, cache_timeout_ms: Optional[int]) -> int:
        timeout = self.default_cache_timeout_ms if cache_timeout_ms is None else cache_timeout_ms
        return max(0, min(timeout, self.max_cache_timeout_ms))

    # ── Internal (raising) ───────────────────────────────────────

    def _read(self, key: str) -> Any:
        """Read and parse a durable entry. Returns MISS when absent."""
        try:
            raw = self.backend.get_item(key)
        except StorageBackendError as e:
            raise StorageReadError(key, "backend read failed", e) from e

        if raw is None:
            return MISS

        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError, RecursionError) as e:
            raise StorageReadError(key, "stored payload is not valid JSON", e) from e

    def _write(self, key: str, value: Any) -> Any:
        """Persist value. Returns the decoded copy that get() will see."""
        try:
            payload = json.dumps(value)
            stored = json.loads(payload)
            round_trips = stored == value
        except (TypeError, ValueError, RecursionError) as e:
            raise StorageWriteError(key, "value is not serializable", e) from e

        # Tuples, non-str dict keys and NaN come back changed
        if not round_trips:
            raise StorageWriteError(key, "value does not survive a JSON round trip")

        try:
            self.backend.set_item(key, payload)
        except StorageBackendError as e:
            raise StorageWriteError(key, "backend write failed", e) from e
        return stored

    # ── Public (fail-soft) ───────────────────────────────────────

    def get(
        self,
        key: str,
        fallback: Any = None,
        use_cache: bool = False,
        cache_timeout_ms: Optional[int] = None,
    ) -> Any:
        """
        Retrieve a value, preferring a live cache entry when use_cache is set.

        Args:
            key: Storage key (collection name)
            fallback: Returned when the entry is missing or unreadable
            use_cache: Consult and populate the read cache
            cache_timeout_ms: Cache lifetime; defaults to the configured value

        Returns:
            Parsed value, or fallback (None if not given)
        """
        if use_cache:
            cached = self._cache.get(key)
            if cached is not MISS:
                logger.debug(f"Read cache hit: {key}")
                return cached

        try:
            value = self._read(key)
        except StorageReadError as e:
            self.reporter.report(e, context="get")
            return fallback

        if value is MISS:
            logger.debug(f"No stored value for {key}, using fallback")
            return fallback

        if use_cache:
            timeout = self._resolve_timeout(cache_timeout_ms)
            if timeout > 0:
                self._cache.set(key, value, timeout)

        return value

    def set(
        self,
        key: str,
        value: Any,
        use_cache: bool = False,
        cache_timeout_ms: Optional[int] = None,
    ) -> bool:
        """Persist value under key. Returns False, leaving prior state intact, on failure."""
        try:
            stored = self._write(key, value)
        except StorageWriteError as e:
            self.reporter.report(e, context="set")
            return False

        timeout = self._resolve_timeout(cache_timeout_ms) if use_cache else 0
        if timeout > 0:
            self._cache.set(key, stored, timeout)
        else:
            self._cache.delete(key)

        logger.debug(f"Stored {key}")
        return True

    def remove(self, key: str) -> bool:
        """Delete the durable entry and any cached copy."""
        self._cache.delete(key)
        try:
            self.backend.remove_item(key)
        except StorageBackendError as e:
            self.reporter.report(StorageWriteError(key, "backend delete failed", e), context="remove")
            return False
        return True

    def clear(self) -> bool:
        """Wipe every durable entry and the whole read cache (factory reset)."""
        self._cache.invalidate()
        try:
            self.backend.clear()
        except StorageBackendError as e:
            self.reporter.report(StorageWriteError("*", "backend clear failed", e), context="clear")
            return False
        logger.info("Persistent store cleared")
        return True

    def invalidate_cache(self, key: Optional[str] = None) -> int:
        """Drop cached copies without touching durable storage."""
        if key is None:
            return self._cache.invalidate()
        return 1 if self._cache.delete(key) else 0

    def clear_expired(self) -> int:
        return self._cache.clear_expired()

    def get_stats(self) -> Dict[str, Any]:
        return self._cache.get_stats()
