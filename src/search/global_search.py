#!/usr/bin/env python3
"""
Global Search — tenant-scoped search over orders and drivers

Results are derived data: cheap to recompute, memoized in the
EphemeralCache for a short TTL under search_<tenant>_<query>, and
dropped whenever the source collections change (restore, or an explicit
invalidate_tenant after a write).
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from cache.cache import EphemeralCache, MISS
from cache.key_generator import CacheKeyGenerator
from storage.persistent_store import PersistentStore

logger = logging.getLogger(__name__)

SEARCH_CACHE_TTL_MS = 2 * 60 * 1000

PREFIX_SCORE = 100
SUBSTRING_SCORE = 50


@dataclass
class SearchResult:
    id: str
    title: str
    description: str
    type: str          # order, customer
    route: str
    score: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _score(text: str, term: str) -> Optional[int]:
    position = text.find(term)
    if position < 0:
        return None
    return PREFIX_SCORE if position == 0 else SUBSTRING_SCORE


class GlobalSearch:
    """Search a tenant's orders and drivers, memoized through EphemeralCache."""

    def __init__(
        self,
        store: PersistentStore,
        cache: EphemeralCache,
        ttl_ms: int = SEARCH_CACHE_TTL_MS,
        keygen: Optional[CacheKeyGenerator] = None,
    ):
        self.store = store
        self.cache = cache
        self.ttl_ms = ttl_ms
        self.keygen = keygen or CacheKeyGenerator()

    def _records(self, name: str) -> List[Dict[str, Any]]:
        records = self.store.get(name, fallback=[], use_cache=True)
        if not isinstance(records, list):
            logger.warning(f"Collection {name!r} is not a list, skipping")
            return []
        return [r for r in records if isinstance(r, dict)]

    def search(self, tenant_id: Optional[str], query: str, tenant_slug: Optional[str] = None) -> List[SearchResult]:
        if not query.strip() or not tenant_id:
            return []

        key = self.keygen.generate_cache_key(tenant_id, query)
        cached = self.cache.get(key)
        if cached is not MISS:
            return cached

        slug = tenant_slug or tenant_id
        term = query.lower()
        results: List[SearchResult] = []

        for order in self._records("orders"):
            if order.get("tenantId") != tenant_id:
                continue
            text = f"{order.get('id', '')} {order.get('customerName', '')} {order.get('status', '')}".lower()
            score = _score(text, term)
            if score is None:
                continue
            results.append(SearchResult(
                id=str(order.get("id", "")),
                title=f"Order #{order.get('id', '')}",
                description=f"Customer: {order.get('customerName', '')} - Status: {order.get('status', '')}",
                type="order",
                route=f"/tenant/{slug}/orders",
                score=score,
            ))

        for driver in self._records("drivers"):
            if driver.get("tenantId") != tenant_id:
                continue
            text = f"{driver.get('name', '')} {driver.get('phone', '')} {driver.get('email', '')}".lower()
            score = _score(text, term)
            if score is None:
                continue
            results.append(SearchResult(
                id=str(driver.get("id", "")),
                title=driver.get("name", ""),
                description=f"Driver - {driver.get('phone', '')} - Status: {driver.get('status', '')}",
                type="customer",
                route=f"/tenant/{slug}/delivery",
                score=score,
            ))

        # Stable sort keeps orders ahead of drivers at equal score
        results.sort(key=lambda r: r.score, reverse=True)
        self.cache.set(key, results, self.ttl_ms)
        logger.debug(f"search tenant={tenant_id} query={query!r} results={len(results)}")
        return results

    def invalidate_tenant(self, tenant_id: Optional[str] = None) -> int:
        """Drop memoized results for one tenant, or for every tenant."""
        return self.cache.invalidate(self.keygen.tenant_prefix(tenant_id))
