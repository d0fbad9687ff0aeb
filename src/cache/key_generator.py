#!/usr/bin/env python3
"""
Cache Key Generation — Templated, Prefix-Scoped Keys

Implements:
- search_key(tenant_id, query) → "search_<tenant>_<query>"
- tenant_prefix(tenant_id) → "search_<tenant>_"

Keys are built so that prefix invalidation can target one tenant's
derived results without disturbing any other tenant.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)

SEARCH_NAMESPACE = "search"
ESCAPE = "\\"


class CacheKeyGenerator:
    """
    Generate deterministic cache keys for derived results.

    Design:
    - key = <namespace>_<tenant>_<query>
    - Same tenant + same query = identical key = cache hit
    - Tenant prefix ends with the separator, so tenant "a" never
      matches tenant "ab"
    - Separators inside a tenant id are escaped, so tenant "a" never
      matches tenant "a_b" either. Ids without "_" or "\\" are unchanged.
    """

    def __init__(self, namespace: str = SEARCH_NAMESPACE, separator: str = "_"):
        self.namespace = namespace
        self.separator = separator

    def _escape(self, tenant_id: str) -> str:
        escaped = tenant_id.replace(ESCAPE, ESCAPE * 2)
        return escaped.replace(self.separator, ESCAPE + self.separator)

    def tenant_prefix(self, tenant_id: Optional[str] = None) -> str:
        """Prefix covering every key for a tenant, or the whole namespace."""
        if tenant_id is None:
            return f"{self.namespace}{self.separator}"
        return f"{self.namespace}{self.separator}{self._escape(tenant_id)}{self.separator}"

    def generate_cache_key(self, tenant_id: str, query: str) -> str:
        key = f"{self.tenant_prefix(tenant_id)}{query}"
        logger.debug(f"Generated key: {key}")
        return key


_default = CacheKeyGenerator()


def search_key(tenant_id: str, query: str) -> str:
    return _default.generate_cache_key(tenant_id, query)


def tenant_prefix(tenant_id: Optional[str] = None) -> str:
    return _default.tenant_prefix(tenant_id)
