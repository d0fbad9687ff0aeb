"""
Ephemeral Cache Layer
In-memory TTL memoization for derived results, with prefix invalidation
"""

from .cache import EphemeralCache, CacheEntry, MISS
from .key_generator import CacheKeyGenerator, search_key, tenant_prefix

__all__ = ['EphemeralCache', 'CacheEntry', 'MISS', 'CacheKeyGenerator', 'search_key', 'tenant_prefix']
