"""Tenant-scoped global search over persisted collections."""

from .global_search import GlobalSearch, SearchResult

__all__ = ['GlobalSearch', 'SearchResult']
