"""
Data engine wiring

build_engine() constructs the backend, persistent store, ephemeral cache,
snapshot manager and search once and hands them out by reference.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from backup.manager import SnapshotManager
from cache.cache import EphemeralCache
from engine.config import EngineConfig, load_config
from search.global_search import GlobalSearch
from storage.backends import KeyValueBackend, MemoryBackend, SQLiteBackend
from storage.errors import ErrorReporter
from storage.persistent_store import PersistentStore

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    config: EngineConfig
    backend: KeyValueBackend
    store: PersistentStore
    ephemeral_cache: EphemeralCache
    snapshots: SnapshotManager
    search: GlobalSearch
    reporter: ErrorReporter

    def close(self) -> None:
        self.backend.close()


def build_backend(config: EngineConfig) -> KeyValueBackend:
    if config.backend == "memory":
        return MemoryBackend(quota_bytes=config.quota_bytes)
    if config.backend == "sqlite":
        return SQLiteBackend(config.db_path, quota_bytes=config.quota_bytes)
    raise ValueError(f"Unknown backend: {config.backend!r}")


def build_engine(config: EngineConfig, backend: Optional[KeyValueBackend] = None) -> Engine:
    """Construct every collaborator once. Pass `backend` to inject a fake."""
    backend = backend or build_backend(config)
    reporter = ErrorReporter()
    store = PersistentStore(
        backend,
        default_cache_timeout_ms=config.cache.persist_timeout_ms,
        max_cache_timeout_ms=config.cache.persist_max_timeout_ms,
        reporter=reporter,
    )
    ephemeral_cache = EphemeralCache(name="derived")
    snapshots = SnapshotManager(
        store,
        ephemeral_cache,
        export_dir=str(config.backup.export_dir),
        filename_prefix=config.backup.filename_prefix,
    )
    search = GlobalSearch(store, ephemeral_cache, ttl_ms=config.cache.search_ttl_ms)

    logger.info(f"Engine ready (backend={type(backend).__name__})")
    return Engine(
        config=config,
        backend=backend,
        store=store,
        ephemeral_cache=ephemeral_cache,
        snapshots=snapshots,
        search=search,
        reporter=reporter,
    )


__all__ = ['Engine', 'EngineConfig', 'build_backend', 'build_engine', 'load_config']
