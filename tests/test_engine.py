import json

import pytest

from engine import build_backend, build_engine
from engine.config import EngineConfig
from storage.backends import MemoryBackend, SQLiteBackend


def test_build_engine_shares_collaborators():
    engine = build_engine(EngineConfig.from_dict({"backend": "memory"}))

    assert isinstance(engine.backend, MemoryBackend)
    assert engine.store.backend is engine.backend
    assert engine.snapshots.store is engine.store
    assert engine.snapshots.ephemeral_cache is engine.ephemeral_cache
    assert engine.search.cache is engine.ephemeral_cache
    assert engine.store.reporter is engine.reporter


def test_injected_backend_is_used():
    fake = MemoryBackend()
    engine = build_engine(EngineConfig.from_dict({}), backend=fake)
    assert engine.backend is fake


def test_sqlite_backend_from_config(tmp_path):
    config = EngineConfig.from_dict({"backend": "sqlite", "db_path": str(tmp_path / "e.db")})
    backend = build_backend(config)
    assert isinstance(backend, SQLiteBackend)
    backend.close()


def test_unknown_backend():
    with pytest.raises(ValueError):
        build_backend(EngineConfig.from_dict({"backend": "floppy"}))


def test_end_to_end_backup_cycle():
    engine = build_engine(EngineConfig.from_dict({"backend": "memory"}))
    engine.store.set("orders", [{"id": "1", "tenantId": "t1", "customerName": "Ana", "status": "ready"}])

    assert engine.search.search("t1", "ana")
    text = engine.snapshots.create_snapshot()

    engine.store.set("orders", [])
    engine.snapshots.restore_snapshot(text)

    assert json.loads(text)["collections"]["orders"][0]["id"] == "1"
    assert engine.store.get("orders")[0]["customerName"] == "Ana"
    assert engine.ephemeral_cache.get_stats()["entries"] == 0
