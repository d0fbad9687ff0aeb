from pathlib import Path

import pytest

from engine.config import EngineConfig, load_config


def test_load_config_defaults(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("backend: memory", encoding="utf-8")

    cfg = load_config(path)

    assert isinstance(cfg, EngineConfig)
    assert cfg.backend == "memory"
    assert cfg.cache.search_ttl_ms == 120000
    assert cfg.backup.filename_prefix == "laundry-backup"
    assert cfg.quota_bytes is None


def test_env_overrides(monkeypatch, tmp_path):
    source = tmp_path / "config.yml"
    source.write_text("backend: sqlite\ncache:\n  search_ttl_ms: 1000\n", encoding="utf-8")

    monkeypatch.setenv("SEARCH_CACHE_TTL_MS", "5000")
    monkeypatch.setenv("DATA_ENGINE_DB_PATH", str(tmp_path / "x.db"))
    monkeypatch.setenv("DATA_ENGINE_QUOTA_BYTES", "2048")

    cfg = load_config(source)

    assert cfg.cache.search_ttl_ms == 5000
    assert cfg.db_path == str(tmp_path / "x.db")
    assert cfg.quota_bytes == 2048
    assert cfg.backend == "sqlite"


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yml")


def test_shipped_defaults_load():
    path = Path(__file__).parent.parent / "config" / "engine.defaults.yml"

    cfg = load_config(path)

    assert cfg.cache.persist_timeout_ms == 300000
    assert cfg.quota_bytes == 5242880
