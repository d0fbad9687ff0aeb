"""Configuration loader for the data engine."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


@dataclass(frozen=True)
class CacheConfig:
    persist_timeout_ms: int
    persist_max_timeout_ms: int
    search_ttl_ms: int


@dataclass(frozen=True)
class BackupConfig:
    export_dir: Path
    filename_prefix: str


@dataclass(frozen=True)
class EngineConfig:
    backend: str
    db_path: str
    quota_bytes: Optional[int]
    log_level: str
    cache: CacheConfig
    backup: BackupConfig

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        cache_data = data.get("cache", {})
        backup_data = data.get("backup", {})
        quota = data.get("quota_bytes")
        return cls(
            backend=data.get("backend", "sqlite"),
            db_path=os.path.expanduser(data.get("db_path", "~/.laundry/data/storage.db")),
            quota_bytes=int(quota) if quota is not None else None,
            log_level=str(data.get("log_level", "INFO")).upper(),
            cache=CacheConfig(
                persist_timeout_ms=int(cache_data.get("persist_timeout_ms", 300000)),
                persist_max_timeout_ms=int(cache_data.get("persist_max_timeout_ms", 3600000)),
                search_ttl_ms=int(cache_data.get("search_ttl_ms", 120000)),
            ),
            backup=BackupConfig(
                export_dir=Path(os.path.expanduser(backup_data.get("export_dir", "."))),
                filename_prefix=backup_data.get("filename_prefix", "laundry-backup"),
            ),
        )


ENV_MAP = {
    "backend": "DATA_ENGINE_BACKEND",
    "db_path": "DATA_ENGINE_DB_PATH",
    "quota_bytes": "DATA_ENGINE_QUOTA_BYTES",
    "log_level": "DATA_ENGINE_LOG_LEVEL",
    "cache.persist_timeout_ms": "PERSIST_CACHE_TIMEOUT_MS",
    "cache.persist_max_timeout_ms": "PERSIST_CACHE_MAX_TIMEOUT_MS",
    "cache.search_ttl_ms": "SEARCH_CACHE_TTL_MS",
    "backup.export_dir": "BACKUP_EXPORT_DIR",
    "backup.filename_prefix": "BACKUP_FILENAME_PREFIX",
}

INT_KEYS = {"quota_bytes", "persist_timeout_ms", "persist_max_timeout_ms", "search_ttl_ms"}


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def merge_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    merged = json.loads(json.dumps(config_data))  # deep copy via json

    for dotted_key, env_name in ENV_MAP.items():
        if env_name not in os.environ:
            continue
        value: Any = os.environ[env_name]
        target = merged
        parts = dotted_key.split(".")
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        last = parts[-1]
        if last in INT_KEYS:
            value = int(value)
        target[last] = value

    return merged


def load_config(config_path: str | Path = "config/engine.defaults.yml") -> EngineConfig:
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = load_yaml(path)
    data = merge_env_overrides(data)
    return EngineConfig.from_dict(data)
