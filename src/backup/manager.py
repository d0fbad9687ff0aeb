#!/usr/bin/env python3
"""
Snapshot Manager — Backup & Restore of the Full Persisted State

Export reads the five collections straight from the durable backend,
never from a read cache, and produces pretty-printed JSON. Restore walks

    RECEIVED → PARSED → VALIDATED → APPLIED

and fails at any step with a specific RestoreError. Validation failures
write nothing. Backends have no multi-key transaction, so the validated
snapshot is first staged under one key; the staging key is only removed
once all five collections are written. A restore that dies midway
leaves it behind, and resume_restore() can finish the job.

Usage:
    manager = SnapshotManager(store, ephemeral_cache)
    text = manager.create_snapshot()
    path = manager.export_to_file(text)
    await manager.import_from_file(path)
"""

import asyncio
import json
import logging
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from backup.errors import (
    ExportError,
    FileReadError,
    MalformedSnapshot,
    PartialRestoreFailure,
    RestoreError,
    RestoreInProgress,
)
from backup.snapshot import (
    COLLECTION_DEFAULTS,
    FORMAT_VERSION,
    REQUIRED_COLLECTIONS,
    Snapshot,
    check_version,
    validate_snapshot,
)
from cache.cache import EphemeralCache
from storage.errors import StorageBackendError
from storage.persistent_store import PersistentStore

logger = logging.getLogger(__name__)

STAGING_KEY = "__restore_staging__"
DEFAULT_FILENAME_PREFIX = "laundry-backup"


def default_backup_filename(prefix: str = DEFAULT_FILENAME_PREFIX) -> str:
    """laundry-backup-<YYYY-MM-DD>.json, dated in UTC."""
    return f"{prefix}-{datetime.now(timezone.utc).date().isoformat()}.json"


class SnapshotManager:
    """
    Versioned export and validated import of all persisted collections.

    Only one restore or import runs at a time; a second call while one is
    in flight fails with RestoreInProgress instead of interleaving.
    """

    def __init__(
        self,
        store: PersistentStore,
        ephemeral_cache: EphemeralCache,
        export_dir: Optional[str] = None,
        filename_prefix: str = DEFAULT_FILENAME_PREFIX,
        format_version: str = FORMAT_VERSION,
    ):
        self.store = store
        self.backend = store.backend
        self.ephemeral_cache = ephemeral_cache
        self.export_dir = export_dir
        self.filename_prefix = filename_prefix
        self.format_version = format_version
        self._in_flight = False

    # ── Export ───────────────────────────────────────────────────

    def _read_collection(self, name: str) -> Any:
        try:
            raw = self.backend.get_item(name)
        except StorageBackendError as e:
            raise ExportError(f"could not read {name!r}: {e}") from e

        if raw is None:
            return json.loads(json.dumps(COLLECTION_DEFAULTS[name]))

        try:
            return json.loads(raw)
        except (json.JSONDecodeError, RecursionError) as e:
            raise ExportError(f"stored {name!r} is not valid JSON: {e}") from e

    def build_snapshot(self) -> Snapshot:
        collections = {name: self._read_collection(name) for name in REQUIRED_COLLECTIONS}
        return Snapshot(collections=collections, version=self.format_version)

    def create_snapshot(self) -> str:
        """Snapshot the durable state as pretty-printed JSON text."""
        snapshot = self.build_snapshot()
        text = snapshot.to_text()
        logger.info(
            f"Snapshot created (version={snapshot.version}, timestamp={snapshot.timestamp}, "
            f"bytes={len(text)})"
        )
        return text

    def export_to_file(
        self,
        snapshot_text: str,
        filename: Optional[str] = None,
        directory: Optional[Union[str, Path]] = None,
    ) -> Path:
        """Save snapshot text as a backup file. Returns the written path."""
        target_dir = Path(directory or self.export_dir or os.getcwd())
        path = target_dir / (filename or default_backup_filename(self.filename_prefix))
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(snapshot_text, encoding="utf-8")
        except OSError as e:
            raise ExportError(f"could not write {path}: {e}") from e
        logger.info(f"Backup exported to {path}")
        return path

    # ── Restore ──────────────────────────────────────────────────

    @contextmanager
    def _exclusive(self):
        if self._in_flight:
            raise RestoreInProgress("a restore is already in progress")
        self._in_flight = True
        try:
            yield
        finally:
            self._in_flight = False

    @property
    def restore_in_progress(self) -> bool:
        return self._in_flight

    def restore_snapshot(self, snapshot_text: str) -> Snapshot:
        """Validate and apply snapshot text. Raises a RestoreError subclass on failure."""
        with self._exclusive():
            return self._restore(snapshot_text)

    def _parse(self, snapshot_text: str) -> Dict[str, Any]:
        try:
            return json.loads(snapshot_text)
        except (json.JSONDecodeError, TypeError, RecursionError) as e:
            raise MalformedSnapshot(f"snapshot is not valid JSON: {e}") from e

    def _restore(self, snapshot_text: str) -> Snapshot:
        logger.debug("Restore received")
        payload = self._parse(snapshot_text)

        logger.debug("Restore parsed")
        validate_snapshot(payload)
        check_version(payload["version"], self.format_version)
        if payload["version"] != self.format_version:
            logger.warning(
                f"Restoring snapshot version {payload['version']} into engine version "
                f"{self.format_version}"
            )
        snapshot = Snapshot.from_dict(payload)

        logger.debug("Restore validated")
        self._stage(snapshot)
        self._apply(snapshot)

        self.ephemeral_cache.invalidate()
        logger.info(f"Data restored successfully from backup created on: {snapshot.timestamp}")
        return snapshot

    def _stage(self, snapshot: Snapshot) -> None:
        for name in REQUIRED_COLLECTIONS:
            try:
                json.dumps(snapshot.collections[name], allow_nan=False)
            except (TypeError, ValueError, RecursionError) as e:
                raise RestoreError(f"collection {name!r} cannot be serialized: {e}") from e

        if not self.store.set(STAGING_KEY, snapshot.to_dict()):
            raise RestoreError(
                "could not stage snapshot",
                user_message="There is not enough storage space to restore this backup.",
            )

    def _apply(self, snapshot: Snapshot) -> None:
        written: List[str] = []
        for name in REQUIRED_COLLECTIONS:
            if not self.store.set(name, snapshot.collections[name]):
                logger.error(f"Restore failed writing {name!r} after {written}")
                if written:
                    self.ephemeral_cache.invalidate()
                raise PartialRestoreFailure(name, written)
            written.append(name)

        self.store.remove(STAGING_KEY)

    def pending_restore(self) -> Optional[Snapshot]:
        """The staged snapshot of an interrupted restore, if one is left behind."""
        staged = self.store.get(STAGING_KEY)
        if staged is None:
            return None
        try:
            return Snapshot.from_dict(staged)
        except RestoreError as e:
            logger.warning(f"Ignoring unusable staged restore: {e}")
            return None

    def resume_restore(self) -> Optional[Snapshot]:
        """Re-apply an interrupted restore. Returns None when nothing is pending."""
        snapshot = self.pending_restore()
        if snapshot is None:
            return None
        logger.info(f"Resuming interrupted restore (timestamp={snapshot.timestamp})")
        return self.restore_snapshot(json.dumps(snapshot.to_dict()))

    async def import_from_file(self, file) -> Snapshot:
        """
        Read a backup file without blocking the loop, then restore it.

        Accepts a path or an open file object. I/O failures raise
        FileReadError. Content that is not UTF-8 text or not JSON raises
        MalformedSnapshot, and validation failures keep their own types.
        """
        with self._exclusive():
            try:
                if hasattr(file, "read"):
                    content = await asyncio.to_thread(file.read)
                else:
                    content = await asyncio.to_thread(Path(file).read_bytes)
            except OSError as e:
                raise FileReadError(f"Failed to read file: {e}") from e

            if isinstance(content, bytes):
                try:
                    content = content.decode("utf-8")
                except UnicodeDecodeError as e:
                    raise MalformedSnapshot(f"backup file is not UTF-8 text: {e}") from e

            return self._restore(content)
