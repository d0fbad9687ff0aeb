"""
Backup & Restore
Versioned multi-collection snapshots with validated, staged restore
"""

from .errors import (
    ExportError,
    FileReadError,
    IncompatibleVersion,
    InvalidFormat,
    MalformedSnapshot,
    MissingCollection,
    PartialRestoreFailure,
    RestoreError,
    RestoreInProgress,
)
from .manager import SnapshotManager, STAGING_KEY, default_backup_filename
from .snapshot import FORMAT_VERSION, REQUIRED_COLLECTIONS, Snapshot, validate_snapshot

__all__ = [
    'SnapshotManager', 'Snapshot', 'STAGING_KEY', 'FORMAT_VERSION', 'REQUIRED_COLLECTIONS',
    'default_backup_filename', 'validate_snapshot',
    'RestoreError', 'MalformedSnapshot', 'InvalidFormat', 'MissingCollection',
    'IncompatibleVersion', 'PartialRestoreFailure', 'FileReadError', 'RestoreInProgress',
    'ExportError',
]
