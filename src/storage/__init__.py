"""
Durable storage layer
Fail-soft PersistentStore over pluggable key-value backends
"""

from .backends import KeyValueBackend, MemoryBackend, SQLiteBackend
from .errors import (
    BackendUnavailableError,
    ErrorReporter,
    QuotaExceededError,
    StorageBackendError,
    StorageError,
    StorageReadError,
    StorageWriteError,
)
from .persistent_store import PersistentStore

__all__ = [
    'KeyValueBackend', 'MemoryBackend', 'SQLiteBackend',
    'PersistentStore', 'ErrorReporter',
    'StorageBackendError', 'QuotaExceededError', 'BackendUnavailableError',
    'StorageError', 'StorageReadError', 'StorageWriteError',
]
