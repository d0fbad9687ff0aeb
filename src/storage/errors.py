"""Storage error taxonomy and error listener registry."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class StorageBackendError(Exception):
    """Raised by a durable backend when an operation cannot complete."""


class QuotaExceededError(StorageBackendError):
    """The backend refused a write because it would exceed its quota."""


class BackendUnavailableError(StorageBackendError):
    """The backend cannot be reached (closed, locked, disk error)."""


class StorageError(Exception):
    def __init__(self, key: str, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"{message} (key={key!r})")
        self.key = key
        self.cause = cause


class StorageReadError(StorageError):
    """Missing or corrupt durable entry. Degrades to the caller's fallback."""


class StorageWriteError(StorageError):
    """Serialization, quota or availability failure on write."""


ErrorListener = Callable[[StorageError], None]


class ErrorReporter:
    """
    Fan-out of storage errors to interested listeners (UI toasts, audit).

    Listeners must not break the store: a listener that raises is logged
    and skipped.
    """

    def __init__(self) -> None:
        self._listeners: List[ErrorListener] = []

    def add_listener(self, listener: ErrorListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def report(self, error: StorageError, context: str = "") -> None:
        logger.error("[%s] %s", context or "storage", error)
        for listener in list(self._listeners):
            try:
                listener(error)
            except Exception as exc:  # noqa: BLE001
                logger.warning(f"Error listener failed: {exc}")
