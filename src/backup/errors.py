"""Restore error taxonomy. Each error carries a message fit for the user."""

from __future__ import annotations

from typing import List, Optional, Sequence


class RestoreError(Exception):
    user_message = "The backup could not be restored."

    def __init__(self, detail: str = "", user_message: Optional[str] = None) -> None:
        super().__init__(detail or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class MalformedSnapshot(RestoreError):
    user_message = "The backup file could not be read: it is not valid JSON."


class InvalidFormat(RestoreError):
    user_message = "The backup file is not in the expected format."


class MissingCollection(RestoreError):
    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(
            f"Missing required field: {field_name}",
            user_message=f"The backup file is incomplete: '{field_name}' data is missing.",
        )


class IncompatibleVersion(RestoreError):
    def __init__(self, found: str, supported: str) -> None:
        self.found = found
        self.supported = supported
        super().__init__(
            f"Unsupported snapshot version {found!r} (engine supports {supported!r})",
            user_message=(
                f"The backup was made by an incompatible version ({found}); "
                f"this app reads version {supported} backups."
            ),
        )


class PartialRestoreFailure(RestoreError):
    """A collection write failed after earlier collections were already written."""

    def __init__(self, failed: str, written: Sequence[str]) -> None:
        self.failed = failed
        self.written: List[str] = list(written)
        written_text = ", ".join(self.written) or "none"
        super().__init__(
            f"Restore stopped at {failed!r}; already written: {written_text}",
            user_message=(
                f"The restore stopped while saving '{failed}'. "
                f"Already restored: {written_text}. Your data may be a mix of old "
                "and restored records; retry the restore once storage is available."
            ),
        )


class FileReadError(RestoreError):
    user_message = "The selected file could not be read."


class RestoreInProgress(RestoreError):
    user_message = "Another restore is already running. Wait for it to finish."


class ExportError(Exception):
    """The current state could not be read into a snapshot or written to disk."""

    user_message = "The backup could not be created."
