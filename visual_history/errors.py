"""Error types shared by the storage, encryption and capture layers."""

from __future__ import annotations


class VisualHistoryError(RuntimeError):
    """Base error for the visual history engine."""


class InitializationError(VisualHistoryError):
    """Key import/generation or store open failed."""


class NotInitializedError(VisualHistoryError):
    """Operation attempted before the engine reached the ready state."""


class DecryptionError(VisualHistoryError):
    """Authentication tag did not verify for a stored payload."""


class StorageError(VisualHistoryError):
    """Underlying persistence operation failed."""

    def __init__(self, message: str, *, page_id: str | None = None) -> None:
        super().__init__(message)
        self.page_id = page_id


class CaptureAbortedError(VisualHistoryError):
    """Capture skipped by policy or missing required page data."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Capture aborted: {reason}")
        self.reason = reason


class SettingsError(VisualHistoryError):
    """Settings file exists but cannot be read or parsed."""
