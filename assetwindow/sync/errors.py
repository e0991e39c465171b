"""Error taxonomy for publish runs."""

from __future__ import annotations

from typing import Iterable, List, Optional


class SyncError(Exception):
    """Base class for every error raised by the sync package."""


class TransientIOError(SyncError):
    """A single store operation failed; retrying may succeed."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class ObjectNotFound(SyncError):
    """The requested key does not exist in the store."""

    def __init__(self, key: str):
        super().__init__(f"Object not found: {key}")
        self.key = key


class LogCorruptError(SyncError):
    """The persisted reconciliation log could not be decoded."""


class _NamedFailure(SyncError):
    def __init__(self, message: str, names: Iterable[str] = ()):
        super().__init__(message)
        self.names: List[str] = sorted(names)


class UploadFailure(_NamedFailure):
    """One or more uploads failed; the run is aborted before deletes."""


class DeleteFailure(_NamedFailure):
    """One or more deletes failed; the files survive another cycle."""


class PersistFailure(SyncError):
    """The reconciliation log could not be written after uploading."""


class ConcurrentPublishError(PersistFailure):
    """The remote log changed while this run was in progress."""


__all__ = [
    "SyncError",
    "TransientIOError",
    "ObjectNotFound",
    "LogCorruptError",
    "UploadFailure",
    "DeleteFailure",
    "PersistFailure",
    "ConcurrentPublishError",
]
