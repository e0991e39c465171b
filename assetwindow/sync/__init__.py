"""Artifact window synchronization for assetwindow."""

from __future__ import annotations

from .errors import (
    ConcurrentPublishError,
    DeleteFailure,
    LogCorruptError,
    ObjectNotFound,
    PersistFailure,
    SyncError,
    TransientIOError,
    UploadFailure,
)
from .executor import BoundedExecutor, RetryPolicy, TaskBatchError, TaskOutcome, run_bounded
from .log import LOG_FILENAME, LogStore, ReconciliationLog
from .matcher import MATCH_ALL, match_files
from .orchestrator import PublishPlan, Publisher, SyncOutcome, SyncState, run_plan, run_publish
from .reconcile import ReconciliationResult, reconcile
from .store import FileSystemObjectStore, ObjectStore, S3ObjectStore, build_store, join_key

__all__ = [
    # Errors
    "ConcurrentPublishError",
    "DeleteFailure",
    "LogCorruptError",
    "ObjectNotFound",
    "PersistFailure",
    "SyncError",
    "TransientIOError",
    "UploadFailure",
    # Executor
    "BoundedExecutor",
    "RetryPolicy",
    "TaskBatchError",
    "TaskOutcome",
    "run_bounded",
    # Log
    "LOG_FILENAME",
    "LogStore",
    "ReconciliationLog",
    # Matching and reconciliation
    "MATCH_ALL",
    "match_files",
    "ReconciliationResult",
    "reconcile",
    # Orchestration
    "PublishPlan",
    "Publisher",
    "SyncOutcome",
    "SyncState",
    "run_plan",
    "run_publish",
    # Stores
    "FileSystemObjectStore",
    "ObjectStore",
    "S3ObjectStore",
    "build_store",
    "join_key",
]
