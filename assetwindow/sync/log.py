"""The persisted reconciliation log and its store adapter."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from .errors import LogCorruptError, ObjectNotFound, PersistFailure, TransientIOError
from .store import ObjectStore, join_key

logger = logging.getLogger("assetwindow.sync.log")

LOG_FILENAME = "__assetwindow__files.json"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _name_set(payload: Dict[str, Any], *keys: str) -> FrozenSet[str]:
    for key in keys:
        if key not in payload:
            continue
        value = payload[key]
        if value is None:
            return frozenset()
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise LogCorruptError(f"Log field '{key}' must be a list of strings")
        return frozenset(value)
    return frozenset()


@dataclass(frozen=True)
class ReconciliationLog:
    """The two generations the store is believed to hold."""

    previous: FrozenSet[str] = field(default_factory=frozenset)
    current: FrozenSet[str] = field(default_factory=frozenset)
    published_at: Optional[str] = None

    @classmethod
    def empty(cls) -> "ReconciliationLog":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.previous and not self.current

    @property
    def live(self) -> FrozenSet[str]:
        return self.previous | self.current

    def advance(self, candidate: Iterable[str], published_at: Optional[str] = None) -> "ReconciliationLog":
        """Slide the window forward by one generation."""
        return ReconciliationLog(
            previous=self.current,
            current=frozenset(candidate),
            published_at=published_at or utc_timestamp(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "previous": sorted(self.previous),
            "current": sorted(self.current),
            "publishedAt": self.published_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "ReconciliationLog":
        if not isinstance(data, dict):
            raise LogCorruptError("Log record must be a JSON object")
        # "prev" and "uploadTime" are accepted for logs written by older plugins.
        published_at = data.get("publishedAt", data.get("uploadTime"))
        return cls(
            previous=_name_set(data, "previous", "prev"),
            current=_name_set(data, "current"),
            published_at=str(published_at) if published_at is not None else None,
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2) + "\n"

    @classmethod
    def from_json(cls, raw: bytes) -> "ReconciliationLog":
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise LogCorruptError(f"Log record is not valid JSON: {exc}") from exc
        return cls.from_dict(data)


class LogStore:
    """Reads and writes the reconciliation log at ``<upload_path>/LOG_FILENAME``."""

    def __init__(self, store: ObjectStore, upload_path: str):
        self.store = store
        self.key = join_key(upload_path, LOG_FILENAME)

    def fetch(self) -> Optional[ReconciliationLog]:
        """Return the stored log, or ``None`` when none has been written yet.

        Raises ``TransientIOError`` when the store cannot be read and
        ``LogCorruptError`` when the record is malformed.
        """
        try:
            raw = self.store.get(self.key)
        except ObjectNotFound:
            logger.info("No reconciliation log at %s", self.key)
            return None
        log = ReconciliationLog.from_json(raw)
        logger.debug(
            "Loaded log %s (previous=%d, current=%d)", self.key, len(log.previous), len(log.current)
        )
        return log

    def write(self, log: ReconciliationLog) -> None:
        try:
            self.store.put(self.key, log.to_json().encode("utf-8"), content_type="application/json")
        except (TransientIOError, OSError) as exc:
            raise PersistFailure(f"Failed to write reconciliation log {self.key}: {exc}") from exc
        logger.debug("Wrote log %s (current=%d)", self.key, len(log.current))

    def public_url(self) -> str:
        return self.store.public_url(self.key)


def describe(names: Iterable[str], limit: int = 5) -> str:
    """Short human-readable listing of file names for log lines."""
    ordered: List[str] = sorted(names)
    if len(ordered) <= limit:
        return ", ".join(ordered) or "(none)"
    return ", ".join(ordered[:limit]) + f", ... (+{len(ordered) - limit} more)"


__all__ = ["LOG_FILENAME", "LogStore", "ReconciliationLog", "describe", "utc_timestamp"]
