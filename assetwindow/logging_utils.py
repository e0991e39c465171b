"""Log handlers for publish runs.

Every run appends to ``.assetwindow/logs/publish.log`` under the project.
With ``logging.structured`` enabled the same records are also written as JSON
lines to ``publish.jsonl``, carrying the per-record publish fields that the
sync package attaches through ``extra=`` (state, key, attempt, count).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys
import tempfile
from typing import Any, Dict, Union

LOG_DIR = Path(".assetwindow") / "logs"
TEXT_LOG_NAME = "publish.log"
JSON_LOG_NAME = "publish.jsonl"
MAX_BYTES = 5 * 1024 * 1024
BACKUP_COUNT = 3
FALLBACK_ROOT = Path(tempfile.gettempdir()) / "assetwindow"

# Record attributes copied into JSON lines when a caller sets them.
PUBLISH_FIELDS = ("state", "key", "attempt", "count")

QUIET_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with publish fields lifted to the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in PUBLISH_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    project_dir: Path,
    level: Union[str, int] = logging.INFO,
    structured: bool = False,
) -> Path:
    """Attach file and console handlers to the ``assetwindow`` logger.

    Calling it again replaces the previous handlers. Returns the text log path,
    which lies outside ``project_dir`` when the project is not writable.
    """
    log_dir = _writable_log_dir(project_dir)
    text_path = log_dir / TEXT_LOG_NAME

    logger = logging.getLogger("assetwindow")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(_resolve_level(level))
    logger.propagate = False

    logger.addHandler(
        _rotating(text_path, logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    )
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    logger.addHandler(console)
    if structured:
        logger.addHandler(_rotating(log_dir / JSON_LOG_NAME, JSONFormatter()))

    # boto logs every request; keep it quiet unless configured explicitly.
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return text_path


def _rotating(path: Path, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8")
    handler.setFormatter(formatter)
    return handler


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return int(level)


def _writable_log_dir(project_dir: Path) -> Path:
    primary = project_dir / LOG_DIR
    try:
        primary.mkdir(parents=True, exist_ok=True)
        return primary
    except PermissionError:
        fallback = FALLBACK_ROOT / LOG_DIR
        fallback.mkdir(parents=True, exist_ok=True)
        print(
            f"[logging] Cannot write logs under '{project_dir}'; using '{fallback}'.",
            file=sys.stderr,
        )
        return fallback


__all__ = ["FALLBACK_ROOT", "JSONFormatter", "LOG_DIR", "PUBLISH_FIELDS", "setup_logging"]
