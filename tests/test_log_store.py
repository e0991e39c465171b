"""Tests for the reconciliation log record and its store adapter."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from assetwindow.sync.errors import LogCorruptError, PersistFailure, TransientIOError
from assetwindow.sync.log import LOG_FILENAME, LogStore, ReconciliationLog, describe
from assetwindow.sync.store import FileSystemObjectStore


def test_advance_rolls_current_into_previous():
    log = ReconciliationLog(previous=frozenset({"a", "b"}), current=frozenset({"c", "d"}))

    advanced = log.advance({"d", "e"}, published_at="2024-01-01T00:00:00+00:00")

    assert advanced.previous == frozenset({"c", "d"})
    assert advanced.current == frozenset({"d", "e"})
    assert advanced.published_at == "2024-01-01T00:00:00+00:00"
    assert advanced.live == frozenset({"c", "d", "e"})


def test_json_round_trip_is_sorted_and_stable():
    log = ReconciliationLog(frozenset({"b", "a"}), frozenset({"c"}), "2024-05-01T10:00:00+00:00")

    raw = log.to_json()

    assert json.loads(raw) == {
        "previous": ["a", "b"],
        "current": ["c"],
        "publishedAt": "2024-05-01T10:00:00+00:00",
    }
    assert ReconciliationLog.from_json(raw.encode("utf-8")) == log


def test_legacy_field_names_are_accepted():
    raw = json.dumps({"prev": ["old.js"], "current": ["new.js"], "uploadTime": 1700000000000})

    log = ReconciliationLog.from_json(raw.encode("utf-8"))

    assert log.previous == frozenset({"old.js"})
    assert log.current == frozenset({"new.js"})
    assert log.published_at == "1700000000000"


def test_missing_fields_default_to_empty():
    log = ReconciliationLog.from_json(b"{}")

    assert log.is_empty
    assert log.published_at is None


@pytest.mark.parametrize(
    "raw",
    [
        b"not json",
        b"\xff\xfe",
        b"[1, 2]",
        b'{"current": "main.js"}',
        b'{"previous": [1, 2]}',
    ],
)
def test_malformed_records_raise_corrupt_error(raw: bytes):
    with pytest.raises(LogCorruptError):
        ReconciliationLog.from_json(raw)


def test_log_store_reads_and_writes_under_upload_path(tmp_path: Path):
    store = FileSystemObjectStore(tmp_path / "bucket")
    log_store = LogStore(store, "/static/")

    assert log_store.key == f"static/{LOG_FILENAME}"
    assert log_store.fetch() is None

    log = ReconciliationLog(frozenset(), frozenset({"main.js"}), "2024-01-01T00:00:00+00:00")
    log_store.write(log)

    assert (tmp_path / "bucket" / "static" / LOG_FILENAME).is_file()
    assert log_store.fetch() == log


def test_log_store_propagates_corruption(tmp_path: Path):
    store = FileSystemObjectStore(tmp_path / "bucket")
    log_store = LogStore(store, "assets")
    store.put(log_store.key, b"{broken")

    with pytest.raises(LogCorruptError):
        log_store.fetch()


class _ReadOnlyStore:
    def put(self, key, data, content_type=None):
        raise TransientIOError("read-only bucket", key=key)

    def get(self, key):
        raise TransientIOError("unreachable", key=key)

    def batch_delete(self, keys):
        return list(keys)

    def public_url(self, key):
        return f"https://cdn.example.com/{key}"


def test_log_store_wraps_write_errors_as_persist_failure():
    log_store = LogStore(_ReadOnlyStore(), "assets")

    with pytest.raises(PersistFailure):
        log_store.write(ReconciliationLog.empty())


def test_log_store_fetch_surfaces_read_errors():
    log_store = LogStore(_ReadOnlyStore(), "assets")

    with pytest.raises(TransientIOError):
        log_store.fetch()
    assert log_store.public_url() == f"https://cdn.example.com/assets/{LOG_FILENAME}"


def test_describe_truncates_long_listings():
    assert describe([]) == "(none)"
    assert describe(["b", "a"]) == "a, b"
    assert describe([f"f{index}" for index in range(7)], limit=3) == "f0, f1, f2, ... (+4 more)"
