"""Tests for the object store backends."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any, Dict, List

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from assetwindow.configuration import build_settings, load_runtime_configuration
from assetwindow.sync.errors import ObjectNotFound, TransientIOError
from assetwindow.sync.store import (
    S3_DELETE_BATCH,
    FileSystemObjectStore,
    S3ObjectStore,
    build_store,
    guess_content_type,
    join_key,
)


def test_join_key_normalizes_slashes():
    assert join_key("assets", "main.js") == "assets/main.js"
    assert join_key("/assets/", "/css/app.css") == "assets/css/app.css"
    assert join_key("", "main.js") == "main.js"


def test_guess_content_type():
    assert guess_content_type("a/main.js") in {"application/javascript", "text/javascript"}
    assert guess_content_type("blob.unknownext") == "application/octet-stream"


def test_filesystem_store_put_get_delete(tmp_path: Path):
    store = FileSystemObjectStore(tmp_path / "bucket")
    source = tmp_path / "main.js"
    source.write_text("console.log(1)", encoding="utf-8")

    store.put("assets/main.js", source)
    store.put("assets/raw.txt", b"raw")

    assert store.get("assets/main.js") == b"console.log(1)"
    assert store.get("assets/raw.txt") == b"raw"

    failed = store.batch_delete(["assets/main.js", "assets/never-existed.js"])

    assert failed == []
    assert not (tmp_path / "bucket" / "assets" / "main.js").exists()
    with pytest.raises(ObjectNotFound):
        store.get("assets/main.js")


def test_filesystem_store_rejects_escaping_keys(tmp_path: Path):
    store = FileSystemObjectStore(tmp_path / "bucket")

    with pytest.raises(ValueError):
        store.put("../outside.js", b"x")
    with pytest.raises(ValueError):
        store.get("/etc/passwd")


def test_filesystem_store_wraps_os_errors(tmp_path: Path):
    store = FileSystemObjectStore(tmp_path / "bucket")

    with pytest.raises(TransientIOError) as excinfo:
        store.put("assets/missing.js", tmp_path / "does-not-exist.js")
    assert excinfo.value.key == "assets/missing.js"


def test_filesystem_store_public_url(tmp_path: Path):
    plain = FileSystemObjectStore(tmp_path / "bucket")
    served = FileSystemObjectStore(tmp_path / "bucket", public_base="https://cdn.example.com/")

    assert plain.public_url("assets/main.js").startswith("file://")
    assert served.public_url("assets/a b.js") == "https://cdn.example.com/assets/a%20b.js"


class _FakeBody:
    def __init__(self, data: bytes) -> None:
        self._stream = io.BytesIO(data)

    def read(self) -> bytes:
        return self._stream.read()


class _FakeS3Client:
    def __init__(self) -> None:
        self.objects: Dict[str, bytes] = {}
        self.uploaded_files: List[Dict[str, Any]] = []
        self.delete_calls: List[List[str]] = []
        self.undeletable: set = set()
        self.offline = False

    def put_object(self, Bucket: str, Key: str, Body: bytes, ContentType: str) -> None:
        self.objects[Key] = Body

    def upload_file(self, filename: str, bucket: str, key: str, ExtraArgs: Dict[str, Any]) -> None:
        self.uploaded_files.append({"filename": filename, "key": key, "extra": ExtraArgs})
        self.objects[key] = Path(filename).read_bytes()

    def get_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        if self.offline:
            raise EndpointConnectionError(endpoint_url="https://s3.example.com")
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        return {"Body": _FakeBody(self.objects[Key])}

    def delete_objects(self, Bucket: str, Delete: Dict[str, Any]) -> Dict[str, Any]:
        keys = [item["Key"] for item in Delete["Objects"]]
        self.delete_calls.append(keys)
        errors = []
        for key in keys:
            if key in self.undeletable:
                errors.append({"Key": key, "Code": "AccessDenied", "Message": "denied"})
            else:
                self.objects.pop(key, None)
        return {"Errors": errors} if errors else {}


def test_s3_store_puts_bytes_and_files(tmp_path: Path):
    client = _FakeS3Client()
    store = S3ObjectStore("my-bucket", client=client)
    source = tmp_path / "app.css"
    source.write_text("body{}", encoding="utf-8")

    store.put("assets/app.css", source)
    store.put("assets/__log.json", b"{}", content_type="application/json")

    assert client.uploaded_files[0]["extra"] == {"ContentType": "text/css"}
    assert store.get("assets/app.css") == b"body{}"
    assert store.get("assets/__log.json") == b"{}"


def test_s3_store_maps_missing_key_and_transport_errors():
    client = _FakeS3Client()
    store = S3ObjectStore("my-bucket", client=client)

    with pytest.raises(ObjectNotFound):
        store.get("assets/none.json")

    client.offline = True
    with pytest.raises(TransientIOError):
        store.get("assets/none.json")


def test_s3_store_batch_delete_chunks_and_reports_failures():
    client = _FakeS3Client()
    store = S3ObjectStore("my-bucket", client=client)
    keys = [f"assets/{index}.js" for index in range(S3_DELETE_BATCH + 5)]
    for key in keys:
        client.objects[key] = b"x"
    client.undeletable = {"assets/3.js"}

    failed = store.batch_delete(keys)

    assert failed == ["assets/3.js"]
    assert [len(call) for call in client.delete_calls] == [S3_DELETE_BATCH, 5]
    assert set(client.objects) == {"assets/3.js"}


def test_s3_public_url_defaults_to_bucket_host():
    store = S3ObjectStore("my-bucket", client=_FakeS3Client())
    branded = S3ObjectStore("my-bucket", public_base="https://cdn.example.com", client=_FakeS3Client())

    assert store.public_url("assets/main.js") == "https://my-bucket.s3.amazonaws.com/assets/main.js"
    assert branded.public_url("assets/main.js") == "https://cdn.example.com/assets/main.js"


def test_build_store_selects_backend(tmp_path: Path):
    fs_bundle = load_runtime_configuration(tmp_path)
    fs_store = build_store(build_settings(fs_bundle))
    assert isinstance(fs_store, FileSystemObjectStore)
    assert fs_store.root == (tmp_path / ".assetwindow" / "bucket").resolve()

    s3_bundle = load_runtime_configuration(
        tmp_path,
        {"store": {"backend": "s3", "bucket": "release-assets", "region": "us-east-1"}},
    )
    s3_store = build_store(build_settings(s3_bundle))
    assert isinstance(s3_store, S3ObjectStore)
    assert s3_store.bucket == "release-assets"
