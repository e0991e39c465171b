"""Object-store clients used to publish artifacts."""

from __future__ import annotations

import logging
import mimetypes
import shutil
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any, Iterable, List, Optional, Protocol, Union
from urllib.parse import quote

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .errors import ObjectNotFound, TransientIOError

if TYPE_CHECKING:
    from ..configuration import PublishSettings

logger = logging.getLogger("assetwindow.sync.store")

Payload = Union[bytes, Path]

S3_DELETE_BATCH = 1000
S3_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


class ObjectStore(Protocol):
    def put(self, key: str, data: Payload, content_type: Optional[str] = None) -> None:
        ...

    def batch_delete(self, keys: Iterable[str]) -> List[str]:
        """Delete keys and return the ones that could not be removed."""
        ...

    def get(self, key: str) -> bytes:
        ...

    def public_url(self, key: str) -> str:
        ...


def join_key(prefix: str, name: str) -> str:
    """Build a store key as ``prefix/name``."""
    prefix = prefix.strip("/")
    name = name.lstrip("/")
    return f"{prefix}/{name}" if prefix else name


def guess_content_type(key: str) -> str:
    content_type, _ = mimetypes.guess_type(key)
    return content_type or "application/octet-stream"


class FileSystemObjectStore:
    """A local directory standing in for a bucket.

    Useful for staging a publish on disk or for serving artifacts from a
    static file server.
    """

    def __init__(self, root: Path, public_base: str = ""):
        self.root = root.expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_base = public_base

    def _path(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if not parts or ".." in parts or PurePosixPath(key).is_absolute():
            raise ValueError(f"Invalid object key: {key!r}")
        return self.root.joinpath(*parts)

    def put(self, key: str, data: Payload, content_type: Optional[str] = None) -> None:
        target = self._path(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(data, Path):
                shutil.copyfile(data, target)
            else:
                target.write_bytes(data)
        except OSError as exc:
            raise TransientIOError(f"Failed to write {key}: {exc}", key=key) from exc
        logger.debug("Stored %s (%s)", key, content_type or guess_content_type(key))

    def get(self, key: str) -> bytes:
        target = self._path(key)
        if not target.is_file():
            raise ObjectNotFound(key)
        try:
            return target.read_bytes()
        except OSError as exc:
            raise TransientIOError(f"Failed to read {key}: {exc}", key=key) from exc

    def batch_delete(self, keys: Iterable[str]) -> List[str]:
        failed: List[str] = []
        for key in keys:
            try:
                self._path(key).unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Failed to delete %s: %s", key, exc)
                failed.append(key)
        return failed

    def public_url(self, key: str) -> str:
        if self.public_base:
            return f"{self.public_base.rstrip('/')}/{quote(key)}"
        return self._path(key).as_uri()


class S3ObjectStore:
    """Store backed by an S3-compatible bucket through boto3."""

    def __init__(
        self,
        bucket: str,
        public_base: str = "",
        client: Any = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
    ):
        self.bucket = bucket
        self.public_base = public_base
        self.client = client or self._build_client(region, endpoint_url, access_key, secret_key)

    @staticmethod
    def _build_client(
        region: Optional[str],
        endpoint_url: Optional[str],
        access_key: Optional[str],
        secret_key: Optional[str],
    ) -> Any:
        config = BotoConfig(
            connect_timeout=5,
            read_timeout=30,
            retries={"max_attempts": 3, "mode": "standard"},
        )
        kwargs: dict = {"config": config}
        if region:
            kwargs["region_name"] = region
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        if access_key and secret_key:
            kwargs["aws_access_key_id"] = access_key
            kwargs["aws_secret_access_key"] = secret_key
        return boto3.client("s3", **kwargs)

    def put(self, key: str, data: Payload, content_type: Optional[str] = None) -> None:
        extra = {"ContentType": content_type or guess_content_type(key)}
        try:
            if isinstance(data, Path):
                self.client.upload_file(str(data), self.bucket, key, ExtraArgs=extra)
            else:
                self.client.put_object(Bucket=self.bucket, Key=key, Body=data, **extra)
        except (BotoCoreError, ClientError) as exc:
            raise TransientIOError(f"Failed to upload {key}: {exc}", key=key) from exc

    def get(self, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in S3_MISSING_CODES:
                raise ObjectNotFound(key) from exc
            raise TransientIOError(f"Failed to fetch {key}: {exc}", key=key) from exc
        except BotoCoreError as exc:
            raise TransientIOError(f"Failed to fetch {key}: {exc}", key=key) from exc

    def batch_delete(self, keys: Iterable[str]) -> List[str]:
        pending = list(keys)
        failed: List[str] = []
        for start in range(0, len(pending), S3_DELETE_BATCH):
            chunk = pending[start:start + S3_DELETE_BATCH]
            try:
                response = self.client.delete_objects(
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": key} for key in chunk], "Quiet": True},
                )
            except (BotoCoreError, ClientError) as exc:
                raise TransientIOError(f"Batch delete failed: {exc}") from exc
            for error in response.get("Errors", []) or []:
                logger.warning(
                    "Failed to delete %s: %s", error.get("Key"), error.get("Message", error.get("Code"))
                )
                failed.append(str(error.get("Key")))
        return failed

    def public_url(self, key: str) -> str:
        base = self.public_base or f"https://{self.bucket}.s3.amazonaws.com"
        return f"{base.rstrip('/')}/{quote(key)}"


def build_store(settings: "PublishSettings") -> ObjectStore:
    """Instantiate the store backend selected in configuration."""

    if settings.backend == "s3":
        return S3ObjectStore(
            bucket=settings.bucket,
            public_base=settings.bucket_domain,
            region=settings.region or None,
            endpoint_url=settings.endpoint_url or None,
            access_key=settings.access_key or None,
            secret_key=settings.secret_key or None,
        )
    return FileSystemObjectStore(settings.store_root, public_base=settings.bucket_domain)


__all__ = [
    "FileSystemObjectStore",
    "ObjectStore",
    "Payload",
    "S3ObjectStore",
    "build_store",
    "guess_content_type",
    "join_key",
]
