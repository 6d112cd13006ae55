"""Object store adapters.

The engine reads rendered file bodies from an object store keyed by the
content-root-relative path (``fragments/services/totalsupport.en.md``).
Two backends are provided:

* ``FilesystemObjectStore`` -- a directory acting as a bucket.  Used for
  local development, tests, and ``codex-sync seed`` against a checkout.
* ``S3ObjectStore`` -- any S3-compatible bucket (AWS S3, Cloudflare R2,
  MinIO) through boto3.

``open_object_store()`` picks the backend from a location string.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..validators import validate_relative_path

logger = logging.getLogger(__name__)

_TMP_PREFIX = ".codex-sync-"
_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


class ObjectStoreError(RuntimeError):
    """Raised when the backing store fails for reasons other than a missing key."""


class ObjectStore(Protocol):
    """Minimal key/value interface the sync handlers depend on."""

    def get(self, key: str) -> bytes | None:
        """Return the object's bytes, or ``None`` if the key does not exist."""
        ...

    def put(self, key: str, data: bytes) -> None: ...

    def delete(self, key: str) -> None:
        """Delete *key*.  Deleting a missing key is not an error."""
        ...

    def list(self, prefix: str = "") -> list[str]:
        """Return all keys starting with *prefix*, sorted."""
        ...


def is_folder_marker(key: str) -> bool:
    """True for zero-byte "directory" placeholders some S3 tools create."""
    return key.endswith("/")


def _check_key(key: str) -> None:
    valid, reason = validate_relative_path(key, "Object key")
    if not valid:
        raise ValueError(reason)
    if is_folder_marker(key):
        raise ValueError(f"Object key cannot end with '/': {key}")


# ---------------------------------------------------------------------------
# Directory-backed store
# ---------------------------------------------------------------------------


class FilesystemObjectStore:
    """Store objects as files below *root*.

    Args:
        root: Directory acting as the bucket.  Created on first write.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def __repr__(self) -> str:
        return f"FilesystemObjectStore({str(self.root)!r})"

    def _path(self, key: str) -> Path:
        _check_key(key)
        return self.root / key

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.is_file():
            return None
        return path.read_bytes()

    def put(self, key: str, data: bytes) -> None:
        """Write *data* atomically (temp file + ``os.replace``)."""
        target = self._path(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(target.parent), prefix=_TMP_PREFIX
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_path, target)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def list(self, prefix: str = "") -> list[str]:
        if not self.root.is_dir():
            return []
        keys: list[str] = []
        for path in self.root.rglob("*"):
            if not path.is_file() or path.name.startswith(_TMP_PREFIX):
                continue
            key = path.relative_to(self.root).as_posix()
            if key.startswith(prefix):
                keys.append(key)
        return sorted(keys)


# ---------------------------------------------------------------------------
# S3-compatible store
# ---------------------------------------------------------------------------


class S3ObjectStore:
    """Store objects in an S3-compatible bucket.

    Args:
        bucket: Bucket name.
        prefix: Optional key prefix inside the bucket (no slashes at ends).
        client: A boto3 S3 client.  Built with ``make_s3_client`` when omitted.
    """

    def __init__(self, bucket: str, prefix: str = "", client=None) -> None:
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self._s3 = client if client is not None else make_s3_client()

    def __repr__(self) -> str:
        return f"S3ObjectStore(bucket={self.bucket!r}, prefix={self.prefix!r})"

    def _full_key(self, key: str) -> str:
        _check_key(key)
        return f"{self.prefix}/{key}" if self.prefix else key

    def get(self, key: str) -> bytes | None:
        full_key = self._full_key(key)
        try:
            resp = self._s3.get_object(Bucket=self.bucket, Key=full_key)
            return resp["Body"].read()
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in _MISSING_CODES:
                return None
            raise ObjectStoreError(
                f"Failed to read s3://{self.bucket}/{full_key}: {e}"
            ) from e
        except BotoCoreError as e:
            raise ObjectStoreError(
                f"Failed to read s3://{self.bucket}/{full_key}: {e}"
            ) from e

    def put(self, key: str, data: bytes) -> None:
        full_key = self._full_key(key)
        try:
            self._s3.put_object(Bucket=self.bucket, Key=full_key, Body=data)
        except (ClientError, BotoCoreError) as e:
            raise ObjectStoreError(
                f"Failed to write s3://{self.bucket}/{full_key}: {e}"
            ) from e

    def delete(self, key: str) -> None:
        full_key = self._full_key(key)
        try:
            self._s3.delete_object(Bucket=self.bucket, Key=full_key)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code in _MISSING_CODES:
                return
            raise ObjectStoreError(
                f"Failed to delete s3://{self.bucket}/{full_key}: {e}"
            ) from e
        except BotoCoreError as e:
            raise ObjectStoreError(
                f"Failed to delete s3://{self.bucket}/{full_key}: {e}"
            ) from e

    def list(self, prefix: str = "") -> list[str]:
        base = f"{self.prefix}/" if self.prefix else ""
        keys: list[str] = []
        try:
            paginator = self._s3.get_paginator("list_objects_v2")
            for page in paginator.paginate(
                Bucket=self.bucket, Prefix=base + prefix
            ):
                for obj in page.get("Contents", []):
                    key = obj["Key"][len(base) :]
                    if key and not is_folder_marker(key):
                        keys.append(key)
        except (ClientError, BotoCoreError) as e:
            raise ObjectStoreError(
                f"Failed to list s3://{self.bucket}/{base}{prefix}: {e}"
            ) from e
        return sorted(keys)


def make_s3_client(
    endpoint_url: str | None = None,
    region: str = "auto",
    timeout_s: float = 30.0,
):
    """Build a boto3 S3 client.  Credentials come from the usual AWS chain."""
    session = boto3.Session()
    return session.client(
        "s3",
        region_name=region,
        endpoint_url=endpoint_url,
        config=BotoConfig(
            connect_timeout=timeout_s,
            read_timeout=timeout_s,
            retries={"max_attempts": 5, "mode": "standard"},
        ),
    )


def open_object_store(
    location: str,
    s3_endpoint_url: str | None = None,
    s3_region: str = "auto",
) -> ObjectStore:
    """Open the store named by *location*.

    Args:
        location: ``s3://bucket[/prefix]``, ``file:///abs/dir`` or a plain
            directory path.
        s3_endpoint_url: Endpoint for S3-compatible services.
        s3_region: Region passed to boto3.

    Raises:
        ValueError: For unsupported URL schemes.
    """
    parsed = urlparse(location)
    if parsed.scheme == "s3":
        if not parsed.netloc:
            raise ValueError(f"s3:// location must name a bucket: {location}")
        store: ObjectStore = S3ObjectStore(
            parsed.netloc,
            parsed.path,
            client=make_s3_client(s3_endpoint_url, s3_region),
        )
    elif parsed.scheme == "file":
        store = FilesystemObjectStore(Path(parsed.path))
    elif parsed.scheme == "" or len(parsed.scheme) == 1:
        # Plain path (a single-letter scheme is a Windows drive)
        store = FilesystemObjectStore(Path(location).expanduser())
    else:
        raise ValueError(f"Unsupported object store scheme: {parsed.scheme}")

    logger.info("Object store: %r", store)
    return store
