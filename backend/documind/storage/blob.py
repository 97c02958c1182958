"""
Blob Store: raw uploaded bytes

Two interchangeable backends behind one small protocol:

  S3BlobStore     aioboto3, bucket from settings, objects under
                  documents/<document_id>/<safe filename>
  LocalBlobStore  aiofiles under settings.upload_dir, served as /uploads/<key>

Keys are always built server-side with document_key(); the client never
supplies a raw key. Backend failures are raised as StorageError so the
lifecycle manager can move the document to ERROR.
"""

from __future__ import annotations

import logging
import mimetypes
import re
from pathlib import Path
from typing import Protocol

import aioboto3
import aiofiles
from botocore.exceptions import BotoCoreError, ClientError

from documind.core.config import settings
from documind.core.errors import StorageError

logger = logging.getLogger(__name__)


def sanitize_filename(filename: str) -> str:
    """Strip path components and replace unsafe characters."""
    basename = filename.replace("\\", "/").rsplit("/", 1)[-1]
    safe = re.sub(r"[^a-zA-Z0-9._\-]", "_", basename).lstrip(".")
    return safe[:200] or "file"


def document_key(document_id, filename: str) -> str:
    """documents/<document_id>/<safe filename>"""
    return f"documents/{document_id}/{sanitize_filename(filename)}"


class BlobStore(Protocol):
    async def put(self, key: str, data: bytes, content_type: str | None = None) -> str:
        """Store bytes under key and return a public URL."""
        ...

    async def get(self, key: str) -> bytes | None:
        """Return stored bytes, or None when the key does not exist."""
        ...


# ---------------------------------------------------------------------------
# S3
# ---------------------------------------------------------------------------

class S3BlobStore:
    """
    Async S3 operations against a single bucket.

    The aioboto3 session is created once; each call opens a scoped client.
    """

    def __init__(
        self,
        bucket:          str | None = None,
        public_base_url: str | None = None,
    ) -> None:
        self._bucket   = bucket or settings.s3_bucket
        self._base_url = (public_base_url if public_base_url is not None else settings.s3_public_base_url).rstrip("/")
        self._session  = aioboto3.Session()

    def _client(self):
        """Return a scoped async S3 client context manager."""
        kwargs: dict = {"region_name": settings.aws_region}
        if settings.s3_endpoint_url:
            kwargs["endpoint_url"] = settings.s3_endpoint_url
        # Static keys only for local dev; prod uses the task role
        if settings.aws_access_key_id:
            kwargs["aws_access_key_id"]     = settings.aws_access_key_id
            kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
        return self._session.client("s3", **kwargs)

    def public_url(self, key: str) -> str:
        if self._base_url:
            return f"{self._base_url}/{key}"
        return f"https://{self._bucket}.s3.{settings.aws_region}.amazonaws.com/{key}"

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> str:
        ct = content_type or mimetypes.guess_type(key)[0] or "application/octet-stream"
        try:
            async with self._client() as s3:
                await s3.put_object(Bucket=self._bucket, Key=key, Body=data, ContentType=ct)
        except (ClientError, BotoCoreError) as exc:
            logger.error("S3 upload failed | bucket=%s key=%s: %s", self._bucket, key, exc)
            raise StorageError(f"Failed to store {key}: {exc}") from exc

        logger.info("S3 upload ok | bucket=%s key=%s size=%d", self._bucket, key, len(data))
        return self.public_url(key)

    async def get(self, key: str) -> bytes | None:
        async with self._client() as s3:
            try:
                resp = await s3.get_object(Bucket=self._bucket, Key=key)
                return await resp["Body"].read()
            except ClientError as exc:
                code = exc.response["Error"]["Code"]
                if code in ("NoSuchKey", "404"):
                    return None
                raise StorageError(f"Failed to read {key}: {exc}") from exc


# ---------------------------------------------------------------------------
# Local filesystem
# ---------------------------------------------------------------------------

class LocalBlobStore:
    """Files under a root directory; URLs are relative (/uploads/<key>)."""

    def __init__(self, root: str | Path | None = None, url_prefix: str = "/uploads") -> None:
        self._root   = Path(root or settings.upload_dir).resolve()
        self._prefix = url_prefix.rstrip("/")

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if self._root not in path.parents:
            raise StorageError(f"Key escapes upload directory: {key!r}")
        return path

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> str:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as exc:
            logger.error("Local upload failed | path=%s: %s", path, exc)
            raise StorageError(f"Failed to store {key}: {exc}") from exc

        logger.info("Local upload ok | key=%s size=%d", key, len(data))
        return f"{self._prefix}/{key}"

    async def get(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.is_file():
            return None
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as exc:
            raise StorageError(f"Failed to read {key}: {exc}") from exc


def get_blob_store() -> BlobStore:
    """Backend selected by settings.storage_backend ("s3" | "local")."""
    backend = settings.storage_backend.lower()
    if backend == "s3":
        return S3BlobStore()
    if backend == "local":
        return LocalBlobStore()
    raise StorageError(f"Unknown storage backend: {settings.storage_backend!r}")
