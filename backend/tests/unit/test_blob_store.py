"""
Unit Tests: Blob storage backends
══════════════════════════════════
Tests for documind/storage/blob.py

Coverage:
  ✅ Keys are built server-side and sanitised
  ✅ LocalBlobStore writes, reads back, returns /uploads URLs
  ✅ LocalBlobStore rejects keys that escape the upload directory
  ✅ S3BlobStore put_object params and public URL
  ✅ S3 ClientError on put → StorageError
  ✅ S3 NoSuchKey on get → None
"""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from documind.core.config import settings
from documind.core.errors import StorageError
from documind.storage.blob import (
    LocalBlobStore,
    S3BlobStore,
    document_key,
    get_blob_store,
    sanitize_filename,
)


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "test"}}, "operation")


def _build_s3_mock() -> AsyncMock:
    """Mock S3 client usable as `async with session.client("s3") as s3`."""
    s3 = AsyncMock()
    s3.__aenter__ = AsyncMock(return_value=s3)
    s3.__aexit__  = AsyncMock(return_value=None)
    s3.put_object = AsyncMock(return_value={"ETag": '"etag-123"'})
    return s3


# ─────────────────────────────────────────────────────────────────────────────
# Keys
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.parametrize("name, expected", [
    ("report.pdf",            "report.pdf"),
    ("my report (1).pdf",     "my_report__1_.pdf"),
    ("../../etc/passwd",      "passwd"),
    ("C:\\Users\\me\\a.txt",  "a.txt"),
    (".hidden",               "hidden"),
    ("",                      "file"),
])
def test_sanitize_filename(name, expected):
    assert sanitize_filename(name) == expected


@pytest.mark.unit
def test_document_key_layout():
    doc_id = uuid.uuid4()
    assert document_key(doc_id, "notes.txt") == f"documents/{doc_id}/notes.txt"


# ─────────────────────────────────────────────────────────────────────────────
# Local filesystem
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestLocalBlobStore:

    async def test_put_then_get(self, tmp_path):
        store = LocalBlobStore(root=tmp_path)
        url = await store.put("documents/abc/notes.txt", b"hello")

        assert url == "/uploads/documents/abc/notes.txt"
        assert (tmp_path / "documents" / "abc" / "notes.txt").read_bytes() == b"hello"
        assert await store.get("documents/abc/notes.txt") == b"hello"

    async def test_missing_key_is_none(self, tmp_path):
        assert await LocalBlobStore(root=tmp_path).get("documents/nope/x.txt") is None

    async def test_escaping_key_rejected(self, tmp_path):
        store = LocalBlobStore(root=tmp_path / "uploads")
        with pytest.raises(StorageError, match="escapes"):
            await store.put("../outside.txt", b"x")

    def test_factory_selects_backend(self, monkeypatch):
        monkeypatch.setattr(settings, "storage_backend", "local")
        assert isinstance(get_blob_store(), LocalBlobStore)

        monkeypatch.setattr(settings, "storage_backend", "ftp")
        with pytest.raises(StorageError, match="Unknown storage backend"):
            get_blob_store()


# ─────────────────────────────────────────────────────────────────────────────
# S3
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestS3BlobStore:

    async def test_put_sends_object_and_returns_public_url(self):
        s3_mock = _build_s3_mock()

        with patch("documind.storage.blob.aioboto3.Session") as mock_session:
            mock_session.return_value.client.return_value = s3_mock
            store = S3BlobStore(bucket="test-bucket", public_base_url="https://cdn.example.com/")
            url = await store.put("documents/abc/report.pdf", b"%PDF-1.4", "application/pdf")

        assert url == "https://cdn.example.com/documents/abc/report.pdf"
        s3_mock.put_object.assert_awaited_once_with(
            Bucket="test-bucket",
            Key="documents/abc/report.pdf",
            Body=b"%PDF-1.4",
            ContentType="application/pdf",
        )

    async def test_content_type_guessed_from_key(self):
        s3_mock = _build_s3_mock()

        with patch("documind.storage.blob.aioboto3.Session") as mock_session:
            mock_session.return_value.client.return_value = s3_mock
            await S3BlobStore(bucket="b", public_base_url="").put("documents/abc/data.csv", b"a,b")

        assert s3_mock.put_object.call_args.kwargs["ContentType"] == "text/csv"

    def test_bucket_url_without_public_base(self):
        with patch("documind.storage.blob.aioboto3.Session"):
            store = S3BlobStore(bucket="docs", public_base_url="")
        assert store.public_url("documents/x/a.txt") == (
            f"https://docs.s3.{settings.aws_region}.amazonaws.com/documents/x/a.txt"
        )

    async def test_client_error_on_put_raises_storage_error(self):
        s3_mock = _build_s3_mock()
        s3_mock.put_object = AsyncMock(side_effect=_client_error("AccessDenied"))

        with patch("documind.storage.blob.aioboto3.Session") as mock_session:
            mock_session.return_value.client.return_value = s3_mock
            with pytest.raises(StorageError, match="documents/abc/a.txt"):
                await S3BlobStore(bucket="b").put("documents/abc/a.txt", b"x")

    async def test_get_reads_body(self):
        s3_mock = _build_s3_mock()
        body = MagicMock()
        body.read = AsyncMock(return_value=b"stored bytes")
        s3_mock.get_object = AsyncMock(return_value={"Body": body})

        with patch("documind.storage.blob.aioboto3.Session") as mock_session:
            mock_session.return_value.client.return_value = s3_mock
            assert await S3BlobStore(bucket="b").get("documents/abc/a.txt") == b"stored bytes"

    async def test_get_missing_key_is_none(self):
        s3_mock = _build_s3_mock()
        s3_mock.get_object = AsyncMock(side_effect=_client_error("NoSuchKey"))

        with patch("documind.storage.blob.aioboto3.Session") as mock_session:
            mock_session.return_value.client.return_value = s3_mock
            assert await S3BlobStore(bucket="b").get("documents/abc/a.txt") is None
