"""
Document Lifecycle Manager

Owns the document status state machine and sequences the upload pipeline:

  ┌────────────┐  blob write ok   ┌────────────┐  extract + analyse  ┌───────────┐
  │ UPLOADING  │ ───────────────► │ PROCESSING │ ──────────────────► │ COMPLETED │
  └────────────┘                  └────────────┘                     └───────────┘
        │ blob write failed              │
        └──────────────► ERROR ◄─────────┘

COMPLETED and ERROR are terminal. Every status change goes through
transition(), which raises InvalidTransitionError for anything else.

Extraction and analysis never move a document to ERROR: the extractor always
returns an outcome and each analysis insert is best-effort. Only a failed
blob write does, and that failure is re-raised as StorageError.

Each step commits on its own (see db/repositories.py); there is no
transaction across steps and no recovery of documents left in PROCESSING by
a crash.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from documind.core.errors import InvalidTransitionError, PersistenceError, StorageError
from documind.db.repositories import AnalysisRepository, DocumentRepository
from documind.events.sink import (
    AnalysisEvent,
    DocumentEvent,
    EventSink,
    SystemNotification,
    publish,
)
from documind.models.entities import AnalysisResult, Document, DocumentStatus, User
from documind.processing.analysis import generate_analyses
from documind.processing.extractor import extract_content, file_extension, format_file_size
from documind.storage.blob import BlobStore, document_key

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.UPLOADING:  frozenset({DocumentStatus.PROCESSING, DocumentStatus.ERROR}),
    DocumentStatus.PROCESSING: frozenset({DocumentStatus.COMPLETED, DocumentStatus.ERROR}),
    DocumentStatus.COMPLETED:  frozenset(),
    DocumentStatus.ERROR:      frozenset(),
}

_CATEGORIES: dict[str, str] = {
    "pdf":  "Document",
    "doc":  "Document",
    "docx": "Document",
    "txt":  "Text",
    "jpg":  "Image",
    "jpeg": "Image",
    "png":  "Image",
    "json": "Data",
    "xml":  "Data",
    "csv":  "Data",
}


def category_for(filename: str) -> str:
    return _CATEGORIES.get(file_extension(filename), "Other")


def transition(document: Document, target: DocumentStatus) -> None:
    """Move document to target status or raise InvalidTransitionError."""
    current = DocumentStatus(document.status)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, target.value)
    document.status = target.value


class DocumentLifecycleManager:
    """
    One instance per request. All collaborators are injected.

    Usage:
        manager = DocumentLifecycleManager(documents, analyses, blob_store, sink)
        doc = await manager.ingest(owner, "notes.txt", data, "text/plain")
    """

    def __init__(
        self,
        documents: DocumentRepository,
        analyses:  AnalysisRepository,
        blobs:     BlobStore,
        sink:      EventSink | None = None,
    ) -> None:
        self._documents = documents
        self._analyses  = analyses
        self._blobs     = blobs
        self._sink      = sink

    # ------------------------------------------------------------------
    # Public entry point
    # ------------------------------------------------------------------

    async def ingest(
        self,
        owner:     User,
        filename:  str,
        data:      bytes,
        mime_type: str | None = None,
    ) -> Document:
        """
        Run the full pipeline for one upload and return the final document.

        Raises:
            StorageError:     blob write failed (document left in ERROR)
            PersistenceError: a document write failed (document left in its
                              last committed state)
        """
        size_label = format_file_size(len(data))
        mime = mime_type or "unknown"

        # ---- Step 1: UPLOADING -------------------------------------------
        doc = Document(
            id=uuid.uuid4(),
            name=filename,
            mime_type=mime,
            size=len(data),
            size_label=size_label,
            status=DocumentStatus.UPLOADING.value,
            tags=[],
            doc_metadata={"originalName": filename, "mimeType": mime},
            uploaded_at=datetime.now(timezone.utc),
            user_id=owner.id,
        )
        await self._documents.create(doc)
        logger.info("Lifecycle | doc=%s status=UPLOADING name=%s size=%d", doc.id, filename, len(data))
        await self._emit(doc, f"Starting upload of {filename}", progress=0)

        # ---- Step 2: blob write → PROCESSING -----------------------------
        key = document_key(doc.id, filename)
        try:
            url = await self._blobs.put(key, data, mime_type)
        except StorageError:
            await self._fail(doc, filename)
            raise

        transition(doc, DocumentStatus.PROCESSING)
        doc.doc_metadata = {**doc.doc_metadata, "storageRef": key, "downloadURL": url}
        await self._documents.save(doc)
        logger.info("Lifecycle | doc=%s status=PROCESSING ref=%s", doc.id, key)
        await self._emit(doc, f"Processing {filename}", progress=50)

        # ---- Step 3: extraction (never raises) ---------------------------
        outcome = extract_content(data, filename)
        content = outcome.text or f"File uploaded: {filename} ({size_label})"
        if outcome.error:
            logger.info("Lifecycle | doc=%s extraction degraded method=%s: %s", doc.id, outcome.method, outcome.error)

        # ---- Step 4: rule-based analyses (best effort) -------------------
        failed = await self._store_analyses(doc, filename, content)
        if failed:
            await self._documents.refresh(doc)

        # ---- Step 5: COMPLETED -------------------------------------------
        transition(doc, DocumentStatus.COMPLETED)
        doc.content      = content
        doc.category     = category_for(filename)
        doc.processed_at = datetime.now(timezone.utc)
        metadata = {**doc.doc_metadata, "extractionMethod": outcome.method}
        if outcome.page_count is not None:
            metadata["pageCount"] = outcome.page_count
        doc.doc_metadata = metadata
        await self._documents.save(doc)

        logger.info("Lifecycle | doc=%s status=COMPLETED category=%s", doc.id, doc.category)
        await self._emit(doc, f"Successfully processed {filename}", progress=100)
        await publish(self._sink, SystemNotification(
            type="success",
            title="Document Processing Complete",
            message=f"{filename} has been successfully processed and analyzed.",
        ))
        return doc

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _fail(self, doc: Document, filename: str) -> None:
        transition(doc, DocumentStatus.ERROR)
        await self._documents.save(doc)
        logger.error("Lifecycle | doc=%s status=ERROR blob write failed", doc.id)
        await self._emit(doc, f"Failed to upload {filename} to storage")
        await publish(self._sink, SystemNotification(
            type="error",
            title="Upload Failed",
            message=f"Failed to upload {filename} to storage.",
        ))

    async def _store_analyses(self, doc: Document, filename: str, content: str) -> int:
        """Insert each finding on its own; returns how many inserts failed."""
        doc_id = doc.id
        failed = 0
        for finding in generate_analyses(filename, content):
            row = AnalysisResult(
                id=uuid.uuid4(),
                kind=finding.kind.value,
                title=finding.title,
                description=finding.description,
                confidence=finding.confidence,
                severity=finding.severity.value if finding.severity else None,
                document_id=doc_id,
            )
            try:
                await self._analyses.create(row)
            except PersistenceError as exc:
                logger.warning("Lifecycle | doc=%s analysis %r not stored: %s", doc_id, finding.title, exc)
                failed += 1
                continue
            await publish(self._sink, AnalysisEvent(
                analysis_id=str(row.id),
                document_id=str(doc_id),
                title=finding.title,
                kind=finding.kind.value,
            ))
        return failed

    async def _emit(self, doc: Document, message: str, progress: int | None = None) -> None:
        await publish(self._sink, DocumentEvent(
            document_id=str(doc.id),
            status=doc.status.lower(),
            message=message,
            progress=progress,
        ))
