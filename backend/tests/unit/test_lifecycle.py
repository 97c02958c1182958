"""
Unit Tests: DocumentLifecycleManager
══════════════════════════════════════
Runs the upload pipeline against in-memory SQLite and an in-memory blob
store.

Coverage targets:
  ✅ notes.txt end to end → COMPLETED, four findings in order
  ✅ Blob failure          → document ERROR, StorageError re-raised
  ✅ Status events         → uploading 0 → processing 50 → completed 100
  ✅ Placeholder content   → still COMPLETED
  ✅ Transition table      → terminal states reject moves
"""

from __future__ import annotations

import pytest

from documind.core.errors import InvalidTransitionError, PersistenceError, StorageError
from documind.db.repositories import AnalysisRepository, DocumentRepository
from documind.models.entities import Document, DocumentStatus
from documind.services.lifecycle import DocumentLifecycleManager, category_for, transition


@pytest.fixture
def make_manager(db_session, event_sink):
    def _build(blobs, analyses=None):
        return DocumentLifecycleManager(
            DocumentRepository(db_session),
            analyses or AnalysisRepository(db_session),
            blobs,
            event_sink,
        )
    return _build


@pytest.mark.unit
class TestIngestHappyPath:

    async def test_notes_txt_end_to_end(self, make_manager, blob_store, owner, db_session):
        doc = await make_manager(blob_store).ingest(owner, "notes.txt", b"TODO: fix the bug please", "text/plain")

        assert doc.status == DocumentStatus.COMPLETED.value
        assert doc.content == "TODO: fix the bug please"
        assert doc.category == "Text"
        assert doc.size == 24
        assert doc.size_label == "24 Bytes"
        assert doc.processed_at is not None
        assert doc.doc_metadata["storageRef"] == f"documents/{doc.id}/notes.txt"
        assert doc.doc_metadata["downloadURL"] == f"memory://documents/{doc.id}/notes.txt"
        assert doc.doc_metadata["extractionMethod"] == "text"
        assert blob_store.objects[doc.doc_metadata["storageRef"]] == b"TODO: fix the bug please"

        rows = await AnalysisRepository(db_session).list(document_id=str(doc.id))
        by_title = {r.title: r for r in rows}
        assert by_title["Document Statistics"].kind == "INSIGHT"
        assert by_title["Document Statistics"].confidence == 100
        assert by_title["Action Items Found"].kind == "OPPORTUNITY"
        assert by_title["Action Items Found"].severity == "MEDIUM"
        assert by_title["Content Analysis"].confidence == 95
        assert by_title["No Sensitive Data Detected"].severity == "LOW"
        assert len(rows) == 4

    async def test_status_events_in_order(self, make_manager, blob_store, owner, event_sink):
        await make_manager(blob_store).ingest(owner, "a.txt", b"hello", "text/plain")

        statuses = [(e.status, e.progress) for e in event_sink.named("document:status")]
        assert statuses == [("uploading", 0), ("processing", 50), ("completed", 100)]
        assert len(event_sink.named("analysis:created")) == 3
        assert event_sink.named("system:notification")[-1].type == "success"

    async def test_unparsable_file_still_completes(self, make_manager, blob_store, owner):
        doc = await make_manager(blob_store).ingest(owner, "scan.pdf", b"not really a pdf", "application/pdf")
        assert doc.status == DocumentStatus.COMPLETED.value
        assert doc.content.startswith("PDF Document: scan.pdf")
        assert doc.category == "Document"

    async def test_missing_mime_type_recorded_as_unknown(self, make_manager, blob_store, owner):
        doc = await make_manager(blob_store).ingest(owner, "README", b"plain words", None)
        assert doc.mime_type == "unknown"
        assert doc.category == "Other"


@pytest.mark.unit
class TestIngestFailures:

    async def test_blob_failure_marks_document_error(self, make_manager, failing_blob_store, owner, db_session, event_sink):
        with pytest.raises(StorageError):
            await make_manager(failing_blob_store).ingest(owner, "a.txt", b"data", "text/plain")

        docs = await DocumentRepository(db_session).list()
        assert len(docs) == 1
        assert docs[0].status == DocumentStatus.ERROR.value
        assert event_sink.named("system:notification")[-1].type == "error"
        assert await AnalysisRepository(db_session).all() == []

    async def test_analysis_insert_failure_does_not_block_completion(self, make_manager, blob_store, owner, db_session):
        class BrokenAnalyses(AnalysisRepository):
            async def create(self, analysis):
                raise PersistenceError("insert analysis failed")

        doc = await make_manager(blob_store, BrokenAnalyses(db_session)).ingest(owner, "a.txt", b"data", "text/plain")
        assert doc.status == DocumentStatus.COMPLETED.value


@pytest.mark.unit
class TestTransitions:

    @pytest.mark.parametrize("current, target", [
        (DocumentStatus.UPLOADING,  DocumentStatus.PROCESSING),
        (DocumentStatus.UPLOADING,  DocumentStatus.ERROR),
        (DocumentStatus.PROCESSING, DocumentStatus.COMPLETED),
        (DocumentStatus.PROCESSING, DocumentStatus.ERROR),
    ])
    def test_allowed(self, current, target):
        doc = Document(status=current.value)
        transition(doc, target)
        assert doc.status == target.value

    @pytest.mark.parametrize("current, target", [
        (DocumentStatus.UPLOADING,  DocumentStatus.COMPLETED),
        (DocumentStatus.COMPLETED,  DocumentStatus.PROCESSING),
        (DocumentStatus.ERROR,      DocumentStatus.COMPLETED),
        (DocumentStatus.COMPLETED,  DocumentStatus.ERROR),
    ])
    def test_rejected(self, current, target):
        doc = Document(status=current.value)
        with pytest.raises(InvalidTransitionError):
            transition(doc, target)
        assert doc.status == current.value


@pytest.mark.unit
@pytest.mark.parametrize("filename, category", [
    ("a.pdf", "Document"), ("a.DOCX", "Document"), ("a.txt", "Text"),
    ("a.png", "Image"), ("a.csv", "Data"), ("a.exe", "Other"),
])
def test_category_for(filename, category):
    assert category_for(filename) == category
