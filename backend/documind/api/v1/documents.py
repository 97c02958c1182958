"""
Document API Router

POST /api/v1/documents/upload          → DocumentSummary (201)
GET  /api/v1/documents                 → list[DocumentSummary]
GET  /api/v1/documents/{id}            → DocumentDetail (analyses included)
GET  /api/v1/documents/{id}/download   → original bytes

Upload lifecycle (delegated to DocumentLifecycleManager):
  ┌─────────────────────────────────────────────────────────┐
  │ 1. Size validation (400 empty, 413 over limit)          │
  │ 2. Document row, status=UPLOADING                       │
  │ 3. Blob write under documents/<id>/ → PROCESSING        │
  │ 4. Text extraction + rule-based analyses                │
  │ 5. status=COMPLETED, response returned                  │
  └─────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import logging
from urllib.parse import quote

from fastapi import APIRouter, File, HTTPException, Query, UploadFile, status
from fastapi.responses import Response

from documind.api.dependencies import Analyses, Blobs, Documents, Owner, Sink
from documind.core.config import settings
from documind.processing.extractor import format_file_size
from documind.schemas.common import ErrorResponse
from documind.schemas.documents import DocumentDetail, DocumentSummary
from documind.services.lifecycle import DocumentLifecycleManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["Documents"])


# ---------------------------------------------------------------------------
# POST /documents/upload
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=DocumentSummary,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
    summary="Upload and process a document",
    responses={
        400: {"model": ErrorResponse, "description": "No file, or an empty file"},
        413: {"model": ErrorResponse, "description": "File exceeds the upload limit"},
        500: {"model": ErrorResponse, "description": "Storage or database failure"},
    },
)
async def upload_document(
    documents: Documents,
    analyses:  Analyses,
    blobs:     Blobs,
    sink:      Sink,
    owner:     Owner,
    file:      UploadFile = File(..., description="Document file (PDF, DOCX, TXT, …)"),
) -> DocumentSummary:
    """
    Store the file, extract its text, run the rule-based analyses and return
    the COMPLETED document. Processing is synchronous.
    """
    data = await file.read()
    filename = file.filename or "untitled"

    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=(
                f"File size {format_file_size(len(data))} exceeds the "
                f"{format_file_size(settings.max_upload_bytes)} limit"
            ),
        )

    manager = DocumentLifecycleManager(documents, analyses, blobs, sink)
    doc = await manager.ingest(owner, filename, data, file.content_type)
    return DocumentSummary.from_row(doc)


# ---------------------------------------------------------------------------
# GET /documents
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=list[DocumentSummary],
    response_model_by_alias=True,
    summary="List documents, newest first",
)
async def list_documents(
    documents: Documents,
    status_filter: str | None = Query(default=None, alias="status", description="UPLOADING | PROCESSING | COMPLETED | ERROR"),
    type_filter:   str | None = Query(default=None, alias="type", description="MIME-type substring"),
    search:        str | None = Query(default=None, description="Substring of name or content"),
    limit:         int        = Query(default=50, ge=1, le=200),
    offset:        int        = Query(default=0, ge=0),
) -> list[DocumentSummary]:
    rows = await documents.list(
        status=status_filter.upper() if status_filter and status_filter.lower() != "all" else None,
        mime_type=type_filter if type_filter and type_filter.lower() != "all" else None,
        search=search or None,
        limit=limit,
        offset=offset,
    )
    return [DocumentSummary.from_row(d) for d in rows]


# ---------------------------------------------------------------------------
# GET /documents/{document_id}
# ---------------------------------------------------------------------------

@router.get(
    "/{document_id}",
    response_model=DocumentDetail,
    response_model_by_alias=True,
    summary="Fetch one document with its analyses",
    responses={404: {"model": ErrorResponse}},
)
async def get_document(document_id: str, documents: Documents, analyses: Analyses) -> DocumentDetail:
    doc = await documents.get(document_id)
    if doc is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    rows = await analyses.list(document_id=str(doc.id), limit=100)
    return DocumentDetail.from_row(doc, rows)


# ---------------------------------------------------------------------------
# GET /documents/{document_id}/download
# ---------------------------------------------------------------------------

@router.get(
    "/{document_id}/download",
    summary="Download the stored original",
    responses={404: {"model": ErrorResponse}},
)
async def download_document(document_id: str, documents: Documents, blobs: Blobs) -> Response:
    doc = await documents.get(document_id)
    if doc is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")

    key = (doc.doc_metadata or {}).get("storageRef")
    data = await blobs.get(key) if key else None
    if data is None:
        logger.warning("Documents | doc=%s has no stored blob (ref=%s)", doc.id, key)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Stored file not found")

    media_type = doc.mime_type if doc.mime_type and doc.mime_type != "unknown" else "application/octet-stream"
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(doc.name)}"},
    )
