"""
Document & Analysis: response schemas

Covers:
  - POST /api/v1/documents/upload   (DocumentSummary)
  - GET  /api/v1/documents          (list[DocumentSummary])
  - GET  /api/v1/documents/{id}     (DocumentDetail, analyses included)
  - GET  /api/v1/analysis           (AnalysisListResponse, with stats)

Timestamps are serialised as ISO-8601 strings.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from documind.schemas.common import CamelModel


class AnalysisView(CamelModel):
    id:          str
    type:        str
    title:       str
    description: str
    confidence:  float
    severity:    str | None = None
    document_id: str
    created_at:  datetime | None = None

    @classmethod
    def from_row(cls, row) -> "AnalysisView":
        return cls(
            id=str(row.id),
            type=row.kind,
            title=row.title,
            description=row.description,
            confidence=row.confidence,
            severity=row.severity,
            document_id=str(row.document_id),
            created_at=row.created_at,
        )


class DocumentSummary(CamelModel):
    id:           str
    name:         str
    type:         str
    size:         str
    size_bytes:   int
    status:       str
    category:     str | None = None
    tags:         list[str] = Field(default_factory=list)
    upload_date:  datetime | None = None
    processed_at: datetime | None = None
    download_url: str | None = Field(default=None, serialization_alias="downloadURL")

    @classmethod
    def from_row(cls, doc) -> "DocumentSummary":
        return cls(
            id=str(doc.id),
            name=doc.name,
            type=doc.mime_type,
            size=doc.size_label,
            size_bytes=doc.size,
            status=doc.status,
            category=doc.category,
            tags=list(doc.tags or []),
            upload_date=doc.uploaded_at,
            processed_at=doc.processed_at,
            download_url=(doc.doc_metadata or {}).get("downloadURL"),
        )


class DocumentDetail(DocumentSummary):
    content:  str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    analyses: list[AnalysisView] = Field(default_factory=list)

    @classmethod
    def from_row(cls, doc, analyses=()) -> "DocumentDetail":
        summary = DocumentSummary.from_row(doc)
        return cls(
            **summary.model_dump(),
            content=doc.content,
            metadata=dict(doc.doc_metadata or {}),
            analyses=[AnalysisView.from_row(a) for a in analyses],
        )


class AnalysisStats(CamelModel):
    total:              int
    by_type:            dict[str, int]
    by_severity:        dict[str, int]
    average_confidence: int
    recent_count:       int


class AnalysisListResponse(CamelModel):
    analyses: list[AnalysisView]
    stats:    AnalysisStats
