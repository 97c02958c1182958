"""
Query & Search: request/response schemas

POST /api/v1/query   → QueryResponse
GET  /api/v1/query   → list[QueryHistoryItem]
POST /api/v1/search  → SearchResponse
GET  /api/v1/search  → SearchResponse
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field, field_validator

from documind.schemas.common import CamelModel
from documind.schemas.envelopes import QueryEnvelope


def _not_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be blank")
    return value


class UsageView(CamelModel):
    prompt_tokens:     int = 0
    completion_tokens: int = 0
    total_tokens:      int = 0


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------

class QueryRequest(CamelModel):
    query:        str = Field(..., max_length=4_000, examples=["Which contracts expire this year?"])
    document_ids: list[str] | None = Field(default=None, description="Restrict context to these documents")
    provider:     str | None = Field(default=None, description="ProviderConfig id; defaults to the active one")

    strip_query = field_validator("query")(_not_blank)


class QueryResponse(CamelModel):
    id:        str
    query:     str
    status:    str
    response:  QueryEnvelope | None = None
    timestamp: datetime | None = None
    provider:  str | None = None
    usage:     UsageView | None = None
    error:     str | None = None
    details:   str | None = None


class QueryHistoryItem(CamelModel):
    id:              str
    query:           str
    status:          str
    response:        dict[str, Any] | None = None
    results:         int = 0
    tokens_used:     int = 0
    processing_time: int = 0
    timestamp:       datetime | None = None
    document_ids:    list[str] = Field(default_factory=list)

    @classmethod
    def from_row(cls, row) -> "QueryHistoryItem":
        return cls(
            id=str(row.id),
            query=row.query,
            status=row.status,
            response=row.response,
            results=row.result_count,
            tokens_used=row.tokens_used,
            processing_time=row.processing_time,
            timestamp=row.created_at,
            document_ids=list(row.document_ids or []),
        )


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

class SearchFilters(CamelModel):
    type:     str | None = Field(default=None, description="MIME-type substring")
    category: str | None = Field(default=None, description="Category substring")


class SearchRequest(CamelModel):
    query:    str
    filters:  SearchFilters = Field(default_factory=SearchFilters)
    limit:    int = Field(default=10, ge=1, le=50)
    provider: str | None = None

    strip_query = field_validator("query")(_not_blank)


class DocumentBrief(CamelModel):
    id:           str
    name:         str
    type:         str
    size:         str
    category:     str | None = None
    upload_date:  datetime | None = None
    processed_at: datetime | None = None

    @classmethod
    def from_row(cls, doc) -> "DocumentBrief":
        return cls(
            id=str(doc.id),
            name=doc.name,
            type=doc.mime_type,
            size=doc.size_label,
            category=doc.category,
            upload_date=doc.uploaded_at,
            processed_at=doc.processed_at,
        )


class SearchResult(CamelModel):
    document_id:     str
    relevance_score: float
    reason:          str
    key_matches:     list[str]
    category:        str | None = None
    document:        DocumentBrief


class SearchResponse(CamelModel):
    results:     list[SearchResult] = Field(default_factory=list)
    query:       str
    total:       int = 0
    summary:     str | None = None
    search_type: str | None = None
    provider:    str | None = None
    usage:       UsageView | None = None
    message:     str | None = None
