"""
Query API: natural-language questions over processed documents

POST /api/v1/query   → QueryResponse (COMPLETED), or {id, query, status=ERROR,
                       error, details} with 400/500 on provider failure
GET  /api/v1/query   → {queries, total, limit, offset}
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from documind.api.dependencies import Configs, Documents, Gateway, Owner, Queries, Sink
from documind.schemas.common import ErrorResponse
from documind.schemas.query import QueryHistoryItem, QueryRequest, QueryResponse, UsageView
from documind.services.query import QueryOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/query", tags=["Query"])


@router.post(
    "",
    response_model=QueryResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    summary="Ask a question about the processed documents",
    responses={
        400: {"model": ErrorResponse, "description": "No provider configured, or the provider rejected the key"},
        500: {"model": ErrorResponse, "description": "Provider or database failure"},
    },
)
async def run_query(
    body:      QueryRequest,
    documents: Documents,
    queries:   Queries,
    configs:   Configs,
    gateway:   Gateway,
    sink:      Sink,
    owner:     Owner,
):
    orchestrator = QueryOrchestrator(documents, queries, configs, gateway, sink)
    outcome = await orchestrator.run(owner, body.query, body.document_ids, body.provider)
    record = outcome.record

    if not outcome.succeeded:
        failure = outcome.failure
        return JSONResponse(
            status_code=failure.http_status,
            content=QueryResponse(
                id=str(record.id),
                query=record.query,
                status=record.status,
                provider=outcome.provider_name,
                error=failure.message,
                details=failure.details,
            ).model_dump(mode="json", by_alias=True, exclude_none=True),
        )

    usage = outcome.usage
    return QueryResponse(
        id=str(record.id),
        query=record.query,
        status=record.status,
        response=outcome.envelope,
        timestamp=record.created_at,
        provider=outcome.provider_name,
        usage=UsageView(
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
        ) if usage else None,
    )


@router.get("", summary="Query history, newest first")
async def query_history(
    queries: Queries,
    owner:   Owner,
    limit:   int = Query(default=10, ge=1, le=100),
    offset:  int = Query(default=0, ge=0),
) -> dict:
    rows, total = await queries.history(owner.id, limit=limit, offset=offset)
    return {
        "queries": [QueryHistoryItem.from_row(r).to_wire() for r in rows],
        "total":   total,
        "limit":   limit,
        "offset":  offset,
    }
