"""
Search API

POST /api/v1/search                      body: SearchRequest
GET  /api/v1/search?q=&type=&category=&limit=

Both return a SearchResponse; searchType tells the client whether the
semantic ranking or the keyword fallback produced it.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import ValidationError

from documind.api.dependencies import Configs, Documents, Gateway, Owner
from documind.schemas.common import ErrorResponse
from documind.schemas.query import SearchFilters, SearchRequest, SearchResponse
from documind.services.search import SearchOrchestrator

router = APIRouter(prefix="/search", tags=["Search"])


@router.post(
    "",
    response_model=SearchResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    summary="Rank processed documents against a query",
    responses={400: {"model": ErrorResponse, "description": "Blank query"}},
)
async def search_documents(
    body:      SearchRequest,
    documents: Documents,
    configs:   Configs,
    gateway:   Gateway,
    owner:     Owner,
) -> SearchResponse:
    return await SearchOrchestrator(documents, configs, gateway).search(owner, body)


@router.get(
    "",
    response_model=SearchResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    summary="Query-string form of POST /search",
    responses={400: {"model": ErrorResponse, "description": "Missing q"}},
)
async def search_documents_get(
    documents: Documents,
    configs:   Configs,
    gateway:   Gateway,
    owner:     Owner,
    q:         str        = Query(..., min_length=1),
    type:      str | None = Query(default=None),
    category:  str | None = Query(default=None),
    limit:     int        = Query(default=10, ge=1, le=50),
) -> SearchResponse:
    try:
        request = SearchRequest(
            query=q,
            filters=SearchFilters(type=type, category=category),
            limit=limit,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Search query is required") from exc
    return await SearchOrchestrator(documents, configs, gateway).search(owner, request)
