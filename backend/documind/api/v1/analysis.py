"""
GET /api/v1/analysis: stored findings plus aggregate stats

Filters: type (ignored when "all"), documentId, limit (default 50).
Stats always cover every stored analysis, not just the filtered page.
"""

from __future__ import annotations

from fastapi import APIRouter, Query

from documind.api.dependencies import Analyses
from documind.processing.analysis import summarize
from documind.schemas.documents import AnalysisListResponse, AnalysisStats, AnalysisView

router = APIRouter(prefix="/analysis", tags=["Analysis"])


@router.get(
    "",
    response_model=AnalysisListResponse,
    response_model_by_alias=True,
    summary="List analyses with aggregate statistics",
)
async def list_analyses(
    analyses:    Analyses,
    type:        str | None = Query(default=None, description="INSIGHT | RISK | OPPORTUNITY | COMPLIANCE | all"),
    document_id: str | None = Query(default=None, alias="documentId"),
    limit:       int        = Query(default=50, ge=1, le=500),
) -> AnalysisListResponse:
    kind = type if type and type.lower() != "all" else None
    rows = await analyses.list(kind=kind, document_id=document_id, limit=limit)
    stats = summarize(await analyses.all())
    return AnalysisListResponse(
        analyses=[AnalysisView.from_row(r) for r in rows],
        stats=AnalysisStats.model_validate(stats),
    )
