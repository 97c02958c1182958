"""
GET /api/v1/health: liveness plus a database ping

Always 200: a failed ping shows up as databaseConnection="error" so the
dashboard can render a degraded state instead of an outage.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from documind.core.config import settings
from documind.db import session as db_session

router = APIRouter(tags=["Operations"])


@router.get("/health", summary="Service and database status")
async def health() -> dict:
    db_status = await db_session.check_db_health()
    return {
        "status":             "ok",
        "timestamp":          datetime.now(timezone.utc).isoformat(),
        "environment":        settings.app_env,
        "databaseConnection": "connected" if db_status["status"] == "ok" else "error",
    }
