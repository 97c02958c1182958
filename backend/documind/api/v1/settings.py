"""
Provider Settings API

GET  /api/v1/settings/providers         → {providers: [masked configs]}
POST /api/v1/settings/providers         ← one config, or {providers: [...]}
GET  /api/v1/settings/catalog           → supported provider variants
POST /api/v1/settings/test-connection   → ConnectionTestResponse

API keys never leave the server in plain text: listings carry the masked
form, and posting a masked key back keeps the stored one.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from documind.api.dependencies import Configs, Gateway, Owner
from documind.core.errors import ConfigurationError
from documind.llm.gateway import ConnectionTestResult
from documind.schemas.common import ErrorResponse
from documind.schemas.providers import (
    BulkProviderConfigIn,
    ConnectionTestRequest,
    ConnectionTestResponse,
    ProviderConfigIn,
)
from documind.schemas.query import UsageView
from documind.services.providers import ProviderSettingsService, catalog_entries

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("/providers", summary="List provider configurations (keys masked)")
async def list_providers(configs: Configs, owner: Owner) -> dict:
    views = await ProviderSettingsService(configs).list_masked(owner)
    return {"providers": [v.to_wire() for v in views]}


@router.post(
    "/providers",
    summary="Create or update provider configurations",
    responses={400: {"model": ErrorResponse, "description": "Unknown provider type"}},
)
async def save_providers(
    body:    BulkProviderConfigIn | ProviderConfigIn,
    configs: Configs,
    owner:   Owner,
) -> dict:
    service = ProviderSettingsService(configs)
    payloads = body.providers if isinstance(body, BulkProviderConfigIn) else [body]
    views = await service.upsert_many(owner, payloads)
    return {
        "success":   True,
        "providers": [v.to_wire() for v in views],
    }


@router.get("/catalog", summary="Supported provider variants and their defaults")
async def provider_catalog() -> dict:
    return {"providers": [entry.to_wire() for entry in catalog_entries()]}


@router.post(
    "/test-connection",
    response_model=ConnectionTestResponse,
    response_model_exclude_none=True,
    summary="Send a one-word probe prompt to a provider",
    responses={
        400: {"model": ConnectionTestResponse, "description": "Incomplete config or rejected key"},
        500: {"model": ConnectionTestResponse, "description": "Provider unreachable or failing"},
    },
)
async def run_connection_test(
    body:    ConnectionTestRequest,
    configs: Configs,
    gateway: Gateway,
    owner:   Owner,
):
    try:
        result = await ProviderSettingsService(configs, gateway).test_connection(owner, body)
    except ConfigurationError as exc:
        result = ConnectionTestResult(
            success=False,
            message=str(exc),
            details=str(exc),
            http_status=400,
        )
    payload = _to_response(result)
    if result.success:
        return payload
    logger.info("Settings | connection test failed provider=%s: %s", result.provider, result.message)
    return JSONResponse(
        status_code=result.http_status,
        content=payload.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


def _to_response(result: ConnectionTestResult) -> ConnectionTestResponse:
    usage = result.usage
    return ConnectionTestResponse(
        success=result.success,
        message=result.message,
        details=result.details,
        response=result.response,
        usage=UsageView(
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
        ) if usage else None,
        model=result.model,
        provider=result.provider,
        original_error=result.original_error,
    )
