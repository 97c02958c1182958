"""
Provider settings: request/response schemas

GET  /api/v1/settings/providers         → list[ProviderConfigView] (keys masked)
POST /api/v1/settings/providers         → ProviderConfigView | list[ProviderConfigView]
GET  /api/v1/settings/catalog           → list[CatalogEntry]
POST /api/v1/settings/test-connection   → ConnectionTestResponse

API keys only ever travel inbound in plain text; outbound they are masked.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from documind.schemas.common import CamelModel
from documind.schemas.query import UsageView


class GenerationParams(CamelModel):
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens:  int | None   = Field(default=None, ge=1)
    top_p:       float | None = Field(default=None, ge=0.0, le=1.0)


class ProviderConfigIn(CamelModel):
    """
    One provider setting. Upserted by (owner, provider variant).

    api_key: None keeps the stored key; a value made only of mask bullets
    (as echoed back by GET) also keeps it.
    """
    provider:  str = Field(..., min_length=1, examples=["openai"])
    name:      str | None = None
    api_key:   str | None = None
    base_url:  str | None = None
    model:     str | None = None
    is_active: bool = False
    config:    GenerationParams = Field(default_factory=GenerationParams)


class BulkProviderConfigIn(CamelModel):
    providers: list[ProviderConfigIn]


class ProviderConfigView(CamelModel):
    id:          str
    provider:    str
    name:        str | None = None
    api_key:     str
    has_api_key: bool
    base_url:    str | None = None
    model:       str
    is_active:   bool
    config:      GenerationParams
    created_at:  datetime | None = None
    updated_at:  datetime | None = None


class CatalogEntry(CamelModel):
    type:             str
    label:            str
    default_base_url: str
    models:           list[str]
    is_local:         bool
    requires_api_key: bool


class ProviderDraft(CamelModel):
    """Unsaved provider settings, as typed into the settings form."""
    type:        str | None = None
    name:        str | None = None
    api_key:     str | None = None
    base_url:    str | None = None
    model:       str | None = None
    temperature: float | None = None
    max_tokens:  int | None = None
    top_p:       float | None = None


class ConnectionTestRequest(CamelModel):
    provider:    ProviderDraft | None = None
    provider_id: str | None = Field(default=None, description="Test a saved config instead of a draft")


class ConnectionTestResponse(CamelModel):
    success:        bool
    message:        str
    details:        str | None = None
    response:       str | None = None
    usage:          UsageView | None = None
    model:          str | None = None
    provider:       str | None = None
    original_error: str | None = None
