"""
Provider settings service: resolution, persistence and connection tests

  resolve_provider()       explicit id → active config → ConfigurationError
  ProviderSettingsService  masked listing, encrypted upsert, connection test

Plain API keys enter through upsert() / test_connection() and leave only as
a ProviderConnection handed to the gateway; persisted rows hold Fernet tokens.
"""

from __future__ import annotations

import logging

from documind.core.errors import ConfigurationError
from documind.db.repositories import ProviderConfigRepository
from documind.llm.adapters import ProviderConnection
from documind.llm.catalog import get_spec, list_specs, normalize_provider_type
from documind.llm.gateway import CompletionGateway, ConnectionTestResult
from documind.models.entities import ProviderConfig, User
from documind.schemas.providers import (
    CatalogEntry,
    ConnectionTestRequest,
    GenerationParams,
    ProviderConfigIn,
    ProviderConfigView,
)
from documind.security.credentials import (
    MASK_CHAR,
    CredentialCache,
    get_cipher,
    get_credential_cache,
    is_valid_api_key,
    mask_api_key,
    to_connection,
)

logger = logging.getLogger(__name__)

NO_PROVIDER_MESSAGE = "No AI provider configured. Please configure an AI provider in settings."


async def resolve_provider(
    configs:     ProviderConfigRepository,
    owner:       User,
    provider_id: str | None = None,
) -> ProviderConfig:
    """
    Pick the config for one request.

    An explicit id wins when it names one of the owner's configs; an unknown
    id falls back to the active config. Raises ConfigurationError when
    nothing resolves.
    """
    if provider_id:
        config = await configs.get(provider_id)
        if config is not None and config.user_id == owner.id:
            return config
        logger.info("Providers | unknown provider id=%s, using active config", provider_id)

    config = await configs.get_active(owner.id)
    if config is None:
        raise ConfigurationError(NO_PROVIDER_MESSAGE)
    return config


def catalog_entries() -> list[CatalogEntry]:
    return [
        CatalogEntry(
            type=spec.provider_type.value,
            label=spec.label,
            default_base_url=spec.default_base_url,
            models=list(spec.models),
            is_local=spec.is_local,
            requires_api_key=spec.requires_api_key,
        )
        for spec in list_specs()
    ]


def _is_masked(api_key: str) -> bool:
    return MASK_CHAR in api_key


class ProviderSettingsService:
    """One instance per request."""

    def __init__(
        self,
        configs: ProviderConfigRepository,
        gateway: CompletionGateway | None = None,
        cache:   CredentialCache | None = None,
    ) -> None:
        self._configs = configs
        self._gateway = gateway
        self._cache   = cache if cache is not None else get_credential_cache()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def to_view(self, config: ProviderConfig) -> ProviderConfigView:
        plain = self._cache.get(config.api_key_encrypted or "")
        return ProviderConfigView(
            id=str(config.id),
            provider=config.provider,
            name=config.display_name,
            api_key=mask_api_key(plain) if plain else "",
            has_api_key=bool(plain),
            base_url=config.base_url,
            model=config.model,
            is_active=config.is_active,
            config=GenerationParams(
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                top_p=config.top_p,
            ),
            created_at=config.created_at,
            updated_at=config.updated_at,
        )

    async def list_masked(self, owner: User) -> list[ProviderConfigView]:
        return [self.to_view(c) for c in await self._configs.list_for_user(owner.id)]

    # ------------------------------------------------------------------
    # Upsert
    # ------------------------------------------------------------------

    async def upsert(self, owner: User, payload: ProviderConfigIn) -> ProviderConfigView:
        """Create or update the owner's config for payload.provider."""
        provider_type = normalize_provider_type(payload.provider)
        spec = get_spec(provider_type)

        existing = next(
            (c for c in await self._configs.list_for_user(owner.id)
             if c.provider == provider_type.value),
            None,
        )
        config = existing or ProviderConfig(
            user_id=owner.id,
            provider=provider_type.value,
            api_key_encrypted="",
            model="",
        )

        if payload.api_key is not None and not _is_masked(payload.api_key):
            key = payload.api_key.strip()
            if key and not is_valid_api_key(key, provider_type):
                logger.warning("Providers | api key for %s does not match the expected format", provider_type.value)
            config.api_key_encrypted = get_cipher().encrypt(key)

        if payload.name is not None:
            config.display_name = payload.name
        if payload.base_url is not None:
            config.base_url = payload.base_url.strip() or None
        if payload.model is not None:
            config.model = payload.model.strip()
        if not config.model:
            config.model = spec.default_model

        config.is_active   = payload.is_active
        config.temperature = payload.config.temperature
        config.max_tokens  = payload.config.max_tokens
        config.top_p       = payload.config.top_p

        await self._configs.save(config)
        logger.info(
            "Providers | saved provider=%s id=%s active=%s",
            config.provider, config.id, config.is_active,
        )
        return self.to_view(config)

    async def upsert_many(self, owner: User, payloads: list[ProviderConfigIn]) -> list[ProviderConfigView]:
        return [await self.upsert(owner, p) for p in payloads]

    # ------------------------------------------------------------------
    # Connection test
    # ------------------------------------------------------------------

    async def build_test_connection(self, owner: User, request: ConnectionTestRequest) -> ProviderConnection:
        """
        Turn a test request into a connection: a saved config by id, or an
        unsaved draft. Raises ConfigurationError when neither is usable.
        """
        if request.provider_id:
            config = await self._configs.get(request.provider_id)
            if config is None or config.user_id != owner.id:
                raise ConfigurationError("Provider configuration not found")
            return to_connection(config, self._cache)

        draft = request.provider
        if draft is None or not draft.type:
            raise ConfigurationError("Provider configuration is incomplete: provider type is required")

        provider_type = normalize_provider_type(draft.type)
        return ProviderConnection(
            provider_type=provider_type,
            name=draft.name or get_spec(provider_type).label,
            base_url=draft.base_url or "",
            api_key=(draft.api_key or "").strip(),
            model=draft.model or "",
            temperature=draft.temperature,
            max_tokens=draft.max_tokens,
            top_p=draft.top_p,
        )

    async def test_connection(self, owner: User, request: ConnectionTestRequest) -> ConnectionTestResult:
        if self._gateway is None:
            raise RuntimeError("ProviderSettingsService.test_connection needs a gateway")
        connection = await self.build_test_connection(owner, request)
        return await self._gateway.test_connection(connection)
