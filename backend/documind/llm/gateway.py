"""
Completion Gateway: Unified Entry Point for all model calls

Every AI-assisted step in the service (query answering, semantic search,
connection tests) funnels through CompletionGateway.generate_completion():

  ┌─────────────────────────────────────────────────────┐
  │  CompletionGateway.generate_completion()            │
  │       │                                             │
  │       ▼                                             │
  │  credential check    ← ConfigurationError, no I/O   │
  │       │                                             │
  │       ▼                                             │
  │  ADAPTERS[type].build_request()                     │
  │       │                                             │
  │       ▼                                             │
  │  httpx POST (single attempt, transport timeout)     │
  │       │                                             │
  │       ▼                                             │
  │  non-2xx → ProviderError(kind, raw body)            │
  │  2xx     → ADAPTERS[type].parse_response()          │
  │       │                                             │
  │       ▼                                             │
  │  CompletionResult (normalized)                      │
  └─────────────────────────────────────────────────────┘

The gateway is an explicitly constructed value: main.py builds one per
application and stores it on app.state; tests build their own around an
httpx.MockTransport. There are no retries: quota errors surface to the
caller like any other failure.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import httpx

from documind.core.config import settings
from documind.core.errors import (
    ConfigurationError,
    ProviderError,
    ProviderErrorKind,
    classify_provider_failure,
    describe_failure,
)
from documind.llm.adapters import (
    ADAPTERS,
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    CompletionParams,
    ProviderAdapter,
    ProviderConnection,
    TokenUsage,
)
from documind.llm.catalog import ProviderType

logger = logging.getLogger(__name__)

CONNECTION_TEST_PROMPT = (
    'Hello! Please respond with just "Connection successful" to confirm the API is working.'
)
CONNECTION_TEST_SYSTEM_PROMPT = "You are a helpful assistant. Respond concisely."


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass
class CompletionResult:
    """The normalized result of a single completion call."""
    content:       str
    usage:         TokenUsage
    model:         str
    provider_name: str
    latency_ms:    float = 0.0


@dataclass
class ConnectionTestResult:
    success:  bool
    message:  str
    details:  str | None        = None
    response: str | None        = None
    usage:    TokenUsage | None = None
    model:    str | None        = None
    provider: str | None        = None
    http_status: int            = 200
    original_error: str | None  = None


# ---------------------------------------------------------------------------
# CompletionGateway
# ---------------------------------------------------------------------------

class CompletionGateway:
    """
    Provider-agnostic completion interface.

    Safe for concurrent use: the only state is the pooled AsyncClient and the
    immutable adapter registry.

    Usage::

        gateway = CompletionGateway()
        result = await gateway.generate_completion(conn, prompt, system_prompt="...")
        ...
        await gateway.aclose()
    """

    def __init__(
        self,
        client:   httpx.AsyncClient | None = None,
        adapters: dict[ProviderType, ProviderAdapter] | None = None,
    ) -> None:
        self._client   = client or httpx.AsyncClient(timeout=settings.llm_http_timeout)
        self._adapters = adapters or ADAPTERS

    async def aclose(self) -> None:
        await self._client.aclose()

    # -----------------------------------------------------------------------
    # Completion
    # -----------------------------------------------------------------------

    async def generate_completion(
        self,
        provider:      ProviderConnection,
        prompt:        str,
        system_prompt: str | None   = None,
        temperature:   float | None = None,
        max_tokens:    int | None   = None,
    ) -> CompletionResult:
        """
        Issue one completion call and normalize the response.

        Raises:
            ConfigurationError: credential required but missing (no network call made).
            ProviderError:      non-2xx response or transport failure.
        """
        if provider.requires_api_key and not provider.api_key:
            raise ConfigurationError("API key not configured for provider")

        adapter = self._adapters[provider.provider_type]
        params = CompletionParams(
            prompt=prompt,
            system_prompt=system_prompt,
            temperature=_first_not_none(temperature, provider.temperature, DEFAULT_TEMPERATURE),
            max_tokens=_first_not_none(max_tokens, provider.max_tokens, DEFAULT_MAX_TOKENS),
            top_p=provider.top_p,
        )
        request = adapter.build_request(provider, params)

        t0 = time.perf_counter()
        try:
            response = await self._client.post(
                request.url,
                headers=request.headers,
                params=request.params or None,
                json=request.body,
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "CompletionGateway | transport error provider=%s type=%s: %s",
                provider.name, provider.provider_type.value, exc,
            )
            raise ProviderError(
                provider=adapter.error_label,
                raw_message=f"network error: {exc}",
                kind=ProviderErrorKind.NETWORK,
            ) from exc

        latency = (time.perf_counter() - t0) * 1000

        if not response.is_success:
            raw = response.text
            kind = classify_provider_failure(response.status_code, raw)
            logger.warning(
                "CompletionGateway | provider=%s type=%s status=%d kind=%s",
                provider.name, provider.provider_type.value, response.status_code, kind.value,
            )
            raise ProviderError(
                provider=adapter.error_label,
                raw_message=raw,
                kind=kind,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(
                provider=adapter.error_label,
                raw_message=response.text,
                kind=ProviderErrorKind.GENERIC,
                status_code=response.status_code,
            ) from exc

        content, usage = adapter.parse_response(data)

        logger.info(
            "CompletionGateway | provider=%s type=%s model=%s tokens_in=%d tokens_out=%d latency_ms=%.1f",
            provider.name, provider.provider_type.value, provider.model,
            usage.prompt_tokens, usage.completion_tokens, latency,
        )

        return CompletionResult(
            content=content,
            usage=usage,
            model=provider.model,
            provider_name=provider.name,
            latency_ms=latency,
        )

    # -----------------------------------------------------------------------
    # Connection test
    # -----------------------------------------------------------------------

    async def test_connection(self, provider: ProviderConnection) -> ConnectionTestResult:
        """
        Send a short fixed prompt and report whether the provider answered.

        Never raises for provider-side failures; they come back classified.
        """
        try:
            result = await self.generate_completion(
                provider,
                CONNECTION_TEST_PROMPT,
                system_prompt=CONNECTION_TEST_SYSTEM_PROMPT,
                temperature=0.1,
                max_tokens=50,
            )
        except (ConfigurationError, ProviderError) as exc:
            summary = describe_failure(exc)
            logger.info(
                "CompletionGateway | connection test failed provider=%s: %s",
                provider.name, summary.message,
            )
            return ConnectionTestResult(
                success=False,
                message=summary.message,
                details=summary.details,
                http_status=summary.http_status,
                original_error=str(exc),
            )

        if not result.content:
            return ConnectionTestResult(
                success=False,
                message="No response received from AI provider",
                details="The API call completed but returned no content",
                http_status=500,
            )

        return ConnectionTestResult(
            success=True,
            message="Connection test successful",
            response=result.content.strip(),
            usage=result.usage,
            model=result.model,
            provider=result.provider_name,
        )


def _first_not_none(*values):
    for v in values:
        if v is not None:
            return v
    return None
