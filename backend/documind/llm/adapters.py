"""
Provider Adapters: one wire protocol per provider variant

Each adapter knows three things about its backend:

  1. Where auth goes       bearer header | custom header | URL query parameter
  2. Request body shape    flat prompt | chat-message array | content blocks
  3. Response field names  where the text and the token counts live

  ┌──────────────┬──────────────────────────┬────────────────────┬────────────────────────────┐
  │ variant      │ endpoint                 │ auth               │ usage fields               │
  ├──────────────┼──────────────────────────┼────────────────────┼────────────────────────────┤
  │ openai       │ /chat/completions        │ Bearer             │ usage.prompt_tokens …      │
  │ mistral      │ /chat/completions        │ Bearer             │ usage.prompt_tokens …      │
  │ open-router  │ /chat/completions        │ Bearer + referer   │ usage.prompt_tokens …      │
  │ lm-studio    │ /chat/completions        │ Bearer (optional)  │ usage.prompt_tokens …      │
  │ google       │ /models/{m}:generateContent │ ?key=           │ usageMetadata.*TokenCount  │
  │ anthropic    │ /messages                │ x-api-key          │ usage.input/output_tokens  │
  │ ollama       │ /generate                │ none               │ prompt_eval_count/eval_count│
  └──────────────┴──────────────────────────┴────────────────────┴────────────────────────────┘

Adapters are pure: build_request() returns a ProviderRequest and
parse_response() reads a decoded JSON body. The gateway owns the HTTP client,
so adapters can be exercised without any network.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from documind.core.config import settings
from documind.llm.catalog import ProviderType, get_spec

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS  = 8192


# ---------------------------------------------------------------------------
# Shared data types
# ---------------------------------------------------------------------------

@dataclass
class ProviderConnection:
    """
    Decrypted, ready-to-call view of one configured provider.

    Built by security.credentials from a stored ProviderConfig; api_key is
    plain text and must never be logged.
    """
    provider_type: ProviderType
    name:          str
    base_url:      str
    api_key:       str
    model:         str
    id:            str | None   = None
    is_active:     bool         = False
    temperature:   float | None = None
    max_tokens:    int | None   = None
    top_p:         float | None = None

    def __post_init__(self) -> None:
        spec = get_spec(self.provider_type)
        if not self.base_url:
            self.base_url = spec.default_base_url
        self.base_url = self.base_url.rstrip("/")
        if not self.model:
            self.model = spec.default_model

    @property
    def requires_api_key(self) -> bool:
        return get_spec(self.provider_type).requires_api_key

    def __repr__(self) -> str:
        return (
            f"<ProviderConnection type={self.provider_type.value} name={self.name!r} "
            f"model={self.model!r} key={'set' if self.api_key else 'unset'}>"
        )


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens:     int = 0
    completion_tokens: int = 0
    total_tokens:      int = 0


@dataclass
class ProviderRequest:
    """Everything the gateway needs to issue one POST."""
    url:     str
    headers: dict[str, str]
    body:    dict[str, Any]
    params:  dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CompletionParams:
    """Per-call generation parameters after defaults are applied."""
    prompt:        str
    system_prompt: str | None
    temperature:   float
    max_tokens:    int
    top_p:         float | None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _dig(data: Any, *path: Any) -> Any:
    """Walk nested dicts/lists; return None as soon as a step is missing."""
    current = data
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or len(current) <= step:
                return None
        elif not isinstance(current, dict):
            return None
        current = current[step] if isinstance(step, int) else current.get(step)
        if current is None:
            return None
    return current


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _without_none(d: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


# ---------------------------------------------------------------------------
# Abstract adapter
# ---------------------------------------------------------------------------

class ProviderAdapter(ABC):
    """Wire protocol for a single provider variant."""

    provider_type: ProviderType
    error_label:   str

    @abstractmethod
    def build_request(self, conn: ProviderConnection, params: CompletionParams) -> ProviderRequest:
        """Build URL, headers and JSON body for one completion call."""

    @abstractmethod
    def parse_response(self, data: Any) -> tuple[str, TokenUsage]:
        """Extract (content, usage) from the decoded response body."""


# ---------------------------------------------------------------------------
# OpenAI-compatible chat completions (OpenAI, Mistral, OpenRouter, LM Studio)
# ---------------------------------------------------------------------------

class ChatCompletionsAdapter(ProviderAdapter):
    """POST {base}/chat/completions with a messages array."""

    def _auth_headers(self, conn: ProviderConnection) -> dict[str, str]:
        return {"Authorization": f"Bearer {conn.api_key}"}

    def build_request(self, conn: ProviderConnection, params: CompletionParams) -> ProviderRequest:
        messages: list[dict[str, str]] = []
        if params.system_prompt:
            messages.append({"role": "system", "content": params.system_prompt})
        messages.append({"role": "user", "content": params.prompt})

        return ProviderRequest(
            url=f"{conn.base_url}/chat/completions",
            headers={"Content-Type": "application/json", **self._auth_headers(conn)},
            body=_without_none({
                "model":       conn.model,
                "messages":    messages,
                "temperature": params.temperature,
                "max_tokens":  params.max_tokens,
                "top_p":       params.top_p,
            }),
        )

    def parse_response(self, data: Any) -> tuple[str, TokenUsage]:
        content = _dig(data, "choices", 0, "message", "content") or ""
        usage = TokenUsage(
            prompt_tokens     = _as_int(_dig(data, "usage", "prompt_tokens")),
            completion_tokens = _as_int(_dig(data, "usage", "completion_tokens")),
            total_tokens      = _as_int(_dig(data, "usage", "total_tokens")),
        )
        return content, usage


class OpenAIAdapter(ChatCompletionsAdapter):
    provider_type = ProviderType.OPENAI
    error_label   = "OpenAI"


class MistralAdapter(ChatCompletionsAdapter):
    provider_type = ProviderType.MISTRAL
    error_label   = "Mistral AI"


class OpenRouterAdapter(ChatCompletionsAdapter):
    provider_type = ProviderType.OPEN_ROUTER
    error_label   = "OpenRouter"

    def _auth_headers(self, conn: ProviderConnection) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {conn.api_key}",
            "HTTP-Referer":  settings.openrouter_referer,
            "X-Title":       settings.openrouter_title,
        }


class LMStudioAdapter(ChatCompletionsAdapter):
    provider_type = ProviderType.LM_STUDIO
    error_label   = "LM Studio"

    def _auth_headers(self, conn: ProviderConnection) -> dict[str, str]:
        # Local server; a key is only sent when one was configured
        if conn.api_key:
            return {"Authorization": f"Bearer {conn.api_key}"}
        return {}


# ---------------------------------------------------------------------------
# Google Generative Language API
# ---------------------------------------------------------------------------

class GoogleAdapter(ProviderAdapter):
    """POST {base}/models/{model}:generateContent?key=<api_key>"""

    provider_type = ProviderType.GOOGLE
    error_label   = "Google AI"

    def build_request(self, conn: ProviderConnection, params: CompletionParams) -> ProviderRequest:
        contents: list[dict[str, Any]] = []
        if params.system_prompt:
            contents.append({"role": "user", "parts": [{"text": params.system_prompt}]})
        contents.append({"role": "user", "parts": [{"text": params.prompt}]})

        return ProviderRequest(
            url=f"{conn.base_url}/models/{conn.model}:generateContent",
            params={"key": conn.api_key},
            headers={"Content-Type": "application/json"},
            body={
                "contents": contents,
                "generationConfig": _without_none({
                    "temperature":     params.temperature,
                    "maxOutputTokens": params.max_tokens,
                    "topP":            params.top_p,
                }),
            },
        )

    def parse_response(self, data: Any) -> tuple[str, TokenUsage]:
        content = _dig(data, "candidates", 0, "content", "parts", 0, "text") or ""
        usage = TokenUsage(
            prompt_tokens     = _as_int(_dig(data, "usageMetadata", "promptTokenCount")),
            completion_tokens = _as_int(_dig(data, "usageMetadata", "candidatesTokenCount")),
            total_tokens      = _as_int(_dig(data, "usageMetadata", "totalTokenCount")),
        )
        return content, usage


# ---------------------------------------------------------------------------
# Anthropic Messages API
# ---------------------------------------------------------------------------

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(ProviderAdapter):
    """POST {base}/messages with a top-level system field."""

    provider_type = ProviderType.ANTHROPIC
    error_label   = "Anthropic"

    def build_request(self, conn: ProviderConnection, params: CompletionParams) -> ProviderRequest:
        body: dict[str, Any] = {
            "model":       conn.model,
            "messages":    [{"role": "user", "content": params.prompt}],
            "temperature": params.temperature,
            "max_tokens":  params.max_tokens,
        }
        if params.system_prompt:
            body["system"] = params.system_prompt

        return ProviderRequest(
            url=f"{conn.base_url}/messages",
            headers={
                "Content-Type":      "application/json",
                "x-api-key":         conn.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
            body=body,
        )

    def parse_response(self, data: Any) -> tuple[str, TokenUsage]:
        content = _dig(data, "content", 0, "text") or _dig(data, "output_text") or ""
        prompt_tokens     = _as_int(_dig(data, "usage", "input_tokens"))
        completion_tokens = _as_int(_dig(data, "usage", "output_tokens"))
        return content, TokenUsage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )


# ---------------------------------------------------------------------------
# Ollama native generate API
# ---------------------------------------------------------------------------

class OllamaAdapter(ProviderAdapter):
    """POST {base}/generate with a flat prompt and stream=false."""

    provider_type = ProviderType.OLLAMA
    error_label   = "Ollama"

    def build_request(self, conn: ProviderConnection, params: CompletionParams) -> ProviderRequest:
        prompt = params.prompt
        if params.system_prompt:
            prompt = f"{params.system_prompt}\n\n{params.prompt}"

        return ProviderRequest(
            url=f"{conn.base_url}/generate",
            headers={"Content-Type": "application/json"},
            body={
                "model":  conn.model,
                "prompt": prompt,
                "stream": False,
                "options": _without_none({
                    "temperature": params.temperature,
                    "top_p":       params.top_p,
                    "num_predict": params.max_tokens,
                }),
            },
        )

    def parse_response(self, data: Any) -> tuple[str, TokenUsage]:
        content = _dig(data, "response") or ""
        prompt_tokens     = _as_int(_dig(data, "prompt_eval_count"))
        completion_tokens = _as_int(_dig(data, "eval_count"))
        return content, TokenUsage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )


# ---------------------------------------------------------------------------
# Registry: must cover every ProviderType
# ---------------------------------------------------------------------------

def build_adapter_registry() -> dict[ProviderType, ProviderAdapter]:
    adapters: list[ProviderAdapter] = [
        GoogleAdapter(),
        MistralAdapter(),
        LMStudioAdapter(),
        OllamaAdapter(),
        OpenRouterAdapter(),
        OpenAIAdapter(),
        AnthropicAdapter(),
    ]
    registry = {a.provider_type: a for a in adapters}

    missing = set(ProviderType) - set(registry)
    if missing:
        raise RuntimeError(
            "No adapter registered for provider(s): "
            + ", ".join(sorted(p.value for p in missing))
        )
    return registry


ADAPTERS: dict[ProviderType, ProviderAdapter] = build_adapter_registry()
