"""
Provider Catalog: supported model backends, default endpoints, model choices

Seven provider variants are supported. Five are cloud APIs that need an API
key; two (Ollama, LM Studio) run on the caller's own machine and may be used
without one.

  ┌──────────────┬───────────────────────────────────────────────────┬───────┐
  │ variant      │ default base URL                                  │ local │
  ├──────────────┼───────────────────────────────────────────────────┼───────┤
  │ google       │ https://generativelanguage.googleapis.com/v1beta  │       │
  │ mistral      │ https://api.mistral.ai/v1                         │       │
  │ openai       │ https://api.openai.com/v1                         │       │
  │ anthropic    │ https://api.anthropic.com/v1                      │       │
  │ open-router  │ https://openrouter.ai/api/v1                      │       │
  │ lm-studio    │ http://localhost:1234/v1                          │   ✓   │
  │ ollama       │ http://localhost:11434/api                        │   ✓   │
  └──────────────┴───────────────────────────────────────────────────┴───────┘

The catalogue is pure data (no I/O). Adding a variant means adding a
ProviderType member, a ProviderSpec here and an adapter in adapters.py; the
adapter registry refuses to import if any variant is missing.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from documind.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ProviderType(str, Enum):
    """Closed set of provider variants."""
    GOOGLE      = "google"
    MISTRAL     = "mistral"
    LM_STUDIO   = "lm-studio"
    OLLAMA      = "ollama"
    OPEN_ROUTER = "open-router"
    OPENAI      = "openai"
    ANTHROPIC   = "anthropic"


# ---------------------------------------------------------------------------
# ProviderSpec: static metadata per variant
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProviderSpec:
    """
    Static metadata for one provider variant.

    default_base_url: endpoint used when a config leaves base_url empty
    models:           suggested model names (first = default)
    is_local:         True if the backend runs on the caller's machine and
                      may be called without an API key
    """
    provider_type:    ProviderType
    label:            str
    default_base_url: str
    models:           tuple[str, ...] = field(default_factory=tuple)
    is_local:         bool = False

    @property
    def requires_api_key(self) -> bool:
        return not self.is_local

    @property
    def default_model(self) -> str:
        return self.models[0] if self.models else ""


# ---------------------------------------------------------------------------
# Registered catalogue
# ---------------------------------------------------------------------------

_CATALOG: dict[ProviderType, ProviderSpec] = {
    ProviderType.GOOGLE: ProviderSpec(
        provider_type    = ProviderType.GOOGLE,
        label            = "Google AI (Gemini)",
        default_base_url = "https://generativelanguage.googleapis.com/v1beta",
        models           = ("gemini-1.5-flash", "gemini-1.5-pro", "gemini-2.0-flash"),
    ),
    ProviderType.MISTRAL: ProviderSpec(
        provider_type    = ProviderType.MISTRAL,
        label            = "Mistral AI",
        default_base_url = "https://api.mistral.ai/v1",
        models           = ("mistral-small-latest", "mistral-medium-latest", "mistral-large-latest"),
    ),
    ProviderType.OPENAI: ProviderSpec(
        provider_type    = ProviderType.OPENAI,
        label            = "OpenAI",
        default_base_url = "https://api.openai.com/v1",
        models           = ("gpt-4o-mini", "gpt-4o", "gpt-3.5-turbo"),
    ),
    ProviderType.ANTHROPIC: ProviderSpec(
        provider_type    = ProviderType.ANTHROPIC,
        label            = "Anthropic",
        default_base_url = "https://api.anthropic.com/v1",
        models           = ("claude-3-5-sonnet-latest", "claude-3-5-haiku-latest", "claude-3-opus-latest"),
    ),
    ProviderType.OPEN_ROUTER: ProviderSpec(
        provider_type    = ProviderType.OPEN_ROUTER,
        label            = "OpenRouter",
        default_base_url = "https://openrouter.ai/api/v1",
        models           = ("openai/gpt-4o-mini", "anthropic/claude-3.5-sonnet", "meta-llama/llama-3.1-70b-instruct"),
    ),
    ProviderType.LM_STUDIO: ProviderSpec(
        provider_type    = ProviderType.LM_STUDIO,
        label            = "LM Studio",
        default_base_url = "http://localhost:1234/v1",
        models           = ("local-model",),
        is_local         = True,
    ),
    ProviderType.OLLAMA: ProviderSpec(
        provider_type    = ProviderType.OLLAMA,
        label            = "Ollama",
        default_base_url = "http://localhost:11434/api",
        models           = ("llama3.1:8b", "mistral", "qwen2.5"),
        is_local         = True,
    ),
}


def get_spec(provider_type: ProviderType) -> ProviderSpec:
    return _CATALOG[provider_type]


def list_specs() -> list[ProviderSpec]:
    """All variants, in enum declaration order."""
    return [_CATALOG[p] for p in ProviderType]


# ---------------------------------------------------------------------------
# Name normalisation
# ---------------------------------------------------------------------------

# Free-form provider names seen in stored settings → variant
_ALIASES: dict[str, ProviderType] = {
    "google":      ProviderType.GOOGLE,
    "google-ai":   ProviderType.GOOGLE,
    "googleai":    ProviderType.GOOGLE,
    "google-llm":  ProviderType.GOOGLE,
    "gemini":      ProviderType.GOOGLE,
    "mistral":     ProviderType.MISTRAL,
    "mistral-ai":  ProviderType.MISTRAL,
    "lm-studio":   ProviderType.LM_STUDIO,
    "lmstudio":    ProviderType.LM_STUDIO,
    "ollama":      ProviderType.OLLAMA,
    "openrouter":  ProviderType.OPEN_ROUTER,
    "open-router": ProviderType.OPEN_ROUTER,
    "openai":      ProviderType.OPENAI,
    "chatgpt":     ProviderType.OPENAI,
    "gpt":         ProviderType.OPENAI,
    "anthropic":   ProviderType.ANTHROPIC,
    "claude":      ProviderType.ANTHROPIC,
}


def normalize_provider_type(raw: str | ProviderType) -> ProviderType:
    """
    Map a stored / user-supplied provider name onto a ProviderType.

    Accepts case and separator variations ("Open_Router", "openrouter.ai",
    "LM Studio"). Raises ConfigurationError for anything unknown.
    """
    if isinstance(raw, ProviderType):
        return raw

    name = re.sub(r"[\s_]+", "-", (raw or "").strip().lower())
    candidates = (name, name.replace(".ai", ""), name.replace(".", ""))
    for candidate in candidates:
        if candidate in _ALIASES:
            return _ALIASES[candidate]

    logger.warning("Catalog | unknown provider name=%r", raw)
    raise ConfigurationError(f"Unsupported provider: {raw!r}")
