"""
LLM Gateway Package

Provides a provider-agnostic completion interface over seven model backends:
  - Google AI (Gemini)     - Mistral AI        - OpenAI
  - Anthropic              - OpenRouter
  - LM Studio (local)      - Ollama (local)

Public API::

    from documind.llm import CompletionGateway, ProviderConnection, ProviderType

    gateway = CompletionGateway()
    result = await gateway.generate_completion(conn, "Summarise ...", system_prompt="...")
    result.content, result.usage.total_tokens
"""

from documind.llm.adapters import ProviderConnection, TokenUsage
from documind.llm.catalog import ProviderSpec, ProviderType, get_spec, list_specs, normalize_provider_type
from documind.llm.gateway import CompletionGateway, CompletionResult, ConnectionTestResult

__all__ = [
    "CompletionGateway",
    "CompletionResult",
    "ConnectionTestResult",
    "ProviderConnection",
    "ProviderSpec",
    "ProviderType",
    "TokenUsage",
    "get_spec",
    "list_specs",
    "normalize_provider_type",
]
