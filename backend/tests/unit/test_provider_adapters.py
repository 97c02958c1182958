"""
Unit Tests: Per-provider wire protocols
═════════════════════════════════════════
Request building and response parsing for each adapter, without I/O.
"""

from __future__ import annotations

import pytest

from documind.llm.adapters import ADAPTERS, CompletionParams, ProviderConnection
from documind.llm.catalog import ProviderType


def _conn(provider_type: ProviderType, api_key: str = "key-123", **kwargs) -> ProviderConnection:
    return ProviderConnection(
        provider_type=provider_type,
        name="Test",
        base_url=kwargs.pop("base_url", ""),
        api_key=api_key,
        model=kwargs.pop("model", ""),
        **kwargs,
    )


def _params(system_prompt: str | None = "Be brief.", top_p: float | None = None) -> CompletionParams:
    return CompletionParams(
        prompt="Hello?",
        system_prompt=system_prompt,
        temperature=0.3,
        max_tokens=100,
        top_p=top_p,
    )


@pytest.mark.unit
class TestProviderConnection:

    def test_defaults_filled_from_catalog(self):
        conn = _conn(ProviderType.OLLAMA, api_key="")
        assert conn.base_url == "http://localhost:11434/api"
        assert conn.model == "llama3.1:8b"
        assert conn.requires_api_key is False

    def test_trailing_slash_stripped(self):
        conn = _conn(ProviderType.OPENAI, base_url="https://proxy.example.com/v1/")
        assert conn.base_url == "https://proxy.example.com/v1"

    def test_repr_never_contains_key(self):
        conn = _conn(ProviderType.OPENAI, api_key="sk-secret-value")
        assert "sk-secret-value" not in repr(conn)


@pytest.mark.unit
class TestChatCompletionsAdapters:

    @pytest.mark.parametrize("provider_type", [
        ProviderType.OPENAI, ProviderType.MISTRAL, ProviderType.OPEN_ROUTER, ProviderType.LM_STUDIO,
    ])
    def test_request_shape(self, provider_type):
        conn = _conn(provider_type)
        req = ADAPTERS[provider_type].build_request(conn, _params())

        assert req.url == f"{conn.base_url}/chat/completions"
        assert req.headers["Authorization"] == "Bearer key-123"
        assert req.body["messages"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Hello?"},
        ]
        assert req.body["temperature"] == 0.3
        assert req.body["max_tokens"] == 100
        assert "top_p" not in req.body

    def test_openrouter_sends_attribution_headers(self):
        req = ADAPTERS[ProviderType.OPEN_ROUTER].build_request(_conn(ProviderType.OPEN_ROUTER), _params())
        assert "HTTP-Referer" in req.headers
        assert "X-Title" in req.headers

    def test_lm_studio_without_key_sends_no_authorization(self):
        req = ADAPTERS[ProviderType.LM_STUDIO].build_request(_conn(ProviderType.LM_STUDIO, api_key=""), _params())
        assert "Authorization" not in req.headers

    def test_no_system_prompt_means_single_message(self):
        req = ADAPTERS[ProviderType.OPENAI].build_request(_conn(ProviderType.OPENAI), _params(system_prompt=None))
        assert req.body["messages"] == [{"role": "user", "content": "Hello?"}]

    def test_parse_response(self, chat_reply):
        content, usage = ADAPTERS[ProviderType.OPENAI].parse_response(chat_reply("Hi there", 5, 2))
        assert content == "Hi there"
        assert (usage.prompt_tokens, usage.completion_tokens, usage.total_tokens) == (5, 2, 7)

    def test_parse_response_missing_fields_is_empty(self):
        content, usage = ADAPTERS[ProviderType.MISTRAL].parse_response({"choices": []})
        assert content == ""
        assert usage.total_tokens == 0


@pytest.mark.unit
class TestGoogleAdapter:

    def test_key_in_query_string_and_system_as_leading_user_turn(self):
        conn = _conn(ProviderType.GOOGLE, model="gemini-1.5-flash")
        req = ADAPTERS[ProviderType.GOOGLE].build_request(conn, _params(top_p=0.9))

        assert req.url.endswith("/models/gemini-1.5-flash:generateContent")
        assert req.params == {"key": "key-123"}
        assert [c["parts"][0]["text"] for c in req.body["contents"]] == ["Be brief.", "Hello?"]
        assert req.body["generationConfig"] == {"temperature": 0.3, "maxOutputTokens": 100, "topP": 0.9}

    def test_parse_response(self):
        data = {
            "candidates": [{"content": {"parts": [{"text": "Gemini says hi"}]}}],
            "usageMetadata": {"promptTokenCount": 3, "candidatesTokenCount": 4, "totalTokenCount": 7},
        }
        content, usage = ADAPTERS[ProviderType.GOOGLE].parse_response(data)
        assert content == "Gemini says hi"
        assert usage.total_tokens == 7


@pytest.mark.unit
class TestAnthropicAdapter:

    def test_system_is_top_level(self):
        req = ADAPTERS[ProviderType.ANTHROPIC].build_request(_conn(ProviderType.ANTHROPIC), _params())
        assert req.url.endswith("/messages")
        assert req.headers["x-api-key"] == "key-123"
        assert req.headers["anthropic-version"] == "2023-06-01"
        assert req.body["system"] == "Be brief."
        assert req.body["messages"] == [{"role": "user", "content": "Hello?"}]

    def test_total_tokens_is_sum(self):
        data = {"content": [{"type": "text", "text": "ok"}], "usage": {"input_tokens": 10, "output_tokens": 5}}
        content, usage = ADAPTERS[ProviderType.ANTHROPIC].parse_response(data)
        assert content == "ok"
        assert usage.total_tokens == 15


@pytest.mark.unit
class TestOllamaAdapter:

    def test_system_prompt_prepended_and_stream_disabled(self):
        req = ADAPTERS[ProviderType.OLLAMA].build_request(_conn(ProviderType.OLLAMA, api_key=""), _params())
        assert req.url == "http://localhost:11434/api/generate"
        assert req.body["prompt"] == "Be brief.\n\nHello?"
        assert req.body["stream"] is False
        assert req.body["options"]["num_predict"] == 100

    def test_parse_response(self):
        data = {"response": "local reply", "prompt_eval_count": 6, "eval_count": 9}
        content, usage = ADAPTERS[ProviderType.OLLAMA].parse_response(data)
        assert content == "local reply"
        assert (usage.prompt_tokens, usage.completion_tokens, usage.total_tokens) == (6, 9, 15)
