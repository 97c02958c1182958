"""
Unit Tests: Provider failure classification and user-facing summaries
"""

from __future__ import annotations

import pytest

from documind.core.errors import (
    ConfigurationError,
    InvalidTransitionError,
    ProviderError,
    ProviderErrorKind,
    classify_provider_failure,
    describe_failure,
)


@pytest.mark.unit
class TestClassifyProviderFailure:

    @pytest.mark.parametrize("status_code, body, kind", [
        (None, "",                                    ProviderErrorKind.NETWORK),
        (401,  "",                                    ProviderErrorKind.INVALID_KEY),
        (403,  "",                                    ProviderErrorKind.INVALID_KEY),
        (429,  "",                                    ProviderErrorKind.QUOTA_EXCEEDED),
        (404,  "",                                    ProviderErrorKind.MODEL_UNAVAILABLE),
        (400,  "API key not valid. Please pass a valid API key.", ProviderErrorKind.INVALID_KEY),
        (400,  "You exceeded your current quota",     ProviderErrorKind.QUOTA_EXCEEDED),
        (400,  "model 'llama9' not found",            ProviderErrorKind.MODEL_UNAVAILABLE),
        (500,  "internal error",                      ProviderErrorKind.GENERIC),
    ])
    def test_kinds(self, status_code, body, kind):
        assert classify_provider_failure(status_code, body) is kind


@pytest.mark.unit
class TestDescribeFailure:

    def test_configuration_error_is_400_with_its_message(self):
        summary = describe_failure(ConfigurationError("API key not configured for provider"))
        assert summary.http_status == 400
        assert summary.message == "API key not configured for provider"
        assert summary.is_client_error

    def test_invalid_key_is_400(self):
        exc = ProviderError("OpenAI", "bad key", ProviderErrorKind.INVALID_KEY, 401)
        summary = describe_failure(exc)
        assert (summary.message, summary.http_status) == ("Invalid API key", 400)

    @pytest.mark.parametrize("kind, message", [
        (ProviderErrorKind.QUOTA_EXCEEDED,    "API quota exceeded"),
        (ProviderErrorKind.NETWORK,           "Network connection failed"),
        (ProviderErrorKind.MODEL_UNAVAILABLE, "Model not available"),
    ])
    def test_server_side_kinds_are_500(self, kind, message):
        summary = describe_failure(ProviderError("Mistral AI", "x", kind))
        assert summary.message == message
        assert summary.http_status == 500
        assert not summary.is_client_error

    def test_generic_provider_error_uses_caller_message_and_raw_body(self):
        summary = describe_failure(ProviderError("Ollama", "boom"), "Failed to process query with AI")
        assert summary.message == "Failed to process query with AI"
        assert summary.details == "boom"
        assert summary.http_status == 500


@pytest.mark.unit
def test_invalid_transition_message():
    exc = InvalidTransitionError("COMPLETED", "PROCESSING")
    assert "COMPLETED" in str(exc)
    assert "PROCESSING" in str(exc)
