"""
Unit Tests: Credential encryption, caching, masking, key-format checks
"""

from __future__ import annotations

import uuid

import pytest
from cryptography.fernet import Fernet

from documind.llm.catalog import ProviderType
from documind.models.entities import ProviderConfig
from documind.security.credentials import (
    MASK_CHAR,
    CredentialCache,
    CredentialCipher,
    get_cipher,
    is_valid_api_key,
    mask_api_key,
    to_connection,
)


@pytest.fixture
def cipher() -> CredentialCipher:
    return CredentialCipher(Fernet.generate_key())


@pytest.mark.unit
class TestCredentialCipher:

    def test_round_trip_and_token_hides_key(self, cipher):
        token = cipher.encrypt("sk-live-abc123")
        assert "sk-live-abc123" not in token
        assert cipher.decrypt(token) == "sk-live-abc123"

    def test_empty_values(self, cipher):
        assert cipher.encrypt("") == ""
        assert cipher.decrypt("") == ""

    def test_foreign_or_garbage_token_decrypts_to_empty(self, cipher):
        other = CredentialCipher(Fernet.generate_key())
        assert cipher.decrypt(other.encrypt("sk-other")) == ""
        assert cipher.decrypt("not-a-token") == ""

    def test_settings_cipher_is_shared(self):
        assert get_cipher() is get_cipher()


@pytest.mark.unit
class TestCredentialCache:

    def test_decrypts_once_per_token(self, cipher):
        calls: list[str] = []

        def _decrypt(token: str) -> str:
            calls.append(token)
            return cipher.decrypt(token)

        cache = CredentialCache(_decrypt)
        token = cipher.encrypt("sk-cached")
        assert cache.get(token) == "sk-cached"
        assert cache.get(token) == "sk-cached"
        assert calls == [token]
        assert len(cache) == 1

    def test_failed_decrypt_is_not_cached(self):
        cache = CredentialCache(lambda token: "")
        assert cache.get("bad") == ""
        assert len(cache) == 0

    def test_clear(self, cipher):
        cache = CredentialCache(cipher.decrypt)
        cache.get(cipher.encrypt("sk-x"))
        cache.clear()
        assert len(cache) == 0

    def test_least_recently_used_token_evicted(self, cipher):
        cache = CredentialCache(cipher.decrypt, maxsize=2)
        first, second, third = (cipher.encrypt(k) for k in ("sk-1", "sk-2", "sk-3"))

        cache.get(first)
        cache.get(second)
        cache.get(first)        # first is now the most recent
        cache.get(third)

        assert len(cache) == 2
        assert first in cache._plain
        assert second not in cache._plain
        assert third in cache._plain


@pytest.mark.unit
class TestToConnection:

    def test_builds_connection_from_stored_config(self, cipher):
        config = ProviderConfig(
            id=uuid.uuid4(),
            provider="Open_Router",
            display_name="Router",
            api_key_encrypted=cipher.encrypt("sk-or-secret"),
            model="openai/gpt-4o-mini",
            is_active=True,
            temperature=0.2,
            max_tokens=256,
        )
        empty = CredentialCache(cipher.decrypt)
        assert len(empty) == 0
        conn = to_connection(config, empty)

        assert conn.provider_type is ProviderType.OPEN_ROUTER
        assert conn.name == "Router (openai/gpt-4o-mini)"
        assert conn.api_key == "sk-or-secret"
        assert len(empty) == 1
        assert conn.base_url == "https://openrouter.ai/api/v1"
        assert conn.id == str(config.id)
        assert (conn.temperature, conn.max_tokens, conn.top_p) == (0.2, 256, None)


@pytest.mark.unit
class TestMaskApiKey:

    def test_shows_first_and_last_four(self):
        masked = mask_api_key("sk-abcdefghijklmnop1234")
        assert masked.startswith("sk-a")
        assert masked.endswith("1234")
        assert MASK_CHAR in masked
        assert "efgh" not in masked

    def test_short_key_fully_masked(self):
        assert mask_api_key("abc") == MASK_CHAR * 8

    def test_at_least_eight_bullets(self):
        assert mask_api_key("0123456789").count(MASK_CHAR) == 8


@pytest.mark.unit
class TestIsValidApiKey:

    @pytest.mark.parametrize("key, provider_type", [
        ("sk-" + "a" * 40,                      ProviderType.OPENAI),
        ("sk-ant-" + "b" * 40,                  ProviderType.ANTHROPIC),
        ("sk-or-" + "c" * 48,                   ProviderType.OPEN_ROUTER),
        ("A" * 32,                              ProviderType.MISTRAL),
        ("AIza" + "d" * 35,                     ProviderType.GOOGLE),
        ("lmstudio-key",                        ProviderType.LM_STUDIO),
    ])
    def test_accepts_expected_formats(self, key, provider_type):
        assert is_valid_api_key(key, provider_type)

    @pytest.mark.parametrize("key, provider_type", [
        ("short",                ProviderType.OPENAI),
        ("pk-" + "a" * 40,       ProviderType.OPENAI),
        ("sk-" + "a" * 40,       ProviderType.ANTHROPIC),
        ("A" * 31,               ProviderType.MISTRAL),
    ])
    def test_rejects_other_formats(self, key, provider_type):
        assert not is_valid_api_key(key, provider_type)
