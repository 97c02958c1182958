"""
Credential Store: encrypted provider API keys

Stored ProviderConfig rows hold the API key as a Fernet token. Everything
outside this module only ever sees either the token (persistence) or the
plain key inside a ProviderConnection (gateway).

Decrypted keys are memoised in a process-wide cache keyed by token. The cache
is read-mostly and needs no coordination: the same token always decrypts to
the same key, so a race only costs one extra decrypt.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import re
from collections import OrderedDict
from functools import lru_cache
from typing import TYPE_CHECKING, Callable

from cryptography.fernet import Fernet, InvalidToken

from documind.core.config import settings
from documind.core.errors import ConfigurationError
from documind.llm.adapters import ProviderConnection
from documind.llm.catalog import ProviderType, normalize_provider_type

if TYPE_CHECKING:
    from documind.models.entities import ProviderConfig

logger = logging.getLogger(__name__)

# Used only outside production when CREDENTIAL_ENCRYPTION_KEY is unset
_DEV_KEY_SEED = b"documind-development-credential-key"

MASK_CHAR = "•"


# ---------------------------------------------------------------------------
# Cipher
# ---------------------------------------------------------------------------

class CredentialCipher:
    """Fernet encrypt/decrypt for API keys. Decrypt never raises."""

    def __init__(self, key: str | bytes) -> None:
        self._fernet = Fernet(key)

    def encrypt(self, api_key: str) -> str:
        if not api_key:
            return ""
        return self._fernet.encrypt(api_key.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        if not token:
            return ""
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, ValueError, UnicodeError) as exc:
            logger.error("CredentialCipher | failed to decrypt stored API key: %s", type(exc).__name__)
            return ""


@lru_cache(maxsize=1)
def get_cipher() -> CredentialCipher:
    key = settings.credential_encryption_key
    if not key:
        if settings.is_production:
            raise ConfigurationError("CREDENTIAL_ENCRYPTION_KEY must be set in production")
        logger.warning("CredentialCipher | CREDENTIAL_ENCRYPTION_KEY unset, using development key")
        key = base64.urlsafe_b64encode(hashlib.sha256(_DEV_KEY_SEED).digest()).decode("ascii")
    return CredentialCipher(key)


# ---------------------------------------------------------------------------
# Process-wide decrypted-credential cache
# ---------------------------------------------------------------------------

class CredentialCache:
    """
    token → plain key, shared by all requests in the process.

    Holds at most maxsize tokens; the least recently used is evicted first.
    """

    def __init__(self, decrypt: Callable[[str], str], maxsize: int = 256) -> None:
        self._decrypt = decrypt
        self._maxsize = maxsize
        self._plain: OrderedDict[str, str] = OrderedDict()

    def get(self, token: str) -> str:
        if not token:
            return ""
        plain = self._plain.get(token)
        if plain is not None:
            self._plain.move_to_end(token)
            return plain
        plain = self._decrypt(token)
        if plain:
            self._plain[token] = plain
            if len(self._plain) > self._maxsize:
                self._plain.popitem(last=False)
        return plain

    def clear(self) -> None:
        self._plain.clear()

    def __len__(self) -> int:
        return len(self._plain)


_cache: CredentialCache | None = None


def get_credential_cache() -> CredentialCache:
    global _cache
    if _cache is None:
        _cache = CredentialCache(get_cipher().decrypt)
    return _cache


# ---------------------------------------------------------------------------
# ProviderConfig → ProviderConnection
# ---------------------------------------------------------------------------

def to_connection(config: "ProviderConfig", cache: CredentialCache | None = None) -> ProviderConnection:
    """Decrypt a stored ProviderConfig into a ProviderConnection for the gateway."""
    cache = cache if cache is not None else get_credential_cache()
    provider_type = normalize_provider_type(config.provider)
    display = config.display_name or provider_type.value
    return ProviderConnection(
        provider_type = provider_type,
        name          = f"{display} ({config.model})" if config.model else display,
        base_url      = config.base_url or "",
        api_key       = cache.get(config.api_key_encrypted or ""),
        model         = config.model or "",
        id            = str(config.id),
        is_active     = bool(config.is_active),
        temperature   = config.temperature,
        max_tokens    = config.max_tokens,
        top_p         = config.top_p,
    )


# ---------------------------------------------------------------------------
# Display / validation helpers
# ---------------------------------------------------------------------------

def mask_api_key(api_key: str) -> str:
    """Show the first and last four characters; short keys are fully masked."""
    if not api_key or len(api_key) < 8:
        return MASK_CHAR * 8
    visible = 4
    hidden = len(api_key) - visible * 2
    return api_key[:visible] + MASK_CHAR * max(hidden, 8) + api_key[-visible:]


def _google_key_ok(key: str) -> bool:
    if key.startswith("AIza"):
        return 35 <= len(key) <= 45 and re.fullmatch(r"AIza[0-9A-Za-z\-_]+", key) is not None
    return len(key) >= 20 and re.fullmatch(r"[A-Za-z0-9\-_]+", key) is not None


_KEY_PATTERNS: dict[ProviderType, Callable[[str], bool]] = {
    ProviderType.GOOGLE:      _google_key_ok,
    ProviderType.MISTRAL:     lambda k: re.fullmatch(r"[a-zA-Z0-9]{32}", k) is not None,
    ProviderType.OPEN_ROUTER: lambda k: re.fullmatch(r"sk-or-[a-zA-Z0-9\-]{48,}", k) is not None,
    ProviderType.OPENAI:      lambda k: re.fullmatch(r"sk-[a-zA-Z0-9\-_]{20,}", k) is not None,
    ProviderType.ANTHROPIC:   lambda k: re.fullmatch(r"sk-ant-[a-zA-Z0-9\-_]{20,}", k) is not None,
    ProviderType.LM_STUDIO:   lambda k: re.fullmatch(r"[a-zA-Z0-9\-_]{10,}", k) is not None,
    ProviderType.OLLAMA:      lambda k: re.fullmatch(r"[a-zA-Z0-9\-_]+", k) is not None,
}


def is_valid_api_key(api_key: str, provider_type: ProviderType) -> bool:
    """Format heuristic only; a True result says nothing about the key working."""
    if not api_key or len(api_key) < 10:
        return False
    return _KEY_PATTERNS[provider_type](api_key)
