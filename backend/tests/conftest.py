"""
Root conftest.py: Shared fixtures for ALL tests (unit + integration)

Fixture hierarchy (all function-scoped):
  db_engine → session_factory → db_session → owner
  blob_store / failing_blob_store / event_sink
  make_gateway (httpx.MockTransport-backed CompletionGateway)
  make_provider_config (encrypted, persisted ProviderConfig)

Environment strategy:
  - Every test gets a fresh in-memory SQLite database (aiosqlite + StaticPool).
  - Provider calls never leave the process: the gateway's httpx client runs
    on a MockTransport whose handler each test supplies.
  - Blob storage is an in-memory dict.

How to run:
  pytest                  # all tests
  pytest -m unit          # unit tests only
  pytest -m integration   # full FastAPI stack
"""

from __future__ import annotations

import json
import os
import tempfile
from typing import AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio
from cryptography.fernet import Fernet

# ─────────────────────────────────────────────────────────────────────────────
# Patch settings BEFORE any documind imports so modules read test config
# ─────────────────────────────────────────────────────────────────────────────

os.environ.setdefault("DATABASE_URL",              "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV",                   "test")
os.environ.setdefault("STORAGE_BACKEND",           "local")
os.environ.setdefault("UPLOAD_DIR",                tempfile.mkdtemp(prefix="documind-test-"))
os.environ.setdefault("CREDENTIAL_ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.setdefault("DB_AUTO_CREATE",            "false")

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from documind.core.errors import StorageError  # noqa: E402
from documind.db.repositories import ProviderConfigRepository, UserRepository  # noqa: E402
from documind.db.session import init_models  # noqa: E402
from documind.llm.gateway import CompletionGateway  # noqa: E402
from documind.models.entities import ProviderConfig  # noqa: E402
from documind.security.credentials import get_cipher  # noqa: E402


# ─────────────────────────────────────────────────────────────────────────────
# Database
# ─────────────────────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database; StaticPool keeps one shared connection."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def owner(db_session):
    return await UserRepository(db_session).get_or_create_default()


# ─────────────────────────────────────────────────────────────────────────────
# Blob storage and events
# ─────────────────────────────────────────────────────────────────────────────

class MemoryBlobStore:
    """BlobStore kept in a dict; URLs use a memory:// scheme."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> str:
        self.objects[key] = data
        return f"memory://{key}"

    async def get(self, key: str) -> bytes | None:
        return self.objects.get(key)


class FailingBlobStore:
    async def put(self, key: str, data: bytes, content_type: str | None = None) -> str:
        raise StorageError("bucket unavailable")

    async def get(self, key: str) -> bytes | None:
        return None


class RecordingEventSink:
    def __init__(self) -> None:
        self.events: list = []

    async def publish(self, event) -> None:
        self.events.append(event)

    def named(self, event_name: str) -> list:
        return [e for e in self.events if e.event_name == event_name]


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def failing_blob_store() -> FailingBlobStore:
    return FailingBlobStore()


@pytest.fixture
def event_sink() -> RecordingEventSink:
    return RecordingEventSink()


# ─────────────────────────────────────────────────────────────────────────────
# Gateway on a mock transport
# ─────────────────────────────────────────────────────────────────────────────

class RecordingHandler:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, status_code: int = 200, body=None, text: str | None = None, exc: Exception | None = None):
        self.status_code = status_code
        self.body = body
        self.text = text
        self.exc = exc
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        if self.text is not None:
            return httpx.Response(self.status_code, text=self.text)
        return httpx.Response(self.status_code, json=self.body if self.body is not None else {})

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest_asyncio.fixture
async def make_gateway():
    """
    Factory fixture: returns (gateway, handler).

    Usage:
        gateway, handler = make_gateway(body=openai_reply("hi"))
        gateway, handler = make_gateway(status_code=401, text="invalid api key")
    """
    gateways: list[CompletionGateway] = []

    def _build(**handler_kwargs) -> tuple[CompletionGateway, RecordingHandler]:
        handler = RecordingHandler(**handler_kwargs)
        gateway = CompletionGateway(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        gateways.append(gateway)
        return gateway, handler

    yield _build
    for gateway in gateways:
        await gateway.aclose()


def openai_reply(content: str, prompt_tokens: int = 12, completion_tokens: int = 8) -> dict:
    """Chat-completions response body as returned by OpenAI-compatible APIs."""
    return {
        "id": "chatcmpl-test",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        "usage": {
            "prompt_tokens":     prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens":      prompt_tokens + completion_tokens,
        },
    }


@pytest.fixture
def chat_reply() -> Callable[..., dict]:
    return openai_reply


# ─────────────────────────────────────────────────────────────────────────────
# Provider configs
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def make_provider_config(db_session, owner):
    """
    Factory fixture: persist an encrypted ProviderConfig for the owner.

    Usage:
        config = await make_provider_config()                       # active OpenAI
        config = await make_provider_config(provider="ollama", api_key="")
    """
    async def _build(
        provider:  str = "openai",
        api_key:   str = "sk-test-0123456789abcdefghij",
        model:     str = "gpt-4o-mini",
        is_active: bool = True,
        **fields,
    ) -> ProviderConfig:
        config = ProviderConfig(
            user_id=owner.id,
            provider=provider,
            display_name=fields.pop("display_name", "Test Provider"),
            api_key_encrypted=get_cipher().encrypt(api_key),
            model=model,
            is_active=is_active,
            **fields,
        )
        return await ProviderConfigRepository(db_session).save(config)

    return _build
