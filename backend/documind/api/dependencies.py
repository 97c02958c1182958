"""
FastAPI dependencies shared by the v1 routers.

Application-scoped collaborators (gateway, blob store, event sink) live on
app.state and are attached by create_app() / the lifespan hook. Everything
request-scoped (session, repositories, owner) is built per request here.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from documind.db.repositories import (
    AnalysisRepository,
    DocumentRepository,
    ProviderConfigRepository,
    QueryRepository,
    UserRepository,
)
from documind.db.session import get_db
from documind.events.sink import EventSink
from documind.llm.gateway import CompletionGateway
from documind.models.entities import User
from documind.storage.blob import BlobStore

DbSession = Annotated[AsyncSession, Depends(get_db)]


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise RuntimeError(f"app.state.{name} is not configured")
    return value


def get_gateway(request: Request) -> CompletionGateway:
    return _state(request, "gateway")


def get_blob_store(request: Request) -> BlobStore:
    return _state(request, "blob_store")


def get_event_sink(request: Request) -> EventSink | None:
    return getattr(request.app.state, "event_sink", None)


async def get_owner(db: DbSession) -> User:
    """The principal every record belongs to (single default user)."""
    return await UserRepository(db).get_or_create_default()


def get_documents(db: DbSession) -> DocumentRepository:
    return DocumentRepository(db)


def get_analyses(db: DbSession) -> AnalysisRepository:
    return AnalysisRepository(db)


def get_queries(db: DbSession) -> QueryRepository:
    return QueryRepository(db)


def get_provider_configs(db: DbSession) -> ProviderConfigRepository:
    return ProviderConfigRepository(db)


Gateway    = Annotated[CompletionGateway, Depends(get_gateway)]
Blobs      = Annotated[BlobStore, Depends(get_blob_store)]
Sink       = Annotated[EventSink | None, Depends(get_event_sink)]
Owner      = Annotated[User, Depends(get_owner)]
Documents  = Annotated[DocumentRepository, Depends(get_documents)]
Analyses   = Annotated[AnalysisRepository, Depends(get_analyses)]
Queries    = Annotated[QueryRepository, Depends(get_queries)]
Configs    = Annotated[ProviderConfigRepository, Depends(get_provider_configs)]
