"""
Repositories: thin async data access over the ORM models.

Each repository is one instance per request, bound to that request's
AsyncSession. Writes commit immediately; the document pipeline relies on
every step being durable on its own.

Any SQLAlchemyError is re-raised as PersistenceError so callers only ever
deal with the core error taxonomy.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from documind.core.config import settings
from documind.core.errors import PersistenceError
from documind.models.entities import (
    AnalysisResult,
    Document,
    DocumentStatus,
    ProviderConfig,
    QueryRecord,
    User,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _guard(session: AsyncSession, operation: str) -> AsyncIterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Repository | %s failed: %s", operation, exc)
        await session.rollback()
        raise PersistenceError(f"{operation} failed: {exc}") from exc


def _as_uuid(value: uuid.UUID | str) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, AttributeError):
        return None


class _Repository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _save(self, obj, operation: str):
        async with _guard(self._session, operation):
            self._session.add(obj)
            await self._session.commit()
        return obj


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserRepository(_Repository):

    async def get_or_create_default(self) -> User:
        """Return the single default principal, creating it on first use."""
        async with _guard(self._session, "load default user"):
            result = await self._session.execute(
                select(User).where(User.email == settings.default_user_email)
            )
            user = result.scalars().first()
        if user is not None:
            return user

        user = User(email=settings.default_user_email, name=settings.default_user_name)
        await self._save(user, "create default user")
        logger.info("Repository | default user created id=%s", user.id)
        return user


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

class DocumentRepository(_Repository):

    async def create(self, document: Document) -> Document:
        return await self._save(document, "insert document")

    async def save(self, document: Document) -> Document:
        return await self._save(document, "update document")

    async def refresh(self, document: Document) -> Document:
        """Reload a document whose state was expired by a rollback."""
        async with _guard(self._session, "reload document"):
            await self._session.refresh(document)
        return document

    async def get(self, document_id: uuid.UUID | str) -> Document | None:
        doc_id = _as_uuid(document_id)
        if doc_id is None:
            return None
        async with _guard(self._session, "load document"):
            return await self._session.get(Document, doc_id)

    async def list(
        self,
        *,
        status:      str | None = None,
        mime_type:   str | None = None,
        category:    str | None = None,
        search:      str | None = None,
        ids:         Iterable[str] | None = None,
        limit:       int | None = None,
        offset:      int = 0,
    ) -> Sequence[Document]:
        """
        Filtered scan, newest first.

        mime_type and category are case-insensitive substring filters;
        search matches name or content.
        """
        stmt = select(Document).order_by(Document.created_at.desc(), Document.uploaded_at.desc())
        if status:
            stmt = stmt.where(Document.status == status)
        if mime_type:
            stmt = stmt.where(func.lower(Document.mime_type).contains(mime_type.lower()))
        if category:
            stmt = stmt.where(func.lower(Document.category).contains(category.lower()))
        if search:
            needle = search.lower()
            stmt = stmt.where(
                func.lower(Document.name).contains(needle)
                | func.lower(Document.content).contains(needle)
            )
        if ids is not None:
            uuids = [u for u in (_as_uuid(i) for i in ids) if u is not None]
            stmt = stmt.where(Document.id.in_(uuids))
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)

        async with _guard(self._session, "list documents"):
            result = await self._session.execute(stmt)
            return result.scalars().all()

    async def recent_completed(
        self,
        limit: int,
        ids: Iterable[str] | None = None,
        mime_type: str | None = None,
        category: str | None = None,
    ) -> Sequence[Document]:
        return await self.list(
            status=DocumentStatus.COMPLETED.value,
            ids=ids,
            mime_type=mime_type,
            category=category,
            limit=limit,
        )


# ---------------------------------------------------------------------------
# Analyses
# ---------------------------------------------------------------------------

class AnalysisRepository(_Repository):

    async def create(self, analysis: AnalysisResult) -> AnalysisResult:
        return await self._save(analysis, "insert analysis")

    async def list(
        self,
        *,
        kind:        str | None = None,
        document_id: str | None = None,
        limit:       int = 50,
    ) -> Sequence[AnalysisResult]:
        stmt = select(AnalysisResult).order_by(AnalysisResult.created_at.desc()).limit(limit)
        if kind:
            stmt = stmt.where(AnalysisResult.kind == kind.upper())
        if document_id:
            doc_id = _as_uuid(document_id)
            if doc_id is None:
                return []
            stmt = stmt.where(AnalysisResult.document_id == doc_id)
        async with _guard(self._session, "list analyses"):
            result = await self._session.execute(stmt)
            return result.scalars().all()

    async def all(self) -> Sequence[AnalysisResult]:
        async with _guard(self._session, "load analyses"):
            result = await self._session.execute(select(AnalysisResult))
            return result.scalars().all()


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

class QueryRepository(_Repository):

    async def create(self, record: QueryRecord) -> QueryRecord:
        return await self._save(record, "insert query")

    async def save(self, record: QueryRecord) -> QueryRecord:
        return await self._save(record, "update query")

    async def history(self, user_id: uuid.UUID, limit: int = 20, offset: int = 0) -> tuple[Sequence[QueryRecord], int]:
        stmt = (
            select(QueryRecord)
            .where(QueryRecord.user_id == user_id)
            .order_by(QueryRecord.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        async with _guard(self._session, "list queries"):
            rows = (await self._session.execute(stmt)).scalars().all()
            total = (
                await self._session.execute(
                    select(func.count(QueryRecord.id)).where(QueryRecord.user_id == user_id)
                )
            ).scalar_one()
        return rows, int(total)


# ---------------------------------------------------------------------------
# Provider configs
# ---------------------------------------------------------------------------

class ProviderConfigRepository(_Repository):

    async def get(self, config_id: uuid.UUID | str) -> ProviderConfig | None:
        cfg_id = _as_uuid(config_id)
        if cfg_id is None:
            return None
        async with _guard(self._session, "load provider config"):
            return await self._session.get(ProviderConfig, cfg_id)

    async def get_active(self, user_id: uuid.UUID) -> ProviderConfig | None:
        stmt = (
            select(ProviderConfig)
            .where(ProviderConfig.user_id == user_id, ProviderConfig.is_active.is_(True))
            .order_by(ProviderConfig.updated_at.desc())
        )
        async with _guard(self._session, "load active provider config"):
            return (await self._session.execute(stmt)).scalars().first()

    async def list_for_user(self, user_id: uuid.UUID) -> Sequence[ProviderConfig]:
        stmt = (
            select(ProviderConfig)
            .where(ProviderConfig.user_id == user_id)
            .order_by(ProviderConfig.created_at.asc())
        )
        async with _guard(self._session, "list provider configs"):
            return (await self._session.execute(stmt)).scalars().all()

    async def save(self, config: ProviderConfig) -> ProviderConfig:
        """
        Insert or update. Saving an active config deactivates the owner's
        other configs in the same commit.
        """
        async with _guard(self._session, "save provider config"):
            self._session.add(config)
            await self._session.flush()
            if config.is_active:
                await self._session.execute(
                    update(ProviderConfig)
                    .where(
                        ProviderConfig.user_id == config.user_id,
                        ProviderConfig.id != config.id,
                    )
                    .values(is_active=False)
                )
            await self._session.commit()
        return config
