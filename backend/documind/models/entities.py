"""
SQLAlchemy ORM Models: Users, Documents, Analyses, Queries, Provider Configs

2.x-style mapped classes with portable column types (Uuid, JSON, timezone-aware
DateTime) so the same models run on PostgreSQL (asyncpg) in production and on
SQLite (aiosqlite) in tests.

Status columns store the enum *value* as plain text; the allowed transitions
live in services/lifecycle.py, not in the schema.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class DocumentStatus(str, Enum):
    UPLOADING  = "UPLOADING"
    PROCESSING = "PROCESSING"
    COMPLETED  = "COMPLETED"
    ERROR      = "ERROR"


class AnalysisKind(str, Enum):
    INSIGHT     = "INSIGHT"
    RISK        = "RISK"
    OPPORTUNITY = "OPPORTUNITY"
    COMPLIANCE  = "COMPLIANCE"


class Severity(str, Enum):
    LOW    = "LOW"
    MEDIUM = "MEDIUM"
    HIGH   = "HIGH"


class QueryStatus(str, Enum):
    PROCESSING = "PROCESSING"
    COMPLETED  = "COMPLETED"
    ERROR      = "ERROR"


# ---------------------------------------------------------------------------
# Declarative base
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Python-side defaults so values are populated on flush without a reload
class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )


# ---------------------------------------------------------------------------
# User: single default principal until auth is wired in externally
# ---------------------------------------------------------------------------

class User(TimestampMixin, Base):
    __tablename__ = "users"

    id:    Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str]       = mapped_column(String(320), nullable=False, unique=True)
    name:  Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------

class Document(TimestampMixin, Base):
    """
    One uploaded file.

    Lifecycle (status column):
        UPLOADING: record created, blob write in flight
        PROCESSING: blob stored, extraction + analysis running
        COMPLETED: content and analyses available (terminal)
        ERROR: blob write failed (terminal)

    doc_metadata keys: originalName, mimeType, storageRef, downloadURL,
    extractionMethod, pageCount.
    """

    __tablename__ = "documents"
    __table_args__ = (
        Index("idx_documents_status_created", "status", "created_at"),
        Index("idx_documents_user_id",        "user_id"),
    )

    id:        Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name:      Mapped[str]       = mapped_column(Text, nullable=False)
    mime_type: Mapped[str]       = mapped_column(String(255), nullable=False)
    size:      Mapped[int]       = mapped_column(BigInteger, nullable=False, default=0)
    size_label: Mapped[str]      = mapped_column(String(32), nullable=False, default="0 Bytes")

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=DocumentStatus.UPLOADING.value,
    )
    content:  Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    tags:     Mapped[list]          = mapped_column(JSON, nullable=False, default=list)

    doc_metadata: Mapped[dict] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
    )

    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Document id={self.id} status={self.status} name={self.name!r}>"


# ---------------------------------------------------------------------------
# AnalysisResult
# ---------------------------------------------------------------------------

class AnalysisResult(TimestampMixin, Base):
    __tablename__ = "analysis_results"
    __table_args__ = (
        Index("idx_analysis_document_id", "document_id"),
        Index("idx_analysis_kind",        "kind"),
    )

    id:          Mapped[uuid.UUID]     = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    kind:        Mapped[str]           = mapped_column(String(16), nullable=False)
    title:       Mapped[str]           = mapped_column(Text, nullable=False)
    description: Mapped[str]           = mapped_column(Text, nullable=False)
    confidence:  Mapped[float]         = mapped_column(Float, nullable=False)
    severity:    Mapped[Optional[str]] = mapped_column(String(8), nullable=True)

    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AnalysisResult id={self.id} kind={self.kind} title={self.title!r}>"


# ---------------------------------------------------------------------------
# QueryRecord
# ---------------------------------------------------------------------------

class QueryRecord(TimestampMixin, Base):
    """One natural-language question and its outcome (written exactly once)."""

    __tablename__ = "queries"
    __table_args__ = (
        Index("idx_queries_user_created", "user_id", "created_at"),
    )

    id:           Mapped[uuid.UUID]      = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    query:        Mapped[str]            = mapped_column(Text, nullable=False)
    document_ids: Mapped[list]           = mapped_column(JSON, nullable=False, default=list)
    status:       Mapped[str]            = mapped_column(String(16), nullable=False, default=QueryStatus.PROCESSING.value)
    provider_id:  Mapped[Optional[str]]  = mapped_column(String(64), nullable=True)
    response:     Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    tokens_used:     Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processing_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0, comment="milliseconds")
    result_count:    Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<QueryRecord id={self.id} status={self.status}>"


# ---------------------------------------------------------------------------
# ProviderConfig
# ---------------------------------------------------------------------------

class ProviderConfig(TimestampMixin, Base):
    """
    A saved LLM backend. api_key_encrypted holds a Fernet token
    (security/credentials.py); the plain key never touches the database.
    """

    __tablename__ = "provider_configs"
    __table_args__ = (
        Index("idx_provider_configs_user_active", "user_id", "is_active"),
    )

    id:                Mapped[uuid.UUID]     = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    provider:          Mapped[str]           = mapped_column(String(32), nullable=False)
    display_name:      Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    base_url:          Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    api_key_encrypted: Mapped[str]           = mapped_column(Text, nullable=False, default="")
    model:             Mapped[str]           = mapped_column(Text, nullable=False, default="")
    is_active:         Mapped[bool]          = mapped_column(Boolean, nullable=False, default=False)

    temperature: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_tokens:  Mapped[Optional[int]]   = mapped_column(Integer, nullable=True)
    top_p:       Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<ProviderConfig id={self.id} provider={self.provider} "
            f"model={self.model!r} active={self.is_active}>"
        )
