"""
PolicyQA SQLAlchemy Models

Policy documents, their retrievable chunks, and the query audit log.
All models use SQLAlchemy 2.0 patterns with async support.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Any

from pgvector.sqlalchemy import Vector
from pydantic import BaseModel, ConfigDict
from sqlalchemy import (
    ARRAY,
    Boolean,
    CheckConstraint,
    Computed,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, TSVECTOR, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from policyqa.config import get_settings

# ============================================
# Configuration
# ============================================

_settings = get_settings()

# text-embedding-3-small produces 1536-dim vectors
EMBEDDING_DIMENSION = _settings.embedding_dimension

# Text search configuration baked into the generated search_vector column
FTS_LANGUAGE = _settings.fts_language

DOCUMENT_STATUSES = ("draft", "review", "published", "archived")


# ============================================
# Base Model
# ============================================


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    type_annotation_map = {
        dict[str, Any]: JSONB,
        list[uuid.UUID]: ARRAY(UUID(as_uuid=True)),
    }


# ============================================
# Helper Mixins
# ============================================


class TimestampMixin:
    """Mixin adding created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


# ============================================
# Chunk Metadata
# ============================================


class ChunkMetadata(BaseModel):
    """Typed view of ``policy_chunks.metadata``.

    Unknown keys are kept so older or newer writers can share the column.
    """

    model_config = ConfigDict(extra="allow")

    title: str
    document_status: str
    chunk_number: int
    total_chunks: int
    section_title: str | None = None


# ============================================
# Policy Document Model
# ============================================


class PolicyDocument(Base, TimestampMixin):
    """Policy document metadata and storage info."""

    __tablename__ = "policy_documents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False)
    file_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    version: Mapped[str | None] = mapped_column(String(50), nullable=True)
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    review_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Relationships
    chunks: Mapped[list["PolicyChunk"]] = relationship(
        "PolicyChunk",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'review', 'published', 'archived')",
            name="policy_document_status",
        ),
        Index("idx_policy_documents_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<PolicyDocument(id={self.id}, title='{self.title}')>"


# ============================================
# Policy Chunk Model
# ============================================


class PolicyChunk(Base):
    """A retrievable slice of a policy document."""

    __tablename__ = "policy_chunks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("policy_documents.id", ondelete="CASCADE"),
        nullable=False,
    )
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
    chunk_text: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[list[float] | None] = mapped_column(
        Vector(EMBEDDING_DIMENSION),
        nullable=True,
    )
    chunk_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONB, nullable=True
    )
    search_vector: Mapped[str | None] = mapped_column(
        TSVECTOR,
        Computed(f"to_tsvector('{FTS_LANGUAGE}', chunk_text)", persisted=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Relationships
    document: Mapped["PolicyDocument"] = relationship(
        "PolicyDocument", back_populates="chunks"
    )

    # Vector (HNSW) index is created by the migration
    __table_args__ = (
        UniqueConstraint("document_id", "chunk_index", name="uq_policy_chunk_position"),
        Index("idx_policy_chunks_document_id", "document_id"),
        Index("idx_policy_chunks_search_vector", "search_vector", postgresql_using="gin"),
    )

    def __repr__(self) -> str:
        return (
            f"<PolicyChunk(document_id={self.document_id}, "
            f"chunk_index={self.chunk_index})>"
        )


# ============================================
# Query Log Model
# ============================================


class QueryLog(Base):
    """Audit log for answered policy questions."""

    __tablename__ = "queries_log"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    query_text: Mapped[str] = mapped_column(Text, nullable=False)
    response_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_chunk_ids: Mapped[list[uuid.UUID] | None] = mapped_column(
        ARRAY(UUID(as_uuid=True)),
        nullable=True,
    )
    processing_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    error_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_queries_user_id", "user_id"),
        Index("idx_queries_timestamp", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<QueryLog(id={self.id}, query='{self.query_text[:30]}...')>"
