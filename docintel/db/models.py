"""
SQLAlchemy ORM Models — Documents, Chunks, Core Records, Category Records

2.x style mapped classes for async use. Derived rows (chunks, core record,
category records) all hang off documents.id with ON DELETE CASCADE and
are replaced as a unit by SqlDocumentRepository.save_results().

Chunk embeddings are stored in a pgvector column and searched with the
cosine distance operator (see docintel.retrieval.pgvector_index).
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

EMBEDDING_DIMENSIONS = 1536


# ---------------------------------------------------------------------------
# Declarative base: shared across all models
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Document model: documents
# ---------------------------------------------------------------------------

class Document(Base):
    """
    One uploaded file and its processing state.

    State machine (status column):
        pending       — stored, processing not yet started
        processing    — a worker owns the document
        completed     — all stages succeeded and validation passed
        needs_review  — extracted, but confidence / validation flagged it
        failed        — unrecoverable error (see error_message)
    """

    __tablename__ = "documents"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'needs_review', 'failed')",
            name="documents_status_check",
        ),
        Index("idx_documents_status", "status", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=func.gen_random_uuid(),
    )
    file_name:   Mapped[str]           = mapped_column(Text, nullable=False)
    storage_key: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="pending",
        server_default="pending",
    )
    error_message: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Short user-facing reason, populated only when status='failed'",
    )

    document_type:            Mapped[Optional[str]]   = mapped_column(String(32), nullable=True)
    page_count:               Mapped[Optional[int]]   = mapped_column(Integer, nullable=True)
    chunk_count:              Mapped[int]             = mapped_column(Integer, nullable=False, default=0, server_default="0")
    classification_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    extraction_confidence:    Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    extraction_metadata: Mapped[dict] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        default=dict,
        server_default="{}",
        comment="Sections, validation issues and review reasons of the last run",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now(),
    )

    chunks: Mapped[list["DocumentChunk"]] = relationship(
        back_populates="document", cascade="all, delete-orphan", passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Document id={self.id} status={self.status} file={self.file_name!r}>"


# ---------------------------------------------------------------------------
# Chunk model: document_chunks
# ---------------------------------------------------------------------------

class DocumentChunk(Base):
    __tablename__ = "document_chunks"
    __table_args__ = (
        UniqueConstraint("document_id", "chunk_index", name="uq_document_chunks_position"),
        Index("idx_document_chunks_document_id", "document_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False,
    )
    chunk_index:     Mapped[int]           = mapped_column(Integer, nullable=False)
    chunk_text:      Mapped[str]           = mapped_column(Text, nullable=False)
    page_start:      Mapped[int]           = mapped_column(Integer, nullable=False)
    page_end:        Mapped[int]           = mapped_column(Integer, nullable=False)
    section_type:    Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    token_count:     Mapped[int]           = mapped_column(Integer, nullable=False)
    overlap_chars:   Mapped[int]           = mapped_column(Integer, nullable=False, default=0)
    embedding:       Mapped[Any]           = mapped_column(Vector(EMBEDDING_DIMENSIONS), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(),
    )

    document: Mapped[Document] = relationship(back_populates="chunks")

    def __repr__(self) -> str:
        return f"<DocumentChunk #{self.chunk_index} doc={self.document_id} pages={self.page_start}-{self.page_end}>"


# ---------------------------------------------------------------------------
# Core record: core_records (one per document)
# ---------------------------------------------------------------------------

class CoreRecord(Base):
    __tablename__ = "core_records"
    __table_args__ = (
        UniqueConstraint("document_id", name="uq_core_records_document"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False,
    )

    policy_number:         Mapped[Optional[str]]   = mapped_column(String(100), nullable=True)
    quote_number:          Mapped[Optional[str]]   = mapped_column(String(100), nullable=True)
    effective_date:        Mapped[Optional[date]]  = mapped_column(Date, nullable=True)
    expiration_date:       Mapped[Optional[date]]  = mapped_column(Date, nullable=True)
    quote_expiration_date: Mapped[Optional[date]]  = mapped_column(Date, nullable=True)
    carrier_name:          Mapped[Optional[str]]   = mapped_column(Text, nullable=True)
    carrier_naic:          Mapped[Optional[str]]   = mapped_column(String(10), nullable=True)
    insured_name:          Mapped[Optional[str]]   = mapped_column(Text, nullable=True)
    insured_address_line1: Mapped[Optional[str]]   = mapped_column(Text, nullable=True)
    insured_address_line2: Mapped[Optional[str]]   = mapped_column(Text, nullable=True)
    insured_city:          Mapped[Optional[str]]   = mapped_column(String(100), nullable=True)
    insured_state:         Mapped[Optional[str]]   = mapped_column(String(2), nullable=True)
    insured_zip:           Mapped[Optional[str]]   = mapped_column(String(10), nullable=True)
    total_premium:         Mapped[Optional[float]] = mapped_column(Numeric(14, 2), nullable=True)
    policy_status:         Mapped[str]             = mapped_column(String(16), nullable=False, default="quote")
    confidence:            Mapped[float]           = mapped_column(Float, nullable=False, default=0.0)
    extraction_error:      Mapped[Optional[str]]   = mapped_column(Text, nullable=True)
    raw_output:            Mapped[Optional[str]]   = mapped_column(Text, nullable=True)

    categories: Mapped[list["CategoryRecord"]] = relationship(
        back_populates="core_record", cascade="all, delete-orphan", passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<CoreRecord id={self.id} policy={self.policy_number!r} doc={self.document_id}>"


# ---------------------------------------------------------------------------
# Category record: category_records (one per extracted coverage)
# ---------------------------------------------------------------------------

class CategoryRecord(Base):
    __tablename__ = "category_records"
    __table_args__ = (
        Index("idx_category_records_core", "core_record_id"),
        Index("idx_category_records_category", "category"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    core_record_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("core_records.id", ondelete="CASCADE"), nullable=False,
    )
    category: Mapped[str]           = mapped_column(String(64), nullable=False)
    subtype:  Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Common fields promoted to queryable columns
    each_occurrence_limit: Mapped[Optional[float]] = mapped_column(Numeric(16, 2), nullable=True)
    aggregate_limit:       Mapped[Optional[float]] = mapped_column(Numeric(16, 2), nullable=True)
    deductible:            Mapped[Optional[float]] = mapped_column(Numeric(16, 2), nullable=True)
    premium:               Mapped[Optional[float]] = mapped_column(Numeric(14, 2), nullable=True)
    is_occurrence_form:    Mapped[Optional[bool]]  = mapped_column(Boolean, nullable=True)
    is_claims_made:        Mapped[Optional[bool]]  = mapped_column(Boolean, nullable=True)
    retroactive_date:      Mapped[Optional[date]]  = mapped_column(Date, nullable=True)

    details:          Mapped[dict]          = mapped_column(JSONB, nullable=False, default=dict, server_default="{}")
    confidence:       Mapped[float]         = mapped_column(Float, nullable=False, default=0.5)
    extraction_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    core_record: Mapped[CoreRecord] = relationship(back_populates="categories")

    def __repr__(self) -> str:
        return f"<CategoryRecord id={self.id} category={self.category} core={self.core_record_id}>"
