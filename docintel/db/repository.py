"""
SQL Document Repository

Persistence for the pipeline orchestrator. All writes for one call happen
inside a single session_scope() transaction:

  claim_for_processing   UPDATE ... WHERE status='pending' RETURNING id
                         (the row-level guard against two workers racing)
  save_results           delete derived rows, insert chunks + vectors,
                         core record, category records, set final status
  reset_for_reprocess    UPDATE ... WHERE status is terminal RETURNING id, then
                         delete derived rows (reprocessing)
  fail_stale_processing  processing rows untouched for too long → failed
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from docintel.db.models import CategoryRecord, CoreRecord, Document, DocumentChunk
from docintel.db.session import session_scope
from docintel.extraction.models import CategoryResult, CoreRecordResult
from docintel.pipeline.interfaces import DocumentInfo, DocumentRepository, PipelineResults
from docintel.pipeline.state import TERMINAL_STATUSES, ProcessingStatus

logger = logging.getLogger(__name__)


def _uuid(document_id: str) -> uuid.UUID:
    return document_id if isinstance(document_id, uuid.UUID) else uuid.UUID(str(document_id))


def _to_info(doc: Document) -> DocumentInfo:
    return DocumentInfo(
        document_id=str(doc.id),
        file_name=doc.file_name,
        status=ProcessingStatus(doc.status),
        storage_key=doc.storage_key,
        error_message=doc.error_message,
    )


def _core_row(document_id: uuid.UUID, core: CoreRecordResult) -> CoreRecord:
    return CoreRecord(
        id=uuid.uuid4(),
        document_id=document_id,
        policy_number=core.policy_number,
        quote_number=core.quote_number,
        effective_date=core.effective_date,
        expiration_date=core.expiration_date,
        quote_expiration_date=core.quote_expiration_date,
        carrier_name=core.carrier_name,
        carrier_naic=core.carrier_naic,
        insured_name=core.insured_name,
        insured_address_line1=core.insured_address_line1,
        insured_address_line2=core.insured_address_line2,
        insured_city=core.insured_city,
        insured_state=core.insured_state,
        insured_zip=core.insured_zip,
        total_premium=core.total_premium,
        policy_status=core.policy_status,
        confidence=core.confidence,
        extraction_error=core.error,
        raw_output=core.raw_output,
    )


def _category_row(core_record_id: uuid.UUID, result: CategoryResult) -> CategoryRecord:
    return CategoryRecord(
        id=uuid.uuid4(),
        core_record_id=core_record_id,
        category=result.category,
        subtype=result.subtype,
        **dataclasses.asdict(result.common),
        details=dict(result.details),
        confidence=result.confidence,
        extraction_error=result.error,
    )


class SqlDocumentRepository(DocumentRepository):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory

    async def get_document(self, document_id: str) -> DocumentInfo | None:
        async with session_scope(self._session_factory) as db:
            doc = await db.get(Document, _uuid(document_id))
            return _to_info(doc) if doc else None

    async def claim_for_processing(self, document_id: str) -> bool:
        async with session_scope(self._session_factory) as db:
            result = await db.execute(
                update(Document)
                .where(
                    Document.id == _uuid(document_id),
                    Document.status == ProcessingStatus.PENDING.value,
                )
                .values(status=ProcessingStatus.PROCESSING.value, error_message=None)
                .returning(Document.id)
            )
            claimed = result.scalar_one_or_none() is not None

        logger.info("Repository | claim doc=%s claimed=%s", document_id, claimed)
        return claimed

    async def update_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        error_message: str | None = None,
    ) -> None:
        async with session_scope(self._session_factory) as db:
            await db.execute(
                update(Document)
                .where(Document.id == _uuid(document_id))
                .values(status=ProcessingStatus(status).value, error_message=error_message)
            )
        logger.info("Repository | status doc=%s status=%s", document_id, ProcessingStatus(status).value)

    async def reset_for_reprocess(self, document_id: str) -> bool:
        doc_id = _uuid(document_id)
        async with session_scope(self._session_factory) as db:
            result = await db.execute(
                update(Document)
                .where(
                    Document.id == doc_id,
                    Document.status.in_([s.value for s in TERMINAL_STATUSES]),
                )
                .values(status=ProcessingStatus.PENDING.value, error_message=None)
                .returning(Document.id)
            )
            if result.scalar_one_or_none() is None:
                logger.info("Repository | reset skipped doc=%s (not terminal)", document_id)
                return False
            counts = await self._delete_derived(db, doc_id)

        logger.info("Repository | reset for reprocess doc=%s cleared=%s", document_id, counts)
        return True

    async def save_results(self, document_id: str, results: PipelineResults) -> None:
        doc_id = _uuid(document_id)
        validation = results.validation

        async with session_scope(self._session_factory) as db:
            await self._delete_derived(db, doc_id)

            db.add_all([
                DocumentChunk(
                    id=uuid.uuid4(),
                    document_id=doc_id,
                    chunk_index=chunk.index,
                    chunk_text=chunk.text,
                    page_start=chunk.page_start,
                    page_end=chunk.page_end,
                    section_type=chunk.section_type,
                    token_count=chunk.estimated_tokens,
                    overlap_chars=chunk.overlap_chars,
                    embedding=vector,
                )
                for chunk, vector in zip(results.chunks, results.vectors)
            ])

            core_row = _core_row(doc_id, results.core_record)
            db.add(core_row)
            db.add_all([_category_row(core_row.id, c) for c in results.categories])

            await db.execute(
                update(Document)
                .where(Document.id == doc_id)
                .values(
                    status=ProcessingStatus(results.status).value,
                    error_message=None,
                    document_type=results.classification.document_type.value,
                    page_count=results.metadata.get("page_count"),
                    chunk_count=len(results.chunks),
                    classification_confidence=results.classification.confidence,
                    extraction_confidence=validation.adjusted_confidence,
                    extraction_metadata={
                        **results.metadata,
                        "sections": [dataclasses.asdict(s) for s in results.classification.sections],
                        "errors":   [dataclasses.asdict(i) for i in validation.errors],
                        "warnings": [dataclasses.asdict(i) for i in validation.warnings],
                        "review_reasons": list(validation.review_reasons),
                    },
                )
            )

        logger.info(
            "Repository | saved results doc=%s status=%s chunks=%d categories=%d",
            document_id, ProcessingStatus(results.status).value,
            len(results.chunks), len(results.categories),
        )

    async def list_stale_pending(self, older_than: timedelta, limit: int = 50) -> Sequence[str]:
        cutoff = datetime.now(timezone.utc) - older_than
        async with session_scope(self._session_factory) as db:
            result = await db.execute(
                select(Document.id)
                .where(
                    Document.status == ProcessingStatus.PENDING.value,
                    Document.updated_at < cutoff,
                )
                .order_by(Document.updated_at)
                .limit(limit)
            )
            return [str(row) for row in result.scalars().all()]

    async def fail_stale_processing(
        self,
        older_than: timedelta,
        error_message: str,
        limit: int = 50,
    ) -> Sequence[str]:
        cutoff = datetime.now(timezone.utc) - older_than
        candidate = aliased(Document)
        stale = (
            select(candidate.id)
            .where(
                candidate.status == ProcessingStatus.PROCESSING.value,
                candidate.updated_at < cutoff,
            )
            .order_by(candidate.updated_at)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        async with session_scope(self._session_factory) as db:
            result = await db.execute(
                update(Document)
                .where(
                    Document.id.in_(stale),
                    Document.status == ProcessingStatus.PROCESSING.value,
                )
                .values(status=ProcessingStatus.FAILED.value, error_message=error_message)
                .returning(Document.id)
            )
            failed = [str(row) for row in result.scalars().all()]

        if failed:
            logger.warning("Repository | failed %d stale processing documents: %s", len(failed), failed)
        return failed

    @staticmethod
    async def _delete_derived(db: AsyncSession, document_id: uuid.UUID) -> dict[str, int]:
        core_ids = select(CoreRecord.id).where(CoreRecord.document_id == document_id)
        categories = await db.execute(delete(CategoryRecord).where(CategoryRecord.core_record_id.in_(core_ids)))
        cores      = await db.execute(delete(CoreRecord).where(CoreRecord.document_id == document_id))
        chunks     = await db.execute(delete(DocumentChunk).where(DocumentChunk.document_id == document_id))
        return {
            "chunks":     int(chunks.rowcount),
            "core":       int(cores.rowcount),
            "categories": int(categories.rowcount),
        }
