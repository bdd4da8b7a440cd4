"""
Collaborator interfaces consumed by the pipeline orchestrator.

Concrete implementations:
  DocumentStorage     → docintel.storage.s3.S3DocumentStorage
  PageTextExtractor   → docintel.processing.text_extraction.PyMuPDFPageTextExtractor
  DocumentRepository  → docintel.db.repository.SqlDocumentRepository
  EventPublisher      → docintel.pipeline.events (logging / broker)

Tests substitute in-memory fakes for all four.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Sequence

from docintel.extraction.models import (
    CategoryResult,
    ClassificationResult,
    CoreRecordResult,
    ValidationOutcome,
)
from docintel.pipeline.events import EventPublisher
from docintel.pipeline.state import ProcessingStatus
from docintel.processing.chunking import Chunk
from docintel.processing.text_extraction import PageTextExtractor

__all__ = [
    "DocumentInfo",
    "DocumentRepository",
    "DocumentStorage",
    "EventPublisher",
    "PageTextExtractor",
    "PipelineResults",
]


@dataclass(frozen=True)
class DocumentInfo:
    document_id:   str
    file_name:     str
    status:        ProcessingStatus
    storage_key:   str | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class PipelineResults:
    """Everything one successful run produces; saved in a single transaction."""
    status:         ProcessingStatus
    chunks:         tuple[Chunk, ...]
    vectors:        tuple[list[float], ...]
    classification: ClassificationResult
    core_record:    CoreRecordResult
    categories:     tuple[CategoryResult, ...]
    validation:     ValidationOutcome
    metadata:       dict = field(default_factory=dict)


class DocumentStorage(ABC):

    @abstractmethod
    async def read_document_bytes(self, document: DocumentInfo) -> bytes:
        """Raises StorageReadError when the object is missing or storage is unreachable."""


class DocumentRepository(ABC):

    @abstractmethod
    async def get_document(self, document_id: str) -> DocumentInfo | None:
        ...

    @abstractmethod
    async def claim_for_processing(self, document_id: str) -> bool:
        """Atomically move pending → processing. False when the document was not pending."""

    @abstractmethod
    async def update_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        error_message: str | None = None,
    ) -> None:
        ...

    @abstractmethod
    async def reset_for_reprocess(self, document_id: str) -> bool:
        """
        Delete chunks, core record and category records and move a terminal
        document back to pending, in one transaction. False when the
        document was not in a terminal status (nothing is changed).
        """

    @abstractmethod
    async def save_results(self, document_id: str, results: PipelineResults) -> None:
        """Replace all derived rows and set the final status, in one transaction."""

    @abstractmethod
    async def list_stale_pending(self, older_than: timedelta, limit: int = 50) -> Sequence[str]:
        """Ids of documents left in pending for longer than `older_than`."""

    @abstractmethod
    async def fail_stale_processing(
        self,
        older_than: timedelta,
        error_message: str,
        limit: int = 50,
    ) -> Sequence[str]:
        """Mark documents stuck in processing for longer than `older_than` as failed; return their ids."""
