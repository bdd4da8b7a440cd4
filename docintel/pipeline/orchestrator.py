"""
Document Pipeline Orchestrator

ProcessDocument(document_id) runs one document end-to-end:

  1. claim        pending → processing (atomic; skipped if not pending)
  2. read         bytes from storage                       StorageReadError  → failed
  3. text         per-page text                            InputQualityError → failed
  4. chunk        TextChunker (deterministic, no I/O)
  5. classify ┐   run concurrently; both only need the chunks / pages
     embed    ┘   any chunk left without a vector          → failed
  6. core         declarations chunks → CoreRecordExtractor
  7. categories   fan-out over detected categories, bounded by a semaphore
  8. validate     ExtractionValidator → completed | needs_review
  9. save         all derived rows + final status in one transaction

Error policy:
  - MalformedResponseError on the core record or one category is recorded
    against that result only; the run carries on with lower confidence.
  - TransientProviderError (retries exhausted) anywhere aborts the run.
  - The cancellation token is checked between stages, never mid-call, and
    nothing is written after it fires.
  - The stored failure message is always the error's user_message.

Idempotency:
  - At most one in-flight run per document id in this process, and
    claim_for_processing() guards across processes.
  - save_results() replaces derived rows; reprocess_document() clears them
    and resets the status in one repository call.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from docintel.core.config import PipelineConfig
from docintel.core.errors import (
    InputQualityError,
    InvalidTransitionError,
    MalformedResponseError,
    PipelineCancelled,
    PipelineError,
    StorageReadError,
    TransientProviderError,
    ValidationError,
)
from docintel.extraction.classifier import DocumentClassifier
from docintel.extraction.context import join_chunks, select_category_chunks, select_declarations_chunks
from docintel.extraction.core_extractor import CoreRecordExtractor
from docintel.extraction.models import CategoryResult, ClassificationResult, CoreRecordResult
from docintel.extraction.strategies.registry import StrategyRegistry, build_default_registry
from docintel.extraction.validation import ExtractionValidator
from docintel.llm.completion import ChatCompletionClient, CompletionService
from docintel.pipeline.events import EventPublisher, EventType, LoggingEventPublisher
from docintel.pipeline.interfaces import (
    DocumentInfo,
    DocumentRepository,
    DocumentStorage,
    PageTextExtractor,
    PipelineResults,
)
from docintel.pipeline.state import ProcessingStatus, ensure_transition
from docintel.processing.chunking import Chunk, TextChunker
from docintel.processing.embeddings import EmbeddingGenerator
from docintel.processing.text_extraction import PyMuPDFPageTextExtractor
from docintel.schemas.documents import ProcessingOutcome

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Processing failed due to an internal error."
STALE_PROCESSING_MESSAGE = "Processing was interrupted before it finished. Please reprocess the document."


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

class CancellationToken:
    """Cooperative cancellation, observed at stage boundaries."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self, stage: str) -> None:
        if self._event.is_set():
            raise PipelineCancelled(f"Cancelled before stage {stage}")


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class DocumentPipeline:

    def __init__(
        self,
        *,
        config:         PipelineConfig,
        repository:     DocumentRepository,
        storage:        DocumentStorage,
        text_extractor: PageTextExtractor,
        classifier:     DocumentClassifier,
        core_extractor: CoreRecordExtractor,
        registry:       StrategyRegistry,
        embedder:       EmbeddingGenerator,
        validator:      ExtractionValidator | None = None,
        chunker:        TextChunker | None = None,
        events:         EventPublisher | None = None,
    ) -> None:
        self._config         = config
        self._repository     = repository
        self._storage        = storage
        self._text_extractor = text_extractor
        self._classifier     = classifier
        self._core_extractor = core_extractor
        self._registry       = registry
        self._embedder       = embedder
        self._validator      = validator or ExtractionValidator(config.extraction)
        self._chunker        = chunker or TextChunker(config.chunking)
        self._events         = events or LoggingEventPublisher()
        self._in_flight: set[str] = set()

    @classmethod
    def from_config(
        cls,
        config: PipelineConfig,
        *,
        repository:     DocumentRepository,
        storage:        DocumentStorage,
        events:         EventPublisher | None = None,
        completion:     CompletionService | None = None,
        embedder:       EmbeddingGenerator | None = None,
        text_extractor: PageTextExtractor | None = None,
    ) -> DocumentPipeline:
        """Wire the default collaborators from configuration."""
        completion = completion or ChatCompletionClient(config.provider, config.retry)
        return cls(
            config=config,
            repository=repository,
            storage=storage,
            text_extractor=text_extractor or PyMuPDFPageTextExtractor(),
            classifier=DocumentClassifier(completion, config.extraction),
            core_extractor=CoreRecordExtractor(completion),
            registry=build_default_registry(completion),
            embedder=embedder or EmbeddingGenerator(config.provider, config.retry),
            events=events,
        )

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def process_document(
        self,
        document_id: str,
        cancel: CancellationToken | None = None,
    ) -> ProcessingOutcome:
        document_id = str(document_id)
        cancel = cancel or CancellationToken()

        if document_id in self._in_flight:
            logger.warning("Pipeline | run already in flight, skipping | doc=%s", document_id)
            return ProcessingOutcome.skipped_run(document_id, ProcessingStatus.PROCESSING, "already_running")

        self._in_flight.add(document_id)
        try:
            document = await self._repository.get_document(document_id)
            if document is None:
                logger.error("Pipeline | document not found | doc=%s", document_id)
                return ProcessingOutcome.skipped_run(document_id, ProcessingStatus.FAILED, "not_found")

            if not await self._repository.claim_for_processing(document_id):
                logger.warning(
                    "Pipeline | document not pending, skipping | doc=%s status=%s",
                    document_id, document.status.value,
                )
                return ProcessingOutcome.skipped_run(
                    document_id, document.status, f"status={document.status.value}",
                )

            await self._emit(EventType.PROCESSING_STARTED, document_id, {"file_name": document.file_name})
            t0 = time.monotonic()
            try:
                outcome = await self._run(document, cancel)
            except PipelineError as exc:
                logger.error(
                    "Pipeline failed | doc=%s code=%s error=%s", document_id, exc.code, exc,
                )
                outcome = await self._fail(document_id, exc.user_message)
            except Exception:
                logger.exception("Pipeline failed with unexpected error | doc=%s", document_id)
                outcome = await self._fail(document_id, INTERNAL_ERROR_MESSAGE)

            logger.info(
                "Pipeline done | doc=%s status=%s elapsed_ms=%.0f",
                document_id, outcome.status.value, (time.monotonic() - t0) * 1000,
            )
            return outcome
        finally:
            self._in_flight.discard(document_id)

    async def reprocess_document(self, document_id: str) -> ProcessingOutcome:
        """Terminal document → pending, with all derived rows deleted."""
        document_id = str(document_id)
        if document_id in self._in_flight:
            return ProcessingOutcome.skipped_run(document_id, ProcessingStatus.PROCESSING, "already_running")

        document = await self._repository.get_document(document_id)
        if document is None:
            return ProcessingOutcome.skipped_run(document_id, ProcessingStatus.FAILED, "not_found")

        ensure_transition(document.status, ProcessingStatus.PENDING)
        if not await self._repository.reset_for_reprocess(document_id):
            # A concurrent reprocess request reset it first
            raise InvalidTransitionError(
                f"Document {document_id} left {document.status.value} before it could be reset"
            )
        await self._emit(
            EventType.REPROCESS_REQUESTED, document_id, {"previous_status": document.status.value},
        )
        logger.info(
            "Pipeline | reprocess requested | doc=%s previous_status=%s",
            document_id, document.status.value,
        )
        return ProcessingOutcome(document_id=document_id, status=ProcessingStatus.PENDING)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _run(self, document: DocumentInfo, cancel: CancellationToken) -> ProcessingOutcome:
        document_id = document.document_id

        # ---- Read + page text ------------------------------------------
        cancel.raise_if_cancelled("read")
        try:
            data = await self._storage.read_document_bytes(document)
        except StorageReadError:
            raise
        except Exception as exc:
            raise StorageReadError(f"Storage read failed: {type(exc).__name__}: {exc}") from exc

        cancel.raise_if_cancelled("text_extraction")
        page_text = await self._text_extractor.extract_page_text(data)
        pages = page_text.as_page_map()
        await self._progress(document_id, "text_extracted", 10)

        # ---- Chunk ------------------------------------------------------
        cancel.raise_if_cancelled("chunking")
        chunks = self._chunker.chunk(pages)
        if not chunks:
            raise InputQualityError("No text chunks produced from document")
        await self._progress(document_id, "chunked", 25)

        # ---- Classify + embed (concurrent) -----------------------------
        cancel.raise_if_cancelled("classification")
        classified, embedded = await asyncio.gather(
            self._classifier.classify(pages, document.file_name),
            self._embedder.embed_texts([c.text for c in chunks]),
            return_exceptions=True,
        )
        for outcome in (classified, embedded):
            if isinstance(outcome, BaseException):
                raise outcome
        classification: ClassificationResult = classified
        vectors = self._require_vectors(document_id, embedded)
        await self._progress(document_id, "classified", 45)

        # ---- Core record -----------------------------------------------
        cancel.raise_if_cancelled("core_record")
        core_record = await self._extract_core(chunks, classification)
        await self._progress(document_id, "core_record_extracted", 60)

        # ---- Categories -------------------------------------------------
        cancel.raise_if_cancelled("categories")
        categories = await self._extract_categories(chunks, classification)
        await self._progress(document_id, "categories_extracted", 85)

        # ---- Validate ---------------------------------------------------
        cancel.raise_if_cancelled("validation")
        validation = self._validator.validate(classification, core_record, categories)
        status = ensure_transition(
            ProcessingStatus.PROCESSING,
            ProcessingStatus.NEEDS_REVIEW if validation.needs_review else ProcessingStatus.COMPLETED,
        )

        # ---- Persist ----------------------------------------------------
        cancel.raise_if_cancelled("save")
        await self._repository.save_results(
            document_id,
            PipelineResults(
                status=status,
                chunks=tuple(chunks),
                vectors=tuple(vectors),
                classification=classification,
                core_record=core_record,
                categories=tuple(categories),
                validation=validation,
                metadata={"page_count": len(pages), "text_method": page_text.method},
            ),
        )

        extracted = [c.category for c in categories if not c.failed]
        await self._emit(EventType.EXTRACTION_COMPLETED, document_id, {
            "core_record":          not core_record.failed,
            "categories_extracted": len(extracted),
            "confidence":           validation.adjusted_confidence,
        })

        payload: dict[str, Any] = {"success": True, "status": status.value, "error": None}
        if validation.errors:
            review = ValidationError(
                "; ".join(issue.message for issue in validation.errors), issues=list(validation.errors),
            )
            payload["error"] = review.user_message
            logger.warning("Pipeline | validation errors | doc=%s errors=%s", document_id, review)
        await self._emit(EventType.DOCUMENT_PROCESSED, document_id, payload)

        return ProcessingOutcome(
            document_id=document_id,
            status=status,
            chunk_count=len(chunks),
            categories=extracted,
            confidence=validation.adjusted_confidence,
            needs_review_reasons=list(validation.review_reasons) if validation.needs_review else [],
        )

    def _require_vectors(self, document_id: str, embedded) -> list[list[float]]:
        if embedded.ok:
            return list(embedded.vectors)

        logger.error(
            "Pipeline | embedding incomplete | doc=%s failed_chunks=%d",
            document_id, len(embedded.failed_indices),
        )
        first_error = next(iter(embedded.batch_errors.values()), None)
        if isinstance(first_error, PipelineError):
            raise first_error
        raise TransientProviderError(
            f"embeddings: {len(embedded.failed_indices)} chunk(s) could not be embedded",
            service="embeddings",
        ) from first_error

    async def _extract_core(
        self,
        chunks: list[Chunk],
        classification: ClassificationResult,
    ) -> CoreRecordResult:
        selected = select_declarations_chunks(
            chunks, classification, self._config.extraction.category_context_tokens,
        )
        try:
            return await self._core_extractor.extract(
                join_chunks(selected), classification.document_type.value,
            )
        except MalformedResponseError as exc:
            logger.warning("Pipeline | core record extraction failed: %s", exc)
            return CoreRecordResult.failed_result(str(exc), raw_output=exc.raw or None)

    async def _extract_categories(
        self,
        chunks: list[Chunk],
        classification: ClassificationResult,
    ) -> list[CategoryResult]:
        categories = list(classification.coverages_detected)
        if not categories:
            return []

        budget    = self._config.extraction.category_context_tokens
        semaphore = asyncio.Semaphore(self._config.extraction.category_fan_out)

        async def extract_one(category_id: str) -> CategoryResult:
            strategy = self._registry.get_strategy(category_id)
            selected = select_category_chunks(chunks, category_id, classification, budget)
            async with semaphore:
                return await strategy.extract(category_id, selected)

        outcomes = await asyncio.gather(
            *(extract_one(category_id) for category_id in categories),
            return_exceptions=True,
        )

        results: list[CategoryResult] = []
        for category_id, outcome in zip(categories, outcomes):
            if isinstance(outcome, TransientProviderError):
                raise outcome
            if isinstance(outcome, MalformedResponseError):
                logger.warning("Pipeline | category extraction failed | category=%s error=%s", category_id, outcome)
                results.append(CategoryResult.failed_result(category_id, str(outcome), raw_output=outcome.raw or None))
            elif isinstance(outcome, Exception):
                logger.error(
                    "Pipeline | category extraction error | category=%s error=%s: %s",
                    category_id, type(outcome).__name__, outcome,
                )
                results.append(CategoryResult.failed_result(category_id, f"{type(outcome).__name__}: {outcome}"))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append(outcome)
        return results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fail(self, document_id: str, message: str) -> ProcessingOutcome:
        status = ensure_transition(ProcessingStatus.PROCESSING, ProcessingStatus.FAILED)
        await self._repository.update_status(document_id, status, error_message=message)
        await self._emit(EventType.DOCUMENT_PROCESSED, document_id, {
            "success": False, "status": status.value, "error": message,
        })
        return ProcessingOutcome(document_id=document_id, status=status, reason=message)

    async def _progress(self, document_id: str, stage: str, percent: int) -> None:
        await self._emit(EventType.PROGRESS, document_id, {"stage": stage, "percent": percent})

    async def _emit(self, event_type: EventType, document_id: str, payload: dict[str, Any]) -> None:
        # Event delivery never changes the outcome of a run
        try:
            await self._events.publish(event_type, document_id, payload)
        except Exception as exc:
            logger.warning(
                "Pipeline | event publish failed | type=%s doc=%s error=%s",
                event_type.value, document_id, exc,
            )
