"""
Celery Tasks — Document Processing

Task: process_document
  Runs DocumentPipeline.process_document() for one id. The pipeline owns
  every status change; the task only builds collaborators from settings
  and returns the ProcessingOutcome as JSON.

Task: reprocess_document
  Terminal document → pending (derived rows deleted), then re-queues
  process_document.

Task: requeue_stale_documents
  Scheduler task — marks documents stuck in 'processing' for longer than
  stale_processing_minutes as failed (lost worker), then re-queues documents
  stuck in 'pending' for longer than stale_pending_minutes (broker hiccups
  during the original enqueue).
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any

from celery import Task

from docintel.core.config import PipelineConfig, get_settings
from docintel.core.errors import InvalidTransitionError
from docintel.db.repository import SqlDocumentRepository
from docintel.db.session import check_db_health, dispose_engine
from docintel.pipeline.events import BrokerEventPublisher
from docintel.pipeline.orchestrator import STALE_PROCESSING_MESSAGE, DocumentPipeline
from docintel.storage.s3 import S3DocumentStorage, S3StorageConfig
from docintel.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

STALE_BATCH_LIMIT = 50


# ---------------------------------------------------------------------------
# Async task helper
# Run async coroutines inside Celery's synchronous task context.
# ---------------------------------------------------------------------------

def run_async(coro):
    """Execute an async coroutine from a synchronous Celery task."""
    try:
        loop = asyncio.get_event_loop()
        if loop.is_running():
            import concurrent.futures
            with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
                future = pool.submit(asyncio.run, coro)
                return future.result()
        return loop.run_until_complete(coro)
    except RuntimeError:
        return asyncio.run(coro)


def build_pipeline() -> DocumentPipeline:
    settings = get_settings()
    return DocumentPipeline.from_config(
        PipelineConfig.from_settings(settings),
        repository=SqlDocumentRepository(),
        storage=S3DocumentStorage(S3StorageConfig.from_settings(settings)),
        events=BrokerEventPublisher(settings.celery_broker_url),
    )


# ---------------------------------------------------------------------------
# Processing tasks
# ---------------------------------------------------------------------------

@celery_app.task(
    name="docintel.workers.tasks.process_document",
    bind=True,
    acks_late=True,
    reject_on_worker_lost=True,
)
def process_document(self: Task, *, document_id: str) -> dict[str, Any]:
    return run_async(_process_document_async(document_id))


async def _process_document_async(document_id: str) -> dict[str, Any]:
    try:
        outcome = await build_pipeline().process_document(document_id)
        return outcome.model_dump(mode="json")
    finally:
        # Each task runs on a fresh event loop; pooled connections must not leak across loops
        await dispose_engine()


@celery_app.task(
    name="docintel.workers.tasks.reprocess_document",
    bind=True,
    acks_late=True,
)
def reprocess_document(self: Task, *, document_id: str) -> dict[str, Any]:
    result = run_async(_reprocess_document_async(document_id))
    if result.get("status") == "pending" and not result.get("skipped"):
        process_document.apply_async(kwargs={"document_id": document_id})
    return result


async def _reprocess_document_async(document_id: str) -> dict[str, Any]:
    try:
        outcome = await build_pipeline().reprocess_document(document_id)
        return outcome.model_dump(mode="json")
    except InvalidTransitionError as exc:
        logger.warning("Reprocess rejected | doc=%s reason=%s", document_id, exc)
        return {"document_id": document_id, "status": "rejected", "skipped": True, "reason": exc.user_message}
    finally:
        await dispose_engine()


# ---------------------------------------------------------------------------
# Stale-document sweep: runs every 60 seconds via Celery Beat
# ---------------------------------------------------------------------------

@celery_app.task(
    name="docintel.workers.tasks.requeue_stale_documents",
    bind=False,
    acks_late=True,
    soft_time_limit=55,
    time_limit=60,
)
def requeue_stale_documents() -> dict[str, int]:
    stale_ids, failed_ids = run_async(_sweep_stale_async())
    for document_id in stale_ids:
        process_document.apply_async(kwargs={"document_id": document_id}, countdown=5)
        logger.info("Re-queued stale document | doc=%s", document_id)
    return {"requeued": len(stale_ids), "failed_stale": len(failed_ids)}


async def _sweep_stale_async() -> tuple[list[str], list[str]]:
    settings = get_settings()
    repository = SqlDocumentRepository()
    try:
        failed = await repository.fail_stale_processing(
            timedelta(minutes=settings.stale_processing_minutes),
            STALE_PROCESSING_MESSAGE,
            limit=STALE_BATCH_LIMIT,
        )
        stale = await repository.list_stale_pending(
            timedelta(minutes=settings.stale_pending_minutes), limit=STALE_BATCH_LIMIT,
        )
        return list(stale), list(failed)
    finally:
        await dispose_engine()
