"""
Celery Application Factory

Configures the Celery app for document processing workers.
Broker: RabbitMQ (amqp://) in production; Redis works for local dev.
Result backend: Redis (optional; document state is tracked in PostgreSQL).

Queue topology:
  documents.process  — document processing pipeline (process / reprocess)
  documents.retry    — stale-pending scanner (Celery Beat, every 60 s)
  system.health      — internal health-check tasks

Task payloads carry document ids only, never file bytes.
"""

from __future__ import annotations

import logging

from celery import Celery
from celery.signals import after_setup_logger, task_failure, task_postrun, task_prerun
from kombu import Exchange, Queue

from docintel.core.config import get_settings
from docintel.core.logging import configure_logging

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Queue and exchange definitions
# ---------------------------------------------------------------------------

DOCUMENTS_EXCHANGE = Exchange("documents", type="direct", durable=True)

TASK_QUEUES = (
    Queue(
        "documents.process",
        exchange=DOCUMENTS_EXCHANGE,
        routing_key="documents.process",
        queue_arguments={"x-max-priority": 10},
        durable=True,
    ),
    Queue(
        "documents.retry",
        exchange=DOCUMENTS_EXCHANGE,
        routing_key="documents.retry",
        durable=True,
    ),
    Queue(
        "system.health",
        Exchange("system", type="direct"),
        routing_key="system.health",
        durable=True,
    ),
)

TASK_ROUTES = {
    "docintel.workers.tasks.process_document":        {"queue": "documents.process"},
    "docintel.workers.tasks.reprocess_document":      {"queue": "documents.process"},
    "docintel.workers.tasks.requeue_stale_documents": {"queue": "documents.retry"},
    "docintel.workers.tasks.health_check":            {"queue": "system.health"},
}

STALE_SCAN_INTERVAL_SECONDS = 60


# ---------------------------------------------------------------------------
# Celery app factory
# ---------------------------------------------------------------------------

def create_celery_app() -> Celery:
    settings = get_settings()
    app = Celery("docintel")

    app.conf.update(
        # --- Broker / Backend ---
        broker_url=settings.celery_broker_url,
        result_backend=settings.celery_result_backend,

        # --- Serialization (reject non-JSON messages) ---
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        event_serializer="json",

        # --- Queues ---
        task_queues=TASK_QUEUES,
        task_routes=TASK_ROUTES,
        task_default_queue="documents.process",
        task_default_exchange="documents",
        task_default_routing_key="documents.process",

        # --- Reliability ---
        task_acks_late=True,            # ack only after the task completes
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,   # one document at a time per worker process
        worker_concurrency=settings.worker_concurrency,

        # --- Timeouts ---
        task_soft_time_limit=900,
        task_time_limit=960,

        # --- Result TTL ---
        result_expires=3600,

        # --- Timezone ---
        timezone="UTC",
        enable_utc=True,

        # --- Beat schedule (stale-pending scanner) ---
        beat_schedule={
            "requeue-stale-pending-documents": {
                "task":     "docintel.workers.tasks.requeue_stale_documents",
                "schedule": STALE_SCAN_INTERVAL_SECONDS,
                "options":  {"queue": "documents.retry"},
            },
        },

        # --- Worker ---
        worker_max_tasks_per_child=200,
    )

    app.autodiscover_tasks(["docintel.workers"])
    return app


celery_app = create_celery_app()


# ---------------------------------------------------------------------------
# Celery signals: logging
# ---------------------------------------------------------------------------

@after_setup_logger.connect
def on_after_setup_logger(logger, **_):
    configure_logging(debug=get_settings().debug, logger=logger)


@task_prerun.connect
def on_task_prerun(task_id, task, args, kwargs, **_):
    logger.info(
        "Task start | task_id=%s task=%s doc=%s",
        task_id, task.name, (kwargs or {}).get("document_id", "?"),
    )


@task_postrun.connect
def on_task_postrun(task_id, task, args, kwargs, retval, state, **_):
    logger.info(
        "Task end | task_id=%s task=%s state=%s doc=%s",
        task_id, task.name, state, (kwargs or {}).get("document_id", "?"),
    )


@task_failure.connect
def on_task_failure(task_id, exception, args, kwargs, traceback, einfo, **_):
    logger.error(
        "Task failed | task_id=%s doc=%s error=%s",
        task_id, (kwargs or {}).get("document_id", "?"), exception,
        exc_info=True,
    )
