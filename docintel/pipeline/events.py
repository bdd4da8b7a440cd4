"""
Pipeline events — status and progress notifications.

Consumers (notification, webhook delivery) live outside this package;
the pipeline only publishes. Two publishers are provided:

  LoggingEventPublisher   structured log line per event (default, tests)
  BrokerEventPublisher    JSON message on the `documents.events` topic
                          exchange, routing key = event type
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from kombu import Connection, Exchange

logger = logging.getLogger(__name__)

EVENTS_EXCHANGE_NAME = "documents.events"


class EventType(str, Enum):
    PROCESSING_STARTED   = "processing_started"
    PROGRESS             = "progress"
    DOCUMENT_PROCESSED   = "document_processed"
    EXTRACTION_COMPLETED = "extraction_completed"
    REPROCESS_REQUESTED  = "reprocess_requested"


class EventPublisher(ABC):

    @abstractmethod
    async def publish(self, event_type: EventType, document_id: str, payload: dict[str, Any]) -> None:
        ...


def event_envelope(event_type: EventType, document_id: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "type":        EventType(event_type).value,
        "document_id": str(document_id),
        "timestamp":   datetime.now(timezone.utc).isoformat(),
        "payload":     payload,
    }


class LoggingEventPublisher(EventPublisher):

    async def publish(self, event_type: EventType, document_id: str, payload: dict[str, Any]) -> None:
        logger.info(
            "Event | type=%s doc=%s payload=%s",
            EventType(event_type).value, document_id, payload,
        )


class BrokerEventPublisher(EventPublisher):
    """
    Publishes through kombu on the Celery broker. kombu is synchronous,
    so each publish runs in the default executor.
    """

    def __init__(self, broker_url: str, exchange_name: str = EVENTS_EXCHANGE_NAME) -> None:
        self._broker_url = broker_url
        self._exchange   = Exchange(exchange_name, type="topic", durable=True)

    async def publish(self, event_type: EventType, document_id: str, payload: dict[str, Any]) -> None:
        body = event_envelope(event_type, document_id, payload)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._publish_sync, body["type"], body)

    def _publish_sync(self, routing_key: str, body: dict[str, Any]) -> None:
        with Connection(self._broker_url) as conn:
            producer = conn.Producer(serializer="json")
            producer.publish(
                body,
                exchange=self._exchange,
                routing_key=routing_key,
                declare=[self._exchange],
                retry=True,
                retry_policy={"max_retries": 3, "interval_start": 0, "interval_step": 1},
            )
        logger.debug("BrokerEventPublisher | published type=%s doc=%s", routing_key, body["document_id"])
