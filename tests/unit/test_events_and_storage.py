"""
Unit Tests — Event publishers + S3 document storage
════════════════════════════════════════════════════
Coverage targets:
  ✅ event_envelope shape (type, document id, ISO timestamp, payload)
  ✅ BrokerEventPublisher publishes the envelope with routing key = event type
  ✅ LoggingEventPublisher logs one line per event
  ✅ S3 key: explicit storage key wins, else documents/<id>/<file_name>
  ✅ S3 read returns the object body
  ✅ NoSuchKey / other ClientError / transport error → StorageReadError
"""

from __future__ import annotations

import logging
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from docintel.core.errors import StorageReadError
from docintel.pipeline.events import (
    BrokerEventPublisher,
    EventType,
    LoggingEventPublisher,
    event_envelope,
)
from docintel.pipeline.interfaces import DocumentInfo
from docintel.pipeline.state import ProcessingStatus
from docintel.storage.s3 import S3DocumentStorage, S3StorageConfig, document_key


def _doc(storage_key: str | None = None) -> DocumentInfo:
    return DocumentInfo("doc-9", "policy.pdf", ProcessingStatus.PROCESSING, storage_key=storage_key)


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "test"}}, "GetObject")


def _build_s3_mock(body: bytes = b"%PDF-1.7 ...", error: Exception | None = None) -> AsyncMock:
    """Mock S3 client usable as `async with session.client(...) as s3`."""
    s3 = AsyncMock()
    s3.__aenter__ = AsyncMock(return_value=s3)
    s3.__aexit__  = AsyncMock(return_value=None)
    stream = MagicMock()
    stream.read = AsyncMock(return_value=body)
    s3.get_object = AsyncMock(return_value={"Body": stream}, side_effect=error)
    return s3


# ─────────────────────────────────────────────────────────────────────────────
# Events
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestEvents:

    def test_envelope(self):
        envelope = event_envelope(EventType.PROGRESS, "doc-1", {"percent": 45})

        assert envelope["type"] == "progress"
        assert envelope["document_id"] == "doc-1"
        assert envelope["payload"] == {"percent": 45}
        assert datetime.fromisoformat(envelope["timestamp"]).tzinfo is not None

    async def test_broker_publisher_routes_by_event_type(self):
        publisher = BrokerEventPublisher("memory://")

        with patch("docintel.pipeline.events.Connection") as connection:
            producer = connection.return_value.__enter__.return_value.Producer.return_value
            await publisher.publish(EventType.DOCUMENT_PROCESSED, "doc-1", {"success": True})

        connection.assert_called_once_with("memory://")
        body = producer.publish.call_args.args[0]
        kwargs = producer.publish.call_args.kwargs
        assert body["type"] == "document_processed"
        assert body["payload"] == {"success": True}
        assert kwargs["routing_key"] == "document_processed"
        assert kwargs["exchange"].name == "documents.events"

    async def test_logging_publisher(self, caplog):
        with caplog.at_level(logging.INFO, logger="docintel.pipeline.events"):
            await LoggingEventPublisher().publish(EventType.PROCESSING_STARTED, "doc-1", {})
        assert "type=processing_started doc=doc-1" in caplog.text


# ─────────────────────────────────────────────────────────────────────────────
# S3 storage
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.s3
class TestS3DocumentStorage:

    def test_default_key(self):
        assert document_key(_doc()) == "documents/doc-9/policy.pdf"

    def test_explicit_storage_key_wins(self):
        assert document_key(_doc("uploads/2025/x.pdf")) == "uploads/2025/x.pdf"

    async def test_read_returns_body(self):
        s3_mock = _build_s3_mock(body=b"%PDF-1.7 bytes")

        with patch("docintel.storage.s3.aioboto3.Session") as mock_session:
            mock_session.return_value.client.return_value = s3_mock
            storage = S3DocumentStorage(S3StorageConfig(bucket="test-bucket"))
            data = await storage.read_document_bytes(_doc())

        assert data == b"%PDF-1.7 bytes"
        s3_mock.get_object.assert_awaited_once_with(Bucket="test-bucket", Key="documents/doc-9/policy.pdf")

    @pytest.mark.parametrize("error,fragment", [
        (_client_error("NoSuchKey"), "not found"),
        (_client_error("AccessDenied"), "AccessDenied"),
        (EndpointConnectionError(endpoint_url="http://localhost:4566"), "transport"),
    ])
    async def test_failures_become_storage_errors(self, error, fragment):
        with patch("docintel.storage.s3.aioboto3.Session") as mock_session:
            mock_session.return_value.client.return_value = _build_s3_mock(error=error)
            storage = S3DocumentStorage(S3StorageConfig(bucket="test-bucket"))

            with pytest.raises(StorageReadError) as exc_info:
                await storage.read_document_bytes(_doc())

        assert fragment in str(exc_info.value)
        assert exc_info.value.user_message == StorageReadError.default_user_message

    def test_config_from_settings_blanks_become_none(self):
        from docintel.core.config import Settings

        config = S3StorageConfig.from_settings(Settings(s3_endpoint_url="", aws_access_key_id=""))
        assert config.endpoint_url is None
        assert config.aws_access_key_id is None
