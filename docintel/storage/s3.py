"""
S3 Document Storage

Reads the original uploaded bytes for the pipeline. Objects live under

    s3://<BUCKET>/documents/<document_id>/<file_name>

unless the document row carries an explicit storage key, which then wins.
Missing objects and transport failures both surface as StorageReadError,
the one storage failure the orchestrator understands.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from docintel.core.config import Settings
from docintel.core.errors import StorageReadError
from docintel.pipeline.interfaces import DocumentInfo, DocumentStorage

logger = logging.getLogger(__name__)

DOCUMENT_PREFIX = "documents"


@dataclass(frozen=True)
class S3StorageConfig:
    bucket:                str
    region:                str = "us-east-1"
    endpoint_url:          str | None = None   # LocalStack / MinIO
    aws_access_key_id:     str | None = None
    aws_secret_access_key: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> S3StorageConfig:
        return cls(
            bucket=settings.s3_bucket,
            region=settings.aws_region,
            endpoint_url=settings.s3_endpoint_url or None,
            aws_access_key_id=settings.aws_access_key_id or None,
            aws_secret_access_key=settings.aws_secret_access_key or None,
        )


def document_key(document: DocumentInfo) -> str:
    if document.storage_key:
        return document.storage_key
    return f"{DOCUMENT_PREFIX}/{document.document_id}/{document.file_name}"


class S3DocumentStorage(DocumentStorage):

    def __init__(self, config: S3StorageConfig) -> None:
        self._cfg = config
        self._session = aioboto3.Session(
            aws_access_key_id=config.aws_access_key_id,
            aws_secret_access_key=config.aws_secret_access_key,
            region_name=config.region,
        )

    def _client(self):
        """Return a scoped async S3 client context manager."""
        return self._session.client("s3", endpoint_url=self._cfg.endpoint_url)

    async def read_document_bytes(self, document: DocumentInfo) -> bytes:
        key = document_key(document)
        async with self._client() as s3:
            try:
                resp = await s3.get_object(Bucket=self._cfg.bucket, Key=key)
                data = await resp["Body"].read()
            except ClientError as exc:
                code = exc.response.get("Error", {}).get("Code", "")
                if code in ("NoSuchKey", "404"):
                    raise StorageReadError(f"Object not found: s3://{self._cfg.bucket}/{key}") from exc
                raise StorageReadError(f"S3 error {code} reading {key}") from exc
            except BotoCoreError as exc:
                raise StorageReadError(f"S3 transport error reading {key}: {exc}") from exc

        logger.info("S3 read | doc=%s key=%s bytes=%d", document.document_id, key, len(data))
        return data
