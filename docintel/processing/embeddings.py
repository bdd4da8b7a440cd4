"""
Embedding Generator  —  Batched, Index-Aligned, Per-Batch Retry
══════════════════════════════════════════════════════════════════════

Design goals:
  • Batch efficiency: one API call per batch_size texts (default 100)
  • Concurrency: up to max_concurrent_batches calls in flight (semaphore)
  • Retry: every batch runs through RetryExecutor independently, so one
    flaky batch is retried without discarding batches that already succeeded
  • Alignment: vectors[i] always belongs to texts[i]; a failed batch leaves
    None at its positions and its indices in failed_indices

Fail-fast conditions (non-retryable, batch fails immediately):
  AuthenticationError, BadRequestError, wrong vector count or dimension
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Sequence

from docintel.core.config import ProviderConfig, RetryPolicy
from docintel.core.errors import MalformedResponseError
from docintel.llm.retry import RetryExecutor

logger = logging.getLogger(__name__)

# Approximate tokens per character when the API omits usage
CHARS_PER_TOKEN_EST = 4


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass
class EmbeddingBatchResult:
    """
    vectors        : one entry per input text, None where the batch failed
    failed_indices : input positions that could not be embedded
    batch_errors   : batch index → final exception for failed batches
    total_tokens   : provider-reported (or estimated) token usage
    elapsed_ms     : total wall time
    """
    vectors:        list[list[float] | None]
    failed_indices: list[int] = field(default_factory=list)
    batch_errors:   dict[int, BaseException] = field(default_factory=dict)
    total_tokens:   int = 0
    elapsed_ms:     float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failed_indices

    @property
    def success_rate(self) -> float:
        if not self.vectors:
            return 1.0
        return (len(self.vectors) - len(self.failed_indices)) / len(self.vectors)


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

class EmbeddingGenerator:
    """
    Embeds chunk texts and queries with the OpenAI embeddings API.

    Usage:
        generator = EmbeddingGenerator(config.provider, config.retry)
        result    = await generator.embed_texts([c.text for c in chunks])
        vector    = await generator.embed_query("What is the GL deductible?")
    """

    SERVICE = "embeddings"

    def __init__(
        self,
        provider: ProviderConfig,
        retry:    RetryPolicy,
        client:   Any = None,      # openai.AsyncOpenAI; injected in tests
    ) -> None:
        self._provider = provider
        self._client   = client
        self._executor = RetryExecutor(retry, service=self.SERVICE)

    def _get_client(self):
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self._provider.api_key, max_retries=0)
        return self._client

    @property
    def dimensions(self) -> int:
        return self._provider.embedding_dimensions

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def embed_texts(self, texts: Sequence[str]) -> EmbeddingBatchResult:
        if not texts:
            return EmbeddingBatchResult(vectors=[])

        t0 = time.monotonic()
        size = self._provider.embedding_batch_size
        batches = [list(texts[i : i + size]) for i in range(0, len(texts), size)]

        logger.info(
            "EmbeddingGenerator | texts=%d batches=%d model=%s",
            len(texts), len(batches), self._provider.embedding_model,
        )

        semaphore = asyncio.Semaphore(self._provider.max_concurrent_batches)
        tasks = [
            self._embed_batch(batch, batch_idx, semaphore)
            for batch_idx, batch in enumerate(batches)
        ]
        batch_results = await asyncio.gather(*tasks, return_exceptions=True)

        result = EmbeddingBatchResult(vectors=[None] * len(texts))
        for batch_idx, outcome in enumerate(batch_results):
            offset = batch_idx * size
            batch_len = len(batches[batch_idx])

            if isinstance(outcome, BaseException):
                logger.error(
                    "Embedding batch permanently failed | batch=%d size=%d error=%s",
                    batch_idx, batch_len, type(outcome).__name__,
                )
                result.batch_errors[batch_idx] = outcome
                result.failed_indices.extend(range(offset, offset + batch_len))
                continue

            vectors, tokens = outcome
            result.vectors[offset : offset + batch_len] = vectors
            result.total_tokens += tokens

        result.elapsed_ms = (time.monotonic() - t0) * 1000
        logger.info(
            "EmbeddingGenerator done | vectors=%d failed=%d tokens=%d elapsed_ms=%.0f",
            len(texts) - len(result.failed_indices), len(result.failed_indices),
            result.total_tokens, result.elapsed_ms,
        )
        return result

    async def embed_query(self, text: str) -> list[float]:
        """Embed one query string with the same model used for chunks."""
        vectors, _ = await self._executor.run("embed_query", lambda: self._call_openai([text]))
        return vectors[0]

    # ------------------------------------------------------------------
    # Batch processing
    # ------------------------------------------------------------------

    async def _embed_batch(
        self,
        batch:     list[str],
        batch_idx: int,
        semaphore: asyncio.Semaphore,
    ) -> tuple[list[list[float]], int]:
        async with semaphore:
            return await self._executor.run(
                f"embed_batch[{batch_idx}]",
                lambda: self._call_openai(batch),
            )

    async def _call_openai(self, texts: list[str]) -> tuple[list[list[float]], int]:
        kwargs: dict[str, Any] = {"model": self._provider.embedding_model, "input": texts}
        if self._provider.embedding_model.startswith("text-embedding-3"):
            kwargs["dimensions"] = self._provider.embedding_dimensions

        response = await self._get_client().embeddings.create(**kwargs)

        data = sorted(response.data, key=lambda d: d.index)
        if len(data) != len(texts):
            raise MalformedResponseError(
                f"Embedding count mismatch: sent {len(texts)} texts, got {len(data)} vectors"
            )

        vectors = [list(item.embedding) for item in data]
        for vector in vectors:
            if len(vector) != self._provider.embedding_dimensions:
                raise MalformedResponseError(
                    f"Embedding dimension {len(vector)} != configured {self._provider.embedding_dimensions}"
                )

        usage = getattr(response, "usage", None)
        tokens = usage.total_tokens if usage else sum(len(t) // CHARS_PER_TOKEN_EST for t in texts)
        return vectors, tokens
