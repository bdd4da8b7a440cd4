"""
Streaming chat — a single-producer async sequence of events.

    async for event in streamer.stream(messages):
        if isinstance(event, TextDelta):
            send(event.text)
        elif isinstance(event, ChatCompleted):
            record_usage(event.input_tokens, event.output_tokens)

The sequence is zero or more TextDelta events followed by exactly one
ChatCompleted event. Consumers stop early simply by breaking out of the
loop (the generator is closed and the provider stream with it).

Retries:
  A retryable provider error is retried with the usual back-off ONLY before
  the first delta has been yielded. Once text has been sent to the consumer
  a failure is surfaced, since replaying would duplicate output.

Timeout:
  RetryPolicy.per_attempt_timeout bounds every wait for the next chunk. A
  stall before the first delta is retried like any timeout; a stall after
  it ends the stream with TransientProviderError.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import AsyncIterator, Union

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage

from docintel.core.config import ProviderConfig, RetryPolicy
from docintel.core.errors import TransientProviderError
from docintel.llm import retry as retry_mod
from docintel.llm.completion import build_chat_model, message_text

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN_EST = 4


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ChatCompleted:
    input_tokens:    int
    output_tokens:   int
    cited_chunk_ids: tuple[str, ...] = field(default_factory=tuple)
    degraded:        bool = False     # answered without retrieval context


ChatEvent = Union[TextDelta, ChatCompleted]


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN_EST) if text else 0


class ChatStreamer:
    """Streams a chat completion from a langchain chat model."""

    SERVICE = "chat-stream"

    def __init__(
        self,
        provider: ProviderConfig,
        retry:    RetryPolicy,
        llm:      BaseChatModel | None = None,
    ) -> None:
        self._provider = provider
        self._retry    = retry
        self._llm      = llm or build_chat_model(provider, streaming=True)

    async def stream(self, messages: list[BaseMessage]) -> AsyncIterator[ChatEvent]:
        produced = False
        output_parts: list[str] = []
        usage: dict | None = None
        last_error: Exception | None = None

        for attempt in range(self._retry.max_attempts):
            if attempt > 0:
                delay = self._retry.delays[attempt - 1]
                logger.warning(
                    "ChatStreamer retry | attempt=%d delay=%.1fs error=%s",
                    attempt + 1, delay, type(last_error).__name__,
                )
                await retry_mod.backoff_sleep(delay)

            chunks = self._llm.astream(messages)
            try:
                while True:
                    try:
                        chunk = await asyncio.wait_for(
                            chunks.__anext__(), timeout=self._retry.per_attempt_timeout,
                        )
                    except StopAsyncIteration:
                        break
                    chunk_usage = getattr(chunk, "usage_metadata", None)
                    if chunk_usage:
                        usage = dict(chunk_usage)
                    text = message_text(getattr(chunk, "content", ""))
                    if text:
                        produced = True
                        output_parts.append(text)
                        yield TextDelta(text=text)
                break
            except Exception as exc:
                if produced:
                    logger.error("ChatStreamer | stream failed mid-answer: %s", type(exc).__name__)
                    raise TransientProviderError(
                        f"{self.SERVICE}: stream interrupted: {type(exc).__name__}: {exc}",
                        service=self.SERVICE,
                        attempts=attempt + 1,
                    ) from exc
                if not retry_mod.is_retryable(exc):
                    raise
                last_error = exc
        else:
            raise TransientProviderError(
                f"{self.SERVICE}: stream failed after {self._retry.max_attempts} attempts: {last_error}",
                service=self.SERVICE,
                attempts=self._retry.max_attempts,
            ) from last_error

        output_text = "".join(output_parts)
        if usage:
            input_tokens  = int(usage.get("input_tokens", 0))
            output_tokens = int(usage.get("output_tokens", 0))
        else:
            input_tokens  = sum(estimate_tokens(message_text(m.content)) for m in messages)
            output_tokens = estimate_tokens(output_text)

        logger.info(
            "ChatStreamer done | model=%s input_tokens=%d output_tokens=%d",
            self._provider.llm_model, input_tokens, output_tokens,
        )
        yield ChatCompleted(input_tokens=input_tokens, output_tokens=output_tokens)
