"""
Completion client — one system prompt + one user message in, raw text out.

Every extraction stage (classifier, core extractor, category strategies)
talks to the LLM only through CompletionService, so tests substitute an
AsyncMock and the provider can be swapped without touching extraction code.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from docintel.core.config import ProviderConfig, RetryPolicy
from docintel.core.errors import MalformedResponseError
from docintel.llm.retry import RetryExecutor

logger = logging.getLogger(__name__)


def build_chat_model(provider: ProviderConfig, streaming: bool = False) -> BaseChatModel:
    """Construct the langchain chat model for the configured OpenAI model."""
    from langchain_openai import ChatOpenAI
    return ChatOpenAI(
        model=provider.llm_model,
        api_key=provider.api_key,
        temperature=provider.temperature,
        max_tokens=provider.max_output_tokens,
        streaming=streaming,
        stream_usage=streaming,
        max_retries=0,       # retries are owned by RetryExecutor
    )


def build_messages(system_prompt: str, user_content: str) -> list[BaseMessage]:
    return [SystemMessage(content=system_prompt), HumanMessage(content=user_content)]


def message_text(content) -> str:
    """Flatten langchain message content (str or list of content blocks)."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return str(content or "")


class CompletionService(ABC):
    """Complete(systemPrompt, userContent) -> rawText."""

    @abstractmethod
    async def complete(self, system_prompt: str, user_content: str) -> str:
        """Return the raw completion text. Raises TransientProviderError when retries are exhausted."""


class ChatCompletionClient(CompletionService):
    """
    CompletionService on a langchain chat model.

    Usage::

        client = ChatCompletionClient(config.provider, config.retry)
        raw    = await client.complete(SYSTEM_PROMPT, "Extract ...")
    """

    def __init__(
        self,
        provider: ProviderConfig,
        retry:    RetryPolicy,
        llm:      BaseChatModel | None = None,
    ) -> None:
        self._provider = provider
        self._llm      = llm or build_chat_model(provider)
        self._executor = RetryExecutor(retry, service="chat-completion")

    async def complete(self, system_prompt: str, user_content: str) -> str:
        messages = build_messages(system_prompt, user_content)
        t0 = time.monotonic()

        response = await self._executor.run(
            "complete",
            lambda: self._llm.ainvoke(messages),
        )
        text = message_text(getattr(response, "content", response))

        logger.debug(
            "Completion | model=%s prompt_chars=%d response_chars=%d elapsed_ms=%.0f",
            self._provider.llm_model, len(system_prompt) + len(user_content),
            len(text), (time.monotonic() - t0) * 1000,
        )

        if not text.strip():
            raise MalformedResponseError("Empty completion response")
        return text
