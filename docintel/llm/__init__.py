"""
LLM access layer.

  retry.py       retry-with-backoff executor + in-process circuit breaker
  completion.py  single-shot completion client (system prompt + user content)
  json_scan.py   tolerant JSON object extraction from completion prose
  chat.py        streaming chat as an async sequence of delta/completion events
"""

from docintel.llm.completion import ChatCompletionClient, CompletionService
from docintel.llm.retry import RetryExecutor

__all__ = [
    "ChatCompletionClient",
    "CompletionService",
    "RetryExecutor",
]
