"""
Retry with back-off for completion and embedding calls.

Retry policy:
  - Retryable:     rate limits, HTTP 5xx, request/connect timeouts
  - Non-retryable: bad request, authentication, permission, anything else
  - Attempts:      1 immediate + one per configured delay (default 1s / 5s / 15s)
  - Per-attempt timeout via asyncio.wait_for

Circuit breaker:
  After OPEN_THRESHOLD consecutive exhausted calls against one service the
  circuit opens for RESET_SECONDS and calls fail fast without touching the
  provider. One success closes it again.
  (Simple in-process counter, shared by all executors in a worker.)
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from docintel.core.config import RetryPolicy
from docintel.core.errors import TransientProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Retryable exception detection
# ---------------------------------------------------------------------------

_RETRYABLE_EXCEPTION_TYPES = (
    # openai
    "RateLimitError",
    "ServiceUnavailableError",
    "APITimeoutError",
    "APIConnectionError",
    "InternalServerError",
    # httpx / generic
    "ConnectTimeout",
    "ReadTimeout",
    "RemoteProtocolError",
)


def is_retryable(exc: BaseException) -> bool:
    """True if the exception looks like a transient provider error."""
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return True
    name = type(exc).__name__
    if any(name.endswith(r) for r in _RETRYABLE_EXCEPTION_TYPES):
        return True
    # openai.APIStatusError and friends expose the HTTP status
    status = getattr(exc, "status_code", None)
    return isinstance(status, int) and (status == 429 or status >= 500)


async def backoff_sleep(delay: float) -> None:
    await asyncio.sleep(delay)


# ---------------------------------------------------------------------------
# Circuit breaker (in-process)
# ---------------------------------------------------------------------------

@dataclass
class _CircuitState:
    failures:       int   = 0
    open_until:     float = 0.0        # monotonic time after which to retry
    OPEN_THRESHOLD: int   = 5          # consecutive exhausted calls before opening
    RESET_SECONDS:  int   = 60         # how long circuit stays open


_CIRCUIT_STATES: dict[str, _CircuitState] = {}


def _circuit(service: str) -> _CircuitState:
    return _CIRCUIT_STATES.setdefault(service, _CircuitState())


def _is_circuit_open(service: str) -> bool:
    state = _circuit(service)
    if state.failures < state.OPEN_THRESHOLD:
        return False
    if time.monotonic() >= state.open_until:
        state.failures = 0     # half-open: let the next call through
        return False
    return True


def _record_failure(service: str) -> None:
    state = _circuit(service)
    state.failures  += 1
    state.open_until = time.monotonic() + state.RESET_SECONDS
    logger.warning(
        "Circuit breaker | service=%s failures=%d open_until=+%ds",
        service, state.failures, state.RESET_SECONDS,
    )


def _record_success(service: str) -> None:
    _circuit(service).failures = 0


def reset_circuits() -> None:
    """Close every circuit. Used by tests and on worker start."""
    _CIRCUIT_STATES.clear()


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

class RetryExecutor:
    """
    Runs one provider call under the retry policy.

    Usage::

        executor = RetryExecutor(policy, service="openai-chat")
        text = await executor.run("classify", lambda: llm.ainvoke(messages))

    The factory is called once per attempt so every attempt gets a fresh
    coroutine.
    """

    def __init__(self, policy: RetryPolicy, service: str) -> None:
        self._policy  = policy
        self._service = service

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def run(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        if _is_circuit_open(self._service):
            raise TransientProviderError(
                f"{self._service}: circuit open, skipping {operation}",
                service=self._service,
                attempts=0,
            )

        last_error: BaseException | None = None
        attempts = self._policy.max_attempts

        for attempt in range(attempts):
            if attempt > 0:
                delay = self._policy.delays[attempt - 1]
                logger.warning(
                    "Retry | service=%s op=%s attempt=%d/%d delay=%.1fs error=%s",
                    self._service, operation, attempt + 1, attempts, delay,
                    type(last_error).__name__,
                )
                await backoff_sleep(delay)

            try:
                result = await asyncio.wait_for(call(), timeout=self._policy.per_attempt_timeout)
            except Exception as exc:
                if not is_retryable(exc):
                    logger.error(
                        "Non-retryable provider error | service=%s op=%s error=%s",
                        self._service, operation, type(exc).__name__,
                    )
                    raise
                last_error = exc
                continue

            _record_success(self._service)
            return result

        _record_failure(self._service)
        raise TransientProviderError(
            f"{self._service}: {operation} failed after {attempts} attempts: "
            f"{type(last_error).__name__}: {last_error}",
            service=self._service,
            attempts=attempts,
        ) from last_error
