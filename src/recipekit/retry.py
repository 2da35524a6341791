"""Failure classification and whole-run retry.

Retries never happen inside a run: ``retry_call`` re-executes the complete
operation (every variable is resolved again), and only for failures that
:func:`is_transient` accepts.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

import httpx
import openai

from .core.Exceptions import (
    ExecutionFailure,
    PermanentExecutionFailure,
    RecipeKitError,
    TransientExecutionFailure,
)

logger = logging.getLogger(__name__)

__all__ = ["RetryPolicy", "classify_failure", "is_transient", "retry_call"]

T = TypeVar("T")

_RETRYABLE_STATUS = {408, 409, 425, 429}

_OPENAI_TRANSIENT = (
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Linear backoff: ``initial_delay + (attempt - 1) * delay_increment`` seconds, with jitter."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    delay_increment: float = 1.0
    jitter: float = 0.2

    def delay_for(self, attempt: int) -> float:
        base = self.initial_delay + (attempt - 1) * self.delay_increment
        if self.jitter:
            base *= random.uniform(1.0 - self.jitter, 1.0 + self.jitter)
        return max(0.0, base)


def _status_code(exc: BaseException) -> Optional[int]:
    if isinstance(exc, openai.APIStatusError):
        return exc.status_code
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


def is_transient(exc: BaseException) -> bool:
    """Whether ``exc`` is worth a whole-run retry.

    Transient: ``TransientExecutionFailure``, timeouts, connection errors,
    rate limits and server-side (5xx) HTTP errors from ``openai`` or
    ``httpx``. Every other recipekit error is permanent.
    """
    if isinstance(exc, TransientExecutionFailure):
        return True
    if isinstance(exc, RecipeKitError):
        return False
    if isinstance(exc, _OPENAI_TRANSIENT):
        return True
    status = _status_code(exc)
    if status is not None:
        return status >= 500 or status in _RETRYABLE_STATUS
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
        return True
    return isinstance(exc, (TimeoutError, ConnectionError))


def classify_failure(exc: BaseException, context: str = "chat") -> ExecutionFailure:
    """Wrap a raw chat-boundary exception in the matching ``ExecutionFailure``.

    An ``ExecutionFailure`` is returned unchanged. The caller raises the
    result ``from exc``.
    """
    if isinstance(exc, ExecutionFailure):
        return exc
    kind = TransientExecutionFailure if is_transient(exc) else PermanentExecutionFailure
    return kind(f"{context} failed: {type(exc).__name__}: {exc}")


def retry_call(
    operation: Callable[[], T],
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Optional[Callable[[float], None]] = None,
    on_retry: Optional[Callable[[int, int, BaseException, float], None]] = None,
) -> T:
    """Run ``operation`` up to ``policy.max_attempts`` times.

    Only transient failures are retried; the last failure propagates
    unchanged. ``on_retry(attempt, max_attempts, exc, delay)`` is called
    before each sleep.
    """
    policy = policy or RetryPolicy()
    sleep = sleep or time.sleep
    attempts = max(1, int(policy.max_attempts))
    attempt = 0
    while True:
        attempt += 1
        try:
            return operation()
        except Exception as exc:
            if attempt >= attempts or not is_transient(exc):
                raise
            delay = policy.delay_for(attempt)
            logger.warning("Attempt %d/%d failed: %s. Retrying in %.1fs", attempt, attempts, exc, delay)
            if on_retry is not None:
                on_retry(attempt, attempts, exc, delay)
            sleep(delay)
