"""Retry policy for rate-limited and transient failures.

Only ``ServiceUnavailableError`` (including ``RateLimitExceededError``) and,
optionally, ``TransportError`` are retried. Invalid requests, authorization
failures and missing resources propagate on the first attempt. When the
attempts run out the last error is re-raised as is.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
)

from smartsheet_client.exceptions import ServiceUnavailableError, TransportError
from smartsheet_client.request import IDEMPOTENT_METHODS

BACKOFF_STRATEGIES = ("exponential", "fixed")

DEFAULT_MAX_ATTEMPTS = 4
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 30.0


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of :meth:`RetryPolicy.should_retry`."""

    retry: bool
    delay: float = 0.0


class RetryPolicy:
    """Decides whether and when a failed call is retried.

    Args:
        max_attempts: Total attempts including the first one.
        backoff: ``"exponential"`` (base_delay * 2**(attempt-1)) or ``"fixed"``.
        base_delay: Delay in seconds for the first retry.
        max_delay: Upper bound for any single delay, including Retry-After.
        retry_transport_errors: Retry network failures like 503s.
        idempotent_only: Only retry GET/HEAD/PUT/DELETE/OPTIONS. Off by
            default, so a POST that failed with a 503 is sent again.
        sleep: Blocking sleep used between attempts.
        async_sleep: Sleep used by the async client.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff: str = "exponential",
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        retry_transport_errors: bool = True,
        idempotent_only: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        async_sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if backoff not in BACKOFF_STRATEGIES:
            raise ValueError(f"backoff must be one of: {BACKOFF_STRATEGIES}")
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.retry_transport_errors = retry_transport_errors
        self.idempotent_only = idempotent_only
        self._sleep = sleep
        self._async_sleep = async_sleep

    @classmethod
    def never(cls) -> RetryPolicy:
        """A policy that makes exactly one attempt."""
        return cls(max_attempts=1)

    def is_retryable(self, error: BaseException, method: str | None = None) -> bool:
        """Return True if ``error`` is a kind this policy retries."""
        if self.idempotent_only and method is not None and method not in IDEMPOTENT_METHODS:
            return False
        if isinstance(error, ServiceUnavailableError):
            return True
        return self.retry_transport_errors and isinstance(error, TransportError)

    def delay_for(self, attempt: int, error: BaseException | None = None) -> float:
        """Delay before the attempt following ``attempt`` (1-based)."""
        if self.backoff == "fixed":
            delay = self.base_delay
        else:
            delay = self.base_delay * 2 ** (attempt - 1)
        retry_after = getattr(error, "retry_after", None)
        if retry_after is not None:
            delay = max(delay, retry_after)
        return min(delay, self.max_delay)

    def should_retry(
        self, attempt: int, error: BaseException, method: str | None = None
    ) -> RetryDecision:
        """Decide what to do after ``attempt`` failed with ``error``."""
        if attempt >= self.max_attempts or not self.is_retryable(error, method):
            return RetryDecision(retry=False)
        return RetryDecision(retry=True, delay=self.delay_for(attempt, error))

    def retrying(self, method: str | None = None) -> Retrying:
        """Build a tenacity controller for one blocking call."""
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            retry=retry_if_exception(lambda e: self.is_retryable(e, method)),
            wait=self._wait,
            sleep=self._sleep,
            before_sleep=_log_retry,
            reraise=True,
        )

    def async_retrying(self, method: str | None = None) -> AsyncRetrying:
        """Build a tenacity controller for one async call."""
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            retry=retry_if_exception(lambda e: self.is_retryable(e, method)),
            wait=self._wait,
            sleep=self._async_sleep,
            before_sleep=_log_retry,
            reraise=True,
        )

    def _wait(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        return self.delay_for(retry_state.attempt_number, error)

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_attempts={self.max_attempts}, backoff={self.backoff!r}, "
            f"base_delay={self.base_delay}, max_delay={self.max_delay})"
        )


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        "Retrying request after {error_type} (attempt {attempt}, waiting {delay:.2f}s)",
        error_type=type(error).__name__,
        attempt=retry_state.attempt_number,
        delay=delay,
    )
