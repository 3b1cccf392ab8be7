"""Policy for executing API calls with automatic retries.

Implements exponential backoff with jitter for transient failures such as
rate limits (429), temporary server issues (5xx), timeouts and dropped
connections. Requests that cannot succeed by repetition (401, 422, ...) are
surfaced immediately.
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, FrozenSet, Iterable, Optional, TypeVar

import httpx

from creeble.domain.events.api_events import EventHook, RetryScheduled
from creeble.domain.models.common import RetryAttempt
from creeble.domain.models.errors import ApiError, ErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_MS = 1000
DEFAULT_MAX_DELAY_MS = 30000
# 429: Rate limit exceeded
# 500: Internal server error
# 502: Bad gateway
# 503: Service unavailable
# 504: Gateway timeout
DEFAULT_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
# Jitter is drawn from [0, JITTER_FRACTION) of the exponential delay
JITTER_FRACTION = 0.1

TRANSIENT_KINDS = frozenset({ErrorKind.NETWORK, ErrorKind.TIMEOUT})


class RetryPolicy:
    """Runs an async operation up to ``max_retries + 1`` times."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
        retryable_status_codes: Iterable[int] = DEFAULT_RETRYABLE_STATUS_CODES,
        on_retry: Optional[EventHook] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        random_source: Callable[[], float] = random.random,
    ):
        """Initializes the RetryPolicy.

        Args:
            max_retries: Maximum number of retries after the first attempt.
            base_delay_ms: Delay before the first retry, before jitter.
            max_delay_ms: Upper bound for any single delay.
            retryable_status_codes: HTTP status codes considered transient.
            on_retry: Optional hook receiving a RetryScheduled event per retry.
            sleep: Coroutine function used to wait, in seconds.
            random_source: Returns a float in [0, 1); scaled to the jitter.
        """
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        if base_delay_ms < 0 or max_delay_ms < 0:
            raise ValueError("Retry delays must be non-negative")
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.retryable_status_codes: FrozenSet[int] = frozenset(retryable_status_codes)
        self.on_retry = on_retry
        self._sleep = sleep
        self._random = random_source
        logger.debug(
            f"RetryPolicy initialized: max_retries={max_retries}, "
            f"base_delay={base_delay_ms}ms, max_delay={max_delay_ms}ms, "
            f"retryable_status_codes={sorted(self.retryable_status_codes)}"
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def is_retryable(self, error: BaseException) -> bool:
        """Classifies a failure as transient or permanent, ignoring the attempt budget."""
        if isinstance(error, ApiError):
            if error.kind in TRANSIENT_KINDS:
                return True
            return error.status_code is not None and error.status_code in self.retryable_status_codes
        # Raw httpx errors can reach us from custom transports
        if isinstance(error, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
            return True
        if isinstance(error, httpx.HTTPStatusError):
            return error.response.status_code in self.retryable_status_codes
        return False

    def should_retry(self, error: BaseException, attempt_index: int) -> bool:
        if attempt_index >= self.max_retries:
            return False
        return self.is_retryable(error)

    def base_delay_for(self, attempt_index: int) -> float:
        """Un-jittered exponential delay in milliseconds, capped at max_delay_ms."""
        return min(self.base_delay_ms * (2 ** attempt_index), self.max_delay_ms)

    def calculate_delay(self, attempt_index: int) -> int:
        """Exponential delay with up to 10% jitter, in whole milliseconds."""
        exponential = self.base_delay_ms * (2 ** attempt_index)
        jitter = self._random() * JITTER_FRACTION
        return int(min(exponential * (1 + jitter), self.max_delay_ms))

    async def execute(self, operation: Callable[[], Awaitable[T]], context: str = "request") -> T:
        """Executes ``operation`` with retries.

        Args:
            operation: Zero-argument coroutine function performing one call.
            context: Label used in logs and events (e.g. 'GET /v1/posts page 2').

        Returns:
            The operation's result.

        Raises:
            The error of the last attempt, unchanged, once retries are
            exhausted; or the first non-retryable error immediately.
        """
        for attempt_index in range(self.max_retries + 1):
            try:
                return await operation()
            except Exception as e:
                if not self.should_retry(e, attempt_index):
                    if attempt_index > 0:
                        logger.error(f"{context} failed after {attempt_index + 1} attempt(s): {e}")
                    raise

                attempt = RetryAttempt(
                    attempt_index=attempt_index,
                    error=e,
                    delay_ms=self.calculate_delay(attempt_index),
                )
                self._report(attempt, context)
                await self._sleep(attempt.delay_ms / 1000)
        # Unreachable: the last attempt either returns or raises
        raise AssertionError("retry loop exited without a result")

    def _report(self, attempt: RetryAttempt, context: str) -> None:
        """Logs a retry and forwards it to the hook. Never raises."""
        error = attempt.error
        kind = error.kind.value if isinstance(error, ApiError) else type(error).__name__
        status_code = getattr(error, "status_code", None)
        logger.warning(
            f"{context} failed (attempt {attempt.attempt_index + 1}/{self.max_attempts}), "
            f"retrying in {attempt.delay_ms}ms: {kind}: {error}"
        )
        if self.on_retry is None:
            return
        event = RetryScheduled(
            context=context,
            attempt_number=attempt.attempt_index + 1,
            max_attempts=self.max_attempts,
            delay_ms=attempt.delay_ms,
            error_kind=kind,
            error_message=str(error),
            status_code=status_code,
        )
        try:
            self.on_retry(event)
        except Exception as hook_error:
            logger.error(f"Retry hook failed for {context}: {hook_error}", exc_info=True)
