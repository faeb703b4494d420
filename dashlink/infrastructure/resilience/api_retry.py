"""Service for executing backend calls with automatic retries.

Implements exponential backoff with jitter for transient failures
(5xx, network errors, timeouts). Client errors (4xx), including
authentication (401) and authorization (403) failures, are never retried.
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional, TypeVar

from dashlink.domain.events.api_events import EventListener, RetryScheduled, dispatch_event
from dashlink.domain.models.api import RetryContext
from dashlink.infrastructure.http.errors import is_retryable, status_of

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_SECONDS = 1.0
MAX_JITTER_SECONDS = 1.0

Sleeper = Callable[[float], Awaitable[Any]]


class RetryEngine:
    """Wraps a request function with bounded retries and backoff."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
        max_jitter: float = MAX_JITTER_SECONDS,
        sleep: Sleeper = asyncio.sleep,
        rng: Optional[random.Random] = None,
        event_listener: Optional[EventListener] = None,
    ):
        """Initializes the RetryEngine.

        Args:
            max_retries: Default number of retries after the first attempt.
            base_delay: Default delay in seconds before the first retry.
            max_jitter: Upper bound (exclusive) of the random delay added to
                every backoff, in seconds.
            sleep: Coroutine used to wait between attempts.
            rng: Random source for the jitter.
            event_listener: Optional receiver of RetryScheduled events.
        """
        _validate(max_retries, base_delay)
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_jitter = max_jitter
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._event_listener = event_listener

        logger.info(
            f"RetryEngine initialized: max_retries={max_retries}, "
            f"base_delay={base_delay}s, max_jitter={max_jitter}s"
        )

    def backoff_delay(self, attempt: int, base_delay: Optional[float] = None) -> float:
        """Delay before the retry that follows ``attempt`` (0-indexed)."""
        base = self.base_delay if base_delay is None else base_delay
        return base * (2 ** attempt) + self._rng.random() * self.max_jitter

    async def with_retry(
        self,
        request_fn: Callable[[], Awaitable[T]],
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
    ) -> T:
        """Runs ``request_fn`` until it succeeds or a final failure occurs.

        Args:
            request_fn: Zero-argument coroutine function issuing the request.
                It is called once per attempt.
            max_retries: Overrides the engine default for this call.
            base_delay: Overrides the engine default for this call.

        Returns:
            The value returned by the first successful attempt.

        Raises:
            Exception: The first non-retryable failure, or the failure of the
                last allowed attempt, unchanged.
        """
        context = RetryContext(
            max_retries=self.max_retries if max_retries is None else max_retries,
            base_delay=self.base_delay if base_delay is None else base_delay,
        )
        _validate(context.max_retries, context.base_delay)

        while True:
            try:
                return await request_fn()
            except Exception as e:
                if not is_retryable(e):
                    logger.debug(
                        f"Not retrying {type(e).__name__} (status={status_of(e)}) "
                        f"on attempt {context.attempt + 1}"
                    )
                    raise
                if context.is_final_attempt:
                    logger.error(
                        f"Giving up after {context.total_attempts} attempts. "
                        f"Last error: {type(e).__name__}: {e}"
                    )
                    raise

                delay = self.backoff_delay(context.attempt, context.base_delay)
                logger.warning(
                    f"Retryable error on attempt {context.attempt + 1}/{context.total_attempts}: "
                    f"{type(e).__name__}. Waiting {delay:.2f}s..."
                )
                dispatch_event(
                    self._event_listener,
                    RetryScheduled(
                        attempt_number=context.attempt + 1,
                        delay_seconds=delay,
                        error_type=type(e).__name__,
                    ),
                )
                await self._sleep(delay)
                context.attempt += 1


def _validate(max_retries: int, base_delay: float) -> None:
    if max_retries < 0:
        raise ValueError(f"max_retries must be >= 0, got {max_retries}")
    if base_delay < 0:
        raise ValueError(f"base_delay must be >= 0, got {base_delay}")
