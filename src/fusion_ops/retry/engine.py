"""
Exponential-backoff retry engine.

Retries a unit of work that may fail transiently. The work closure decides
what is retryable: it returns (should_stop, error), where should_stop=True
ends the loop (success when error is None, permanent failure otherwise) and
should_stop=False asks for another attempt.

Backoff Policy:
    attempt 1 runs immediately; after failed attempt k the engine sleeps
    base_delay * multiplier ** (k - 1), optionally plus uniform jitter of
    up to `jitter` times that delay.

Usage:
    engine = RetryEngine.from_settings(settings, name="pure1_token")

    async def fetch_token():
        try:
            ...
        except FusionHTTPError as e:
            return should_stop_for_status(e.status_code), e
        return True, None

    metadata = await engine.run(fetch_token)
"""

import asyncio
import random
import time
from typing import Awaitable, Callable, Optional

import structlog

from fusion_ops.client.exceptions import is_retryable_status
from fusion_ops.config import Settings
from fusion_ops.monitoring.metrics import retries_total
from fusion_ops.retry.exceptions import RetryExhausted
from fusion_ops.retry.metadata import RetryMetadata

logger = structlog.get_logger(__name__)

RetryWork = Callable[[], Awaitable[tuple[bool, Optional[BaseException]]]]


def should_stop_for_status(status_code: int) -> bool:
    """Stop retrying unless the status is a server-side (5xx) error."""
    return not is_retryable_status(status_code)


class RetryEngine:
    """
    Retry loop with exponential backoff.

    Attributes:
        base_delay: Seconds slept after the first failed attempt
        multiplier: Growth factor between consecutive delays
        max_attempts: Maximum number of invocations of the work closure
        jitter: Fraction of each delay added at random (0 disables jitter)
        name: Label for logs and metrics
    """

    def __init__(
        self,
        base_delay: float,
        multiplier: float,
        max_attempts: int,
        jitter: float = 0.0,
        name: str = "retry",
        rng: Optional[random.Random] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if multiplier <= 0:
            raise ValueError("multiplier must be > 0")
        if jitter < 0:
            raise ValueError("jitter must be >= 0")

        self.base_delay = base_delay
        self.multiplier = multiplier
        self.max_attempts = max_attempts
        self.jitter = jitter
        self.name = name
        self._rng = rng or random.Random()

    @classmethod
    def from_settings(cls, settings: Settings, name: str) -> "RetryEngine":
        return cls(
            base_delay=settings.TOKEN_RETRY_BASE_DELAY,
            multiplier=settings.TOKEN_RETRY_MULTIPLIER,
            max_attempts=settings.TOKEN_RETRY_MAX_ATTEMPTS,
            jitter=settings.RETRY_JITTER,
            name=name,
        )

    def backoff_for(self, failed_attempt: int) -> float:
        """Delay to sleep after the given (1-indexed) failed attempt."""
        delay = self.base_delay * self.multiplier ** (failed_attempt - 1)
        if self.jitter:
            delay += self._rng.uniform(0, self.jitter * delay)
        return delay

    async def run(self, work: RetryWork) -> RetryMetadata:
        """
        Invoke `work` until it asks to stop or the attempt budget runs out.

        Args:
            work: Async closure returning (should_stop, error)

        Returns:
            RetryMetadata for a successful loop

        Raises:
            BaseException: The error of the last attempt, as-is, when the work
                stopped with an error or the budget was exhausted
            RetryExhausted: Budget exhausted without any error reported
        """
        start = time.monotonic()
        delays: list[float] = []
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                delay = self.backoff_for(attempt - 1)
                delays.append(delay)
                logger.debug(
                    "Backing off before retry",
                    name=self.name,
                    attempt=attempt,
                    delay_seconds=round(delay, 3),
                )
                await asyncio.sleep(delay)

            should_stop, error = await work()
            last_error = error

            if should_stop:
                metadata = self._metadata(attempt, delays, start, succeeded=error is None)
                if error is None:
                    retries_total.labels(name=self.name, outcome="succeeded").inc()
                    if attempt > 1:
                        logger.info("Retry succeeded", name=self.name, attempts=attempt)
                    return metadata

                retries_total.labels(name=self.name, outcome="permanent").inc()
                logger.warning(
                    "Permanent failure, not retrying",
                    name=self.name,
                    attempt=attempt,
                    error=str(error),
                    error_type=type(error).__name__,
                )
                raise error

            logger.info(
                "Retryable failure",
                name=self.name,
                attempt=attempt,
                max_attempts=self.max_attempts,
                error=str(error) if error else None,
            )

        metadata = self._metadata(self.max_attempts, delays, start, succeeded=False)
        retries_total.labels(name=self.name, outcome="exhausted").inc()
        logger.error(
            "Retry budget exhausted",
            name=self.name,
            attempts=self.max_attempts,
            total_latency_ms=metadata.total_latency_ms,
            error=str(last_error) if last_error else None,
        )
        if last_error is not None:
            raise last_error
        raise RetryExhausted(metadata)

    def _metadata(
        self, attempts: int, delays: list[float], start: float, succeeded: bool
    ) -> RetryMetadata:
        return RetryMetadata(
            name=self.name,
            attempts=attempts,
            delays=tuple(delays),
            total_latency_ms=int((time.monotonic() - start) * 1000),
            succeeded=succeeded,
        )
