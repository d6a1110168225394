"""
Retry primitive with exponential backoff.

Used for transient-failure recovery outside the operation protocol, most
notably access-token acquisition. The work closure classifies its own
errors: 5xx responses are retryable, anything else is permanent.

Main Components:
    - RetryEngine: Backoff loop around an async (should_stop, error) closure
    - RetryMetadata: Immutable history of a retry loop
    - RetryExhausted: Budget ran out without an error to re-raise

Usage:
    >>> from fusion_ops.retry import RetryEngine
    >>> engine = RetryEngine(base_delay=0.1, multiplier=2.0, max_attempts=5, name="token")
    >>> metadata = await engine.run(work)
"""

from fusion_ops.retry.engine import RetryEngine, RetryWork, should_stop_for_status
from fusion_ops.retry.exceptions import RetryExhausted
from fusion_ops.retry.metadata import RetryMetadata

__all__ = [
    "RetryEngine",
    "RetryWork",
    "RetryExhausted",
    "RetryMetadata",
    "should_stop_for_status",
]
