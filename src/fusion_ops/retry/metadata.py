"""
Retry metadata tracking.

This module defines the RetryMetadata dataclass that captures the history
of a retry loop for logging and metrics.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RetryMetadata:
    """
    History of a single retry loop.

    Attributes:
        name: Name of the retried unit of work (e.g. "pure1_token")
        attempts: Number of times the work was invoked
        delays: Seconds slept before each attempt after the first
        total_latency_ms: Wall time from first attempt to final outcome (ms)
        succeeded: Whether the loop ended with a successful attempt
    """

    name: str
    attempts: int
    delays: tuple[float, ...] = field(default_factory=tuple)
    total_latency_ms: int = 0
    succeeded: bool = True

    def __post_init__(self) -> None:
        """Validate metadata invariants."""
        if self.attempts < 1:
            raise ValueError("attempts must be >= 1")

        if len(self.delays) != self.attempts - 1:
            raise ValueError("delays must hold exactly one entry per retried attempt")

        if self.total_latency_ms < 0:
            raise ValueError("total_latency_ms must be >= 0")
