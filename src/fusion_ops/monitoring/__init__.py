"""Monitoring and metrics instrumentation for the Fusion operation engine."""

from fusion_ops.monitoring.metrics import (
    compound_mutations_total,
    dependent_deletions_total,
    operation_polls_total,
    operation_wait_seconds,
    retries_total,
)

__all__ = [
    "operation_polls_total",
    "operation_wait_seconds",
    "retries_total",
    "compound_mutations_total",
    "dependent_deletions_total",
]
