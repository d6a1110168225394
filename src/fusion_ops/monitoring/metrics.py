"""Custom Prometheus metrics for the Fusion operation engine.

Exposed through the default prometheus_client registry; embedders serve it
with prometheus_client.start_http_server() or their own /metrics endpoint.
Useful alerts:
- operation_wait_seconds{outcome="failed"} (operations failing server-side)
- retries_total{outcome="exhausted"} (token endpoint unhealthy)
- dependent_deletions_total{outcome="failed"} (teardown leaving debris)
"""

from prometheus_client import Counter, Histogram

# === Operation polling ===

operation_polls_total = Counter(
    "fusion_operation_polls_total",
    "Total operation re-fetches issued by the poller",
    ["request_type"],
)
"""
Poll counter by request type.

Labels:
- request_type: CreateVolume, DeletePlacementGroup, ... ("unknown" if absent)
"""

operation_wait_seconds = Histogram(
    "fusion_operation_wait_seconds",
    "Time spent waiting for operations to settle",
    ["outcome"],
    buckets=[0.1, 0.5, 1, 2.5, 5, 10, 30, 60, 120, 300, 600],
)
"""
Wait duration by outcome.

Labels:
- outcome: succeeded, failed, vanished, cancelled, error
"""

# === Retry ===

retries_total = Counter(
    "fusion_retries_total",
    "Retry loop outcomes by work name",
    ["name", "outcome"],
)
"""
Labels:
- name: unit of work, e.g. pure1_token
- outcome: succeeded, permanent, exhausted
"""

# === Compound mutations ===

compound_mutations_total = Counter(
    "fusion_compound_mutations_total",
    "Compound mutations by name and outcome",
    ["mutation", "outcome"],
)

dependent_deletions_total = Counter(
    "fusion_dependent_deletions_total",
    "Dependent resource deletions performed during teardown",
    ["outcome"],
)
