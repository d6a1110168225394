"""
Operation engine for the Pure Fusion storage-orchestration control plane.

Mutating REST calls return an asynchronous Operation handle instead of a
finished result. This package drives those handles to completion:
- Operation polling with advisory retry delays and cancellation
- Structured classification of failed operations and transport errors
- Exponential-backoff retry for transient failures (token acquisition)
- Compound mutations (create-then-enrich, teardown-with-dependents)

Architecture: httpx REST client + asyncio poller + pydantic models
"""

__version__ = "0.1.0"
