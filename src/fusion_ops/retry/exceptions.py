"""
Retry engine exceptions.

A retry loop normally re-raises the last error of the work closure as-is.
RetryExhausted only covers the degenerate case where every attempt asked to
be retried without reporting an error.
"""

from fusion_ops.retry.metadata import RetryMetadata


class RetryExhausted(Exception):
    """
    Raised when the attempt budget ran out without any error to re-raise.

    Attributes:
        retry_metadata: Complete retry history
    """

    def __init__(self, retry_metadata: RetryMetadata) -> None:
        self.retry_metadata = retry_metadata
        super().__init__(
            f"'{retry_metadata.name}' did not complete after "
            f"{retry_metadata.attempts} attempts"
        )
