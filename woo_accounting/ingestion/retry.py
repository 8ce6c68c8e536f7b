"""
Retry Policy

A single policy type applied by the client to every upstream call.
"""

from dataclasses import dataclass, field
from typing import FrozenSet

from woo_accounting.errors import UpstreamFetchError

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with exponential backoff.

    Attributes:
        max_attempts: Total attempts including the first one (1 = no retry)
        backoff_seconds: Delay before the second attempt, doubled afterwards
        retry_statuses: Upstream statuses worth another attempt; errors
            without a status (network failure, timeout) are always retried
    """
    max_attempts: int = 1
    backoff_seconds: float = 0.5
    retry_statuses: FrozenSet[int] = field(default=RETRYABLE_STATUSES)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must not be negative")

    def should_retry(self, error: UpstreamFetchError, attempt: int) -> bool:
        if attempt >= self.max_attempts:
            return False
        if error.upstream_status is None:
            return True
        return error.upstream_status in self.retry_statuses

    def delay(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt"""
        return self.backoff_seconds * (2 ** (attempt - 1))
