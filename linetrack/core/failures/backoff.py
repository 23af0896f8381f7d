"""Backoff policy and retry state for failure ledger entries.

An entry that has been retried `n` times becomes eligible again
`min(base * 2**n, cap)` minutes after its last attempt (or after it was
recorded, if it was never retried). Once `n` reaches the retry limit the
entry is exhausted and is left in the ledger for inspection.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from ..constants import (
    DEFAULT_BASE_BACKOFF_MINUTES,
    DEFAULT_MAX_BACKOFF_MINUTES,
    DEFAULT_MAX_RETRY_COUNT,
)


class RetryState(Enum):
    PENDING = "pending"         # backoff window still open
    RETRYABLE = "retryable"     # due for another attempt
    EXHAUSTED = "exhausted"     # retry limit reached; kept, never retried


@dataclass(frozen=True)
class BackoffPolicy:
    base_minutes: float = DEFAULT_BASE_BACKOFF_MINUTES
    cap_minutes: float = DEFAULT_MAX_BACKOFF_MINUTES
    max_retry_count: int = DEFAULT_MAX_RETRY_COUNT

    def delay(self, retry_count: int) -> timedelta:
        return compute_backoff(retry_count, self.base_minutes, self.cap_minutes)


@dataclass(frozen=True)
class RetryDecision:
    state: RetryState
    eligible_at: Optional[datetime] = None


def compute_backoff(
    retry_count: int,
    base_minutes: float = DEFAULT_BASE_BACKOFF_MINUTES,
    cap_minutes: float = DEFAULT_MAX_BACKOFF_MINUTES,
) -> timedelta:
    """Delay before attempt number retry_count + 1."""
    minutes = min(base_minutes * (2 ** max(retry_count, 0)), cap_minutes)
    return timedelta(minutes=minutes)


def retry_state(record, now: datetime, policy: BackoffPolicy) -> RetryDecision:
    """Classify a ledger entry.

    Args:
        record: Anything with retry_count, failed_at and last_retry_at
        now: Reference time (naive UTC)
        policy: Backoff parameters

    Returns:
        RetryDecision; eligible_at is None for exhausted entries
    """
    if record.retry_count >= policy.max_retry_count:
        return RetryDecision(RetryState.EXHAUSTED)

    reference = record.last_retry_at or record.failed_at
    eligible_at = reference + policy.delay(record.retry_count)
    if now >= eligible_at:
        return RetryDecision(RetryState.RETRYABLE, eligible_at)
    return RetryDecision(RetryState.PENDING, eligible_at)
