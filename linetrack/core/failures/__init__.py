"""
Failure ledger and retry scheduling

Exports:
- FailureLedger / FailureRecord: dead-letter entries for failed work
- BackoffPolicy, RetryState, RetryDecision, retry_state, compute_backoff
- RetryScheduler / RetryTickResult: background retry loop
"""

from .backoff import BackoffPolicy, RetryDecision, RetryState, compute_backoff, retry_state
from .ledger import FailureLedger, FailureRecord
from .scheduler import RetryScheduler, RetryTickResult

__all__ = [
    "BackoffPolicy",
    "FailureLedger",
    "FailureRecord",
    "RetryDecision",
    "RetryScheduler",
    "RetryState",
    "RetryTickResult",
    "compute_backoff",
    "retry_state",
]
