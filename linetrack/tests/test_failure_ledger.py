"""Tests for the failure ledger and backoff policy."""

from datetime import datetime, timedelta

import pytest

from linetrack.core.constants import OPERATION_COMMIT_ANALYSIS
from linetrack.core.failures import (
    BackoffPolicy,
    FailureRecord,
    RetryState,
    compute_backoff,
    retry_state,
)

T0 = datetime(2024, 3, 1, 12, 0, 0)


def _record(retry_count=0, failed_at=T0, last_retry_at=None) -> FailureRecord:
    return FailureRecord(
        failure_id="f",
        repository_id="r",
        operation_type=OPERATION_COMMIT_ANALYSIS,
        entity_id="sha",
        error_message="boom",
        stack_trace="",
        failed_at=failed_at,
        retry_count=retry_count,
        last_retry_at=last_retry_at,
    )


# ── Tests: Backoff ───────────────────────────────────────────────────────


class TestComputeBackoff:

    @pytest.mark.parametrize("retry_count, minutes", [
        (0, 5), (1, 10), (2, 20), (3, 40), (4, 60), (10, 60),
    ])
    def test_doubles_and_caps(self, retry_count, minutes):
        assert compute_backoff(retry_count, 5, 60) == timedelta(minutes=minutes)

    def test_policy_delay(self):
        assert BackoffPolicy(base_minutes=1, cap_minutes=3).delay(5) == timedelta(minutes=3)


class TestRetryState:

    def test_pending_then_retryable(self):
        policy = BackoffPolicy()
        record = _record()

        early = retry_state(record, T0 + timedelta(minutes=4), policy)
        assert early.state is RetryState.PENDING
        assert early.eligible_at == T0 + timedelta(minutes=5)

        due = retry_state(record, T0 + timedelta(minutes=5), policy)
        assert due.state is RetryState.RETRYABLE

    def test_measured_from_last_retry(self):
        last = T0 + timedelta(hours=1)
        record = _record(retry_count=2, last_retry_at=last)
        decision = retry_state(record, last + timedelta(minutes=19), BackoffPolicy())
        assert decision.state is RetryState.PENDING
        assert decision.eligible_at == last + timedelta(minutes=20)

    def test_exhausted(self):
        decision = retry_state(_record(retry_count=3), T0 + timedelta(days=1), BackoffPolicy())
        assert decision.state is RetryState.EXHAUSTED
        assert decision.eligible_at is None


# ── Tests: Ledger ────────────────────────────────────────────────────────


class TestFailureLedger:

    def test_record_and_get(self, ledger, repository):
        record = ledger.record_failure(
            repository["repository_id"], OPERATION_COMMIT_ANALYSIS, "abc123",
            error_message="checkout failed", stack_trace="Traceback...",
            context={"local_path": "/tmp/x", "commit_sha": "abc123"}, now=T0,
        )

        fetched = ledger.get_failure(record.failure_id)
        assert fetched.entity_id == "abc123"
        assert fetched.retry_count == 0
        assert fetched.failed_at == T0
        assert fetched.context["local_path"] == "/tmp/x"
        assert fetched.to_dict()["error_message"] == "checkout failed"

    def test_same_unit_is_upserted(self, ledger, repository):
        rid = repository["repository_id"]
        first = ledger.record_failure(rid, OPERATION_COMMIT_ANALYSIS, "abc", "one", now=T0)
        ledger.update_failure(first.failure_id, retry_count=2, last_retry_at=T0)

        second = ledger.record_failure(rid, OPERATION_COMMIT_ANALYSIS, "abc", "two",
                                       now=T0 + timedelta(minutes=1))

        failures = ledger.list_failures(rid)
        assert len(failures) == 1
        assert second.failure_id == first.failure_id
        assert failures[0].error_message == "two"
        assert failures[0].retry_count == 2

    def test_list_retryable_respects_backoff_and_limit(self, ledger, repository):
        rid = repository["repository_id"]
        due = ledger.record_failure(rid, OPERATION_COMMIT_ANALYSIS, "due", "e", now=T0)
        ledger.record_failure(rid, OPERATION_COMMIT_ANALYSIS, "fresh", "e",
                              now=T0 + timedelta(minutes=3))
        exhausted = ledger.record_failure(rid, OPERATION_COMMIT_ANALYSIS, "dead", "e", now=T0)
        ledger.update_failure(exhausted.failure_id, retry_count=3, last_retry_at=T0)

        retryable = ledger.list_retryable(now=T0 + timedelta(minutes=6))

        assert [r.failure_id for r in retryable] == [due.failure_id]

        later = ledger.list_retryable(max_retry_count=4, now=T0 + timedelta(hours=2))
        assert {r.entity_id for r in later} == {"due", "fresh", "dead"}

    def test_delete(self, ledger, repository):
        record = ledger.record_failure(repository["repository_id"], OPERATION_COMMIT_ANALYSIS, "x", "e")
        assert ledger.delete_failure(record.failure_id) is True
        assert ledger.delete_failure(record.failure_id) is False
        assert ledger.get_failure(record.failure_id) is None

    def test_update_unknown_returns_none(self, ledger):
        from uuid import uuid4
        assert ledger.update_failure(str(uuid4()), retry_count=1) is None

    def test_cascade_on_repository_delete(self, ledger, repositories, repository):
        rid = repository["repository_id"]
        ledger.record_failure(rid, OPERATION_COMMIT_ANALYSIS, "x", "e")
        repositories.delete_repository(rid)
        assert ledger.list_failures(rid) == []
