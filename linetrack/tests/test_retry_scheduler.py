"""Tests for RetryScheduler: lifecycle, tick outcomes, lease handling.

Includes the end-to-end scenario: a pass over three commits where the
middle one fails, followed by a scheduler tick that completes it.
"""

import threading
import time
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

from linetrack.core.constants import OPERATION_COMMIT_ANALYSIS
from linetrack.core.failures import BackoffPolicy, RetryScheduler

T1 = datetime(2024, 3, 1, 9, 0, 0)
T2 = T1 + timedelta(hours=1)
T3 = T1 + timedelta(hours=2)


def _scheduler(ledger, leases, handler=None, **kwargs) -> RetryScheduler:
    scheduler = RetryScheduler(ledger, leases, policy=BackoffPolicy(), **kwargs)
    if handler is not None:
        scheduler.register_handler(OPERATION_COMMIT_ANALYSIS, handler)
    return scheduler


def _later(minutes=10) -> datetime:
    return datetime.utcnow() + timedelta(minutes=minutes)


# ── Tests: Lifecycle ─────────────────────────────────────────────────────


class TestSchedulerLifecycle:

    def test_initial_state(self, ledger, leases):
        scheduler = _scheduler(ledger, leases)
        assert scheduler.is_running is False
        assert scheduler._thread is None

    def test_start_runs_ticks_and_stop_joins(self, ledger, leases):
        scheduler = _scheduler(ledger, leases, poll_interval=0.02)
        ticked = threading.Event()

        with patch.object(scheduler, "run_once", side_effect=lambda: ticked.set()):
            scheduler.start()
            assert ticked.wait(timeout=5)
            assert scheduler._thread.daemon is True
            scheduler.stop()

        assert scheduler.is_running is False
        assert not scheduler._thread.is_alive()

    def test_stop_wakes_long_sleep(self, ledger, leases):
        scheduler = _scheduler(ledger, leases, poll_interval=60)
        ticked = threading.Event()

        with patch.object(scheduler, "run_once", side_effect=lambda: ticked.set()):
            scheduler.start()
            ticked.wait(timeout=5)
            started = time.monotonic()
            scheduler.stop()

        assert time.monotonic() - started < 5
        assert not scheduler._thread.is_alive()

    def test_double_start_is_safe(self, ledger, leases):
        scheduler = _scheduler(ledger, leases)
        scheduler._running = True
        scheduler.start()
        assert scheduler._thread is None

    def test_tick_errors_do_not_kill_loop(self, ledger, leases):
        scheduler = _scheduler(ledger, leases, poll_interval=0.01)
        calls = []
        second = threading.Event()

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("db hiccup")
            second.set()

        with patch.object(scheduler, "run_once", side_effect=flaky):
            scheduler.start()
            assert second.wait(timeout=5)
            scheduler.stop()


# ── Tests: Tick outcomes ─────────────────────────────────────────────────


class TestRunOnce:

    def _failure(self, ledger, repository, sha="abc"):
        return ledger.record_failure(
            repository["repository_id"], OPERATION_COMMIT_ANALYSIS, sha, "boom",
            context={"commit_sha": sha},
        )

    def test_success_deletes_entry(self, ledger, leases, repository):
        record = self._failure(ledger, repository)
        handler = MagicMock(return_value=True)

        result = _scheduler(ledger, leases, handler).run_once(now=_later())

        handler.assert_called_once()
        assert handler.call_args[0][0].failure_id == record.failure_id
        assert (result.attempted, result.succeeded, result.failed) == (1, 1, 0)
        assert ledger.get_failure(record.failure_id) is None

    def test_failure_increments_retry_count(self, ledger, leases, repository):
        record = self._failure(ledger, repository)
        handler = MagicMock(side_effect=RuntimeError("still broken"))
        now = _later()

        result = _scheduler(ledger, leases, handler).run_once(now=now)

        assert result.failed == 1
        updated = ledger.get_failure(record.failure_id)
        assert updated.retry_count == 1
        assert updated.last_retry_at == now
        assert updated.error_message == "still broken"
        assert "still broken" in updated.stack_trace

    def test_backoff_window_respected(self, ledger, leases, repository):
        self._failure(ledger, repository)
        handler = MagicMock(return_value=True)

        result = _scheduler(ledger, leases, handler).run_once(now=_later(minutes=1))

        handler.assert_not_called()
        assert result.attempted == 0

    def test_exhaustion_keeps_entry(self, ledger, leases, repository):
        record = self._failure(ledger, repository)
        ledger.update_failure(record.failure_id, retry_count=2, last_retry_at=datetime.utcnow())
        handler = MagicMock(side_effect=RuntimeError("nope"))
        scheduler = _scheduler(ledger, leases, handler)

        result = scheduler.run_once(now=_later(minutes=30))

        assert result.exhausted == 1
        kept = ledger.get_failure(record.failure_id)
        assert kept.retry_count == 3

        handler.reset_mock()
        again = scheduler.run_once(now=_later(minutes=24 * 60))
        handler.assert_not_called()
        assert again.attempted == 0
        assert ledger.get_failure(record.failure_id) is not None

    def test_busy_lease_skips_without_counting(self, ledger, leases, repository):
        record = self._failure(ledger, repository)
        handler = MagicMock(return_value=True)

        with leases.lease(repository["repository_id"], owner="analysis"):
            result = _scheduler(ledger, leases, handler).run_once(now=_later())

        handler.assert_not_called()
        assert result.skipped == 1
        assert result.attempted == 0
        assert ledger.get_failure(record.failure_id).retry_count == 0

    def test_handler_runs_inside_lease(self, ledger, leases, repository):
        self._failure(ledger, repository)
        seen = []

        def handler(record):
            seen.append(leases.active_session(record.repository_id).owner)
            return True

        _scheduler(ledger, leases, handler).run_once(now=_later())

        assert seen == ["retry-scheduler"]

    def test_unknown_operation_left_untouched(self, ledger, leases, repository):
        record = ledger.record_failure(repository["repository_id"], "mystery-op", "x", "boom")

        result = _scheduler(ledger, leases, MagicMock()).run_once(now=_later())

        assert result.skipped == 1
        assert ledger.get_failure(record.failure_id).retry_count == 0

    def test_false_result_counts_as_failure(self, ledger, leases, repository):
        record = self._failure(ledger, repository)

        _scheduler(ledger, leases, MagicMock(return_value=False)).run_once(now=_later())

        assert ledger.get_failure(record.failure_id).retry_count == 1


# ── Tests: End to end ────────────────────────────────────────────────────


class TestEndToEnd:

    def test_failed_commit_completed_by_next_tick(
        self, orchestrator, repositories, ledger, leases, repository, fake_vcs
    ):
        fake_vcs.add_commit("c1", T1, {"src/A.cs": "a();\n"}, stats=(1, 0))
        fake_vcs.add_commit("c2", T2, {"src/A.cs": "a();\nb();\n"}, stats=(1, 0))
        fake_vcs.add_commit("c3", T3, {"src/A.cs": "a();\nb();\nc();\n"}, stats=(1, 0))
        fake_vcs.fail_checkout["c2"] = OSError("transient I/O error")
        rid = repository["repository_id"]

        result = orchestrator.analyze_repository(rid)

        assert [s["commit_sha"] for s in repositories.list_snapshots(rid)] == ["c1", "c3"]
        assert len(ledger.list_failures(rid)) == 1
        assert result.watermark == T3

        fake_vcs.fail_checkout.clear()
        scheduler = _scheduler(ledger, leases, orchestrator.replay_commit_analysis)
        tick = scheduler.run_once(now=_later())

        assert tick.succeeded == 1
        assert [s["commit_sha"] for s in repositories.list_snapshots(rid)] == ["c1", "c2", "c3"]
        assert ledger.list_failures(rid) == []
        assert repositories.get_repository(rid)["watermark"] == T3
