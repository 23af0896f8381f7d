"""Background retry scheduler for the failure ledger.

Same shape as the other background workers:
- Daemon thread with its own asyncio event loop
- Polls the database every poll_interval
- Blocking work runs via asyncio.to_thread

Each tick replays every retryable entry through the handler registered
for its operation type. An entry whose repository is busy (another
checkout session holds the lease) is skipped for the tick without
counting as an attempt.
"""

import asyncio
import logging
import threading
import traceback
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

from ..analysis.lease import CheckoutLeaseRegistry
from ..exceptions import LeaseUnavailable
from .backoff import BackoffPolicy
from .ledger import FailureLedger, FailureRecord

logger = logging.getLogger(__name__)

# handler(record) -> True when the operation is now complete
RetryHandler = Callable[[FailureRecord], bool]


@dataclass
class RetryTickResult:
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    exhausted: int = 0


class RetryScheduler:
    """Periodically retries failed operations with exponential backoff.

    Lifecycle:
    1. start() spawns a daemon thread with an asyncio loop
    2. _main_loop() calls run_once() every poll_interval
    3. stop() wakes the loop and joins the thread
    """

    def __init__(
        self,
        ledger: FailureLedger,
        leases: CheckoutLeaseRegistry,
        policy: Optional[BackoffPolicy] = None,
        poll_interval: float = 300.0,
    ):
        self._ledger = ledger
        self._leases = leases
        self.policy = policy or BackoffPolicy()
        self.poll_interval = poll_interval

        self._handlers: Dict[str, RetryHandler] = {}
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wake: Optional[asyncio.Event] = None

    def register_handler(self, operation_type: str, handler: RetryHandler) -> None:
        self._handlers[operation_type] = handler
        logger.debug(f"Registered retry handler for {operation_type}")

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self):
        """Start the background scheduler thread."""
        if self._running:
            logger.warning("Retry scheduler already running")
            return
        self._running = True
        self._thread = threading.Thread(
            target=self._run_loop, daemon=True, name="retry-scheduler"
        )
        self._thread.start()
        logger.info(f"Retry scheduler started (poll interval {self.poll_interval}s)")

    def stop(self):
        """Stop the scheduler and wait for the current tick to finish."""
        self._running = False
        if self._loop and self._wake and not self._loop.is_closed():
            try:
                self._loop.call_soon_threadsafe(self._wake.set)
            except RuntimeError:
                # loop closed between the check and the call
                pass
        if self._thread:
            self._thread.join(timeout=5.0)
        logger.info("Retry scheduler stopped")

    def _run_loop(self):
        """Run the async event loop in the background thread."""
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)

        try:
            self._loop.run_until_complete(self._main_loop())
        except Exception as e:
            logger.error(f"Retry scheduler loop error: {e}")
        finally:
            self._loop.close()

    async def _main_loop(self):
        self._wake = asyncio.Event()

        while self._running:
            try:
                await asyncio.to_thread(self.run_once)
            except Exception as e:
                logger.error(f"Error in retry scheduler tick: {e}")

            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                continue

    def run_once(self, now: Optional[datetime] = None) -> RetryTickResult:
        """Process every currently retryable ledger entry once."""
        now = now or datetime.utcnow()
        result = RetryTickResult()

        records = self._ledger.list_retryable(now=now, policy=self.policy)
        if records:
            logger.info(f"Retrying {len(records)} failed operations")

        for record in records:
            handler = self._handlers.get(record.operation_type)
            if handler is None:
                logger.warning(
                    f"No retry handler for operation type '{record.operation_type}' "
                    f"(failure {record.failure_id}); leaving it untouched"
                )
                result.skipped += 1
                continue

            try:
                with self._leases.lease(record.repository_id, owner="retry-scheduler", blocking=False):
                    result.attempted += 1
                    self._attempt(record, handler, now, result)
            except LeaseUnavailable:
                logger.info(
                    f"Repository {record.repository_id} is busy; "
                    f"deferring retry of {record.entity_id}"
                )
                result.skipped += 1

        return result

    def _attempt(
        self,
        record: FailureRecord,
        handler: RetryHandler,
        now: datetime,
        result: RetryTickResult,
    ) -> None:
        error_message = "Retry did not complete the operation"
        stack_trace = record.stack_trace
        try:
            if handler(record):
                self._ledger.delete_failure(record.failure_id)
                result.succeeded += 1
                logger.info(f"Successfully retried {record.operation_type} for {record.entity_id}")
                return
        except Exception as e:
            error_message = str(e)
            stack_trace = traceback.format_exc()

        retry_count = record.retry_count + 1
        self._ledger.update_failure(
            record.failure_id,
            retry_count=retry_count,
            last_retry_at=now,
            error_message=error_message,
            stack_trace=stack_trace,
        )
        result.failed += 1

        if retry_count >= self.policy.max_retry_count:
            result.exhausted += 1
            logger.error(
                f"Giving up on {record.operation_type} for {record.entity_id} "
                f"(repository {record.repository_id}) after {retry_count} retries: {error_message}"
            )
        else:
            logger.warning(
                f"Retry {retry_count}/{self.policy.max_retry_count} failed for "
                f"{record.operation_type} {record.entity_id}: {error_message}"
            )
