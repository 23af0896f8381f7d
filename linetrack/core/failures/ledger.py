"""Failure Ledger: durable dead-letter entries for per-commit work.

One row per (repository, operation type, entity). Recording the same unit
twice refreshes the existing row rather than adding a second one.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError

from ..db import DatabaseManager
from ..db.models import FailedOperation
from .backoff import BackoffPolicy, RetryState, retry_state

logger = logging.getLogger(__name__)


def _as_uuid(value) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


@dataclass
class FailureRecord:
    """Detached copy of a FailedOperation row."""
    failure_id: str
    repository_id: str
    operation_type: str
    entity_id: str
    error_message: str
    stack_trace: str
    failed_at: datetime
    retry_count: int = 0
    last_retry_at: Optional[datetime] = None
    context: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: FailedOperation) -> "FailureRecord":
        return cls(
            failure_id=str(row.failure_id),
            repository_id=str(row.repository_id),
            operation_type=row.operation_type,
            entity_id=row.entity_id,
            error_message=row.error_message or "",
            stack_trace=row.stack_trace or "",
            failed_at=row.failed_at,
            retry_count=row.retry_count or 0,
            last_retry_at=row.last_retry_at,
            context=dict(row.context or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "failure_id": self.failure_id,
            "repository_id": self.repository_id,
            "operation_type": self.operation_type,
            "entity_id": self.entity_id,
            "error_message": self.error_message,
            "stack_trace": self.stack_trace,
            "failed_at": self.failed_at,
            "retry_count": self.retry_count,
            "last_retry_at": self.last_retry_at,
            "context": self.context,
        }


class FailureLedger:
    """CRUD over failed_operations."""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def record_failure(
        self,
        repository_id,
        operation_type: str,
        entity_id: str,
        error_message: str,
        stack_trace: str = "",
        context: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> FailureRecord:
        """Insert or refresh the entry for one unit of work.

        retry_count is left as-is on refresh; only the scheduler moves it.
        A concurrent insert of the same unit is resolved by updating the
        winner's row.
        """
        now = now or datetime.utcnow()
        try:
            return self._upsert(
                repository_id, operation_type, entity_id,
                error_message, stack_trace, context or {}, now,
            )
        except IntegrityError:
            logger.debug(f"Concurrent failure insert for {operation_type}/{entity_id}; updating instead")
            return self._upsert(
                repository_id, operation_type, entity_id,
                error_message, stack_trace, context or {}, now,
            )

    def _upsert(
        self,
        repository_id,
        operation_type: str,
        entity_id: str,
        error_message: str,
        stack_trace: str,
        context: Dict[str, Any],
        now: datetime,
    ) -> FailureRecord:
        with self.db.get_session() as session:
            row = session.query(FailedOperation).filter(
                FailedOperation.repository_id == _as_uuid(repository_id),
                FailedOperation.operation_type == operation_type,
                FailedOperation.entity_id == entity_id,
            ).first()

            if row is None:
                row = FailedOperation(
                    failure_id=uuid4(),
                    repository_id=_as_uuid(repository_id),
                    operation_type=operation_type,
                    entity_id=entity_id,
                    retry_count=0,
                )
                session.add(row)

            row.error_message = error_message
            row.stack_trace = stack_trace
            row.failed_at = now
            row.context = dict(context)
            session.flush()

            logger.info(
                f"Recorded failed operation {operation_type} for {entity_id} "
                f"(repository {repository_id}, retries so far: {row.retry_count})"
            )
            return FailureRecord.from_row(row)

    def list_failures(self, repository_id) -> List[FailureRecord]:
        with self.db.get_session() as session:
            rows = session.query(FailedOperation).filter(
                FailedOperation.repository_id == _as_uuid(repository_id)
            ).order_by(FailedOperation.failed_at).all()
            return [FailureRecord.from_row(r) for r in rows]

    def get_failure(self, failure_id) -> Optional[FailureRecord]:
        with self.db.get_session() as session:
            row = session.get(FailedOperation, _as_uuid(failure_id))
            return FailureRecord.from_row(row) if row else None

    def list_retryable(
        self,
        max_retry_count: Optional[int] = None,
        now: Optional[datetime] = None,
        policy: Optional[BackoffPolicy] = None,
    ) -> List[FailureRecord]:
        """Entries under the retry limit whose backoff window has elapsed.

        Returned oldest failure first.
        """
        policy = policy or BackoffPolicy()
        if max_retry_count is not None:
            policy = BackoffPolicy(policy.base_minutes, policy.cap_minutes, max_retry_count)
        now = now or datetime.utcnow()

        with self.db.get_session() as session:
            rows = session.query(FailedOperation).filter(
                FailedOperation.retry_count < policy.max_retry_count
            ).order_by(FailedOperation.failed_at).all()
            candidates = [FailureRecord.from_row(r) for r in rows]

        return [
            record for record in candidates
            if retry_state(record, now, policy).state is RetryState.RETRYABLE
        ]

    def update_failure(
        self,
        failure_id,
        retry_count: Optional[int] = None,
        last_retry_at: Optional[datetime] = None,
        error_message: Optional[str] = None,
        stack_trace: Optional[str] = None,
    ) -> Optional[FailureRecord]:
        with self.db.get_session() as session:
            row = session.get(FailedOperation, _as_uuid(failure_id))
            if row is None:
                return None
            if retry_count is not None:
                row.retry_count = retry_count
            if last_retry_at is not None:
                row.last_retry_at = last_retry_at
            if error_message is not None:
                row.error_message = error_message
            if stack_trace is not None:
                row.stack_trace = stack_trace
            session.flush()
            return FailureRecord.from_row(row)

    def delete_failure(self, failure_id) -> bool:
        with self.db.get_session() as session:
            row = session.get(FailedOperation, _as_uuid(failure_id))
            if row is None:
                return False
            session.delete(row)
            logger.info(f"Deleted failed operation {failure_id} ({row.operation_type}/{row.entity_id})")
            return True
