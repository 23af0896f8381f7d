"""Per-repository checkout leases.

Checking out a commit mutates the working copy on disk, so at most one
checkout session may exist per repository at a time. Analysis passes,
failure retries and repository deletion all run inside a lease; read-only
queries over persisted snapshots never take one.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterator, Optional

from ..exceptions import LeaseUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    """Proof of exclusive access to one repository's working copy."""
    repository_id: str
    owner: str
    acquired_at: datetime


class CheckoutLeaseRegistry:
    """One lock per repository id, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._sessions: Dict[str, CheckoutSession] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def lease(
        self,
        repository_id,
        owner: str = "",
        blocking: bool = True,
        timeout: Optional[float] = None,
    ) -> Iterator[CheckoutSession]:
        """Hold the repository's working copy for the duration of the block.

        Raises:
            LeaseUnavailable: If the lease could not be acquired (non-blocking
                call while held, or timeout elapsed)
        """
        key = str(repository_id)
        lock = self._lock_for(key)

        if blocking and timeout is not None:
            acquired = lock.acquire(True, timeout)
        else:
            acquired = lock.acquire(blocking)

        if not acquired:
            holder = self._sessions.get(key)
            logger.debug(f"Lease for {key} unavailable (held by {holder.owner if holder else 'unknown'})")
            raise LeaseUnavailable(key)

        session = CheckoutSession(repository_id=key, owner=owner, acquired_at=datetime.utcnow())
        self._sessions[key] = session
        try:
            yield session
        finally:
            self._sessions.pop(key, None)
            lock.release()

    def is_held(self, repository_id) -> bool:
        return str(repository_id) in self._sessions

    def active_session(self, repository_id) -> Optional[CheckoutSession]:
        return self._sessions.get(str(repository_id))
