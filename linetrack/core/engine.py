"""LineTracker Engine: public API consumed by the HTTP routes.

Wires the repository store, failure ledger, git client, analyzer and
retry scheduler together and exposes the operations the service offers.
"""

import logging
import os
import shutil
import threading
from typing import Any, Dict, List, Optional

from .analysis import AnalysisOrchestrator, CheckoutLeaseRegistry, CommitAnalyzer
from .config import Settings, get_settings
from .constants import OPERATION_COMMIT_ANALYSIS
from .db import DatabaseManager
from .exceptions import RepositoryNotFoundError
from .failures import BackoffPolicy, FailureLedger, RetryScheduler
from .repository import RepositoryManager
from .vcs import BaseVcsClient, GitClient

logger = logging.getLogger(__name__)


class LineTrackerEngine:
    """Orchestrate line-count tracking for repositories.

    Public API:
        add_repository / list_repositories / get_repository / delete_repository
        start_analysis(repository_id, cancel_event) -> result dict
        get_line_history / get_all_line_history / get_extension_breakdown
        get_top_files(repository_id, count)
        get_failed_operations / delete_failed_operation
        get_file_extensions / set_file_extensions
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        settings: Optional[Settings] = None,
        vcs: Optional[BaseVcsClient] = None,
    ):
        self._db = db_manager
        self.settings = settings or get_settings()

        self.repositories = RepositoryManager(db_manager)
        self.ledger = FailureLedger(db_manager)
        self.leases = CheckoutLeaseRegistry()
        self.vcs = vcs or GitClient(
            timeout=self.settings.git.command_timeout_seconds,
            access_token=self.settings.git.access_token,
        )
        self.orchestrator = AnalysisOrchestrator(
            repositories=self.repositories,
            ledger=self.ledger,
            vcs=self.vcs,
            analyzer=CommitAnalyzer(),
            leases=self.leases,
            repos_dir=self.settings.git.repos_dir,
            top_files_limit=self.settings.analysis.top_files_limit,
            default_extensions=self.settings.analysis.default_file_extensions,
        )

        retry = self.settings.retry
        self.scheduler = RetryScheduler(
            ledger=self.ledger,
            leases=self.leases,
            policy=BackoffPolicy(
                base_minutes=retry.base_backoff_minutes,
                cap_minutes=retry.max_backoff_minutes,
                max_retry_count=retry.max_retry_count,
            ),
            poll_interval=retry.poll_interval_seconds,
        )
        self.scheduler.register_handler(
            OPERATION_COMMIT_ANALYSIS, self.orchestrator.replay_commit_analysis
        )

    # ── Scheduler lifecycle ─────────────────────────────────────────────

    def start_scheduler(self):
        if not self.scheduler.is_running:
            self.scheduler.start()

    def stop_scheduler(self):
        if self.scheduler.is_running:
            self.scheduler.stop()

    # ── Repositories ────────────────────────────────────────────────────

    def add_repository(self, user_id: str, owner: str, name: str, clone_url: str) -> Dict[str, Any]:
        return self.repositories.add_repository(user_id, owner, name, clone_url)

    def list_repositories(self, user_id: str) -> List[Dict[str, Any]]:
        return self.repositories.list_repositories(user_id)

    def get_repository(self, repository_id: str) -> Dict[str, Any]:
        repository = self.repositories.get_repository(repository_id)
        if not repository:
            raise RepositoryNotFoundError(repository_id)
        return repository

    def delete_repository(self, repository_id: str) -> bool:
        """Delete a repository, its derived rows and its working copy.

        Waits for any running checkout session on the repository to end.
        """
        repository = self.get_repository(repository_id)

        with self.leases.lease(repository["repository_id"], owner="delete"):
            deleted = self.repositories.delete_repository(repository_id)
            local_path = repository["local_path"]
            if deleted and local_path and os.path.isdir(local_path):
                shutil.rmtree(local_path, ignore_errors=True)
                logger.info(f"Removed working copy {local_path}")
        return deleted

    # ── Analysis ────────────────────────────────────────────────────────

    def start_analysis(
        self,
        repository_id: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> Dict[str, Any]:
        """Run one analysis pass synchronously.

        Raises:
            RepositoryNotFoundError, SyncError
        """
        result = self.orchestrator.analyze_repository(repository_id, cancel_event=cancel_event)
        return result.to_dict()

    # ── Queries ─────────────────────────────────────────────────────────

    def get_line_history(self, repository_id: str, days: int) -> List[Dict[str, Any]]:
        self.get_repository(repository_id)
        return self.repositories.get_line_history(repository_id, days)

    def get_all_line_history(self, user_id: str, days: int) -> List[Dict[str, Any]]:
        return self.repositories.get_all_line_history(user_id, days)

    def get_extension_breakdown(self, repository_id: str) -> List[Dict[str, Any]]:
        self.get_repository(repository_id)
        return self.repositories.get_extension_breakdown(repository_id)

    def get_top_files(self, repository_id: str, count: int) -> List[Dict[str, Any]]:
        self.get_repository(repository_id)
        return self.repositories.get_top_files(repository_id, count)

    # ── Failure ledger ──────────────────────────────────────────────────

    def get_failed_operations(self, repository_id: str) -> List[Dict[str, Any]]:
        self.get_repository(repository_id)
        return [record.to_dict() for record in self.ledger.list_failures(repository_id)]

    def delete_failed_operation(self, failure_id: str) -> bool:
        return self.ledger.delete_failure(failure_id)

    # ── Preferences ─────────────────────────────────────────────────────

    def get_file_extensions(self, user_id: str) -> List[str]:
        return self.repositories.get_file_extensions(
            user_id, self.settings.analysis.default_file_extensions
        )

    def set_file_extensions(self, user_id: str, extensions: List[str]) -> List[str]:
        return self.repositories.set_file_extensions(user_id, extensions)
