"""Analysis Orchestrator: incremental line-count crawl of one repository.

Pipeline per pass (holding the repository's checkout lease throughout):
1. SYNCING      clone or pull the working copy
2. ENUMERATING  list commits newer than the watermark, oldest first
3. PROCESSING   per commit: diff stats, checkout, count, write snapshot
4. ADVANCING    move the watermark forward, refresh top files

A commit that raises is recorded in the failure ledger and the pass
moves on; the retry scheduler later replays it through process_commit().
"""

import logging
import os
import threading
import time
import traceback
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from ..constants import OPERATION_COMMIT_ANALYSIS
from ..exceptions import RepositoryNotFoundError, RepositoryNotPresentError, SyncError, VcsError
from ..failures.ledger import FailureLedger, FailureRecord
from ..repository import RepositoryManager
from ..vcs import BaseVcsClient, CommitInfo
from .commit_analyzer import CommitAnalyzer
from .lease import CheckoutLeaseRegistry
from .models import AnalysisResult, AnalysisState

logger = logging.getLogger(__name__)


class AnalysisOrchestrator:
    """Runs analysis passes and replays failed commits."""

    def __init__(
        self,
        repositories: RepositoryManager,
        ledger: FailureLedger,
        vcs: BaseVcsClient,
        analyzer: CommitAnalyzer,
        leases: CheckoutLeaseRegistry,
        repos_dir: str,
        top_files_limit: int = 10,
        default_extensions: Optional[List[str]] = None,
    ):
        self._repositories = repositories
        self._ledger = ledger
        self._vcs = vcs
        self._analyzer = analyzer
        self._leases = leases
        self.repos_dir = repos_dir
        self.top_files_limit = top_files_limit
        self.default_extensions = list(default_extensions or [])

    # =========================================================================
    # Analysis pass
    # =========================================================================

    def analyze_repository(
        self,
        repository_id,
        cancel_event: Optional[threading.Event] = None,
    ) -> AnalysisResult:
        """Process every commit newer than the repository's watermark.

        Args:
            repository_id: Tracked repository UUID
            cancel_event: Checked between commits; when set, the pass stops
                and the watermark only covers completed commits

        Returns:
            AnalysisResult summary

        Raises:
            RepositoryNotFoundError: Unknown repository
            SyncError: Clone/pull (or commit listing) failed; nothing persisted
        """
        repository = self._repositories.get_repository(repository_id)
        if not repository:
            raise RepositoryNotFoundError(repository_id)

        rid = repository["repository_id"]
        start = time.monotonic()
        result = AnalysisResult(repository_id=rid, watermark=repository["watermark"])

        with self._leases.lease(rid, owner="analysis"):
            try:
                self._run_pass(repository, result, cancel_event)
            except SyncError:
                raise
            except Exception:
                self._set_state(rid, AnalysisState.IDLE)
                raise

        result.elapsed_seconds = time.monotonic() - start
        logger.info(
            f"Analysis of {repository['owner']}/{repository['name']} finished in "
            f"{result.elapsed_seconds:.1f}s: {result.snapshots_written} written, "
            f"{result.commits_skipped} skipped, {result.commits_failed} failed"
            f"{' (cancelled)' if result.cancelled else ''}"
        )
        return result

    def _run_pass(
        self,
        repository: Dict,
        result: AnalysisResult,
        cancel_event: Optional[threading.Event],
    ) -> None:
        rid = repository["repository_id"]
        watermark: Optional[datetime] = repository["watermark"]

        local_path = self._sync(repository)

        self._set_state(rid, AnalysisState.ENUMERATING)
        new_commits = self._enumerate(rid, local_path, watermark)
        result.commits_found = len(new_commits)
        logger.info(
            f"Found {len(new_commits)} new commits for {repository['owner']}/{repository['name']} "
            f"since {watermark.isoformat() if watermark else 'the beginning'}"
        )

        extensions = self._repositories.get_file_extensions(
            repository["user_id"], self.default_extensions
        )

        self._set_state(rid, AnalysisState.PROCESSING)
        newest_processed: Optional[datetime] = None
        completed: List[datetime] = []
        first_unprocessed: Optional[CommitInfo] = None

        for commit in new_commits:
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                first_unprocessed = commit
                logger.info(f"Analysis of repository {rid} cancelled before commit {commit.sha}")
                break

            if self._repositories.snapshot_exists(rid, commit.sha):
                logger.debug(f"Commit {commit.sha} already analyzed, skipping")
                result.commits_skipped += 1
                completed.append(commit.timestamp)
                newest_processed = commit.timestamp
                continue

            diff_stats: Optional[Tuple[int, int]] = None
            try:
                diff_stats = self._vcs.diff_stats(local_path, commit.sha)
                if self.process_commit(rid, local_path, commit, extensions, diff_stats=diff_stats):
                    result.snapshots_written += 1
                else:
                    result.commits_skipped += 1
                completed.append(commit.timestamp)
            except Exception as e:
                result.commits_failed += 1
                logger.error(f"Error processing commit {commit.sha} for repository {rid}: {e}")
                self._record_commit_failure(
                    rid, local_path, commit, extensions, e, traceback.format_exc(), diff_stats
                )
            newest_processed = commit.timestamp

        self._set_state(rid, AnalysisState.ADVANCING)
        target = self._watermark_target(result.cancelled, newest_processed, completed, first_unprocessed)
        if target is not None:
            result.watermark = self._repositories.advance_watermark(rid, target)

        if not result.cancelled and (new_commits or not self._repositories.has_top_files(rid)):
            newest_sha = new_commits[-1].sha if new_commits else None
            self._refresh_top_files(rid, local_path, extensions, newest_sha)

        self._repositories.set_analysis_status(rid, AnalysisState.IDLE.value, analyzed=True)

    @staticmethod
    def _watermark_target(
        cancelled: bool,
        newest_processed: Optional[datetime],
        completed: List[datetime],
        first_unprocessed: Optional[CommitInfo],
    ) -> Optional[datetime]:
        if not cancelled:
            return newest_processed

        # Stay strictly below the interrupted commit so it is still "new" next pass
        candidates = [
            ts for ts in completed
            if first_unprocessed is None or ts < first_unprocessed.timestamp
        ]
        return max(candidates) if candidates else None

    def _sync(self, repository: Dict) -> str:
        """Clone or pull the working copy; raise SyncError on failure."""
        rid = repository["repository_id"]
        self._set_state(rid, AnalysisState.SYNCING)

        local_path = repository["local_path"] or os.path.join(self.repos_dir, rid)
        try:
            if repository["local_path"] and os.path.isdir(local_path):
                try:
                    logger.info(f"Pulling latest changes for repository {rid}")
                    local_path = self._vcs.pull(local_path)
                except RepositoryNotPresentError:
                    logger.info(f"Working copy for {rid} missing, cloning instead")
                    local_path = self._vcs.clone(repository["clone_url"], local_path)
            else:
                logger.info(f"Cloning {repository['owner']}/{repository['name']} into {local_path}")
                local_path = self._vcs.clone(repository["clone_url"], local_path)
        except VcsError as e:
            self._set_state(rid, AnalysisState.ABORTED)
            logger.error(f"Sync failed for repository {rid}: {e}")
            raise SyncError(rid, str(e)) from e

        if local_path != repository["local_path"]:
            self._repositories.set_local_path(rid, local_path)
        return local_path

    def _enumerate(self, rid: str, local_path: str, watermark: Optional[datetime]) -> List[CommitInfo]:
        try:
            commits = self._vcs.list_commits(local_path, since=watermark)
        except VcsError as e:
            self._set_state(rid, AnalysisState.ABORTED)
            logger.error(f"Could not list commits for repository {rid}: {e}")
            raise SyncError(rid, str(e)) from e

        new_commits = [c for c in commits if watermark is None or c.timestamp > watermark]
        # sorted() is stable: same-second commits keep git order
        return sorted(new_commits, key=lambda c: c.timestamp)

    # =========================================================================
    # Per-commit step (shared with the retry scheduler)
    # =========================================================================

    def process_commit(
        self,
        repository_id,
        local_path: str,
        commit: CommitInfo,
        extensions: Iterable[str],
        diff_stats: Optional[Tuple[int, int]] = None,
    ) -> bool:
        """Check out one commit, count it and write its snapshot.

        The caller must hold the repository's checkout lease.

        Returns:
            True if a snapshot was written, False if one already existed
        """
        if diff_stats is None:
            diff_stats = self._vcs.diff_stats(local_path, commit.sha)
        lines_added, lines_removed = diff_stats

        self._vcs.checkout(local_path, commit.sha)
        counts = self._analyzer.analyze(local_path, extensions)

        return self._repositories.add_snapshot(
            repository_id,
            commit_sha=commit.sha,
            committed_at=commit.timestamp,
            total_lines=counts.total_lines,
            lines_added=lines_added,
            lines_removed=lines_removed,
            lines_by_extension=counts.lines_by_extension,
        )

    def replay_commit_analysis(self, record: FailureRecord) -> bool:
        """Retry handler for commit-analysis ledger entries.

        Replays against the stored working copy without syncing. The retry
        scheduler holds the lease while this runs.
        """
        context = record.context or {}
        commit_sha = context.get("commit_sha") or record.entity_id

        if self._repositories.snapshot_exists(record.repository_id, commit_sha):
            logger.info(f"Commit {commit_sha} already has a snapshot; nothing to retry")
            return True

        local_path = context.get("local_path")
        if not local_path:
            repository = self._repositories.get_repository(record.repository_id)
            local_path = repository["local_path"] if repository else None
        if not local_path:
            raise ValueError(f"No working copy recorded for commit {commit_sha}")

        committed_at = datetime.fromisoformat(context["committed_at"])
        extensions = context.get("extensions") or self.default_extensions

        diff_stats = None
        if context.get("lines_added") is not None and context.get("lines_removed") is not None:
            diff_stats = (int(context["lines_added"]), int(context["lines_removed"]))

        self.process_commit(
            record.repository_id,
            local_path,
            CommitInfo(sha=commit_sha, timestamp=committed_at),
            extensions,
            diff_stats=diff_stats,
        )
        return True

    # =========================================================================
    # Helpers
    # =========================================================================

    def _record_commit_failure(
        self,
        rid: str,
        local_path: str,
        commit: CommitInfo,
        extensions: Iterable[str],
        error: Exception,
        stack_trace: str,
        diff_stats: Optional[Tuple[int, int]],
    ) -> None:
        context = {
            "local_path": local_path,
            "commit_sha": commit.sha,
            "committed_at": commit.timestamp.isoformat(),
            "extensions": list(extensions),
        }
        if diff_stats is not None:
            context["lines_added"], context["lines_removed"] = diff_stats

        try:
            self._ledger.record_failure(
                rid,
                OPERATION_COMMIT_ANALYSIS,
                commit.sha,
                error_message=str(error) or type(error).__name__,
                stack_trace=stack_trace,
                context=context,
            )
        except Exception as e:
            logger.error(f"Could not record failure for commit {commit.sha} of repository {rid}: {e}")

    def _refresh_top_files(
        self,
        rid: str,
        local_path: str,
        extensions: Iterable[str],
        newest_sha: Optional[str],
    ) -> None:
        try:
            if newest_sha:
                self._vcs.checkout(local_path, newest_sha)
            ranked = self._analyzer.rank_files(local_path, extensions, self.top_files_limit)
            self._repositories.replace_top_files(rid, ranked)
        except Exception as e:
            logger.error(f"Could not refresh top files for repository {rid}: {e}")

    def _set_state(self, rid: str, state: AnalysisState) -> None:
        self._repositories.set_analysis_status(rid, state.value)
