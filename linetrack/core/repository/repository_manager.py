"""Repository Manager for linetrack.

Provides CRUD for tracked repositories, their commit snapshots, top files
and per-user extension preferences, plus the history queries served to
the API. All reads return plain dicts so callers never hold ORM objects
outside a session.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError

from ..db import DatabaseManager
from ..db.models import CommitLineSnapshot, TopFile, TrackedRepository, UserPreference
from .history import aggregate_daily, extension_breakdown

logger = logging.getLogger(__name__)


def _as_uuid(value) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


class RepositoryManager:
    """Manages tracked repositories and their derived records."""

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager
        logger.info("RepositoryManager initialized")

    # =========================================================================
    # Repository CRUD
    # =========================================================================

    def add_repository(
        self,
        user_id: str,
        owner: str,
        name: str,
        clone_url: str,
    ) -> Dict:
        """Start tracking a repository. The watermark starts out empty."""
        try:
            with self.db.get_session() as session:
                existing = session.query(TrackedRepository).filter(
                    TrackedRepository.user_id == _as_uuid(user_id),
                    TrackedRepository.owner == owner,
                    TrackedRepository.name == name,
                ).first()

                if existing:
                    raise ValueError(f"Repository '{owner}/{name}' is already tracked for user {user_id}")

                repository = TrackedRepository(
                    repository_id=uuid4(),
                    user_id=_as_uuid(user_id),
                    owner=owner,
                    name=name,
                    clone_url=clone_url,
                    watermark=None,
                )
                session.add(repository)
                session.flush()

                logger.info(f"Tracking repository: {repository.repository_id} ({owner}/{name})")
                return self._repository_to_dict(repository)

        except ValueError:
            raise
        except Exception as e:
            logger.error(f"Failed to add repository {owner}/{name}: {e}")
            raise

    def get_repository(self, repository_id) -> Optional[Dict]:
        """Retrieve repository details by ID."""
        try:
            with self.db.get_session() as session:
                repository = session.get(TrackedRepository, _as_uuid(repository_id))
                if not repository:
                    return None
                return self._repository_to_dict(repository)

        except Exception as e:
            logger.error(f"Failed to get repository {repository_id}: {e}")
            raise

    def list_repositories(self, user_id: str) -> List[Dict]:
        """List a user's repositories, newest first."""
        try:
            with self.db.get_session() as session:
                repositories = session.query(TrackedRepository).filter(
                    TrackedRepository.user_id == _as_uuid(user_id)
                ).order_by(TrackedRepository.created_at.desc()).all()

                return [self._repository_to_dict(r) for r in repositories]

        except Exception as e:
            logger.error(f"Failed to list repositories for user {user_id}: {e}")
            raise

    def delete_repository(self, repository_id) -> bool:
        """Delete a repository and all derived records (CASCADE)."""
        try:
            with self.db.get_session() as session:
                repository = session.get(TrackedRepository, _as_uuid(repository_id))
                if not repository:
                    return False

                session.delete(repository)
                logger.info(f"Deleted repository: {repository_id} ({repository.owner}/{repository.name})")
                return True

        except Exception as e:
            logger.error(f"Failed to delete repository {repository_id}: {e}")
            raise

    # =========================================================================
    # Analysis bookkeeping
    # =========================================================================

    def set_local_path(self, repository_id, local_path: str) -> None:
        with self.db.get_session() as session:
            repository = session.get(TrackedRepository, _as_uuid(repository_id))
            if repository:
                repository.local_path = local_path

    def set_analysis_status(self, repository_id, status: str, analyzed: bool = False) -> None:
        with self.db.get_session() as session:
            repository = session.get(TrackedRepository, _as_uuid(repository_id))
            if repository:
                repository.analysis_status = status
                if analyzed:
                    repository.last_analyzed_at = datetime.utcnow()

    def advance_watermark(self, repository_id, candidate: datetime) -> Optional[datetime]:
        """Move the watermark forward to candidate; never backwards.

        Returns:
            The watermark after the update
        """
        with self.db.get_session() as session:
            repository = session.get(TrackedRepository, _as_uuid(repository_id))
            if not repository:
                return None

            if repository.watermark is None or candidate > repository.watermark:
                logger.info(
                    f"Advancing watermark for {repository_id}: {repository.watermark} -> {candidate}"
                )
                repository.watermark = candidate
            return repository.watermark

    # =========================================================================
    # Commit snapshots
    # =========================================================================

    def snapshot_exists(self, repository_id, commit_sha: str) -> bool:
        with self.db.get_session() as session:
            return session.query(CommitLineSnapshot.snapshot_id).filter(
                CommitLineSnapshot.repository_id == _as_uuid(repository_id),
                CommitLineSnapshot.commit_sha == commit_sha,
            ).first() is not None

    def add_snapshot(
        self,
        repository_id,
        commit_sha: str,
        committed_at: datetime,
        total_lines: int,
        lines_added: int,
        lines_removed: int,
        lines_by_extension: Dict[str, int],
    ) -> bool:
        """Persist a commit snapshot unless one already exists.

        The (repository_id, commit_sha) unique constraint settles races
        between an analysis pass and a retry: the losing insert is reported
        as already present.

        Returns:
            True if this call wrote the snapshot
        """
        try:
            with self.db.get_session() as session:
                exists = session.query(CommitLineSnapshot.snapshot_id).filter(
                    CommitLineSnapshot.repository_id == _as_uuid(repository_id),
                    CommitLineSnapshot.commit_sha == commit_sha,
                ).first()
                if exists:
                    return False

                session.add(CommitLineSnapshot(
                    snapshot_id=uuid4(),
                    repository_id=_as_uuid(repository_id),
                    commit_sha=commit_sha,
                    committed_at=committed_at,
                    total_lines=total_lines,
                    lines_added=lines_added,
                    lines_removed=lines_removed,
                    lines_by_extension=dict(lines_by_extension),
                ))
                session.flush()

        except IntegrityError:
            logger.info(f"Snapshot for {commit_sha} was written concurrently; keeping existing row")
            return False

        logger.info(f"Saved line count for commit {commit_sha}. Total lines: {total_lines}")
        return True

    def list_snapshots(self, repository_id, since: Optional[datetime] = None) -> List[Dict]:
        """Snapshots oldest first, optionally only those committed at/after since."""
        with self.db.get_session() as session:
            query = session.query(CommitLineSnapshot).filter(
                CommitLineSnapshot.repository_id == _as_uuid(repository_id)
            )
            if since is not None:
                query = query.filter(CommitLineSnapshot.committed_at >= since)
            snapshots = query.order_by(
                CommitLineSnapshot.committed_at, CommitLineSnapshot.commit_sha
            ).all()
            return [self._snapshot_to_dict(s) for s in snapshots]

    def latest_snapshot(self, repository_id) -> Optional[Dict]:
        with self.db.get_session() as session:
            snapshot = session.query(CommitLineSnapshot).filter(
                CommitLineSnapshot.repository_id == _as_uuid(repository_id)
            ).order_by(
                CommitLineSnapshot.committed_at.desc(), CommitLineSnapshot.commit_sha.desc()
            ).first()
            return self._snapshot_to_dict(snapshot) if snapshot else None

    # =========================================================================
    # Top files
    # =========================================================================

    def replace_top_files(self, repository_id, ranked_files: Iterable) -> int:
        """Swap the stored top files for a freshly ranked list."""
        rid = _as_uuid(repository_id)
        with self.db.get_session() as session:
            session.query(TopFile).filter(TopFile.repository_id == rid).delete()
            count = 0
            for rank, ranked in enumerate(ranked_files, start=1):
                session.add(TopFile(
                    repository_id=rid,
                    rank=rank,
                    file_path=ranked.file_path,
                    line_count=ranked.line_count,
                ))
                count = rank
        logger.info(f"Stored {count} top files for repository {repository_id}")
        return count

    def has_top_files(self, repository_id) -> bool:
        with self.db.get_session() as session:
            return session.query(TopFile.rank).filter(
                TopFile.repository_id == _as_uuid(repository_id)
            ).first() is not None

    def get_top_files(self, repository_id, count: int) -> List[Dict]:
        with self.db.get_session() as session:
            rows = session.query(TopFile).filter(
                TopFile.repository_id == _as_uuid(repository_id)
            ).order_by(TopFile.rank).limit(count).all()

            if not rows:
                logger.warning(
                    f"No top files stored for repository {repository_id}; "
                    f"it may not have been analyzed yet"
                )
            return [
                {"rank": r.rank, "file_path": r.file_path, "line_count": r.line_count}
                for r in rows
            ]

    # =========================================================================
    # History queries (read-only, never take a checkout lease)
    # =========================================================================

    def get_line_history(self, repository_id, days: int, now: Optional[datetime] = None) -> List[Dict]:
        """Daily aggregates for the last `days` days."""
        cutoff = (now or datetime.utcnow()) - timedelta(days=days)
        snapshots = self.list_snapshots(repository_id, since=cutoff)
        daily = aggregate_daily(snapshots)
        logger.info(
            f"Aggregated {len(snapshots)} commits into {len(daily)} daily entries "
            f"for repository {repository_id}"
        )
        return daily

    def get_all_line_history(self, user_id: str, days: int, now: Optional[datetime] = None) -> List[Dict]:
        """Daily aggregates for every repository a user tracks."""
        return [
            {
                "repository_id": repo["repository_id"],
                "owner": repo["owner"],
                "name": repo["name"],
                "daily": self.get_line_history(repo["repository_id"], days, now=now),
            }
            for repo in self.list_repositories(user_id)
        ]

    def get_extension_breakdown(self, repository_id) -> List[Dict]:
        """Share of each extension in the newest snapshot."""
        latest = self.latest_snapshot(repository_id)
        if not latest:
            return []
        return extension_breakdown(latest["lines_by_extension"])

    # =========================================================================
    # User preferences
    # =========================================================================

    def get_file_extensions(self, user_id, defaults: List[str]) -> List[str]:
        """Extensions a user tracks, falling back to defaults."""
        if user_id is None:
            return list(defaults)
        with self.db.get_session() as session:
            preference = session.get(UserPreference, _as_uuid(user_id))
            if preference and preference.file_extensions:
                return list(preference.file_extensions)
        return list(defaults)

    def set_file_extensions(self, user_id, extensions: List[str]) -> List[str]:
        cleaned = sorted({
            (e if e.startswith(".") else f".{e}").lower()
            for e in (x.strip() for x in extensions) if e
        })
        with self.db.get_session() as session:
            preference = session.get(UserPreference, _as_uuid(user_id))
            if preference is None:
                session.add(UserPreference(user_id=_as_uuid(user_id), file_extensions=cleaned))
            else:
                preference.file_extensions = cleaned
        logger.info(f"Updated file extensions for user {user_id}: {cleaned}")
        return cleaned

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _repository_to_dict(repository: TrackedRepository) -> Dict:
        return {
            "repository_id": str(repository.repository_id),
            "user_id": str(repository.user_id),
            "owner": repository.owner,
            "name": repository.name,
            "clone_url": repository.clone_url,
            "local_path": repository.local_path,
            "watermark": repository.watermark,
            "analysis_status": repository.analysis_status,
            "last_analyzed_at": repository.last_analyzed_at,
            "created_at": repository.created_at,
            "updated_at": repository.updated_at,
        }

    @staticmethod
    def _snapshot_to_dict(snapshot: CommitLineSnapshot) -> Dict:
        return {
            "snapshot_id": str(snapshot.snapshot_id),
            "repository_id": str(snapshot.repository_id),
            "commit_sha": snapshot.commit_sha,
            "committed_at": snapshot.committed_at,
            "total_lines": snapshot.total_lines,
            "lines_added": snapshot.lines_added,
            "lines_removed": snapshot.lines_removed,
            "lines_by_extension": dict(snapshot.lines_by_extension or {}),
        }
