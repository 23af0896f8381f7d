"""Shared fixtures: SQLite-backed DatabaseManager and an in-memory VCS."""

import os
import shutil
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

import pytest

from linetrack.core.analysis import AnalysisOrchestrator, CheckoutLeaseRegistry, CommitAnalyzer
from linetrack.core.config.config_loader import (
    AnalysisSettings,
    DatabaseSettings,
    GitSettings,
    RetrySettings,
    Settings,
)
from linetrack.core.db import DatabaseManager
from linetrack.core.exceptions import RepositoryNotPresentError
from linetrack.core.failures import FailureLedger
from linetrack.core.repository import RepositoryManager
from linetrack.core.vcs import BaseVcsClient, CommitInfo


class FakeVcsClient(BaseVcsClient):
    """Scripted VCS: each commit is a full tree of {relative_path: content}.

    checkout() rewrites the working copy with the commit's tree. Failures
    are injected per SHA via fail_checkout / fail_diff.
    """

    def __init__(self):
        self.commits: List[Tuple[CommitInfo, Dict[str, str]]] = []
        self.stats: Dict[str, Tuple[int, int]] = {}
        self.fail_checkout: Dict[str, Exception] = {}
        self.fail_diff: Dict[str, Exception] = {}
        self.sync_error: Optional[Exception] = None
        self.calls: List[Tuple[str, str]] = []

    def add_commit(self, sha: str, timestamp: datetime, files: Dict[str, str], stats=(0, 0)):
        self.commits.append((CommitInfo(sha=sha, timestamp=timestamp), dict(files)))
        self.stats[sha] = stats
        return self.commits[-1][0]

    def clone(self, url: str, dest: str) -> str:
        self.calls.append(("clone", dest))
        if self.sync_error:
            raise self.sync_error
        os.makedirs(dest, exist_ok=True)
        return dest

    def pull(self, path: str) -> str:
        self.calls.append(("pull", path))
        if not os.path.isdir(path):
            raise RepositoryNotPresentError(f"Local repository not found or invalid at {path}")
        if self.sync_error:
            raise self.sync_error
        return path

    def list_commits(self, path: str, since: Optional[datetime] = None) -> List[CommitInfo]:
        self.calls.append(("list_commits", path))
        return [c for c, _ in self.commits if since is None or c.timestamp > since]

    def checkout(self, path: str, sha: str) -> None:
        self.calls.append(("checkout", sha))
        if sha in self.fail_checkout:
            raise self.fail_checkout[sha]
        tree = next(files for c, files in self.commits if c.sha == sha)
        for entry in os.listdir(path):
            full = os.path.join(path, entry)
            if os.path.isdir(full):
                shutil.rmtree(full)
            else:
                os.remove(full)
        for rel_path, content in tree.items():
            full = os.path.join(path, *rel_path.split("/"))
            os.makedirs(os.path.dirname(full), exist_ok=True)
            with open(full, "w", encoding="utf-8") as f:
                f.write(content)

    def diff_stats(self, path: str, sha: str) -> Tuple[int, int]:
        if sha in self.fail_diff:
            raise self.fail_diff[sha]
        return self.stats.get(sha, (0, 0))

    def checkouts(self) -> List[str]:
        return [sha for op, sha in self.calls if op == "checkout"]


@pytest.fixture
def db_manager(tmp_path):
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'linetrack.db'}")
    manager.create_tables()
    yield manager
    manager.dispose()


@pytest.fixture
def repositories(db_manager):
    return RepositoryManager(db_manager)


@pytest.fixture
def ledger(db_manager):
    return FailureLedger(db_manager)


@pytest.fixture
def leases():
    return CheckoutLeaseRegistry()


@pytest.fixture
def fake_vcs():
    return FakeVcsClient()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database=DatabaseSettings(url=f"sqlite:///{tmp_path / 'linetrack.db'}"),
        git=GitSettings(repos_dir=str(tmp_path / "repos")),
        analysis=AnalysisSettings(top_files_limit=10),
        retry=RetrySettings(poll_interval_seconds=0.05),
    )


@pytest.fixture
def orchestrator(repositories, ledger, fake_vcs, leases, tmp_path):
    return AnalysisOrchestrator(
        repositories=repositories,
        ledger=ledger,
        vcs=fake_vcs,
        analyzer=CommitAnalyzer(),
        leases=leases,
        repos_dir=str(tmp_path / "repos"),
        top_files_limit=10,
        default_extensions=[".cs", ".ts"],
    )


@pytest.fixture
def repository(repositories):
    return repositories.add_repository(
        user_id=str(uuid4()),
        owner="acme",
        name="widgets",
        clone_url="https://example.com/acme/widgets.git",
    )
