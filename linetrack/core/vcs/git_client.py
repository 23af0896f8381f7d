"""Git CLI adapter.

Shells out to the `git` executable. Every command runs with a timeout and
a non-zero exit becomes a VcsError carrying git's stderr.
"""

import logging
import os
import shutil
import subprocess
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlsplit, urlunsplit

from ..exceptions import RepositoryNotPresentError, VcsError
from .base import BaseVcsClient, CommitInfo

logger = logging.getLogger(__name__)

# SHA of the empty tree; diff base for root commits
EMPTY_TREE_SHA = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

REMOTE_HEAD = "origin/HEAD"


class GitClient(BaseVcsClient):
    """VCS client backed by the git command line."""

    def __init__(self, timeout: int = 300, access_token: Optional[str] = None):
        self.timeout = timeout
        self._access_token = access_token

    # ── Command plumbing ────────────────────────────────────────────────

    def _run(self, args: Sequence[str], cwd: Optional[str] = None) -> str:
        command = ["git", *args]
        try:
            proc = subprocess.run(
                command,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise VcsError(f"git {args[0]} timed out ({self.timeout}s limit)", command=args)
        except FileNotFoundError:
            raise VcsError("git is not installed or not in PATH", command=args)

        if proc.returncode != 0:
            stderr = proc.stderr.strip()
            raise VcsError(
                stderr or f"git {args[0]} failed with code {proc.returncode}",
                command=args,
                stderr=stderr,
            )
        return proc.stdout

    def _authenticated_url(self, url: str) -> str:
        """Embed the access token in https clone URLs."""
        if not self._access_token:
            return url
        parts = urlsplit(url)
        if parts.scheme != "https" or "@" in parts.netloc:
            return url
        netloc = f"x-access-token:{self._access_token}@{parts.netloc}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))

    @staticmethod
    def _is_work_tree(path: str) -> bool:
        return os.path.isdir(os.path.join(path, ".git"))

    def _has_ref(self, path: str, ref: str) -> bool:
        try:
            self._run(["rev-parse", "--verify", "--quiet", ref], cwd=path)
            return True
        except VcsError:
            return False

    # ── Public API ──────────────────────────────────────────────────────

    def clone(self, url: str, dest: str) -> str:
        dest = os.path.abspath(dest)
        if os.path.exists(dest):
            # Leftover from an interrupted clone
            logger.warning(f"Removing incomplete working copy at {dest}")
            shutil.rmtree(dest, ignore_errors=True)
        os.makedirs(os.path.dirname(dest), exist_ok=True)

        logger.info(f"Cloning {url} to {dest}")
        self._run(["clone", "--no-checkout", self._authenticated_url(url), dest])
        if self._has_ref(dest, REMOTE_HEAD):
            self._run(["checkout", "--force", "--detach", REMOTE_HEAD], cwd=dest)
        logger.info(f"Clone complete: {dest}")
        return dest

    def pull(self, path: str) -> str:
        path = os.path.abspath(path)
        if not self._is_work_tree(path):
            raise RepositoryNotPresentError(f"Local repository not found or invalid at {path}")

        logger.info(f"Fetching updates for {path}")
        self._run(["fetch", "--prune", "origin"], cwd=path)
        if not self._has_ref(path, REMOTE_HEAD):
            self._run(["remote", "set-head", "origin", "--auto"], cwd=path)
        self._run(["checkout", "--force", "--detach", REMOTE_HEAD], cwd=path)
        return path

    def list_commits(self, path: str, since: Optional[datetime] = None) -> List[CommitInfo]:
        ref = REMOTE_HEAD if self._has_ref(path, REMOTE_HEAD) else "HEAD"
        output = self._run(["log", "--reverse", "--format=%H %at", ref], cwd=path)

        commits = []
        for line in output.splitlines():
            if not line.strip():
                continue
            sha, epoch = line.split()
            timestamp = datetime.fromtimestamp(int(epoch), tz=timezone.utc).replace(tzinfo=None)
            if since is None or timestamp > since:
                commits.append(CommitInfo(sha=sha, timestamp=timestamp))

        logger.info(f"Found {len(commits)} commits in {path} since {since}")
        return commits

    def checkout(self, path: str, sha: str) -> None:
        self._run(["checkout", "--force", "--detach", sha], cwd=path)

    def diff_stats(self, path: str, sha: str) -> Tuple[int, int]:
        parents = self._run(["rev-list", "--parents", "-n", "1", sha], cwd=path).split()
        base = f"{sha}^1" if len(parents) > 1 else EMPTY_TREE_SHA
        output = self._run(["diff", "--numstat", "--no-renames", base, sha], cwd=path)

        added = removed = 0
        for line in output.splitlines():
            fields = line.split("\t")
            if len(fields) < 3:
                continue
            # Binary files report "-"
            if fields[0].isdigit():
                added += int(fields[0])
            if fields[1].isdigit():
                removed += int(fields[1])
        return added, removed
