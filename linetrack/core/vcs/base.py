"""VCS client contract consumed by the analysis engine."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class CommitInfo:
    """One commit as listed by the VCS client."""
    sha: str
    timestamp: datetime   # naive UTC, author date


class BaseVcsClient(ABC):
    """Clone/pull/checkout/diff over a local working copy.

    Implementations raise VcsError on command failure and
    RepositoryNotPresentError from pull() when the working copy is missing.
    """

    @abstractmethod
    def clone(self, url: str, dest: str) -> str:
        """Clone url into dest and return the working copy path."""
        ...

    @abstractmethod
    def pull(self, path: str) -> str:
        """Bring an existing working copy up to date and return its path."""
        ...

    @abstractmethod
    def list_commits(self, path: str, since: Optional[datetime] = None) -> List[CommitInfo]:
        """Commits reachable from the remote head, strictly newer than since."""
        ...

    @abstractmethod
    def checkout(self, path: str, sha: str) -> None:
        """Materialize the tree of sha in the working copy."""
        ...

    @abstractmethod
    def diff_stats(self, path: str, sha: str) -> Tuple[int, int]:
        """(lines_added, lines_removed) introduced by sha."""
        ...
