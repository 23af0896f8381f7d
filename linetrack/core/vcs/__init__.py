"""Version control adapters.

Public API:
    BaseVcsClient   - contract used by the analysis engine
    GitClient       - implementation over the git CLI
    CommitInfo      - (sha, timestamp) pair
"""

from .base import BaseVcsClient, CommitInfo
from .git_client import GitClient

__all__ = [
    "BaseVcsClient",
    "CommitInfo",
    "GitClient",
]
