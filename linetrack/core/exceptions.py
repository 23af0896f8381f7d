"""Exception hierarchy for linetrack."""


class LineTrackError(Exception):
    """Base class for all linetrack errors."""


class VcsError(LineTrackError):
    """A git command failed."""

    def __init__(self, message: str, command=None, stderr: str = ""):
        super().__init__(message)
        self.command = command
        self.stderr = stderr


class RepositoryNotPresentError(VcsError):
    """The working copy does not exist locally (clone instead of pull)."""


class SyncError(LineTrackError):
    """Clone/pull failed; the analysis pass was aborted."""

    def __init__(self, repository_id, message: str):
        super().__init__(f"Sync failed for repository {repository_id}: {message}")
        self.repository_id = repository_id


class RepositoryNotFoundError(LineTrackError):
    """No tracked repository with the given id."""

    def __init__(self, repository_id):
        super().__init__(f"Repository {repository_id} not found")
        self.repository_id = repository_id


class LeaseUnavailable(LineTrackError):
    """Another checkout session holds the repository's working copy."""

    def __init__(self, repository_id):
        super().__init__(f"Working copy for repository {repository_id} is busy")
        self.repository_id = repository_id
