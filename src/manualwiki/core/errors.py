"""Exception hierarchy for ManualWiki."""


class ManualError(Exception):
    """Base class for all ManualWiki errors."""


class NotFound(ManualError):
    """A content file, revision, or file-at-revision does not exist."""


class Unavailable(ManualError):
    """A historical lookup was requested but no version store is present."""


class ReadFailure(ManualError):
    """Content bytes could not be read."""


class VersionStoreError(ManualError):
    """A git command failed.

    Attributes:
        message: Error description
        git_output: Git command stderr output
    """

    def __init__(self, message: str, git_output: str = ""):
        super().__init__(message)
        self.message = message
        self.git_output = git_output


class NoChanges(ManualError):
    """The worktree is clean, so there is nothing to commit."""


class ManualIndexError(ManualError):
    """The page index is missing, malformed, or inconsistent."""


class ManualRootNotFound(ManualError):
    """No manuals directory could be located."""
