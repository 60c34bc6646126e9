"""Custom exceptions for git-repos."""

CONFLICT_HELP = """\
Rebase paused due to conflicts.

To resolve:
  1. Fix conflicts in the affected files
  2. Stage resolved files: git add <file>
  3. Continue rebase: repos continue

To abort: git rebase --abort"""


class ReposError(Exception):
    """Base exception for all repos errors."""

    exit_code: int = 1


class InvalidConfigError(ReposError):
    """Raised when the config file cannot be parsed."""

    pass


class NotInRepoError(ReposError):
    """Raised when the current directory is not inside a tracked repo."""

    pass


class RepoNotFoundError(ReposError):
    """Raised when a repo name is not in the config."""

    pass


class RepoAlreadyTrackedError(ReposError):
    """Raised when a repo is already in the config."""

    pass


class WorktreeNotFoundError(ReposError):
    """Raised when no worktree exists for a branch or directory."""

    pass


class BranchExistsError(ReposError):
    """Raised when a new branch name is already taken."""

    pass


class NotStackedError(ReposError):
    """Raised when a branch has no recorded parent."""

    pass


class AlreadyStackedError(ReposError):
    """Raised when a branch already has a recorded parent."""

    pass


class SiblingConflictError(ReposError):
    """Raised when a parent has other stacked children."""

    pass


class HasStackedChildrenError(ReposError):
    """Raised when removing a branch that other branches are stacked on."""

    pass


class NoRebaseInProgressError(ReposError):
    """Raised when continuing without a paused rebase."""

    pass


class NothingToSquashError(ReposError):
    """Raised when there are no commits since the base."""

    pass


class UncommittedChangesError(ReposError):
    """Raised when operation requires clean working tree."""

    exit_code: int = 2


class GitConflictError(ReposError):
    """Raised when a rebase pauses on conflicts."""

    exit_code: int = 3

    def __init__(self, message: str, branch: str | None = None):
        super().__init__(message)
        self.branch = branch


class GitCommandError(ReposError):
    """Raised when a git command fails without conflicts."""

    def __init__(self, args: list[str], stderr: str):
        self.git_args = args
        self.stderr = stderr
        super().__init__(stderr or f"git {' '.join(args)} failed")


class PartialSquashError(ReposError):
    """Raised when the squash commit fails after the soft reset."""

    exit_code: int = 4
