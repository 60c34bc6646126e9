"""Detach a stacked branch from its parent."""

from dataclasses import dataclass
from pathlib import Path

from git_repos import output
from git_repos.errors import (
    CONFLICT_HELP,
    GitCommandError,
    GitConflictError,
    NotStackedError,
    WorktreeNotFoundError,
)
from git_repos.operations.config import RepoEntry, with_stacks
from git_repos.operations.executor import GitExecutor, find_worktree_by_branch
from git_repos.operations.fork_point import ForkPointTracker
from git_repos.operations.restack import ExecutorFactory
from git_repos.operations.stack_graph import parent_of, remove_by_child


@dataclass(frozen=True, slots=True)
class UnstackResult:
    repo: RepoEntry
    branch: str
    parent: str
    target: str


class Unstacker:
    def __init__(self, repo: RepoEntry, git: ExecutorFactory = GitExecutor):
        self.repo = repo
        self.git = git
        self.repo_git = git(Path(repo.path))
        self.forks = ForkPointTracker(self.repo_git)

    def unstack(self, branch: str) -> UnstackResult:
        """Rebase ``branch`` onto the trunk and forget its parent."""
        parent = parent_of(self.repo.stacks, branch)
        if parent is None:
            raise NotStackedError(f'Branch "{branch}" is not stacked on any parent.')

        worktree = find_worktree_by_branch(self.repo_git.list_worktrees(), branch)
        if worktree is None:
            raise WorktreeNotFoundError(f'No worktree found for branch "{branch}"')

        branch_git = self.git(Path(worktree.path))
        branch_git.fetch()
        target = self.repo_git.get_trunk_ref()
        output.status(f'Unstacking "{branch}" from "{parent}" onto "{target}"...')

        result = branch_git.rebase(target)
        if result.status == "conflict":
            raise GitConflictError(
                f"{CONFLICT_HELP}\n\nRun \"repos unstack\" again once the rebase is done.",
                branch=branch,
            )
        if result.status == "failed":
            raise GitCommandError(["rebase", target], result.output)

        self.repo = with_stacks(self.repo, remove_by_child(self.repo.stacks, branch))
        try:
            self.forks.clear(branch)
        except GitCommandError as e:
            output.warning(f"Failed to remove fork point reference: {e}")

        return UnstackResult(repo=self.repo, branch=branch, parent=parent, target=target)
