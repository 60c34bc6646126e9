"""Fold a parent branch into its only stacked child."""

from dataclasses import dataclass
from pathlib import Path

from git_repos import output
from git_repos.errors import (
    CONFLICT_HELP,
    GitCommandError,
    GitConflictError,
    NotStackedError,
    SiblingConflictError,
    WorktreeNotFoundError,
)
from git_repos.operations.config import RepoEntry, with_stacks
from git_repos.operations.executor import GitExecutor, find_worktree_by_branch
from git_repos.operations.fork_point import ForkPointTracker
from git_repos.operations.restack import ExecutorFactory
from git_repos.operations.stack_graph import (
    add_entry,
    children_of,
    parent_of,
    remove_by_child,
)


@dataclass(frozen=True, slots=True)
class CollapseResult:
    repo: RepoEntry
    branch: str
    removed_parent: str
    new_parent: str | None
    target: str
    parent_worktree_removed: bool


class Collapser:
    """Collapse ``P -> branch`` into ``G -> branch`` and remove P's worktree."""

    def __init__(self, repo: RepoEntry, git: ExecutorFactory = GitExecutor):
        self.repo = repo
        self.git = git
        self.repo_git = git(Path(repo.path))
        self.forks = ForkPointTracker(self.repo_git)

    def collapse(self, branch: str) -> CollapseResult:
        stacks = self.repo.stacks
        parent = parent_of(stacks, branch)
        if parent is None:
            raise NotStackedError(f'Branch "{branch}" is not stacked on any parent.')

        siblings = [c for c in children_of(stacks, parent) if c != branch]
        if siblings:
            raise SiblingConflictError(
                f'Parent "{parent}" has other children: {", ".join(siblings)}\n'
                "Collapse or unstack the other children first."
            )

        worktrees = self.repo_git.list_worktrees()
        worktree = find_worktree_by_branch(worktrees, branch)
        if worktree is None:
            raise WorktreeNotFoundError(f'No worktree found for branch "{branch}"')
        parent_worktree = find_worktree_by_branch(worktrees, parent)
        if parent_worktree is None:
            raise WorktreeNotFoundError(f'Parent worktree for "{parent}" not found.')

        self.git(Path(parent_worktree.path)).ensure_clean_working_tree(
            f'Parent worktree "{parent}" has uncommitted changes. Commit or stash them first.'
        )

        grandparent = parent_of(stacks, parent)
        branch_git = self.git(Path(worktree.path))
        if grandparent is not None:
            target = grandparent
            output.status(
                f'Collapsing "{parent}" - rebasing "{branch}" onto "{grandparent}"...'
            )
            # Replay from the parent's fork point so both the parent's and the
            # branch's own commits land on the grandparent's current tip.
            fork_point = self.forks.resolve(parent, grandparent)
            if fork_point is None:
                result = branch_git.rebase(target)
            else:
                result = branch_git.rebase_onto(target, fork_point)
        else:
            self.repo_git.fetch()
            target = self.repo_git.get_trunk_ref()
            output.status(f'Collapsing "{parent}" - rebasing "{branch}" onto "{target}"...')
            result = branch_git.rebase(target)

        if result.status == "conflict":
            raise GitConflictError(
                f"{CONFLICT_HELP}\n\nRun \"repos collapse\" again once the rebase is done.",
                branch=branch,
            )
        if result.status == "failed":
            raise GitCommandError(["rebase", target], result.output)

        stacks = remove_by_child(stacks, branch)
        stacks = remove_by_child(stacks, parent)
        if grandparent is not None:
            stacks = add_entry(stacks, grandparent, branch)
        self.repo = with_stacks(self.repo, stacks)

        try:
            self.forks.clear(branch)
            self.forks.clear(parent)
            if grandparent is not None:
                self.forks.record_parent_tip(branch, grandparent)
        except GitCommandError as e:
            output.warning(f"Failed to update fork point references: {e}")

        output.status(f'Removing parent worktree "{parent}"...')
        removed = True
        try:
            self.repo_git.remove_worktree(Path(parent_worktree.path))
        except GitCommandError as e:
            removed = False
            output.warning(f"Failed to remove parent worktree: {e}")

        return CollapseResult(
            repo=self.repo,
            branch=branch,
            removed_parent=parent,
            new_parent=grandparent,
            target=target,
            parent_worktree_removed=removed,
        )
