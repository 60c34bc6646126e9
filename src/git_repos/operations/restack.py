"""Restack stacked branches onto their parents and resume paused restacks."""

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from git_repos import output
from git_repos.errors import (
    NoRebaseInProgressError,
    NotStackedError,
    ReposError,
    WorktreeNotFoundError,
)
from git_repos.operations.config import RepoEntry, with_stacks
from git_repos.operations.executor import (
    GitExecutor,
    RebaseResult,
    WorktreeInfo,
    find_worktree_by_branch,
    find_worktree_by_directory,
)
from git_repos.operations.fork_point import ForkPointTracker
from git_repos.operations.stack_graph import (
    children_of,
    descendants_of,
    parent_of,
    remove_by_child,
)

ExecutorFactory = Callable[[Path], GitExecutor]


@dataclass(frozen=True, slots=True)
class RestackResult:
    """What a restack or continue did.

    ``repo`` carries any stack edits (stale parents dropped) and must be saved
    by the caller. At most one of ``paused`` and ``failed`` is set; either one
    stops propagation and leaves ``skipped`` branches untouched.
    """

    repo: RepoEntry
    restacked: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()
    paused: str | None = None
    failed: str | None = None
    path: Path | None = None
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.paused is None and self.failed is None


class Restacker:
    """Rebase stacked branches, replaying only commits after their fork point.

    Propagation to children uses an explicit depth-first worklist and runs one
    rebase at a time: worktrees share one object store.
    """

    def __init__(self, repo: RepoEntry, git: ExecutorFactory = GitExecutor):
        self.repo = repo
        self.git = git
        self.repo_git = git(Path(repo.path))
        self.forks = ForkPointTracker(self.repo_git)

    def _live_children(self, branch: str, worktrees: list[WorktreeInfo]) -> list[str]:
        return [
            child
            for child in children_of(self.repo.stacks, branch)
            if find_worktree_by_branch(worktrees, child) is not None
        ]

    def _drop_parent(self, branch: str) -> None:
        self.repo = with_stacks(self.repo, remove_by_child(self.repo.stacks, branch))

    def restack_one(
        self, branch: str, worktree: WorktreeInfo, worktrees: list[WorktreeInfo]
    ) -> RebaseResult:
        """Rebase a single stacked branch onto its parent, or onto the trunk
        if the parent's worktree is gone."""
        parent = parent_of(self.repo.stacks, branch)
        if parent is None:
            raise NotStackedError(f'No parent branch recorded for "{branch}".')

        branch_git = self.git(Path(worktree.path))

        if find_worktree_by_branch(worktrees, parent) is not None:
            fork_point = self.forks.resolve(branch, parent)
            output.status(f'Rebasing "{branch}" on parent branch "{parent}"...')
            if fork_point is None:
                result = branch_git.rebase(parent)
            else:
                result = branch_git.rebase_onto(parent, fork_point)
            if result.ok:
                self.forks.record_parent_tip(branch, parent)
            return result

        self.repo_git.fetch()
        target = self.repo_git.get_trunk_ref()
        self._drop_parent(branch)
        output.warning(f'Parent "{parent}" is gone. Rebasing "{branch}" on "{target}"...')
        result = branch_git.rebase(target)
        if result.ok:
            self.forks.clear(branch)
        return result

    def _propagate(
        self,
        roots: list[str],
        worktrees: list[WorktreeInfo],
        restacked: list[str],
    ) -> RestackResult:
        pending = list(reversed(roots))
        while pending:
            branch = pending.pop()
            worktree = find_worktree_by_branch(worktrees, branch)
            if worktree is None:
                continue

            result = self.restack_one(branch, worktree, worktrees)
            if not result.ok:
                stopped = {"paused": branch} if result.status == "conflict" else {"failed": branch}
                return RestackResult(
                    repo=self.repo,
                    restacked=tuple(restacked),
                    skipped=tuple(reversed(pending)),
                    path=Path(worktree.path),
                    output=result.output,
                    **stopped,
                )

            restacked.append(branch)
            output.status(f'Rebased "{branch}"')
            pending.extend(reversed(self._live_children(branch, worktrees)))

        return RestackResult(repo=self.repo, restacked=tuple(restacked))

    def restack(self, branch: str) -> RestackResult:
        """Restack ``branch`` and then every descendant with a worktree."""
        if parent_of(self.repo.stacks, branch) is None:
            raise NotStackedError(
                f'No parent branch recorded for "{branch}". Use "repos rebase" instead.'
            )

        worktrees = self.repo_git.list_worktrees()
        if find_worktree_by_branch(worktrees, branch) is None:
            raise WorktreeNotFoundError(f'No worktree found for branch "{branch}"')

        descendants = descendants_of(self.repo.stacks, branch)
        if descendants:
            output.status(f"Restacking \"{branch}\" and {len(descendants)} descendant(s)...")
        return self._propagate([branch], worktrees, [])

    def resume(self, directory: Path) -> RestackResult:
        """Continue a paused rebase in the worktree containing ``directory``,
        re-anchor the branch and restack its children."""
        worktrees = self.repo_git.list_worktrees()
        worktree = find_worktree_by_directory(worktrees, directory)
        if worktree is None:
            raise WorktreeNotFoundError("Not inside a worktree. Run from inside a worktree.")

        branch_git = self.git(Path(worktree.path))
        if not branch_git.is_rebase_in_progress():
            raise NoRebaseInProgressError("No rebase in progress.")

        branch = worktree.branch or branch_git.get_rebase_branch()
        if not branch:
            raise ReposError("Could not determine the branch being rebased.")

        output.status("Continuing rebase...")
        result = branch_git.rebase_continue()
        if not result.ok:
            stopped = {"paused": branch} if result.status == "conflict" else {"failed": branch}
            return RestackResult(
                repo=self.repo, path=Path(worktree.path), output=result.output, **stopped
            )

        worktrees = self.repo_git.list_worktrees()
        parent = parent_of(self.repo.stacks, branch)
        if parent is None:
            self.forks.clear(branch)
        elif find_worktree_by_branch(worktrees, parent) is None:
            self._drop_parent(branch)
            self.forks.clear(branch)
            output.status(
                f'Parent "{parent}" no longer has a worktree, removed fork point tracking.'
            )
        elif self.forks.record_parent_tip(branch, parent):
            output.status("Updated fork point reference.")

        output.status("Rebase completed successfully.")

        children = self._live_children(branch, worktrees)
        if children:
            output.status(f"Restacking {len(children)} child branch(es)...")
        return self._propagate(children, worktrees, [branch])
