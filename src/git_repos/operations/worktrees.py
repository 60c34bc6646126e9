"""Create, stack, rebase and remove worktrees."""

from dataclasses import dataclass
from pathlib import Path

from git_repos import output
from git_repos.errors import (
    CONFLICT_HELP,
    BranchExistsError,
    GitCommandError,
    GitConflictError,
    HasStackedChildrenError,
    ReposError,
    WorktreeNotFoundError,
)
from git_repos.operations.config import RepoEntry, get_worktree_path, with_stacks
from git_repos.operations.executor import (
    GitExecutor,
    WorktreeInfo,
    find_worktree_by_branch,
    find_worktree_by_directory,
)
from git_repos.operations.fork_point import ForkPointTracker
from git_repos.operations.restack import ExecutorFactory
from git_repos.operations.stack_graph import (
    add_entry,
    children_of,
    parent_of,
    remove_all_by_parent,
    remove_by_child,
)


@dataclass(frozen=True, slots=True)
class WorktreeResult:
    repo: RepoEntry
    branch: str
    path: Path
    created: bool = True
    parent: str | None = None


class WorktreeManager:
    def __init__(self, repo: RepoEntry, git: ExecutorFactory = GitExecutor):
        self.repo = repo
        self.git = git
        self.repo_git = git(Path(repo.path))
        self.forks = ForkPointTracker(self.repo_git)

    def worktrees(self) -> list[WorktreeInfo]:
        return self.repo_git.list_worktrees()

    def current(self, directory: Path) -> WorktreeInfo:
        """The worktree containing ``directory``; it must be on a branch."""
        worktree = find_worktree_by_directory(self.worktrees(), directory)
        if worktree is None or not worktree.branch:
            raise WorktreeNotFoundError(
                "Not inside a worktree. Run from inside a worktree."
            )
        return worktree

    def resolve(self, branch: str | None, directory: Path) -> WorktreeInfo:
        if not branch:
            return self.current(directory)
        worktree = find_worktree_by_branch(self.worktrees(), branch)
        if worktree is None:
            raise WorktreeNotFoundError(f'No worktree found for branch "{branch}"')
        return worktree

    def work(self, branch: str) -> WorktreeResult:
        """Return the worktree for ``branch``, creating it if needed."""
        existing = find_worktree_by_branch(self.worktrees(), branch)
        if existing is not None:
            return WorktreeResult(
                repo=self.repo, branch=branch, path=Path(existing.path), created=False
            )

        self.repo_git.ensure_refspec_config()
        path = get_worktree_path(self.repo, branch)
        output.status(f'Creating worktree for "{branch}"...')
        self.repo_git.create_worktree(path, branch)
        return WorktreeResult(repo=self.repo, branch=branch, path=path)

    def stack(self, directory: Path, new_branch: str) -> WorktreeResult:
        """Create ``new_branch`` on top of the current worktree's branch and
        record the relationship with a fork-point anchor."""
        worktrees = self.worktrees()
        current = find_worktree_by_directory(worktrees, directory)
        if current is None or not current.branch:
            raise WorktreeNotFoundError(
                "Must be inside a worktree with a branch to stack from."
            )
        parent = current.branch

        if find_worktree_by_branch(worktrees, new_branch) is not None:
            raise BranchExistsError(f'Worktree for branch "{new_branch}" already exists.')
        if self.repo_git.local_branch_exists(new_branch):
            raise BranchExistsError(f'Branch "{new_branch}" already exists locally')

        self.repo_git.ensure_refspec_config()
        if self.repo_git.remote_branch_exists(new_branch):
            raise BranchExistsError(f'Branch "{new_branch}" already exists on remote')

        stacks = add_entry(self.repo.stacks, parent, new_branch)
        path = get_worktree_path(self.repo, new_branch)
        output.status(f'Creating stacked branch "{new_branch}" from "{parent}"...')
        self.repo_git.create_worktree_from_branch(path, new_branch, parent)

        self.repo = with_stacks(self.repo, stacks)
        self.forks.record_parent_tip(new_branch, parent)
        return WorktreeResult(repo=self.repo, branch=new_branch, path=path, parent=parent)

    def clean(self, branch: str, force: bool = False) -> WorktreeResult:
        """Remove the worktree for ``branch`` and forget its stack edges.

        With ``force`` a branch with stacked children may be removed; the
        children keep their commits but become independent.
        """
        worktree = find_worktree_by_branch(self.worktrees(), branch)
        if worktree is None:
            raise WorktreeNotFoundError(f'No worktree found for branch "{branch}"')
        if worktree.is_main:
            raise ReposError("Cannot remove the main worktree")

        self.git(Path(worktree.path)).ensure_clean_working_tree(
            "Worktree has uncommitted changes. Commit or stash them first."
        )

        children = children_of(self.repo.stacks, branch)
        if children and not force:
            raise HasStackedChildrenError(
                f'Branch "{branch}" has stacked children: {", ".join(children)}\n'
                "Use --force to remove anyway (children will become independent)."
            )

        output.status(f'Removing worktree for "{branch}"...')
        self.repo_git.remove_worktree(Path(worktree.path))

        stacks = remove_by_child(self.repo.stacks, branch)
        stacks = remove_all_by_parent(stacks, branch)
        self.repo = with_stacks(self.repo, stacks)
        for orphan in [branch, *children]:
            try:
                self.forks.clear(orphan)
            except GitCommandError as e:
                output.warning(f"Failed to remove fork point reference for {orphan}: {e}")

        return WorktreeResult(repo=self.repo, branch=branch, path=Path(worktree.path))

    def rebase(self, worktree: WorktreeInfo) -> str:
        """Fetch and rebase a worktree onto the trunk upstream."""
        if parent_of(self.repo.stacks, worktree.branch) is not None:
            output.warning(
                f'"{worktree.branch}" is stacked; "repos restack" keeps it on its parent.'
            )
        worktree_git = self.git(Path(worktree.path))
        worktree_git.fetch()
        target = self.repo_git.get_trunk_ref()
        output.status(f'Fetching and rebasing "{worktree.branch}" on "{target}"...')

        result = worktree_git.rebase(target)
        if result.status == "conflict":
            raise GitConflictError(CONFLICT_HELP, branch=worktree.branch)
        if result.status == "failed":
            raise GitCommandError(["rebase", target], result.output)
        return target
