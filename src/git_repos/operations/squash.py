"""Squash every commit since a branch's base into one."""

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from git_repos import output
from git_repos.errors import (
    GitCommandError,
    NothingToSquashError,
    PartialSquashError,
    ReposError,
)
from git_repos.operations.config import RepoEntry
from git_repos.operations.executor import CommitInfo, GitExecutor
from git_repos.operations.restack import ExecutorFactory
from git_repos.operations.stack_graph import parent_of

MessageSource = Literal["explicit", "first", "editor"]


@dataclass(frozen=True, slots=True)
class SquashOptions:
    message: str | None = None
    use_first_commit_message: bool = False
    dry_run: bool = False

    def validate(self) -> None:
        if self.message is not None and self.use_first_commit_message:
            raise ReposError("Cannot use both -m and -f flags together.")
        if self.message is not None and not self.message.strip():
            raise ReposError("Commit message cannot be empty.")


@dataclass(frozen=True, slots=True)
class SquashPlan:
    """What would be squashed. ``commits`` is newest first and only listed
    for a dry run."""

    branch: str
    base_ref: str
    merge_base: str
    commit_count: int
    commits: tuple[CommitInfo, ...] = ()
    branches_containing: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class SquashResult:
    plan: SquashPlan
    squashed: bool
    message_source: MessageSource | None = None

    @property
    def commit_count(self) -> int:
        return self.plan.commit_count


class Squasher:
    def __init__(self, repo: RepoEntry, git: ExecutorFactory = GitExecutor):
        self.repo = repo
        self.git = git

    def plan(self, worktree_path: Path, detailed: bool = False) -> SquashPlan:
        """Resolve the base and the commits since it.

        The base is the parent branch for stacked branches and the trunk
        upstream otherwise. Commits are counted from the merge base rather
        than the base ref, so history the base already contains through an
        earlier squash or rebase is not counted again.
        """
        git = self.git(worktree_path)
        branch = git.get_current_branch()

        parent = parent_of(self.repo.stacks, branch)
        if parent is not None:
            base_ref = parent
            output.status(f'Squashing commits since parent branch "{parent}"...')
        else:
            git.fetch()
            base_ref = git.get_trunk_ref()
            output.status(f'Squashing commits since "{base_ref}"...')

        merge_base = git.get_merge_base(base_ref, "HEAD")
        if merge_base is None:
            raise GitCommandError(
                ["merge-base", base_ref, "HEAD"], f'No merge base between "{base_ref}" and HEAD'
            )

        commits: tuple[CommitInfo, ...] = ()
        branches: tuple[str, ...] = ()
        if detailed:
            commits = tuple(git.get_commit_list(merge_base))
            branches = tuple(git.get_branches_containing(merge_base))
        return SquashPlan(
            branch=branch,
            base_ref=base_ref,
            merge_base=merge_base,
            commit_count=git.get_commit_count(merge_base),
            commits=commits,
            branches_containing=branches,
        )

    def squash(self, worktree_path: Path, options: SquashOptions) -> SquashResult:
        options.validate()
        git = self.git(worktree_path)
        if not options.dry_run:
            git.ensure_clean_working_tree(
                "Working directory has uncommitted changes. Commit or stash them first."
            )

        plan = self.plan(worktree_path, detailed=options.dry_run)
        count = plan.commit_count
        if count == 0:
            raise NothingToSquashError("No commits to squash.")
        if options.dry_run:
            return SquashResult(plan=plan, squashed=False)
        if count == 1:
            output.status("Only 1 commit since base - nothing to squash.")
            return SquashResult(plan=plan, squashed=False)

        output.status(f"Found {count} commits to squash.")

        message = options.message
        source: MessageSource = "explicit" if message is not None else "editor"
        if options.use_first_commit_message:
            message = git.get_first_commit_message(plan.merge_base)
            source = "first"
            subject = message.partition("\n")[0]
            output.status(f'Using first commit message: "{subject}"')

        git.soft_reset(plan.merge_base)

        # The reset is not rolled back: its changes are staged and safe.
        try:
            if message is not None:
                git.commit(message)
            else:
                git.commit_with_editor()
        except GitCommandError as e:
            raise PartialSquashError(
                f"{e}\nYour changes are staged. Run \"git commit\" to complete."
            )

        return SquashResult(plan=plan, squashed=True, message_source=source)
