"""Remove worktrees whose branches are merged or whose upstream is gone."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Literal

from git_repos import output
from git_repos.errors import GitCommandError
from git_repos.operations.config import (
    RepoEntry,
    ReposConfig,
    update_repo,
    with_stacks,
)
from git_repos.operations.executor import GitExecutor, WorktreeInfo
from git_repos.operations.fork_point import ForkPointTracker
from git_repos.operations.restack import ExecutorFactory
from git_repos.operations.stack_graph import remove_by_child

CleanupReason = Literal["upstream-gone", "merged"]

MAX_WORKERS = 8


@dataclass(frozen=True, slots=True)
class RepoSnapshot:
    """A repository's state after fetching, taken once per cleanup run."""

    repo: RepoEntry
    trunk_ref: str
    worktrees: tuple[WorktreeInfo, ...]


@dataclass(frozen=True, slots=True)
class CleanupCandidate:
    repo: str
    branch: str
    path: Path
    reason: CleanupReason
    skipped: bool = False
    error: str | None = None

    @property
    def removed(self) -> bool:
        return not self.skipped and self.error is None


@dataclass(frozen=True, slots=True)
class CleanupReport:
    config: ReposConfig
    dry_run: bool
    candidates: tuple[CleanupCandidate, ...] = ()
    failed_repos: tuple[str, ...] = field(default_factory=tuple)

    @property
    def removed(self) -> list[CleanupCandidate]:
        return [c for c in self.candidates if c.removed]

    @property
    def skipped(self) -> list[CleanupCandidate]:
        return [c for c in self.candidates if c.skipped]

    def count(self, reason: CleanupReason) -> int:
        return sum(1 for c in self.removed if c.reason == reason)


class Cleaner:
    """Two phases: prepare every repo concurrently, then inspect and remove
    worktrees one at a time per repo against that repo's snapshot."""

    def __init__(
        self,
        config: ReposConfig,
        git: ExecutorFactory = GitExecutor,
        max_workers: int = MAX_WORKERS,
    ):
        self.config = config
        self.git = git
        self.max_workers = max_workers

    def prepare(self, repo: RepoEntry) -> RepoSnapshot:
        git = self.git(Path(repo.path))
        git.ensure_refspec_config()
        git.fetch(prune=True)
        trunk_ref = git.get_trunk_ref()
        return RepoSnapshot(
            repo=repo, trunk_ref=trunk_ref, worktrees=tuple(git.list_worktrees())
        )

    def prepare_all(self) -> tuple[list[RepoSnapshot], list[str]]:
        snapshots: list[RepoSnapshot] = []
        failed: list[str] = []
        if not self.config.repos:
            return snapshots, failed

        workers = min(self.max_workers, len(self.config.repos))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [(repo, pool.submit(self.prepare, repo)) for repo in self.config.repos]
            for repo, future in futures:
                try:
                    snapshots.append(future.result())
                except (GitCommandError, OSError) as e:
                    output.warning(f"Skipping {repo.name}: {e}")
                    failed.append(repo.name)
        return snapshots, failed

    def classify(self, snapshot: RepoSnapshot, worktree: WorktreeInfo) -> CleanupReason | None:
        """Decide whether a worktree is eligible for removal."""
        if worktree.is_main or not worktree.branch:
            return None

        git = self.git(Path(snapshot.repo.path))
        try:
            if git.get_upstream_status(worktree.branch) == "gone":
                return "upstream-gone"
        except GitCommandError:
            pass
        try:
            if git.is_branch_content_merged(worktree.branch, snapshot.trunk_ref):
                return "merged"
        except GitCommandError:
            pass
        return None

    def process(
        self, snapshot: RepoSnapshot, worktree: WorktreeInfo, dry_run: bool
    ) -> CleanupCandidate | None:
        reason = self.classify(snapshot, worktree)
        if reason is None:
            return None

        candidate = CleanupCandidate(
            repo=snapshot.repo.name,
            branch=worktree.branch,
            path=Path(worktree.path),
            reason=reason,
        )
        try:
            dirty = self.git(Path(worktree.path)).has_uncommitted_changes()
        except GitCommandError as e:
            return replace(candidate, error=str(e))
        if dirty:
            return replace(candidate, skipped=True)

        if not dry_run:
            try:
                self.git(Path(snapshot.repo.path)).remove_worktree(Path(worktree.path))
            except GitCommandError as e:
                return replace(candidate, error=str(e))
        return candidate

    def _forget(self, repo: RepoEntry, branch: str) -> RepoEntry:
        """Drop a removed branch's own edge and anchor.

        Edges from the branch to its children stay, so restacking a child
        later notices the stale parent and falls back to the trunk.
        """
        try:
            ForkPointTracker(self.git(Path(repo.path))).clear(branch)
        except GitCommandError as e:
            output.warning(f"Failed to remove fork point reference for {branch}: {e}")
        return with_stacks(repo, remove_by_child(repo.stacks, branch))

    def cleanup(self, dry_run: bool = False) -> CleanupReport:
        snapshots, failed = self.prepare_all()

        config = self.config
        candidates: list[CleanupCandidate] = []
        for snapshot in snapshots:
            repo = snapshot.repo
            for worktree in snapshot.worktrees:
                candidate = self.process(snapshot, worktree, dry_run)
                if candidate is None:
                    continue
                candidates.append(candidate)
                if candidate.removed and not dry_run:
                    repo = self._forget(repo, candidate.branch)
            if repo != snapshot.repo:
                config = update_repo(config, repo)

        return CleanupReport(
            config=config,
            dry_run=dry_run,
            candidates=tuple(candidates),
            failed_repos=tuple(failed),
        )
