"""Track, clone, adopt and update repositories."""

import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from pathlib import Path

from git_repos import output
from git_repos.errors import GitCommandError, RepoAlreadyTrackedError, ReposError
from git_repos.operations.cleanup import MAX_WORKERS
from git_repos.operations.config import (
    RepoEntry,
    ReposConfig,
    add_repo,
    extract_repo_name,
    find_repo,
    get_repo,
    remove_repo,
    update_repo,
)
from git_repos.operations.executor import GitExecutor, WorktreeInfo
from git_repos.operations.restack import ExecutorFactory


@dataclass(frozen=True, slots=True)
class RepoStatus:
    """A tracked repo as shown by ``repos list``."""

    repo: RepoEntry
    cloned: bool
    worktrees: tuple[WorktreeInfo, ...] = ()


@dataclass(frozen=True, slots=True)
class PullResult:
    name: str
    error: str | None = None
    updated: bool = False
    branch: str | None = None
    branch_changed: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class AdoptResult:
    config: ReposConfig
    adopted: tuple[RepoEntry, ...] = ()
    failed: tuple[tuple[str, str], ...] = ()


class RepoTracker:
    def __init__(
        self,
        config: ReposConfig,
        git: ExecutorFactory = GitExecutor,
        max_workers: int = MAX_WORKERS,
    ):
        self.config = config
        self.git = git
        self.max_workers = max_workers

    def is_cloned(self, repo: RepoEntry) -> bool:
        return self.git(Path(repo.path)).is_git_repo()

    def add(self, url: str, directory: Path, bare: bool = False) -> RepoEntry:
        """Clone ``url`` into ``directory/<name>`` and start tracking it."""
        name = extract_repo_name(url)
        if find_repo(self.config, name):
            raise RepoAlreadyTrackedError(f'"{name}" is already tracked')

        target = Path(directory) / name
        label = " (bare)" if bare else ""
        output.status(f"Cloning {url}{label} to {target}...")
        self.git(Path(directory)).clone(url, target, bare=bare)

        branch = None if bare else self.git(target).get_current_branch()
        repo = RepoEntry(name=name, url=url, path=target, bare=bare, branch=branch)
        self.config = add_repo(self.config, repo)
        return repo

    def clone(self, name: str | None = None) -> tuple[list[str], list[str]]:
        """Clone tracked repos that are missing on disk.

        Returns the names cloned and the names skipped because they exist.
        A failing clone of a single named repo raises; with no name it is
        reported and the remaining repos are still cloned.
        """
        repos = [get_repo(self.config, name)] if name else list(self.config.repos)
        cloned: list[str] = []
        skipped: list[str] = []
        for repo in repos:
            if self.is_cloned(repo):
                skipped.append(repo.name)
                continue
            output.status(f"Cloning {repo.name}...")
            try:
                path = Path(repo.path)
                path.parent.mkdir(parents=True, exist_ok=True)
                self.git(path.parent).clone(repo.url, path, bare=repo.bare)
            except GitCommandError as e:
                if name:
                    raise
                output.error(f"Failed cloning {repo.name}: {e}")
                continue
            cloned.append(repo.name)
        return cloned, skipped

    def _adopt_entry(self, path: Path) -> RepoEntry:
        git = self.git(path)
        url = git.get_remote_url()
        if url is None:
            raise ReposError("No remote origin found")
        bare = git.is_bare_repository()
        branch = None if bare else git.get_current_branch()
        return RepoEntry(name=path.name, url=url, path=path, bare=bare, branch=branch)

    def adopt(self, directory: Path) -> AdoptResult:
        """Track an existing clone, or every untracked clone under ``directory``."""
        directory = Path(directory).resolve()
        if self.git(directory).is_git_repo():
            repo = self._adopt_entry(directory)
            self.config = add_repo(self.config, repo)
            return AdoptResult(config=self.config, adopted=(repo,))

        adopted: list[RepoEntry] = []
        failed: list[tuple[str, str]] = []
        for path in sorted(p for p in directory.iterdir() if p.is_dir()):
            if find_repo(self.config, path.name) or not self.git(path).is_git_repo():
                continue
            try:
                repo = self._adopt_entry(path)
            except ReposError as e:
                failed.append((path.name, str(e)))
                continue
            self.config = add_repo(self.config, repo)
            adopted.append(repo)
        return AdoptResult(config=self.config, adopted=tuple(adopted), failed=tuple(failed))

    def remove(self, name: str, delete: bool = False) -> RepoEntry:
        """Stop tracking ``name``; with ``delete`` also remove its directory."""
        repo = get_repo(self.config, name)
        self.config = remove_repo(self.config, name)
        if delete:
            path = Path(repo.path)
            if self.is_cloned(repo):
                shutil.rmtree(path)
                output.status(f"Deleted directory: {path}")
            else:
                output.warning(f"Directory not found or not a git repo: {path}")
        return repo

    def status(self) -> list[RepoStatus]:
        statuses = []
        for repo in self.config.repos:
            if not self.is_cloned(repo):
                statuses.append(RepoStatus(repo=repo, cloned=False))
                continue
            worktrees = self.git(Path(repo.path)).list_worktrees()
            statuses.append(
                RepoStatus(
                    repo=repo,
                    cloned=True,
                    worktrees=tuple(wt for wt in worktrees if not wt.is_main),
                )
            )
        return statuses

    def pull(self, repo: RepoEntry) -> PullResult:
        git = self.git(Path(repo.path))
        if not git.is_git_repo():
            return PullResult(name=repo.name, error="not cloned")
        try:
            updated = git.pull()
            branch = git.get_current_branch()
        except GitCommandError as e:
            return PullResult(name=repo.name, error=str(e))
        return PullResult(
            name=repo.name,
            updated=updated,
            branch=branch,
            branch_changed=branch != repo.branch,
        )

    def latest(self) -> list[PullResult]:
        """Pull every non-bare repo concurrently.

        Branch changes are written into the config only once every pull has
        returned, in config order.
        """
        repos = [r for r in self.config.repos if not r.bare]
        if not repos:
            return []

        workers = min(self.max_workers, len(repos))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(self.pull, repos))

        for repo, result in zip(repos, results):
            if result.ok and result.branch_changed and result.branch:
                self.config = update_repo(self.config, replace(repo, branch=result.branch))
        return results
