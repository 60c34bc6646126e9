"""Command implementations.

Each command loads the config once, resolves the repo and worktree it acts
on, runs one engine and saves the config at most once.
"""

from dataclasses import dataclass, field
from functools import partial
from pathlib import Path

from git_repos import output
from git_repos.errors import CONFLICT_HELP, GitCommandError, GitConflictError
from git_repos.operations.cleanup import Cleaner, CleanupReport
from git_repos.operations.collapse import Collapser
from git_repos.operations.config import (
    RepoEntry,
    ReposConfig,
    ReposConfigManager,
    resolve_repo,
    update_repo,
)
from git_repos.operations.executor import GitExecutor
from git_repos.operations.repos import RepoTracker
from git_repos.operations.restack import ExecutorFactory, Restacker, RestackResult
from git_repos.operations.squash import Squasher, SquashOptions, SquashResult
from git_repos.operations.stack_graph import parent_of
from git_repos.operations.unstack import Unstacker
from git_repos.operations.worktrees import WorktreeManager


@dataclass
class AppContext:
    """Shared state for one CLI invocation."""

    config_manager: ReposConfigManager = field(default_factory=ReposConfigManager)
    git: ExecutorFactory = GitExecutor
    cwd: Path = field(default_factory=Path.cwd)

    @classmethod
    def create(cls, config_path: Path | None = None, verbose: bool = False) -> "AppContext":
        return cls(
            config_manager=ReposConfigManager(config_path),
            git=partial(GitExecutor, verbose=verbose),
        )

    def load(self) -> ReposConfig:
        return self.config_manager.load()

    def save(self, config: ReposConfig) -> None:
        self.config_manager.save(config)


def _report_restack(
    ctx: AppContext, config: ReposConfig, repo: RepoEntry, result: RestackResult
) -> None:
    """Save the edited repo, then report or raise for a stopped restack."""
    if result.repo != repo:
        ctx.save(update_repo(config, result.repo))

    if result.ok:
        if result.restacked:
            output.status(f"Restacked {len(result.restacked)} branch(es).")
        return

    if result.output:
        output.status(result.output)
    if result.skipped:
        output.warning(f"Not restacked: {', '.join(result.skipped)}")
    if result.paused is not None:
        location = f"\nWorktree: {result.path}" if result.path else ""
        raise GitConflictError(f"{CONFLICT_HELP}{location}", branch=result.paused)
    raise GitCommandError(["rebase"], f'Rebase of "{result.failed}" failed.')


def cmd_work(ctx: AppContext, branch: str, repo_name: str | None) -> None:
    config = ctx.load()
    repo = resolve_repo(config, repo_name, ctx.cwd)
    result = WorktreeManager(repo, ctx.git).work(branch)
    if not result.created:
        output.status(f'Worktree for "{branch}" already exists.')
    output.emit_path(result.path)


def cmd_stack(ctx: AppContext, new_branch: str) -> None:
    config = ctx.load()
    repo = resolve_repo(config, None, ctx.cwd)
    result = WorktreeManager(repo, ctx.git).stack(ctx.cwd, new_branch)
    ctx.save(update_repo(config, result.repo))
    output.status(f'Created "{new_branch}" stacked on "{result.parent}".')
    output.emit_path(result.path)


def cmd_clean(ctx: AppContext, branch: str, repo_name: str | None, force: bool) -> None:
    config = ctx.load()
    repo = resolve_repo(config, repo_name, ctx.cwd)
    result = WorktreeManager(repo, ctx.git).clean(branch, force=force)
    if result.repo != repo:
        ctx.save(update_repo(config, result.repo))
    output.status(f'Removed worktree for "{branch}".')


def cmd_rebase(ctx: AppContext, branch: str | None, repo_name: str | None) -> None:
    config = ctx.load()
    repo = resolve_repo(config, repo_name, ctx.cwd)
    manager = WorktreeManager(repo, ctx.git)
    worktree = manager.resolve(branch, ctx.cwd)
    target = manager.rebase(worktree)
    output.status(f'Rebased "{worktree.branch}" on "{target}".')


def cmd_restack(ctx: AppContext, branch: str | None) -> None:
    config = ctx.load()
    repo = resolve_repo(config, None, ctx.cwd)
    worktree = WorktreeManager(repo, ctx.git).resolve(branch, ctx.cwd)
    result = Restacker(repo, ctx.git).restack(worktree.branch)
    _report_restack(ctx, config, repo, result)


def cmd_continue(ctx: AppContext) -> None:
    config = ctx.load()
    repo = resolve_repo(config, None, ctx.cwd)
    result = Restacker(repo, ctx.git).resume(ctx.cwd)
    _report_restack(ctx, config, repo, result)


def cmd_collapse(ctx: AppContext) -> None:
    config = ctx.load()
    repo = resolve_repo(config, None, ctx.cwd)
    worktree = WorktreeManager(repo, ctx.git).current(ctx.cwd)
    result = Collapser(repo, ctx.git).collapse(worktree.branch)
    ctx.save(update_repo(config, result.repo))

    output.status(f'Collapsed "{result.removed_parent}" into "{result.branch}".')
    if result.new_parent:
        output.status(f'"{result.branch}" is now stacked on "{result.new_parent}".')
    else:
        output.status(f'"{result.branch}" is no longer stacked (based on "{result.target}").')


def cmd_unstack(ctx: AppContext, branch: str | None) -> None:
    config = ctx.load()
    repo = resolve_repo(config, None, ctx.cwd)
    worktree = WorktreeManager(repo, ctx.git).resolve(branch, ctx.cwd)
    result = Unstacker(repo, ctx.git).unstack(worktree.branch)
    ctx.save(update_repo(config, result.repo))
    output.status(
        f'Unstacked "{result.branch}" from "{result.parent}", now based on "{result.target}".'
    )


def _print_squash_plan(result: SquashResult) -> None:
    plan = result.plan
    output.info(
        f'Would squash {result.commit_count} commit(s) on "{plan.branch}" '
        f'since "{plan.base_ref}" ({plan.merge_base[:7]}):'
    )
    for commit in plan.commits:
        output.info(f"  {commit.short_hash} {commit.subject} ({commit.author}, {commit.date})")
    if plan.branches_containing:
        output.info(f"Base is contained in: {', '.join(plan.branches_containing)}")


def cmd_squash(
    ctx: AppContext,
    message: str | None,
    use_first_commit_message: bool,
    dry_run: bool,
) -> None:
    config = ctx.load()
    repo = resolve_repo(config, None, ctx.cwd)
    worktree = WorktreeManager(repo, ctx.git).current(ctx.cwd)
    options = SquashOptions(
        message=message,
        use_first_commit_message=use_first_commit_message,
        dry_run=dry_run,
    )
    result = Squasher(repo, ctx.git).squash(Path(worktree.path), options)
    if dry_run:
        _print_squash_plan(result)
    elif result.squashed:
        output.status(f"Squashed {result.commit_count} commits into one.")


def _print_cleanup(report: CleanupReport) -> None:
    verb = "Would remove" if report.dry_run else "Removed"
    for candidate in report.candidates:
        if candidate.skipped:
            output.warning(
                f"Skipping {candidate.repo}/{candidate.branch}: uncommitted changes"
            )
        elif candidate.error is not None:
            output.error(f"Failed cleaning {candidate.repo}/{candidate.branch}: {candidate.error}")
        else:
            output.info(f"{verb} {candidate.repo}/{candidate.branch} ({candidate.reason})")

    merged = report.count("merged")
    gone = report.count("upstream-gone")
    if merged + gone == 0:
        output.info("Nothing to clean up.")
    else:
        output.info(f"{verb} {merged + gone} worktree(s): {merged} merged, {gone} upstream gone")
    if report.skipped:
        output.info(f"Skipped {len(report.skipped)} worktree(s) with uncommitted changes")
    if report.errors:
        output.warning(f"Failed on {len(report.errors)} worktree(s)")
    if report.failed_repos:
        output.warning(f"Could not check: {', '.join(report.failed_repos)}")


def cmd_cleanup(ctx: AppContext, dry_run: bool) -> None:
    config = ctx.load()
    report = Cleaner(config, ctx.git).cleanup(dry_run=dry_run)
    if report.config != config:
        ctx.save(report.config)
    _print_cleanup(report)


def cmd_list(ctx: AppContext) -> None:
    config = ctx.load()
    if not config.repos:
        output.info('No repos tracked. Use "repos add <url>" to add one.')
        return

    output.info("Tracked repositories:\n")
    for status in RepoTracker(config, ctx.git).status():
        repo = status.repo
        bare = " (bare)" if repo.bare else ""
        state = "" if status.cloned else " (not cloned)"
        output.info(f"  {repo.name}{bare}{state}")
        output.info(f"    {repo.path}")
        for worktree in status.worktrees:
            parent = parent_of(repo.stacks, worktree.branch)
            stacked = f" (on {parent})" if parent else ""
            output.info(f"      {worktree.branch or '(detached)'}{stacked}: {worktree.path}")


def cmd_add(ctx: AppContext, url: str, bare: bool) -> None:
    config = ctx.load()
    tracker = RepoTracker(config, ctx.git)
    repo = tracker.add(url, ctx.cwd, bare=bare)
    ctx.save(tracker.config)
    output.status(f'Added "{repo.name}"' + (" as bare clone" if bare else ""))


def cmd_clone(ctx: AppContext, name: str | None) -> None:
    config = ctx.load()
    if not config.repos:
        output.info('No repos in config. Use "repos add <url>" to add one.')
        return
    cloned, skipped = RepoTracker(config, ctx.git).clone(name)
    output.info(f"Cloned {len(cloned)} repo(s), skipped {len(skipped)} existing")


def cmd_adopt(ctx: AppContext) -> None:
    config = ctx.load()
    result = RepoTracker(config, ctx.git).adopt(ctx.cwd)
    for name, reason in result.failed:
        output.warning(f"{name}: {reason}")
    for repo in result.adopted:
        branch = f" on branch \"{repo.branch}\"" if repo.branch else ""
        output.info(f'Adopted "{repo.name}"{branch}')
    if result.adopted:
        ctx.save(result.config)
    else:
        output.info("No untracked repos found.")


def cmd_remove(ctx: AppContext, name: str, delete: bool) -> None:
    config = ctx.load()
    tracker = RepoTracker(config, ctx.git)
    tracker.remove(name, delete=delete)
    ctx.save(tracker.config)
    output.status(f'Removed "{name}" from config')


def cmd_latest(ctx: AppContext) -> None:
    config = ctx.load()
    if not config.repos:
        output.info('No repos in config. Use "repos add <url>" to add one.')
        return

    tracker = RepoTracker(config, ctx.git)
    output.status(f"Pulling {len(config.repos)} repo(s) in parallel...")
    results = tracker.latest()
    for result in results:
        if result.ok:
            state = "updated" if result.updated else "up to date"
            changed = f" (branch changed to {result.branch})" if result.branch_changed else ""
            output.info(f"  {result.name}: {state}{changed}")
        else:
            output.info(f"  {result.name}: failed ({result.error})")

    if tracker.config != config:
        ctx.save(tracker.config)
        output.status("Config updated with new branch names")
    failed = sum(1 for r in results if not r.ok)
    output.info(f"Pulled {len(results) - failed} repo(s), {failed} failed")
