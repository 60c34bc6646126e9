import click

from ..commands_logic import AppContext, cmd_clean, cmd_rebase, cmd_stack, cmd_work
from ._shared import handle_errors, pass_app


@click.command()
@click.argument("branch")
@click.argument("repo", required=False)
@pass_app
@handle_errors
def work(app: AppContext, branch: str, repo: str | None) -> None:
    """Open a worktree for a branch, creating it if needed.

    BRANCH: Branch to work on
    REPO: Tracked repo (default: the repo containing the current directory)
    """
    cmd_work(app, branch, repo)


@click.command()
@click.argument("new_branch")
@pass_app
@handle_errors
def stack(app: AppContext, new_branch: str) -> None:
    """Create a branch stacked on the current worktree's branch.

    NEW_BRANCH: Name of the branch to create
    """
    cmd_stack(app, new_branch)


@click.command()
@click.argument("branch")
@click.argument("repo", required=False)
@click.option("--force", is_flag=True, help="Remove even if branches are stacked on it")
@pass_app
@handle_errors
def clean(app: AppContext, branch: str, repo: str | None, force: bool) -> None:
    """Remove the worktree for a branch."""
    cmd_clean(app, branch, repo, force)


@click.command()
@click.argument("branch", required=False)
@click.argument("repo", required=False)
@pass_app
@handle_errors
def rebase(app: AppContext, branch: str | None, repo: str | None) -> None:
    """Fetch and rebase a worktree onto the trunk."""
    cmd_rebase(app, branch, repo)
