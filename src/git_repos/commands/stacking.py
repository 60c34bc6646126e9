import click

from ..commands_logic import (
    AppContext,
    cmd_collapse,
    cmd_continue,
    cmd_restack,
    cmd_squash,
    cmd_unstack,
)
from ._shared import handle_errors, pass_app


@click.command()
@click.argument("branch", required=False)
@pass_app
@handle_errors
def restack(app: AppContext, branch: str | None) -> None:
    """Rebase a stacked branch and its children onto their parents.

    BRANCH: Branch to restack (default: the current worktree's branch)
    """
    cmd_restack(app, branch)


@click.command("continue")
@pass_app
@handle_errors
def continue_(app: AppContext) -> None:
    """Continue a paused rebase and restack the children."""
    cmd_continue(app)


@click.command()
@pass_app
@handle_errors
def collapse(app: AppContext) -> None:
    """Fold the parent branch into the current branch."""
    cmd_collapse(app)


@click.command()
@click.argument("branch", required=False)
@pass_app
@handle_errors
def unstack(app: AppContext, branch: str | None) -> None:
    """Detach a branch from its parent and rebase it onto the trunk."""
    cmd_unstack(app, branch)


@click.command()
@click.option("-m", "--message", help="Commit message for the squashed commit")
@click.option(
    "-f",
    "--first",
    "use_first",
    is_flag=True,
    help="Reuse the first commit's message",
)
@click.option("--dry-run", is_flag=True, help="Show what would be squashed")
@pass_app
@handle_errors
def squash(app: AppContext, message: str | None, use_first: bool, dry_run: bool) -> None:
    """Squash all commits since the base into one.

    The base is the parent branch for stacked branches, otherwise the trunk.
    Without -m or -f the editor opens for the message.
    """
    cmd_squash(app, message, use_first, dry_run)
