import click

from ..commands_logic import (
    AppContext,
    cmd_add,
    cmd_adopt,
    cmd_cleanup,
    cmd_clone,
    cmd_latest,
    cmd_list,
    cmd_remove,
)
from ._shared import handle_errors, pass_app


@click.command("list")
@pass_app
@handle_errors
def list_(app: AppContext) -> None:
    """Show tracked repositories and their worktrees."""
    cmd_list(app)


@click.command()
@click.argument("url")
@click.option("--bare", is_flag=True, help="Create a bare clone")
@pass_app
@handle_errors
def add(app: AppContext, url: str, bare: bool) -> None:
    """Clone a repository into the current directory and track it.

    URL: SSH or HTTPS clone URL
    """
    cmd_add(app, url, bare)


@click.command()
@click.argument("name", required=False)
@pass_app
@handle_errors
def clone(app: AppContext, name: str | None) -> None:
    """Clone tracked repositories that are missing on disk."""
    cmd_clone(app, name)


@click.command()
@pass_app
@handle_errors
def adopt(app: AppContext) -> None:
    """Track the current repository, or every clone in the current directory."""
    cmd_adopt(app)


@click.command()
@click.argument("name")
@click.option("--delete", is_flag=True, help="Also delete the directory")
@pass_app
@handle_errors
def remove(app: AppContext, name: str, delete: bool) -> None:
    """Stop tracking a repository."""
    if delete:
        click.confirm(f'Delete the directory of "{name}"?', abort=True)
    cmd_remove(app, name, delete)


@click.command()
@pass_app
@handle_errors
def latest(app: AppContext) -> None:
    """Pull every tracked repository in parallel."""
    cmd_latest(app)


@click.command()
@click.option("--dry-run", is_flag=True, help="Only report what would be removed")
@pass_app
@handle_errors
def cleanup(app: AppContext, dry_run: bool) -> None:
    """Remove worktrees of merged branches across all repositories."""
    cmd_cleanup(app, dry_run)
