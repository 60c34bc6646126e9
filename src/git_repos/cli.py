"""CLI entry point for git-repos."""

import click
from pathlib import Path

from .commands_logic import AppContext


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="REPOS_CONFIG",
    help="Config file (default: ~/.config/repos/config.json)",
)
@click.option("-v", "--verbose", is_flag=True, help="Echo git commands as they run")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Repos: worktrees and stacked branches across many repositories.

    Each branch gets its own worktree next to its repository. Branches can
    be stacked on each other and restacked when their parent changes.
    """
    ctx.obj = AppContext.create(config_path, verbose)


# Import and register commands
from .commands.worktree import work, stack, clean, rebase
from .commands.stacking import restack, continue_, collapse, unstack, squash
from .commands.repos import list_, add, clone, adopt, remove, latest, cleanup

cli.add_command(work)
cli.add_command(stack)
cli.add_command(clean)
cli.add_command(rebase)
cli.add_command(restack)
cli.add_command(continue_)
cli.add_command(collapse)
cli.add_command(unstack)
cli.add_command(squash)
cli.add_command(list_)
cli.add_command(add)
cli.add_command(clone)
cli.add_command(adopt)
cli.add_command(remove)
cli.add_command(latest)
cli.add_command(cleanup)


if __name__ == "__main__":
    cli()
