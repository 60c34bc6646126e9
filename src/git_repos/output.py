"""User-facing output.

Progress and warnings go to stderr so that stdout carries only data the
shell integration consumes, such as worktree paths.
"""

import click


def info(message: str) -> None:
    click.echo(message)


def status(message: str) -> None:
    click.echo(message, err=True)


def warning(message: str) -> None:
    click.echo(click.style(f"Warning: {message}", fg="yellow"), err=True)


def error(message: str) -> None:
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)


def emit_path(path: object) -> None:
    """Print a path as the last stdout line for the shell wrapper to cd into."""
    click.echo(str(path))
