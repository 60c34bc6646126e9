"""Shared utilities for commands."""

import functools
from collections.abc import Callable
from typing import Any

import click

from ..commands_logic import AppContext
from ..errors import ReposError


class ReposClickException(click.ClickException):
    def __init__(self, error: ReposError):
        super().__init__(str(error))
        self.exit_code = error.exit_code


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Turn ReposError into a click error with the matching exit code."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ReposError as e:
            raise ReposClickException(e) from e

    return wrapper


pass_app = click.make_pass_decorator(AppContext, ensure=True)
