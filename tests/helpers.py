"""Git helpers shared by the tests."""

import subprocess
from pathlib import Path


def git(cwd: Path, *args: str) -> str:
    """Run git in ``cwd`` and return its stripped stdout."""
    return subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    ).stdout.strip()


def commit_file(cwd: Path, name: str, content: str, message: str | None = None) -> str:
    """Write a file, commit it and return the new commit hash."""
    (cwd / name).write_text(content)
    git(cwd, "add", name)
    git(cwd, "commit", "-m", message or f"Add {name}")
    return git(cwd, "rev-parse", "HEAD")


def add_worktree(repo: Path, branch: str, start: str) -> Path:
    """Create ``<repo>-<branch>`` on a new branch, outside the tool."""
    path = repo.with_name(f"{repo.name}-{branch}")
    git(repo, "worktree", "add", "-b", branch, str(path), start)
    return path


def head(cwd: Path) -> str:
    return git(cwd, "rev-parse", "HEAD")
