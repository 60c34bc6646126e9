import subprocess
from pathlib import Path
from typing import Generator

import pytest
from click.testing import CliRunner

from git_repos.operations.config import RepoEntry, ReposConfig, ReposConfigManager

from helpers import commit_file, git


@pytest.fixture(autouse=True)
def git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate git from the user's configuration."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.setenv("REPOS_CONFIG", str(tmp_path / "config.json"))
    monkeypatch.delenv("GIT_EDITOR", raising=False)
    subprocess.run(
        ["git", "config", "--global", "init.defaultBranch", "main"], check=True
    )
    subprocess.run(["git", "config", "--global", "rerere.enabled", "false"], check=True)
    subprocess.run(
        ["git", "config", "--global", "advice.detachedHead", "false"], check=True
    )


@pytest.fixture
def origin(tmp_path: Path) -> Path:
    """A bare remote whose ``main`` has one commit."""
    seed = tmp_path / "seed"
    seed.mkdir()
    git(seed, "init", "-b", "main")
    commit_file(seed, "README.md", "# Test Repo\n", "Initial commit")

    bare = tmp_path / "origin.git"
    git(tmp_path, "clone", "--bare", str(seed), str(bare))
    return bare


@pytest.fixture
def code_dir(tmp_path: Path) -> Path:
    path = tmp_path / "code"
    path.mkdir()
    return path


@pytest.fixture
def clone(origin: Path, code_dir: Path) -> Path:
    """A working clone of ``origin`` on ``main``."""
    path = code_dir / "proj"
    git(code_dir, "clone", str(origin), str(path))
    return path


@pytest.fixture
def repo(origin: Path, clone: Path) -> RepoEntry:
    return RepoEntry(name="proj", url=str(origin), path=clone, branch="main")


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "config.json"


@pytest.fixture
def saved_repo(repo: RepoEntry, config_path: Path) -> Generator[RepoEntry, None, None]:
    """``repo`` written to the config file the CLI reads."""
    ReposConfigManager(config_path).save(ReposConfig(repos=(repo,)))
    yield repo


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click test runner."""
    return CliRunner()
