"""Configuration management for git-repos."""

import json
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path

from git_repos.errors import (
    InvalidConfigError,
    NotInRepoError,
    RepoAlreadyTrackedError,
    RepoNotFoundError,
)

CONFIG_ENV_VAR = "REPOS_CONFIG"
DEFAULT_CONFIG_PATH = Path("~/.config/repos/config.json")


@dataclass(frozen=True, slots=True)
class StackEntry:
    """A parent -> child edge between two branches of one repository."""

    parent: str
    child: str


@dataclass(frozen=True, slots=True)
class RepoEntry:
    """A tracked repository."""

    name: str
    url: str
    path: Path
    bare: bool = False
    branch: str | None = None
    stacks: tuple[StackEntry, ...] = ()


@dataclass(frozen=True, slots=True)
class ReposConfig:
    """Immutable configuration for all tracked repositories."""

    repos: tuple[RepoEntry, ...] = field(default_factory=tuple)


def default_config_path() -> Path:
    env = os.environ.get(CONFIG_ENV_VAR)
    if env:
        return Path(env).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def extract_repo_name(url: str) -> str:
    """Derive a repository name from an SSH or HTTPS clone URL."""
    match = re.search(r"([^/:]+?)(?:\.git)?/*$", url.strip())
    if not url.strip() or not match:
        raise InvalidConfigError(f"Could not extract repo name from URL: {url!r}")
    return match.group(1)


def find_repo(config: ReposConfig, name: str) -> RepoEntry | None:
    for repo in config.repos:
        if repo.name == name:
            return repo
    return None


def get_repo(config: ReposConfig, name: str) -> RepoEntry:
    repo = find_repo(config, name)
    if repo is None:
        raise RepoNotFoundError(f'"{name}" not found in config')
    return repo


def find_repo_from_cwd(config: ReposConfig, cwd: Path) -> RepoEntry | None:
    """Find the tracked repo owning ``cwd``.

    Worktrees live next to their repository as ``<repo.path>-<branch>``, so a
    directory belongs to a repo when it is inside the repo itself or inside
    one of those sibling directories.
    """
    cwd = Path(cwd).resolve()
    best: RepoEntry | None = None
    best_len = -1
    for repo in config.repos:
        repo_path = Path(repo.path).expanduser().resolve()
        candidates = [repo_path]
        for parent in (cwd, *cwd.parents):
            if parent.parent == repo_path.parent and parent.name.startswith(
                f"{repo_path.name}-"
            ):
                candidates.append(parent)
        for candidate in candidates:
            if cwd.is_relative_to(candidate) and len(str(repo_path)) > best_len:
                best = repo
                best_len = len(str(repo_path))
    return best


def resolve_repo(config: ReposConfig, name: str | None, cwd: Path) -> RepoEntry:
    """Resolve a repo from an explicit name or the current directory."""
    if name:
        return get_repo(config, name)
    repo = find_repo_from_cwd(config, cwd)
    if repo is None:
        raise NotInRepoError("Not inside a tracked repo.")
    return repo


def add_repo(config: ReposConfig, repo: RepoEntry) -> ReposConfig:
    if find_repo(config, repo.name):
        raise RepoAlreadyTrackedError(f'"{repo.name}" is already tracked')
    return ReposConfig(repos=config.repos + (repo,))


def remove_repo(config: ReposConfig, name: str) -> ReposConfig:
    get_repo(config, name)
    return ReposConfig(repos=tuple(r for r in config.repos if r.name != name))


def update_repo(config: ReposConfig, repo: RepoEntry) -> ReposConfig:
    """Replace the repo with the same name."""
    return ReposConfig(
        repos=tuple(repo if r.name == repo.name else r for r in config.repos)
    )


def with_stacks(repo: RepoEntry, stacks: tuple[StackEntry, ...]) -> RepoEntry:
    return replace(repo, stacks=stacks)


def get_worktree_path(repo: RepoEntry, branch: str) -> Path:
    """Worktrees are siblings of the repo, named ``<repo>-<branch>``."""
    repo_path = Path(repo.path)
    return repo_path.with_name(f"{repo_path.name}-{branch.replace('/', '-')}")


class ReposConfigManager:
    """Load and save the JSON config document."""

    def __init__(self, path: Path | None = None):
        self.path = Path(path).expanduser() if path else default_config_path()

    def _parse_stack(self, value: object) -> StackEntry:
        if not isinstance(value, dict) or not all(
            isinstance(value.get(k), str) for k in ("parent", "child")
        ):
            raise InvalidConfigError(f"Invalid stack entry: {value!r}")
        return StackEntry(parent=value["parent"], child=value["child"])

    def _parse_repo(self, value: object) -> RepoEntry:
        if not isinstance(value, dict) or not all(
            isinstance(value.get(k), str) for k in ("name", "url", "path")
        ):
            raise InvalidConfigError(f"Invalid repo entry: {value!r}")
        stacks = value.get("stacks", [])
        if not isinstance(stacks, list):
            raise InvalidConfigError(f"Invalid stacks for {value['name']!r}")
        return RepoEntry(
            name=value["name"],
            url=value["url"],
            path=Path(value["path"]),
            bare=bool(value.get("bare", False)),
            branch=value["branch"] if isinstance(value.get("branch"), str) else None,
            stacks=tuple(self._parse_stack(s) for s in stacks),
        )

    def _serialize_repo(self, repo: RepoEntry) -> dict[str, object]:
        data: dict[str, object] = {
            "name": repo.name,
            "url": repo.url,
            "path": str(repo.path),
        }
        if repo.bare:
            data["bare"] = True
        if repo.branch:
            data["branch"] = repo.branch
        if repo.stacks:
            data["stacks"] = [
                {"parent": s.parent, "child": s.child} for s in repo.stacks
            ]
        return data

    def load(self) -> ReposConfig:
        """Read the config. A missing file is an empty config."""
        if not self.path.exists():
            return ReposConfig()
        try:
            content = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise InvalidConfigError(f"Failed to parse config file {self.path}: {e}")

        if not isinstance(content, dict) or not isinstance(content.get("repos"), list):
            raise InvalidConfigError(f"Invalid config file format: {self.path}")
        return ReposConfig(repos=tuple(self._parse_repo(r) for r in content["repos"]))

    def save(self, config: ReposConfig) -> None:
        """Rewrite the whole document."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {"repos": [self._serialize_repo(r) for r in config.repos]}
        self.path.write_text(json.dumps(document, indent=2) + "\n")
