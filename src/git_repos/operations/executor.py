"""Git command execution for git-repos."""

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import click

from git_repos.errors import GitCommandError, UncommittedChangesError

BASE_REF_PREFIX = "refs/bases/"

RebaseStatus = Literal["ok", "conflict", "failed"]
UpstreamStatus = Literal["gone", "tracking", "local"]


@dataclass(frozen=True, slots=True)
class RebaseResult:
    """Outcome of a rebase primitive.

    Conflicts are an expected outcome, not an exception: the repository is
    left in the paused state git produced and ``output`` carries git's
    diagnostics verbatim.
    """

    status: RebaseStatus
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass(frozen=True, slots=True)
class WorktreeInfo:
    """A worktree as reported by ``git worktree list``."""

    path: Path
    branch: str
    is_main: bool


@dataclass(frozen=True, slots=True)
class CommitInfo:
    hash: str
    short_hash: str
    subject: str
    author: str
    date: str


def parse_worktree_list(output: str) -> list[WorktreeInfo]:
    """Parse ``git worktree list --porcelain`` output.

    The first entry is the main worktree of a non-bare repository; for a bare
    repository the entry marked ``bare`` is the main one. ``branch`` is empty
    when HEAD is detached, e.g. in the middle of a rebase.
    """
    worktrees = []
    entries = [e for e in output.strip().split("\n\n") if e.strip()]
    for index, entry in enumerate(entries):
        path = ""
        branch = ""
        is_bare = False
        for line in entry.splitlines():
            if line.startswith("worktree "):
                path = line[len("worktree ") :]
            elif line.startswith("branch refs/heads/"):
                branch = line[len("branch refs/heads/") :]
            elif line == "bare":
                is_bare = True
        if path:
            worktrees.append(
                WorktreeInfo(path=Path(path), branch=branch, is_main=index == 0 or is_bare)
            )
    return worktrees


def find_worktree_by_branch(
    worktrees: list[WorktreeInfo], branch: str
) -> WorktreeInfo | None:
    for worktree in worktrees:
        if branch and worktree.branch == branch:
            return worktree
    return None


def find_worktree_by_directory(
    worktrees: list[WorktreeInfo], directory: Path
) -> WorktreeInfo | None:
    """Find the innermost worktree containing ``directory``."""
    directory = Path(directory).resolve()
    matches = [
        wt for wt in worktrees if directory.is_relative_to(Path(wt.path).resolve())
    ]
    if not matches:
        return None
    return max(matches, key=lambda wt: len(Path(wt.path).resolve().parts))


class GitExecutor:
    """Execute git commands with proper error handling."""

    def __init__(self, cwd: Path | None = None, verbose: bool = False):
        self.cwd = cwd
        self.verbose = verbose

    def run(
        self,
        args: list[str],
        check: bool = True,
        capture: bool = True,
        env: dict[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run a git command and return the CompletedProcess.

        With ``check`` a non-zero exit raises GitCommandError carrying git's
        stderr verbatim.
        """
        cmd = ["git"] + args
        if self.verbose:
            click.echo(click.style(f"$ {' '.join(cmd)}", dim=True), err=True)
        result = subprocess.run(
            cmd,
            cwd=self.cwd,
            capture_output=capture,
            text=True,
            env={**os.environ, **env} if env else None,
        )
        if check and result.returncode != 0:
            raise GitCommandError(args, (result.stderr or "").strip())
        return result

    def _stdout(self, args: list[str]) -> str:
        return self.run(args).stdout.strip()

    # Repository state

    def is_git_repo(self) -> bool:
        if self.cwd is not None and not Path(self.cwd).is_dir():
            return False
        result = self.run(["rev-parse", "--is-inside-work-tree"], check=False)
        if result.returncode == 0 and result.stdout.strip() == "true":
            return True
        return self.is_bare_repository()

    def is_bare_repository(self) -> bool:
        if self.cwd is not None and not Path(self.cwd).is_dir():
            return False
        result = self.run(["rev-parse", "--is-bare-repository"], check=False)
        return result.returncode == 0 and result.stdout.strip() == "true"

    def get_remote_url(self) -> str | None:
        result = self.run(["remote", "get-url", "origin"], check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def get_current_branch(self) -> str:
        """Get current branch name."""
        return self._stdout(["rev-parse", "--abbrev-ref", "HEAD"])

    def rev_parse(self, ref: str) -> str | None:
        """Resolve a ref to a commit hash, or None if it does not exist."""
        result = self.run(
            ["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], check=False
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def get_default_branch(self) -> str:
        """Resolve the trunk from origin/HEAD, falling back to local HEAD."""
        result = self.run(
            ["symbolic-ref", "--short", "refs/remotes/origin/HEAD"], check=False
        )
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip().removeprefix("origin/")

        result = self.run(["symbolic-ref", "--short", "HEAD"], check=False)
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()

        raise GitCommandError(
            ["symbolic-ref", "HEAD"], "Could not determine default branch"
        )

    def get_trunk_ref(self) -> str:
        """The remote-tracking ref of the trunk, e.g. ``origin/main``."""
        return f"origin/{self.get_default_branch()}"

    def local_branch_exists(self, branch: str) -> bool:
        result = self.run(
            ["rev-parse", "--verify", "--quiet", f"refs/heads/{branch}"],
            check=False,
        )
        return result.returncode == 0

    def remote_branch_exists(self, branch: str) -> bool:
        result = self.run(["ls-remote", "--heads", "origin", branch], check=False)
        return result.returncode == 0 and f"refs/heads/{branch}" in result.stdout

    def has_uncommitted_changes(self) -> bool:
        return bool(self._stdout(["status", "--porcelain"]))

    def ensure_clean_working_tree(self, message: str | None = None) -> None:
        """Ensure working tree is clean."""
        if self.has_uncommitted_changes():
            raise UncommittedChangesError(
                message or "Working tree has uncommitted changes"
            )

    # Remotes

    def fetch(self, prune: bool = False) -> None:
        args = ["fetch", "origin"]
        if prune:
            args.append("--prune")
        self.run(args)

    def ensure_refspec_config(self) -> None:
        """Make sure origin maps its branches to refs/remotes/origin/*.

        Bare clones are created without this mapping, which leaves no
        remote-tracking refs to rebase onto or compare against.
        """
        result = self.run(["config", "--get-all", "remote.origin.fetch"], check=False)
        if result.returncode == 0 and "refs/remotes/origin" in result.stdout:
            return
        self.run(
            ["config", "remote.origin.fetch", "+refs/heads/*:refs/remotes/origin/*"]
        )
        self.fetch()
        self.run(["remote", "set-head", "origin", "--auto"], check=False)

    def pull(self) -> bool:
        """Pull the current branch. Returns whether anything changed."""
        result = self.run(["pull"])
        return "Already up to date" not in result.stdout

    def clone(self, url: str, target: Path, bare: bool = False) -> None:
        args = ["clone"]
        if bare:
            args.append("--bare")
        self.run(args + [url, str(target)])

    # Worktrees

    def list_worktrees(self) -> list[WorktreeInfo]:
        return parse_worktree_list(self._stdout(["worktree", "list", "--porcelain"]))

    def create_worktree(self, path: Path, branch: str) -> None:
        """Create a worktree for an existing, remote or brand-new branch."""
        if self.local_branch_exists(branch):
            self.run(["worktree", "add", str(path), branch])
            return

        if self.remote_branch_exists(branch):
            self.run(["fetch", "origin", branch])
            self.run(
                ["worktree", "add", "--track", "-b", branch, str(path), f"origin/{branch}"]
            )
            return

        # No tracking until the branch is pushed.
        default_branch = self.get_default_branch()
        self.run(
            [
                "worktree",
                "add",
                "--no-track",
                "-b",
                branch,
                str(path),
                f"origin/{default_branch}",
            ]
        )

    def create_worktree_from_branch(
        self, path: Path, new_branch: str, parent_branch: str
    ) -> None:
        self.run(
            ["worktree", "add", "--no-track", "-b", new_branch, str(path), parent_branch]
        )

    def remove_worktree(self, path: Path) -> None:
        self.run(["worktree", "remove", str(path)])

    # Rebase

    def _rebase_result(self, result: subprocess.CompletedProcess[str]) -> RebaseResult:
        output = "\n".join(
            part.strip() for part in (result.stdout, result.stderr) if part and part.strip()
        )
        if result.returncode == 0:
            return RebaseResult("ok", output)
        if "CONFLICT" in output:
            return RebaseResult("conflict", output)
        return RebaseResult("failed", (result.stderr or "").strip() or output)

    def rebase(self, target: str) -> RebaseResult:
        return self._rebase_result(self.run(["rebase", target], check=False))

    def rebase_onto(self, onto: str, fork_point: str) -> RebaseResult:
        """Replay only the commits after ``fork_point`` onto ``onto``."""
        return self._rebase_result(
            self.run(["rebase", "--onto", onto, fork_point], check=False)
        )

    def rebase_continue(self) -> RebaseResult:
        # Keep the existing message instead of opening an editor.
        return self._rebase_result(
            self.run(["rebase", "--continue"], check=False, env={"GIT_EDITOR": "true"})
        )

    def _git_path(self, name: str) -> Path:
        path = Path(self._stdout(["rev-parse", "--git-path", name]))
        if not path.is_absolute() and self.cwd is not None:
            path = Path(self.cwd) / path
        return path

    def is_rebase_in_progress(self) -> bool:
        """Only the state directories count; REBASE_HEAD outlives a finished rebase."""
        return any(self._git_path(d).is_dir() for d in ("rebase-merge", "rebase-apply"))

    def get_rebase_branch(self) -> str | None:
        """Read the branch being rebased from the rebase state directory.

        HEAD is detached during a rebase, so ``worktree list`` has no branch.
        """
        for state_dir in ("rebase-merge", "rebase-apply"):
            head_name = self._git_path(state_dir) / "head-name"
            if head_name.is_file():
                branch = head_name.read_text().strip().removeprefix("refs/heads/")
                if branch:
                    return branch
        return None

    # Fork-point anchors

    def get_base_ref(self, branch: str) -> str | None:
        result = self.run(
            ["rev-parse", "--verify", "--quiet", f"{BASE_REF_PREFIX}{branch}"],
            check=False,
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def set_base_ref(self, branch: str, commit: str) -> None:
        self.run(["update-ref", f"{BASE_REF_PREFIX}{branch}", commit])

    def delete_base_ref(self, branch: str) -> None:
        if self.get_base_ref(branch) is None:
            return
        self.run(["update-ref", "-d", f"{BASE_REF_PREFIX}{branch}"])

    # History

    def get_commits_between(self, base: str, tip: str) -> list[str]:
        """Get commits that are on tip but not on base, in chronological order."""
        output = self._stdout(["log", f"{base}..{tip}", "--format=%H", "--reverse"])
        return [c for c in output.splitlines() if c]

    def get_merge_base(self, ref1: str, ref2: str) -> str | None:
        result = self.run(["merge-base", ref1, ref2], check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def get_commit_count(self, base: str, tip: str = "HEAD") -> int:
        return int(self._stdout(["rev-list", "--count", f"{base}..{tip}"]))

    def get_commit_list(self, base: str, tip: str = "HEAD") -> list[CommitInfo]:
        """Commits in ``base..tip``, newest first."""
        output = self._stdout(
            ["log", f"{base}..{tip}", "--format=%H%x00%h%x00%s%x00%an%x00%ar"]
        )
        commits = []
        for line in output.splitlines():
            if not line:
                continue
            hash_, short_hash, subject, author, date = line.split("\x00")
            commits.append(CommitInfo(hash_, short_hash, subject, author, date))
        return commits

    def get_first_commit_message(self, base: str, tip: str = "HEAD") -> str:
        commits = self.get_commits_between(base, tip)
        if not commits:
            raise GitCommandError(["log", f"{base}..{tip}"], "No commits found")
        return self._stdout(["log", "-1", "--format=%B", commits[0]])

    def get_branches_containing(self, ref: str) -> list[str]:
        output = self._stdout(
            ["branch", "--contains", ref, "--format=%(refname:short)"]
        )
        return [b.strip() for b in output.splitlines() if b.strip()]

    def get_upstream_status(self, branch: str) -> UpstreamStatus:
        output = self._stdout(
            [
                "for-each-ref",
                "--format=%(upstream) %(upstream:track)",
                f"refs/heads/{branch}",
            ]
        )
        if not output:
            return "local"
        if "[gone]" in output:
            return "gone"
        return "tracking"

    def is_branch_content_merged(self, branch: str, target_ref: str) -> bool:
        """Check whether the content of ``branch`` has landed on target.

        ``git cherry`` compares patch ids, so rebase merges and cherry-picks
        count as merged even though hashes differ. A squash merge of several
        commits only matches the branch as a whole, so that case is checked
        against a throwaway commit holding the combined diff.
        """
        output = self._stdout(["cherry", target_ref, branch])
        if not any(line.startswith("+") for line in output.splitlines()):
            return True

        merge_base = self.get_merge_base(target_ref, branch)
        if merge_base is None:
            return False
        combined = self._stdout(
            ["commit-tree", f"{branch}^{{tree}}", "-p", merge_base, "-m", "combined"]
        )
        return self._stdout(["cherry", target_ref, combined]).startswith("-")

    # Commits

    def soft_reset(self, ref: str) -> None:
        self.run(["reset", "--soft", ref])

    def commit(self, message: str) -> None:
        self.run(["commit", "-m", message])

    def commit_with_editor(self) -> None:
        """Commit staged changes, letting the user write the message."""
        self.run(["commit"], capture=False)
