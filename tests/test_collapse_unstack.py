import pytest
from pytest_check import check

from git_repos.errors import (
    GitConflictError,
    NotStackedError,
    SiblingConflictError,
    UncommittedChangesError,
)
from git_repos.operations.collapse import Collapser
from git_repos.operations.config import StackEntry
from git_repos.operations.executor import GitExecutor
from git_repos.operations.fork_point import ForkPointTracker
from git_repos.operations.unstack import Unstacker
from git_repos.operations.worktrees import WorktreeManager

from helpers import commit_file, git


@pytest.fixture
def chain(repo):
    """main <- a <- b <- c, each with one commit."""
    manager = WorktreeManager(repo)
    paths = {"a": manager.work("a").path}
    commit_file(paths["a"], "a.txt", "a\n", "A work")
    for parent, child in (("a", "b"), ("b", "c")):
        paths[child] = manager.stack(paths[parent], child).path
        commit_file(paths[child], f"{child}.txt", f"{child}\n", f"{child.upper()} work")
    return manager.repo, paths


class TestCollapse:
    def test_collapse_onto_grandparent(self, chain):
        repo, paths = chain
        commit_file(paths["a"], "a2.txt", "a2\n", "More A")

        result = Collapser(repo).collapse("c")

        with check:
            assert result.removed_parent == "b"
        with check:
            assert result.new_parent == "a"
        with check:
            assert result.parent_worktree_removed
        assert result.repo.stacks == (StackEntry("a", "c"),)
        assert not paths["b"].exists()

        subjects = git(paths["c"], "log", "--format=%s", "a..HEAD").splitlines()
        assert subjects == ["C work", "B work"]
        assert (paths["c"] / "a2.txt").exists()
        tracker = ForkPointTracker(GitExecutor(paths["a"]))
        assert tracker.get("c") == GitExecutor(paths["a"]).rev_parse("a")
        assert tracker.get("b") is None

    def test_collapse_without_grandparent_rebases_on_trunk(self, chain):
        repo, paths = chain

        result = Collapser(repo).collapse("b")

        assert result.new_parent is None
        assert result.target == "origin/main"
        assert result.repo.stacks == (StackEntry("b", "c"),)
        assert not paths["a"].exists()
        assert ForkPointTracker(GitExecutor(paths["b"])).get("b") is None

    def test_collapse_refuses_when_parent_has_siblings(self, chain):
        repo, paths = chain
        manager = WorktreeManager(repo)
        manager.stack(paths["b"], "sibling")

        with pytest.raises(SiblingConflictError, match="sibling"):
            Collapser(manager.repo).collapse("c")
        assert paths["b"].exists()

    def test_collapse_requires_clean_parent(self, chain):
        repo, paths = chain
        (paths["b"] / "b.txt").write_text("dirty\n")
        with pytest.raises(UncommittedChangesError):
            Collapser(repo).collapse("c")

    def test_collapse_unstacked_branch(self, repo):
        with pytest.raises(NotStackedError):
            Collapser(repo).collapse("main")

    def test_collapse_conflict(self, chain):
        repo, paths = chain
        commit_file(paths["c"], "clash.txt", "c\n")
        commit_file(paths["a"], "clash.txt", "a\n")

        with pytest.raises(GitConflictError) as excinfo:
            Collapser(repo).collapse("c")
        assert excinfo.value.exit_code == 3
        assert excinfo.value.branch == "c"
        assert paths["b"].exists()


class TestUnstack:
    def test_unstack(self, chain, origin, tmp_path):
        repo, paths = chain
        other = tmp_path / "other"
        git(tmp_path, "clone", str(origin), str(other))
        commit_file(other, "upstream.txt", "u\n", "Upstream work")
        git(other, "push", "origin", "main")

        result = Unstacker(repo).unstack("c")

        assert result.parent == "b"
        assert result.target == "origin/main"
        assert StackEntry("b", "c") not in result.repo.stacks
        assert StackEntry("a", "b") in result.repo.stacks
        assert (paths["c"] / "upstream.txt").exists()
        assert ForkPointTracker(GitExecutor(paths["c"])).get("c") is None

    def test_unstack_not_stacked(self, chain):
        repo, _ = chain
        with pytest.raises(NotStackedError):
            Unstacker(repo).unstack("a")
