import json
from pathlib import Path

from git_repos.cli import cli
from git_repos.operations.config import ReposConfigManager, StackEntry
from git_repos.operations.executor import GitExecutor

from helpers import commit_file, git


def last_line(output: str) -> str:
    return output.strip().splitlines()[-1]


class TestWorktreeCommands:
    def test_work_prints_path(self, saved_repo, clone, runner, monkeypatch):
        monkeypatch.chdir(clone)

        result = runner.invoke(cli, ["work", "feature"])

        assert result.exit_code == 0, result.output
        path = Path(last_line(result.stdout))
        assert path == clone.with_name("proj-feature")
        assert GitExecutor(path).get_current_branch() == "feature"

    def test_work_with_repo_name_from_anywhere(self, saved_repo, clone, tmp_path, runner, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cli, ["work", "feature", "proj"])
        assert result.exit_code == 0, result.output

    def test_outside_tracked_repo(self, saved_repo, tmp_path, runner, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cli, ["work", "feature"])
        assert result.exit_code == 1
        assert "Not inside a tracked repo" in result.output

    def test_stack_and_restack(self, saved_repo, clone, config_path, runner, monkeypatch):
        monkeypatch.chdir(clone)
        a = Path(last_line(runner.invoke(cli, ["work", "a"]).stdout))
        commit_file(a, "a.txt", "a1\n")

        monkeypatch.chdir(a)
        result = runner.invoke(cli, ["stack", "b"])
        assert result.exit_code == 0, result.output
        b = Path(last_line(result.stdout))
        commit_file(b, "b.txt", "b\n", "B work")
        [repo] = ReposConfigManager(config_path).load().repos
        assert repo.stacks == (StackEntry("a", "b"),)

        (a / "a.txt").write_text("a2\n")
        git(a, "commit", "-a", "--amend", "-m", "A amended")

        monkeypatch.chdir(b)
        result = runner.invoke(cli, ["restack"])
        assert result.exit_code == 0, result.output
        assert git(b, "log", "--format=%s", "a..HEAD") == "B work"

    def test_restack_unstacked_branch(self, saved_repo, clone, runner, monkeypatch):
        monkeypatch.chdir(clone)
        result = runner.invoke(cli, ["restack"])
        assert result.exit_code == 1
        assert "repos rebase" in result.output

    def test_conflict_exit_code_and_continue(self, saved_repo, clone, runner, monkeypatch):
        monkeypatch.chdir(clone)
        a = Path(last_line(runner.invoke(cli, ["work", "a"]).stdout))
        monkeypatch.chdir(a)
        b = Path(last_line(runner.invoke(cli, ["stack", "b"]).stdout))
        commit_file(b, "same.txt", "b\n")
        commit_file(a, "same.txt", "a\n")

        monkeypatch.chdir(b)
        result = runner.invoke(cli, ["restack"])
        assert result.exit_code == 3
        assert "repos continue" in result.output

        (b / "same.txt").write_text("resolved\n")
        git(b, "add", "same.txt")
        result = runner.invoke(cli, ["continue"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, ["continue"])
        assert result.exit_code == 1
        assert "No rebase in progress" in result.output

    def test_clean(self, saved_repo, clone, runner, monkeypatch):
        monkeypatch.chdir(clone)
        path = Path(last_line(runner.invoke(cli, ["work", "a"]).stdout))
        (path / "wip.txt").write_text("wip")

        result = runner.invoke(cli, ["clean", "a"])
        assert result.exit_code == 2

        (path / "wip.txt").unlink()
        result = runner.invoke(cli, ["clean", "a"])
        assert result.exit_code == 0, result.output
        assert not path.exists()


class TestSquashCommand:
    def test_squash_flags_conflict(self, saved_repo, clone, runner, monkeypatch):
        monkeypatch.chdir(clone)
        path = Path(last_line(runner.invoke(cli, ["work", "a"]).stdout))
        monkeypatch.chdir(path)
        result = runner.invoke(cli, ["squash", "-m", "x", "-f"])
        assert result.exit_code == 1
        assert "Cannot use both" in result.output

    def test_squash_dry_run_lists_commits(self, saved_repo, clone, runner, monkeypatch):
        monkeypatch.chdir(clone)
        path = Path(last_line(runner.invoke(cli, ["work", "a"]).stdout))
        commit_file(path, "1.txt", "1", "First change")
        commit_file(path, "2.txt", "2", "Second change")

        monkeypatch.chdir(path)
        result = runner.invoke(cli, ["squash", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "Would squash 2 commit(s)" in result.output
        assert "First change" in result.output

        result = runner.invoke(cli, ["squash", "-m", "Both"])
        assert result.exit_code == 0, result.output
        assert git(path, "log", "-1", "--format=%s") == "Both"


class TestRepoCommands:
    def test_add_list_remove(self, origin, code_dir, config_path, runner, monkeypatch):
        monkeypatch.chdir(code_dir)

        result = runner.invoke(cli, ["add", str(origin)])
        assert result.exit_code == 0, result.output
        data = json.loads(config_path.read_text())
        assert data["repos"][0]["name"] == "origin"

        result = runner.invoke(cli, ["list"])
        assert result.exit_code == 0
        assert "origin" in result.output

        result = runner.invoke(cli, ["remove", "origin"])
        assert result.exit_code == 0, result.output
        assert json.loads(config_path.read_text()) == {"repos": []}
        assert (code_dir / "origin").exists()

    def test_config_option_overrides_environment(self, origin, code_dir, tmp_path, runner, monkeypatch):
        monkeypatch.chdir(code_dir)
        custom = tmp_path / "custom" / "repos.json"
        result = runner.invoke(cli, ["--config", str(custom), "add", str(origin)])
        assert result.exit_code == 0, result.output
        assert custom.exists()
        assert not (tmp_path / "config.json").exists()

    def test_list_empty(self, runner):
        result = runner.invoke(cli, ["list"])
        assert result.exit_code == 0
        assert "No repos tracked" in result.output

    def test_cleanup_summary(self, saved_repo, clone, runner, monkeypatch):
        monkeypatch.chdir(clone)
        path = Path(last_line(runner.invoke(cli, ["work", "done"]).stdout))
        commit_file(path, "done.txt", "done")
        git(clone, "merge", "--squash", "done")
        git(clone, "commit", "-m", "Squashed done")
        git(clone, "push", "origin", "main")

        result = runner.invoke(cli, ["cleanup", "--dry-run"])
        assert result.exit_code == 0, result.output
        assert "Would remove 1 worktree(s): 1 merged, 0 upstream gone" in result.output
        assert path.exists()

        result = runner.invoke(cli, ["cleanup"])
        assert result.exit_code == 0, result.output
        assert not path.exists()

    def test_verbose_echoes_git(self, saved_repo, clone, runner, monkeypatch):
        monkeypatch.chdir(clone)
        result = runner.invoke(cli, ["--verbose", "work", "feature"])
        assert result.exit_code == 0, result.output
        assert "$ git worktree" in result.output
