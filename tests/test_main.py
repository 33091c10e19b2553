"""Tests for the auto-pr command line."""

import json
import shutil
import subprocess

import pytest
from click.testing import CliRunner

from autopr import __version__
from autopr.main import cli


@pytest.fixture
def runner():
    return CliRunner()


def _invoke(runner, repo, *args):
    return runner.invoke(cli, ["--repo", str(repo), *args])


def test_version(runner):
    result = runner.invoke(cli, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_not_a_repository(runner, tmp_path):
    result = _invoke(runner, tmp_path, "log")
    assert result.exit_code == 1
    assert "Not a git repository" in result.output


def test_status_json(runner, git_repo):
    result = _invoke(runner, git_repo, "status", "--json")
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["current_branch"] == "feature/login"
    assert data["base_branch"] == "main"
    assert data["remote_url"] is None
    assert data["platform"] == "unknown"
    assert data["commits_ahead"] == 1
    assert data["has_changes"] is False
    assert data["recent_commits"][0]["message"] == "Add login"


def test_status_table(runner, git_repo):
    result = _invoke(runner, git_repo, "status")
    assert result.exit_code == 0, result.output
    assert "feature/login" in result.output
    assert "no remote repository" in result.output


def test_compare_json(runner, git_repo):
    result = _invoke(runner, git_repo, "compare", "main", "--json")
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["summary"]["total_files"] == 2
    assert {c["path"] for c in data["summary"]["file_changes"]} == {"app.py", "login.py"}
    assert [c["message"] for c in data["commits"]] == ["Add login"]


def test_compare_missing_base(runner, git_repo):
    result = _invoke(runner, git_repo, "compare", "release")
    assert result.exit_code == 1
    assert "base branch release not found" in result.output


def test_diff_json_clean(runner, git_repo):
    result = _invoke(runner, git_repo, "diff", "--json")
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["total_files"] == 0


def test_log_json(runner, git_repo):
    result = _invoke(runner, git_repo, "log", "-n", "1", "--json")
    assert result.exit_code == 0, result.output
    [commit] = json.loads(result.stdout)
    assert commit["message"] == "Add login"
    assert sorted(commit["files"]) == ["app.py", "login.py"]


def test_draft_skip_model(runner, git_repo):
    result = _invoke(runner, git_repo, "draft", "main", "--skip-model", "--json")
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["title"] == "Add login"
    assert data["head_branch"] == "feature/login"
    assert "`login.py` (added)" in data["body"]


@pytest.fixture
def empty_repo(tmp_path):
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    repo = tmp_path / "empty"
    repo.mkdir()
    subprocess.run(["git", "init", "-q", "-b", "main", str(repo)], check=True)
    return repo


def test_status_without_commits(runner, empty_repo):
    result = _invoke(runner, empty_repo, "status", "--json")
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["current_branch"] == "main"
    assert data["recent_commits"] == []

    result = _invoke(runner, empty_repo, "status")
    assert result.exit_code == 0, result.output
    assert "No commits found" in result.output
