"""Shared fixtures: an in-memory git port and a real scratch repository."""

import shutil
import subprocess

import pytest

from autopr.vcs import RemoteNotConfigured, RepoQueryError, VersionControlPort


class FakeGit(VersionControlPort):
    """Canned git answers keyed by query arguments."""

    def __init__(self):
        self.branch = "feature/login"
        self.remote = "git@github.com:acme/widgets.git"
        self.default_ref = None
        self.refs: set[str] = set()
        self.porcelain = ""
        self.logs: dict[tuple, str] = {}
        self.name_statuses: dict[tuple, str] = {}
        self.numstats: dict[tuple, str] = {}
        self.stats: dict[tuple, str] = {}
        self.counts: dict[str, int] = {}
        self.calls: list[tuple] = []

    def current_branch(self):
        if self.branch is None:
            raise RepoQueryError("HEAD is detached; no current branch")
        return self.branch

    def remote_url(self, remote="origin"):
        if self.remote is None:
            raise RemoteNotConfigured(f"no remote named {remote!r} is configured")
        return self.remote

    def default_branch(self, remote="origin"):
        return self.default_ref

    def ref_exists(self, ref):
        self.calls.append(("ref_exists", ref))
        return ref in self.refs

    def status_porcelain(self):
        return self.porcelain

    def log(self, *revisions, limit=None):
        self.calls.append(("log", revisions, limit))
        if revisions not in self.logs:
            raise RepoQueryError(f"unknown revisions {revisions}")
        return self.logs[revisions]

    def name_status(self, *diff_args):
        return self.name_statuses.get(diff_args, "")

    def numstat(self, path, *diff_args, source=None):
        key = (source, path, *diff_args) if source else (path, *diff_args)
        if key not in self.numstats:
            raise RepoQueryError(f"no numstat for {key}")
        return self.numstats[key]

    def stat(self, *diff_args):
        return self.stats.get(diff_args, "")

    def rev_count(self, revision_range):
        if revision_range not in self.counts:
            raise RepoQueryError(f"bad range {revision_range}")
        return self.counts[revision_range]


@pytest.fixture
def fake_git():
    return FakeGit()


def _git(cwd, *args):
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)


@pytest.fixture
def git_repo(tmp_path):
    """A real repository on branch main with one commit, then a feature branch with one more."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    repo = tmp_path / "repo"
    repo.mkdir()
    _git(repo, "init", "-q", "-b", "main")
    _git(repo, "config", "user.name", "Test User")
    _git(repo, "config", "user.email", "test@example.com")
    _git(repo, "config", "commit.gpgsign", "false")

    (repo / "README.md").write_text("# Widgets\n")
    (repo / "app.py").write_text("print('hello')\n")
    _git(repo, "add", ".")
    _git(repo, "commit", "-q", "-m", "Initial commit")

    _git(repo, "checkout", "-q", "-b", "feature/login")
    (repo / "login.py").write_text("def login():\n    return True\n")
    (repo / "app.py").write_text("print('hello')\nprint('world')\n")
    _git(repo, "add", ".")
    _git(repo, "commit", "-q", "-m", "Add login")

    return repo


@pytest.fixture
def git(git_repo):
    """Run git inside git_repo."""
    return lambda *args: _git(git_repo, *args)
