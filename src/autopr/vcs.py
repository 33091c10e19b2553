"""Version-control port - the only layer that talks to git.

The analyzer depends on VersionControlPort; GitCLI is the production
adapter that shells out to the git binary. Tests swap in a fake.
"""

from __future__ import annotations

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_QUERY_TIMEOUT = 30.0  # seconds per git invocation
DEFAULT_REMOTE = "origin"
LOG_FORMAT = "--pretty=format:%H|%s|%an|%ae|%at"


class GitError(Exception):
    """Base class for repository errors."""


class NotARepository(GitError):
    """Path is not a git working copy."""


class RemoteNotConfigured(GitError):
    """No primary remote is configured."""


class BaseBranchNotFound(GitError):
    """Neither the remote-tracking nor the local base ref exists."""

    def __init__(self, branch: str):
        super().__init__(f"base branch {branch} not found")
        self.branch = branch


class RepoQueryError(GitError):
    """A git invocation failed."""

    def __init__(self, message: str, command: list[str] | None = None, stderr: str = ""):
        super().__init__(message)
        self.command = command or []
        self.stderr = stderr


class ParseError(GitError):
    """Git produced output of an unexpected shape."""


class VersionControlPort(ABC):
    """One method per git query shape used by the analyzer.

    Methods return raw text; parsing lives in the analyzer so a fake
    port can feed it canned output.
    """

    @abstractmethod
    def current_branch(self) -> str:
        """Name of the checked-out branch. Raises RepoQueryError."""
        ...

    @abstractmethod
    def remote_url(self, remote: str = DEFAULT_REMOTE) -> str:
        """URL of the remote. Raises RemoteNotConfigured if it is absent."""
        ...

    @abstractmethod
    def default_branch(self, remote: str = DEFAULT_REMOTE) -> str | None:
        """Target of refs/remotes/<remote>/HEAD, or None if not advertised."""
        ...

    @abstractmethod
    def ref_exists(self, ref: str) -> bool:
        """Whether ref resolves to a commit."""
        ...

    @abstractmethod
    def status_porcelain(self) -> str:
        """`git status --porcelain=v1` output."""
        ...

    @abstractmethod
    def log(self, *revisions: str, limit: int | None = None) -> str:
        """Log in LOG_FORMAT followed by --name-only file lists."""
        ...

    @abstractmethod
    def name_status(self, *diff_args: str) -> str:
        """`git diff --name-status` output."""
        ...

    @abstractmethod
    def numstat(self, path: str, *diff_args: str, source: str | None = None) -> str:
        """`git diff --numstat` output restricted to one path.

        source is the pre-rename path; passing it lets git pair the two
        sides of a rename or copy instead of reporting an addition.
        """
        ...

    @abstractmethod
    def stat(self, *diff_args: str) -> str:
        """`git diff --stat` output."""
        ...

    @abstractmethod
    def rev_count(self, revision_range: str) -> int:
        """Number of commits in revision_range."""
        ...


class GitCLI(VersionControlPort):
    """Runs git as a subprocess against a working copy."""

    def __init__(self, repo_path: str | Path, timeout: float = DEFAULT_QUERY_TIMEOUT):
        self.repo_path = Path(repo_path).resolve()
        self.timeout = timeout

    def run(self, *args: str) -> str:
        """Run `git -C <repo> args...` and return stdout."""
        cmd = ["git", "-C", str(self.repo_path), *args]
        logger.debug("git %s", " ".join(args))
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.timeout,
                env={**os.environ, "LC_ALL": "C"},
            )
        except subprocess.TimeoutExpired:
            raise RepoQueryError(
                f"git {args[0]} timed out after {self.timeout}s", command=cmd
            )
        except FileNotFoundError:
            raise RepoQueryError("git executable not found", command=cmd)

        if result.returncode != 0:
            stderr = result.stderr.strip()
            logger.debug("git %s failed (exit %d): %s", " ".join(args), result.returncode, stderr)
            raise RepoQueryError(
                f"git {args[0]} failed: {stderr[:200] or f'exit {result.returncode}'}",
                command=cmd,
                stderr=stderr,
            )
        return result.stdout

    def current_branch(self) -> str:
        branch = self.run("branch", "--show-current").strip()
        if not branch:
            raise RepoQueryError("HEAD is detached; no current branch")
        return branch

    def remote_url(self, remote: str = DEFAULT_REMOTE) -> str:
        try:
            return self.run("remote", "get-url", remote).strip()
        except RepoQueryError as e:
            if "No such remote" in e.stderr:
                raise RemoteNotConfigured(f"no remote named {remote!r} is configured")
            raise

    def default_branch(self, remote: str = DEFAULT_REMOTE) -> str | None:
        try:
            return self.run("symbolic-ref", f"refs/remotes/{remote}/HEAD").strip() or None
        except RepoQueryError:
            return None

    def ref_exists(self, ref: str) -> bool:
        try:
            self.run("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}")
            return True
        except RepoQueryError:
            return False

    def status_porcelain(self) -> str:
        return self.run("status", "--porcelain=v1")

    def log(self, *revisions: str, limit: int | None = None) -> str:
        args = ["log"]
        if limit is not None:
            args.append(f"-{limit}")
        args.extend(revisions)
        args.extend([LOG_FORMAT, "--name-only"])
        return self.run(*args)

    def name_status(self, *diff_args: str) -> str:
        return self.run("diff", "--name-status", *diff_args)

    def numstat(self, path: str, *diff_args: str, source: str | None = None) -> str:
        paths = [source, path] if source else [path]
        return self.run("diff", "--numstat", *diff_args, "--", *paths)

    def stat(self, *diff_args: str) -> str:
        return self.run("diff", "--stat", *diff_args)

    def rev_count(self, revision_range: str) -> int:
        output = self.run("rev-list", "--count", revision_range).strip()
        try:
            return int(output)
        except ValueError:
            raise ParseError(f"unexpected rev-list output: {output[:80]!r}")
