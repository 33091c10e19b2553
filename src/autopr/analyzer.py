"""Change analyzer - turns git query output into a change model.

Reconciles staged/unstaged listings, stat summaries and name-status
listings into deduplicated FileChange entries, reads commit history,
and compares the current branch against its base.
"""

from __future__ import annotations

import datetime
import enum
import logging
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterable

from .vcs import (
    DEFAULT_REMOTE,
    BaseBranchNotFound,
    GitCLI,
    NotARepository,
    ParseError,
    RemoteNotConfigured,
    RepoQueryError,
    VersionControlPort,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_BRANCH = "main"
DEFAULT_HISTORY_LIMIT = 10
BASE_BRANCH_CANDIDATES = ("main", "master", "develop")
LOG_DELIMITER = "|"


class ChangeStatus(str, enum.Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    COPIED = "copied"
    UNTRACKED = "untracked"


@dataclass(frozen=True)
class RepositoryIdentity:
    """Who and where the working copy is. Rebuilt on every call."""

    current_branch: str
    base_branch: str
    remote_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_branch": self.current_branch,
            "base_branch": self.base_branch,
            "remote_url": self.remote_url,
        }


@dataclass(frozen=True)
class FileChange:
    """A change to a single path."""

    path: str
    status: ChangeStatus
    additions: int = 0
    deletions: int = 0
    is_binary: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "status": self.status.value,
            "additions": self.additions,
            "deletions": self.deletions,
            "is_binary": self.is_binary,
        }


@dataclass(frozen=True)
class CommitRecord:
    """A commit and the paths it touched, in log order."""

    hash: str
    message: str
    author: str
    email: str
    date: datetime.datetime
    files: tuple[str, ...] = ()

    @property
    def short_hash(self) -> str:
        return self.hash[:8]

    def to_dict(self) -> dict[str, Any]:
        return {
            "hash": self.hash,
            "message": self.message,
            "author": self.author,
            "email": self.email,
            "date": self.date.isoformat(),
            "files": list(self.files),
        }


@dataclass(frozen=True)
class ChangeSummary:
    """Aggregate totals plus per-file detail. Paths are unique."""

    total_files: int = 0
    total_lines: int = 0
    additions: int = 0
    deletions: int = 0
    file_changes: tuple[FileChange, ...] = ()

    @classmethod
    def from_changes(cls, changes: Iterable[FileChange]) -> ChangeSummary:
        """Build a summary whose totals are summed from per-file counts."""
        changes = tuple(merge_overlapping(changes))
        additions = sum(c.additions for c in changes)
        deletions = sum(c.deletions for c in changes)
        return cls(
            total_files=len(changes),
            total_lines=additions + deletions,
            additions=additions,
            deletions=deletions,
            file_changes=changes,
        )

    @property
    def is_empty(self) -> bool:
        return self.total_files == 0 and not self.file_changes

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_files": self.total_files,
            "total_lines": self.total_lines,
            "additions": self.additions,
            "deletions": self.deletions,
            "file_changes": [c.to_dict() for c in self.file_changes],
        }

    def summary_for_prompt(self) -> str:
        """Concise text form for LLM prompt context."""
        lines = [
            f"Files changed: {self.total_files}, "
            f"+{self.additions} / -{self.deletions} lines",
        ]
        for c in self.file_changes[:50]:
            suffix = " (binary)" if c.is_binary else f" +{c.additions} -{c.deletions}"
            lines.append(f"- {c.status.value}: {c.path}{suffix}")
        if len(self.file_changes) > 50:
            lines.append(f"- ... and {len(self.file_changes) - 50} more files")
        return "\n".join(lines)


@dataclass(frozen=True)
class StatusSets:
    """Working-copy paths partitioned by porcelain status code."""

    staged: tuple[str, ...] = ()
    unstaged: tuple[str, ...] = ()
    untracked: tuple[str, ...] = ()

    @property
    def has_changes(self) -> bool:
        return bool(self.staged or self.unstaged or self.untracked)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "staged": list(self.staged),
            "unstaged": list(self.unstaged),
            "untracked": list(self.untracked),
        }


@dataclass
class RepositoryStatus:
    """Everything `auto-pr status` reports about a working copy."""

    identity: RepositoryIdentity
    files: StatusSets = field(default_factory=StatusSets)
    commits_ahead: int = 0
    commits_behind: int = 0

    @property
    def has_changes(self) -> bool:
        return self.files.has_changes

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.identity.to_dict(),
            **self.files.to_dict(),
            "has_changes": self.has_changes,
            "commits_ahead": self.commits_ahead,
            "commits_behind": self.commits_behind,
        }


# --- Parsers (pure functions over git output) ---

BINARY_EXTENSIONS = (
    ".jpg", ".jpeg", ".png", ".gif", ".pdf",
    ".zip", ".tar", ".gz",
    ".exe", ".dll", ".so", ".dylib", ".bin",
    ".dat", ".db",
)

GIT_STATUS_MAP = {
    "A": ChangeStatus.ADDED,
    "M": ChangeStatus.MODIFIED,
    "D": ChangeStatus.DELETED,
    "R": ChangeStatus.RENAMED,
    "C": ChangeStatus.COPIED,
    "?": ChangeStatus.UNTRACKED,
}


def is_binary_file(path: str) -> bool:
    """Extension heuristic only; content is never inspected."""
    return path.lower().endswith(BINARY_EXTENSIONS)


def map_git_status(code: str) -> ChangeStatus:
    """Map a git status code to ChangeStatus using its first character.

    Rename/copy similarity scores (R100, C075) are dropped. Unrecognized
    codes fall back to MODIFIED and are logged.
    """
    status = GIT_STATUS_MAP.get(code[:1])
    if status is None:
        logger.warning("Unrecognized git status code %r, treating as modified", code)
        return ChangeStatus.MODIFIED
    return status


def parse_porcelain_status(output: str) -> StatusSets:
    """Partition `git status --porcelain=v1` lines into staged/unstaged/untracked."""
    staged: list[str] = []
    unstaged: list[str] = []
    untracked: list[str] = []

    for line in output.splitlines():
        if len(line) < 3:
            continue
        index_status, worktree_status, path = line[0], line[1], line[3:]
        if index_status not in " ?":
            staged.append(path)
        if worktree_status not in " ?":
            unstaged.append(path)
        if index_status == "?" and worktree_status == "?":
            untracked.append(path)

    return StatusSets(tuple(staged), tuple(unstaged), tuple(untracked))


def _parse_timestamp(value: str) -> datetime.datetime:
    try:
        return datetime.datetime.fromtimestamp(int(value), tz=datetime.timezone.utc)
    except (ValueError, OverflowError, OSError):
        logger.debug("Malformed commit timestamp %r, using current time", value)
        return datetime.datetime.now(tz=datetime.timezone.utc)


def parse_commit_log(output: str) -> list[CommitRecord]:
    """Parse `git log --pretty=format:%H|%s|%an|%ae|%at --name-only` output.

    Lines containing the delimiter open a new commit; any other non-blank
    line is a path touched by the most recently opened commit.
    """
    commits: list[CommitRecord] = []
    header: list[str] | None = None
    files: list[str] = []

    def close() -> None:
        if header is not None:
            commits.append(_commit_from_header(header, files))

    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            continue
        if LOG_DELIMITER in line:
            close()
            parts = line.split(LOG_DELIMITER)
            header = parts if len(parts) >= 5 else None
            files = []
        elif header is not None:
            files.append(line)

    close()
    return commits


def _commit_from_header(parts: list[str], files: list[str]) -> CommitRecord:
    # Subject may itself contain the delimiter; the other fields never do.
    return CommitRecord(
        hash=parts[0],
        message=LOG_DELIMITER.join(parts[1:-3]),
        author=parts[-3],
        email=parts[-2],
        date=_parse_timestamp(parts[-1]),
        files=tuple(files),
    )


def parse_numstat(output: str, path: str | None = None) -> tuple[int, int]:
    """Counts from `added<TAB>deleted<TAB>path` lines; anything else is (0, 0).

    With path, the line for that path (or the `old => new` line of a
    rename) is used; otherwise the first line.
    """
    lines = [line for line in output.splitlines() if line.strip()]
    if not lines:
        return 0, 0
    line = lines[0]
    if path is not None:
        for candidate in lines:
            name = candidate.split("\t", 2)[-1]
            if name == path or " => " in name:
                line = candidate
                break
    parts = line.split()
    if len(parts) < 2:
        return 0, 0
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        # Binary files report "-\t-"
        return 0, 0


def parse_name_status(output: str) -> list[tuple[str, str, str | None]]:
    """Parse `git diff --name-status` into (status_code, path, source) triples.

    Rename and copy lines carry source and destination; path is the
    destination since that is the path present after the change, and
    source is None for every other status.
    """
    entries = []
    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            continue
        parts = line.split("\t") if "\t" in line else line.split()
        if len(parts) < 2:
            continue
        source = parts[1] if len(parts) >= 3 else None
        entries.append((parts[0], parts[-1], source))
    return entries


_STAT_BAR = re.compile(r"^\d+\s*([+-]*)$")


def parse_stat_summary(output: str) -> ChangeSummary:
    """Parse `git diff --stat` lines of the form `path | 12 ++++--`.

    Additions and deletions are counted from the +/- glyphs in the bar,
    not the number beside it, so large diffs are undercounted once the
    bar is scaled to the terminal width. Only the bar after the count is
    read; binary lines (`Bin 0 -> 1234 bytes`) are kept with zero counts.
    """
    changes = []
    for raw in output.splitlines():
        line = raw.strip()
        if not line or "|" not in line:
            continue
        path, _, stats = line.partition("|")
        path = path.strip()
        stats = stats.strip()
        if stats.startswith("Bin"):
            changes.append(FileChange(path, ChangeStatus.MODIFIED, 0, 0, is_binary_file(path)))
            continue
        bar = _STAT_BAR.match(stats)
        glyphs = bar.group(1) if bar else ""
        additions = glyphs.count("+")
        deletions = glyphs.count("-")

        if additions and not deletions:
            status = ChangeStatus.ADDED
        elif deletions and not additions:
            status = ChangeStatus.DELETED
        else:
            status = ChangeStatus.MODIFIED
        changes.append(FileChange(path, status, additions, deletions, is_binary_file(path)))

    additions = sum(c.additions for c in changes)
    deletions = sum(c.deletions for c in changes)
    return ChangeSummary(
        total_files=len(changes),
        total_lines=additions + deletions,
        additions=additions,
        deletions=deletions,
        file_changes=tuple(changes),
    )


def merge_overlapping(changes: Iterable[FileChange]) -> list[FileChange]:
    """Collapse entries sharing a path into one.

    Callers pass staged entries before unstaged ones: counts are summed,
    is_binary is OR-ed and the last status seen wins, so an unstaged
    status supersedes a staged one. Paths keep first-appearance order.
    """
    merged: dict[str, FileChange] = {}
    for change in changes:
        existing = merged.get(change.path)
        if existing is None:
            merged[change.path] = change
            continue
        merged[change.path] = FileChange(
            path=change.path,
            status=change.status,
            additions=existing.additions + change.additions,
            deletions=existing.deletions + change.deletions,
            is_binary=existing.is_binary or change.is_binary,
        )
    return list(merged.values())


# --- Analyzer ---


class GitAnalyzer:
    """Queries a working copy through a VersionControlPort."""

    def __init__(
        self,
        repo_path: str | Path = ".",
        port: VersionControlPort | None = None,
        remote: str = DEFAULT_REMOTE,
    ):
        self.repo_path = Path(repo_path).resolve()
        self.port = port or GitCLI(self.repo_path)
        self.remote = remote

    # Repository identity

    def is_repository(self) -> bool:
        """True if .git exists here, as a directory or a worktree file."""
        return os.path.lexists(self.repo_path / ".git")

    def current_branch(self) -> str:
        return self.port.current_branch()

    def remote_url(self) -> str:
        return self.port.remote_url(self.remote)

    def base_branch(self) -> str:
        """Remote default branch, else the first common name on the remote, else main."""
        ref = self.port.default_branch(self.remote)
        if ref:
            return ref.rstrip("/").rsplit("/", 1)[-1]

        for candidate in BASE_BRANCH_CANDIDATES:
            if self.port.ref_exists(f"refs/remotes/{self.remote}/{candidate}"):
                return candidate

        logger.debug("No default branch advertised, falling back to %s", DEFAULT_BASE_BRANCH)
        return DEFAULT_BASE_BRANCH

    def identity(self) -> RepositoryIdentity:
        try:
            remote_url: str | None = self.remote_url()
        except RemoteNotConfigured:
            remote_url = None
        return RepositoryIdentity(
            current_branch=self.current_branch(),
            base_branch=self.base_branch(),
            remote_url=remote_url,
        )

    def resolve_base(self, base_branch: str = DEFAULT_BASE_BRANCH) -> str:
        """Remote-tracking ref for base_branch if present, else the local ref."""
        base_branch = base_branch or DEFAULT_BASE_BRANCH
        for ref in (f"{self.remote}/{base_branch}", base_branch):
            if self.port.ref_exists(ref):
                return ref
        raise BaseBranchNotFound(base_branch)

    # Status collector

    def collect_status(self) -> StatusSets:
        return parse_porcelain_status(self.port.status_porcelain())

    # Commit history

    def history(self, limit: int = DEFAULT_HISTORY_LIMIT) -> list[CommitRecord]:
        if limit <= 0:
            limit = DEFAULT_HISTORY_LIMIT
        return parse_commit_log(self.port.log(limit=limit))

    def commits_since(self, base_branch: str = DEFAULT_BASE_BRANCH) -> list[CommitRecord]:
        """Commits reachable from HEAD but not from the base branch."""
        base_ref = self.resolve_base(base_branch)
        output = self.port.log(f"{base_ref}..HEAD")
        if not output.strip():
            return []
        return parse_commit_log(output)

    def commit_counts(self, base_branch: str) -> tuple[int, int]:
        """(ahead, behind) relative to base_branch; 0 where it cannot be counted."""
        try:
            base_ref = self.resolve_base(base_branch)
        except BaseBranchNotFound:
            return 0, 0

        counts = []
        for revision_range in (f"{base_ref}..HEAD", f"HEAD..{base_ref}"):
            try:
                counts.append(self.port.rev_count(revision_range))
            except (RepoQueryError, ParseError):
                counts.append(0)
        return counts[0], counts[1]

    # Diff aggregation

    def file_stat(self, path: str, *diff_args: str, source: str | None = None) -> tuple[int, int]:
        """(additions, deletions) for one path; (0, 0) if git cannot say.

        source is the pre-rename path for renamed or copied entries.
        """
        try:
            output = self.port.numstat(path, *diff_args, source=source)
        except RepoQueryError as e:
            logger.debug("numstat failed for %s: %s", path, e)
            return 0, 0
        return parse_numstat(output, path)

    def name_status(self, output: str, *diff_args: str) -> list[FileChange]:
        """FileChange entries for a name-status listing, with numstat counts.

        diff_args must match the ones that produced output so line counts
        come from the same comparison.
        """
        changes = []
        for code, path, source in parse_name_status(output):
            additions, deletions = self.file_stat(path, *diff_args, source=source)
            changes.append(FileChange(
                path=path,
                status=map_git_status(code),
                additions=additions,
                deletions=deletions,
                is_binary=is_binary_file(path),
            ))
        return changes

    def working_changes(self) -> ChangeSummary:
        """Staged and unstaged changes merged per path.

        Totals are summed from numstat counts rather than a stat summary,
        since the two listings overlap for partially staged files.
        """
        staged = self.name_status(self.port.name_status("--staged"), "--staged")
        unstaged = self.name_status(self.port.name_status())
        return ChangeSummary.from_changes(staged + unstaged)

    # Branch comparison

    def compare(self, base_branch: str = DEFAULT_BASE_BRANCH) -> ChangeSummary:
        """Changes on HEAD since it diverged from base_branch (three-dot diff)."""
        base_ref = self.resolve_base(base_branch)
        revision_range = f"{base_ref}...HEAD"

        summary = parse_stat_summary(self.port.stat(revision_range))
        detail = self.name_status(self.port.name_status(revision_range), revision_range)
        return replace(summary, file_changes=tuple(merge_overlapping(detail)))

    def repository_status(self) -> RepositoryStatus:
        if not self.is_repository():
            raise NotARepository(f"not a git repository: {self.repo_path}")

        identity = self.identity()
        ahead, behind = self.commit_counts(identity.base_branch)
        return RepositoryStatus(
            identity=identity,
            files=self.collect_status(),
            commits_ahead=ahead,
            commits_behind=behind,
        )
