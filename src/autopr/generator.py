"""PR draft generator - combines branch analysis with the local model.

Takes a branch change summary and its commits, asks the model for a
title and body, and falls back to a heuristic draft when the model is
unavailable or answers badly.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from .analyzer import ChangeSummary, CommitRecord
from .model import ModelError, OllamaClient
from .prompts import SYSTEM_PROMPT, commits_for_prompt, pr_draft_prompt

MAX_TITLE_LENGTH = 72


@dataclass
class PRDraft:
    """A pull request title and markdown body."""

    title: str
    body: str
    head_branch: str
    base_branch: str
    model_used: str = ""
    generation_time_seconds: float = 0.0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "body": self.body,
            "head_branch": self.head_branch,
            "base_branch": self.base_branch,
            "model_used": self.model_used,
            "generation_time_seconds": round(self.generation_time_seconds, 1),
            "errors": self.errors,
        }


class PRDraftGenerator:
    """Drafts a PR from a ChangeSummary and the commits since base."""

    def __init__(self, client: OllamaClient | None = None):
        self.client = client

    def generate(
        self,
        head_branch: str,
        base_branch: str,
        summary: ChangeSummary,
        commits: list[CommitRecord],
    ) -> PRDraft:
        start = time.time()
        draft = heuristic_draft(head_branch, base_branch, summary, commits)
        if self.client is None:
            draft.model_used = "none (heuristic only)"
            return draft

        prompt = pr_draft_prompt(
            head_branch,
            base_branch,
            summary.summary_for_prompt(),
            commits_for_prompt(commits),
        )
        try:
            data = self.client.generate_json(prompt, system=SYSTEM_PROMPT)
        except ModelError as e:
            draft.errors.append(str(e))
            draft.model_used = "none (model failed)"
            return draft

        title = _clean_title(str(data.get("title", "")))
        body = str(data.get("body", "")).strip()
        if title:
            draft.title = title
        else:
            draft.errors.append("model returned no title")
        if body:
            draft.body = body
        else:
            draft.errors.append("model returned no body")

        draft.model_used = self.client.model
        draft.generation_time_seconds = time.time() - start
        return draft


def heuristic_draft(
    head_branch: str,
    base_branch: str,
    summary: ChangeSummary,
    commits: list[CommitRecord],
) -> PRDraft:
    """Title from the single commit or the branch name; body lists changes."""
    if len(commits) == 1:
        title = commits[0].message
    else:
        title = head_branch.rsplit("/", 1)[-1].replace("-", " ").replace("_", " ")
        title = title[:1].upper() + title[1:]

    lines = ["## Summary", ""]
    lines.append(
        f"{summary.total_files} files changed, "
        f"{summary.additions} insertions(+), {summary.deletions} deletions(-)."
    )
    if commits:
        lines += ["", "## Commits", ""]
        lines += [f"- {c.message} ({c.short_hash})" for c in commits]
    if summary.file_changes:
        lines += ["", "## Changes", ""]
        lines += [f"- `{c.path}` ({c.status.value})" for c in summary.file_changes]

    return PRDraft(
        title=_clean_title(title) or head_branch,
        body="\n".join(lines),
        head_branch=head_branch,
        base_branch=base_branch,
    )


def _clean_title(title: str) -> str:
    """First line, without wrapping quotes or a trailing period, capped in length."""
    title = title.strip().split("\n", 1)[0].strip().strip("\"'").rstrip(".")
    if len(title) > MAX_TITLE_LENGTH:
        title = title[: MAX_TITLE_LENGTH - 3].rstrip() + "..."
    return title
