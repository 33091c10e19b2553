"""Prompt templates for PR title and description drafting."""

from __future__ import annotations

SYSTEM_PROMPT = """You are a senior engineer writing pull request descriptions.
Describe what changed and why, based only on the provided change data.
Be specific and concise. Do not invent changes that are not listed.
Write in a neutral technical style, not promotional."""


def pr_draft_prompt(
    head_branch: str,
    base_branch: str,
    changes: str,
    commits_text: str,
) -> str:
    """Prompt asking for a JSON object with title and body."""
    return f"""Draft a pull request for merging branch {head_branch} into {base_branch}.

CHANGED FILES:
{changes[:4000]}

COMMITS:
{commits_text[:3000] or "(no commits ahead of base)"}

Respond with a JSON object with exactly these keys:
{{
  "title": "<imperative summary, under 72 characters>",
  "body": "<markdown with sections: ## Summary, ## Changes, ## Testing>"
}}

The Changes section should group related files rather than list every path."""


def commits_for_prompt(commits) -> str:
    """One line per commit: short hash, subject, author."""
    return "\n".join(
        f"- {c.short_hash} {c.message} ({c.author})"
        for c in commits[:30]
    )
