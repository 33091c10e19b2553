"""Hosting platform detection from git remote URLs."""

from __future__ import annotations

import re
from urllib.parse import urlparse

GITHUB = "github"
GITLAB = "gitlab"
UNKNOWN = "unknown"

_SCP_LIKE = re.compile(r"^(?:[\w.-]+@)?([\w.-]+):(?!//)(.+)$")


def normalize_remote_url(remote_url: str) -> str:
    """Rewrite SSH remotes as https:// and drop a trailing .git."""
    url = remote_url.strip()
    if "://" not in url:
        match = _SCP_LIKE.match(url)
        if match:
            url = f"https://{match.group(1)}/{match.group(2)}"
    elif url.startswith("ssh://"):
        parsed = urlparse(url)
        url = f"https://{parsed.hostname}{parsed.path}"
    return url[:-4] if url.endswith(".git") else url


def detect_platform(remote_url: str | None) -> str:
    """Return GITHUB, GITLAB or UNKNOWN for a remote URL."""
    if not remote_url:
        return UNKNOWN
    host = (urlparse(normalize_remote_url(remote_url)).hostname or "").lower()
    if host == "github.com" or host.endswith(".github.com"):
        return GITHUB
    if "gitlab" in host:
        return GITLAB
    return UNKNOWN


def extract_repo_info(remote_url: str) -> tuple[str, str]:
    """(owner, repo) from a remote URL; empty strings when the path is too short."""
    path = urlparse(normalize_remote_url(remote_url)).path.strip("/")
    parts = path.split("/")
    if len(parts) < 2:
        return "", ""
    # GitLab subgroups: owner is everything before the project name
    return "/".join(parts[:-1]), parts[-1]
