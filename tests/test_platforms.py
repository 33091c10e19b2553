"""Tests for hosting platform detection."""

import pytest

from autopr.platforms import (
    GITHUB,
    GITLAB,
    UNKNOWN,
    detect_platform,
    extract_repo_info,
    normalize_remote_url,
)


@pytest.mark.parametrize("url,expected", [
    ("https://github.com/acme/widgets.git", GITHUB),
    ("git@github.com:acme/widgets.git", GITHUB),
    ("ssh://git@gitlab.com/acme/widgets.git", GITLAB),
    ("https://gitlab.internal.example.com/team/app", GITLAB),
    ("https://bitbucket.org/acme/widgets", UNKNOWN),
    ("", UNKNOWN),
    (None, UNKNOWN),
])
def test_detect_platform(url, expected):
    assert detect_platform(url) == expected


def test_normalize_scp_remote():
    assert normalize_remote_url("git@github.com:acme/widgets.git") == "https://github.com/acme/widgets"


def test_extract_repo_info():
    assert extract_repo_info("git@github.com:acme/widgets.git") == ("acme", "widgets")
    assert extract_repo_info("https://gitlab.com/group/sub/project") == ("group/sub", "project")
    assert extract_repo_info("https://github.com/") == ("", "")
