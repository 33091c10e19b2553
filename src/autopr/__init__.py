"""Auto PR - change analysis and pull request drafting for git working copies."""

__version__ = "0.1.0"
