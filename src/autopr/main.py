"""Auto PR CLI - inspect a working copy and draft pull requests.

Usage:
    auto-pr status
    auto-pr compare main --json
    auto-pr draft --skip-model
"""

from __future__ import annotations

import json
import logging

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .analyzer import DEFAULT_HISTORY_LIMIT, ChangeSummary, GitAnalyzer
from .generator import PRDraftGenerator
from .model import DEFAULT_MODEL, OLLAMA_BASE_URL, ModelError, OllamaClient
from .platforms import detect_platform, extract_repo_info
from .vcs import DEFAULT_QUERY_TIMEOUT, GitCLI, GitError, NotARepository, RepoQueryError

console = Console()
err_console = Console(stderr=True)

STATUS_STYLES = {
    "added": "green",
    "modified": "yellow",
    "deleted": "red",
    "renamed": "cyan",
    "copied": "cyan",
    "untracked": "magenta",
}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _require_repo(analyzer: GitAnalyzer) -> None:
    if not analyzer.is_repository():
        raise NotARepository(f"Not a git repository: {analyzer.repo_path}")


@click.group()
@click.version_option(version=__version__)
@click.option("--repo", "-C", default=".", envvar="AUTOPR_REPO", show_default=True,
              help="Path to the working copy")
@click.option("--timeout", type=float, default=DEFAULT_QUERY_TIMEOUT, envvar="AUTOPR_GIT_TIMEOUT",
              show_default=True, help="Seconds before a git query is killed")
@click.option("--verbose", "-v", is_flag=True, help="Log every git query")
@click.pass_context
def cli(ctx: click.Context, repo: str, timeout: float, verbose: bool):
    """Auto PR - summarize branch changes and draft pull requests."""
    _setup_logging(verbose)
    ctx.obj = GitAnalyzer(repo, port=GitCLI(repo, timeout=timeout))


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output raw JSON to stdout")
@click.pass_obj
def status(analyzer: GitAnalyzer, as_json: bool):
    """Show branch, remote, working-copy and ahead/behind status."""
    try:
        repo_status = analyzer.repository_status()
    except GitError as e:
        raise click.ClickException(str(e))
    try:
        commits = analyzer.history(5)
    except RepoQueryError:
        # No commits yet
        commits = []

    identity = repo_status.identity
    platform = detect_platform(identity.remote_url)

    if as_json:
        click.echo(json.dumps({
            **repo_status.to_dict(),
            "platform": platform,
            "recent_commits": [c.to_dict() for c in commits],
        }, indent=2))
        return

    table = Table(title="Repository Status", show_header=False, border_style="dim")
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("Current branch", identity.current_branch)
    table.add_row("Base branch", identity.base_branch)
    if identity.remote_url:
        owner, name = extract_repo_info(identity.remote_url)
        table.add_row("Remote", identity.remote_url)
        table.add_row("Platform", f"{platform} ({owner}/{name})" if owner else platform)
    else:
        table.add_row("Remote", "[yellow]not configured[/]")

    files = repo_status.files
    if repo_status.has_changes:
        table.add_row("Staged", str(len(files.staged)))
        table.add_row("Unstaged", str(len(files.unstaged)))
        table.add_row("Untracked", str(len(files.untracked)))
    else:
        table.add_row("Working copy", "[green]clean[/]")
    table.add_row(
        "Branch status",
        f"{repo_status.commits_ahead} ahead, {repo_status.commits_behind} behind {identity.base_branch}",
    )
    console.print(table)

    if commits:
        console.print()
        console.print("[bold]Recent commits:[/]")
        for c in commits:
            console.print(f"  [cyan]{c.short_hash}[/] {escape(c.message)}")
    else:
        console.print()
        console.print("[dim]No commits found[/]")

    console.print()
    if not identity.remote_url:
        console.print("[red]Not ready:[/] no remote repository")
    elif not repo_status.has_changes and repo_status.commits_ahead == 0:
        console.print("[yellow]No changes to create a PR from[/]")
    else:
        console.print("[green]Ready to create a PR[/]")


@cli.command()
@click.option("--limit", "-n", default=DEFAULT_HISTORY_LIMIT, show_default=True, help="Number of commits")
@click.option("--json", "as_json", is_flag=True, help="Output raw JSON to stdout")
@click.pass_obj
def log(analyzer: GitAnalyzer, limit: int, as_json: bool):
    """Show recent commits and the files they touched."""
    try:
        _require_repo(analyzer)
        commits = analyzer.history(limit)
    except GitError as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(json.dumps([c.to_dict() for c in commits], indent=2))
        return

    for c in commits:
        console.print(
            f"[cyan]{c.short_hash}[/] [bold]{escape(c.message)}[/] "
            f"[dim]{c.author} {c.date:%Y-%m-%d}[/]"
        )
        for path in c.files:
            console.print(f"    {escape(path)}", style="dim")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output raw JSON to stdout")
@click.pass_obj
def diff(analyzer: GitAnalyzer, as_json: bool):
    """Summarize staged and unstaged changes in the working copy."""
    try:
        _require_repo(analyzer)
        summary = analyzer.working_changes()
    except GitError as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(json.dumps(summary.to_dict(), indent=2))
    elif summary.is_empty:
        console.print("[green]No staged or unstaged changes[/]")
    else:
        _print_change_summary(summary, "Working Copy Changes")


@cli.command()
@click.argument("base", required=False)
@click.option("--json", "as_json", is_flag=True, help="Output raw JSON to stdout")
@click.pass_obj
def compare(analyzer: GitAnalyzer, base: str | None, as_json: bool):
    """Compare HEAD with BASE (default: detected base branch)."""
    try:
        _require_repo(analyzer)
        base = base or analyzer.base_branch()
        summary = analyzer.compare(base)
        commits = analyzer.commits_since(base)
    except GitError as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(json.dumps({
            "base_branch": base,
            "summary": summary.to_dict(),
            "commits": [c.to_dict() for c in commits],
        }, indent=2))
        return

    if summary.is_empty and not commits:
        console.print(f"[green]No changes relative to {base}[/]")
        return

    _print_change_summary(summary, f"Changes since {base}")
    if commits:
        console.print()
        console.print(f"[bold]{len(commits)} commits ahead of {base}:[/]")
        for c in commits:
            console.print(f"  [cyan]{c.short_hash}[/] {escape(c.message)}")


@cli.command()
@click.argument("base", required=False)
@click.option("--model", "-m", default=DEFAULT_MODEL, envvar="AUTOPR_MODEL", help="Ollama model name")
@click.option("--ollama-url", default=OLLAMA_BASE_URL, envvar="AUTOPR_OLLAMA_URL", help="Ollama server URL")
@click.option("--skip-model", is_flag=True, help="Heuristic draft only, no model inference")
@click.option("--json", "as_json", is_flag=True, help="Output raw JSON to stdout")
@click.pass_obj
def draft(analyzer: GitAnalyzer, base: str | None, model: str, ollama_url: str, skip_model: bool, as_json: bool):
    """Draft a PR title and description for HEAD against BASE."""
    try:
        _require_repo(analyzer)
        head = analyzer.current_branch()
        base = base or analyzer.base_branch()
        summary = analyzer.compare(base)
        commits = analyzer.commits_since(base)
    except GitError as e:
        raise click.ClickException(str(e))

    if summary.is_empty and not commits:
        raise click.ClickException(f"No changes between {head} and {base} to draft a PR from")

    client = None
    if not skip_model:
        client = OllamaClient(model=model, base_url=ollama_url)
        try:
            with err_console.status(f"Checking model {model}..."):
                client.ensure_ready()
        except ModelError as e:
            client.close()
            raise click.ClickException(str(e))

    try:
        with err_console.status("Drafting PR..."):
            result = PRDraftGenerator(client).generate(head, base, summary, commits)
    finally:
        if client is not None:
            client.close()

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    console.print(Panel(
        Markdown(result.body),
        title=f"[bold]{escape(result.title)}[/]",
        subtitle=f"{head} -> {base} | {result.model_used}",
        border_style="cyan",
    ))
    for error in result.errors:
        err_console.print(f"[yellow]warning:[/] {error}")


@cli.command()
def version():
    """Show version information."""
    console.print(f"auto-pr v{__version__}")


def _print_change_summary(summary: ChangeSummary, title: str) -> None:
    table = Table(title=title, border_style="dim")
    table.add_column("Status")
    table.add_column("Path", style="bold")
    table.add_column("+", justify="right", style="green")
    table.add_column("-", justify="right", style="red")

    for c in summary.file_changes:
        style = STATUS_STYLES.get(c.status.value, "")
        added = "bin" if c.is_binary else str(c.additions)
        deleted = "bin" if c.is_binary else str(c.deletions)
        table.add_row(f"[{style}]{c.status.value}[/]", escape(c.path), added, deleted)

    console.print(table)
    console.print(
        f"{summary.total_files} files changed, "
        f"[green]{summary.additions} insertions(+)[/], [red]{summary.deletions} deletions(-)[/]"
    )


if __name__ == "__main__":
    cli()
