"""Shared helpers, option decorators, and the main CLI group."""

from __future__ import annotations

import asyncio

import click

from ..config import Settings
from ..exceptions import GatewayError
from ..gateway import RemoteGateway
from ..log import configure_logging
from ..outcome import Outcome, OutcomeKind
from ..tree import normalize_path


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class ConflictException(click.ClickException):
    """A revision conflict; exits with its own status."""
    exit_code = 3


def _normalize_repo_path(path: str) -> str:
    """Normalize a repo-side path, accepting an optional leading ':'."""
    if path.startswith(":"):
        path = path[1:]
    try:
        return normalize_path(path)
    except ValueError as exc:
        raise click.ClickException(f"Invalid repo path: {exc}")


def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


def _settings(ctx) -> Settings:
    settings = ctx.obj["settings"]
    if not settings.repo:
        raise click.ClickException(
            "No repository specified. Use --repo or set NOTESTORE_REPO."
        )
    return settings


def _open_gateway(ctx) -> RemoteGateway:
    try:
        return _settings(ctx).open_gateway()
    except (ValueError, FileNotFoundError) as exc:
        raise click.ClickException(str(exc))


def _run(coro):
    """Run a command coroutine to completion."""
    try:
        return asyncio.run(coro)
    except GatewayError as exc:
        raise click.ClickException(str(exc))


def _check(outcome: Outcome):
    """Return the outcome's value, or raise a click error named after its kind."""
    if outcome.ok:
        if outcome.warning:
            click.echo(f"Warning: {outcome.warning}", err=True)
        return outcome.value
    step = f" (at {outcome.step})" if outcome.step else ""
    if outcome.kind is OutcomeKind.CONFLICT:
        raise ConflictException(
            f"Conflict{step}: {outcome.reason}. Refresh and reapply your changes."
        )
    if outcome.kind is OutcomeKind.INVALID:
        raise click.ClickException(f"Invalid: {outcome.reason}")
    raise click.ClickException(f"Failed{step}: {outcome.reason}")


def _message_option(f):
    """Shared -m/--message option for write commands."""
    return click.option("-m", "--message", default=None,
                        help="Commit message.")(f)


def _format_option(f):
    """Shared --format option."""
    return click.option("--format", "fmt", type=click.Choice(["text", "json"]),
                        default="text", show_default=True,
                        help="Output format.")(f)


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--repo", "-r", envvar="NOTESTORE_REPO",
              help="GitHub owner/name or path to a bare repository (or set NOTESTORE_REPO).")
@click.option("--token", envvar=["NOTESTORE_TOKEN", "GITHUB_TOKEN"], default=None,
              help="GitHub token (or set NOTESTORE_TOKEN / GITHUB_TOKEN).")
@click.option("--branch", "-b", envvar="NOTESTORE_BRANCH", default=None,
              help="Branch to work on (default: the repository's default branch).")
@click.option("--api-url", envvar="NOTESTORE_API_URL", default=None,
              help="GitHub API root.")
@click.option("-v", "--verbose", count=True, help="Verbose output on stderr (repeat for debug).")
@click.pass_context
def main(ctx, repo, token, branch, api_url, verbose):
    """Edit notes in a git repository, locally or on GitHub.

    \b
    Quick start:
      notestore -r owner/notes ls
      notestore -r owner/notes touch ideas/today.md
      notestore -r owner/notes write ideas/today.md today.md -m "Add notes"
      notestore -r owner/notes upload a.png b.md --to assets

    \b
    Repo paths may be prefixed with ':' (e.g. :path/to/file).
    A path to a bare repository works in place of owner/name.
    """
    ctx.ensure_object(dict)
    configure_logging(verbose)
    try:
        settings = Settings.from_env()
    except ValueError as exc:
        raise click.ClickException(str(exc))
    if repo is not None:
        settings.repo = repo
    if token is not None:
        settings.token = token
    if branch is not None:
        settings.branch = branch
    if api_url is not None:
        settings.api_url = api_url
    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = verbose
