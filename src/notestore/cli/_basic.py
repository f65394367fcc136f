"""Read commands: ls, cat, log."""

from __future__ import annotations

import json
import sys

import click

from ..tree import normalize_dir
from ._helpers import (
    main,
    _format_option,
    _normalize_repo_path,
    _open_gateway,
    _run,
)


# ---------------------------------------------------------------------------
# ls
# ---------------------------------------------------------------------------

@main.command()
@click.argument("path", required=False, default="")
@_format_option
@click.pass_context
def ls(ctx, path, fmt):
    """List a directory (default: the root), directories first.

    A missing directory lists as empty.
    """
    try:
        path = normalize_dir(path[1:] if path.startswith(":") else path)
    except ValueError as exc:
        raise click.ClickException(f"Invalid repo path: {exc}")

    async def _ls():
        async with _open_gateway(ctx) as gateway:
            return await gateway.list_directory(path)

    entries = _run(_ls())
    if fmt == "json":
        click.echo(json.dumps(
            [{"name": e.name, "path": e.path, "type": str(e.type), "revision": e.revision}
             for e in entries],
            indent=2,
        ))
        return
    for entry in entries:
        click.echo(f"{entry.name}/" if entry.is_dir else entry.name)


# ---------------------------------------------------------------------------
# cat
# ---------------------------------------------------------------------------

@main.command()
@click.argument("path")
@click.option("--revision", default=None, help="Read the file as of this commit.")
@click.pass_context
def cat(ctx, path, revision):
    """Write a file's content to stdout."""
    path = _normalize_repo_path(path)

    async def _cat():
        async with _open_gateway(ctx) as gateway:
            return await gateway.read_blob(path, revision)

    blob = _run(_cat())
    if blob is None:
        raise click.ClickException(f"File not found: {path}")
    sys.stdout.buffer.write(blob.data)
    sys.stdout.buffer.flush()


# ---------------------------------------------------------------------------
# log
# ---------------------------------------------------------------------------

@main.command()
@click.argument("path")
@_format_option
@click.pass_context
def log(ctx, path, fmt):
    """Show the commits that changed PATH, newest first."""
    path = _normalize_repo_path(path)

    async def _log():
        async with _open_gateway(ctx) as gateway:
            return await gateway.list_revisions(path)

    revisions = _run(_log())
    if fmt == "json":
        click.echo(json.dumps(
            [{"revision": r.revision, "message": r.message, "author": r.author,
              "timestamp": r.timestamp, "url": r.url} for r in revisions],
            indent=2,
        ))
        return
    for rev in revisions:
        first_line = rev.message.splitlines()[0] if rev.message else ""
        click.echo(f"{rev.revision[:7]}  {rev.timestamp or ''}  {first_line}")
