"""Write commands: touch, mkdir, rm, mv, write, upload."""

from __future__ import annotations

import click

from ..diffing import HttpMessageSuggester
from ..mirror import TreeMirror
from ..mutations import OptimisticMutator
from ..reconciler import CommitReconciler
from ..staging import LocalFile, StagingBuffer
from ..tree import leaf_name, normalize_dir, parent_directory
from ._helpers import (
    main,
    _check,
    _message_option,
    _normalize_repo_path,
    _open_gateway,
    _run,
    _settings,
    _status,
)


async def _find_entry(gateway, path):
    for entry in await gateway.list_directory(parent_directory(path)):
        if entry.path == path:
            return entry
    raise click.ClickException(f"Not found: {path}")


# ---------------------------------------------------------------------------
# touch / mkdir
# ---------------------------------------------------------------------------

@main.command()
@click.argument("path")
@_message_option
@click.pass_context
def touch(ctx, path, message):
    """Create an empty file."""
    path = _normalize_repo_path(path)

    async def _touch():
        async with _open_gateway(ctx) as gateway:
            mutator = OptimisticMutator(TreeMirror(gateway), gateway)
            return await mutator.create_file(parent_directory(path), leaf_name(path), message)

    created = _check(_run(_touch()))
    _status(ctx, f"Created {created}")


@main.command()
@click.argument("path")
@_message_option
@click.pass_context
def mkdir(ctx, path, message):
    """Create a folder (as PATH/.gitkeep)."""
    path = _normalize_repo_path(path)

    async def _mkdir():
        async with _open_gateway(ctx) as gateway:
            mutator = OptimisticMutator(TreeMirror(gateway), gateway)
            return await mutator.create_folder(parent_directory(path), leaf_name(path), message)

    created = _check(_run(_mkdir()))
    _status(ctx, f"Created folder {created}")


# ---------------------------------------------------------------------------
# rm / mv
# ---------------------------------------------------------------------------

@main.command()
@click.argument("path")
@_message_option
@click.pass_context
def rm(ctx, path, message):
    """Delete a file, or a folder holding nothing but .gitkeep."""
    path = _normalize_repo_path(path)

    async def _rm():
        async with _open_gateway(ctx) as gateway:
            entry = await _find_entry(gateway, path)
            mutator = OptimisticMutator(TreeMirror(gateway), gateway)
            return await mutator.delete_item(entry, message)

    _check(_run(_rm()))
    _status(ctx, f"Deleted {path}")


@main.command()
@click.argument("path")
@click.argument("new_name")
@click.pass_context
def mv(ctx, path, new_name):
    """Rename a file within its folder.

    \b
    The rename is a delete followed by a create.  If the create fails,
    the file exists under neither name; the error says which step failed.
    """
    path = _normalize_repo_path(path)

    async def _mv():
        async with _open_gateway(ctx) as gateway:
            entry = await _find_entry(gateway, path)
            mutator = OptimisticMutator(TreeMirror(gateway), gateway)
            return await mutator.rename_file(entry, new_name)

    renamed = _check(_run(_mv()))
    _status(ctx, f"Renamed {path} to {renamed}")


# ---------------------------------------------------------------------------
# write
# ---------------------------------------------------------------------------

@main.command()
@click.argument("path")
@click.argument("source", type=click.File("rb"), default="-")
@click.option("--revision", default=None,
              help="Expected current revision (default: the one just read).")
@_message_option
@click.pass_context
def write(ctx, path, source, revision, message):
    """Save SOURCE (default: stdin) to PATH.

    The save only succeeds if PATH is still at --revision; a mismatch
    exits with status 3 and nothing is written.
    """
    path = _normalize_repo_path(path)
    data = source.read()
    message = message or f"Update {path}"

    async def _write():
        async with _open_gateway(ctx) as gateway:
            prior = revision
            if prior is None:
                prior = await gateway.latest_revision(path)
            reconciler = CommitReconciler(gateway, StagingBuffer())
            return await reconciler.save_file(path, data, prior, message)

    new_revision = _check(_run(_write()))
    _status(ctx, f"Saved {path} at {new_revision}")


# ---------------------------------------------------------------------------
# upload
# ---------------------------------------------------------------------------

@main.command()
@click.argument("files", nargs=-1, required=True,
                type=click.Path(exists=True, dir_okay=False))
@click.option("--to", "target", default="", help="Folder to upload into (default: root).")
@_message_option
@click.pass_context
def upload(ctx, files, target, message):
    """Upload local FILES in a single commit.

    Without -m the message is suggested from the diff when a suggestion
    service is configured (NOTESTORE_SUGGEST_URL), else "Update files".
    """
    try:
        target = normalize_dir(target[1:] if target.startswith(":") else target)
    except ValueError as exc:
        raise click.ClickException(f"Invalid repo path: {exc}")
    settings = _settings(ctx)

    async def _upload():
        async with _open_gateway(ctx) as gateway:
            staging = StagingBuffer()
            dropped = await staging.drop([LocalFile(f) for f in files], target)
            for name, reason in dropped.failed:
                click.echo(f"Could not read {name}: {reason}", err=True)
            for path in dropped.rejected:
                click.echo(f"Skipped {path}: a containing path is already staged", err=True)
            suggester = (
                HttpMessageSuggester(settings.suggest_url, timeout=settings.timeout)
                if settings.suggest_url else None
            )
            reconciler = CommitReconciler(gateway, staging, suggester=suggester,
                                          suggest_timeout=settings.timeout)
            commit_message = message
            if commit_message is None:
                proposal = _check(await reconciler.prepare())
                commit_message = proposal.message
            return await reconciler.commit_staged(commit_message)

    commit = _check(_run(_upload()))
    click.echo(str(commit))
