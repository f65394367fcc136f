"""Create, delete and rename with speculative mirror updates."""

from __future__ import annotations

import structlog

from .entries import EntryType, Selection, TreeEntry
from .exceptions import GatewayError
from .gateway import RemoteGateway
from .mirror import TreeMirror
from .outcome import Outcome
from .tree import (
    PLACEHOLDER_NAME,
    join_path,
    normalize_dir,
    parent_directory,
    validate_name,
)

logger = structlog.get_logger(__name__)

FOLDER_EXISTS_WARNING = "Folder might already exist (conflict creating .gitkeep)."


class RenameStep:
    READ = "read"
    DELETE = "delete"
    CREATE = "create"


class OptimisticMutator:
    """Apply tree mutations to the mirror first, then confirm them remotely.

    Every operation opens a :class:`~notestore.mirror.MirrorTransaction` on
    the affected listing.  A failed remote call rolls the listing (and the
    selection) back to the snapshot; a successful one keeps the change and
    records the revision the remote confirmed.
    """

    def __init__(self, mirror: TreeMirror, gateway: RemoteGateway):
        self.mirror = mirror
        self.gateway = gateway

    async def create_file(self, target_dir: str, name: str, message: str | None = None) -> Outcome:
        """Create an empty file *name* in *target_dir*.

        On success the new file becomes the selection with ``is_new`` set, so
        the editor starts from empty content without reading it.

        Returns:
            ``success(path)``, ``invalid``, ``conflict`` or ``failure``.
        """
        try:
            target_dir = normalize_dir(target_dir)
            validate_name(name)
        except ValueError as exc:
            return Outcome.invalid(str(exc))
        path = join_path(target_dir, name)
        speculative = TreeEntry(EntryType.FILE, name, path)

        tx = self.mirror.begin(target_dir)
        tx.apply(lambda entries: [e for e in entries if e.path != path] + [speculative])
        result = await self.gateway.write_blob(path, b"", message or f"Create {name}")
        if not result.ok:
            tx.rollback()
            logger.warning("create file failed", path=path, kind=str(result.kind), reason=result.reason)
            return result
        tx.commit()

        revision = result.value
        self.mirror.update_revision(path, revision)
        self.mirror.select(path, is_new=True, revision=revision)
        logger.info("file created", path=path)
        return Outcome.success(path)

    async def create_folder(self, target_dir: str, name: str, message: str | None = None) -> Outcome:
        """Create folder *name* in *target_dir* by writing its ``.gitkeep``.

        A conflict on the placeholder means the folder is already there and
        is returned as a success carrying a warning.
        """
        try:
            target_dir = normalize_dir(target_dir)
            validate_name(name)
        except ValueError as exc:
            return Outcome.invalid(str(exc))
        path = join_path(target_dir, name)
        speculative = TreeEntry(EntryType.DIRECTORY, name, path)

        tx = self.mirror.begin(target_dir)
        tx.apply(lambda entries: [e for e in entries if e.path != path] + [speculative])
        result = await self.gateway.write_blob(
            join_path(path, PLACEHOLDER_NAME), b"", message or f"Create folder {path}"
        )
        if result.is_conflict:
            tx.commit()
            logger.warning("placeholder already exists", path=path)
            return Outcome.success(path, warning=FOLDER_EXISTS_WARNING)
        if not result.ok:
            tx.rollback()
            logger.warning("create folder failed", path=path, kind=str(result.kind), reason=result.reason)
            return result
        tx.commit()
        logger.info("folder created", path=path)
        return Outcome.success(path)

    async def _resolve_children(self, path: str) -> list[TreeEntry]:
        cached = self.mirror.children(path)
        if cached is not None:
            return cached
        return await self.gateway.list_directory(path)

    async def delete_item(self, item: TreeEntry, message: str | None = None) -> Outcome:
        """Delete a file, or a folder that holds nothing but its placeholder.

        A folder with any other content is rejected as invalid before the
        mirror is touched.
        """
        directory = parent_directory(item.path)

        if item.is_dir:
            try:
                children = await self._resolve_children(item.path)
            except GatewayError as exc:
                return Outcome.failure(str(exc))
            placeholder = next((c for c in children if c.name == PLACEHOLDER_NAME), None)
            if children and not (len(children) == 1 and placeholder is not None):
                return Outcome.invalid("Cannot delete non-empty folder.")
            if placeholder is not None and not placeholder.revision:
                return Outcome.failure(f"Revision of {placeholder.path} is unknown; refresh and retry")
        elif not item.revision:
            return Outcome.invalid(f"Revision of {item.path} is unknown; refresh and retry")

        tx = self.mirror.begin(directory)
        tx.apply(lambda entries: [e for e in entries if e.path != item.path])

        if not item.is_dir:
            result = await self.gateway.delete_blob(item.path, item.revision, message)
        elif placeholder is not None:
            result = await self.gateway.delete_blob(
                placeholder.path, placeholder.revision, message or f"Delete folder {item.name}"
            )
        else:
            result = Outcome.success()

        if not result.ok:
            tx.rollback()
            logger.warning("delete failed", path=item.path, kind=str(result.kind), reason=result.reason)
            return result
        tx.commit()

        if item.is_dir:
            self.mirror.forget(item.path)
        if self.mirror.is_selected(item.path):
            self.mirror.clear_selection()
        logger.info("item deleted", path=item.path, type=str(item.type))
        return Outcome.success(item.path)

    async def rename_file(self, item: TreeEntry, new_name: str) -> Outcome:
        """Rename a file within its directory.

        The remote side is read, delete, create, one after another, and is
        not atomic: if the create fails after the delete went through, the
        file exists under neither name.  That failure is returned with
        ``step="create"``; the mirror is rolled back either way.

        Renaming to the current name is a no-op success.  A target name
        already taken in the directory is invalid and nothing is sent.
        """
        if item.is_dir:
            return Outcome.invalid("Only files can be renamed.")
        try:
            validate_name(new_name)
        except ValueError as exc:
            return Outcome.invalid(str(exc))
        if new_name == item.name:
            return Outcome.success(item.path)
        if not item.revision:
            return Outcome.invalid(f"Revision of {item.path} is unknown; refresh and retry")

        old_path = item.path
        directory = parent_directory(old_path)
        new_path = join_path(directory, new_name)

        try:
            siblings = await self._resolve_children(directory)
        except GatewayError as exc:
            return Outcome.failure(f"Could not list {directory or '/'!r}: {exc}", step=RenameStep.READ)
        if any(e.path == new_path for e in siblings):
            return Outcome.invalid(f"An item named {new_name!r} already exists.")

        tx = self.mirror.begin(directory)
        tx.apply(lambda entries: [
            e.renamed(new_name, new_path) if e.path == old_path else e for e in entries
        ])
        if self.mirror.is_selected(old_path):
            tx.select(Selection(new_path))

        try:
            original = await self.gateway.read_blob(old_path)
        except GatewayError as exc:
            tx.rollback()
            return Outcome.failure(f"Could not read original file: {exc}", step=RenameStep.READ)
        if original is None:
            tx.rollback()
            return Outcome.failure(
                f"Original file not found at path: {old_path}", step=RenameStep.READ
            )

        deleted = await self.gateway.delete_blob(
            old_path, item.revision, f"Rename {old_path} to {new_path} (delete step)"
        )
        if not deleted.ok:
            tx.rollback()
            return deleted.at_step(RenameStep.DELETE)

        created = await self.gateway.write_blob(
            new_path, original.data, f"Rename {old_path} to {new_path} (create step)"
        )
        if not created.ok:
            tx.rollback()
            logger.error(
                "rename left file under neither name",
                old_path=old_path,
                new_path=new_path,
                reason=created.reason,
            )
            return created.at_step(RenameStep.CREATE)
        tx.commit()

        self.mirror.update_revision(new_path, created.value)
        if self.mirror.is_selected(new_path):
            self.mirror.selection.revision = created.value
        logger.info("file renamed", old_path=old_path, new_path=new_path)
        return Outcome.success(new_path)
