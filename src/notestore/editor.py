"""Single-file editing: load, autosave drafts, detect external changes, save."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

import structlog

from .exceptions import GatewayError
from .gateway import RemoteGateway
from .mirror import TreeMirror
from .outcome import Outcome
from .reconciler import CommitReconciler

logger = structlog.get_logger(__name__)


class DraftStore(Protocol):
    """Unsent edits keyed by file path."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, content: str) -> None: ...


class MemoryDraftStore:
    def __init__(self):
        self._drafts: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._drafts.get(key)

    async def set(self, key: str, content: str) -> None:
        self._drafts[key] = content


class FileDraftStore:
    """Drafts stored one file per key under *directory*."""

    def __init__(self, directory: str | os.PathLike[str]):
        self.directory = Path(directory)

    def __repr__(self) -> str:
        return f"FileDraftStore({str(self.directory)!r})"

    def _path(self, key: str) -> Path:
        return self.directory / quote(key, safe="")

    async def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None

    async def set(self, key: str, content: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(self._path(key).write_text, content, encoding="utf-8")


class EditorSession:
    """Editor state for the mirror's current selection.

    Results of remote calls are applied only if the selection is still the
    one the call was made for.
    """

    def __init__(
        self,
        mirror: TreeMirror,
        gateway: RemoteGateway,
        reconciler: CommitReconciler,
        drafts: DraftStore | None = None,
    ):
        self.mirror = mirror
        self.gateway = gateway
        self.reconciler = reconciler
        self.drafts = drafts if drafts is not None else MemoryDraftStore()
        self.content: str | None = None

    @property
    def path(self) -> str | None:
        return self.mirror.selection.path if self.mirror.selection is not None else None

    async def open(self) -> Outcome:
        """Load the selected file.

        A newly created file starts from empty content without a remote read.
        """
        selection = self.mirror.selection
        if selection is None:
            self.content = None
            return Outcome.invalid("No file selected.")
        if selection.is_new:
            logger.debug("opening new file", path=selection.path)
            self.content = ""
            await self.drafts.set(selection.path, "")
            return Outcome.success("")
        return await self.reload()

    async def reload(self) -> Outcome:
        """Re-read the selected file from the remote."""
        selection = self.mirror.selection
        if selection is None:
            return Outcome.invalid("No file selected.")
        path = selection.path
        selection.external_change = False
        try:
            blob = await self.gateway.read_blob(path)
        except GatewayError as exc:
            logger.error("failed to load file content", path=path, error=str(exc))
            return Outcome.failure(str(exc))
        if self.mirror.selection is not selection:
            logger.debug("selection changed while loading, discarding", path=path)
            return Outcome.invalid("Selection changed while loading.")
        if blob is None:
            self.content = None
            return Outcome.failure(f"File not found on GitHub: {path}")
        selection.revision = blob.revision
        self.content = blob.text
        return Outcome.success(self.content)

    async def edit(self, content: str) -> None:
        """Record an edit and write it to the draft store."""
        path = self.path
        if path is None:
            return
        self.content = content
        await self.drafts.set(path, content)

    async def check_external_change(self) -> Outcome:
        """Compare the remote revision with the one loaded.

        Returns:
            ``success(True)`` when the file changed remotely (the selection's
            ``external_change`` flag is set too), ``success(False)`` if not or
            when there is nothing to compare.
        """
        selection = self.mirror.selection
        if selection is None or selection.is_new or not selection.revision:
            return Outcome.success(False)
        try:
            latest = await self.gateway.latest_revision(selection.path)
        except GatewayError as exc:
            logger.error("error checking latest revision", path=selection.path, error=str(exc))
            return Outcome.failure(str(exc))
        if self.mirror.selection is not selection:
            return Outcome.success(False)
        if latest and latest != selection.revision:
            logger.warning(
                "external change detected",
                path=selection.path,
                local=selection.revision,
                remote=latest,
            )
            selection.external_change = True
            return Outcome.success(True)
        return Outcome.success(False)

    async def save(self, message: str) -> Outcome:
        """Save the draft of the selected file with its revision as precondition."""
        selection = self.mirror.selection
        if selection is None:
            return Outcome.invalid("No file selected.")
        content = await self.drafts.get(selection.path)
        if content is None:
            return Outcome.failure("Could not retrieve content from local storage for saving.")
        return await self.reconciler.save_file(selection.path, content, selection.revision, message)
