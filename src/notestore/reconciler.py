"""Save paths from local state to the remote repository."""

from __future__ import annotations

import structlog

from .diffing import CommitProposal, MessageSuggester, prepare_commit
from .gateway import RemoteGateway
from .mirror import TreeMirror
from .outcome import Outcome
from .staging import StagingBuffer
from .tree import normalize_path, parent_directory

logger = structlog.get_logger(__name__)


class CommitReconciler:
    """Single-file saves and multi-file commits.

    A single-file save always carries the prior revision as its
    precondition and never retries a conflict.  A multi-file commit takes
    the whole staging buffer; its entries are unstaged only once the
    commit is on the branch.

    Args:
        gateway: The remote.
        staging: Buffer feeding :meth:`commit_staged`.
        mirror: Mirror to update with confirmed revisions (optional).
        suggester: Commit-message service used by :meth:`prepare`.
        suggest_timeout: Seconds to wait for a suggestion.
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        staging: StagingBuffer,
        mirror: TreeMirror | None = None,
        *,
        suggester: MessageSuggester | None = None,
        suggest_timeout: float | None = 30.0,
    ):
        self.gateway = gateway
        self.staging = staging
        self.mirror = mirror
        self.suggester = suggester
        self.suggest_timeout = suggest_timeout
        self.committing = False
        self.preparing = False

    async def save_file(
        self,
        path: str,
        content: str | bytes,
        prior_revision: str | None,
        message: str,
    ) -> Outcome:
        """Write *content* to *path* if the remote is still at *prior_revision*.

        Returns:
            ``success(revision)``; ``conflict`` when the remote moved on (the
            caller's content is untouched and nothing is retried); ``invalid``
            or ``failure`` otherwise.
        """
        if not message or not message.strip():
            return Outcome.invalid("Commit message cannot be empty.")
        try:
            path = normalize_path(path)
        except ValueError as exc:
            return Outcome.invalid(str(exc))

        result = await self.gateway.write_blob(path, content, message, precondition=prior_revision)
        if result.is_conflict:
            logger.warning("save conflict", path=path, prior_revision=prior_revision)
            return result
        if not result.ok:
            return result

        if self.mirror is not None:
            selection = self.mirror.selection
            if selection is not None and selection.path == path:
                selection.revision = result.value
                selection.external_change = False
                selection.is_new = False
            self.mirror.update_revision(path, result.value)
        logger.info("file saved", path=path, revision=result.value)
        return result

    async def prepare(self) -> Outcome:
        """Diff the staged files and get a suggested commit message.

        Returns:
            ``success(CommitProposal)``, or ``invalid`` when nothing is
            staged or a commit or preparation is already running.
        """
        if not len(self.staging):
            return Outcome.invalid("No files staged.")
        if self.committing or self.preparing:
            return Outcome.invalid("A commit is already in progress.")
        self.preparing = True
        try:
            proposal: CommitProposal = await prepare_commit(
                self.gateway, self.staging.files(), self.suggester, self.suggest_timeout
            )
        finally:
            self.preparing = False
        return Outcome.success(proposal)

    async def commit_staged(self, message: str) -> Outcome:
        """Commit every staged file as one commit.

        Returns:
            ``success(CommitRef)`` with the committed entries unstaged, or
            the failed outcome (tagged with its step) with the buffer intact.
        """
        if not message or not message.strip():
            return Outcome.invalid("Commit message cannot be empty.")
        if not len(self.staging):
            return Outcome.invalid("No files staged.")
        if self.committing:
            return Outcome.invalid("A commit is already in progress.")

        files = self.staging.files()
        self.committing = True
        try:
            result = await self.gateway.commit_files(files, message.strip())
        finally:
            self.committing = False

        if not result.ok:
            logger.warning("commit failed, staged files kept", step=result.step, reason=result.reason)
            return result

        # Entries staged or replaced while the commit ran stay for the next one
        for f in files:
            if self.staging.get(f.path) is f.content:
                self.staging.unstage(f.path)
        logger.info("staged files committed", commit=str(result.value), files=len(files))
        await self._refresh_after_commit([f.path for f in files])
        return result

    def _stale_listing(self, path: str) -> str | None:
        """Nearest loaded listing that committing *path* changed, if any."""
        child, directory = path, parent_directory(path)
        while not self.mirror.is_loaded(directory):
            if not directory:
                return None
            child, directory = directory, parent_directory(directory)
        if child == path or self.mirror.find(child) is None:
            return directory
        return None

    async def _refresh_after_commit(self, paths: list[str]) -> None:
        if self.mirror is None:
            return
        directories = {self._stale_listing(p) for p in paths} - {None}
        for directory in sorted(directories):
            # A root refresh drops the other listings
            if not self.mirror.is_loaded(directory):
                continue
            refreshed = await self.mirror.refresh(directory)
            if not refreshed.ok:
                logger.warning("mirror refresh after commit failed", directory=directory, reason=refreshed.reason)
