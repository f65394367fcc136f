"""The remote repository contract shared by every transport."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from enum import Enum

import structlog

from ..entries import BlobContent, CommitRef, RevisionInfo, StagedFile, TreeEntry, sort_entries
from ..exceptions import ConflictError, GatewayError, NotConnectedError, NotFoundError
from ..outcome import Outcome
from ..tree import normalize_dir, normalize_path

logger = structlog.get_logger(__name__)

IdentityProvider = Callable[[], "str | None"]


class CommitStep(str, Enum):
    """Steps of the multi-file commit, in the order they run."""
    RESOLVE_HEAD = "resolve-head"
    RESOLVE_TREE = "resolve-tree"
    BUILD_TREE = "build-tree"
    CREATE_COMMIT = "create-commit"
    UPDATE_REF = "update-ref"

    def __str__(self) -> str:          # noqa: D105
        return self.value


class RemoteGateway(ABC):
    """Asynchronous contract over a remote git repository.

    Subclasses implement the underscored primitives and raise exceptions
    from :mod:`notestore.exceptions`.  The public methods classify those
    exceptions exactly once:

    * missing directories list as ``[]`` and missing files read as ``None``;
    * writes, deletes and commits return an :class:`Outcome` whose kind keeps
      a revision conflict apart from any other failure.

    Args:
        identity: Authentication collaborator.  Called before every remote
            call; ``None`` means nobody is signed in and nothing is sent.
    """

    def __init__(self, *, identity: IdentityProvider | None = None):
        self._identity = identity

    def _require_identity(self) -> None:
        if self._identity is not None and self._identity() is None:
            raise NotConnectedError("GitHub connection error: not authenticated")

    # --- Reads ---

    async def list_directory(self, path: str = "") -> list[TreeEntry]:
        """List the immediate children of *path* in listing order.

        A path that does not exist and an empty directory both list as
        ``[]``.

        Raises:
            GatewayError: On any other transport failure.
        """
        path = normalize_dir(path)
        self._require_identity()
        logger.debug("listing directory", path=path)
        try:
            entries = await self._list(path)
        except NotFoundError:
            logger.info("directory missing or empty", path=path)
            return []
        return sort_entries(entries)

    async def read_blob(self, path: str, revision: str | None = None) -> BlobContent | None:
        """Read *path* at *revision* (default: branch head).

        Returns ``None`` when the path does not exist at that revision.
        """
        path = normalize_path(path)
        self._require_identity()
        logger.debug("reading blob", path=path, revision=revision)
        try:
            return await self._read(path, revision)
        except NotFoundError:
            logger.info("blob not found", path=path, revision=revision)
            return None

    async def latest_revision(self, path: str) -> str | None:
        """Return the current blob revision of *path*, or ``None`` if absent."""
        blob = await self.read_blob(path)
        return blob.revision if blob is not None else None

    async def list_revisions(self, path: str) -> list[RevisionInfo]:
        """Commits that touched *path*, newest first (``[]`` if none)."""
        path = normalize_path(path)
        self._require_identity()
        try:
            return await self._history(path)
        except NotFoundError:
            logger.info("no history for path", path=path)
            return []

    # --- Single-file writes ---

    async def write_blob(
        self,
        path: str,
        content: str | bytes,
        message: str,
        precondition: str | None = None,
    ) -> Outcome:
        """Create or update *path* in its own commit.

        With *precondition* the write only succeeds if the remote's current
        revision equals it.  Without one the path must not exist yet.

        Returns:
            ``success(new_revision)``, ``conflict`` or ``failure``.
        """
        try:
            path = normalize_path(path)
        except ValueError as exc:
            return Outcome.invalid(str(exc))
        data = content.encode("utf-8") if isinstance(content, str) else content
        try:
            self._require_identity()
            logger.debug("writing blob", path=path, precondition=precondition)
            revision = await self._put(path, data, message, precondition)
        except ConflictError as exc:
            logger.warning("write conflict", path=path, precondition=precondition, error=str(exc))
            return Outcome.conflict(str(exc))
        except GatewayError as exc:
            logger.error("write failed", path=path, error=str(exc))
            return Outcome.failure(str(exc))
        logger.info("blob written", path=path, revision=revision)
        return Outcome.success(revision)

    async def delete_blob(self, path: str, revision: str, message: str | None = None) -> Outcome:
        """Delete *path*, which must currently be at *revision*."""
        try:
            path = normalize_path(path)
        except ValueError as exc:
            return Outcome.invalid(str(exc))
        if not revision:
            return Outcome.invalid(f"A revision is required to delete {path}")
        try:
            self._require_identity()
            logger.debug("deleting blob", path=path, revision=revision)
            await self._delete(path, revision, message or f"Delete {path}")
        except ConflictError as exc:
            logger.warning("delete conflict", path=path, revision=revision, error=str(exc))
            return Outcome.conflict(str(exc))
        except NotFoundError:
            return Outcome.failure("File not found. It might have been already deleted.")
        except GatewayError as exc:
            logger.error("delete failed", path=path, error=str(exc))
            return Outcome.failure(str(exc))
        logger.info("blob deleted", path=path)
        return Outcome.success()

    # --- Multi-file commit ---

    async def commit_files(self, files: Sequence[StagedFile], message: str) -> Outcome:
        """Commit every file in *files* as one commit on the branch.

        The steps run strictly in order, each feeding the next; the branch
        ref only moves in the last one, so a failure anywhere earlier leaves
        the branch untouched.  Objects created before a failure are not
        cleaned up.

        Returns:
            ``success(CommitRef)``, or ``invalid``/``conflict``/``failure``
            with :attr:`Outcome.step` naming the failed :class:`CommitStep`.
        """
        if not files:
            return Outcome.invalid("No files provided to commit.")
        if not message.strip():
            return Outcome.invalid("Commit message cannot be empty.")
        try:
            self._require_identity()
        except NotConnectedError as exc:
            return Outcome.failure(str(exc))

        step = CommitStep.RESOLVE_HEAD
        try:
            head = await self._resolve_head()
            logger.debug("resolved head", head=head)

            step = CommitStep.RESOLVE_TREE
            base_tree = await self._commit_tree(head)

            step = CommitStep.BUILD_TREE
            blob_ids = await asyncio.gather(
                *(self._create_blob(f.content.encoded(), str(f.content.kind)) for f in files)
            )
            tree = await self._create_tree(
                base_tree, [(f.path, blob_id) for f, blob_id in zip(files, blob_ids)]
            )

            step = CommitStep.CREATE_COMMIT
            commit = await self._create_commit(message, tree, [head])

            step = CommitStep.UPDATE_REF
            await self._update_ref(commit.sha, head)
        except ConflictError as exc:
            logger.warning("commit conflict", step=str(step), error=str(exc))
            return Outcome.conflict(str(exc), step=str(step))
        except GatewayError as exc:
            logger.error("commit failed", step=str(step), error=str(exc))
            return Outcome.failure(str(exc), step=str(step))
        logger.info("commit created", sha=commit.sha, files=len(files))
        return Outcome.success(commit)

    # --- Transport primitives ---

    @abstractmethod
    async def _list(self, path: str) -> list[TreeEntry]: ...

    @abstractmethod
    async def _read(self, path: str, revision: str | None) -> BlobContent: ...

    @abstractmethod
    async def _put(self, path: str, data: bytes, message: str, precondition: str | None) -> str: ...

    @abstractmethod
    async def _delete(self, path: str, revision: str, message: str) -> None: ...

    @abstractmethod
    async def _history(self, path: str) -> list[RevisionInfo]: ...

    @abstractmethod
    async def _resolve_head(self) -> str: ...

    @abstractmethod
    async def _commit_tree(self, commit_sha: str) -> str: ...

    @abstractmethod
    async def _create_blob(self, content: str, encoding: str) -> str: ...

    @abstractmethod
    async def _create_tree(self, base_tree: str, items: list[tuple[str, str]]) -> str: ...

    @abstractmethod
    async def _create_commit(self, message: str, tree: str, parents: list[str]) -> CommitRef: ...

    @abstractmethod
    async def _update_ref(self, commit_sha: str, expected_head: str) -> None: ...

    async def aclose(self) -> None:
        """Release transport resources."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False
