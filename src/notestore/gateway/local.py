"""Gateway over a bare git repository on the local filesystem."""

from __future__ import annotations

import asyncio
import base64
import stat
import time
from datetime import datetime, timezone
from pathlib import Path

from dulwich.objects import Commit
from dulwich.repo import Repo

from ..entries import BlobContent, CommitRef, EntryType, RevisionInfo, TreeEntry
from ..exceptions import ConflictError, GatewayError, NotFoundError
from ..tree import create_blob, entry_at_path, join_path, list_tree, rebuild_tree
from ._base import IdentityProvider, RemoteGateway

HISTORY_LIMIT = 50


class LocalGateway(RemoteGateway):
    """A :class:`RemoteGateway` backed by a bare repository on disk.

    Revisions are blob SHAs for files and commit SHAs for history, the same
    as on GitHub.  Every write commits to *branch*, advancing the ref with a
    compare-and-swap so a concurrent writer in another process surfaces as a
    conflict instead of a lost update.

    Dulwich calls are synchronous; each primitive yields to the event loop
    once before it touches the repository.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        branch: str = "main",
        create: bool = True,
        author: str = "notestore",
        email: str = "notestore@localhost",
        identity: IdentityProvider | None = None,
    ):
        super().__init__(identity=identity)
        path = Path(path)
        self._ref = f"refs/heads/{branch}".encode()
        self._author = author
        self._email = email
        self.branch = branch

        if path.exists():
            self._repo = Repo(str(path))
        elif not create:
            raise FileNotFoundError(f"Repository not found: {path}")
        else:
            self._repo = Repo.init_bare(str(path), mkdir=True)
            tree_id = rebuild_tree(self._repo.object_store, None, {}, set())
            commit_id = self._commit(tree_id, [], f"Initialize {branch}")
            self._repo.refs.set_symbolic_ref(b"HEAD", self._ref)
            self._repo.refs.add_if_new(self._ref, commit_id)

    def __repr__(self) -> str:
        return f"LocalGateway({self._repo.path!r}, branch={self.branch!r})"

    @property
    def path(self) -> str:
        return self._repo.path

    # --- Repository helpers ---

    @property
    def _store(self):
        return self._repo.object_store

    def _head(self) -> bytes:
        try:
            return self._repo.refs[self._ref]
        except KeyError:
            raise NotFoundError(f"Branch not found: {self.branch}") from None

    def _tree_of(self, commit_id: bytes) -> bytes:
        try:
            commit = self._store[commit_id]
        except KeyError:
            raise NotFoundError(f"Revision not found: {commit_id.decode()}") from None
        if not isinstance(commit, Commit):
            raise NotFoundError(f"Not a commit: {commit_id.decode()}")
        return commit.tree

    def _commit(self, tree_id: bytes, parents: list[bytes], message: str) -> bytes:
        identity = f"{self._author} <{self._email}>".encode()
        c = Commit()
        c.tree = tree_id
        c.parents = parents
        c.author = c.committer = identity
        c.author_time = c.commit_time = int(time.time())
        c.author_timezone = c.commit_timezone = 0
        msg = message.encode()
        if not msg.endswith(b"\n"):
            msg += b"\n"
        c.message = msg
        c.encoding = b"UTF-8"
        self._store.add_object(c)
        return c.id

    def _advance(self, old: bytes, new: bytes) -> None:
        if not self._repo.refs.set_if_equals(self._ref, old, new):
            raise ConflictError(
                f"Branch {self.branch} moved during the update; refresh and retry"
            )

    def _commit_change(self, head: bytes, writes: dict[str, bytes], removes: set[str], message: str) -> None:
        tree_id = rebuild_tree(self._store, self._tree_of(head), writes, removes)
        self._advance(head, self._commit(tree_id, [head], message))

    # --- Primitives ---

    async def _list(self, path: str) -> list[TreeEntry]:
        await asyncio.sleep(0)
        items = list_tree(self._store, self._tree_of(self._head()), path)
        if items is None:
            raise NotFoundError(f"Directory not found: {path}")
        entries = []
        for name, mode, sha in items:
            if stat.S_ISDIR(mode):
                entries.append(TreeEntry(EntryType.DIRECTORY, name, join_path(path, name)))
            else:
                entries.append(TreeEntry(EntryType.FILE, name, join_path(path, name), sha.decode()))
        return entries

    async def _read(self, path: str, revision: str | None) -> BlobContent:
        await asyncio.sleep(0)
        commit_id = revision.encode() if revision else self._head()
        entry = entry_at_path(self._store, self._tree_of(commit_id), path)
        if entry is None or stat.S_ISDIR(entry[0]):
            raise NotFoundError(f"File not found: {path}")
        return BlobContent(self._store[entry[1]].as_raw_string(), entry[1].decode())

    async def _put(self, path: str, data: bytes, message: str, precondition: str | None) -> str:
        await asyncio.sleep(0)
        head = self._head()
        entry = entry_at_path(self._store, self._tree_of(head), path)
        if entry is not None and stat.S_ISDIR(entry[0]):
            raise ConflictError(f"{path} is a directory")
        current = entry[1].decode() if entry is not None else None
        if precondition is None and current is not None:
            raise ConflictError(f"{path} already exists and no sha was supplied")
        if precondition is not None and precondition != current:
            raise ConflictError(f"{path} does not match {precondition}")
        blob_id = create_blob(self._store, data)
        try:
            self._commit_change(head, {path: blob_id}, set(), message)
        except (KeyError, ValueError) as exc:
            # A parent segment is a file
            raise GatewayError(f"Cannot write {path}: {exc}") from exc
        return blob_id.decode()

    async def _delete(self, path: str, revision: str, message: str) -> None:
        await asyncio.sleep(0)
        head = self._head()
        entry = entry_at_path(self._store, self._tree_of(head), path)
        if entry is None or stat.S_ISDIR(entry[0]):
            raise NotFoundError(f"File not found: {path}")
        if entry[1].decode() != revision:
            raise ConflictError(f"{path} does not match {revision}")
        self._commit_change(head, {}, {path}, message)

    async def _history(self, path: str) -> list[RevisionInfo]:
        await asyncio.sleep(0)
        revisions: list[RevisionInfo] = []
        commit_id: bytes | None = self._head()
        while commit_id is not None and len(revisions) < HISTORY_LIMIT:
            commit = self._store[commit_id]
            parent_id = commit.parents[0] if commit.parents else None
            current = entry_at_path(self._store, commit.tree, path)
            previous = (
                entry_at_path(self._store, self._store[parent_id].tree, path)
                if parent_id is not None else None
            )
            if current != previous:
                when = datetime.fromtimestamp(commit.commit_time, tz=timezone.utc)
                revisions.append(RevisionInfo(
                    revision=commit_id.decode(),
                    message=commit.message.decode("utf-8", errors="replace").strip(),
                    author=commit.author.decode("utf-8", errors="replace").split(" <")[0],
                    timestamp=when.isoformat(),
                ))
            commit_id = parent_id
        return revisions

    async def _resolve_head(self) -> str:
        await asyncio.sleep(0)
        return self._head().decode()

    async def _commit_tree(self, commit_sha: str) -> str:
        await asyncio.sleep(0)
        return self._tree_of(commit_sha.encode()).decode()

    async def _create_blob(self, content: str, encoding: str) -> str:
        await asyncio.sleep(0)
        data = base64.b64decode(content) if encoding == "base64" else content.encode("utf-8")
        return create_blob(self._store, data).decode()

    async def _create_tree(self, base_tree: str, items: list[tuple[str, str]]) -> str:
        await asyncio.sleep(0)
        writes = {path: blob_id.encode() for path, blob_id in items}
        try:
            return rebuild_tree(self._store, base_tree.encode(), writes, set()).decode()
        except (KeyError, ValueError) as exc:
            raise GatewayError(f"Cannot build tree: {exc}") from exc

    async def _create_commit(self, message: str, tree: str, parents: list[str]) -> CommitRef:
        await asyncio.sleep(0)
        sha = self._commit(tree.encode(), [p.encode() for p in parents], message)
        return CommitRef(sha.decode())

    async def _update_ref(self, commit_sha: str, expected_head: str) -> None:
        await asyncio.sleep(0)
        self._advance(expected_head.encode(), commit_sha.encode())
