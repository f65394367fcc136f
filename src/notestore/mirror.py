"""Lazily loaded, cached view of the remote directory tree."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable

import structlog

from .entries import Selection, TreeEntry, sort_entries
from .exceptions import GatewayError
from .gateway import RemoteGateway
from .outcome import Outcome
from .tree import is_nested_under, normalize_dir, normalize_path, parent_directory

logger = structlog.get_logger(__name__)


class TreeMirror:
    """Directory cache, expansion state and selection for one repository.

    Listings are fetched on first expansion and kept until refreshed.  The
    root listing lives under ``""``.  All state is owned here; the
    mutation layer changes listings only through :meth:`begin`.

    Results of a fetch that finishes after the root was refreshed are
    dropped rather than applied to the new tree.
    """

    def __init__(self, gateway: RemoteGateway):
        self._gateway = gateway
        self._cache: dict[str, list[TreeEntry]] = {}
        self.expanded: set[str] = set()
        self.loading: set[str] = set()
        self.selection: Selection | None = None
        self._epoch = 0

    def __repr__(self) -> str:
        return f"TreeMirror(loaded={sorted(self._cache)!r}, expanded={sorted(self.expanded)!r})"

    # --- Queries ---

    def children(self, path: str = "") -> list[TreeEntry] | None:
        """Cached listing of *path*, or ``None`` if it has not been loaded."""
        bucket = self._cache.get(normalize_dir(path))
        return list(bucket) if bucket is not None else None

    def is_loaded(self, path: str = "") -> bool:
        return normalize_dir(path) in self._cache

    def is_expanded(self, path: str) -> bool:
        return normalize_dir(path) in self.expanded

    def loaded_paths(self) -> list[str]:
        return sorted(self._cache)

    def find(self, path: str) -> TreeEntry | None:
        """Look *path* up in its parent's cached listing."""
        path = normalize_path(path)
        for entry in self._cache.get(parent_directory(path), ()):
            if entry.path == path:
                return entry
        return None

    # --- Loading ---

    async def _fetch(self, path: str) -> list[TreeEntry]:
        return await self._gateway.list_directory(path)

    async def load_root(self) -> Outcome:
        """Load the root listing (same as ``refresh("")``)."""
        return await self.refresh("")

    async def expand(self, path: str) -> Outcome:
        """Toggle *path* open or closed, fetching it on first open.

        A call while a fetch for *path* is in flight does nothing.  A failed
        fetch collapses *path* again and is returned as a failure.

        Returns:
            ``success(True)`` when *path* is now expanded, ``success(False)``
            when collapsed.
        """
        path = normalize_dir(path)
        if path in self.loading:
            logger.debug("expand ignored, already loading", path=path)
            return Outcome.success(True)
        if path in self.expanded:
            self.expanded.discard(path)
            return Outcome.success(False)

        self.expanded.add(path)
        if path in self._cache:
            return Outcome.success(True)

        epoch = self._epoch
        self.loading.add(path)
        try:
            entries = await self._fetch(path)
        except GatewayError as exc:
            logger.warning("failed to load directory", path=path, error=str(exc))
            if epoch == self._epoch:
                self.expanded.discard(path)
            return Outcome.failure(f"Could not load content for {path!r}. {exc}")
        finally:
            self.loading.discard(path)

        if epoch != self._epoch:
            logger.debug("discarding stale listing", path=path)
            return Outcome.success(False)
        self._cache[path] = entries
        return Outcome.success(True)

    async def refresh(self, path: str = "") -> Outcome:
        """Re-fetch *path* and replace its cached listing.

        Refreshing the root drops every cached listing and collapses every
        directory once the new root listing has arrived.  On failure the
        cache is left as it was.

        Returns:
            ``success(entries)`` or ``failure``.
        """
        path = normalize_dir(path)
        epoch = self._epoch
        try:
            entries = await self._fetch(path)
        except GatewayError as exc:
            logger.warning("failed to refresh directory", path=path, error=str(exc))
            return Outcome.failure(f"Could not refresh {path or '/'!r}. {exc}")
        if epoch != self._epoch:
            logger.debug("discarding stale listing", path=path)
            return Outcome.success(entries)
        if not path:
            self._epoch += 1
            self._cache.clear()
            self.expanded.clear()
        self._cache[path] = entries
        logger.debug("directory refreshed", path=path, entries=len(entries))
        return Outcome.success(entries)

    def forget(self, path: str) -> None:
        """Drop cached listings and expansion for *path* and everything below."""
        path = normalize_dir(path)
        for key in [k for k in self._cache if k == path or is_nested_under(k, path)]:
            del self._cache[key]
        self.expanded = {p for p in self.expanded if p != path and not is_nested_under(p, path)}

    def update_revision(self, path: str, revision: str | None) -> None:
        """Record a confirmed blob revision on a cached entry."""
        directory = parent_directory(path)
        bucket = self._cache.get(directory)
        if bucket is None:
            return
        self._cache[directory] = [
            e.with_revision(revision) if e.path == path else e for e in bucket
        ]

    # --- Selection ---

    def select(self, path: str, *, is_new: bool = False, revision: str | None = None) -> Selection:
        self.selection = Selection(normalize_path(path), is_new=is_new, revision=revision)
        return self.selection

    def clear_selection(self) -> None:
        self.selection = None

    def is_selected(self, path: str) -> bool:
        return self.selection is not None and self.selection.path == path

    # --- Optimistic updates ---

    def begin(self, directory: str) -> MirrorTransaction:
        """Snapshot *directory*'s listing and the selection for a speculative change."""
        return MirrorTransaction(self, normalize_dir(directory))


class MirrorTransaction:
    """Snapshot of one cached listing, with apply and rollback.

    Rollback restores the snapshot verbatim.  A transaction whose mirror was
    refreshed at the root in the meantime rolls back nothing, since the
    listing it captured no longer exists.
    """

    def __init__(self, mirror: TreeMirror, directory: str):
        self._mirror = mirror
        self.directory = directory
        bucket = mirror._cache.get(directory)
        self._snapshot = list(bucket) if bucket is not None else None
        self._selection = (
            dataclasses.replace(mirror.selection) if mirror.selection is not None else None
        )
        self._applied_selection: Selection | None = None
        self._epoch = mirror._epoch
        self.closed = False

    @property
    def is_stale(self) -> bool:
        return self._epoch != self._mirror._epoch

    def apply(self, change: Callable[[list[TreeEntry]], list[TreeEntry]]) -> None:
        """Replace the listing with ``change(listing)``, re-sorted.

        Does nothing when the listing is not loaded.
        """
        bucket = self._mirror._cache.get(self.directory)
        if bucket is None or self.is_stale:
            return
        self._mirror._cache[self.directory] = sort_entries(change(list(bucket)))

    def select(self, selection: Selection | None) -> None:
        """Change the selection as part of this transaction."""
        self._mirror.selection = selection
        self._applied_selection = selection

    def commit(self) -> None:
        self.closed = True

    def rollback(self) -> None:
        self.closed = True
        if self.is_stale:
            logger.debug("skipping rollback of stale listing", directory=self.directory)
            return
        if self._snapshot is not None:
            self._mirror._cache[self.directory] = list(self._snapshot)
        if self._applied_selection is not None and self._mirror.selection is self._applied_selection:
            self._mirror.selection = self._selection
