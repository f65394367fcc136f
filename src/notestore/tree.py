"""Repository paths and low-level tree manipulation.

Path helpers are shared by every layer.  The tree helpers rebuild and
walk dulwich tree objects for :class:`~notestore.gateway.LocalGateway`.
"""

from __future__ import annotations

import os
import stat
from collections import defaultdict
from typing import TYPE_CHECKING

from dulwich.objects import Blob, Tree

if TYPE_CHECKING:
    from dulwich.object_store import BaseObjectStore

GIT_FILEMODE_TREE = 0o040000
GIT_FILEMODE_BLOB = 0o100644

PLACEHOLDER_NAME = ".gitkeep"


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

def is_root_path(path: str | os.PathLike[str] | None) -> bool:
    """Return True if path represents the root (None, empty or only slashes)."""
    if path is None:
        return True
    return os.fspath(path).replace("\\", "/").strip("/") == ""


def normalize_path(path: str | os.PathLike[str]) -> str:
    """Normalize a path: strip leading/trailing slashes, reject bad segments."""
    path = os.fspath(path).replace("\\", "/").strip("/")
    if not path:
        raise ValueError("Path must not be empty")
    segments = path.split("/")
    for seg in segments:
        if not seg:
            raise ValueError(f"Empty segment in path: {path!r}")
        if seg in (".", ".."):
            raise ValueError(f"Invalid path segment: {seg!r}")
    return "/".join(segments)


def normalize_dir(path: str | os.PathLike[str] | None) -> str:
    """Like :func:`normalize_path` but maps the root to ``""``."""
    if is_root_path(path):
        return ""
    return normalize_path(path)


def validate_name(name: str) -> str:
    """Check that *name* is a single path segment."""
    if not name or not name.strip():
        raise ValueError("Name must not be empty")
    if "/" in name or "\\" in name:
        raise ValueError(f"Name must not contain a path separator: {name!r}")
    if name in (".", ".."):
        raise ValueError(f"Invalid name: {name!r}")
    return name


def join_path(directory: str, name: str) -> str:
    return f"{directory}/{name}" if directory else name


def parent_directory(path: str) -> str:
    """Return the parent of *path* (``""`` for top-level entries)."""
    head, sep, _ = path.rpartition("/")
    return head if sep else ""


def leaf_name(path: str) -> str:
    return path.rpartition("/")[2]


def is_nested_under(path: str, ancestor: str) -> bool:
    """True if *path* lies strictly below *ancestor* at a ``/`` boundary."""
    return path.startswith(ancestor + "/")


def drop_target_path(target_folder: str, filename: str) -> str:
    """Repository path for a file named *filename* dropped onto *target_folder*."""
    rel = f"{target_folder}/{filename}" if target_folder else filename
    return rel.replace("\\", "/").lstrip("/")


# ---------------------------------------------------------------------------
# Trees
# ---------------------------------------------------------------------------

def rebuild_tree(
    store: BaseObjectStore,
    base_tree_id: bytes | None,
    writes: dict[str, bytes],
    removes: set[str],
) -> bytes:
    """Rebuild a tree with writes and removes applied.

    Only the ancestor chain from changed leaves to root is rebuilt.
    Sibling subtrees are shared by hash reference.  Directories left
    without entries are pruned, so a tree can never hold an empty
    directory.

    Args:
        store: The dulwich object store.
        base_tree_id: SHA of the existing tree (or None for empty).
        writes: Mapping of normalized path → blob SHA.
        removes: Set of normalized paths to remove.

    Returns:
        SHA of the new root tree.
    """
    sub_writes: dict[str, dict[str, bytes]] = defaultdict(dict)
    leaf_writes: dict[str, bytes] = {}
    sub_removes: dict[str, set[str]] = defaultdict(set)
    leaf_removes: set[str] = set()

    for path, blob_id in writes.items():
        first, sep, rest = path.partition("/")
        if sep:
            sub_writes[first][rest] = blob_id
        else:
            leaf_writes[first] = blob_id

    for path in removes:
        first, sep, rest = path.partition("/")
        if sep:
            sub_removes[first].add(rest)
        else:
            leaf_removes.add(first)

    entries: dict[bytes, tuple[int, bytes]] = {}
    if base_tree_id is not None:
        for item in store[base_tree_id].iteritems():
            entries[item.path] = (item.mode, item.sha)

    for name, blob_id in leaf_writes.items():
        entries[name.encode()] = (GIT_FILEMODE_BLOB, blob_id)

    # Missing leaves are ignored; callers check existence
    for name in leaf_removes:
        entries.pop(name.encode(), None)

    for subdir in set(sub_writes) | set(sub_removes):
        key = subdir.encode()
        existing = entries.get(key)
        if existing and not stat.S_ISDIR(existing[0]):
            if subdir in sub_writes:
                raise ValueError(f"{subdir} is a file, not a directory")
            continue
        existing_id = existing[1] if existing else None
        new_id = rebuild_tree(
            store,
            existing_id,
            sub_writes.get(subdir, {}),
            sub_removes.get(subdir, set()),
        )
        if len(store[new_id]) == 0:
            entries.pop(key, None)
        else:
            entries[key] = (GIT_FILEMODE_TREE, new_id)

    tree = Tree()
    for name, (mode, sha) in sorted(entries.items()):
        tree.add(name, mode, sha)
    store.add_object(tree)
    return tree.id


def create_blob(store: BaseObjectStore, data: bytes) -> bytes:
    blob = Blob.from_string(data)
    store.add_object(blob)
    return blob.id


def entry_at_path(
    store: BaseObjectStore, tree_id: bytes, path: str
) -> tuple[int, bytes] | None:
    """Return (mode, sha) of the entry at *path*, or None if missing."""
    tree = store[tree_id]
    segments = path.split("/")
    for i, seg in enumerate(segments):
        try:
            mode, sha = tree[seg.encode()]
        except KeyError:
            return None
        if i == len(segments) - 1:
            return (mode, sha)
        if not stat.S_ISDIR(mode):
            return None
        tree = store[sha]
    return None


def list_tree(
    store: BaseObjectStore, tree_id: bytes, path: str = ""
) -> list[tuple[str, int, bytes]] | None:
    """List ``(name, mode, sha)`` at *path*, or None if it is not a directory."""
    if path:
        entry = entry_at_path(store, tree_id, path)
        if entry is None or not stat.S_ISDIR(entry[0]):
            return None
        tree_id = entry[1]
    return [
        (item.path.decode(), item.mode, item.sha)
        for item in store[tree_id].iteritems()
    ]
