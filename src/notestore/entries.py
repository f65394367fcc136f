"""Data structures shared by the mirror, staging buffer and gateways."""

from __future__ import annotations

import base64
import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Iterable


class EntryType(str, Enum):
    """Directory listing entry type.

    Members: ``FILE``, ``DIRECTORY``.
    """
    FILE = "file"
    DIRECTORY = "dir"

    def __str__(self) -> str:          # noqa: D105
        return self.value


@dataclass(frozen=True)
class TreeEntry:
    """One row of a directory listing.

    Attributes:
        type: :class:`EntryType` of the entry.
        name: Leaf name.
        path: Full repository-relative path.
        revision: Blob revision for files; ``None`` for directories and for
            entries inserted speculatively before the remote confirmed them.
    """
    type: EntryType
    name: str
    path: str
    revision: str | None = None

    @property
    def is_dir(self) -> bool:
        return self.type is EntryType.DIRECTORY

    def with_revision(self, revision: str | None) -> TreeEntry:
        return dataclasses.replace(self, revision=revision)

    def renamed(self, name: str, path: str) -> TreeEntry:
        return dataclasses.replace(self, name=name, path=path)


def entry_sort_key(entry: TreeEntry) -> tuple[int, str]:
    """Directories first, then by name."""
    return (0 if entry.is_dir else 1, entry.name)


def sort_entries(entries: Iterable[TreeEntry]) -> list[TreeEntry]:
    """Return *entries* as a new list in listing order."""
    return sorted(entries, key=entry_sort_key)


class ContentKind(str, Enum):
    """How staged content is encoded when it is sent to the remote.

    Values match the ``encoding`` field of the git blob API.
    """
    UTF8 = "utf-8"
    BINARY = "base64"

    def __str__(self) -> str:          # noqa: D105
        return self.value


@dataclass(frozen=True)
class StagedContent:
    """Staged file content tagged with its kind.

    ``data`` is a ``str`` for :attr:`ContentKind.UTF8` and ``bytes`` for
    :attr:`ContentKind.BINARY`.
    """
    kind: ContentKind
    data: str | bytes

    @classmethod
    def text(cls, text: str) -> StagedContent:
        return cls(ContentKind.UTF8, text)

    @classmethod
    def binary(cls, data: bytes) -> StagedContent:
        return cls(ContentKind.BINARY, bytes(data))

    @classmethod
    def from_bytes(cls, data: bytes) -> StagedContent:
        """Classify raw bytes: valid UTF-8 without NUL bytes is text."""
        if b"\x00" not in data:
            try:
                return cls.text(data.decode("utf-8"))
            except UnicodeDecodeError:
                pass
        return cls.binary(data)

    @property
    def is_binary(self) -> bool:
        return self.kind is ContentKind.BINARY

    def encoded(self) -> str:
        """Return the wire form: base64 for binary, the text itself otherwise."""
        if self.is_binary:
            return base64.b64encode(self.data).decode("ascii")
        return self.data

    def as_bytes(self) -> bytes:
        if self.is_binary:
            return self.data
        return self.data.encode("utf-8")

    def as_text(self) -> str:
        """Decode for display and diffing (undecodable bytes are replaced)."""
        if self.is_binary:
            return self.data.decode("utf-8", errors="replace")
        return self.data


@dataclass(frozen=True)
class StagedFile:
    """A pending local change not yet committed."""
    path: str
    content: StagedContent


@dataclass
class Selection:
    """The file currently open in the editor.

    Attributes:
        path: Selected repository path.
        is_new: ``True`` when the file was just created and the editor should
            start from empty content instead of reading it.
        revision: Last known blob revision, used as the save precondition.
        external_change: Set when the remote revision moved past *revision*.
    """
    path: str
    is_new: bool = False
    revision: str | None = None
    external_change: bool = False


@dataclass(frozen=True)
class BlobContent:
    """File content read from the remote, with the revision it was read at."""
    data: bytes
    revision: str

    @property
    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class RevisionInfo:
    """One entry in a path's commit history (newest first)."""
    revision: str
    message: str
    author: str | None = None
    timestamp: str | None = None
    url: str | None = None


@dataclass(frozen=True)
class CommitRef:
    """A commit created by the multi-file commit path."""
    sha: str
    url: str | None = None

    def __str__(self) -> str:
        return self.url or self.sha
