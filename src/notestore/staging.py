"""In-memory buffer of files waiting for a multi-file commit."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import structlog

from .entries import StagedContent, StagedFile
from .tree import drop_target_path, is_nested_under, normalize_dir, normalize_path

logger = structlog.get_logger(__name__)


class DropSource(Protocol):
    """A file handed to :meth:`StagingBuffer.drop`."""

    name: str

    async def read(self) -> bytes: ...


class LocalFile:
    """A file on the local filesystem, read off the event loop."""

    def __init__(self, path: str | os.PathLike[str]):
        self.path = Path(path)
        self.name = self.path.name

    def __repr__(self) -> str:
        return f"LocalFile({str(self.path)!r})"

    async def read(self) -> bytes:
        return await asyncio.to_thread(self.path.read_bytes)


class MemoryFile:
    """File content that is already in memory."""

    def __init__(self, name: str, data: bytes | str):
        self.name = name
        self._data = data.encode("utf-8") if isinstance(data, str) else bytes(data)

    def __repr__(self) -> str:
        return f"MemoryFile({self.name!r}, {len(self._data)} bytes)"

    async def read(self) -> bytes:
        return self._data


@dataclass
class DropResult:
    """What happened to each file of one drop.

    Attributes:
        staged: Paths added to the buffer.
        rejected: Paths refused because a broader path is already staged.
        failed: ``(name, reason)`` for files that could not be read.
    """
    staged: list[str] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)


class StagingBuffer:
    """Pending file content keyed by repository path.

    Holds no revisions: staged files are committed on top of whatever the
    branch head is at commit time.

    Nested paths follow one asymmetric rule.  Staging a path removes every
    staged path below it.  Staging a path below an already staged one is
    refused and the broader entry stays.
    """

    def __init__(self):
        self._files: dict[str, StagedContent] = {}

    def __repr__(self) -> str:
        return f"StagingBuffer({list(self._files)!r})"

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, path: object) -> bool:
        return path in self._files

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    @property
    def paths(self) -> list[str]:
        return list(self._files)

    def get(self, path: str) -> StagedContent | None:
        return self._files.get(path)

    def files(self) -> list[StagedFile]:
        """Snapshot of the buffer in staging order."""
        return [StagedFile(path, content) for path, content in self._files.items()]

    def stage(self, path: str, content: StagedContent | bytes | str) -> bool:
        """Insert or replace *path*.

        Returns:
            False if *path* was refused because a staged path contains it.
        """
        path = normalize_path(path)
        if isinstance(content, bytes):
            content = StagedContent.from_bytes(content)
        elif isinstance(content, str):
            content = StagedContent.text(content)

        for existing in self._files:
            if is_nested_under(path, existing):
                logger.warning("staging skipped, broader path already staged", path=path, staged=existing)
                return False

        for existing in [k for k in self._files if is_nested_under(k, path)]:
            logger.info("unstaging nested path", path=existing, superseded_by=path)
            del self._files[existing]

        self._files[path] = content
        logger.debug("staged", path=path, kind=str(content.kind))
        return True

    def unstage(self, path: str) -> bool:
        return self._files.pop(path, None) is not None

    def clear(self) -> None:
        self._files.clear()

    async def drop(self, sources: Iterable[DropSource], target_folder: str = "") -> DropResult:
        """Read every source concurrently, then stage them together.

        Nothing is staged until every file of this drop has been read.  A
        file that fails to read is reported and skipped; the rest are still
        staged.
        """
        sources = list(sources)
        target_folder = normalize_dir(target_folder)
        results = await asyncio.gather(*(s.read() for s in sources), return_exceptions=True)

        outcome = DropResult()
        for source, data in zip(sources, results):
            if isinstance(data, BaseException):
                if not isinstance(data, Exception):
                    raise data
                logger.error("could not read dropped file", name=source.name, error=str(data))
                outcome.failed.append((source.name, str(data)))
                continue
            path = drop_target_path(target_folder, source.name)
            try:
                staged = self.stage(path, data)
            except ValueError as exc:
                outcome.failed.append((source.name, str(exc)))
                continue
            if staged:
                outcome.staged.append(path)
            else:
                outcome.rejected.append(path)
        logger.info(
            "drop staged",
            target=target_folder,
            staged=len(outcome.staged),
            rejected=len(outcome.rejected),
            failed=len(outcome.failed),
        )
        return outcome
