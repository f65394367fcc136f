"""Pre-commit diffs and commit message suggestions."""

from __future__ import annotations

import asyncio
import difflib
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import httpx
import structlog

from .entries import StagedFile
from .exceptions import GatewayError
from .gateway import RemoteGateway

logger = structlog.get_logger(__name__)

DEFAULT_MESSAGE = "Update files"
PATCH_SEPARATOR = "=" * 67
NO_NEWLINE = "\\ No newline at end of file\n"

_EDGE_MARKS = re.compile(r"^[`\"'*]+|[`\"'*]+$")
_TITLE_PREFIX = re.compile(r"^Commit Message Title:\s*", re.IGNORECASE)


def unified_patch(path: str, original: str, staged: str) -> str:
    """Line diff of *original* to *staged*, headed ``Index: <path>``.

    The header is present even when nothing changed.
    """
    lines = [f"Index: {path}\n", f"{PATCH_SEPARATOR}\n"]
    diff = difflib.unified_diff(
        original.splitlines(keepends=True),
        staged.splitlines(keepends=True),
        fromfile=path,
        tofile=path,
    )
    for line in diff:
        if line.endswith("\n"):
            lines.append(line)
        else:
            lines.append(line + "\n")
            lines.append(NO_NEWLINE)
    if len(lines) == 2:
        lines += [f"--- {path}\n", f"+++ {path}\n"]
    return "".join(lines)


def error_patch(path: str) -> str:
    """Stand-in patch for a path whose remote content could not be read."""
    return (
        f"--- Error fetching {path} ---\n"
        f"+++ {path} (staged) +++\n"
        "@@ -0,0 +1 @@\n"
        "+ (Content could not be compared due to error)"
    )


async def build_diff(gateway: RemoteGateway, files: Sequence[StagedFile]) -> str:
    """Diff every staged file against its current remote content.

    Files that do not exist remotely diff against empty content.
    """
    patches = []
    for staged in files:
        try:
            blob = await gateway.read_blob(staged.path)
        except GatewayError as exc:
            logger.warning("could not fetch content for diff", path=staged.path, error=str(exc))
            patches.append(error_patch(staged.path))
            continue
        original = blob.text if blob is not None else ""
        patches.append(unified_patch(staged.path, original, staged.content.as_text()))
    return "\n".join(patches)


def clean_message(raw: str | None) -> str:
    """Strip quoting and a leading ``Commit Message Title:`` from a suggestion."""
    message = (raw or "").strip()
    message = _EDGE_MARKS.sub("", message)
    message = _TITLE_PREFIX.sub("", message).strip()
    return message or DEFAULT_MESSAGE


class MessageSuggester(Protocol):
    """Turns a combined diff into a commit message."""

    async def suggest(self, diff: str) -> str: ...


class HttpMessageSuggester:
    """Posts ``{"diff": ...}`` to *url* and reads ``message`` from the reply."""

    def __init__(self, url: str, *, client: httpx.AsyncClient | None = None, timeout: float = 30.0):
        self.url = url
        self._client = client
        self._timeout = timeout

    def __repr__(self) -> str:
        return f"HttpMessageSuggester({self.url!r})"

    async def suggest(self, diff: str) -> str:
        if self._client is not None:
            response = await self._client.post(self.url, json={"diff": diff})
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self.url, json={"diff": diff})
        if response.status_code != 200:
            try:
                detail = response.json().get("error")
            except (ValueError, AttributeError):
                detail = None
            raise GatewayError(
                detail or f"API request failed with status {response.status_code}",
                response.status_code,
            )
        return response.json().get("message") or ""


async def suggest_commit_message(
    diff: str,
    suggester: MessageSuggester | None,
    timeout: float | None = None,
) -> str:
    """Ask *suggester* for a message, falling back to :data:`DEFAULT_MESSAGE`.

    An empty diff returns the fallback without calling the suggester.  Any
    error or a timeout also yields the fallback; this never raises.
    """
    if not diff.strip() or suggester is None:
        return DEFAULT_MESSAGE
    try:
        raw = await asyncio.wait_for(suggester.suggest(diff), timeout)
    except Exception as exc:
        logger.warning("could not generate commit message, using default", error=str(exc))
        return DEFAULT_MESSAGE
    return clean_message(raw)


@dataclass(frozen=True)
class CommitProposal:
    """Staged paths, their combined diff and the suggested message."""
    paths: list[str]
    diff: str
    message: str


async def prepare_commit(
    gateway: RemoteGateway,
    files: Sequence[StagedFile],
    suggester: MessageSuggester | None = None,
    timeout: float | None = None,
) -> CommitProposal:
    diff = await build_diff(gateway, files)
    message = await suggest_commit_message(diff, suggester, timeout)
    return CommitProposal([f.path for f in files], diff, message)
