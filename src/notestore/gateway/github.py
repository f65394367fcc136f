"""Gateway over the GitHub REST API (contents, commits and git-data)."""

from __future__ import annotations

import base64
import re
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from ..entries import BlobContent, CommitRef, EntryType, RevisionInfo, TreeEntry
from ..exceptions import ConflictError, GatewayError, NotConnectedError, NotFoundError
from ..tree import GIT_FILEMODE_BLOB
from ._base import IdentityProvider, RemoteGateway

logger = structlog.get_logger(__name__)

API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"
HISTORY_PAGE_SIZE = 50

_REPO_NAME = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


def validate_repo_name(full_name: str) -> str:
    """Check that *full_name* has the ``owner/name`` shape."""
    if not _REPO_NAME.match(full_name or ""):
        raise ValueError(f"Repository must be given as owner/name: {full_name!r}")
    return full_name


def _field(data: Any, *keys: str) -> Any:
    """Follow *keys* into a decoded reply, failing on a missing one."""
    for key in keys:
        if not isinstance(data, dict) or key not in data:
            raise GatewayError(f"Malformed response from GitHub: missing {'.'.join(keys)}")
        data = data[key]
    return data


class GitHubGateway(RemoteGateway):
    """A :class:`RemoteGateway` speaking to ``api.github.com``.

    Single-file operations use the contents API, whose ``sha`` field is the
    write precondition.  The multi-file commit uses the git-data API and
    advances the branch without ``force``, so GitHub itself refuses a
    non-fast-forward update.

    Args:
        repo_full_name: ``owner/name``.
        token: Personal access or OAuth token (``None`` for anonymous reads).
        branch: Branch to work on; ``None`` uses the repository's default
            branch, looked up once.
        base_url: API root, for GitHub Enterprise.
        client: Pre-built ``httpx.AsyncClient`` (tests pass one with a mock
            transport).  A client created here is closed by :meth:`aclose`.
        identity: Authentication collaborator, see :class:`RemoteGateway`.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        repo_full_name: str,
        token: str | None = None,
        *,
        branch: str | None = None,
        base_url: str = API_URL,
        client: httpx.AsyncClient | None = None,
        identity: IdentityProvider | None = None,
        timeout: float = 30.0,
    ):
        super().__init__(identity=identity)
        self.repo = validate_repo_name(repo_full_name)
        self.branch = branch
        self._base = f"{base_url.rstrip('/')}/repos/{self.repo}"
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = headers

    def __repr__(self) -> str:
        return f"GitHubGateway({self.repo!r}, branch={self.branch!r})"

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # --- HTTP ---

    def _contents_url(self, path: str) -> str:
        return f"{self._base}/contents/{quote(path)}" if path else f"{self._base}/contents"

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as exc:
            raise GatewayError(f"GitHub connection error: {exc}") from exc
        if response.status_code >= 400:
            raise self._classify(response)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError(f"Malformed response from GitHub: {exc}") from exc

    @staticmethod
    def _classify(response: httpx.Response) -> GatewayError:
        status = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = None
        message = body.get("message", "") if isinstance(body, dict) else response.text
        if status == 401:
            return NotConnectedError(f"GitHub connection error: {message or 'bad credentials'}", status)
        if status == 404:
            return NotFoundError(message or "Not Found", status)
        if status == 409:
            return ConflictError(message or "Conflict", status)
        if status == 422 and ("sha" in message.lower() or "fast forward" in message.lower()):
            return ConflictError(message, status)
        if status == 403 and response.headers.get("X-RateLimit-Remaining") == "0":
            return GatewayError("GitHub API rate limit exceeded", status)
        return GatewayError(f"GitHub API error ({status}): {message}", status)

    async def _branch(self) -> str:
        if self.branch is None:
            repo = await self._request("GET", self._base)
            self.branch = _field(repo, "default_branch") or "main"
            logger.debug("resolved default branch", repo=self.repo, branch=self.branch)
        return self.branch

    def _ref_params(self, revision: str | None = None) -> dict[str, str]:
        if revision:
            return {"ref": revision}
        if self.branch is not None:
            return {"ref": self.branch}
        return {}

    def _branch_body(self) -> dict[str, str]:
        return {"branch": self.branch} if self.branch is not None else {}

    # --- Contents API ---

    async def _list(self, path: str) -> list[TreeEntry]:
        data = await self._request("GET", self._contents_url(path), params=self._ref_params())
        if not isinstance(data, list):
            raise NotFoundError(f"Not a directory: {path}")
        entries = []
        for item in data:
            name, item_path = _field(item, "name"), _field(item, "path")
            if item.get("type") == "dir":
                entries.append(TreeEntry(EntryType.DIRECTORY, name, item_path))
            else:
                entries.append(TreeEntry(EntryType.FILE, name, item_path, item.get("sha")))
        return entries

    async def _read(self, path: str, revision: str | None) -> BlobContent:
        data = await self._request(
            "GET", self._contents_url(path), params=self._ref_params(revision)
        )
        if not isinstance(data, dict) or data.get("type") != "file":
            raise NotFoundError(f"Not a file: {path}")
        content = base64.b64decode(data.get("content") or "")
        return BlobContent(content, _field(data, "sha"))

    async def _put(self, path: str, data: bytes, message: str, precondition: str | None) -> str:
        body = {
            "message": message,
            "content": base64.b64encode(data).decode("ascii"),
            **self._branch_body(),
        }
        if precondition is not None:
            body["sha"] = precondition
        result = await self._request("PUT", self._contents_url(path), json=body)
        return _field(result, "content", "sha")

    async def _delete(self, path: str, revision: str, message: str) -> None:
        body = {"message": message, "sha": revision, **self._branch_body()}
        await self._request("DELETE", self._contents_url(path), json=body)

    async def _history(self, path: str) -> list[RevisionInfo]:
        params: dict[str, str | int] = {"path": path, "per_page": HISTORY_PAGE_SIZE}
        if self.branch is not None:
            params["sha"] = self.branch
        try:
            data = await self._request("GET", f"{self._base}/commits", params=params)
        except ConflictError as exc:
            # Empty repository
            raise NotFoundError(str(exc), exc.status) from exc
        revisions = []
        for item in data or []:
            revision = _field(item, "sha")
            commit = item.get("commit") or {}
            author = commit.get("author") or {}
            revisions.append(RevisionInfo(
                revision=revision,
                message=commit.get("message", ""),
                author=author.get("name"),
                timestamp=author.get("date"),
                url=item.get("html_url"),
            ))
        return revisions

    # --- Git data API ---

    async def _resolve_head(self) -> str:
        branch = await self._branch()
        data = await self._request("GET", f"{self._base}/git/ref/heads/{quote(branch)}")
        return _field(data, "object", "sha")

    async def _commit_tree(self, commit_sha: str) -> str:
        data = await self._request("GET", f"{self._base}/git/commits/{commit_sha}")
        return _field(data, "tree", "sha")

    async def _create_blob(self, content: str, encoding: str) -> str:
        data = await self._request(
            "POST", f"{self._base}/git/blobs", json={"content": content, "encoding": encoding}
        )
        return _field(data, "sha")

    async def _create_tree(self, base_tree: str, items: list[tuple[str, str]]) -> str:
        tree = [
            {"path": path, "mode": f"{GIT_FILEMODE_BLOB:o}", "type": "blob", "sha": sha}
            for path, sha in items
        ]
        data = await self._request(
            "POST", f"{self._base}/git/trees", json={"base_tree": base_tree, "tree": tree}
        )
        return _field(data, "sha")

    async def _create_commit(self, message: str, tree: str, parents: list[str]) -> CommitRef:
        data = await self._request(
            "POST",
            f"{self._base}/git/commits",
            json={"message": message, "tree": tree, "parents": parents},
        )
        return CommitRef(_field(data, "sha"), data.get("html_url"))

    async def _update_ref(self, commit_sha: str, expected_head: str) -> None:
        branch = await self._branch()
        await self._request(
            "PATCH",
            f"{self._base}/git/refs/heads/{quote(branch)}",
            json={"sha": commit_sha, "force": False},
        )
