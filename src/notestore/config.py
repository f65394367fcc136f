"""Settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .gateway import RemoteGateway, open_gateway
from .gateway.github import API_URL


@dataclass
class Settings:
    """Connection and commit settings.

    Attributes:
        repo: GitHub ``owner/name`` or the path of a local bare repository.
        token: GitHub token.
        branch: Branch to work on (``None``: the repository default).
        api_url: GitHub API root.
        suggest_url: Commit-message service endpoint, if any.
        author: Author name for local commits.
        email: Author email for local commits.
        timeout: HTTP timeout in seconds.
        drafts: Directory of the file-backed unsent-edit store.
    """
    repo: str | None = None
    token: str | None = None
    branch: str | None = None
    api_url: str = API_URL
    suggest_url: str | None = None
    author: str = "notestore"
    email: str = "notestore@localhost"
    timeout: float = 30.0
    drafts: Path | None = None

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        drafts = env.get("NOTESTORE_DRAFTS")
        timeout = env.get("NOTESTORE_TIMEOUT")
        try:
            timeout_value = float(timeout) if timeout else 30.0
        except ValueError:
            raise ValueError(f"NOTESTORE_TIMEOUT must be a number: {timeout!r}") from None
        return cls(
            repo=env.get("NOTESTORE_REPO") or None,
            token=env.get("NOTESTORE_TOKEN") or env.get("GITHUB_TOKEN") or None,
            branch=env.get("NOTESTORE_BRANCH") or None,
            api_url=env.get("NOTESTORE_API_URL") or API_URL,
            suggest_url=env.get("NOTESTORE_SUGGEST_URL") or None,
            author=env.get("NOTESTORE_AUTHOR") or "notestore",
            email=env.get("NOTESTORE_EMAIL") or "notestore@localhost",
            timeout=timeout_value,
            drafts=Path(drafts) if drafts else None,
        )

    def open_gateway(self) -> RemoteGateway:
        """Open the gateway these settings describe."""
        if not self.repo:
            raise ValueError("No repository configured (set NOTESTORE_REPO)")
        return open_gateway(
            self.repo,
            token=self.token,
            branch=self.branch,
            api_url=self.api_url,
            timeout=self.timeout,
            author=self.author,
            email=self.email,
        )
