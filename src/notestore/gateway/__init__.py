"""Remote repository gateways."""

from __future__ import annotations

import os
from pathlib import Path

from ._base import CommitStep, IdentityProvider, RemoteGateway
from .github import GitHubGateway, validate_repo_name
from .local import LocalGateway

__all__ = [
    "CommitStep",
    "GitHubGateway",
    "IdentityProvider",
    "LocalGateway",
    "RemoteGateway",
    "open_gateway",
    "validate_repo_name",
]


def open_gateway(
    repo: str | os.PathLike[str],
    *,
    token: str | None = None,
    branch: str | None = None,
    api_url: str | None = None,
    timeout: float = 30.0,
    author: str = "notestore",
    email: str = "notestore@localhost",
    identity: IdentityProvider | None = None,
) -> RemoteGateway:
    """Open a gateway for *repo*.

    An existing filesystem path, or one ending in ``.git``, opens (or
    creates) a local bare repository.  Anything else is taken as a GitHub
    ``owner/name``.
    """
    text = os.fspath(repo)
    path = Path(text)
    if path.exists() or text.endswith(".git"):
        return LocalGateway(
            path, branch=branch or "main", author=author, email=email, identity=identity
        )
    kwargs = {"base_url": api_url} if api_url else {}
    return GitHubGateway(
        text, token, branch=branch, timeout=timeout, identity=identity, **kwargs
    )
