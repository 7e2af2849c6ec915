"""Token-authenticated GitHub REST client.

Only the two calls the fallback chain needs: README content and repository
metadata. The token is read from the environment at call time unless one is
passed explicitly, so tests can monkeypatch it freely.

Public API::

    from previewer.github import GitHubClient, GitHubError

    client = GitHubClient()
    readme = await client.fetch_readme("octocat", "hello-world")
    meta = await client.fetch_repo_metadata("octocat", "hello-world")
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from .models import PreviewError

LOGGER = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
USER_AGENT = "portfolio-previewer"

# Missing repositories and permission failures degrade to "nothing found"
_UNAVAILABLE_STATUSES = frozenset({403, 404})


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class RepositoryMetadata:
    """The subset of repository metadata used for previews."""

    owner: str
    repo: str
    description: Optional[str] = None
    language: Optional[str] = None
    topics: List[str] = field(default_factory=list)
    default_branch: str = "main"
    homepage: Optional[str] = None

    @property
    def technologies(self) -> List[str]:
        """Primary language followed by topics, without duplicates."""
        seen = set()
        result: List[str] = []
        for item in [self.language, *self.topics]:
            if item and item.lower() not in seen:
                seen.add(item.lower())
                result.append(item)
        return result


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class GitHubError(PreviewError):
    """Raised when the GitHub API fails in an unexpected way."""

    def __init__(self, message: str, path: str = ""):
        self.path = path
        super().__init__(message)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


def _get_github_client(token: Optional[str] = None) -> httpx.AsyncClient:
    headers = {
        "Accept": "application/vnd.github.v3+json",
        "User-Agent": USER_AGENT,
    }
    if token:
        headers["Authorization"] = f"token {token}"
    return httpx.AsyncClient(
        base_url=GITHUB_API_URL,
        headers=headers,
        timeout=httpx.Timeout(15.0, connect=10.0),
    )


class GitHubClient:
    """Thin async wrapper over the repository endpoints."""

    def __init__(self, token: Optional[str] = None) -> None:
        self._token = token

    @property
    def token(self) -> Optional[str]:
        return (
            self._token
            or os.getenv("GITHUB_TOKEN")
            or os.getenv("GITHUB_PERSONAL_ACCESS_TOKEN")
            or None
        )

    async def _get_json(self, path: str) -> Optional[Dict[str, Any]]:
        try:
            async with _get_github_client(self.token) as client:
                response = await client.get(path)
                if response.status_code in _UNAVAILABLE_STATUSES:
                    LOGGER.info(
                        "GitHub returned %d for %s", response.status_code, path
                    )
                    return None
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as exc:
            raise GitHubError(
                f"GitHub API error: {exc.response.status_code} - {exc.response.text}",
                path=path,
            ) from exc

        except httpx.RequestError as exc:
            raise GitHubError(f"Request failed: {exc}", path=path) from exc

    async def fetch_readme(self, owner: str, repo: str) -> Optional[str]:
        """Return the decoded README text, or None when there is none."""
        data = await self._get_json(f"/repos/{owner}/{repo}/readme")
        if not data or not data.get("content"):
            return None
        try:
            raw = base64.b64decode(data["content"])
        except (binascii.Error, ValueError) as exc:
            raise GitHubError(
                f"Could not decode README for {owner}/{repo}: {exc}",
                path=f"/repos/{owner}/{repo}/readme",
            ) from exc
        return raw.decode("utf-8", errors="replace")

    async def fetch_repo_metadata(
        self, owner: str, repo: str
    ) -> Optional[RepositoryMetadata]:
        """Return topics, language, description and default branch."""
        data = await self._get_json(f"/repos/{owner}/{repo}")
        if not data:
            return None
        return RepositoryMetadata(
            owner=owner,
            repo=repo,
            description=data.get("description") or None,
            language=data.get("language") or None,
            topics=list(data.get("topics") or []),
            default_branch=data.get("default_branch") or "main",
            homepage=data.get("homepage") or None,
        )
