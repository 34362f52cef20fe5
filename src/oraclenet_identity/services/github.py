"""GitHub REST client for gist and issue proofs.

Only the response fields the identity checks consume are kept: gist owner and
file contents, issue title, body, and author login.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any

import httpx

from oraclenet_identity.core.errors import NotFoundError, UpstreamError, ValidationError
from oraclenet_identity.core.settings import settings

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_NOT_FOUND = 404

_ISSUE_URL_RE = re.compile(r"github\.com/([^/\s]+)/([^/\s]+)/issues/(\d+)")
_GIST_ID_RE = re.compile(r"^[0-9A-Za-z]+$")


@dataclass(frozen=True)
class IssueRef:
    """Location of a GitHub issue parsed from its web URL."""

    owner: str
    repo: str
    number: int

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"

    @property
    def repo_full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class GistFile:
    filename: str
    content: str


@dataclass(frozen=True)
class Gist:
    id: str
    owner_login: str | None
    files: list[GistFile]


@dataclass(frozen=True)
class Issue:
    number: int
    title: str
    body: str
    author_login: str | None

    def mentions(self, needle: str) -> bool:
        """Case-insensitive substring search over title and body."""
        return needle.lower() in f"{self.title} {self.body}".lower()


def parse_issue_url(url: str, *, label: str = "issue") -> IssueRef:
    """Parse ``https://github.com/{owner}/{repo}/issues/{n}``."""
    match = _ISSUE_URL_RE.search(url or "")
    if not match:
        raise ValidationError(f"Invalid {label} URL format")
    owner, repo, number = match.groups()
    return IssueRef(owner=owner, repo=repo, number=int(number))


def parse_gist_id(url: str) -> str:
    """Return the gist id: the last path segment of a gist URL."""
    cleaned = (url or "").split("#", 1)[0].split("?", 1)[0].rstrip("/")
    gist_id = cleaned.rsplit("/", 1)[-1]
    if not gist_id or not _GIST_ID_RE.match(gist_id):
        raise ValidationError("Invalid gist URL format")
    return gist_id


class GitHubClient:
    """Thin async wrapper over the GitHub REST API."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        token: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url or settings.github_api_url
        self._token = token if token is not None else settings.github_token
        self._timeout = timeout_seconds or settings.github_http_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    def _headers(self) -> dict[str, str]:
        headers = {
            "User-Agent": settings.github_user_agent,
            "Accept": "application/vnd.github+json",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self._base_url,
                    timeout=httpx.Timeout(self._timeout),
                    headers=self._headers(),
                    transport=self._transport,
                )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, path: str, what: str) -> dict[str, Any]:
        client = await self._ensure_client()
        try:
            response = await client.get(path)
        except httpx.HTTPError as exc:
            logger.warning("GitHub request %s failed: %s", path, exc)
            raise UpstreamError(f"Failed to fetch {what}: {exc}") from exc

        if response.status_code == HTTP_NOT_FOUND:
            raise NotFoundError(f"Failed to fetch {what}: not found")
        if response.status_code != HTTP_OK:
            logger.warning("GitHub responded %s for %s", response.status_code, path)
            raise UpstreamError(f"Failed to fetch {what}: GitHub responded {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError(f"Failed to fetch {what}: invalid JSON from GitHub") from exc
        if not isinstance(payload, dict):
            raise UpstreamError(f"Failed to fetch {what}: unexpected response shape")
        return payload

    async def fetch_gist(self, gist_id: str) -> Gist:
        payload = await self._get_json(f"/gists/{gist_id}", "gist")
        files = [
            GistFile(filename=str(name), content=str(entry.get("content") or ""))
            for name, entry in (payload.get("files") or {}).items()
            if isinstance(entry, dict)
        ]
        owner = payload.get("owner") or {}
        return Gist(id=str(payload.get("id", gist_id)), owner_login=owner.get("login"), files=files)

    async def fetch_issue(self, ref: IssueRef, *, label: str = "issue") -> Issue:
        payload = await self._get_json(
            f"/repos/{ref.owner}/{ref.repo}/issues/{ref.number}", label
        )
        user = payload.get("user") or {}
        return Issue(
            number=int(payload.get("number", ref.number)),
            title=str(payload.get("title") or ""),
            body=str(payload.get("body") or ""),
            author_login=user.get("login"),
        )


_DEFAULT_CLIENT: GitHubClient | None = None


def get_github_client() -> GitHubClient:
    """Return the process-wide GitHub client."""
    global _DEFAULT_CLIENT
    if _DEFAULT_CLIENT is None:
        _DEFAULT_CLIENT = GitHubClient()
    return _DEFAULT_CLIENT


async def close_github_client() -> None:
    global _DEFAULT_CLIENT
    if _DEFAULT_CLIENT is not None:
        await _DEFAULT_CLIENT.close()
        _DEFAULT_CLIENT = None
