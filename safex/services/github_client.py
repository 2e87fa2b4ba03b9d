"""
GitHub Client
=============
Reads repository metadata and directory listings from the GitHub REST API.
"""
import base64
import binascii
import logging
import re
from typing import Optional

import httpx
from pydantic import ValidationError

from safex.core.config import GITHUB_TOKEN
from safex.core.errors import GitHubAPIError
from safex.models.github import GitHubContent, GitHubRepo

logger = logging.getLogger(__name__)

API_ROOT = "https://api.github.com"

_OWNER_REPO = re.compile(r"^(?:https?://)?(?:www\.)?[^/]*github[^/]*/([^/]+)/([^/]+?)(?:\.git)?/?$")


def extract_owner_repo(repo_url: str) -> tuple[str, str]:
    """
    Split a GitHub URL into (owner, repo).

    Accepts https://github.com/o/r, http://github.com/o/r and github.com/o/r,
    with or without a trailing slash or ``.git``.
    """
    match = _OWNER_REPO.match(repo_url.strip())
    if not match:
        raise GitHubAPIError(f"Invalid GitHub repository URL: {repo_url}")
    return match.group(1), match.group(2)


def decode_file_content(item: GitHubContent) -> GitHubContent:
    """Replace base64 file content with its UTF-8 text when possible."""
    if item.content is None or item.encoding != "base64":
        return item
    try:
        text = base64.b64decode(item.content.replace("\n", "")).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        logger.warning("Could not decode content of %s: %s", item.path, exc)
        return item
    return item.model_copy(update={"content": text, "encoding": "utf-8"})


class GitHubClient:
    """Thin async wrapper over the endpoints the dashboard needs."""

    def __init__(self, github_token: Optional[str] = GITHUB_TOKEN, timeout: float = 30.0) -> None:
        self.timeout = timeout
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "Safex-App",
        }
        if github_token:
            self.headers["Authorization"] = f"token {github_token}"
            logger.info("Using GitHub token for authentication")
        else:
            logger.info("No GitHub token found, using unauthenticated requests (rate limited)")

    async def _get(self, url: str) -> httpx.Response:
        try:
            async with httpx.AsyncClient(headers=self.headers, timeout=self.timeout) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"Failed to connect to GitHub API: {exc}") from exc

        status = response.status_code
        logger.info("GitHub API %s -> %d", url, status)
        if status == 404:
            raise GitHubAPIError("Repository or path not found", status_code=404)
        if status in (403, 429):
            raise GitHubAPIError(
                "GitHub API rate limit exceeded. Please try again later or add a GitHub token.",
                status_code=status,
            )
        if status >= 400:
            raise GitHubAPIError(f"GitHub API error: {status} - {response.text}", status_code=status)
        return response

    async def get_repo(self, owner: str, repo: str) -> GitHubRepo:
        response = await self._get(f"{API_ROOT}/repos/{owner}/{repo}")
        try:
            return GitHubRepo.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise GitHubAPIError(f"Failed to parse GitHub repository data: {exc}") from exc

    async def get_repo_from_url(self, repo_url: str) -> GitHubRepo:
        owner, repo = extract_owner_repo(repo_url)
        return await self.get_repo(owner, repo)

    async def get_repo_contents(self, repo_url: str, path: Optional[str] = None) -> list[GitHubContent]:
        """
        List a directory, or fetch a single file, at ``path``.

        A directory yields one entry per child. A file yields a one-element
        list with its content decoded from base64.
        """
        owner, repo = extract_owner_repo(repo_url)
        path = (path or "").strip("/")
        response = await self._get(f"{API_ROOT}/repos/{owner}/{repo}/contents/{path}")

        try:
            payload = response.json()
            if isinstance(payload, list):
                return [GitHubContent.model_validate(item) for item in payload]
            return [decode_file_content(GitHubContent.model_validate(payload))]
        except (ValueError, ValidationError) as exc:
            raise GitHubAPIError(f"Failed to parse GitHub content: {exc}") from exc
