"""
Repository Endpoints
====================
POST /api/ingest-repo    — fetch metadata and confirm the repo is an Anchor project
POST /api/repo-contents  — list a directory or fetch one file through the GitHub API
"""
import asyncio
import logging
import os
import tempfile
from typing import List, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from safex.core.config import GITHUB_TOKEN
from safex.core.errors import GitHubAPIError, RepoAcquisitionError
from safex.models.github import GitHubContent, GitHubRepo
from safex.services.github_client import GitHubClient
from safex.services.repo_service import acquire_anchor_project

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Repositories"])


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------
class RepoIngestionRequest(BaseModel):
    repo_url: str


class RepoIngestionResponse(BaseModel):
    success: bool
    message: str
    repo: Optional[GitHubRepo] = None
    is_anchor_project: Optional[bool] = None


class RepoContentsRequest(BaseModel):
    repo_url: str
    path: Optional[str] = None


class RepoContentsResponse(BaseModel):
    success: bool
    message: str
    contents: Optional[List[GitHubContent]] = None
    file_content: Optional[GitHubContent] = None
    repo_url: str
    path: str


def _validate_checkout(repo_url: str) -> None:
    """Clone into a throwaway directory and confirm the Anchor layout."""
    with tempfile.TemporaryDirectory(prefix="safex-ingest-") as tmp:
        acquire_anchor_project(repo_url, os.path.join(tmp, "repo"), GITHUB_TOKEN or "")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.post("/ingest-repo", response_model=RepoIngestionResponse)
async def ingest_repo(request: RepoIngestionRequest):
    client = GitHubClient()
    try:
        repo = await client.get_repo_from_url(request.repo_url)
    except GitHubAPIError as exc:
        logger.warning("[API] Ingest failed for %s: %s", request.repo_url, exc)
        body = RepoIngestionResponse(success=False, message=f"Failed to ingest repository: {exc}")
        return JSONResponse(status_code=400, content=body.model_dump(mode="json"))

    try:
        await asyncio.to_thread(_validate_checkout, request.repo_url)
    except RepoAcquisitionError as exc:
        is_anchor = False if exc.kind == "not_expected_project_type" else None
        message = (
            str(exc) if is_anchor is False
            else f"Failed to validate Anchor project: {exc}"
        )
        body = RepoIngestionResponse(
            success=False, message=message, repo=repo, is_anchor_project=is_anchor,
        )
        return JSONResponse(status_code=400, content=body.model_dump(mode="json"))

    logger.info("[API] Ingested Anchor project %s", repo.full_name)
    return RepoIngestionResponse(
        success=True,
        message="Anchor project successfully ingested",
        repo=repo,
        is_anchor_project=True,
    )


@router.post("/repo-contents", response_model=RepoContentsResponse)
async def repo_contents(request: RepoContentsRequest):
    client = GitHubClient()
    path = request.path or ""
    try:
        contents = await client.get_repo_contents(request.repo_url, path)
    except GitHubAPIError as exc:
        body = RepoContentsResponse(
            success=False,
            message=f"Failed to fetch repository contents: {exc}",
            repo_url=request.repo_url,
            path=path,
        )
        return JSONResponse(status_code=400, content=body.model_dump(mode="json", by_alias=True))

    return RepoContentsResponse(
        success=True,
        message="Repository contents fetched successfully",
        contents=contents,
        repo_url=request.repo_url,
        path=path,
    )
