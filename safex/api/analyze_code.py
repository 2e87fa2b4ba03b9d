"""
POST /api/analyze-code
======================
Clones an Anchor repository into a private temporary directory, runs
clippy plus the signer rules, and returns the findings in the shape the
dashboard renders.

Analysis never fails once the checkout exists: tool failures show up as
placeholder bugs in the list.
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
from safex.core.errors import RepoAcquisitionError
from safex.models.finding import Finding, Severity
from safex.services.repo_service import acquire_anchor_project
from safex.services.static_analysis import analyze_repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Analysis"])


# ---------------------------------------------------------------------------
# Request / Response schemas (matching frontend expectations)
# ---------------------------------------------------------------------------
class CodeAnalysisRequest(BaseModel):
    repo_url: str


class CodeBug(BaseModel):
    bug: str
    line: int
    severity: Severity
    fix: str
    file: str = ""


class CodeAnalysisResponse(BaseModel):
    success: bool
    message: str
    bugs: Optional[List[CodeBug]] = None


def to_code_bug(finding: Finding) -> CodeBug:
    return CodeBug(
        bug=finding.description,
        line=finding.line,
        severity=finding.severity,
        fix=finding.suggested_fix,
        file=finding.file_path,
    )


def _clone_and_analyze(repo_url: str) -> list[Finding]:
    """Clone, analyze, and remove the checkout; runs off the event loop."""
    with tempfile.TemporaryDirectory(prefix="safex-analysis-") as tmp:
        repo_path = acquire_anchor_project(repo_url, os.path.join(tmp, "repo"), GITHUB_TOKEN or "")
        return analyze_repository(repo_path)


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------
@router.post("/analyze-code", response_model=CodeAnalysisResponse)
async def analyze_code(request: CodeAnalysisRequest):
    logger.info("[API] Code analysis request for: %s", request.repo_url)

    try:
        findings = await asyncio.to_thread(_clone_and_analyze, request.repo_url)
    except RepoAcquisitionError as exc:
        logger.warning("[API] Repository rejected (%s): %s", exc.kind, exc)
        return JSONResponse(
            status_code=400,
            content=CodeAnalysisResponse(success=False, message=str(exc)).model_dump(),
        )

    logger.info("[API] Analysis of %s finished with %d issue(s)", request.repo_url, len(findings))
    return CodeAnalysisResponse(
        success=True,
        message=f"Analysis completed. Found {len(findings)} issues.",
        bugs=[to_code_bug(f) for f in findings],
    )
