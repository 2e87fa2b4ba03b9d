"""
POST /api/fuzz-test
===================
Clones an Anchor repository, synthesizes a proptest harness for one
instruction, runs it under a hard time budget, and returns the evidence.

Safety:
    - Budget defaults to FUZZ_DEFAULT_TIMEOUT and may not exceed
      FUZZ_MAX_TIMEOUT (rejected with 400, never clamped)
    - Instruction names must be plain identifiers; they become file names
      and Rust identifiers in the generated harness
    - Every request gets its own temporary directory, created and removed
      in a worker thread together with the clone and the run
"""
import asyncio
import contextlib
import logging
import os
import re
import tempfile
import time
from typing import List, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator

from safex.core.config import (
    DEFAULT_INSTRUCTION,
    FUZZ_DEFAULT_TIMEOUT,
    FUZZ_MAX_TIMEOUT,
    GITHUB_TOKEN,
    KEEP_FUZZ_ARTIFACTS,
)
from safex.core.errors import (
    HarnessEnvironmentError,
    RepoAcquisitionError,
    ToolchainInvocationError,
)
from safex.executor.fuzz_executor import run_fuzz_test
from safex.models.fuzz_run import FuzzRunResult
from safex.services.repo_service import acquire_anchor_project

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Fuzzing"])

_INSTRUCTION_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------
class FuzzingRequest(BaseModel):
    repo_url: str
    instruction_name: Optional[str] = None
    timeout_seconds: Optional[int] = None

    @field_validator("instruction_name")
    @classmethod
    def validate_instruction_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not _INSTRUCTION_NAME_RE.match(v):
            raise ValueError("instruction_name must be a plain identifier (letters, digits, _)")
        return v


class FuzzingResponse(BaseModel):
    success: bool
    message: str
    timed_out: bool = False
    errors: Optional[List[str]] = None
    test_file: Optional[str] = None
    execution_time_ms: Optional[int] = None
    log_path: Optional[str] = None


def _summary_message(result: FuzzRunResult) -> str:
    if result.timed_out:
        return "Fuzzing tests timed out"
    if result.errors:
        return "Fuzzing tests found potential issues"
    if not result.success:
        return f"Fuzzing tests failed with exit code {result.exit_code}"
    return "Fuzzing tests completed successfully"


def _error(status_code: int, message: str, started: Optional[float] = None) -> JSONResponse:
    elapsed = int((time.monotonic() - started) * 1000) if started is not None else None
    body = FuzzingResponse(success=False, message=message, execution_time_ms=elapsed)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _work_dir():
    """Per-request directory; kept on disk when KEEP_FUZZ_ARTIFACTS is set."""
    if KEEP_FUZZ_ARTIFACTS:
        return contextlib.nullcontext(tempfile.mkdtemp(prefix="safex-fuzz-"))
    return tempfile.TemporaryDirectory(prefix="safex-fuzz-")


def _clone_and_fuzz(repo_url: str, instruction_name: str, timeout: float) -> FuzzRunResult:
    """Blocking part of a fuzz request, including removal of the work directory."""
    with _work_dir() as work_dir:
        repo_path = acquire_anchor_project(repo_url, os.path.join(work_dir, "repo"), GITHUB_TOKEN or "")
        return run_fuzz_test(repo_path, instruction_name, timeout, work_dir)


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------
@router.post("/fuzz-test", response_model=FuzzingResponse)
async def fuzz_test(request: FuzzingRequest):
    started = time.monotonic()
    instruction_name = request.instruction_name or DEFAULT_INSTRUCTION
    timeout = request.timeout_seconds if request.timeout_seconds is not None else FUZZ_DEFAULT_TIMEOUT

    if timeout > FUZZ_MAX_TIMEOUT:
        return _error(400, f"Timeout cannot exceed {FUZZ_MAX_TIMEOUT} seconds")
    if timeout <= 0:
        return _error(400, "Timeout must be a positive number of seconds")

    logger.info("[API] Fuzz request: repo=%s instruction=%s budget=%ds",
                request.repo_url, instruction_name, timeout)

    try:
        result = await asyncio.to_thread(
            _clone_and_fuzz, request.repo_url, instruction_name, float(timeout),
        )
    except RepoAcquisitionError as exc:
        logger.warning("[API] Repository rejected (%s): %s", exc.kind, exc)
        return _error(400, str(exc), started)
    except HarnessEnvironmentError as exc:
        logger.error("[API] Harness preparation failed: %s", exc)
        return _error(500, f"Failed to prepare fuzz harness: {exc}", started)
    except ToolchainInvocationError as exc:
        logger.error("[API] Toolchain could not be started: %s", exc)
        return _error(500, f"Failed to run fuzzing tests: {exc}", started)

    return FuzzingResponse(
        success=result.success,
        message=_summary_message(result),
        timed_out=result.timed_out,
        errors=result.errors or None,
        test_file=result.test_file,
        execution_time_ms=result.execution_time_ms,
        log_path=result.log_path if KEEP_FUZZ_ARTIFACTS else None,
    )
