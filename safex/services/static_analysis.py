"""
Static Analysis Service
=======================
Deterministic bug detection layer for Anchor programs.

This module runs `cargo clippy` and the Anchor signer rules against a
local checkout and merges their findings.

DEGRADATION CONTRACT:
  - analyze_repository() never raises.
  - A failed clippy run becomes ONE low-severity placeholder finding.
  - A failed signer-rule scan becomes ONE medium-severity placeholder finding.
  - The other sub-analysis still runs.

OUTPUT CONTRACT:
  analyze_repository(repo_path) -> List[Finding]
  Clippy findings first, then signer-rule findings, each in discovery
  order. No deduplication, no sorting.

The linter is injected (LinterRunner) so tests can feed canned clippy
output without a Rust toolchain.
"""
import logging
import subprocess
from typing import List, Optional, Protocol

from safex.core.config import CARGO_BIN, LINTER_TIMEOUT, SIGNER_RULE_STRICT
from safex.core.constants import SEVERITY_LOW, SEVERITY_MEDIUM, TOOL_SAFEX
from safex.executor.command_resolver import resolve_command
from safex.models.finding import Finding
from safex.parser.diagnostic_parser import parse_clippy_output
from safex.services.signer_rules import check_missing_signer_attribute

logger = logging.getLogger(__name__)


CLIPPY_FAILED_FINDING = Finding(
    description="Failed to run Cargo clippy analysis",
    line=0,
    severity=SEVERITY_LOW,
    suggested_fix="Ensure Cargo and Clippy are installed and the project is a valid Rust project",
    tool=TOOL_SAFEX,
)

SIGNER_RULES_FAILED_FINDING = Finding(
    description="Failed to check for missing #[account(signer)] attributes",
    line=0,
    severity=SEVERITY_MEDIUM,
    suggested_fix="Manually review your code for missing signer attributes",
    tool=TOOL_SAFEX,
)


# ===================================================================
# Linter Runners
# ===================================================================
class LinterRunner(Protocol):
    def run(self, project_path: str) -> str:
        """Return the linter's raw structured stdout. Raise on invocation failure."""
        ...


class CargoClippyRunner:
    """Runs ``cargo clippy --message-format=json`` in the project root."""

    def __init__(self, cargo_bin: str = CARGO_BIN, timeout_seconds: int = LINTER_TIMEOUT) -> None:
        self.cargo_bin = cargo_bin
        self.timeout_seconds = timeout_seconds

    def run(self, project_path: str) -> str:
        logger.info("Running cargo clippy in %s", project_path)
        result = subprocess.run(
            resolve_command("clippy").argv(self.cargo_bin),
            capture_output=True, text=True, timeout=self.timeout_seconds,
            cwd=project_path,
        )
        if result.returncode != 0:
            # Clippy exits non-zero on hard errors; diagnostics are still on stdout
            logger.info("cargo clippy exited with %d", result.returncode)
        return result.stdout


# ===================================================================
# Sub-analyses
# ===================================================================
def run_clippy(repo_path: str, linter: LinterRunner) -> List[Finding]:
    """Clippy findings, or the single low placeholder on any failure."""
    try:
        raw = linter.run(repo_path)
        return parse_clippy_output(raw)
    except FileNotFoundError:
        logger.warning("cargo not installed – clippy analysis skipped")
    except subprocess.TimeoutExpired:
        logger.warning("cargo clippy timed out")
    except Exception as exc:
        logger.warning("Cargo clippy analysis failed: %s", exc)
    return [CLIPPY_FAILED_FINDING]


def run_anchor_lints(repo_path: str, strict: bool) -> List[Finding]:
    """Signer-rule findings, or the single medium placeholder on failure."""
    try:
        return check_missing_signer_attribute(repo_path, strict=strict)
    except Exception as exc:
        logger.warning("Failed to check for missing signer attributes: %s", exc)
    return [SIGNER_RULES_FAILED_FINDING]


# ===================================================================
# Public Entry Point
# ===================================================================
def analyze_repository(
    repo_path: str,
    linter: Optional[LinterRunner] = None,
    strict: Optional[bool] = None,
) -> List[Finding]:
    """
    Run the full static analysis pipeline on a repository.

    Parameters
    ----------
    repo_path : str
        Local checkout of an Anchor project.
    linter : LinterRunner | None
        Clippy runner. Defaults to CargoClippyRunner.
    strict : bool | None
        Scope the signer attribute check per struct. Defaults to
        SIGNER_RULE_STRICT.

    Returns
    -------
    List[Finding]
        Clippy findings followed by signer-rule findings. Always returned.
    """
    logger.info("Starting static analysis on: %s", repo_path)
    if linter is None:
        linter = CargoClippyRunner()
    if strict is None:
        strict = SIGNER_RULE_STRICT

    findings: list[Finding] = []
    findings.extend(run_clippy(repo_path, linter))
    findings.extend(run_anchor_lints(repo_path, strict))

    logger.info("Analysis complete: %d issue(s) reported", len(findings))
    return findings
