"""
Fuzz Executor
=============
Materializes a synthesized harness project, runs it with cargo under a
hard deadline, and classifies the run.

BOUNDARY RULES (CRITICAL):
    - Executor ONLY observes execution.
    - Executor NEVER modifies the audited checkout; the harness lives in
      its own directory under the caller's work_dir.
    - Executor NEVER decides what counts as evidence — that is the
      Evidence Extractor's job.

LIFECYCLE:
    1. Synthesize the harness text (pure)
    2. Write <work_dir>/fuzz_tests/{Cargo.toml, <name>_fuzz_test.rs, src/...}
    3. Run `cargo test --lib --features=anchor` with the time budget as a
       hard deadline
    4. Extract evidence lines from stdout, then stderr
    5. Write fuzz_tests/test_output.log
    6. success = exit 0 AND NOT timed_out AND no evidence

FAILURES:
    - Files cannot be written       → HarnessEnvironmentError
    - cargo cannot be started       → ToolchainInvocationError
    - cargo ran and found problems  → normal FuzzRunResult(success=False)
"""
import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from safex.core.config import FUZZ_SANDBOX
from safex.core.constants import FUZZ_DIR_NAME, FUZZ_LOG_NAME
from safex.core.errors import HarnessEnvironmentError
from safex.executor.command_resolver import resolve_command
from safex.executor.harness_templates import HarnessProject, synthesize
from safex.executor.project_detector import detect_program_name
from safex.executor.sandbox import CommandRunner, ProcessOutput, get_runner
from safex.models.fuzz_run import FuzzRunResult
from safex.parser.evidence_extractor import extract_errors

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Materialization
# ---------------------------------------------------------------------------
def materialize_project(harness: HarnessProject, work_dir: str) -> Path:
    """
    Write the harness project under ``work_dir/fuzz_tests``.

    The generated test module is written next to the manifest first and
    then copied into ``src/`` beside the library entry.

    Returns
    -------
    Path
        The harness project root.
    """
    project_dir = Path(work_dir) / FUZZ_DIR_NAME
    try:
        (project_dir / "src").mkdir(parents=True, exist_ok=True)

        staged_test = project_dir / harness.test_file_name
        staged_test.write_text(harness.test_source, encoding="utf-8")

        (project_dir / "Cargo.toml").write_text(harness.manifest, encoding="utf-8")
        (project_dir / "src" / "lib.rs").write_text(harness.lib_source, encoding="utf-8")
        shutil.copyfile(staged_test, project_dir / "src" / harness.test_file_name)
    except OSError as exc:
        raise HarnessEnvironmentError(f"Failed to write harness project: {exc}") from exc

    logger.info("Harness project for '%s' written to %s", harness.spec.instruction_name, project_dir)
    return project_dir


def write_output_log(project_dir: Path, output: ProcessOutput) -> Path:
    log_path = project_dir / FUZZ_LOG_NAME
    try:
        log_path.write_text(
            f"STDOUT:\n{output.stdout}\n\nSTDERR:\n{output.stderr}\n",
            encoding="utf-8",
        )
    except OSError as exc:
        raise HarnessEnvironmentError(f"Failed to write test output log: {exc}") from exc
    return log_path


def _harness_env(repo_path: str) -> dict[str, str]:
    """Point ProgramTest at the checkout's built programs when they exist."""
    deploy_dir = os.path.join(repo_path, "target", "deploy")
    if os.path.isdir(deploy_dir):
        return {"BPF_OUT_DIR": os.path.abspath(deploy_dir)}
    return {}


# ---------------------------------------------------------------------------
# Public Entry Point
# ---------------------------------------------------------------------------
def run_fuzz_test(
    repo_path: str,
    instruction_name: str,
    time_budget: float,
    work_dir: str,
    runner: Optional[CommandRunner] = None,
    program_name: Optional[str] = None,
) -> FuzzRunResult:
    """
    Generate and run a fuzz harness for one instruction.

    Parameters
    ----------
    repo_path : str
        Local checkout of the Anchor project under audit.
    instruction_name : str
        Instruction to fuzz.
    time_budget : float
        Seconds. The harness is killed when it runs this long.
    work_dir : str
        Isolated directory owned by this run.
    runner : CommandRunner | None
        Defaults to the runner for FUZZ_SANDBOX.
    program_name : str | None
        Program library for ProgramTest; detected from the checkout if None.

    Returns
    -------
    FuzzRunResult
    """
    if runner is None:
        runner = get_runner(FUZZ_SANDBOX)
    if program_name is None:
        program_name = detect_program_name(repo_path)

    harness = synthesize(instruction_name, program_name=program_name)
    logger.info(
        "Fuzzing instruction '%s' with %s template | program=%s | budget=%.0fs",
        instruction_name, harness.spec.template_kind, program_name or "default", time_budget,
    )
    project_dir = materialize_project(harness, work_dir)

    command = resolve_command("fuzz_test")
    output = runner.run(
        command.argv(runner.cargo_bin),
        str(project_dir),
        time_budget,
        env=_harness_env(repo_path),
    )

    timed_out = output.killed or output.elapsed_seconds >= time_budget
    errors = extract_errors(output.stdout, output.stderr)
    log_path = write_output_log(project_dir, output)

    result = FuzzRunResult(
        success=output.exit_code == 0 and not timed_out and not errors,
        timed_out=timed_out,
        errors=errors,
        execution_time_seconds=round(output.elapsed_seconds, 3),
        exit_code=output.exit_code,
        project_dir=str(project_dir),
        log_path=str(log_path),
        test_file=harness.test_source,
    )

    logger.info(
        "Fuzz run complete | success=%s | timed_out=%s | evidence=%d | time=%.2fs",
        result.success, result.timed_out, len(result.errors), result.execution_time_seconds,
    )
    return result
