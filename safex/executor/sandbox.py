"""
Sandbox Runners
===============
Run one cargo command against a harness project with a HARD deadline.

Two runners share the CommandRunner contract:
    - LocalCommandRunner:  child process on the host, own process group,
      whole group killed when the deadline passes.
    - DockerCommandRunner: ephemeral container with the harness mounted at
      /workspace, killed and removed when the deadline passes.

BOUNDARY RULES:
    - Runners ONLY observe execution.
    - Runners NEVER interpret output — that is the Evidence Extractor's job.
    - A process that ran and failed is a ProcessOutput, not an exception.
    - A process that could not be started raises ToolchainInvocationError.
"""
import logging
import os
import signal
import subprocess
import time
from dataclasses import dataclass
from typing import Optional, Protocol

import docker
from docker.errors import APIError, DockerException, ImageNotFound

from safex.core.config import CARGO_BIN, DOCKER_IMAGE_RUST
from safex.core.errors import ToolchainInvocationError

logger = logging.getLogger(__name__)


@dataclass
class ProcessOutput:
    """
    Raw result of one command.

    exit_code is None when the process was killed at the deadline.
    """
    exit_code: Optional[int]
    stdout: str
    stderr: str
    elapsed_seconds: float
    killed: bool = False


class CommandRunner(Protocol):
    cargo_bin: str

    def run(
        self,
        argv: list[str],
        cwd: str,
        timeout_seconds: float,
        env: Optional[dict[str, str]] = None,
    ) -> ProcessOutput:
        ...


def _to_text(data) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


# ---------------------------------------------------------------------------
# Local Process Runner
# ---------------------------------------------------------------------------
class LocalCommandRunner:
    """Runs the command on the host; kills its whole process group on timeout."""

    def __init__(self, cargo_bin: str = CARGO_BIN) -> None:
        self.cargo_bin = cargo_bin

    def run(
        self,
        argv: list[str],
        cwd: str,
        timeout_seconds: float,
        env: Optional[dict[str, str]] = None,
    ) -> ProcessOutput:
        child_env = dict(os.environ)
        if env:
            child_env.update(env)

        logger.info("Running %s in %s (deadline %.0fs)", " ".join(argv), cwd, timeout_seconds)
        start = time.monotonic()
        try:
            process = subprocess.Popen(
                argv,
                cwd=cwd,
                env=child_env,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                start_new_session=True,
            )
        except OSError as exc:
            raise ToolchainInvocationError(f"Failed to run {argv[0]}: {exc}") from exc

        try:
            stdout, stderr = process.communicate(timeout=timeout_seconds)
            return ProcessOutput(
                exit_code=process.returncode,
                stdout=stdout,
                stderr=stderr,
                elapsed_seconds=time.monotonic() - start,
            )
        except subprocess.TimeoutExpired as exc:
            logger.warning("Deadline of %.0fs exceeded – killing process group %d",
                           timeout_seconds, process.pid)
            try:
                os.killpg(process.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
            stdout, stderr = process.communicate()
            return ProcessOutput(
                exit_code=None,
                stdout=_to_text(stdout) or _to_text(exc.stdout),
                stderr=_to_text(stderr) or _to_text(exc.stderr),
                elapsed_seconds=time.monotonic() - start,
                killed=True,
            )


# ---------------------------------------------------------------------------
# Docker Runner
# ---------------------------------------------------------------------------
_MEMORY_LIMIT = "4g"
_CPU_COUNT = 2
_CONTAINER_WORKDIR = "/workspace"
_PROGRAMS_MOUNT = "/programs"


class DockerCommandRunner:
    """
    Runs the command inside an ephemeral Rust container.

    The harness directory is mounted read-write at /workspace. When the
    caller passes BPF_OUT_DIR, that host directory is mounted read-only at
    /programs and the variable is rewritten to the container path.
    """

    def __init__(self, image: str = DOCKER_IMAGE_RUST, client=None) -> None:
        self.image = image
        self.cargo_bin = "cargo"
        self._client = client

    def run(
        self,
        argv: list[str],
        cwd: str,
        timeout_seconds: float,
        env: Optional[dict[str, str]] = None,
    ) -> ProcessOutput:
        environment = {"CI": "true"}
        volumes = {cwd: {"bind": _CONTAINER_WORKDIR, "mode": "rw"}}
        for key, value in (env or {}).items():
            if key == "BPF_OUT_DIR":
                volumes[value] = {"bind": _PROGRAMS_MOUNT, "mode": "ro"}
                value = _PROGRAMS_MOUNT
            environment[key] = value

        container = None
        start = time.monotonic()
        try:
            client = self._client or docker.from_env()
            logger.info("Starting container | image=%s | cmd=%s | deadline=%.0fs",
                        self.image, " ".join(argv), timeout_seconds)
            container = client.containers.run(
                image=self.image,
                command=argv,
                volumes=volumes,
                environment=environment,
                working_dir=_CONTAINER_WORKDIR,
                mem_limit=_MEMORY_LIMIT,
                nano_cpus=_CPU_COUNT * 1_000_000_000,
                labels={"project": "safex", "role": "fuzz-sandbox"},
                detach=True,
            )
        except ImageNotFound as exc:
            raise ToolchainInvocationError(f"Docker image '{self.image}' not found") from exc
        except (APIError, DockerException) as exc:
            raise ToolchainInvocationError(f"Docker could not start the sandbox: {exc}") from exc

        try:
            killed = False
            exit_code: Optional[int] = None
            try:
                wait_result = container.wait(timeout=timeout_seconds)
                exit_code = wait_result.get("StatusCode", -1)
            except Exception as exc:
                # docker-py surfaces the wait deadline as a requests timeout
                logger.warning("Deadline exceeded in container %s: %s", container.short_id, exc)
                container.kill()
                killed = True

            stdout = _to_text(container.logs(stdout=True, stderr=False))
            stderr = _to_text(container.logs(stdout=False, stderr=True))
            return ProcessOutput(
                exit_code=exit_code,
                stdout=stdout,
                stderr=stderr,
                elapsed_seconds=time.monotonic() - start,
                killed=killed,
            )
        finally:
            try:
                container.remove(force=True)
                logger.info("Container %s destroyed", container.short_id)
            except Exception:
                logger.warning("Failed to remove container", exc_info=True)


def get_runner(sandbox: str) -> CommandRunner:
    """Runner for the configured sandbox ("local" or "docker")."""
    if sandbox == "docker":
        return DockerCommandRunner()
    return LocalCommandRunner()
