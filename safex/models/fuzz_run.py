"""
Fuzz Run Result
===============
Structured outcome of one harness execution.

``success`` holds only when the process exited with status 0, the run did
not time out, and no evidence lines were extracted. All three conditions
are required; an empty error list alone is not enough.
"""
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class FuzzRunResult:
    """
    Fields
    ------
    success : bool
        exit_code == 0 and not timed_out and not errors.
    timed_out : bool
        Elapsed time reached the budget (the process was killed).
    errors : list[str]
        Evidence lines in stdout-then-stderr order.
    execution_time_seconds : float
        Wall clock duration of the build/test process.
    exit_code : int | None
        Process exit code; None when the process was killed.
    project_dir : str
        Root of the materialized harness project.
    log_path : str
        Combined stdout/stderr log written after the run.
    test_file : str
        Generated harness source text.
    """
    success: bool = False
    timed_out: bool = False
    errors: list[str] = field(default_factory=list)
    execution_time_seconds: float = 0.0
    exit_code: Optional[int] = None
    project_dir: str = ""
    log_path: str = ""
    test_file: str = ""

    @property
    def execution_time_ms(self) -> int:
        return int(self.execution_time_seconds * 1000)
