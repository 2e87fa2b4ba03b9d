"""
Error Types
===========
Failures that must reach the caller as hard errors.

Sub-analysis failures are NOT listed here: the Analyzer converts them into
placeholder findings and never raises. Detected defects are not errors
either; they are the successful product of a fuzz run.
"""
from typing import Optional


class SafexError(RuntimeError):
    """Base class for all service errors."""


class RepoAcquisitionError(SafexError):
    """Cloning or validating a repository failed.

    ``kind`` is one of: not_found, auth_required, network_failure,
    not_expected_project_type.
    """

    def __init__(self, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind


class HarnessEnvironmentError(SafexError):
    """The harness project could not be written to disk."""


class ToolchainInvocationError(SafexError):
    """The build/test toolchain could not be started at all."""


class LedgerError(SafexError):
    """The report ledger rejected or could not receive a report hash."""


class GitHubAPIError(SafexError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
