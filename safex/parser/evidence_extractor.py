"""
Evidence Extractor
==================
Pulls defect evidence out of harness build/test output.

A line is evidence when it contains one of EVIDENCE_SIGNATURES or a
rustc error code such as ``error[E0308]``. Lines are kept verbatim
(trimmed), stdout lines first, then stderr lines. No deduplication.
"""
import re

from safex.core.constants import EVIDENCE_SIGNATURES

_COMPILER_ERROR_CODE = re.compile(r"error\[E\d{4}\]")


def is_evidence_line(line: str) -> bool:
    if any(signature in line for signature in EVIDENCE_SIGNATURES):
        return True
    return _COMPILER_ERROR_CODE.search(line) is not None


def extract_errors(stdout: str, stderr: str) -> list[str]:
    """Return evidence lines from both streams in stream-then-line order."""
    errors: list[str] = []
    for stream in (stdout, stderr):
        for line in stream.splitlines():
            if is_evidence_line(line):
                errors.append(line.strip())
    return errors
