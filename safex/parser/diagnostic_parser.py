"""
Diagnostic Parser
=================
Converts `cargo clippy --message-format=json` output into Finding objects.

Pipeline:
    1. Split raw output into lines
    2. Skip blank lines and lines that are not JSON objects
    3. Keep only diagnostics with message.level in {warning, error}
    4. Take the line number from the first span (0 if none)
    5. Assign severity and fix via the ordered rule tables below
    6. If output existed but produced no findings, emit one placeholder

Contract:
    - DETERMINISTIC: same output → same findings, same order.
    - Rules are ordered (predicate, outcome) pairs; first match wins.
    - Never raises on malformed input.
"""
import json
import logging
from typing import Callable, Optional

from safex.core.constants import (
    SEVERITY_HIGH,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
    TOOL_CLIPPY,
)
from safex.models.finding import Finding

logger = logging.getLogger(__name__)

_REPORTED_LEVELS = {"warning", "error"}


# ---------------------------------------------------------------------------
# Severity rules, evaluated top to bottom on the diagnostic text
# ---------------------------------------------------------------------------
SEVERITY_RULES: list[tuple[Callable[[str], bool], str]] = [
    (lambda text: "unsafe" in text, SEVERITY_HIGH),
    (lambda text: "unused" in text, SEVERITY_LOW),
]
DEFAULT_SEVERITY = SEVERITY_MEDIUM


# ---------------------------------------------------------------------------
# Fix suggestion rules, evaluated top to bottom on the diagnostic text
# ---------------------------------------------------------------------------
FIX_RULES: list[tuple[Callable[[str], bool], str]] = [
    (lambda text: "unused variable" in text,
     "Remove the unused variable or prefix it with an underscore (_)"),
    (lambda text: "unused import" in text,
     "Remove the unused import"),
    (lambda text: "unsafe" in text,
     "Avoid using unsafe code, use safe alternatives"),
]
DEFAULT_FIX = "Review the code and fix the issue according to best practices"


UNPARSEABLE_OUTPUT_FINDING = Finding(
    description="Clippy output could not be parsed",
    line=0,
    severity=SEVERITY_LOW,
    suggested_fix="Check the project structure and ensure it's a valid Rust project",
    tool=TOOL_CLIPPY,
)


def _first_match(rules: list[tuple[Callable[[str], bool], str]], text: str, default: str) -> str:
    for predicate, outcome in rules:
        if predicate(text):
            return outcome
    return default


def classify_severity(text: str) -> str:
    """Return the severity for a diagnostic message ("unsafe" beats "unused")."""
    return _first_match(SEVERITY_RULES, text, DEFAULT_SEVERITY)


def suggest_fix(text: str) -> str:
    """Return the remediation hint for a diagnostic message."""
    return _first_match(FIX_RULES, text, DEFAULT_FIX)


def parse_diagnostic_line(line: str) -> Optional[Finding]:
    """
    Parse one line of clippy JSON output.

    Returns None for blank lines, non-JSON lines, JSON values that are not
    objects, artifact records without a ``message``, and diagnostics below
    warning level (notes, help).
    """
    line = line.strip()
    if not line:
        return None

    try:
        record = json.loads(line)
    except json.JSONDecodeError:
        logger.debug("clippy: skipping non-JSON line: %.80s", line)
        return None

    if not isinstance(record, dict):
        return None

    message = record.get("message")
    if not isinstance(message, dict):
        return None

    text = message.get("message")
    level = message.get("level")
    if not isinstance(text, str) or not isinstance(level, str) or level not in _REPORTED_LEVELS:
        return None

    line_number = 0
    file_path = ""
    spans = message.get("spans")
    if isinstance(spans, list) and spans and isinstance(spans[0], dict):
        raw_line = spans[0].get("line_start")
        if isinstance(raw_line, int) and raw_line >= 0:
            line_number = raw_line
        file_path = str(spans[0].get("file_name") or "").replace("\\", "/")

    return Finding(
        description=text,
        line=line_number,
        severity=classify_severity(text),
        suggested_fix=suggest_fix(text),
        file_path=file_path,
        tool=TOOL_CLIPPY,
    )


def parse_clippy_output(raw_output: str) -> list[Finding]:
    """
    Parse the full stdout of a clippy run into findings.

    Parameters
    ----------
    raw_output : str
        Newline-delimited JSON emitted by ``cargo clippy --message-format=json``.

    Returns
    -------
    list[Finding]
        Findings in output order. When the output is non-empty but yields
        no findings, a single low-severity placeholder is returned so that
        unparseable output is never reported as "zero issues".
    """
    findings: list[Finding] = []
    for line in raw_output.splitlines():
        finding = parse_diagnostic_line(line)
        if finding is not None:
            findings.append(finding)

    if not findings and raw_output.strip():
        logger.warning("clippy produced output but no diagnostics could be extracted")
        findings.append(UNPARSEABLE_OUTPUT_FINDING)

    logger.info("Parsed %d finding(s) from clippy output (%d chars)", len(findings), len(raw_output))
    return findings
