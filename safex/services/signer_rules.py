"""
Anchor Signer Rules
===================
Heuristic lint for Anchor account structs that are used as transaction
signers but never declare the signer constraint.

For every ``pub struct Name {`` in a Rust file:
    1. Usage:     the file contains ``Name: &Signer`` or ``Name: Signer``
    2. Attribute: the file contains ``#[account(... signer ...)]``
    3. Usage without attribute → one HIGH finding naming the struct

KNOWN PRECISION GAP:
    By default the attribute test is file-global. A file with two account
    structs where only one carries ``#[account(signer)]`` reports nothing
    for the other one. This is the current contract and is kept on purpose.
    ``strict=True`` scopes the attribute search to the struct's own span:
    the attribute lines directly above the declaration plus the braced body.

Text matching only. No parsing of Rust syntax.
"""
import logging
import os
import re
from pathlib import Path

from safex.core.constants import SEVERITY_HIGH, TOOL_ANCHOR_LINTS
from safex.models.finding import Finding
from safex.utils.path_utils import is_hidden, to_repo_relative

logger = logging.getLogger(__name__)

_ACCOUNT_STRUCT = re.compile(r"pub\s+struct\s+(\w+)\s*\{")
_SIGNER_ATTRIBUTE = re.compile(r"#\[account\(.*signer.*\)\]")

# Lines that may sit between a struct declaration and its attributes
_ATTRIBUTE_PREFIXES = ("#[", "//")


# ===================================================================
# File Discovery
# ===================================================================
def discover_rust_files(dir_path: str) -> list[str]:
    """
    Recursively collect ``.rs`` files under ``dir_path``.

    Hidden files and directories (leading ``.``) are skipped. Entries are
    visited in sorted order. Symlinked directories are not followed. A
    sub-directory that cannot be listed is logged and skipped; failure to
    list ``dir_path`` itself propagates.
    """
    if not os.path.isdir(dir_path):
        return []

    rust_files: list[str] = []
    with os.scandir(dir_path) as it:
        entries = sorted(it, key=lambda e: e.name)

    for entry in entries:
        if is_hidden(entry.name):
            continue
        try:
            if entry.is_dir(follow_symlinks=False):
                try:
                    rust_files.extend(discover_rust_files(entry.path))
                except OSError as exc:
                    logger.warning("Failed to search directory %s: %s", entry.path, exc)
                continue
            if entry.name.endswith(".rs"):
                rust_files.append(entry.path)
        except OSError as exc:
            logger.warning("Failed to read directory entry %s: %s", entry.path, exc)

    return rust_files


# ===================================================================
# Rule Helpers
# ===================================================================
def line_number_at(content: str, offset: int) -> int:
    """1-based line of ``offset``: newlines before it, plus one."""
    return content.count("\n", 0, offset) + 1


def is_used_as_signer(content: str, struct_name: str) -> bool:
    return (
        f"{struct_name}: &Signer" in content
        or f"{struct_name}: Signer" in content
    )


def _attribute_block_start(content: str, decl_start: int) -> int:
    """Offset of the first attribute / comment line directly above ``decl_start``."""
    start = content.rfind("\n", 0, decl_start) + 1
    while start > 0:
        prev_start = content.rfind("\n", 0, start - 1) + 1
        prev_line = content[prev_start:start - 1].strip()
        if not prev_line.startswith(_ATTRIBUTE_PREFIXES):
            break
        start = prev_start
    return start


def _body_end(content: str, open_brace_end: int) -> int:
    """Offset just past the brace that closes the block opened before ``open_brace_end``."""
    depth = 1
    for offset in range(open_brace_end, len(content)):
        char = content[offset]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return offset + 1
    return len(content)


def struct_span(content: str, match: re.Match) -> str:
    """Attribute lines above a declaration plus its braced body, used by strict mode."""
    begin = _attribute_block_start(content, match.start())
    return content[begin:_body_end(content, match.end())]


def check_file_content(content: str, file_path: str = "", strict: bool = False) -> list[Finding]:
    """Apply the signer rule to one file's text. Findings follow match order."""
    findings: list[Finding] = []
    has_signer_attribute = _SIGNER_ATTRIBUTE.search(content) is not None

    for match in _ACCOUNT_STRUCT.finditer(content):
        struct_name = match.group(1)
        if not is_used_as_signer(content, struct_name):
            continue

        if strict:
            attribute_present = _SIGNER_ATTRIBUTE.search(struct_span(content, match)) is not None
        else:
            attribute_present = has_signer_attribute

        if attribute_present:
            continue

        findings.append(Finding(
            description=f"Missing #[account(signer)] attribute for {struct_name}",
            line=line_number_at(content, match.start()),
            severity=SEVERITY_HIGH,
            suggested_fix=f"Add #[account(signer)] attribute to the {struct_name} struct",
            file_path=file_path,
            tool=TOOL_ANCHOR_LINTS,
        ))

    return findings


# ===================================================================
# Public Entry Point
# ===================================================================
def check_missing_signer_attribute(repo_path: str, strict: bool = False) -> list[Finding]:
    """
    Run the missing-signer rule over every Rust file in ``repo_path``.

    Unreadable files are logged and skipped. Findings are ordered by file
    traversal order, then by position inside the file.
    """
    findings: list[Finding] = []
    rust_files = discover_rust_files(repo_path)
    logger.info("Checking %d Rust file(s) for missing signer attributes", len(rust_files))

    for file_path in rust_files:
        try:
            content = Path(file_path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Failed to read file %s: %s", file_path, exc)
            continue

        findings.extend(check_file_content(
            content,
            file_path=to_repo_relative(file_path, repo_path),
            strict=strict,
        ))

    return findings
