"""
Finding Model
=============
Pydantic model for one reported static-analysis issue.
This is the contract between the analysis layer and the API layer.

Fields:
    description     — human-readable issue text (clippy message or rule text)
    line            — 1-based line number; 0 means unknown / file-level
    severity        — one of low, medium, high
    suggested_fix   — remediation hint produced by the rule tables
    file_path       — repo-relative, forward slashes; empty when unknown
    tool            — source of the finding (clippy, anchor-lints, safex)

Findings are immutable once produced and carry no identity beyond their
content; two identical findings are never merged.
"""
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["low", "medium", "high"]


class Finding(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    line: int = Field(default=0, ge=0)
    severity: Severity
    suggested_fix: str
    file_path: str = ""
    tool: str = ""
