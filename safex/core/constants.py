"""
Constants
Centralised storage for severities, rule texts, and harness signatures.
"""
SEVERITY_LOW = "low"
SEVERITY_MEDIUM = "medium"
SEVERITY_HIGH = "high"

TOOL_CLIPPY = "clippy"
TOOL_ANCHOR_LINTS = "anchor-lints"
TOOL_SAFEX = "safex"

# Instruction names with a hand-tuned harness template (matched case-insensitively)
SPECIALIZED_INSTRUCTIONS = ("increment",)

# Substrings that mark a line of harness output as evidence of a defect
EVIDENCE_SIGNATURES = (
    "error:",
    "panicked",
    "overflow",
    "underflow",
    "validation failed",
    "Error:",
)

FUZZ_DIR_NAME = "fuzz_tests"
FUZZ_LOG_NAME = "test_output.log"
