"""
Unit Tests — Diagnostic Parser
==============================
Clippy JSON lines → Finding objects.
Severity and fix rules are tested one by one and in combination.
"""
import json

import pytest

from safex.models.finding import Finding
from safex.parser.diagnostic_parser import (
    DEFAULT_FIX,
    UNPARSEABLE_OUTPUT_FINDING,
    classify_severity,
    parse_clippy_output,
    parse_diagnostic_line,
    suggest_fix,
)


def _diag(text, level="warning", spans=None):
    message = {"message": text, "level": level}
    if spans is not None:
        message["spans"] = spans
    return json.dumps({"reason": "compiler-message", "message": message})


# ===================================================================
# Severity rules
# ===================================================================
class TestSeverityRules:

    def test_unsafe_is_high(self):
        assert classify_severity("usage of an unsafe block") == "high"

    def test_unused_is_low(self):
        assert classify_severity("unused variable: `x`") == "low"

    def test_everything_else_is_medium(self):
        assert classify_severity("this looks like a needless borrow") == "medium"

    def test_unsafe_wins_over_unused(self):
        assert classify_severity("unused unsafe block") == "high"
        assert classify_severity("unsafe block is unused") == "high"

    def test_case_sensitive(self):
        assert classify_severity("Unsafe block") == "medium"


# ===================================================================
# Fix rules
# ===================================================================
class TestFixRules:

    def test_unused_variable(self):
        assert "underscore" in suggest_fix("unused variable: `amount`")

    def test_unused_import(self):
        assert suggest_fix("unused import: `std::fmt`") == "Remove the unused import"

    def test_unsafe(self):
        assert "safe alternatives" in suggest_fix("call to unsafe function")

    def test_generic(self):
        assert suggest_fix("redundant clone") == DEFAULT_FIX

    def test_unused_variable_wins_over_unsafe(self):
        assert "underscore" in suggest_fix("unused variable in unsafe block")


# ===================================================================
# Single line parsing
# ===================================================================
class TestParseDiagnosticLine:

    def test_warning_with_span(self):
        line = _diag("unused variable: `x`", spans=[
            {"file_name": "programs/counter/src/lib.rs", "line_start": 17},
            {"file_name": "programs/counter/src/lib.rs", "line_start": 40},
        ])
        finding = parse_diagnostic_line(line)
        assert finding == Finding(
            description="unused variable: `x`",
            line=17,
            severity="low",
            suggested_fix="Remove the unused variable or prefix it with an underscore (_)",
            file_path="programs/counter/src/lib.rs",
            tool="clippy",
        )

    def test_error_level_is_kept(self):
        finding = parse_diagnostic_line(_diag("mismatched types", level="error"))
        assert finding is not None
        assert finding.severity == "medium"

    def test_no_spans_gives_line_zero(self):
        finding = parse_diagnostic_line(_diag("some lint"))
        assert finding.line == 0

    def test_empty_spans_gives_line_zero(self):
        finding = parse_diagnostic_line(_diag("some lint", spans=[]))
        assert finding.line == 0

    @pytest.mark.parametrize("level", ["note", "help", "failure-note", None])
    def test_other_levels_dropped(self, level):
        assert parse_diagnostic_line(_diag("detail", level=level)) is None

    @pytest.mark.parametrize("level", [["warning"], {"name": "warning"}, 1])
    def test_non_string_level_dropped(self, level):
        assert parse_diagnostic_line(_diag("detail", level=level)) is None

    def test_missing_message_text_dropped(self):
        line = json.dumps({"message": {"level": "warning"}})
        assert parse_diagnostic_line(line) is None

    def test_artifact_record_dropped(self):
        line = json.dumps({"reason": "compiler-artifact", "target": {"name": "counter"}})
        assert parse_diagnostic_line(line) is None

    @pytest.mark.parametrize("line", ["", "   ", "not json", "[1, 2]", "42", "{broken"])
    def test_garbage_skipped(self, line):
        assert parse_diagnostic_line(line) is None


# ===================================================================
# Full output parsing
# ===================================================================
class TestParseClippyOutput:

    def test_one_finding_per_reportable_diagnostic(self):
        raw = "\n".join([
            _diag("unused import: `std::io`"),
            json.dumps({"reason": "build-finished", "success": True}),
            _diag("note text", level="note"),
            _diag("dereferencing a raw pointer is unsafe", level="error"),
        ])
        findings = parse_clippy_output(raw)
        assert [f.description for f in findings] == [
            "unused import: `std::io`",
            "dereferencing a raw pointer is unsafe",
        ]
        assert [f.severity for f in findings] == ["low", "high"]

    def test_empty_output_gives_no_findings(self):
        assert parse_clippy_output("") == []
        assert parse_clippy_output("\n  \n") == []

    def test_unparseable_output_gives_single_placeholder(self):
        findings = parse_clippy_output("error: could not find `Cargo.toml`\n")
        assert findings == [UNPARSEABLE_OUTPUT_FINDING]
        assert findings[0].severity == "low"
        assert findings[0].line == 0

    def test_bad_lines_do_not_hide_good_ones(self):
        raw = "garbage\n" + _diag("redundant clone") + "\n{oops"
        findings = parse_clippy_output(raw)
        assert len(findings) == 1
        assert findings[0].description == "redundant clone"

    def test_unhashable_level_does_not_hide_good_ones(self):
        raw = "\n".join([
            _diag("redundant clone", level=["warning"]),
            _diag("unused variable: `y`"),
            _diag("needless borrow", level={"kind": "error"}),
        ])
        findings = parse_clippy_output(raw)
        assert [f.description for f in findings] == ["unused variable: `y`"]
