"""
API Endpoint Tests
==================
Tests for the HTTP surface. Cloning, analysis, fuzzing, GitHub, and the
ledger are mocked — no git, cargo, Docker, or network access.
"""
import asyncio
import os
import tempfile
import threading
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from safex.api.analyze_code import CodeAnalysisRequest, analyze_code
from safex.api.fuzzing import FuzzingRequest, fuzz_test
from safex.api.repositories import RepoIngestionRequest, ingest_repo
from safex.core.errors import (
    GitHubAPIError,
    HarnessEnvironmentError,
    LedgerError,
    RepoAcquisitionError,
    ToolchainInvocationError,
)
from safex.models.finding import Finding
from safex.models.fuzz_run import FuzzRunResult
from safex.models.github import GitHubContent, GitHubOwner, GitHubRepo

REPO_URL = "https://github.com/o/counter"


@pytest.fixture
def client():
    from main import app
    return TestClient(app)


def _fuzz_result(**overrides):
    values = dict(
        success=True,
        timed_out=False,
        errors=[],
        execution_time_seconds=2.5,
        exit_code=0,
        project_dir="/tmp/x/fuzz_tests",
        log_path="/tmp/x/fuzz_tests/test_output.log",
        test_file="// harness",
    )
    values.update(overrides)
    return FuzzRunResult(**values)


def _github_repo():
    return GitHubRepo(
        id=1, name="counter", full_name="o/counter", html_url=REPO_URL,
        owner=GitHubOwner(login="o"), created_at="2024-01-01T00:00:00Z",
        updated_at="2024-02-01T00:00:00Z",
    )


# ===================================================================
# Root endpoints
# ===================================================================
def test_hello(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json() == {"message": "Hello world!"}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


# ===================================================================
# POST /api/analyze-code
# ===================================================================
class TestAnalyzeCode:

    @patch("safex.api.analyze_code.analyze_repository")
    @patch("safex.api.analyze_code.acquire_anchor_project", return_value="/tmp/repo")
    def test_returns_bugs(self, mock_acquire, mock_analyze, client):
        mock_analyze.return_value = [
            Finding(description="unused import: `x`", line=3, severity="low",
                    suggested_fix="Remove the unused import", file_path="src/lib.rs", tool="clippy"),
            Finding(description="Missing #[account(signer)] attribute for Auth", line=7,
                    severity="high", suggested_fix="Add #[account(signer)] attribute to the Auth struct"),
        ]

        resp = client.post("/api/analyze-code", json={"repo_url": REPO_URL})

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["message"] == "Analysis completed. Found 2 issues."
        assert data["bugs"][0] == {
            "bug": "unused import: `x`",
            "line": 3,
            "severity": "low",
            "fix": "Remove the unused import",
            "file": "src/lib.rs",
        }
        assert data["bugs"][1]["severity"] == "high"
        mock_analyze.assert_called_once_with("/tmp/repo")

    @patch("safex.api.analyze_code.analyze_repository")
    @patch("safex.api.analyze_code.acquire_anchor_project")
    def test_non_anchor_repo_rejected(self, mock_acquire, mock_analyze, client):
        mock_acquire.side_effect = RepoAcquisitionError("not_expected_project_type", "Repository is not an Anchor project.")

        resp = client.post("/api/analyze-code", json={"repo_url": REPO_URL})

        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert "not an Anchor project" in resp.json()["message"]
        mock_analyze.assert_not_called()

    def test_missing_repo_url(self, client):
        assert client.post("/api/analyze-code", json={}).status_code == 422


# ===================================================================
# POST /api/fuzz-test
# ===================================================================
class TestFuzzTest:

    @patch("safex.api.fuzzing.run_fuzz_test")
    @patch("safex.api.fuzzing.acquire_anchor_project", return_value="/tmp/repo")
    def test_successful_run(self, mock_acquire, mock_run, client):
        mock_run.return_value = _fuzz_result()

        resp = client.post("/api/fuzz-test", json={"repo_url": REPO_URL, "instruction_name": "Increment"})

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["message"] == "Fuzzing tests completed successfully"
        assert data["execution_time_ms"] == 2500
        assert data["test_file"] == "// harness"
        assert data["errors"] is None
        args = mock_run.call_args.args
        assert args[:3] == ("/tmp/repo", "Increment", 120.0)

    @patch("safex.api.fuzzing.run_fuzz_test")
    @patch("safex.api.fuzzing.acquire_anchor_project", return_value="/tmp/repo")
    def test_defaults(self, mock_acquire, mock_run, client):
        mock_run.return_value = _fuzz_result()
        client.post("/api/fuzz-test", json={"repo_url": REPO_URL})
        assert mock_run.call_args.args[1:3] == ("increment", 120.0)

    @patch("safex.api.fuzzing.run_fuzz_test")
    @patch("safex.api.fuzzing.acquire_anchor_project", return_value="/tmp/repo")
    def test_evidence_reported(self, mock_acquire, mock_run, client):
        mock_run.return_value = _fuzz_result(
            success=False, exit_code=101,
            errors=["[increment] Found overflow error: attempt to add with overflow"],
        )
        data = client.post("/api/fuzz-test", json={"repo_url": REPO_URL}).json()
        assert data["success"] is False
        assert data["message"] == "Fuzzing tests found potential issues"
        assert data["errors"] == ["[increment] Found overflow error: attempt to add with overflow"]

    @patch("safex.api.fuzzing.run_fuzz_test")
    @patch("safex.api.fuzzing.acquire_anchor_project", return_value="/tmp/repo")
    def test_timed_out(self, mock_acquire, mock_run, client):
        mock_run.return_value = _fuzz_result(success=False, timed_out=True, exit_code=None)
        data = client.post("/api/fuzz-test", json={"repo_url": REPO_URL, "timeout_seconds": 5}).json()
        assert data["timed_out"] is True
        assert data["message"] == "Fuzzing tests timed out"
        assert mock_run.call_args.args[2] == 5.0

    @patch("safex.api.fuzzing.acquire_anchor_project")
    def test_timeout_above_maximum_rejected(self, mock_acquire, client):
        resp = client.post("/api/fuzz-test", json={"repo_url": REPO_URL, "timeout_seconds": 121})
        assert resp.status_code == 400
        assert resp.json()["message"] == "Timeout cannot exceed 120 seconds"
        mock_acquire.assert_not_called()

    def test_non_positive_timeout_rejected(self, client):
        resp = client.post("/api/fuzz-test", json={"repo_url": REPO_URL, "timeout_seconds": 0})
        assert resp.status_code == 400

    @pytest.mark.parametrize("name", ["../etc", "with space", "1abc", "drop;rm"])
    def test_invalid_instruction_name(self, client, name):
        resp = client.post("/api/fuzz-test", json={"repo_url": REPO_URL, "instruction_name": name})
        assert resp.status_code == 422

    @patch("safex.api.fuzzing.acquire_anchor_project")
    def test_clone_failure(self, mock_acquire, client):
        mock_acquire.side_effect = RepoAcquisitionError("not_found", "Failed to clone repository: not found")
        resp = client.post("/api/fuzz-test", json={"repo_url": REPO_URL})
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    @pytest.mark.parametrize("error, prefix", [
        (HarnessEnvironmentError("disk full"), "Failed to prepare fuzz harness"),
        (ToolchainInvocationError("cargo missing"), "Failed to run fuzzing tests"),
    ])
    @patch("safex.api.fuzzing.run_fuzz_test")
    @patch("safex.api.fuzzing.acquire_anchor_project", return_value="/tmp/repo")
    def test_hard_errors(self, mock_acquire, mock_run, client, error, prefix):
        mock_run.side_effect = error
        resp = client.post("/api/fuzz-test", json={"repo_url": REPO_URL})
        assert resp.status_code == 500
        assert resp.json()["message"].startswith(prefix)


# ===================================================================
# Repository endpoints
# ===================================================================
class TestRepositories:

    @patch("safex.api.repositories.acquire_anchor_project", return_value="/tmp/repo")
    @patch("safex.api.repositories.GitHubClient")
    def test_ingest_anchor_repo(self, mock_client_cls, mock_acquire, client):
        mock_client_cls.return_value.get_repo_from_url = AsyncMock(return_value=_github_repo())

        resp = client.post("/api/ingest-repo", json={"repo_url": REPO_URL})

        data = resp.json()
        assert resp.status_code == 200
        assert data["success"] is True
        assert data["is_anchor_project"] is True
        assert data["repo"]["full_name"] == "o/counter"
        assert mock_acquire.call_args.args[0] == REPO_URL

    @patch("safex.api.repositories.acquire_anchor_project")
    @patch("safex.api.repositories.GitHubClient")
    def test_ingest_non_anchor_repo(self, mock_client_cls, mock_acquire, client):
        mock_client_cls.return_value.get_repo_from_url = AsyncMock(return_value=_github_repo())
        mock_acquire.side_effect = RepoAcquisitionError("not_expected_project_type", "Repository is not an Anchor project.")

        resp = client.post("/api/ingest-repo", json={"repo_url": REPO_URL})

        data = resp.json()
        assert resp.status_code == 400
        assert data["is_anchor_project"] is False
        assert data["repo"]["name"] == "counter"

    @patch("safex.api.repositories.acquire_anchor_project")
    @patch("safex.api.repositories.GitHubClient")
    def test_ingest_github_error(self, mock_client_cls, mock_acquire, client):
        mock_client_cls.return_value.get_repo_from_url = AsyncMock(side_effect=GitHubAPIError("Repository or path not found", 404))

        resp = client.post("/api/ingest-repo", json={"repo_url": REPO_URL})

        assert resp.status_code == 400
        assert resp.json()["success"] is False
        mock_acquire.assert_not_called()

    @patch("safex.api.repositories.GitHubClient")
    def test_repo_contents_error(self, mock_client_cls, client):
        mock_client_cls.return_value.get_repo_contents = AsyncMock(side_effect=GitHubAPIError("Repository or path not found", 404))

        resp = client.post("/api/repo-contents", json={"repo_url": REPO_URL, "path": "programs"})

        assert resp.status_code == 400
        assert resp.json()["path"] == "programs"

    @patch("safex.api.repositories.GitHubClient")
    def test_repo_contents_listing(self, mock_client_cls, client):
        item = GitHubContent(name="lib.rs", path="src/lib.rs", sha="a", content_type="file", url="u")
        mock_client_cls.return_value.get_repo_contents = AsyncMock(return_value=[item])

        resp = client.post("/api/repo-contents", json={"repo_url": REPO_URL})

        assert resp.status_code == 200
        data = resp.json()
        assert data["path"] == ""
        assert data["contents"][0]["type"] == "file"


# ===================================================================
# POST /api/log-report
# ===================================================================
class TestLogReport:

    @patch("safex.api.log_report.ReportLedger")
    def test_logged(self, mock_ledger_cls, client):
        mock_ledger_cls.return_value.log_report = AsyncMock(return_value="5sig")

        resp = client.post("/api/log-report", json={"report_content": ""})

        data = resp.json()
        assert resp.status_code == 200
        assert data["success"] is True
        assert data["transaction_signature"] == "5sig"
        assert data["hash"] == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

    @patch("safex.api.log_report.ReportLedger", side_effect=LedgerError("REPORT_LEDGER_URL is not configured"))
    def test_ledger_not_configured(self, mock_ledger_cls, client):
        resp = client.post("/api/log-report", json={"report_content": "audit"})
        assert resp.status_code == 500
        assert resp.json()["hash"] is not None
        assert "not configured" in resp.json()["message"]


# ===================================================================
# Temporary directory lifecycle
# ===================================================================
@pytest.fixture
def removed_dirs():
    """Records (path, thread) for every TemporaryDirectory the handlers clean up."""
    removed = []
    real_temporary_directory = tempfile.TemporaryDirectory

    class RecordingTemporaryDirectory(real_temporary_directory):
        def cleanup(self):
            removed.append((self.name, threading.current_thread()))
            super().cleanup()

    with patch("tempfile.TemporaryDirectory", RecordingTemporaryDirectory):
        yield removed


class TestWorkDirectoryCleanup:
    """Removing a checkout is blocking disk work and must stay off the event loop."""

    def _assert_removed_in_worker(self, removed):
        assert len(removed) == 1
        path, thread = removed[0]
        assert thread is not threading.main_thread()
        assert not os.path.exists(path)

    @patch("safex.api.fuzzing.KEEP_FUZZ_ARTIFACTS", False)
    @patch("safex.api.fuzzing.run_fuzz_test")
    @patch("safex.api.fuzzing.acquire_anchor_project", return_value="/tmp/repo")
    def test_fuzz_work_dir(self, mock_acquire, mock_run, removed_dirs):
        mock_run.return_value = _fuzz_result()

        response = asyncio.run(fuzz_test(FuzzingRequest(repo_url=REPO_URL)))

        assert response.success is True
        self._assert_removed_in_worker(removed_dirs)
        assert mock_run.call_args.args[3] == removed_dirs[0][0]

    @patch("safex.api.fuzzing.KEEP_FUZZ_ARTIFACTS", False)
    @patch("safex.api.fuzzing.acquire_anchor_project")
    def test_fuzz_work_dir_after_clone_failure(self, mock_acquire, removed_dirs):
        mock_acquire.side_effect = RepoAcquisitionError("not_found", "Failed to clone repository: not found")

        response = asyncio.run(fuzz_test(FuzzingRequest(repo_url=REPO_URL)))

        assert response.status_code == 400
        self._assert_removed_in_worker(removed_dirs)

    @patch("safex.api.analyze_code.analyze_repository", return_value=[])
    @patch("safex.api.analyze_code.acquire_anchor_project", return_value="/tmp/repo")
    def test_analysis_checkout(self, mock_acquire, mock_analyze, removed_dirs):

        response = asyncio.run(analyze_code(CodeAnalysisRequest(repo_url=REPO_URL)))

        assert response.success is True
        self._assert_removed_in_worker(removed_dirs)

    @patch("safex.api.repositories.acquire_anchor_project", return_value="/tmp/repo")
    @patch("safex.api.repositories.GitHubClient")
    def test_ingest_checkout(self, mock_client_cls, mock_acquire, removed_dirs):
        mock_client_cls.return_value.get_repo_from_url = AsyncMock(return_value=_github_repo())

        response = asyncio.run(ingest_repo(RepoIngestionRequest(repo_url=REPO_URL)))

        assert response.is_anchor_project is True
        self._assert_removed_in_worker(removed_dirs)
