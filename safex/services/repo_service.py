"""
Repo Service
============
Clones a remote repository into a caller-owned directory and checks that
it is an Anchor project.

Philosophy:
    - One fresh clone per request, into a directory the caller owns
      (usually a TemporaryDirectory). Nothing is reused across requests.
    - Shallow clone: only the working tree is needed.
    - Only https:// URLs are cloned. Local paths, file://, ssh and
      option-looking arguments never reach git.
    - Failures are classified so the API can tell "not found" from
      "needs auth" from "network down".
"""
import logging
import os
import subprocess

from safex.core.errors import RepoAcquisitionError
from safex.executor.project_detector import is_anchor_project

logger = logging.getLogger(__name__)

CLONE_TIMEOUT = 300
ALLOWED_URL_PREFIX = "https://"

# git stderr fragment → failure kind (first match wins)
_CLONE_FAILURES: list[tuple[str, str]] = [
    ("not found", "not_found"),
    ("does not exist", "not_found"),
    ("authentication failed", "auth_required"),
    ("could not read username", "auth_required"),
    ("permission denied", "auth_required"),
    ("could not resolve host", "network_failure"),
    ("unable to access", "network_failure"),
    ("connection timed out", "network_failure"),
]


def classify_clone_failure(stderr: str) -> str:
    lowered = stderr.lower()
    for fragment, kind in _CLONE_FAILURES:
        if fragment in lowered:
            return kind
    return "network_failure"


def clone_repository(repo_url: str, dest_path: str, github_token: str = "") -> str:
    """
    Clone a repository into ``dest_path``.

    Parameters
    ----------
    repo_url : str
        The repository URL to clone.
    dest_path : str
        Target directory; must not exist or be empty.
    github_token : str
        Optional GitHub token for private repos.

    Returns
    -------
    str
        Absolute path to the cloned repository.

    Raises
    ------
    RepoAcquisitionError
        Clone failed or the URL is not an https:// URL; ``kind`` says why.
    """
    if not repo_url.startswith(ALLOWED_URL_PREFIX):
        logger.warning("Refusing to clone non-https URL: %s", repo_url)
        raise RepoAcquisitionError("not_found", "Only https:// repository URLs are supported")

    dest_path = os.path.abspath(dest_path)
    logger.info("Cloning %s into %s", repo_url, dest_path)

    auth_url = repo_url
    if github_token and "github.com" in repo_url:
        auth_url = repo_url.replace("https://", f"https://x-access-token:{github_token}@", 1)

    try:
        subprocess.run(
            ["git", "clone", "--depth", "1", "--", auth_url, dest_path],
            check=True,
            capture_output=True,
            text=True,
            timeout=CLONE_TIMEOUT,
            env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
        )
    except FileNotFoundError as exc:
        raise RepoAcquisitionError("network_failure", "git is not installed") from exc
    except subprocess.TimeoutExpired as exc:
        raise RepoAcquisitionError("network_failure", f"Cloning timed out after {CLONE_TIMEOUT}s") from exc
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").replace(github_token, "***") if github_token else (e.stderr or "")
        logger.error("Failed to clone repository: %s", stderr.strip())
        raise RepoAcquisitionError(classify_clone_failure(stderr), f"Failed to clone repository: {stderr.strip()}") from e

    logger.info("Successfully cloned repository to %s", dest_path)
    return dest_path


def acquire_anchor_project(repo_url: str, dest_path: str, github_token: str = "") -> str:
    """Clone and require an anchor-lang dependency somewhere in the checkout."""
    path = clone_repository(repo_url, dest_path, github_token)
    if not is_anchor_project(path):
        raise RepoAcquisitionError(
            "not_expected_project_type",
            "Repository is not an Anchor project. Please provide a valid Solana Anchor project.",
        )
    return path
