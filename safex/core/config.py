"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Environment Variables:
    GITHUB_TOKEN              — Optional token for GitHub API calls and private clones
    PORT                      — HTTP port for the API server (default: 8080)
    CARGO_BIN                 — cargo executable used for clippy and harness runs
    LINTER_TIMEOUT            — Max seconds for one `cargo clippy` run (default: 300)
    FUZZ_DEFAULT_TIMEOUT      — Fuzz budget when the request omits one (default: 120)
    FUZZ_MAX_TIMEOUT          — Largest fuzz budget a request may ask for (default: 120)
    DEFAULT_INSTRUCTION       — Instruction fuzzed when the request names none (default: increment)
    SIGNER_RULE_STRICT        — Scope the signer attribute check per struct (default: false)
    KEEP_FUZZ_ARTIFACTS       — Leave fuzz work directories on disk (default: false)
    FUZZ_SANDBOX              — "local" runs cargo on the host, "docker" in a container
    DOCKER_IMAGE_RUST         — Image used when FUZZ_SANDBOX=docker
    REPORT_LEDGER_URL         — Attestation relay that records report hashes on-chain
    REPORT_LOGGER_PROGRAM_ID  — Program the relay writes report hashes to
    LOG_DIR                   — Directory for daily log files (default: logs)
    CORS_ORIGINS              — Comma-separated origins allowed to call the API

Fuzz Budget Philosophy:
    The budget is a hard deadline. The harness process is killed when it
    runs past it and the run is reported as timed out. A budget above
    FUZZ_MAX_TIMEOUT is rejected at the API layer, never clamped.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


GITHUB_TOKEN = os.getenv("GITHUB_TOKEN")
PORT = int(os.getenv("PORT", 8080))

# Toolchain
CARGO_BIN = os.getenv("CARGO_BIN", "cargo")
LINTER_TIMEOUT = int(os.getenv("LINTER_TIMEOUT", 300))

# Fuzz budgets in seconds
FUZZ_DEFAULT_TIMEOUT = int(os.getenv("FUZZ_DEFAULT_TIMEOUT", 120))
FUZZ_MAX_TIMEOUT = int(os.getenv("FUZZ_MAX_TIMEOUT", 120))
DEFAULT_INSTRUCTION = os.getenv("DEFAULT_INSTRUCTION", "increment")

# Heuristic rules
SIGNER_RULE_STRICT = _env_flag("SIGNER_RULE_STRICT")

# Fuzz artifacts
KEEP_FUZZ_ARTIFACTS = _env_flag("KEEP_FUZZ_ARTIFACTS")

# Sandbox: "local" or "docker"
FUZZ_SANDBOX = os.getenv("FUZZ_SANDBOX", "local").strip().lower()
DOCKER_IMAGE_RUST = os.getenv("DOCKER_IMAGE_RUST", "rust:1.77-slim")

# Report ledger
REPORT_LEDGER_URL = os.getenv("REPORT_LEDGER_URL", "")
REPORT_LOGGER_PROGRAM_ID = os.getenv(
    "REPORT_LOGGER_PROGRAM_ID", "4L6BwTs3J5deHpTLSHGPZKQKn9uhLFMKnKjhjqeobQ26"
)

# Logging
LOG_DIR = os.getenv("LOG_DIR", "logs")

# CORS: the dashboard runs on port 3000 or 3001 in development
CORS_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", "http://localhost:3000,http://localhost:3001"
    ).split(",")
    if origin.strip()
]
