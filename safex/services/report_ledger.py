"""
Report Ledger
=============
Tamper-evident logging of audit reports.

The service hashes the report text (SHA-256) and hands the digest to an
attestation relay, which writes it to the report-logger program and
returns the transaction signature. Signing keys stay with the relay.

Rules:
    - Hash the exact UTF-8 bytes of the report, nothing else.
    - Deterministic: same report text → same hash.
"""
import hashlib
import logging
from typing import Optional

import httpx

from safex.core.config import REPORT_LEDGER_URL, REPORT_LOGGER_PROGRAM_ID
from safex.core.errors import LedgerError

logger = logging.getLogger(__name__)


def compute_report_hash(report_content: str) -> str:
    """Hex SHA-256 digest of the report text."""
    return hashlib.sha256(report_content.encode("utf-8")).hexdigest()


class ReportLedger:
    """Client for the attestation relay."""

    def __init__(
        self,
        relay_url: str = REPORT_LEDGER_URL,
        program_id: str = REPORT_LOGGER_PROGRAM_ID,
        timeout: float = 30.0,
    ) -> None:
        if not relay_url:
            raise LedgerError("REPORT_LEDGER_URL is not configured")
        self.relay_url = relay_url
        self.program_id = program_id
        self.timeout = timeout

    async def log_report(self, report_hash: str) -> str:
        """Submit a report hash; return the transaction signature."""
        payload = {"hash": report_hash, "program_id": self.program_id}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.relay_url, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            raise LedgerError(
                f"Ledger relay rejected the report: {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise LedgerError(f"Ledger relay unreachable: {exc}") from exc

        signature: Optional[str] = data.get("signature") if isinstance(data, dict) else None
        if not signature:
            raise LedgerError("Ledger relay returned no transaction signature")

        logger.info("Report %s logged with signature %s", report_hash[:16], signature)
        return signature
