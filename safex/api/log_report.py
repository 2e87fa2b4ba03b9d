"""
POST /api/log-report
Hashes an audit report and records the hash through the report ledger.
"""
import logging
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from safex.core.errors import LedgerError
from safex.services.report_ledger import ReportLedger, compute_report_hash

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Reports"])


class ReportLogRequest(BaseModel):
    report_content: str


class ReportLogResponse(BaseModel):
    success: bool
    message: str
    transaction_signature: Optional[str] = None
    hash: Optional[str] = None


@router.post("/log-report", response_model=ReportLogResponse)
async def log_report(request: ReportLogRequest):
    report_hash = compute_report_hash(request.report_content)
    logger.info("[API] Logging report %s", report_hash[:16])

    try:
        ledger = ReportLedger()
    except LedgerError as exc:
        body = ReportLogResponse(
            success=False,
            message=f"Failed to initialize report logger: {exc}",
            hash=report_hash,
        )
        return JSONResponse(status_code=500, content=body.model_dump())

    try:
        signature = await ledger.log_report(report_hash)
    except LedgerError as exc:
        logger.error("[API] Report logging failed: %s", exc)
        body = ReportLogResponse(success=False, message=f"Failed to log report: {exc}", hash=report_hash)
        return JSONResponse(status_code=500, content=body.model_dump())

    return ReportLogResponse(
        success=True,
        message="Report successfully logged to Solana blockchain",
        transaction_signature=signature,
        hash=report_hash,
    )
