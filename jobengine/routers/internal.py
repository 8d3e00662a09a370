"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header.
Call from an external scheduler at any cadence; the sweeps are idempotent.
"""

from fastapi import APIRouter, Header, HTTPException
from pydantic import BaseModel

from jobengine.core.config import settings
from jobengine.db.session import SessionLocal
from jobengine.services import invoice_service


router = APIRouter(prefix="/internal/scheduled", tags=["internal"])


def verify_internal_secret(x_internal_secret: str = Header(...)):
    """Verify the internal secret header."""
    expected = settings.INTERNAL_SECRET
    if not expected:
        raise HTTPException(status_code=501, detail="INTERNAL_SECRET not configured")
    if x_internal_secret != expected:
        raise HTTPException(status_code=403, detail="Invalid internal secret")


class OverdueSweepResponse(BaseModel):
    invoices_flagged: int


@router.post("/invoices/mark-overdue", response_model=OverdueSweepResponse)
def mark_overdue_invoices(x_internal_secret: str = Header(...)):
    """Flag APPROVED invoices unpaid past INVOICE_PAYMENT_TERMS_DAYS as OVERDUE."""
    verify_internal_secret(x_internal_secret)

    with SessionLocal() as db:
        flagged = invoice_service.mark_overdue(db)

    return OverdueSweepResponse(invoices_flagged=flagged)
