"""Invoice API endpoints - submission, review and direct payment."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from jobengine.core.deps import get_db, require_csrf_header, require_roles
from jobengine.db.enums import InvoiceStatus, Role
from jobengine.schemas.auth import UserSession
from jobengine.schemas.common import ReasonRequest, StatusHistoryRead
from jobengine.schemas.invoice import (
    ClarificationText,
    DirectPaymentCreate,
    InvoiceCreate,
    InvoiceListResponse,
    InvoiceRead,
    InvoiceSummary,
)
from jobengine.schemas.ticket import TicketRead
from jobengine.services import invoice_service
from jobengine.utils.pagination import PaginationParams, get_pagination, page_count

router = APIRouter()

admin_only = require_roles([Role.ADMIN])
contractor_only = require_roles([Role.CONTRACTOR])
admin_or_contractor = require_roles([Role.ADMIN, Role.CONTRACTOR])


# =============================================================================
# Read
# =============================================================================


@router.get("", response_model=InvoiceListResponse)
def list_invoices(
    status_filter: InvoiceStatus | None = Query(None, alias="status"),
    contractor_id: UUID | None = None,
    ticket_id: UUID | None = None,
    active_only: bool = False,
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(admin_or_contractor),
    db: Session = Depends(get_db),
):
    """Admins see the organization; contractors their own invoices."""
    items, total = invoice_service.list_invoices(
        db,
        session,
        status=status_filter,
        contractor_id=contractor_id,
        ticket_id=ticket_id,
        active_only=active_only,
        pagination=pagination,
    )
    return InvoiceListResponse(
        items=[InvoiceRead.model_validate(i) for i in items],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=page_count(total, pagination.per_page),
    )


@router.get("/summary", response_model=InvoiceSummary)
def get_invoice_summary(
    contractor_id: UUID | None = None,
    session: UserSession = Depends(admin_or_contractor),
    db: Session = Depends(get_db),
):
    if session.role == Role.CONTRACTOR:
        contractor_id = session.user_id
    return invoice_service.get_invoice_summary(db, session.org_id, contractor_id)


@router.get("/invoiceable-tickets", response_model=list[TicketRead])
def list_invoiceable_tickets(
    session: UserSession = Depends(contractor_only),
    db: Session = Depends(get_db),
):
    """Completed tickets with no live invoice."""
    return invoice_service.list_invoiceable_tickets(db, session)


@router.get("/by-ticket/{ticket_id}", response_model=list[InvoiceRead])
def get_invoice_chain(
    ticket_id: UUID,
    session: UserSession = Depends(admin_or_contractor),
    db: Session = Depends(get_db),
):
    """All revisions for a ticket, oldest first."""
    return invoice_service.get_invoice_chain(db, session, ticket_id)


@router.get("/{invoice_id}", response_model=InvoiceRead)
def get_invoice(
    invoice_id: UUID,
    session: UserSession = Depends(admin_or_contractor),
    db: Session = Depends(get_db),
):
    return invoice_service.get_invoice_for_actor(db, session, invoice_id)


@router.get("/{invoice_id}/history", response_model=list[StatusHistoryRead])
def get_invoice_history(
    invoice_id: UUID,
    session: UserSession = Depends(admin_or_contractor),
    db: Session = Depends(get_db),
):
    return invoice_service.get_invoice_history(db, session, invoice_id)


# =============================================================================
# Contractor
# =============================================================================


@router.post(
    "",
    response_model=InvoiceRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def submit_invoice(
    data: InvoiceCreate,
    session: UserSession = Depends(contractor_only),
    db: Session = Depends(get_db),
):
    """Submit (or resubmit after rejection) the invoice for a completed ticket."""
    return invoice_service.submit_invoice(db, session, data)


@router.post(
    "/{invoice_id}/clarification-response",
    response_model=InvoiceRead,
    dependencies=[Depends(require_csrf_header)],
)
def respond_to_clarification(
    invoice_id: UUID,
    data: ClarificationText,
    session: UserSession = Depends(contractor_only),
    db: Session = Depends(get_db),
):
    return invoice_service.respond_to_clarification(db, session, invoice_id, data.text)


# =============================================================================
# Admin
# =============================================================================


@router.post(
    "/{invoice_id}/clarification",
    response_model=InvoiceRead,
    dependencies=[Depends(require_csrf_header)],
)
def request_clarification(
    invoice_id: UUID,
    data: ClarificationText,
    session: UserSession = Depends(admin_only),
    db: Session = Depends(get_db),
):
    return invoice_service.request_clarification(db, session, invoice_id, data.text)


@router.post(
    "/{invoice_id}/approve",
    response_model=InvoiceRead,
    dependencies=[Depends(require_csrf_header)],
)
def approve_invoice(
    invoice_id: UUID,
    session: UserSession = Depends(admin_only),
    db: Session = Depends(get_db),
):
    return invoice_service.approve_invoice(db, session, invoice_id)


@router.post(
    "/{invoice_id}/reject",
    response_model=InvoiceRead,
    dependencies=[Depends(require_csrf_header)],
)
def reject_invoice(
    invoice_id: UUID,
    data: ReasonRequest,
    session: UserSession = Depends(admin_only),
    db: Session = Depends(get_db),
):
    return invoice_service.reject_invoice(db, session, invoice_id, data.reason)


@router.post(
    "/{invoice_id}/payments",
    response_model=InvoiceRead,
    dependencies=[Depends(require_csrf_header)],
)
def record_direct_payment(
    invoice_id: UUID,
    data: DirectPaymentCreate,
    session: UserSession = Depends(admin_only),
    db: Session = Depends(get_db),
):
    """Full or partial payment of a single approved invoice."""
    return invoice_service.record_direct_payment(db, session, invoice_id, data)


@router.post(
    "/{invoice_id}/cancel",
    response_model=InvoiceRead,
    dependencies=[Depends(require_csrf_header)],
)
def cancel_invoice(
    invoice_id: UUID,
    data: ReasonRequest,
    session: UserSession = Depends(admin_only),
    db: Session = Depends(get_db),
):
    return invoice_service.cancel_invoice(db, session, invoice_id, data.reason)
