"""
Invoice service - invoice lifecycle, review and direct payments.

States: DRAFT, PENDING, APPROVED, PAID, OVERDUE, CANCELLED, REJECTED.

A rejected invoice is never edited. The contractor submits a new revision
which supersedes it (parent link, revision + 1) and the rejected one is
deactivated in the same transaction, so each ticket has exactly one
active invoice.

balance is always amount - paid_amount and is never written.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from jobengine.core.config import settings
from jobengine.core.errors import (
    ConcurrentModificationError,
    DuplicateInvoiceNumberError,
    EngineError,
    InvalidTransitionError,
    NotFoundError,
    TicketNotCompletedError,
    ValidationError,
)
from jobengine.core.structured_logging import build_log_context
from jobengine.db.enums import (
    INVOICEABLE_TICKET_STATUSES,
    PAYABLE_INVOICE_STATUSES,
    UNCANCELLABLE_INVOICE_STATUSES,
    EntityType,
    InvoiceStatus,
    Role,
)
from jobengine.db.models import Invoice, StatusHistory, Ticket
from jobengine.db.types import utcnow
from jobengine.schemas.auth import UserSession
from jobengine.schemas.invoice import DirectPaymentCreate, InvoiceCreate
from jobengine.services import history_service, notification_service, ticket_service, versioning
from jobengine.services.ticket_service import require_admin, require_text
from jobengine.utils.pagination import PaginationParams

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


# =============================================================================
# Helpers
# =============================================================================


def _require_invoice_status(invoice: Invoice, action: str, *allowed: InvoiceStatus) -> None:
    if invoice.status not in {status.value for status in allowed}:
        raise InvalidTransitionError(
            f"Cannot {action} invoice {invoice.invoice_number} in status '{invoice.status}'"
        )


def _apply(
    db: Session,
    invoice: Invoice,
    actor_id: UUID | None,
    values: dict[str, Any],
    *,
    to_status: InvoiceStatus | None = None,
    reason: str | None = None,
    commit: bool = True,
) -> Invoice:
    """Conditional write guarded on the loaded status; history when status changes."""
    from_status = invoice.status
    if to_status is not None:
        values = {**values, "status": to_status.value}
    try:
        versioning.conditional_update(db, invoice, values, expected_status=from_status)
        if to_status is not None and to_status.value != from_status:
            history_service.record_transition(
                db,
                org_id=invoice.organization_id,
                entity_type=EntityType.INVOICE,
                entity_id=invoice.id,
                from_status=from_status,
                to_status=to_status.value,
                changed_by_user_id=actor_id,
                reason=reason,
            )
        if commit:
            db.commit()
    except EngineError:
        if commit:
            db.rollback()
        raise

    if to_status is not None:
        logger.info(
            "Invoice %s: %s -> %s",
            invoice.invoice_number,
            from_status,
            to_status.value,
            extra=build_log_context(
                user_id=actor_id,
                org_id=invoice.organization_id,
                entity_type=EntityType.INVOICE.value,
                entity_id=invoice.id,
                from_status=from_status,
                to_status=to_status.value,
            ),
        )
    return invoice


def _positive_amount(amount: Decimal | None, label: str) -> Decimal:
    if amount is None or amount <= ZERO:
        raise ValidationError(f"{label} must be greater than zero")
    return amount


# =============================================================================
# Queries
# =============================================================================


def get_invoice(db: Session, org_id: UUID, invoice_id: UUID) -> Invoice:
    """Get invoice by id, scoped to organization."""
    invoice = db.scalar(
        select(Invoice).where(Invoice.id == invoice_id, Invoice.organization_id == org_id)
    )
    if not invoice:
        raise NotFoundError("Invoice not found")
    return invoice


def get_invoice_for_actor(db: Session, actor: UserSession, invoice_id: UUID) -> Invoice:
    """Contractors only ever see their own invoices."""
    invoice = get_invoice(db, actor.org_id, invoice_id)
    if actor.role == Role.CONTRACTOR and invoice.contractor_id != actor.user_id:
        raise NotFoundError("Invoice not found")
    return invoice


def get_active_invoice(db: Session, ticket_id: UUID) -> Invoice | None:
    return db.scalar(
        select(Invoice).where(Invoice.ticket_id == ticket_id, Invoice.is_active.is_(True))
    )


def list_invoices(
    db: Session,
    actor: UserSession,
    *,
    status: InvoiceStatus | None = None,
    contractor_id: UUID | None = None,
    ticket_id: UUID | None = None,
    active_only: bool = False,
    pagination: PaginationParams | None = None,
) -> tuple[list[Invoice], int]:
    pagination = pagination or PaginationParams()
    query = select(Invoice).where(Invoice.organization_id == actor.org_id)

    if actor.role == Role.CONTRACTOR:
        query = query.where(Invoice.contractor_id == actor.user_id)
    elif contractor_id:
        query = query.where(Invoice.contractor_id == contractor_id)
    if status:
        query = query.where(Invoice.status == status.value)
    if ticket_id:
        query = query.where(Invoice.ticket_id == ticket_id)
    if active_only:
        query = query.where(Invoice.is_active.is_(True))

    total = db.scalar(select(func.count()).select_from(query.subquery())) or 0
    items = db.scalars(
        query.order_by(Invoice.created_at.desc())
        .offset(pagination.offset)
        .limit(pagination.per_page)
    ).all()
    return list(items), total


def get_invoice_chain(db: Session, actor: UserSession, ticket_id: UUID) -> list[Invoice]:
    """Every revision submitted for a ticket, oldest first."""
    ticket = ticket_service.get_ticket(db, actor.org_id, ticket_id)
    query = select(Invoice).where(
        Invoice.organization_id == actor.org_id, Invoice.ticket_id == ticket.id
    )
    if actor.role == Role.CONTRACTOR:
        query = query.where(Invoice.contractor_id == actor.user_id)
    return list(db.scalars(query.order_by(Invoice.revision_number)))


def get_invoice_history(db: Session, actor: UserSession, invoice_id: UUID) -> list[StatusHistory]:
    invoice = get_invoice_for_actor(db, actor, invoice_id)
    return history_service.list_history(db, actor.org_id, EntityType.INVOICE, invoice.id)


def list_invoiceable_tickets(db: Session, actor: UserSession) -> list[Ticket]:
    """
    Completed tickets the contractor can invoice now.

    A ticket qualifies when it has no active invoice or its active invoice
    was rejected.
    """
    blocking = (
        select(Invoice.id)
        .where(
            Invoice.ticket_id == Ticket.id,
            Invoice.is_active.is_(True),
            Invoice.status != InvoiceStatus.REJECTED.value,
        )
        .exists()
    )
    query = (
        select(Ticket)
        .where(
            Ticket.organization_id == actor.org_id,
            Ticket.assigned_contractor_id == actor.user_id,
            Ticket.status.in_([status.value for status in INVOICEABLE_TICKET_STATUSES]),
            ~blocking,
        )
        .order_by(Ticket.completed_at.desc())
    )
    return list(db.scalars(query))


def get_invoice_summary(
    db: Session, org_id: UUID, contractor_id: UUID | None = None
) -> dict:
    """Counts and totals per status plus outstanding balance."""
    query = select(
        Invoice.status,
        func.count(Invoice.id),
        func.coalesce(func.sum(Invoice.amount), 0),
        func.coalesce(func.sum(Invoice.paid_amount), 0),
    ).where(Invoice.organization_id == org_id)
    if contractor_id:
        query = query.where(Invoice.contractor_id == contractor_id)

    by_status = {
        status.value: {"count": 0, "amount": ZERO} for status in InvoiceStatus
    }
    total_invoiced = ZERO
    total_paid = ZERO
    outstanding = ZERO
    for status, count, amount, paid in db.execute(query.group_by(Invoice.status)):
        amount = Decimal(str(amount))
        paid = Decimal(str(paid))
        by_status[status] = {"count": count, "amount": amount}
        total_paid += paid
        if status in (InvoiceStatus.CANCELLED.value, InvoiceStatus.REJECTED.value):
            continue
        total_invoiced += amount
        if status in {s.value for s in PAYABLE_INVOICE_STATUSES}:
            outstanding += amount - paid

    return {
        "by_status": by_status,
        "total_invoiced": total_invoiced,
        "total_paid": total_paid,
        "outstanding_balance": outstanding,
    }


# =============================================================================
# Submission
# =============================================================================


def submit_invoice(db: Session, actor: UserSession, data: InvoiceCreate) -> Invoice:
    """
    Create a PENDING invoice for a completed ticket.

    Supersedes the ticket's active invoice when that one was rejected.

    Raises:
        TicketNotCompletedError: ticket not COMPLETED/CLOSED
        DuplicateInvoiceNumberError: contractor already used the number
        ValidationError: missing fields, or a live invoice already exists
    """
    ticket = ticket_service.get_ticket(db, actor.org_id, data.ticket_id)
    if actor.role != Role.CONTRACTOR or ticket.assigned_contractor_id != actor.user_id:
        raise InvalidTransitionError("Only the assigned contractor can invoice this ticket")
    if ticket.status not in {status.value for status in INVOICEABLE_TICKET_STATUSES}:
        raise TicketNotCompletedError(
            f"Ticket {ticket.ticket_number} is '{ticket.status}'; invoices require a completed ticket"
        )

    invoice_number = require_text(data.invoice_number, "Invoice number")
    amount = _positive_amount(data.amount, "Invoice amount")
    description = require_text(data.description, "Invoice description")
    file_url = require_text(data.file_url, "Invoice file")

    duplicate = db.scalar(
        select(Invoice.id).where(
            Invoice.contractor_id == actor.user_id,
            Invoice.invoice_number == invoice_number,
        )
    )
    if duplicate:
        raise DuplicateInvoiceNumberError(invoice_number)

    revision = 1
    parent_id = None
    active = get_active_invoice(db, ticket.id)
    if active is not None:
        if active.status != InvoiceStatus.REJECTED.value:
            raise ValidationError(
                f"Ticket already has active invoice {active.invoice_number} ({active.status})"
            )
        revision = active.revision_number + 1
        parent_id = active.id

    admin_id = ticket.assigned_by_user_id
    try:
        if active is not None:
            versioning.conditional_update(
                db,
                active,
                {"is_active": False},
                expected_status=InvoiceStatus.REJECTED.value,
            )

        invoice = Invoice(
            organization_id=actor.org_id,
            ticket_id=ticket.id,
            contractor_id=actor.user_id,
            invoice_number=invoice_number,
            amount=amount,
            paid_amount=ZERO,
            status=InvoiceStatus.PENDING.value,
            hours_worked=data.hours_worked,
            hourly_rate=data.hourly_rate,
            description=description,
            work_description=data.work_description or ticket.work_description,
            notes=data.notes,
            revision_number=revision,
            is_active=True,
            parent_invoice_id=parent_id,
            file_url=file_url,
        )
        db.add(invoice)
        db.flush()
    except IntegrityError:
        db.rollback()
        if db.scalar(
            select(Invoice.id).where(
                Invoice.contractor_id == actor.user_id,
                Invoice.invoice_number == invoice_number,
            )
        ):
            raise DuplicateInvoiceNumberError(invoice_number)
        raise ConcurrentModificationError(
            "Another invoice was submitted for this ticket; reload and retry"
        )
    except EngineError:
        db.rollback()
        raise

    history_service.record_transition(
        db,
        org_id=invoice.organization_id,
        entity_type=EntityType.INVOICE,
        entity_id=invoice.id,
        from_status=None,
        to_status=InvoiceStatus.PENDING.value,
        changed_by_user_id=actor.user_id,
    )
    db.commit()
    db.refresh(invoice)
    logger.info(
        "Invoice %s submitted for ticket %s (revision %s)",
        invoice.invoice_number,
        ticket.ticket_number,
        invoice.revision_number,
    )
    notification_service.notify_invoice_submitted(db, invoice, admin_id)
    return invoice


# =============================================================================
# Review
# =============================================================================


def request_clarification(
    db: Session, actor: UserSession, invoice_id: UUID, text: str
) -> Invoice:
    """Admin asks a question on a PENDING invoice. Status unchanged."""
    require_admin(actor, "request clarification")
    invoice = get_invoice(db, actor.org_id, invoice_id)
    _require_invoice_status(invoice, "request clarification on", InvoiceStatus.PENDING)
    text = require_text(text, "Clarification request")

    _apply(
        db,
        invoice,
        actor.user_id,
        {
            "clarification_request": text,
            "clarification_requested_at": utcnow(),
            "clarification_response": None,
            "clarification_responded_at": None,
        },
    )
    notification_service.notify_clarification_requested(db, invoice)
    return invoice


def respond_to_clarification(
    db: Session, actor: UserSession, invoice_id: UUID, text: str
) -> Invoice:
    """Invoice contractor answers the outstanding question. Status unchanged."""
    invoice = get_invoice_for_actor(db, actor, invoice_id)
    if actor.role != Role.CONTRACTOR or invoice.contractor_id != actor.user_id:
        raise InvalidTransitionError("Only the invoicing contractor can respond")
    if not invoice.clarification_request:
        raise InvalidTransitionError("No clarification has been requested on this invoice")
    text = require_text(text, "Clarification response")

    return _apply(
        db,
        invoice,
        actor.user_id,
        {
            "clarification_response": text,
            "clarification_responded_at": utcnow(),
        },
    )


def approve_invoice(db: Session, actor: UserSession, invoice_id: UUID) -> Invoice:
    """PENDING -> APPROVED (admin)."""
    require_admin(actor, "approve invoices")
    invoice = get_invoice(db, actor.org_id, invoice_id)
    _require_invoice_status(invoice, "approve", InvoiceStatus.PENDING)

    _apply(
        db,
        invoice,
        actor.user_id,
        {"approved_at": utcnow(), "approved_by_user_id": actor.user_id},
        to_status=InvoiceStatus.APPROVED,
    )
    notification_service.notify_invoice_approved(db, invoice)
    return invoice


def reject_invoice(
    db: Session, actor: UserSession, invoice_id: UUID, reason: str
) -> Invoice:
    """PENDING -> REJECTED (admin). The contractor may then resubmit."""
    require_admin(actor, "reject invoices")
    invoice = get_invoice(db, actor.org_id, invoice_id)
    _require_invoice_status(invoice, "reject", InvoiceStatus.PENDING)
    reason = require_text(reason, "Rejection reason")

    _apply(
        db,
        invoice,
        actor.user_id,
        {"rejection_reason": reason, "rejected_at": utcnow()},
        to_status=InvoiceStatus.REJECTED,
        reason=reason,
    )
    notification_service.notify_invoice_rejected(db, invoice)
    return invoice


def cancel_invoice(
    db: Session, actor: UserSession, invoice_id: UUID, reason: str
) -> Invoice:
    """Any status except PAID/CANCELLED -> CANCELLED (admin)."""
    require_admin(actor, "cancel invoices")
    invoice = get_invoice(db, actor.org_id, invoice_id)
    if invoice.status in {status.value for status in UNCANCELLABLE_INVOICE_STATUSES}:
        raise InvalidTransitionError(
            f"Cannot cancel invoice {invoice.invoice_number} in status '{invoice.status}'"
        )
    reason = require_text(reason, "Cancellation reason")

    return _apply(
        db,
        invoice,
        actor.user_id,
        {"cancellation_reason": reason, "cancelled_at": utcnow()},
        to_status=InvoiceStatus.CANCELLED,
        reason=reason,
    )


# =============================================================================
# Payment
# =============================================================================


def record_direct_payment(
    db: Session, actor: UserSession, invoice_id: UUID, data: DirectPaymentCreate
) -> Invoice:
    """
    Record a full or partial payment against one invoice.

    Full settlement moves the invoice to PAID; a partial payment keeps its
    current status and reduces the balance.
    """
    require_admin(actor, "record payments")
    invoice = get_invoice(db, actor.org_id, invoice_id)
    if invoice.status not in {status.value for status in PAYABLE_INVOICE_STATUSES}:
        raise InvalidTransitionError(
            f"Cannot pay invoice {invoice.invoice_number} in status '{invoice.status}'"
        )

    amount = _positive_amount(data.amount, "Payment amount")
    balance = invoice.balance
    if amount > balance:
        raise ValidationError(f"Payment of {amount} exceeds balance {balance}")

    paid_amount = invoice.paid_amount + amount
    values: dict[str, Any] = {"paid_amount": paid_amount}
    if data.proof_of_payment_url:
        values["proof_of_payment_url"] = data.proof_of_payment_url
    if data.payment_reference:
        values["payment_reference"] = data.payment_reference
    if data.notes:
        values["notes"] = data.notes

    to_status = None
    if paid_amount == invoice.amount:
        to_status = InvoiceStatus.PAID
        values["paid_date"] = data.payment_date or utcnow()

    _apply(db, invoice, actor.user_id, values, to_status=to_status)
    logger.info(
        "Recorded payment of %s on invoice %s (balance %s)",
        amount,
        invoice.invoice_number,
        invoice.balance,
    )
    notification_service.notify_payment_made(
        db,
        org_id=invoice.organization_id,
        contractor_id=invoice.contractor_id,
        amount=amount,
        entity_type=EntityType.INVOICE,
        entity_id=invoice.id,
        reference=data.payment_reference,
    )
    return invoice


# =============================================================================
# Scheduled
# =============================================================================


def mark_overdue(
    db: Session,
    now: datetime | None = None,
    terms_days: int | None = None,
) -> int:
    """
    Flag APPROVED invoices unpaid past the payment terms as OVERDUE.

    Runs across all organizations. Idempotent: invoices already moved on
    by another writer are skipped. Returns the number flagged.
    """
    now = now or utcnow()
    terms = settings.INVOICE_PAYMENT_TERMS_DAYS if terms_days is None else terms_days
    cutoff = now - timedelta(days=terms)

    candidates = db.scalars(
        select(Invoice).where(
            Invoice.status == InvoiceStatus.APPROVED.value,
            Invoice.approved_at.is_not(None),
            Invoice.approved_at <= cutoff,
        )
    ).all()

    flagged = 0
    for invoice in candidates:
        try:
            _apply(
                db,
                invoice,
                None,
                {},
                to_status=InvoiceStatus.OVERDUE,
                reason=f"Unpaid {terms} days after approval",
                commit=False,
            )
        except ConcurrentModificationError:
            logger.info("Invoice %s changed during overdue sweep; skipped", invoice.id)
            continue
        flagged += 1

    db.commit()
    logger.info("Overdue sweep flagged %s invoice(s)", flagged)
    return flagged
