"""
Payment service - settle one or more approved invoices in a single batch.

Batch creation is all-or-nothing: every member is validated first, then the
batch row, its ordered members and every invoice's PAID transition are
written in one transaction. Any failure rolls the whole unit back.
"""

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from jobengine.core.errors import (
    ConcurrentModificationError,
    EngineError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from jobengine.db.enums import PAYABLE_INVOICE_STATUSES, EntityType, InvoiceStatus, Role
from jobengine.db.models import Invoice, PaymentBatch, PaymentBatchInvoice
from jobengine.db.types import utcnow
from jobengine.schemas.auth import UserSession
from jobengine.schemas.payment import PaymentBatchCreate
from jobengine.services import history_service, notification_service, versioning
from jobengine.services.ticket_service import require_admin, require_text

logger = logging.getLogger(__name__)


def _next_batch_number(db: Session, org_id: UUID, now: datetime) -> str:
    """PBYYYYMMDDNNN, sequential per organization per day."""
    prefix = f"PB{now:%Y%m%d}"
    existing = db.scalar(
        select(func.count(PaymentBatch.id)).where(
            PaymentBatch.organization_id == org_id,
            PaymentBatch.batch_number.like(f"{prefix}%"),
        )
    ) or 0
    return f"{prefix}{existing + 1:03d}"


def _load_members(
    db: Session, org_id: UUID, invoice_ids: list[UUID], contractor_id: UUID | None
) -> list[Invoice]:
    """Load and validate every invoice, preserving request order."""
    if not invoice_ids:
        raise ValidationError("At least one invoice is required")
    if len(set(invoice_ids)) != len(invoice_ids):
        raise ValidationError("Duplicate invoices in payment batch")

    found = {
        invoice.id: invoice
        for invoice in db.scalars(
            select(Invoice).where(
                Invoice.organization_id == org_id, Invoice.id.in_(invoice_ids)
            )
        )
    }
    missing = [str(invoice_id) for invoice_id in invoice_ids if invoice_id not in found]
    if missing:
        raise NotFoundError(f"Invoices not found: {', '.join(missing)}")

    invoices = [found[invoice_id] for invoice_id in invoice_ids]
    payable = {status.value for status in PAYABLE_INVOICE_STATUSES}
    for invoice in invoices:
        if invoice.status not in payable:
            raise InvalidTransitionError(
                f"Invoice {invoice.invoice_number} is '{invoice.status}'; only approved invoices can be paid"
            )
        if contractor_id and invoice.contractor_id != contractor_id:
            raise ValidationError(
                f"Invoice {invoice.invoice_number} belongs to a different contractor"
            )
    return invoices


def create_batch(db: Session, actor: UserSession, data: PaymentBatchCreate) -> PaymentBatch:
    """
    Pay every listed invoice in full against one proof of payment.

    Raises:
        ValidationError: empty/duplicate ids, missing proof, contractor mismatch
        NotFoundError: an invoice is absent from the organization
        InvalidTransitionError: an invoice is not payable
        ConcurrentModificationError: an invoice changed while paying
    """
    require_admin(actor, "create payment batches")
    proof_url = require_text(data.proof_of_payment_url, "Proof of payment")
    invoices = _load_members(db, actor.org_id, data.invoice_ids, data.contractor_id)

    now = utcnow()
    total = sum((invoice.amount for invoice in invoices), Decimal("0.00"))
    batch = PaymentBatch(
        organization_id=actor.org_id,
        batch_number=_next_batch_number(db, actor.org_id, now),
        total_amount=total,
        proof_of_payment_url=proof_url,
        payment_reference=data.payment_reference,
        payment_date=data.payment_date,
        notes=data.notes,
        processed_by_user_id=actor.user_id,
        created_at=now,
    )
    batch.members = [
        PaymentBatchInvoice(invoice_id=invoice.id, position=position, amount=invoice.amount)
        for position, invoice in enumerate(invoices)
    ]

    try:
        db.add(batch)
        db.flush()
        for invoice in invoices:
            from_status = invoice.status
            versioning.conditional_update(
                db,
                invoice,
                {
                    "paid_amount": invoice.amount,
                    "status": InvoiceStatus.PAID.value,
                    "paid_date": data.payment_date,
                    "payment_batch_id": batch.id,
                    "proof_of_payment_url": proof_url,
                    "payment_reference": data.payment_reference or batch.batch_number,
                },
                expected_status=from_status,
            )
            history_service.record_transition(
                db,
                org_id=invoice.organization_id,
                entity_type=EntityType.INVOICE,
                entity_id=invoice.id,
                from_status=from_status,
                to_status=InvoiceStatus.PAID.value,
                changed_by_user_id=actor.user_id,
                reason=f"Payment batch {batch.batch_number}",
            )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConcurrentModificationError("Batch number already taken; retry")
    except EngineError:
        db.rollback()
        raise

    db.refresh(batch)
    logger.info(
        "Payment batch %s paid %s invoice(s), total %s",
        batch.batch_number,
        len(invoices),
        total,
    )

    per_contractor: dict[UUID, Decimal] = defaultdict(lambda: Decimal("0.00"))
    for member in batch.members:
        per_contractor[member.invoice.contractor_id] += member.amount
    for contractor_id, amount in per_contractor.items():
        notification_service.notify_payment_made(
            db,
            org_id=batch.organization_id,
            contractor_id=contractor_id,
            amount=amount,
            entity_type=EntityType.PAYMENT_BATCH,
            entity_id=batch.id,
            reference=batch.batch_number,
        )
    return batch


def get_batch(db: Session, actor: UserSession, batch_id: UUID) -> PaymentBatch:
    """Admins see any batch in the organization; contractors only batches paying them."""
    query = (
        select(PaymentBatch)
        .options(selectinload(PaymentBatch.members))
        .where(PaymentBatch.id == batch_id, PaymentBatch.organization_id == actor.org_id)
    )
    if actor.role == Role.CONTRACTOR:
        query = query.where(_contains_contractor(actor.user_id))
    batch = db.scalar(query)
    if not batch:
        raise NotFoundError("Payment batch not found")
    return batch


def list_batches(db: Session, actor: UserSession, limit: int = 50, offset: int = 0) -> list[PaymentBatch]:
    query = (
        select(PaymentBatch)
        .options(selectinload(PaymentBatch.members))
        .where(PaymentBatch.organization_id == actor.org_id)
    )
    if actor.role == Role.CONTRACTOR:
        query = query.where(_contains_contractor(actor.user_id))
    query = query.order_by(PaymentBatch.created_at.desc()).offset(offset).limit(limit)
    return list(db.scalars(query))


def _contains_contractor(contractor_id: UUID):
    return (
        select(PaymentBatchInvoice.id)
        .join(Invoice, Invoice.id == PaymentBatchInvoice.invoice_id)
        .where(
            PaymentBatchInvoice.batch_id == PaymentBatch.id,
            Invoice.contractor_id == contractor_id,
        )
        .exists()
    )
