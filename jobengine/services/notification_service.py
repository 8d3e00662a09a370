"""
Notification service - in-app notifications for engine events.

Triggers are called by domain services AFTER their state change has been
committed. A failure here is logged and rolled back on its own; it never
undoes the change it describes.
"""

import logging
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from jobengine.db.enums import EntityType, NotificationType
from jobengine.db.models import Invoice, Notification, Rating, Ticket
from jobengine.db.types import utcnow

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    org_id: UUID,
    user_id: UUID,
    type: NotificationType,
    title: str,
    body: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[UUID] = None,
) -> Notification:
    """Create and commit a notification."""
    notification = Notification(
        organization_id=org_id,
        user_id=user_id,
        type=type.value,
        title=title,
        body=body,
        entity_type=entity_type,
        entity_id=entity_id,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def get_notifications(
    db: Session,
    user_id: UUID,
    org_id: UUID,
    unread_only: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> list[Notification]:
    """Get notifications for user."""
    query = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.organization_id == org_id,
    )

    if unread_only:
        query = query.filter(Notification.read_at.is_(None))

    return query.order_by(Notification.created_at.desc()).offset(offset).limit(limit).all()


def get_unread_count(db: Session, user_id: UUID, org_id: UUID) -> int:
    """Get count of unread notifications."""
    return db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.organization_id == org_id,
        Notification.read_at.is_(None),
    ).count()


def mark_read(
    db: Session,
    notification_id: UUID,
    user_id: UUID,
    org_id: UUID,
) -> Optional[Notification]:
    """Mark a notification as read (scoped by org for tenant isolation)."""
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id,
        Notification.organization_id == org_id,
    ).first()

    if notification and not notification.read_at:
        notification.read_at = utcnow()
        db.commit()
        db.refresh(notification)

    return notification


def mark_all_read(db: Session, user_id: UUID, org_id: UUID) -> int:
    """Mark all notifications as read. Returns count updated."""
    count = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.organization_id == org_id,
        Notification.read_at.is_(None),
    ).update({"read_at": utcnow()}, synchronize_session=False)
    db.commit()
    return count


# =============================================================================
# Notification Triggers (called from domain services after commit)
# =============================================================================


def _dispatch(db: Session, event: str, send: Callable[[], object]) -> None:
    try:
        send()
    except Exception:
        logger.exception("Failed to record %s notification", event)
        db.rollback()


def notify_ticket_assigned(db: Session, ticket: Ticket) -> None:
    """Notify the contractor a ticket was assigned to them."""
    if not ticket.assigned_contractor_id:
        return
    _dispatch(db, "ticket_assigned", lambda: create_notification(
        db=db,
        org_id=ticket.organization_id,
        user_id=ticket.assigned_contractor_id,
        type=NotificationType.TICKET_ASSIGNED,
        title=f"Ticket {ticket.ticket_number} assigned to you",
        body=ticket.title,
        entity_type=EntityType.TICKET.value,
        entity_id=ticket.id,
    ))


def notify_job_declined(db: Session, ticket: Ticket, admin_id: UUID | None, reason: str) -> None:
    """Notify the assigning admin that the contractor declined."""
    if not admin_id:
        return
    _dispatch(db, "job_declined", lambda: create_notification(
        db=db,
        org_id=ticket.organization_id,
        user_id=admin_id,
        type=NotificationType.JOB_DECLINED,
        title=f"Ticket {ticket.ticket_number} declined by contractor",
        body=reason,
        entity_type=EntityType.TICKET.value,
        entity_id=ticket.id,
    ))


def notify_work_description_submitted(db: Session, ticket: Ticket) -> None:
    _dispatch(db, "work_description_submitted", lambda: create_notification(
        db=db,
        org_id=ticket.organization_id,
        user_id=ticket.requested_by_user_id,
        type=NotificationType.WORK_DESCRIPTION_SUBMITTED,
        title=f"Work description ready for ticket {ticket.ticket_number}",
        body=ticket.work_description,
        entity_type=EntityType.TICKET.value,
        entity_id=ticket.id,
    ))


def notify_work_rejected(db: Session, ticket: Ticket, contractor_id: UUID, reason: str) -> None:
    """Report the rejection reason back to the contractor."""
    _dispatch(db, "work_rejected", lambda: create_notification(
        db=db,
        org_id=ticket.organization_id,
        user_id=contractor_id,
        type=NotificationType.WORK_REJECTED,
        title=f"Work description rejected for ticket {ticket.ticket_number}",
        body=reason,
        entity_type=EntityType.TICKET.value,
        entity_id=ticket.id,
    ))


def notify_work_approved(db: Session, ticket: Ticket, contractor_id: UUID) -> None:
    _dispatch(db, "work_approved", lambda: create_notification(
        db=db,
        org_id=ticket.organization_id,
        user_id=contractor_id,
        type=NotificationType.WORK_APPROVED,
        title=f"Work approved for ticket {ticket.ticket_number}",
        body="You can now submit your invoice.",
        entity_type=EntityType.TICKET.value,
        entity_id=ticket.id,
    ))


def notify_invoice_submitted(db: Session, invoice: Invoice, admin_id: UUID | None) -> None:
    """Notify the admin who assigned the ticket."""
    if not admin_id:
        return
    _dispatch(db, "invoice_submitted", lambda: create_notification(
        db=db,
        org_id=invoice.organization_id,
        user_id=admin_id,
        type=NotificationType.INVOICE_SUBMITTED,
        title=f"Invoice {invoice.invoice_number} submitted",
        body=f"Amount {invoice.amount}",
        entity_type=EntityType.INVOICE.value,
        entity_id=invoice.id,
    ))


def notify_invoice_approved(db: Session, invoice: Invoice) -> None:
    _dispatch(db, "invoice_approved", lambda: create_notification(
        db=db,
        org_id=invoice.organization_id,
        user_id=invoice.contractor_id,
        type=NotificationType.INVOICE_APPROVED,
        title=f"Invoice {invoice.invoice_number} approved",
        entity_type=EntityType.INVOICE.value,
        entity_id=invoice.id,
    ))


def notify_invoice_rejected(db: Session, invoice: Invoice) -> None:
    _dispatch(db, "invoice_rejected", lambda: create_notification(
        db=db,
        org_id=invoice.organization_id,
        user_id=invoice.contractor_id,
        type=NotificationType.INVOICE_REJECTED,
        title=f"Invoice {invoice.invoice_number} rejected",
        body=invoice.rejection_reason,
        entity_type=EntityType.INVOICE.value,
        entity_id=invoice.id,
    ))


def notify_clarification_requested(db: Session, invoice: Invoice) -> None:
    _dispatch(db, "clarification_requested", lambda: create_notification(
        db=db,
        org_id=invoice.organization_id,
        user_id=invoice.contractor_id,
        type=NotificationType.CLARIFICATION_REQUESTED,
        title=f"Clarification requested on invoice {invoice.invoice_number}",
        body=invoice.clarification_request,
        entity_type=EntityType.INVOICE.value,
        entity_id=invoice.id,
    ))


def notify_payment_made(
    db: Session,
    org_id: UUID,
    contractor_id: UUID,
    amount: Decimal,
    entity_type: EntityType,
    entity_id: UUID,
    reference: str | None = None,
) -> None:
    body = f"Payment of {amount} recorded"
    if reference:
        body = f"{body} (ref {reference})"
    _dispatch(db, "payment_made", lambda: create_notification(
        db=db,
        org_id=org_id,
        user_id=contractor_id,
        type=NotificationType.PAYMENT_MADE,
        title="Payment received",
        body=body,
        entity_type=entity_type.value,
        entity_id=entity_id,
    ))


def notify_rating_received(db: Session, rating: Rating) -> None:
    _dispatch(db, "rating_received", lambda: create_notification(
        db=db,
        org_id=rating.organization_id,
        user_id=rating.contractor_id,
        type=NotificationType.RATING_RECEIVED,
        title=f"New rating: {rating.overall_stars} stars",
        body=rating.comment,
        entity_type=EntityType.RATING.value,
        entity_id=rating.id,
    ))
