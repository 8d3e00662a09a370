"""
Work-description handshake between contractor and requester.

AWAITING_DESCRIPTION -> AWAITING_WORK_APPROVAL -> COMPLETED, with
rejection looping back to AWAITING_DESCRIPTION as many times as needed.
Only the requester's approval completes the ticket.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from jobengine.db.enums import TicketStatus
from jobengine.db.models import Ticket
from jobengine.schemas.auth import UserSession
from jobengine.services import notification_service
from jobengine.services.ticket_service import (
    apply_transition,
    get_ticket,
    lifecycle_stamps,
    require_assignee,
    require_requester,
    require_status,
    require_text,
)


def submit_work_description(
    db: Session, actor: UserSession, ticket_id: UUID, description: str
) -> Ticket:
    """
    Contractor describes the work done.

    Each submission overwrites the stored description and clears the last
    rejection reason.
    """
    ticket = get_ticket(db, actor.org_id, ticket_id)
    require_status(ticket, "submit a work description for", TicketStatus.AWAITING_DESCRIPTION)
    require_assignee(ticket, actor, "submit the work description")
    description = require_text(description, "Work description")

    apply_transition(
        db,
        ticket,
        actor,
        TicketStatus.AWAITING_WORK_APPROVAL,
        {
            "work_description": description,
            "work_description_rejection_reason": None,
            **lifecycle_stamps(ticket, "work_description_submitted_at"),
        },
    )
    notification_service.notify_work_description_submitted(db, ticket)
    return ticket


def approve_work(db: Session, actor: UserSession, ticket_id: UUID) -> Ticket:
    """Requester approves the description; the ticket is COMPLETED."""
    ticket = get_ticket(db, actor.org_id, ticket_id)
    require_status(ticket, "approve work on", TicketStatus.AWAITING_WORK_APPROVAL)
    require_requester(ticket, actor, "approve the work")

    apply_transition(
        db,
        ticket,
        actor,
        TicketStatus.COMPLETED,
        lifecycle_stamps(ticket, "work_description_approved_at", "completed_at"),
    )
    notification_service.notify_work_approved(db, ticket, ticket.assigned_contractor_id)
    return ticket


def reject_work(
    db: Session, actor: UserSession, ticket_id: UUID, reason: str
) -> Ticket:
    """Requester sends the description back with a reason."""
    ticket = get_ticket(db, actor.org_id, ticket_id)
    require_status(ticket, "reject work on", TicketStatus.AWAITING_WORK_APPROVAL)
    require_requester(ticket, actor, "reject the work")
    reason = require_text(reason, "Rejection reason")

    apply_transition(
        db,
        ticket,
        actor,
        TicketStatus.AWAITING_DESCRIPTION,
        {
            "work_description": None,
            "work_description_rejection_reason": reason,
        },
        reason=reason,
    )
    notification_service.notify_work_rejected(db, ticket, ticket.assigned_contractor_id, reason)
    return ticket
