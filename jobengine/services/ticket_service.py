"""
Ticket service - the ticket state machine.

Every transition:
- loads the ticket scoped to the caller's organization
- checks the persisted status and the caller's relation to the ticket
- applies status, stamps and payload in one conditional UPDATE
- appends a status_history row in the same transaction
- commits, then emits its notification

Lifecycle stamps are write-once. A stamp is never earlier than the latest
stamp already on the ticket.
"""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from jobengine.core.errors import (
    ConcurrentModificationError,
    EngineError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from jobengine.core.sla import PrioritySLAPolicy, SLAPolicy, compute_deadlines
from jobengine.core.structured_logging import build_log_context
from jobengine.db.enums import EntityType, Role, TicketStatus
from jobengine.db.models import Rating, StatusHistory, Ticket
from jobengine.db.types import utcnow
from jobengine.schemas.auth import UserSession
from jobengine.schemas.ticket import JobPlan, TicketCreate, TicketUpdate
from jobengine.services import history_service, notification_service, versioning
from jobengine.utils.pagination import PaginationParams

logger = logging.getLogger(__name__)

LIFECYCLE_STAMPS = (
    "assigned_at",
    "contractor_accepted_at",
    "on_site_at",
    "work_started_at",
    "work_description_requested_at",
    "work_description_submitted_at",
    "work_description_approved_at",
    "completed_at",
    "closed_at",
    "cancelled_at",
)

EDITABLE_FIELDS = ("title", "description", "category", "asset_ref", "location")


# =============================================================================
# Helpers
# =============================================================================


def _next_ticket_number(db: Session, org_id: UUID, now: datetime) -> str:
    """TKT-YYYYMMDD-NNNN, sequential per organization per day."""
    prefix = f"TKT-{now:%Y%m%d}-"
    last = db.scalar(
        select(func.max(Ticket.ticket_number)).where(
            Ticket.organization_id == org_id,
            Ticket.ticket_number.like(f"{prefix}%"),
        )
    )
    seq = int(last.rsplit("-", 1)[1]) + 1 if last else 1
    return f"{prefix}{seq:04d}"


def lifecycle_stamps(ticket: Ticket, *fields: str) -> dict[str, datetime]:
    """
    Values for lifecycle stamps that are not yet set.

    Already-set stamps are left alone; new ones are clamped so they never
    precede the latest existing stamp.
    """
    existing = [getattr(ticket, name) for name in LIFECYCLE_STAMPS if getattr(ticket, name)]
    moment = max([utcnow(), *existing])
    return {name: moment for name in fields if getattr(ticket, name) is None}


def require_text(value: str | None, label: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{label} is required")
    return cleaned


def require_status(ticket: Ticket, action: str, *allowed: TicketStatus) -> None:
    if ticket.status not in {status.value for status in allowed}:
        raise InvalidTransitionError(
            f"Cannot {action} ticket {ticket.ticket_number} in status '{ticket.status}'"
        )


def require_requester(ticket: Ticket, actor: UserSession, action: str) -> None:
    if actor.user_id != ticket.requested_by_user_id:
        raise InvalidTransitionError(f"Only the ticket requester can {action}")


def require_assignee(ticket: Ticket, actor: UserSession, action: str) -> None:
    if actor.role != Role.CONTRACTOR or actor.user_id != ticket.assigned_contractor_id:
        raise InvalidTransitionError(f"Only the assigned contractor can {action}")


def require_admin(actor: UserSession, action: str) -> None:
    if actor.role != Role.ADMIN:
        raise InvalidTransitionError(f"Only an admin can {action}")


def apply_transition(
    db: Session,
    ticket: Ticket,
    actor: UserSession,
    to_status: TicketStatus,
    values: dict[str, Any],
    *,
    reason: str | None = None,
    commit: bool = True,
) -> Ticket:
    """Apply a guarded transition as one conditional write plus history row."""
    from_status = ticket.status
    try:
        versioning.conditional_update(
            db,
            ticket,
            {**values, "status": to_status.value},
            expected_status=from_status,
        )
        history_service.record_transition(
            db,
            org_id=ticket.organization_id,
            entity_type=EntityType.TICKET,
            entity_id=ticket.id,
            from_status=from_status,
            to_status=to_status.value,
            changed_by_user_id=actor.user_id,
            reason=reason,
        )
        if commit:
            db.commit()
    except EngineError:
        if commit:
            db.rollback()
        raise

    logger.info(
        "Ticket %s: %s -> %s",
        ticket.ticket_number,
        from_status,
        to_status.value,
        extra=build_log_context(
            user_id=actor.user_id,
            org_id=ticket.organization_id,
            entity_type=EntityType.TICKET.value,
            entity_id=ticket.id,
            from_status=from_status,
            to_status=to_status.value,
        ),
    )
    return ticket


# =============================================================================
# Queries
# =============================================================================


def get_ticket(db: Session, org_id: UUID, ticket_id: UUID) -> Ticket:
    """Get ticket by id, scoped to organization."""
    ticket = db.scalar(
        select(Ticket).where(Ticket.id == ticket_id, Ticket.organization_id == org_id)
    )
    if not ticket:
        raise NotFoundError("Ticket not found")
    return ticket


def get_ticket_for_actor(db: Session, actor: UserSession, ticket_id: UUID) -> Ticket:
    """Contractors see their assigned jobs, requesters their own tickets."""
    ticket = get_ticket(db, actor.org_id, ticket_id)
    if actor.role == Role.CONTRACTOR and ticket.assigned_contractor_id != actor.user_id:
        raise NotFoundError("Ticket not found")
    if actor.role == Role.REQUESTER and ticket.requested_by_user_id != actor.user_id:
        raise NotFoundError("Ticket not found")
    return ticket


def list_tickets(
    db: Session,
    actor: UserSession,
    *,
    status: TicketStatus | None = None,
    priority: str | None = None,
    contractor_id: UUID | None = None,
    requester_id: UUID | None = None,
    search: str | None = None,
    pagination: PaginationParams | None = None,
) -> tuple[list[Ticket], int]:
    """
    List tickets visible to the caller.

    Admins see the whole organization, contractors their assigned jobs,
    requesters the tickets they raised.
    """
    pagination = pagination or PaginationParams()
    query = select(Ticket).where(Ticket.organization_id == actor.org_id)

    if actor.role == Role.CONTRACTOR:
        query = query.where(Ticket.assigned_contractor_id == actor.user_id)
    elif actor.role == Role.REQUESTER:
        query = query.where(Ticket.requested_by_user_id == actor.user_id)

    if status:
        query = query.where(Ticket.status == status.value)
    if priority:
        query = query.where(Ticket.priority == priority)
    if contractor_id:
        query = query.where(Ticket.assigned_contractor_id == contractor_id)
    if requester_id:
        query = query.where(Ticket.requested_by_user_id == requester_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(
            or_(
                Ticket.title.ilike(pattern),
                Ticket.ticket_number.ilike(pattern),
                Ticket.description.ilike(pattern),
            )
        )

    total = db.scalar(select(func.count()).select_from(query.subquery())) or 0
    items = db.scalars(
        query.order_by(Ticket.created_at.desc())
        .offset(pagination.offset)
        .limit(pagination.per_page)
    ).all()
    return list(items), total


def get_status_history(db: Session, org_id: UUID, ticket_id: UUID) -> list[StatusHistory]:
    ticket = get_ticket(db, org_id, ticket_id)
    return history_service.list_history(db, org_id, EntityType.TICKET, ticket.id)


def has_rating(db: Session, ticket_id: UUID) -> bool:
    return db.scalar(select(Rating.id).where(Rating.ticket_id == ticket_id)) is not None


# =============================================================================
# Creation and editing
# =============================================================================


def create_ticket(
    db: Session,
    actor: UserSession,
    data: TicketCreate,
    policy: SLAPolicy | None = None,
) -> Ticket:
    """Create an OPEN ticket with SLA deadlines fixed at creation."""
    policy = policy or PrioritySLAPolicy.from_settings()
    now = utcnow()
    response_deadline, resolution_deadline = compute_deadlines(
        policy, data.priority.value, now
    )

    ticket = Ticket(
        organization_id=actor.org_id,
        ticket_number=_next_ticket_number(db, actor.org_id, now),
        title=data.title.strip(),
        description=data.description.strip(),
        priority=data.priority.value,
        status=TicketStatus.OPEN.value,
        category=data.category,
        asset_ref=data.asset_ref,
        location=data.location,
        requested_by_user_id=actor.user_id,
        response_deadline=response_deadline,
        resolution_deadline=resolution_deadline,
        created_at=now,
        updated_at=now,
    )
    db.add(ticket)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise ConcurrentModificationError("Ticket number already taken; retry")

    history_service.record_transition(
        db,
        org_id=ticket.organization_id,
        entity_type=EntityType.TICKET,
        entity_id=ticket.id,
        from_status=None,
        to_status=TicketStatus.OPEN.value,
        changed_by_user_id=actor.user_id,
    )
    db.commit()
    db.refresh(ticket)
    logger.info("Ticket %s created", ticket.ticket_number)
    return ticket


def update_ticket(
    db: Session, actor: UserSession, ticket_id: UUID, data: TicketUpdate
) -> Ticket:
    """Edit descriptive fields while the ticket is still OPEN."""
    ticket = get_ticket(db, actor.org_id, ticket_id)
    require_requester(ticket, actor, "edit this ticket")
    require_status(ticket, "edit", TicketStatus.OPEN)

    values = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if field in EDITABLE_FIELDS
    }
    if not values:
        return ticket
    try:
        versioning.conditional_update(
            db, ticket, values, expected_status=TicketStatus.OPEN.value
        )
        db.commit()
    except EngineError:
        db.rollback()
        raise
    return ticket


# =============================================================================
# Transitions
# =============================================================================


def assign_ticket(
    db: Session, actor: UserSession, ticket_id: UUID, contractor_id: UUID
) -> Ticket:
    """OPEN -> PROCESSING (admin)."""
    ticket = get_ticket(db, actor.org_id, ticket_id)
    require_admin(actor, "assign tickets")
    require_status(ticket, "assign", TicketStatus.OPEN)
    if ticket.assigned_contractor_id is not None:
        raise InvalidTransitionError("Ticket is already assigned")

    apply_transition(
        db,
        ticket,
        actor,
        TicketStatus.PROCESSING,
        {
            "assigned_contractor_id": contractor_id,
            "assigned_by_user_id": actor.user_id,
            "contractor_decline_reason": None,
            **lifecycle_stamps(ticket, "assigned_at"),
        },
    )
    notification_service.notify_ticket_assigned(db, ticket)
    return ticket


def accept_job(
    db: Session, actor: UserSession, ticket_id: UUID, plan: JobPlan
) -> Ticket:
    """PROCESSING -> ACCEPTED (assigned contractor, with job plan)."""
    ticket = get_ticket(db, actor.org_id, ticket_id)
    require_status(ticket, "accept", TicketStatus.PROCESSING)
    require_assignee(ticket, actor, "accept this job")
    require_text(plan.technician_name, "Technician name")

    return apply_transition(
        db,
        ticket,
        actor,
        TicketStatus.ACCEPTED,
        {
            "job_plan": plan.model_dump(mode="json"),
            "scheduled_arrival": plan.arrival_at,
            **lifecycle_stamps(ticket, "contractor_accepted_at"),
        },
    )


def decline_job(
    db: Session, actor: UserSession, ticket_id: UUID, reason: str
) -> Ticket:
    """PROCESSING -> OPEN (assigned contractor). Clears the assignee."""
    ticket = get_ticket(db, actor.org_id, ticket_id)
    require_status(ticket, "decline", TicketStatus.PROCESSING)
    require_assignee(ticket, actor, "decline this job")
    reason = require_text(reason, "Decline reason")
    admin_id = ticket.assigned_by_user_id

    apply_transition(
        db,
        ticket,
        actor,
        TicketStatus.OPEN,
        {
            "assigned_contractor_id": None,
            "contractor_decline_reason": reason,
        },
        reason=reason,
    )
    notification_service.notify_job_declined(db, ticket, admin_id, reason)
    return ticket


def confirm_on_site(db: Session, actor: UserSession, ticket_id: UUID) -> Ticket:
    """ACCEPTED -> ON_SITE (requester)."""
    ticket = get_ticket(db, actor.org_id, ticket_id)
    require_status(ticket, "confirm arrival on", TicketStatus.ACCEPTED)
    require_requester(ticket, actor, "confirm the contractor is on site")
    if ticket.assigned_contractor_id is None:
        raise InvalidTransitionError("Ticket has no assigned contractor")

    return apply_transition(
        db, ticket, actor, TicketStatus.ON_SITE, lifecycle_stamps(ticket, "on_site_at")
    )


def start_work(db: Session, actor: UserSession, ticket_id: UUID) -> Ticket:
    """ON_SITE -> IN_PROGRESS (assigned contractor)."""
    ticket = get_ticket(db, actor.org_id, ticket_id)
    require_status(ticket, "start work on", TicketStatus.ON_SITE)
    require_assignee(ticket, actor, "start work")

    return apply_transition(
        db, ticket, actor, TicketStatus.IN_PROGRESS, lifecycle_stamps(ticket, "work_started_at")
    )


def request_work_description(db: Session, actor: UserSession, ticket_id: UUID) -> Ticket:
    """ON_SITE / IN_PROGRESS -> AWAITING_DESCRIPTION (requester marks work done)."""
    ticket = get_ticket(db, actor.org_id, ticket_id)
    require_status(
        ticket,
        "request a work description for",
        TicketStatus.ON_SITE,
        TicketStatus.IN_PROGRESS,
    )
    require_requester(ticket, actor, "request a work description")

    return apply_transition(
        db,
        ticket,
        actor,
        TicketStatus.AWAITING_DESCRIPTION,
        lifecycle_stamps(ticket, "work_description_requested_at"),
    )


# AWAITING_DESCRIPTION <-> AWAITING_WORK_APPROVAL: see work_description_service


def close_ticket(
    db: Session, actor: UserSession, ticket_id: UUID, *, commit: bool = True
) -> Ticket:
    """COMPLETED -> CLOSED (requester, once a rating exists)."""
    ticket = get_ticket(db, actor.org_id, ticket_id)
    return close_loaded_ticket(db, actor, ticket, commit=commit)


def close_loaded_ticket(
    db: Session, actor: UserSession, ticket: Ticket, *, commit: bool = True
) -> Ticket:
    require_status(ticket, "close", TicketStatus.COMPLETED)
    require_requester(ticket, actor, "close this ticket")
    if not has_rating(db, ticket.id):
        raise InvalidTransitionError("A rating must be submitted before closing the ticket")

    return apply_transition(
        db, ticket, actor, TicketStatus.CLOSED, lifecycle_stamps(ticket, "closed_at"), commit=commit
    )


def cancel_ticket(
    db: Session, actor: UserSession, ticket_id: UUID, reason: str
) -> Ticket:
    """OPEN / unassigned PROCESSING -> CANCELLED (requester)."""
    ticket = get_ticket(db, actor.org_id, ticket_id)
    cancellable = ticket.status == TicketStatus.OPEN.value or (
        ticket.status == TicketStatus.PROCESSING.value
        and ticket.assigned_contractor_id is None
    )
    if not cancellable:
        raise InvalidTransitionError(
            f"Cannot cancel ticket {ticket.ticket_number} in status '{ticket.status}'"
        )
    require_requester(ticket, actor, "cancel this ticket")
    reason = require_text(reason, "Cancellation reason")

    return apply_transition(
        db,
        ticket,
        actor,
        TicketStatus.CANCELLED,
        {"cancellation_reason": reason, **lifecycle_stamps(ticket, "cancelled_at")},
        reason=reason,
    )
