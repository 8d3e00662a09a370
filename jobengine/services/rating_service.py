"""
Rating service - score a completed job and fold it into reputation.

Submitting a rating writes the rating, updates the contractor aggregate and
(by default) closes the ticket, all in one transaction.
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from jobengine.core.errors import (
    ConcurrentModificationError,
    EngineError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from jobengine.db.enums import TicketStatus
from jobengine.db.models import Rating, Ticket
from jobengine.schemas.auth import UserSession
from jobengine.schemas.rating import RatingChecklist, RatingCreate
from jobengine.services import notification_service, reputation_service, scoring, ticket_service

logger = logging.getLogger(__name__)


def resolve_checklist(ticket: Ticket, checklist: RatingChecklist) -> RatingChecklist:
    """Default punctuality timestamps to the job plan arrival and confirmed on-site time."""
    punctuality = checklist.punctuality
    updates = {}
    if punctuality.scheduled_arrival is None and ticket.scheduled_arrival is not None:
        updates["scheduled_arrival"] = ticket.scheduled_arrival
    if punctuality.actual_arrival is None and ticket.on_site_at is not None:
        updates["actual_arrival"] = ticket.on_site_at
    if not updates:
        return checklist
    return checklist.model_copy(
        update={"punctuality": punctuality.model_copy(update=updates)}
    )


def submit_rating(
    db: Session, actor: UserSession, ticket_id: UUID, data: RatingCreate
) -> Rating:
    """
    Rate the contractor on a COMPLETED ticket.

    Raises:
        InvalidTransitionError: ticket not COMPLETED, caller not requester, already rated
        ValidationError: PPE scored 0 without a compliance comment
        ConcurrentModificationError: ticket or reputation changed concurrently
    """
    ticket = ticket_service.get_ticket(db, actor.org_id, ticket_id)
    ticket_service.require_status(ticket, "rate", TicketStatus.COMPLETED)
    ticket_service.require_requester(ticket, actor, "rate this job")
    if ticket.assigned_contractor_id is None:
        raise InvalidTransitionError("Ticket has no assigned contractor to rate")
    if ticket_service.has_rating(db, ticket.id):
        raise InvalidTransitionError(f"Ticket {ticket.ticket_number} has already been rated")

    checklist = resolve_checklist(ticket, data.checklist)
    card = scoring.score_checklist(checklist)
    ppe_comment = (data.ppe_comment or "").strip() or None
    if card.ppe == 0 and not ppe_comment:
        raise ValidationError("A PPE compliance comment is required when required PPE is missing")

    contractor_id = ticket.assigned_contractor_id
    rating = Rating(
        organization_id=actor.org_id,
        ticket_id=ticket.id,
        contractor_id=contractor_id,
        rated_by_user_id=actor.user_id,
        checklist=checklist.model_dump(mode="json"),
        punctuality_score=card.punctuality,
        ppe_score=card.ppe,
        customer_service_score=card.customer_service,
        workmanship_score=card.workmanship,
        site_procedures_score=card.site_procedures,
        overall_percentage=card.overall_percentage,
        overall_stars=card.overall_stars,
        ppe_comment=ppe_comment,
        comment=(data.comment or "").strip() or None,
    )

    try:
        db.add(rating)
        db.flush()
        reputation_service.fold_rating(db, contractor_id, card)
        if data.close_ticket:
            ticket_service.close_loaded_ticket(db, actor, ticket, commit=False)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConcurrentModificationError("Rating or reputation changed concurrently; retry")
    except EngineError:
        db.rollback()
        raise

    db.refresh(rating)
    logger.info(
        "Rating recorded for ticket %s: %s%% / %s stars",
        ticket.ticket_number,
        rating.overall_percentage,
        rating.overall_stars,
    )
    notification_service.notify_rating_received(db, rating)
    return rating


def get_rating_for_ticket(db: Session, actor: UserSession, ticket_id: UUID) -> Rating:
    ticket = ticket_service.get_ticket(db, actor.org_id, ticket_id)
    rating = db.scalar(select(Rating).where(Rating.ticket_id == ticket.id))
    if not rating:
        raise NotFoundError("Rating not found")
    return rating


def list_contractor_ratings(
    db: Session, org_id: UUID, contractor_id: UUID, limit: int = 50, offset: int = 0
) -> list[Rating]:
    return list(
        db.scalars(
            select(Rating)
            .where(Rating.organization_id == org_id, Rating.contractor_id == contractor_id)
            .order_by(Rating.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
    )
