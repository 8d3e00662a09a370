"""Rating and contractor reputation endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from jobengine.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    require_roles,
)
from jobengine.db.enums import Role
from jobengine.schemas.auth import UserSession
from jobengine.schemas.rating import RatingCreate, RatingRead, ReputationRead
from jobengine.services import rating_service, reputation_service, ticket_service

router = APIRouter()


def _check_contractor_scope(session: UserSession, contractor_id: UUID) -> None:
    if session.role == Role.CONTRACTOR and session.user_id != contractor_id:
        raise HTTPException(status_code=403, detail="Not authorized")


@router.post(
    "/tickets/{ticket_id}/rating",
    response_model=RatingRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def submit_rating(
    ticket_id: UUID,
    data: RatingCreate,
    session: UserSession = Depends(require_roles([Role.REQUESTER, Role.ADMIN])),
    db: Session = Depends(get_db),
):
    """
    Rate the contractor on a completed ticket.

    Closes the ticket in the same transaction unless close_ticket is false.
    """
    return rating_service.submit_rating(db, session, ticket_id, data)


@router.get("/tickets/{ticket_id}/rating", response_model=RatingRead)
def get_ticket_rating(
    ticket_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    ticket_service.get_ticket_for_actor(db, session, ticket_id)
    return rating_service.get_rating_for_ticket(db, session, ticket_id)


@router.get("/contractors/{contractor_id}/reputation", response_model=ReputationRead)
def get_contractor_reputation(
    contractor_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    _check_contractor_scope(session, contractor_id)
    return reputation_service.get_reputation(db, contractor_id)


@router.get("/contractors/{contractor_id}/ratings", response_model=list[RatingRead])
def list_contractor_ratings(
    contractor_id: UUID,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Rating history for a contractor within the caller's organization."""
    _check_contractor_scope(session, contractor_id)
    return rating_service.list_contractor_ratings(
        db, session.org_id, contractor_id, limit=limit, offset=offset
    )
