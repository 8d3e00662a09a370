"""Ticket API endpoints - lifecycle from creation to closure."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from jobengine.core import sla
from jobengine.core.deps import (
    get_current_session,
    get_db,
    require_csrf_header,
    require_roles,
)
from jobengine.db.enums import Role, TicketPriority, TicketStatus
from jobengine.schemas.auth import UserSession
from jobengine.schemas.common import ReasonRequest, StatusHistoryRead
from jobengine.schemas.ticket import (
    AssignRequest,
    JobPlan,
    SLAStatusRead,
    TicketCreate,
    TicketListResponse,
    TicketRead,
    TicketTimelineRead,
    TicketUpdate,
    WorkDescriptionSubmit,
)
from jobengine.services import ticket_service, work_description_service
from jobengine.utils.pagination import PaginationParams, get_pagination, page_count

router = APIRouter()

requester_or_admin = require_roles([Role.REQUESTER, Role.ADMIN])
admin_only = require_roles([Role.ADMIN])
contractor_only = require_roles([Role.CONTRACTOR])


# =============================================================================
# Read
# =============================================================================


@router.get("", response_model=TicketListResponse)
def list_tickets(
    status_filter: TicketStatus | None = Query(None, alias="status"),
    priority: TicketPriority | None = None,
    contractor_id: UUID | None = None,
    requester_id: UUID | None = None,
    q: str | None = Query(None, max_length=100),
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """List tickets visible to the caller (role-scoped)."""
    items, total = ticket_service.list_tickets(
        db,
        session,
        status=status_filter,
        priority=priority.value if priority else None,
        contractor_id=contractor_id,
        requester_id=requester_id,
        search=q,
        pagination=pagination,
    )
    return TicketListResponse(
        items=[TicketRead.model_validate(t) for t in items],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=page_count(total, pagination.per_page),
    )


@router.get("/{ticket_id}", response_model=TicketRead)
def get_ticket(
    ticket_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return ticket_service.get_ticket_for_actor(db, session, ticket_id)


@router.get("/{ticket_id}/history", response_model=list[StatusHistoryRead])
def get_ticket_history(
    ticket_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    ticket = ticket_service.get_ticket_for_actor(db, session, ticket_id)
    return ticket_service.get_status_history(db, session.org_id, ticket.id)


@router.get("/{ticket_id}/sla", response_model=SLAStatusRead)
def get_ticket_sla(
    ticket_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Response/resolution deadlines with breach and traffic-light status."""
    ticket = ticket_service.get_ticket_for_actor(db, session, ticket_id)
    return sla.get_sla_status(ticket)


@router.get("/{ticket_id}/timeline", response_model=TicketTimelineRead)
def get_ticket_timeline(
    ticket_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    ticket = ticket_service.get_ticket_for_actor(db, session, ticket_id)
    return sla.get_timeline(ticket)


# =============================================================================
# Requester / admin
# =============================================================================


@router.post(
    "",
    response_model=TicketRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_ticket(
    data: TicketCreate,
    session: UserSession = Depends(requester_or_admin),
    db: Session = Depends(get_db),
):
    return ticket_service.create_ticket(db, session, data)


@router.patch(
    "/{ticket_id}",
    response_model=TicketRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_ticket(
    ticket_id: UUID,
    data: TicketUpdate,
    session: UserSession = Depends(requester_or_admin),
    db: Session = Depends(get_db),
):
    """Edit title/description/category/location while OPEN."""
    return ticket_service.update_ticket(db, session, ticket_id, data)


@router.post(
    "/{ticket_id}/assign",
    response_model=TicketRead,
    dependencies=[Depends(require_csrf_header)],
)
def assign_ticket(
    ticket_id: UUID,
    data: AssignRequest,
    session: UserSession = Depends(admin_only),
    db: Session = Depends(get_db),
):
    return ticket_service.assign_ticket(db, session, ticket_id, data.contractor_id)


@router.post(
    "/{ticket_id}/on-site",
    response_model=TicketRead,
    dependencies=[Depends(require_csrf_header)],
)
def confirm_on_site(
    ticket_id: UUID,
    session: UserSession = Depends(requester_or_admin),
    db: Session = Depends(get_db),
):
    return ticket_service.confirm_on_site(db, session, ticket_id)


@router.post(
    "/{ticket_id}/request-description",
    response_model=TicketRead,
    dependencies=[Depends(require_csrf_header)],
)
def request_work_description(
    ticket_id: UUID,
    session: UserSession = Depends(requester_or_admin),
    db: Session = Depends(get_db),
):
    """Requester marks the job done and asks the contractor to describe it."""
    return ticket_service.request_work_description(db, session, ticket_id)


@router.post(
    "/{ticket_id}/approve-work",
    response_model=TicketRead,
    dependencies=[Depends(require_csrf_header)],
)
def approve_work(
    ticket_id: UUID,
    session: UserSession = Depends(requester_or_admin),
    db: Session = Depends(get_db),
):
    return work_description_service.approve_work(db, session, ticket_id)


@router.post(
    "/{ticket_id}/reject-work",
    response_model=TicketRead,
    dependencies=[Depends(require_csrf_header)],
)
def reject_work(
    ticket_id: UUID,
    data: ReasonRequest,
    session: UserSession = Depends(requester_or_admin),
    db: Session = Depends(get_db),
):
    return work_description_service.reject_work(db, session, ticket_id, data.reason)


@router.post(
    "/{ticket_id}/close",
    response_model=TicketRead,
    dependencies=[Depends(require_csrf_header)],
)
def close_ticket(
    ticket_id: UUID,
    session: UserSession = Depends(requester_or_admin),
    db: Session = Depends(get_db),
):
    return ticket_service.close_ticket(db, session, ticket_id)


@router.post(
    "/{ticket_id}/cancel",
    response_model=TicketRead,
    dependencies=[Depends(require_csrf_header)],
)
def cancel_ticket(
    ticket_id: UUID,
    data: ReasonRequest,
    session: UserSession = Depends(requester_or_admin),
    db: Session = Depends(get_db),
):
    return ticket_service.cancel_ticket(db, session, ticket_id, data.reason)


# =============================================================================
# Contractor
# =============================================================================


@router.post(
    "/{ticket_id}/accept",
    response_model=TicketRead,
    dependencies=[Depends(require_csrf_header)],
)
def accept_job(
    ticket_id: UUID,
    plan: JobPlan,
    session: UserSession = Depends(contractor_only),
    db: Session = Depends(get_db),
):
    """Accept an assigned job with a job plan."""
    return ticket_service.accept_job(db, session, ticket_id, plan)


@router.post(
    "/{ticket_id}/decline",
    response_model=TicketRead,
    dependencies=[Depends(require_csrf_header)],
)
def decline_job(
    ticket_id: UUID,
    data: ReasonRequest,
    session: UserSession = Depends(contractor_only),
    db: Session = Depends(get_db),
):
    return ticket_service.decline_job(db, session, ticket_id, data.reason)


@router.post(
    "/{ticket_id}/start-work",
    response_model=TicketRead,
    dependencies=[Depends(require_csrf_header)],
)
def start_work(
    ticket_id: UUID,
    session: UserSession = Depends(contractor_only),
    db: Session = Depends(get_db),
):
    return ticket_service.start_work(db, session, ticket_id)


@router.post(
    "/{ticket_id}/work-description",
    response_model=TicketRead,
    dependencies=[Depends(require_csrf_header)],
)
def submit_work_description(
    ticket_id: UUID,
    data: WorkDescriptionSubmit,
    session: UserSession = Depends(contractor_only),
    db: Session = Depends(get_db),
):
    return work_description_service.submit_work_description(
        db, session, ticket_id, data.description
    )
