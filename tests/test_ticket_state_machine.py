"""
Tests for the ticket state machine.

Covers:
- Creation (numbering, SLA deadlines, initial history)
- Every transition's status, role and relation guards
- Write-once lifecycle stamps across decline / reassign
- Role-scoped listing and visibility
"""

import re
import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from jobengine.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from jobengine.db.enums import NotificationType, TicketPriority, TicketStatus
from jobengine.db.models import Notification
from jobengine.db.types import utcnow
from jobengine.schemas.ticket import JobPlan, TicketCreate, TicketUpdate
from jobengine.services import ticket_service


def _plan() -> JobPlan:
    return JobPlan(
        technician_name="Sam Fixer",
        arrival_at=utcnow() + timedelta(hours=1),
        estimated_duration_hours=Decimal("2.5"),
        contact_number="555-0101",
    )


# =============================================================================
# Creation
# =============================================================================


def test_create_ticket_starts_open_with_deadlines(db, requester):
    ticket = ticket_service.create_ticket(
        db,
        requester,
        TicketCreate(title="Broken AC", description="Unit 3 not cooling", priority=TicketPriority.HIGH),
    )

    assert ticket.status == TicketStatus.OPEN.value
    assert ticket.requested_by_user_id == requester.user_id
    assert ticket.assigned_contractor_id is None
    assert re.fullmatch(r"TKT-\d{8}-0001", ticket.ticket_number)
    assert ticket.response_deadline - ticket.created_at == timedelta(minutes=60)
    assert ticket.resolution_deadline - ticket.created_at == timedelta(minutes=480)
    assert ticket.version == 1

    history = ticket_service.get_status_history(db, requester.org_id, ticket.id)
    assert [(h.from_status, h.to_status) for h in history] == [(None, "open")]


def test_ticket_numbers_are_sequential_per_org(flow):
    first = flow.open_ticket()
    second = flow.open_ticket()

    assert first.ticket_number.endswith("-0001")
    assert second.ticket_number.endswith("-0002")


def test_update_ticket_only_while_open(db, flow, requester, contractor):
    ticket = flow.open_ticket()
    updated = ticket_service.update_ticket(
        db, requester, ticket.id, TicketUpdate(title="Leaking roof (kitchen)")
    )
    assert updated.title == "Leaking roof (kitchen)"

    ticket_service.assign_ticket(db, flow.admin, ticket.id, contractor.user_id)
    with pytest.raises(InvalidTransitionError):
        ticket_service.update_ticket(db, requester, ticket.id, TicketUpdate(title="Other"))


# =============================================================================
# Happy path
# =============================================================================


def test_full_lifecycle_to_completion(db, flow, requester, contractor, admin):
    ticket = flow.open_ticket()

    ticket = ticket_service.assign_ticket(db, admin, ticket.id, contractor.user_id)
    assert ticket.status == TicketStatus.PROCESSING.value
    assert ticket.assigned_contractor_id == contractor.user_id
    assert ticket.assigned_by_user_id == admin.user_id
    assert ticket.assigned_at is not None

    ticket = ticket_service.accept_job(db, contractor, ticket.id, _plan())
    assert ticket.status == TicketStatus.ACCEPTED.value
    assert ticket.job_plan["technician_name"] == "Sam Fixer"
    assert ticket.scheduled_arrival is not None
    assert ticket.contractor_accepted_at >= ticket.assigned_at

    ticket = ticket_service.confirm_on_site(db, requester, ticket.id)
    assert ticket.status == TicketStatus.ON_SITE.value
    assert ticket.on_site_at >= ticket.contractor_accepted_at

    ticket = ticket_service.start_work(db, contractor, ticket.id)
    assert ticket.status == TicketStatus.IN_PROGRESS.value
    assert ticket.work_started_at is not None

    ticket = ticket_service.request_work_description(db, requester, ticket.id)
    assert ticket.status == TicketStatus.AWAITING_DESCRIPTION.value
    assert ticket.work_description_requested_at >= ticket.on_site_at

    history = ticket_service.get_status_history(db, requester.org_id, ticket.id)
    assert [h.to_status for h in history] == [
        "open",
        "processing",
        "accepted",
        "on_site",
        "in_progress",
        "awaiting_description",
    ]
    assert ticket.version == 6


def test_request_description_directly_from_on_site(db, flow, requester):
    ticket = flow.on_site()
    ticket = ticket_service.request_work_description(db, requester, ticket.id)
    assert ticket.status == TicketStatus.AWAITING_DESCRIPTION.value
    assert ticket.work_started_at is None


def test_assignment_notifies_contractor(db, flow, contractor):
    ticket = flow.assigned()
    notification = db.query(Notification).filter(Notification.user_id == contractor.user_id).one()
    assert notification.type == NotificationType.TICKET_ASSIGNED.value
    assert notification.entity_id == ticket.id


# =============================================================================
# Guards
# =============================================================================


def test_only_admin_can_assign(db, flow, requester, contractor):
    ticket = flow.open_ticket()
    with pytest.raises(InvalidTransitionError):
        ticket_service.assign_ticket(db, requester, ticket.id, contractor.user_id)


def test_cannot_assign_twice(db, flow, admin, other_contractor):
    ticket = flow.assigned()
    with pytest.raises(InvalidTransitionError):
        ticket_service.assign_ticket(db, admin, ticket.id, other_contractor.user_id)


def test_accept_requires_processing(db, flow, contractor):
    ticket = flow.open_ticket()
    with pytest.raises(InvalidTransitionError):
        ticket_service.accept_job(db, contractor, ticket.id, _plan())


def test_accept_rejected_for_other_contractor(db, flow, other_contractor):
    ticket = flow.assigned()
    with pytest.raises(InvalidTransitionError):
        ticket_service.accept_job(db, other_contractor, ticket.id, _plan())

    db.refresh(ticket)
    assert ticket.status == TicketStatus.PROCESSING.value


def test_only_requester_confirms_on_site(db, flow, contractor, admin):
    ticket = flow.accepted()
    for actor in (contractor, admin):
        with pytest.raises(InvalidTransitionError):
            ticket_service.confirm_on_site(db, actor, ticket.id)


def test_start_work_requires_on_site(db, flow, contractor):
    ticket = flow.accepted()
    with pytest.raises(InvalidTransitionError):
        ticket_service.start_work(db, contractor, ticket.id)


def test_request_description_rejected_before_on_site(db, flow, requester):
    ticket = flow.accepted()
    with pytest.raises(InvalidTransitionError):
        ticket_service.request_work_description(db, requester, ticket.id)


def test_failed_guard_leaves_no_history(db, flow, requester, other_contractor):
    ticket = flow.assigned()
    before = len(ticket_service.get_status_history(db, requester.org_id, ticket.id))

    with pytest.raises(InvalidTransitionError):
        ticket_service.accept_job(db, other_contractor, ticket.id, _plan())

    after = len(ticket_service.get_status_history(db, requester.org_id, ticket.id))
    assert after == before


# =============================================================================
# Decline / reassign
# =============================================================================


def test_decline_requires_reason(db, flow, contractor):
    ticket = flow.assigned()
    with pytest.raises(ValidationError):
        ticket_service.decline_job(db, contractor, ticket.id, "   ")


def test_decline_returns_ticket_to_open(db, flow, contractor, admin):
    ticket = flow.assigned()

    ticket = ticket_service.decline_job(db, contractor, ticket.id, "Out of area")

    assert ticket.status == TicketStatus.OPEN.value
    assert ticket.assigned_contractor_id is None
    assert ticket.contractor_decline_reason == "Out of area"

    notification = db.query(Notification).filter(Notification.user_id == admin.user_id).one()
    assert notification.type == NotificationType.JOB_DECLINED.value
    assert notification.body == "Out of area"

    history = ticket_service.get_status_history(db, admin.org_id, ticket.id)
    assert history[-1].from_status == "processing"
    assert history[-1].to_status == "open"
    assert history[-1].reason == "Out of area"


def test_reassign_after_decline_keeps_first_stamp(db, flow, contractor, other_contractor, admin):
    ticket = flow.assigned()
    first_assigned_at = ticket.assigned_at

    ticket_service.decline_job(db, contractor, ticket.id, "Fully booked")
    ticket = ticket_service.assign_ticket(db, admin, ticket.id, other_contractor.user_id)

    assert ticket.status == TicketStatus.PROCESSING.value
    assert ticket.assigned_contractor_id == other_contractor.user_id
    assert ticket.assigned_at == first_assigned_at
    assert ticket.contractor_decline_reason is None

    ticket = ticket_service.accept_job(db, other_contractor, ticket.id, _plan())
    assert ticket.status == TicketStatus.ACCEPTED.value


def test_declined_contractor_cannot_accept(db, flow, contractor):
    ticket = flow.assigned()
    ticket_service.decline_job(db, contractor, ticket.id, "Fully booked")
    with pytest.raises(InvalidTransitionError):
        ticket_service.accept_job(db, contractor, ticket.id, _plan())


# =============================================================================
# Cancel / close
# =============================================================================


def test_cancel_open_ticket(db, flow, requester):
    ticket = flow.open_ticket()
    ticket = ticket_service.cancel_ticket(db, requester, ticket.id, "Fixed it ourselves")

    assert ticket.status == TicketStatus.CANCELLED.value
    assert ticket.cancellation_reason == "Fixed it ourselves"
    assert ticket.cancelled_at is not None


def test_cancel_requires_reason(db, flow, requester):
    ticket = flow.open_ticket()
    with pytest.raises(ValidationError):
        ticket_service.cancel_ticket(db, requester, ticket.id, "")


def test_cannot_cancel_assigned_ticket(db, flow, requester):
    ticket = flow.assigned()
    with pytest.raises(InvalidTransitionError):
        ticket_service.cancel_ticket(db, requester, ticket.id, "Changed my mind")


def test_cancelled_ticket_is_terminal(db, flow, requester, contractor, admin):
    ticket = flow.open_ticket()
    ticket_service.cancel_ticket(db, requester, ticket.id, "Duplicate")
    with pytest.raises(InvalidTransitionError):
        ticket_service.assign_ticket(db, admin, ticket.id, contractor.user_id)


def test_close_requires_rating(db, flow, requester):
    ticket = flow.completed()
    with pytest.raises(InvalidTransitionError, match="rating"):
        ticket_service.close_ticket(db, requester, ticket.id)


def test_close_requires_completed(db, flow, requester):
    ticket = flow.on_site()
    with pytest.raises(InvalidTransitionError):
        ticket_service.close_ticket(db, requester, ticket.id)


# =============================================================================
# Queries
# =============================================================================


def test_list_tickets_is_role_scoped(db, flow, requester, contractor, other_contractor, admin):
    mine = flow.assigned(contractor, title="Broken window")
    flow.assigned(other_contractor, title="Blocked drain")
    flow.open_ticket(title="Flickering lights")

    items, total = ticket_service.list_tickets(db, admin)
    assert total == 3

    items, total = ticket_service.list_tickets(db, contractor)
    assert total == 1
    assert items[0].id == mine.id

    items, total = ticket_service.list_tickets(db, requester)
    assert total == 3

    items, total = ticket_service.list_tickets(db, admin, search="drain")
    assert [t.title for t in items] == ["Blocked drain"]

    items, total = ticket_service.list_tickets(db, admin, status=TicketStatus.OPEN)
    assert [t.title for t in items] == ["Flickering lights"]


def test_other_contractor_cannot_see_ticket(db, flow, other_contractor):
    ticket = flow.assigned()
    with pytest.raises(NotFoundError):
        ticket_service.get_ticket_for_actor(db, other_contractor, ticket.id)


def test_ticket_is_scoped_to_organization(db, flow, requester):
    ticket = flow.open_ticket()
    with pytest.raises(NotFoundError):
        ticket_service.get_ticket(db, uuid.uuid4(), ticket.id)
