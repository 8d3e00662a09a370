"""
Tests for rating submission and the contractor reputation aggregate.

Covers:
- Running-average and compliance-rate arithmetic
- Rating guards (completed, requester, once per ticket, PPE comment)
- Atomic rating + reputation fold + ticket close
"""

from decimal import Decimal

import pytest

from jobengine.core.errors import InvalidTransitionError, ValidationError
from jobengine.db.enums import NotificationType, TicketStatus
from jobengine.db.models import ContractorReputation, Notification, Rating
from jobengine.schemas.rating import (
    CustomerServiceChecklist,
    PPEChecklist,
    RatingChecklist,
    RatingCreate,
    SiteProceduresChecklist,
    WorkmanshipChecklist,
)
from jobengine.services import rating_service, reputation_service, ticket_service


def _good_rating(**overrides) -> RatingCreate:
    checklist = RatingChecklist(
        ppe=PPEChecklist(compliant=True),
        customer_service=CustomerServiceChecklist(
            communicated_clearly=True,
            professional_attitude=True,
            respectful_to_staff=True,
            patient_solution_oriented=True,
        ),
        workmanship=WorkmanshipChecklist(
            completed_as_requested=True,
            no_shortcuts=True,
            clean_work_area=True,
            no_rework_needed=True,
        ),
        site_procedures=SiteProceduresChecklist(compliant=True),
    )
    values = {"checklist": checklist, "comment": "Tidy and quick"}
    values.update(overrides)
    return RatingCreate(**values)


def _weak_rating() -> RatingCreate:
    checklist = RatingChecklist(
        ppe=PPEChecklist(hard_hat=True, safety_boots=True, reflective_vest=True),
        customer_service=CustomerServiceChecklist(communicated_clearly=True),
        workmanship=WorkmanshipChecklist(completed_as_requested=True, no_shortcuts=True),
        site_procedures=SiteProceduresChecklist(permit_to_work_filled=True),
    )
    return RatingCreate(checklist=checklist)


# =============================================================================
# Arithmetic
# =============================================================================


def test_running_average():
    assert reputation_service.running_average(Decimal("0"), 0, 4) == Decimal("4.000")
    assert reputation_service.running_average(Decimal("4"), 1, 5) == Decimal("4.500")
    assert reputation_service.running_average(Decimal("4.5"), 2, 3) == Decimal("4.000")
    assert reputation_service.running_average(Decimal("5"), 2, 4) == Decimal("4.667")


def test_compliance_rate():
    assert reputation_service.compliance_rate(0, 0) == Decimal("0")
    assert reputation_service.compliance_rate(1, 3) == Decimal("33.33")
    assert reputation_service.compliance_rate(2, 3) == Decimal("66.67")
    assert reputation_service.compliance_rate(4, 4) == Decimal("100.00")


def test_reputation_for_unrated_contractor_is_zero(db, contractor):
    reputation = reputation_service.get_reputation(db, contractor.user_id)
    assert reputation.rating_count == 0
    assert reputation.avg_overall_stars == Decimal("0")
    assert reputation.ppe_compliance_rate == Decimal("0")


# =============================================================================
# Submission
# =============================================================================


def test_rating_closes_ticket_and_folds_reputation(db, flow, requester, contractor):
    ticket = flow.completed()

    rating = rating_service.submit_rating(db, requester, ticket.id, _good_rating())

    # Punctuality defaults from the job plan arrival and confirmed on-site time
    assert rating.punctuality_score == 5
    assert rating.checklist["punctuality"]["scheduled_arrival"] is not None
    assert rating.overall_percentage == 100
    assert rating.overall_stars == 5
    assert rating.contractor_id == contractor.user_id
    assert rating.comment == "Tidy and quick"

    db.refresh(ticket)
    assert ticket.status == TicketStatus.CLOSED.value
    assert ticket.closed_at is not None

    reputation = reputation_service.get_reputation(db, contractor.user_id)
    assert reputation.rating_count == 1
    assert reputation.avg_overall_stars == Decimal("5")
    assert reputation.avg_overall_percentage == Decimal("100")
    assert reputation.ppe_compliant_count == 1
    assert reputation.ppe_compliance_rate == Decimal("100")
    assert reputation.version == 1

    notification = (
        db.query(Notification)
        .filter(Notification.type == NotificationType.RATING_RECEIVED.value)
        .one()
    )
    assert notification.user_id == contractor.user_id


def test_second_rating_updates_running_average(db, flow, requester, contractor):
    rating_service.submit_rating(db, requester, flow.completed().id, _good_rating())
    weak = rating_service.submit_rating(db, requester, flow.completed().id, _weak_rating())

    # punctuality 5, ppe 3, customer service 2, workmanship 3, procedures 2
    assert weak.ppe_score == 3
    assert weak.overall_percentage == 64
    assert weak.overall_stars == 3

    reputation = reputation_service.get_reputation(db, contractor.user_id)
    assert reputation.rating_count == 2
    assert reputation.avg_overall_stars == Decimal("4.000")
    assert reputation.avg_overall_percentage == Decimal("82.000")
    assert reputation.avg_customer_service == Decimal("3.500")
    assert reputation.ppe_compliant_count == 1
    assert reputation.ppe_compliance_rate == Decimal("50.00")
    assert reputation.procedure_compliance_rate == Decimal("50.00")
    assert reputation.version == 2

    ratings = rating_service.list_contractor_ratings(db, requester.org_id, contractor.user_id)
    assert len(ratings) == 2


def test_rating_without_closing(db, flow, requester):
    ticket = flow.completed()

    rating_service.submit_rating(db, requester, ticket.id, _good_rating(close_ticket=False))
    db.refresh(ticket)
    assert ticket.status == TicketStatus.COMPLETED.value

    ticket = ticket_service.close_ticket(db, requester, ticket.id)
    assert ticket.status == TicketStatus.CLOSED.value


def test_ticket_can_only_be_rated_once(db, flow, requester):
    ticket = flow.completed()
    rating_service.submit_rating(db, requester, ticket.id, _good_rating(close_ticket=False))

    with pytest.raises(InvalidTransitionError):
        rating_service.submit_rating(db, requester, ticket.id, _good_rating(close_ticket=False))


def test_rating_requires_completed_ticket(db, flow, requester):
    ticket = flow.awaiting_approval()
    with pytest.raises(InvalidTransitionError):
        rating_service.submit_rating(db, requester, ticket.id, _good_rating())


def test_only_requester_rates(db, flow, admin, contractor):
    ticket = flow.completed()
    for actor in (admin, contractor):
        with pytest.raises(InvalidTransitionError):
            rating_service.submit_rating(db, actor, ticket.id, _good_rating())


def test_zero_ppe_requires_comment(db, flow, requester, contractor):
    ticket = flow.completed()
    data = _good_rating(checklist=RatingChecklist())

    with pytest.raises(ValidationError):
        rating_service.submit_rating(db, requester, ticket.id, data)

    assert db.query(Rating).count() == 0
    assert db.get(ContractorReputation, contractor.user_id) is None
    db.refresh(ticket)
    assert ticket.status == TicketStatus.COMPLETED.value

    data = _good_rating(checklist=RatingChecklist(), ppe_comment="No hard hat on site")
    rating = rating_service.submit_rating(db, requester, ticket.id, data)
    assert rating.ppe_score == 0
    assert rating.overall_stars >= 1
    assert rating.ppe_comment == "No hard hat on site"
