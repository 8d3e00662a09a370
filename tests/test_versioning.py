"""
Tests for optimistic concurrency.

A writer holding a stale version (or a status that has since moved) must
lose with ConcurrentModificationError and leave no partial writes behind.
"""

import pytest
from sqlalchemy import update

from jobengine.core.errors import ConcurrentModificationError
from jobengine.db.enums import TicketStatus
from jobengine.db.models import ContractorReputation, Ticket
from jobengine.services import reputation_service, ticket_service, versioning
from jobengine.services.scoring import ScoreCard


def _bump_behind_the_session(db, model, pk_column, pk, **values):
    """Simulate another request's committed write without refreshing our copy."""
    db.execute(
        update(model)
        .where(pk_column == pk)
        .values(version=model.version + 1, **values)
        .execution_options(synchronize_session=False)
    )


def test_conditional_update_bumps_version(db, flow):
    ticket = flow.open_ticket()
    assert ticket.version == 1

    versioning.conditional_update(db, ticket, {"title": "Renamed"})
    db.commit()

    assert ticket.version == 2
    assert ticket.title == "Renamed"


def test_stale_version_loses(db, flow, admin, contractor):
    ticket = flow.open_ticket()
    _bump_behind_the_session(db, Ticket, Ticket.id, ticket.id)

    with pytest.raises(ConcurrentModificationError):
        ticket_service.apply_transition(
            db,
            ticket,
            admin,
            TicketStatus.PROCESSING,
            {"assigned_contractor_id": contractor.user_id},
        )

    db.refresh(ticket)
    assert ticket.status == TicketStatus.OPEN.value
    assert ticket.assigned_contractor_id is None
    history = ticket_service.get_status_history(db, admin.org_id, ticket.id)
    assert [h.to_status for h in history] == ["open"]


def test_moved_status_loses_even_with_matching_version(db, flow):
    ticket = flow.open_ticket()

    with pytest.raises(ConcurrentModificationError):
        versioning.conditional_update(
            db, ticket, {"title": "Renamed"}, expected_status=TicketStatus.PROCESSING.value
        )
    db.rollback()

    db.refresh(ticket)
    assert ticket.title == "Leaking roof"
    assert ticket.version == 1


def test_retry_after_reload_succeeds(db, flow, admin, contractor):
    ticket = flow.open_ticket()
    _bump_behind_the_session(db, Ticket, Ticket.id, ticket.id)
    db.commit()

    db.refresh(ticket)
    ticket = ticket_service.assign_ticket(db, admin, ticket.id, contractor.user_id)
    assert ticket.status == TicketStatus.PROCESSING.value
    assert ticket.version == 3


def test_stale_reputation_fold_loses(db, flow, requester, contractor):
    card = ScoreCard(
        punctuality=5,
        ppe=5,
        customer_service=5,
        workmanship=5,
        site_procedures=5,
        overall_percentage=100,
        overall_stars=5,
    )
    reputation_service.fold_rating(db, contractor.user_id, card)
    db.commit()

    reputation = db.get(ContractorReputation, contractor.user_id)
    _bump_behind_the_session(
        db,
        ContractorReputation,
        ContractorReputation.contractor_id,
        contractor.user_id,
        rating_count=ContractorReputation.rating_count + 1,
    )

    with pytest.raises(ConcurrentModificationError):
        reputation_service.fold_rating(db, contractor.user_id, card)
    db.rollback()

    db.refresh(reputation)
    assert reputation.rating_count == 1
