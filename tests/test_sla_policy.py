"""Tests for SLA deadlines, traffic-light status and ticket timelines."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from jobengine.core import sla
from jobengine.db.enums import TicketStatus


CREATED = datetime(2026, 5, 4, 8, 0, tzinfo=timezone.utc)


def _ticket(priority="high", status=TicketStatus.OPEN, **stamps):
    response, resolution = sla.compute_deadlines(
        sla.PrioritySLAPolicy.from_settings(), priority, CREATED
    )
    values = {
        "status": status.value,
        "created_at": CREATED,
        "response_deadline": response,
        "resolution_deadline": resolution,
        "assigned_at": None,
        "contractor_accepted_at": None,
        "on_site_at": None,
        "completed_at": None,
        "closed_at": None,
        "cancelled_at": None,
    }
    values.update(stamps)
    return SimpleNamespace(**values)


def _at(minutes: int) -> datetime:
    return CREATED + timedelta(minutes=minutes)


# =============================================================================
# Policy
# =============================================================================


@pytest.mark.parametrize(
    "priority,response_minutes,resolution_minutes",
    [
        ("low", 2880, 4320),
        ("medium", 720, 1440),
        ("high", 60, 480),
        ("critical", 30, 120),
        ("urgent", 1440, 2880),
        ("unheard-of", 1440, 2880),
    ],
)
def test_default_policy_targets(priority, response_minutes, resolution_minutes):
    response, resolution = sla.compute_deadlines(
        sla.PrioritySLAPolicy.from_settings(), priority, CREATED
    )
    assert response == _at(response_minutes)
    assert resolution == _at(resolution_minutes)


def test_custom_policy():
    policy = sla.PrioritySLAPolicy(
        response_minutes={"high": 15},
        resolution_minutes={"high": 90},
        default_response_minutes=100,
        default_resolution_minutes=200,
    )
    assert policy.targets_for("high") == sla.SLATargets(15, 90)
    assert policy.targets_for("low") == sla.SLATargets(100, 200)


# =============================================================================
# Status
# =============================================================================


def test_fresh_ticket_is_green():
    status = sla.get_sla_status(_ticket(), now=_at(10))

    assert status.response.status == "green"
    assert status.response.used_percent == 17
    assert status.response.remaining_minutes == 50
    assert not status.response.breached
    assert not status.response.satisfied
    assert status.resolution.status == "green"


def test_ticket_turns_yellow_at_three_quarters():
    status = sla.get_sla_status(_ticket(), now=_at(45))
    assert status.response.status == "yellow"
    assert status.response.used_percent == 75


def test_unaccepted_ticket_breaches_response():
    status = sla.get_sla_status(_ticket(), now=_at(61))

    assert status.response.status == "red"
    assert status.response.breached
    assert status.response.remaining_minutes == -1
    assert not status.resolution.breached


def test_acceptance_in_time_satisfies_response_window():
    ticket = _ticket(status=TicketStatus.ACCEPTED, contractor_accepted_at=_at(30))
    status = sla.get_sla_status(ticket, now=_at(300))

    assert status.response.satisfied
    assert not status.response.breached
    assert status.response.status == "grey"
    assert status.response.remaining_minutes is None
    assert status.response.used_percent == 50


def test_late_acceptance_stays_breached():
    ticket = _ticket(status=TicketStatus.ACCEPTED, contractor_accepted_at=_at(70))
    status = sla.get_sla_status(ticket, now=_at(100))

    assert status.response.satisfied
    assert status.response.breached
    assert status.response.status == "red"


def test_completion_stops_resolution_clock():
    ticket = _ticket(
        status=TicketStatus.COMPLETED,
        contractor_accepted_at=_at(20),
        completed_at=_at(240),
    )
    status = sla.get_sla_status(ticket, now=_at(10_000))

    assert status.resolution.satisfied
    assert not status.resolution.breached
    assert status.resolution.status == "grey"


def test_cancelled_ticket_is_not_breached_later():
    ticket = _ticket(status=TicketStatus.CANCELLED, cancelled_at=_at(5))
    status = sla.get_sla_status(ticket, now=_at(10_000))

    assert status.response.satisfied
    assert not status.response.breached
    assert status.resolution.satisfied
    assert not status.resolution.breached


# =============================================================================
# Timeline
# =============================================================================


def test_timeline_minutes_from_creation():
    ticket = _ticket(
        status=TicketStatus.CLOSED,
        assigned_at=_at(5),
        contractor_accepted_at=_at(20),
        on_site_at=_at(95),
        completed_at=_at(300),
        closed_at=_at(330),
    )
    timeline = sla.get_timeline(ticket)

    assert timeline.minutes_to_assign == 5
    assert timeline.minutes_to_accept == 20
    assert timeline.minutes_to_on_site == 95
    assert timeline.minutes_to_complete == 300
    assert timeline.total_minutes == 330


def test_timeline_of_open_ticket_is_empty():
    timeline = sla.get_timeline(_ticket())
    assert timeline.minutes_to_assign is None
    assert timeline.total_minutes is None
