"""
SLA policy for ticket response and resolution deadlines.

Deadlines are computed once, at ticket creation, from a pluggable policy
keyed by priority. The response window closes when the contractor accepts;
the resolution window closes at completion.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from jobengine.core.config import settings
from jobengine.db.enums import TicketStatus
from jobengine.db.types import utcnow

YELLOW_THRESHOLD_PERCENT = 75
RED_THRESHOLD_PERCENT = 100

# Once here, the resolution clock has stopped
RESOLVED_STATUSES = frozenset(
    {TicketStatus.COMPLETED.value, TicketStatus.CLOSED.value, TicketStatus.CANCELLED.value}
)


@dataclass(frozen=True)
class SLATargets:
    response_minutes: int
    resolution_minutes: int


class SLAPolicy(Protocol):
    def targets_for(self, priority: str) -> SLATargets: ...


class PrioritySLAPolicy:
    """Table-driven policy: minutes per priority, with a fallback row."""

    def __init__(
        self,
        response_minutes: dict[str, int],
        resolution_minutes: dict[str, int],
        default_response_minutes: int,
        default_resolution_minutes: int,
    ):
        self.response_minutes = dict(response_minutes)
        self.resolution_minutes = dict(resolution_minutes)
        self.default_response_minutes = default_response_minutes
        self.default_resolution_minutes = default_resolution_minutes

    @classmethod
    def from_settings(cls) -> PrioritySLAPolicy:
        return cls(
            response_minutes=settings.SLA_RESPONSE_MINUTES,
            resolution_minutes=settings.SLA_RESOLUTION_MINUTES,
            default_response_minutes=settings.SLA_DEFAULT_RESPONSE_MINUTES,
            default_resolution_minutes=settings.SLA_DEFAULT_RESOLUTION_MINUTES,
        )

    def targets_for(self, priority: str) -> SLATargets:
        return SLATargets(
            response_minutes=self.response_minutes.get(priority, self.default_response_minutes),
            resolution_minutes=self.resolution_minutes.get(priority, self.default_resolution_minutes),
        )


def compute_deadlines(
    policy: SLAPolicy, priority: str, created_at: datetime
) -> tuple[datetime, datetime]:
    """Return (response_deadline, resolution_deadline)."""
    targets = policy.targets_for(priority)
    return (
        created_at + timedelta(minutes=targets.response_minutes),
        created_at + timedelta(minutes=targets.resolution_minutes),
    )


@dataclass(frozen=True)
class SLAWindow:
    deadline: datetime | None
    remaining_minutes: int | None  # None once the window has closed
    used_percent: int | None
    breached: bool
    satisfied: bool
    status: str  # green | yellow | red | grey


@dataclass(frozen=True)
class SLAStatus:
    response: SLAWindow
    resolution: SLAWindow


def _minutes_between(start: datetime, end: datetime) -> int:
    return math.floor((end - start).total_seconds() / 60)


def _light(used_percent: float | None, satisfied: bool, breached: bool) -> str:
    if satisfied and not breached:
        return "grey"
    if used_percent is None:
        return "grey"
    if used_percent >= RED_THRESHOLD_PERCENT:
        return "red"
    if used_percent >= YELLOW_THRESHOLD_PERCENT:
        return "yellow"
    return "green"


def _window(
    created_at: datetime,
    deadline: datetime | None,
    closed_at: datetime | None,
    closed: bool,
    now: datetime,
) -> SLAWindow:
    if deadline is None:
        return SLAWindow(None, None, None, False, closed, "grey")

    end = closed_at or now
    total = (deadline - created_at).total_seconds()
    used = (end - created_at).total_seconds() / total * 100 if total > 0 else None
    breached = end > deadline
    return SLAWindow(
        deadline=deadline,
        remaining_minutes=None if closed else _minutes_between(now, deadline),
        used_percent=round(used) if used is not None else None,
        breached=breached,
        satisfied=closed,
        status=_light(used, closed, breached),
    )


def get_sla_status(ticket, now: datetime | None = None) -> SLAStatus:
    """Breach and traffic-light status for both SLA windows."""
    now = now or utcnow()
    resolved = ticket.status in RESOLVED_STATUSES
    response_done = ticket.contractor_accepted_at is not None or resolved
    resolution_done = ticket.completed_at is not None or resolved
    return SLAStatus(
        response=_window(
            ticket.created_at,
            ticket.response_deadline,
            ticket.contractor_accepted_at or (ticket.cancelled_at if resolved else None),
            response_done,
            now,
        ),
        resolution=_window(
            ticket.created_at,
            ticket.resolution_deadline,
            ticket.completed_at or ticket.cancelled_at,
            resolution_done,
            now,
        ),
    )


@dataclass(frozen=True)
class TicketTimeline:
    minutes_to_assign: int | None
    minutes_to_accept: int | None
    minutes_to_on_site: int | None
    minutes_to_complete: int | None
    total_minutes: int | None


def get_timeline(ticket) -> TicketTimeline:
    """Elapsed minutes from creation to each lifecycle milestone."""

    def since_created(stamp: datetime | None) -> int | None:
        if stamp is None:
            return None
        return _minutes_between(ticket.created_at, stamp)

    return TicketTimeline(
        minutes_to_assign=since_created(ticket.assigned_at),
        minutes_to_accept=since_created(ticket.contractor_accepted_at),
        minutes_to_on_site=since_created(ticket.on_site_at),
        minutes_to_complete=since_created(ticket.completed_at),
        total_minutes=since_created(ticket.closed_at or ticket.cancelled_at),
    )
