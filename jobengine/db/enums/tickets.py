"""Ticket-related enums."""

from enum import Enum


class TicketStatus(str, Enum):
    OPEN = "open"
    PROCESSING = "processing"
    ACCEPTED = "accepted"
    ON_SITE = "on_site"
    IN_PROGRESS = "in_progress"
    AWAITING_DESCRIPTION = "awaiting_description"
    AWAITING_WORK_APPROVAL = "awaiting_work_approval"
    COMPLETED = "completed"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
    URGENT = "urgent"


# Statuses in which a contractor must be assigned
ASSIGNED_STATUSES = frozenset(
    {
        TicketStatus.PROCESSING,
        TicketStatus.ACCEPTED,
        TicketStatus.ON_SITE,
        TicketStatus.IN_PROGRESS,
        TicketStatus.AWAITING_DESCRIPTION,
        TicketStatus.AWAITING_WORK_APPROVAL,
        TicketStatus.COMPLETED,
    }
)

TERMINAL_TICKET_STATUSES = frozenset({TicketStatus.CLOSED, TicketStatus.CANCELLED})

# Tickets that can carry an invoice
INVOICEABLE_TICKET_STATUSES = frozenset({TicketStatus.COMPLETED, TicketStatus.CLOSED})
