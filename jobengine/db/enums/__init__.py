"""Enum definitions for application constants."""

from jobengine.db.enums.auth import Role
from jobengine.db.enums.entities import EntityType
from jobengine.db.enums.invoices import (
    InvoiceStatus,
    PAYABLE_INVOICE_STATUSES,
    UNCANCELLABLE_INVOICE_STATUSES,
)
from jobengine.db.enums.notifications import NotificationType
from jobengine.db.enums.tickets import (
    ASSIGNED_STATUSES,
    INVOICEABLE_TICKET_STATUSES,
    TERMINAL_TICKET_STATUSES,
    TicketPriority,
    TicketStatus,
)

__all__ = [
    "ASSIGNED_STATUSES",
    "EntityType",
    "INVOICEABLE_TICKET_STATUSES",
    "InvoiceStatus",
    "NotificationType",
    "PAYABLE_INVOICE_STATUSES",
    "Role",
    "TERMINAL_TICKET_STATUSES",
    "TicketPriority",
    "TicketStatus",
    "UNCANCELLABLE_INVOICE_STATUSES",
]
