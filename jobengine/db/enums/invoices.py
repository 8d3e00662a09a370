"""Invoice-related enums."""

from enum import Enum


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


# OVERDUE is advisory and never blocks settlement
PAYABLE_INVOICE_STATUSES = frozenset({InvoiceStatus.APPROVED, InvoiceStatus.OVERDUE})

UNCANCELLABLE_INVOICE_STATUSES = frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED})
