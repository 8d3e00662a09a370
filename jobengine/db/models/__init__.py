"""SQLAlchemy ORM models."""

from jobengine.db.models.invoices import Invoice
from jobengine.db.models.notifications import Notification
from jobengine.db.models.payments import PaymentBatch, PaymentBatchInvoice
from jobengine.db.models.ratings import ContractorReputation, Rating
from jobengine.db.models.tickets import StatusHistory, Ticket

__all__ = [
    "ContractorReputation",
    "Invoice",
    "Notification",
    "PaymentBatch",
    "PaymentBatchInvoice",
    "Rating",
    "StatusHistory",
    "Ticket",
]
