"""Entity type enums for polymorphic references."""

from enum import Enum


class EntityType(str, Enum):
    TICKET = "ticket"
    INVOICE = "invoice"
    PAYMENT_BATCH = "payment_batch"
    RATING = "rating"
