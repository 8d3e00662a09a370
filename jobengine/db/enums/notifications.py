"""Notification-related enums."""

from enum import Enum


class NotificationType(str, Enum):
    """Types of in-app notifications."""

    # Ticket notifications
    TICKET_ASSIGNED = "ticket_assigned"
    JOB_DECLINED = "job_declined"
    WORK_DESCRIPTION_SUBMITTED = "work_description_submitted"
    WORK_REJECTED = "work_rejected"
    WORK_APPROVED = "work_approved"

    # Invoice notifications
    INVOICE_SUBMITTED = "invoice_submitted"
    INVOICE_APPROVED = "invoice_approved"
    INVOICE_REJECTED = "invoice_rejected"
    CLARIFICATION_REQUESTED = "clarification_requested"
    PAYMENT_MADE = "payment_made"

    # Rating notifications
    RATING_RECEIVED = "rating_received"
