"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import (
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jobengine.db.base import Base
from jobengine.db.enums import TicketPriority, TicketStatus
from jobengine.db.types import utcnow

if TYPE_CHECKING:
    from jobengine.db.models import Invoice, Rating


class Ticket(Base):
    """
    A unit of requested field work.

    Status only moves through ticket_service transitions. Lifecycle stamps
    are write-once; the full audit trail lives in status_history.
    """

    __tablename__ = "tickets"
    __table_args__ = (
        UniqueConstraint("organization_id", "ticket_number", name="uq_ticket_number"),
        Index("idx_tickets_org_status", "organization_id", "status"),
        Index("idx_tickets_org_contractor", "organization_id", "assigned_contractor_id"),
        Index("idx_tickets_org_requester", "organization_id", "requested_by_user_id"),
        Index("idx_tickets_org_created", "organization_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    ticket_number: Mapped[str] = mapped_column(String(32), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TicketPriority.MEDIUM.value
    )
    status: Mapped[str] = mapped_column(
        String(40), nullable=False, default=TicketStatus.OPEN.value
    )
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    asset_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Actors (opaque identity references)
    requested_by_user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    assigned_contractor_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    assigned_by_user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    # SLA deadlines (computed once at creation)
    response_deadline: Mapped[datetime | None] = mapped_column(nullable=True)
    resolution_deadline: Mapped[datetime | None] = mapped_column(nullable=True)

    # Lifecycle stamps
    assigned_at: Mapped[datetime | None] = mapped_column(nullable=True)
    contractor_accepted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    on_site_at: Mapped[datetime | None] = mapped_column(nullable=True)
    work_started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    work_description_requested_at: Mapped[datetime | None] = mapped_column(nullable=True)
    work_description_submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    work_description_approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Job plan submitted on acceptance:
    # {technician_name, arrival_at, estimated_duration_hours, contact_number, notes}
    job_plan: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    scheduled_arrival: Mapped[datetime | None] = mapped_column(nullable=True)

    # Work description handshake
    work_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    work_description_rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    contractor_decline_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False, default=utcnow, onupdate=utcnow
    )

    # Relationships
    invoices: Mapped[list["Invoice"]] = relationship(
        back_populates="ticket", order_by="Invoice.revision_number"
    )
    rating: Mapped["Rating | None"] = relationship(back_populates="ticket")


class StatusHistory(Base):
    """
    Append-only record of every applied status transition.

    Shared by tickets and invoices (entity_type discriminates).
    """

    __tablename__ = "status_history"
    __table_args__ = (
        Index("idx_status_history_entity", "entity_type", "entity_id", "recorded_at"),
        Index("idx_status_history_org", "organization_id", "recorded_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    entity_type: Mapped[str] = mapped_column(String(30), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(40), nullable=True)
    to_status: Mapped[str] = mapped_column(String(40), nullable=False)
    changed_by_user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
