"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jobengine.db.base import Base
from jobengine.db.enums import InvoiceStatus
from jobengine.db.types import utcnow

if TYPE_CHECKING:
    from jobengine.db.models import PaymentBatch, Ticket


class Invoice(Base):
    """
    A contractor's claim for payment against one completed ticket.

    Rejected invoices are superseded by a new revision rather than edited;
    exactly one invoice per ticket is active at a time.
    """

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("contractor_id", "invoice_number", name="uq_invoice_number_per_contractor"),
        Index(
            "uq_invoices_active_ticket",
            "ticket_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
        Index("idx_invoices_org_status", "organization_id", "status"),
        Index("idx_invoices_org_contractor", "organization_id", "contractor_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tickets.id"), nullable=False
    )
    contractor_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)

    # Money
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0.00"))
    hours_worked: Mapped[Decimal | None] = mapped_column(nullable=True)
    hourly_rate: Mapped[Decimal | None] = mapped_column(nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InvoiceStatus.PENDING.value
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    work_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Review
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    clarification_request: Mapped[str | None] = mapped_column(Text, nullable=True)
    clarification_requested_at: Mapped[datetime | None] = mapped_column(nullable=True)
    clarification_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    clarification_responded_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by_user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Resubmission chain
    revision_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    parent_invoice_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("invoices.id"), nullable=True
    )

    # Files (opaque references from the storage collaborator)
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    proof_of_payment_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Settlement
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    paid_date: Mapped[datetime | None] = mapped_column(nullable=True)
    payment_batch_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("payment_batches.id"), nullable=True
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        nullable=False, default=utcnow, onupdate=utcnow
    )

    # Relationships
    ticket: Mapped["Ticket"] = relationship(back_populates="invoices")
    parent_invoice: Mapped["Invoice | None"] = relationship(remote_side=[id])
    payment_batch: Mapped["PaymentBatch | None"] = relationship()

    @hybrid_property
    def balance(self) -> Decimal:
        return self.amount - self.paid_amount

    @balance.inplace.expression
    @classmethod
    def _balance_expression(cls):
        return cls.amount - cls.paid_amount
