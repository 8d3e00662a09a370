"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jobengine.db.base import Base
from jobengine.db.types import utcnow

if TYPE_CHECKING:
    from jobengine.db.models import Invoice


class PaymentBatch(Base):
    """
    One settlement event covering one or more invoices.

    Immutable once created; member amounts are snapshotted at creation.
    """

    __tablename__ = "payment_batches"
    __table_args__ = (
        UniqueConstraint("organization_id", "batch_number", name="uq_payment_batch_number"),
        Index("idx_payment_batches_org_date", "organization_id", "payment_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    batch_number: Mapped[str] = mapped_column(String(32), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    proof_of_payment_url: Mapped[str] = mapped_column(Text, nullable=False)
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_date: Mapped[datetime] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_by_user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    members: Mapped[list["PaymentBatchInvoice"]] = relationship(
        back_populates="batch",
        order_by="PaymentBatchInvoice.position",
        cascade="all, delete-orphan",
    )


class PaymentBatchInvoice(Base):
    """Ordered membership of an invoice in a payment batch."""

    __tablename__ = "payment_batch_invoices"
    __table_args__ = (
        UniqueConstraint("batch_id", "invoice_id", name="uq_payment_batch_invoice"),
        UniqueConstraint("batch_id", "position", name="uq_payment_batch_position"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    batch_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("payment_batches.id", ondelete="CASCADE"), nullable=False
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("invoices.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    batch: Mapped["PaymentBatch"] = relationship(back_populates="members")
    invoice: Mapped["Invoice"] = relationship()
