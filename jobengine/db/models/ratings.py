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
    JSON,
    Numeric,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jobengine.db.base import Base
from jobengine.db.types import utcnow

if TYPE_CHECKING:
    from jobengine.db.models import Ticket


class Rating(Base):
    """
    Requester's performance evaluation of the contractor for one ticket.

    Category scores are derived by services.scoring and never edited.
    """

    __tablename__ = "ratings"
    __table_args__ = (
        Index("idx_ratings_contractor", "contractor_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tickets.id"), nullable=False, unique=True
    )
    contractor_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    rated_by_user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    # Raw checklist as submitted
    checklist: Mapped[dict] = mapped_column(JSON, nullable=False)

    punctuality_score: Mapped[int] = mapped_column(Integer, nullable=False)
    ppe_score: Mapped[int] = mapped_column(Integer, nullable=False)
    customer_service_score: Mapped[int] = mapped_column(Integer, nullable=False)
    workmanship_score: Mapped[int] = mapped_column(Integer, nullable=False)
    site_procedures_score: Mapped[int] = mapped_column(Integer, nullable=False)
    overall_percentage: Mapped[int] = mapped_column(Integer, nullable=False)
    overall_stars: Mapped[int] = mapped_column(Integer, nullable=False)

    ppe_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    ticket: Mapped["Ticket"] = relationship(back_populates="rating")


class ContractorReputation(Base):
    """Running aggregate of all ratings for one contractor."""

    __tablename__ = "contractor_reputations"

    contractor_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    rating_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    avg_punctuality: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False, default=Decimal("0"))
    avg_customer_service: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False, default=Decimal("0"))
    avg_workmanship: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False, default=Decimal("0"))
    avg_overall_stars: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False, default=Decimal("0"))
    avg_overall_percentage: Mapped[Decimal] = mapped_column(Numeric(6, 3), nullable=False, default=Decimal("0"))

    ppe_compliant_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    procedure_compliant_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ppe_compliance_rate: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))
    procedure_compliance_rate: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)
