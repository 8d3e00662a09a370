"""Payment batch request/response schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class PaymentBatchCreate(BaseModel):
    invoice_ids: list[UUID] = Field(default_factory=list, max_length=500)
    proof_of_payment_url: str = Field("", max_length=2000)
    payment_date: datetime
    payment_reference: str | None = Field(None, max_length=255)
    notes: str | None = Field(None, max_length=5000)
    # When set, every invoice must belong to this contractor
    contractor_id: UUID | None = None


class PaymentBatchMemberRead(BaseModel):
    invoice_id: UUID
    position: int
    amount: Decimal

    model_config = {"from_attributes": True}


class PaymentBatchRead(BaseModel):
    id: UUID
    organization_id: UUID
    batch_number: str
    total_amount: Decimal
    proof_of_payment_url: str
    payment_reference: str | None
    payment_date: datetime
    notes: str | None
    processed_by_user_id: UUID
    created_at: datetime
    members: list[PaymentBatchMemberRead]

    model_config = {"from_attributes": True}
