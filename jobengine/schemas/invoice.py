"""Invoice request/response schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from jobengine.db.enums import InvoiceStatus


class InvoiceCreate(BaseModel):
    ticket_id: UUID
    invoice_number: str = Field(..., max_length=100)
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    description: str = Field("", max_length=5000)
    file_url: str = Field("", max_length=2000)
    hours_worked: Decimal | None = Field(None, ge=0, max_digits=8, decimal_places=2)
    hourly_rate: Decimal | None = Field(None, ge=0, max_digits=12, decimal_places=2)
    work_description: str | None = Field(None, max_length=20000)
    notes: str | None = Field(None, max_length=5000)


class ClarificationText(BaseModel):
    text: str = Field("", max_length=5000)


class DirectPaymentCreate(BaseModel):
    amount: Decimal = Field(..., max_digits=12, decimal_places=2)
    proof_of_payment_url: str | None = Field(None, max_length=2000)
    payment_reference: str | None = Field(None, max_length=255)
    payment_date: datetime | None = None
    notes: str | None = Field(None, max_length=5000)


class InvoiceRead(BaseModel):
    id: UUID
    organization_id: UUID
    ticket_id: UUID
    contractor_id: UUID
    invoice_number: str
    amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: InvoiceStatus
    hours_worked: Decimal | None
    hourly_rate: Decimal | None
    description: str
    work_description: str | None
    notes: str | None
    rejection_reason: str | None
    clarification_request: str | None
    clarification_requested_at: datetime | None
    clarification_response: str | None
    clarification_responded_at: datetime | None
    cancellation_reason: str | None
    approved_at: datetime | None
    rejected_at: datetime | None
    revision_number: int
    is_active: bool
    parent_invoice_id: UUID | None
    file_url: str
    proof_of_payment_url: str | None
    payment_reference: str | None
    paid_date: datetime | None
    payment_batch_id: UUID | None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class InvoiceListResponse(BaseModel):
    items: list[InvoiceRead]
    total: int
    page: int
    per_page: int
    pages: int


class InvoiceStatusTotals(BaseModel):
    count: int
    amount: Decimal


class InvoiceSummary(BaseModel):
    by_status: dict[str, InvoiceStatusTotals]
    total_invoiced: Decimal
    total_paid: Decimal
    outstanding_balance: Decimal
