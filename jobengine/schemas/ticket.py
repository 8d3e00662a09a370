"""Ticket request/response schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from jobengine.db.enums import TicketPriority, TicketStatus


class TicketCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    priority: TicketPriority = TicketPriority.MEDIUM
    category: str | None = Field(None, max_length=100)
    asset_ref: str | None = Field(None, max_length=255)
    location: str | None = Field(None, max_length=255)


class TicketUpdate(BaseModel):
    """Editable while the ticket is still OPEN."""
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, min_length=1)
    category: str | None = Field(None, max_length=100)
    asset_ref: str | None = Field(None, max_length=255)
    location: str | None = Field(None, max_length=255)


class AssignRequest(BaseModel):
    contractor_id: UUID


class JobPlan(BaseModel):
    """Submitted by the contractor when accepting a job."""
    technician_name: str = Field(..., min_length=1, max_length=255)
    arrival_at: datetime
    estimated_duration_hours: Decimal = Field(..., gt=0, max_digits=6, decimal_places=2)
    contact_number: str | None = Field(None, max_length=50)
    notes: str | None = Field(None, max_length=2000)


class WorkDescriptionSubmit(BaseModel):
    description: str = Field("", max_length=20000)


class TicketRead(BaseModel):
    id: UUID
    organization_id: UUID
    ticket_number: str
    title: str
    description: str
    priority: TicketPriority
    status: TicketStatus
    category: str | None
    asset_ref: str | None
    location: str | None
    requested_by_user_id: UUID
    assigned_contractor_id: UUID | None
    assigned_by_user_id: UUID | None
    response_deadline: datetime | None
    resolution_deadline: datetime | None
    assigned_at: datetime | None
    contractor_accepted_at: datetime | None
    on_site_at: datetime | None
    work_started_at: datetime | None
    work_description_requested_at: datetime | None
    work_description_submitted_at: datetime | None
    work_description_approved_at: datetime | None
    completed_at: datetime | None
    closed_at: datetime | None
    cancelled_at: datetime | None
    job_plan: dict | None
    scheduled_arrival: datetime | None
    work_description: str | None
    work_description_rejection_reason: str | None
    contractor_decline_reason: str | None
    cancellation_reason: str | None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TicketListResponse(BaseModel):
    items: list[TicketRead]
    total: int
    page: int
    per_page: int
    pages: int


class SLAWindowRead(BaseModel):
    deadline: datetime | None
    remaining_minutes: int | None
    used_percent: int | None
    breached: bool
    satisfied: bool
    status: str

    model_config = {"from_attributes": True}


class SLAStatusRead(BaseModel):
    response: SLAWindowRead
    resolution: SLAWindowRead

    model_config = {"from_attributes": True}


class TicketTimelineRead(BaseModel):
    minutes_to_assign: int | None
    minutes_to_accept: int | None
    minutes_to_on_site: int | None
    minutes_to_complete: int | None
    total_minutes: int | None

    model_config = {"from_attributes": True}
