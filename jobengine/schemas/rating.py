"""Rating checklist and reputation schemas."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class PunctualityChecklist(BaseModel):
    scheduled_arrival: datetime | None = None
    actual_arrival: datetime | None = None
    notified_delay_in_advance: bool = False

    @field_validator("scheduled_arrival", "actual_arrival")
    @classmethod
    def assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class PPEChecklist(BaseModel):
    compliant: bool = False
    # Required items
    hard_hat: bool = False
    safety_boots: bool = False
    reflective_vest: bool = False
    # Recorded but not scored
    gloves: bool = False
    safety_goggles: bool = False
    overalls: bool = False


class CustomerServiceChecklist(BaseModel):
    communicated_clearly: bool = False
    professional_attitude: bool = False
    respectful_to_staff: bool = False
    patient_solution_oriented: bool = False


class WorkmanshipChecklist(BaseModel):
    completed_as_requested: bool = False
    no_shortcuts: bool = False
    clean_work_area: bool = False
    no_rework_needed: bool = False


class SiteProceduresChecklist(BaseModel):
    compliant: bool = False
    permit_to_work_filled: bool = False
    logged_job_card: bool = False
    followed_isolation: bool = False
    followed_waste_disposal: bool = False


class RatingChecklist(BaseModel):
    """Everything the requester ticks in the rating form."""

    punctuality: PunctualityChecklist = Field(default_factory=PunctualityChecklist)
    ppe: PPEChecklist = Field(default_factory=PPEChecklist)
    customer_service: CustomerServiceChecklist = Field(default_factory=CustomerServiceChecklist)
    workmanship: WorkmanshipChecklist = Field(default_factory=WorkmanshipChecklist)
    site_procedures: SiteProceduresChecklist = Field(default_factory=SiteProceduresChecklist)


class RatingCreate(BaseModel):
    checklist: RatingChecklist = Field(default_factory=RatingChecklist)
    ppe_comment: str | None = Field(None, max_length=2000)
    comment: str | None = Field(None, max_length=5000)
    close_ticket: bool = True


class RatingRead(BaseModel):
    id: UUID
    ticket_id: UUID
    contractor_id: UUID
    rated_by_user_id: UUID
    checklist: dict
    punctuality_score: int
    ppe_score: int
    customer_service_score: int
    workmanship_score: int
    site_procedures_score: int
    overall_percentage: int
    overall_stars: int
    ppe_comment: str | None
    comment: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ReputationRead(BaseModel):
    contractor_id: UUID
    rating_count: int
    avg_punctuality: Decimal
    avg_customer_service: Decimal
    avg_workmanship: Decimal
    avg_overall_stars: Decimal
    avg_overall_percentage: Decimal
    ppe_compliant_count: int
    procedure_compliant_count: int
    ppe_compliance_rate: Decimal
    procedure_compliance_rate: Decimal

    model_config = {"from_attributes": True}
