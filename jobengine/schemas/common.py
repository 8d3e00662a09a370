"""Shared request/response schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class ReasonRequest(BaseModel):
    """Body for actions that must record a human-readable reason."""
    reason: str = Field("", max_length=5000)


class StatusHistoryRead(BaseModel):
    id: UUID
    entity_type: str
    entity_id: UUID
    from_status: str | None
    to_status: str
    changed_by_user_id: UUID | None
    reason: str | None
    recorded_at: datetime

    model_config = {"from_attributes": True}
