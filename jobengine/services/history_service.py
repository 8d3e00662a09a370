"""Status history - append-only audit of applied transitions."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from jobengine.db.enums import EntityType
from jobengine.db.models import StatusHistory
from jobengine.db.types import utcnow


def record_transition(
    db: Session,
    *,
    org_id: UUID,
    entity_type: EntityType,
    entity_id: UUID,
    from_status: str | None,
    to_status: str,
    changed_by_user_id: UUID | None,
    reason: str | None = None,
) -> StatusHistory:
    """Add a history row to the current transaction (no commit)."""
    entry = StatusHistory(
        organization_id=org_id,
        entity_type=entity_type.value,
        entity_id=entity_id,
        from_status=from_status,
        to_status=to_status,
        changed_by_user_id=changed_by_user_id,
        reason=reason,
        recorded_at=utcnow(),
    )
    db.add(entry)
    return entry


def list_history(
    db: Session, org_id: UUID, entity_type: EntityType, entity_id: UUID
) -> list[StatusHistory]:
    return list(
        db.scalars(
            select(StatusHistory)
            .where(
                StatusHistory.organization_id == org_id,
                StatusHistory.entity_type == entity_type.value,
                StatusHistory.entity_id == entity_id,
            )
            .order_by(StatusHistory.recorded_at, StatusHistory.id)
        )
    )
